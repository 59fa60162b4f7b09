"""
SQLite Criteria Store

SQLite-backed implementation of both storage contracts. Criteria nodes are
stored flat with a `parent_id` column; descendants of the root queries are
resolved with one recursive CTE.
"""

import asyncio
import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generator

from querytree.config import get_settings
from querytree.core.exceptions import ProjectNotFoundError, StorageError
from querytree.core.schemas import Answer, Query, Question, Section
from querytree.storage.base import ProjectMetadata

logger = logging.getLogger(__name__)


class SqliteCriteriaStore:
    """
    SQLite-based questionnaire and criteria storage.

    Tables:
        - projects: Known project identifiers
        - sections: Questionnaire sections per project
        - questions: Questions per project (type, sort direction, disabled)
        - answers: Answers per question, with their root query id
        - queries: Criteria nodes, linked to their parent by `parent_id`
    """

    def __init__(self, db_path: Path | None = None) -> None:
        """
        Initialize criteria store.

        Args:
            db_path: Path to SQLite database. Defaults to config.
        """
        self._db_path = db_path or get_settings().storage.db_path
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    @property
    def db_path(self) -> Path:
        """Get database path."""
        return self._db_path

    @contextmanager
    def _connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Context manager for database connection."""
        conn = sqlite3.connect(self._db_path, timeout=30.0)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except StorageError:
            conn.rollback()
            raise
        except Exception as e:
            conn.rollback()
            raise StorageError(f"Database error: {e}") from e
        finally:
            conn.close()

    def _init_schema(self) -> None:
        """Initialize database schema."""
        with self._connection() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS projects (
                    project_id TEXT PRIMARY KEY,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS sections (
                    section_id TEXT PRIMARY KEY,
                    project_id TEXT NOT NULL,
                    name TEXT,
                    position INTEGER NOT NULL DEFAULT 0,
                    FOREIGN KEY (project_id) REFERENCES projects(project_id) ON DELETE CASCADE
                );

                CREATE TABLE IF NOT EXISTS questions (
                    question_id TEXT PRIMARY KEY,
                    project_id TEXT NOT NULL,
                    section_id TEXT,
                    question_type TEXT NOT NULL,
                    sort_direction TEXT NOT NULL,
                    disabled INTEGER NOT NULL DEFAULT 0,
                    position INTEGER NOT NULL DEFAULT 0,
                    FOREIGN KEY (project_id) REFERENCES projects(project_id) ON DELETE CASCADE
                );

                CREATE TABLE IF NOT EXISTS answers (
                    answer_id TEXT PRIMARY KEY,
                    question_id TEXT NOT NULL,
                    hidden INTEGER NOT NULL DEFAULT 0,
                    label TEXT,
                    query_id TEXT,
                    position INTEGER NOT NULL DEFAULT 0,
                    FOREIGN KEY (question_id) REFERENCES questions(question_id) ON DELETE CASCADE
                );

                CREATE TABLE IF NOT EXISTS queries (
                    query_id TEXT PRIMARY KEY,
                    parent_id TEXT,
                    answer_id TEXT,
                    category TEXT,
                    match_type TEXT NOT NULL,
                    collect INTEGER NOT NULL DEFAULT 0,
                    disabled INTEGER NOT NULL DEFAULT 0,
                    sort_direction TEXT,
                    filters_json TEXT,
                    position INTEGER NOT NULL DEFAULT 0
                );

                CREATE INDEX IF NOT EXISTS idx_questions_project_id ON questions(project_id);
                CREATE INDEX IF NOT EXISTS idx_answers_question_id ON answers(question_id);
                CREATE INDEX IF NOT EXISTS idx_queries_parent_id ON queries(parent_id);
            """)

    # ==================== Writes ====================

    def create_project(self, project_id: str) -> None:
        """Register a project (no-op if it exists)."""
        now = datetime.now(timezone.utc).isoformat()
        with self._connection() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO projects (project_id, created_at) VALUES (?, ?)",
                (project_id, now),
            )

    def add_section(self, project_id: str, section: Section, position: int = 0) -> None:
        """Add a section to a project."""
        with self._connection() as conn:
            conn.execute(
                "INSERT INTO sections (section_id, project_id, name, position) VALUES (?, ?, ?, ?)",
                (section.id, project_id, section.name, position),
            )

    def add_question(self, project_id: str, question: Question, position: int = 0) -> None:
        """
        Add a question with its answers and their query trees.

        Args:
            project_id: Owning project (must exist).
            question: Question; nested answer queries are stored with it.
            position: Order of the question within the project.
        """
        with self._connection() as conn:
            conn.execute(
                """
                INSERT INTO questions
                    (question_id, project_id, section_id, question_type,
                     sort_direction, disabled, position)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    question.id,
                    project_id,
                    question.section_id,
                    question.question_type.value,
                    question.sort_direction.value,
                    int(question.disabled),
                    position,
                ),
            )
            for answer_position, answer in enumerate(question.answers):
                conn.execute(
                    """
                    INSERT INTO answers (answer_id, question_id, hidden, label, query_id, position)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        answer.id,
                        question.id,
                        int(answer.hidden),
                        answer.label,
                        answer.query.id if answer.query else None,
                        answer_position,
                    ),
                )
                if answer.query is not None:
                    self._insert_tree(conn, answer.query, 0)

    def save_query_tree(self, root: Query) -> None:
        """Store `root` and every nested node."""
        with self._connection() as conn:
            self._insert_tree(conn, root, 0)

    def add_query(self, query: Query, position: int = 0) -> None:
        """Store a single node; nested `groups` are ignored."""
        with self._connection() as conn:
            self._insert_query(conn, query, position)

    def _insert_tree(self, conn: sqlite3.Connection, node: Query, position: int) -> None:
        self._insert_query(conn, node, position)
        for child_position, child in enumerate(node.groups):
            self._insert_tree(conn, child, child_position)

    def _insert_query(self, conn: sqlite3.Connection, query: Query, position: int) -> None:
        conn.execute(
            """
            INSERT INTO queries
                (query_id, parent_id, answer_id, category, match_type, collect,
                 disabled, sort_direction, filters_json, position)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                query.id,
                query.parent_id,
                query.answer_id,
                query.category.value if query.category else None,
                query.match.value,
                int(query.collect),
                int(query.disabled),
                query.sort_direction.value if query.sort_direction else None,
                json.dumps(query.filters) if query.filters else None,
                position,
            ),
        )

    # ==================== Storage contracts ====================

    async def load_project_metadata(self, project_id: str) -> ProjectMetadata:
        """Load sections, questions and answers of a project."""
        return await asyncio.to_thread(self._load_project_metadata, project_id)

    async def find_descendants(self, roots: list[Query]) -> list[Query]:
        """Resolve every query below `roots` with a recursive CTE."""
        return await asyncio.to_thread(self._find_descendants, [root.id for root in roots])

    def _load_project_metadata(self, project_id: str) -> ProjectMetadata:
        with self._connection() as conn:
            project = conn.execute(
                "SELECT project_id FROM projects WHERE project_id = ?", (project_id,)
            ).fetchone()
            if project is None:
                raise ProjectNotFoundError(project_id)

            section_rows = conn.execute(
                "SELECT * FROM sections WHERE project_id = ? ORDER BY position, rowid",
                (project_id,),
            ).fetchall()
            question_rows = conn.execute(
                "SELECT * FROM questions WHERE project_id = ? ORDER BY position, rowid",
                (project_id,),
            ).fetchall()
            answer_rows = conn.execute(
                """
                SELECT a.* FROM answers a
                JOIN questions q ON q.question_id = a.question_id
                WHERE q.project_id = ?
                ORDER BY a.position, a.rowid
                """,
                (project_id,),
            ).fetchall()
            root_rows = conn.execute(
                """
                SELECT r.* FROM queries r
                JOIN answers a ON a.query_id = r.query_id
                JOIN questions q ON q.question_id = a.question_id
                WHERE q.project_id = ?
                """,
                (project_id,),
            ).fetchall()

        roots = {row["query_id"]: self._row_to_query(row) for row in root_rows}

        answers_by_question: dict[str, list[Answer]] = {}
        for row in answer_rows:
            answers_by_question.setdefault(row["question_id"], []).append(
                Answer(
                    id=row["answer_id"],
                    hidden=bool(row["hidden"]),
                    question_id=row["question_id"],
                    label=row["label"],
                    query=roots.get(row["query_id"]) if row["query_id"] else None,
                )
            )

        questions = [
            Question(
                id=row["question_id"],
                disabled=bool(row["disabled"]),
                question_type=row["question_type"],
                sort_direction=row["sort_direction"],
                section_id=row["section_id"],
                answers=answers_by_question.get(row["question_id"], []),
            )
            for row in question_rows
        ]
        sections = [Section(id=row["section_id"], name=row["name"]) for row in section_rows]

        logger.debug(
            f"[SqliteStore] Loaded project {project_id}: "
            f"{len(sections)} sections, {len(questions)} questions, {len(answer_rows)} answers"
        )
        return ProjectMetadata.from_questions(sections=sections, questions=questions)

    def _find_descendants(self, root_ids: list[str]) -> list[Query]:
        if not root_ids:
            return []

        placeholders = ", ".join("?" for _ in root_ids)
        # UNION (not UNION ALL) stops at rows already produced, so cycles terminate
        sql = f"""
            WITH RECURSIVE descendants(query_id) AS (
                SELECT query_id FROM queries WHERE parent_id IN ({placeholders})
                UNION
                SELECT q.query_id FROM queries q
                JOIN descendants d ON q.parent_id = d.query_id
            )
            SELECT q.* FROM queries q
            JOIN descendants d ON d.query_id = q.query_id
            ORDER BY q.parent_id, q.position, q.rowid
        """
        with self._connection() as conn:
            rows = conn.execute(sql, root_ids).fetchall()

        excluded = set(root_ids)
        return [self._row_to_query(row) for row in rows if row["query_id"] not in excluded]

    @staticmethod
    def _row_to_query(row: sqlite3.Row) -> Query:
        """Convert database row to a detached query node."""
        data: dict[str, Any] = {
            "id": row["query_id"],
            "parent_id": row["parent_id"],
            "answer_id": row["answer_id"],
            "category": row["category"],
            "match": row["match_type"],
            "collect": bool(row["collect"]),
            "disabled": bool(row["disabled"]),
            "sort_direction": row["sort_direction"],
            "filters": json.loads(row["filters_json"]) if row["filters_json"] else [],
        }
        return Query(**data)
