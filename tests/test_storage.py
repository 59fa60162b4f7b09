"""
Tests for the storage layer.

Tests:
1. Storage contracts are satisfied by both stores
2. InMemoryCriteriaStore metadata and descendant lookups
3. SqliteCriteriaStore schema, round trips and recursive descendant query
4. End-to-end combination over SQLite
"""

import asyncio
import tempfile
from pathlib import Path

import pytest

from querytree.combiner import combine_project_queries
from querytree.core.enums import QueryMatchType, QuestionType, SearchCategoryType, SortDirection
from querytree.core.exceptions import ProjectNotFoundError, StorageError
from querytree.core.schemas import Query, Section
from querytree.storage import (
    CriteriaRepository,
    InMemoryCriteriaStore,
    MetadataLoader,
    SqliteCriteriaStore,
)


def run_async(coro):
    """Run a coroutine from a synchronous test."""
    return asyncio.run(coro)


@pytest.fixture
def temp_db():
    """Create temporary database path for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "criteria.db"


@pytest.fixture
def sqlite_store(temp_db, medication_question, ldl_question) -> SqliteCriteriaStore:
    """SQLite store holding project-1 with both sample questions."""
    store = SqliteCriteriaStore(db_path=temp_db)
    store.create_project("project-1")
    store.add_section("project-1", Section(id="section-1", name="Lipids"))
    store.add_question("project-1", medication_question, position=0)
    store.add_question("project-1", ldl_question, position=1)
    return store


class TestContracts:
    """Both stores implement both protocols."""

    def test_memory_store(self):
        store = InMemoryCriteriaStore()
        assert isinstance(store, CriteriaRepository)
        assert isinstance(store, MetadataLoader)

    def test_sqlite_store(self, temp_db):
        store = SqliteCriteriaStore(db_path=temp_db)
        assert isinstance(store, CriteriaRepository)
        assert isinstance(store, MetadataLoader)


# =============================================================================
# IN-MEMORY STORE
# =============================================================================


class TestInMemoryCriteriaStore:
    """Tests for the dictionary-backed store."""

    def test_metadata_maps(self, memory_store):
        sections, questions, answers = run_async(memory_store.load_project_metadata("project-1"))

        assert list(sections) == ["section-1"]
        assert list(questions) == ["question-med", "question-ldl"]
        assert list(answers) == ["answer-med", "answer-ldl", "answer-ldl-none"]
        assert answers["answer-ldl-none"].question_id == "question-ldl"

    def test_answer_queries_are_detached_roots(self, memory_store):
        metadata = run_async(memory_store.load_project_metadata("project-1"))

        root = metadata.answers["answer-med"].query
        assert root.id == "q-med-root"
        assert root.answer_id == "answer-med"
        assert root.groups == []

    def test_unknown_project(self, memory_store):
        with pytest.raises(ProjectNotFoundError):
            run_async(memory_store.load_project_metadata("unknown"))

    def test_find_descendants_excludes_roots(self, memory_store):
        descendants = run_async(memory_store.find_descendants([Query(id="q-med-root")]))

        assert {d.id for d in descendants} == {
            "q-med-term",
            "q-med-start",
            "q-med-not",
            "q-med-report",
        }
        assert all(d.groups == [] for d in descendants)

    def test_combining_does_not_mutate_stored_nodes(self, memory_store):
        run_async(combine_project_queries("project-1", memory_store, memory_store))

        descendants = run_async(memory_store.find_descendants([Query(id="q-med-root")]))
        assert all(d.sort_direction is None for d in descendants)

    def test_duplicate_query_id_is_rejected(self):
        store = InMemoryCriteriaStore()
        store.add_query(Query(id="a"))

        with pytest.raises(StorageError):
            store.add_query(Query(id="a"))

    def test_cycle_terminates(self):
        store = InMemoryCriteriaStore()
        store.add_query(Query(id="a", parent_id="b"))
        store.add_query(Query(id="b", parent_id="a"))

        descendants = run_async(store.find_descendants([Query(id="a")]))

        assert [d.id for d in descendants] == ["b"]


# =============================================================================
# SQLITE STORE
# =============================================================================


class TestSqliteCriteriaStoreInit:
    """Tests for SqliteCriteriaStore initialization."""

    def test_creates_database_file(self, temp_db):
        SqliteCriteriaStore(db_path=temp_db)
        assert temp_db.exists()

    def test_creates_parent_directories(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            db_path = Path(tmpdir) / "nested" / "deep" / "criteria.db"
            SqliteCriteriaStore(db_path=db_path)
            assert db_path.exists()

    def test_defaults_to_configured_path(self, temp_db, monkeypatch):
        monkeypatch.setenv("QUERYTREE_DB_PATH", str(temp_db))

        store = SqliteCriteriaStore()

        assert store.db_path == temp_db.resolve()


class TestSqliteMetadata:
    """Loading sections, questions and answers."""

    def test_metadata_round_trip(self, sqlite_store):
        sections, questions, answers = run_async(sqlite_store.load_project_metadata("project-1"))

        assert sections["section-1"].name == "Lipids"
        assert list(questions) == ["question-med", "question-ldl"]
        ldl = questions["question-ldl"]
        assert ldl.question_type == QuestionType.MULTIPLE_CHOICE_SINGLE_ANSWER
        assert ldl.sort_direction == SortDirection.ASC
        assert [a.id for a in ldl.answers] == ["answer-ldl", "answer-ldl-none"]
        assert answers["answer-ldl-none"].hidden is True
        assert answers["answer-ldl"].label == "LDL below target"

    def test_answer_root_queries(self, sqlite_store):
        metadata = run_async(sqlite_store.load_project_metadata("project-1"))

        root = metadata.answers["answer-ldl"].query
        assert root.id == "q-ldl-root"
        assert root.match == QueryMatchType.ANY
        assert root.answer_id == "answer-ldl"
        assert root.groups == []

    def test_unknown_project(self, sqlite_store):
        with pytest.raises(ProjectNotFoundError):
            run_async(sqlite_store.load_project_metadata("unknown"))

    def test_project_without_questions(self, temp_db):
        store = SqliteCriteriaStore(db_path=temp_db)
        store.create_project("empty")

        metadata = run_async(store.load_project_metadata("empty"))

        assert metadata.questions == {}
        assert metadata.answers == {}

    def test_question_for_unknown_project_fails(self, temp_db, medication_question):
        store = SqliteCriteriaStore(db_path=temp_db)

        with pytest.raises(StorageError):
            store.add_question("missing", medication_question)


class TestSqliteDescendants:
    """Recursive descendant query."""

    def test_descendants_of_one_root(self, sqlite_store):
        descendants = run_async(sqlite_store.find_descendants([Query(id="q-med-root")]))

        assert {d.id for d in descendants} == {
            "q-med-term",
            "q-med-start",
            "q-med-not",
            "q-med-report",
        }

    def test_node_fields_round_trip(self, sqlite_store):
        descendants = run_async(sqlite_store.find_descendants([Query(id="q-ldl-root")]))

        (term,) = descendants
        assert term.parent_id == "q-ldl-root"
        assert term.category == SearchCategoryType.MEASUREMENT
        assert term.filters[1] == {"field": "value", "op": "<", "value": 1.81}

    def test_collect_flag_round_trip(self, sqlite_store):
        descendants = run_async(sqlite_store.find_descendants([Query(id="q-med-term")]))

        assert [(d.id, d.collect) for d in descendants] == [("q-med-start", True)]

    def test_no_roots(self, sqlite_store):
        assert run_async(sqlite_store.find_descendants([])) == []

    def test_cycle_terminates_and_excludes_root(self, temp_db):
        store = SqliteCriteriaStore(db_path=temp_db)
        store.add_query(Query(id="r", parent_id="x"))
        store.add_query(Query(id="x", parent_id="r"))

        descendants = run_async(store.find_descendants([Query(id="r")]))

        assert [d.id for d in descendants] == ["x"]


class TestSqliteCombination:
    """End-to-end combination over SQLite."""

    def test_matches_in_memory_result(self, sqlite_store, memory_store):
        from_sqlite = run_async(combine_project_queries("project-1", sqlite_store, sqlite_store))
        from_memory = run_async(combine_project_queries("project-1", memory_store, memory_store))

        def term_ids(combined):
            return {k: [t.id for t in v] for k, v in combined.answer_to_terms.items()}

        assert term_ids(from_sqlite) == term_ids(from_memory)
        assert from_sqlite.collected_children == from_memory.collected_children
        assert [g.id for g in from_sqlite.tree.groups] == [g.id for g in from_memory.tree.groups]
