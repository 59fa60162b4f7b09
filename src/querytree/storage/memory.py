"""
In-Memory Criteria Store

Dictionary-backed implementation of both storage contracts. Every read
returns deep copies, so combining a project never mutates the stored data.
"""

import logging

from querytree.core.exceptions import ProjectNotFoundError, StorageError
from querytree.core.schemas import Query, Question, Section
from querytree.storage.base import ProjectMetadata
from querytree.utils.multimap import add_one_to_multimap

logger = logging.getLogger(__name__)


class InMemoryCriteriaStore:
    """
    In-memory questionnaire and criteria storage.

    Usage:
        store = InMemoryCriteriaStore()
        store.add_question("project-1", question)
        store.add_query_tree(root_query)
        combined = await combine_project_queries("project-1", store, store)
    """

    def __init__(self) -> None:
        self._sections: dict[str, list[Section]] = {}
        self._questions: dict[str, list[Question]] = {}
        self._queries: dict[str, Query] = {}

    def add_project(self, project_id: str) -> None:
        self._sections.setdefault(project_id, [])
        self._questions.setdefault(project_id, [])

    def add_section(self, project_id: str, section: Section) -> None:
        self.add_project(project_id)
        self._sections[project_id].append(section)

    def add_question(self, project_id: str, question: Question) -> None:
        """Store a question; the root queries of its answers are stored with it."""
        self.add_project(project_id)
        self._questions[project_id].append(question)
        for answer in question.answers:
            if answer.query is not None:
                self.add_query_tree(answer.query)

    def add_query(self, query: Query) -> None:
        """Store a single node; nested `groups` are ignored."""
        if query.id in self._queries:
            raise StorageError(f"Duplicate query id: {query.id}", {"query_id": query.id})
        self._queries[query.id] = query.model_copy(update={"groups": []}, deep=True)

    def add_query_tree(self, root: Query) -> None:
        """Store `root` and every nested node, flattened by `parent_id`."""
        for node in root.iter_subtree():
            self.add_query(node)

    async def load_project_metadata(self, project_id: str) -> ProjectMetadata:
        if project_id not in self._questions:
            raise ProjectNotFoundError(project_id)

        questions = [q.model_copy(deep=True) for q in self._questions[project_id]]
        for question in questions:
            for answer in question.answers:
                # Answers carry the root node only; descendants come from find_descendants
                if answer.query is not None:
                    answer.query.groups = []

        return ProjectMetadata.from_questions(
            sections=list(self._sections[project_id]), questions=questions
        )

    async def find_descendants(self, roots: list[Query]) -> list[Query]:
        children: dict[str, list[Query]] = {}
        for query in self._queries.values():
            if query.parent_id:
                add_one_to_multimap(children, query.parent_id, query)

        seen = {root.id for root in roots}
        pending = [root.id for root in roots]
        descendants: list[Query] = []

        while pending:
            parent_id = pending.pop()
            for child in children.get(parent_id, []):
                if child.id in seen:
                    logger.warning(f"[MemoryStore] Query {child.id} reached twice; cycle in storage")
                    continue
                seen.add(child.id)
                descendants.append(child.model_copy(deep=True))
                pending.append(child.id)

        return descendants
