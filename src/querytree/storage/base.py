"""
Storage Contracts

Protocols for the two upstream collaborators of the combiner: the criteria
repository (descendant lookup) and the questionnaire metadata loader.
"""

from dataclasses import dataclass, field
from typing import Iterator, Protocol, runtime_checkable

from querytree.core.schemas import Answer, Query, Question, Section


@dataclass
class ProjectMetadata:
    """Sections, questions and answers of one project, keyed by id."""

    sections: dict[str, Section] = field(default_factory=dict)
    questions: dict[str, Question] = field(default_factory=dict)
    answers: dict[str, Answer] = field(default_factory=dict)

    @classmethod
    def from_questions(
        cls, sections: list[Section], questions: list[Question]
    ) -> "ProjectMetadata":
        """Build the id maps; answers are taken from each question in order."""
        return cls(
            sections={s.id: s for s in sections},
            questions={q.id: q for q in questions},
            answers={a.id: a for q in questions for a in q.answers},
        )

    def __iter__(self) -> Iterator[dict]:
        """Allow `sections, questions, answers = metadata`."""
        return iter((self.sections, self.questions, self.answers))


@runtime_checkable
class CriteriaRepository(Protocol):
    """Resolves criteria nodes below a set of root queries."""

    async def find_descendants(self, roots: list[Query]) -> list[Query]:
        """
        Return every query that is (indirectly) below one of `roots`.

        The result is flat and unordered, excludes the roots themselves and
        carries `parent_id` on each node; `groups` is not populated.
        """
        ...


@runtime_checkable
class MetadataLoader(Protocol):
    """Loads the questionnaire metadata of a project."""

    async def load_project_metadata(self, project_id: str) -> ProjectMetadata:
        """Return all sections, questions and answers of `project_id`."""
        ...
