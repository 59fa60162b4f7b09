"""
QueryTree Core Schemas

Pydantic models for the questionnaire metadata (sections, questions,
answers) and the criteria nodes (queries) attached to answers.

Key Design Principles:
1. A query is owned exactly once, by the `groups` list of its parent
2. Back-references (`parent_id`, `answer_id`, `question_id`) are ids, used for
   lookups only
3. Queries are mutable: combining a project hydrates `groups` and overwrites
   `sort_direction` in place
"""

from __future__ import annotations

from typing import Any, Iterator

from pydantic import BaseModel, ConfigDict, Field, model_validator

from querytree.core.enums import (
    NodeKind,
    QueryMatchType,
    QuestionType,
    SearchCategoryType,
    SortDirection,
)


# =============================================================================
# SECTION - Questionnaire grouping
# =============================================================================


class Section(BaseModel):
    """Pass-through grouping container for questions."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: str | None = None


# =============================================================================
# QUERY - Criteria tree node
# =============================================================================


class Query(BaseModel):
    """
    Node of a criteria tree.

    A query with a `category` is a term (e.g. `medication.name = X`, with the
    actual comparisons in `filters`); a query without one is a group that
    combines its children with `match`.

    Invariants:
    - every child in `groups` carries this node's id as `parent_id`
    - `disabled` halts query creation for the node and everything below it
    """

    id: str
    disabled: bool = False
    collect: bool = Field(
        default=False, description="Matches of this node are counted by the enclosing term"
    )
    parent_id: str | None = None
    answer_id: str | None = None
    groups: list[Query] = Field(default_factory=list)
    category: SearchCategoryType | None = None
    match: QueryMatchType = QueryMatchType.ALL
    sort_direction: SortDirection | None = None
    filters: list[dict[str, Any]] = Field(
        default_factory=list, description="Filter values, e.g. `start_date > 2018`"
    )

    @model_validator(mode="after")
    def link_children(self) -> "Query":
        """Point every nested child back at this node."""
        for child in self.groups:
            if child.parent_id is None:
                child.parent_id = self.id
            elif child.parent_id != self.id:
                raise ValueError(
                    f"Query {child.id} is nested in {self.id} but references parent {child.parent_id}"
                )
        return self

    @property
    def kind(self) -> NodeKind:
        """Term when the node has a category, group otherwise."""
        return NodeKind.TERM if self.category else NodeKind.GROUP

    @property
    def is_term(self) -> bool:
        return self.kind is NodeKind.TERM

    def iter_subtree(self) -> Iterator[Query]:
        """Yield this node and all attached descendants in pre-order."""
        yield self
        for child in self.groups:
            yield from child.iter_subtree()


# =============================================================================
# ANSWER / QUESTION - Questionnaire metadata
# =============================================================================


class Answer(BaseModel):
    """
    Answer option of a question.

    Hidden answers only exist to hold a custom "nothing found" label for
    multiple choice questions.
    """

    id: str = Field(..., min_length=1)
    hidden: bool = False
    question_id: str | None = None
    label: str | None = None
    query: Query | None = None

    @model_validator(mode="after")
    def link_query(self) -> "Answer":
        """Point the root query back at this answer."""
        if self.query is not None and self.query.answer_id is None:
            self.query.answer_id = self.id
        return self


class Question(BaseModel):
    """
    Question of a project questionnaire.

    `sort_direction` is authoritative: it is propagated into every criteria
    node reachable from the question's answers.
    """

    id: str = Field(..., min_length=1)
    disabled: bool = False
    question_type: QuestionType = QuestionType.SINGLE_ANSWER
    sort_direction: SortDirection = SortDirection.DESC
    section_id: str | None = None
    answers: list[Answer] = Field(default_factory=list)

    @model_validator(mode="after")
    def link_answers(self) -> "Question":
        """Point every answer back at this question."""
        for answer in self.answers:
            if answer.question_id is None:
                answer.question_id = self.id
            elif answer.question_id != self.id:
                raise ValueError(
                    f"Answer {answer.id} is listed under {self.id} but references question {answer.question_id}"
                )
        return self

    def allows_hidden_answers(self) -> bool:
        """Only multiple choice questions carry hidden 'nothing found' answers."""
        return self.question_type is QuestionType.MULTIPLE_CHOICE_SINGLE_ANSWER
