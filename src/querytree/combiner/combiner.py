"""
Tree Combiner

Creates a single query tree by combining the root queries of every answer of
a project under one synthetic "match any" node, and builds the indexes the
SQL and search-engine translators work from:

- answer id -> queries registered for the answer
- query id -> owning answer
- query id -> fetched query
- category query id -> "has a collected child"
- question id -> root queries (input of per-question result hashing)

The only suspension points are the metadata load and the single batched
descendant fetch; everything after that is a synchronous walk.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable

from querytree.combiner.walker import ParentIndex, TreeIndexes, walk_query
from querytree.config import Settings, get_settings
from querytree.core.enums import IntegrityIssue, QueryMatchType
from querytree.core.exceptions import (
    ConfigurationError,
    CriteriaFetchError,
    DataIntegrityError,
    FetchError,
    MetadataLoadError,
)
from querytree.core.schemas import Answer, Query, Question, Section
from querytree.observability.metrics import QueryTreeMetrics
from querytree.storage.base import CriteriaRepository, MetadataLoader
from querytree.utils.multimap import add_one_to_multimap

logger = logging.getLogger(__name__)


@dataclass
class IntegrityReport:
    """Ids skipped because criteria storage and metadata disagree."""

    orphan_nodes: list[str] = field(default_factory=list)
    unresolved_roots: list[str] = field(default_factory=list)
    revisited_nodes: list[str] = field(default_factory=list)

    @property
    def has_issues(self) -> bool:
        return bool(self.orphan_nodes or self.unresolved_roots or self.revisited_nodes)

    def as_dict(self) -> dict[str, list[str]]:
        return {
            IntegrityIssue.ORPHAN_NODE.value: list(self.orphan_nodes),
            IntegrityIssue.UNRESOLVED_ROOT.value: list(self.unresolved_roots),
            IntegrityIssue.REVISITED_NODE.value: list(self.revisited_nodes),
        }


@dataclass
class CombinedQuery:
    """
    Result of combining the queries of a project.

    Attributes:
        tree: Synthetic ANY root over every resolvable answer query, or None
            when the project has no searchable criteria.
        answer_to_terms: Answer id -> queries registered for that answer.
        term_to_answer: Query id -> owning answer.
        answer_map: Answer id -> answer, as loaded.
        terms: Flat list of every fetched descendant.
        term_map: Query id -> fetched descendant (orphans excluded).
        collected_children: Category query id -> whether a direct child is collected.
        section_map: Section id -> section, as loaded.
        question_map: Question id -> question, as loaded.
        question_roots: Question id -> root queries attached to the tree.
        integrity: Skipped ids, by kind.
    """

    tree: Query | None
    answer_to_terms: dict[str, list[Query]] = field(default_factory=dict)
    term_to_answer: dict[str, Answer] = field(default_factory=dict)
    answer_map: dict[str, Answer] = field(default_factory=dict)
    terms: list[Query] = field(default_factory=list)
    term_map: dict[str, Query] = field(default_factory=dict)
    collected_children: dict[str, bool] = field(default_factory=dict)
    section_map: dict[str, Section] = field(default_factory=dict)
    question_map: dict[str, Question] = field(default_factory=dict)
    question_roots: dict[str, list[Query]] = field(default_factory=dict)
    integrity: IntegrityReport = field(default_factory=IntegrityReport)

    @property
    def is_empty(self) -> bool:
        return self.tree is None

    def answer_terms(self, answer_id: str) -> list[Query]:
        """Queries registered for the given answer (empty if none)."""
        return list(self.answer_to_terms.get(answer_id, []))

    def answer_for_term(self, term_id: str) -> Answer | None:
        """Answer owning the given query."""
        return self.term_to_answer.get(term_id)

    def enabled_question_roots(self) -> dict[str, list[Query]]:
        """Question roots restricted to questions that are not disabled."""
        return {
            question_id: list(roots)
            for question_id, roots in self.question_roots.items()
            if question_id in self.question_map and not self.question_map[question_id].disabled
        }


def is_root_candidate(answer: Answer, question: Question | None) -> bool:
    """
    Whether the answer's query takes part in the combined tree.

    Hidden answers only hold the custom 'nothing found' label of multiple
    choice questions; for every other question type their query is left out.
    A hidden answer whose question is unknown stays a candidate and is
    reported as an unresolved root later on.
    """
    if answer.query is None:
        return False
    if answer.hidden and question is not None:
        return question.allows_hidden_answers()
    return True


def select_root_queries(
    answers: Iterable[Answer], questions: dict[str, Question]
) -> list[Query]:
    """Root queries of all participating answers, in answer order."""
    roots = []
    for answer in answers:
        question = questions.get(answer.question_id) if answer.question_id else None
        if is_root_candidate(answer, question):
            roots.append(answer.query)
    return roots


def build_query_tree(nodes: Iterable[Query]) -> tuple[ParentIndex, dict[str, Query], list[str]]:
    """
    Index fetched descendants by parent.

    Returns:
        (parent id -> children, query id -> query, ids of nodes without parent)
    """
    tree: ParentIndex = {}
    term_map: dict[str, Query] = {}
    orphans: list[str] = []

    for node in nodes:
        if not node.parent_id:
            orphans.append(node.id)
            continue
        term_map[node.id] = node
        add_one_to_multimap(tree, node.parent_id, node)

    return tree, term_map, orphans


async def combine_project_queries(
    project_id: str,
    query_repository: CriteriaRepository,
    metadata_loader: MetadataLoader,
    *,
    settings: Settings | None = None,
    metrics: QueryTreeMetrics | None = None,
) -> CombinedQuery:
    """
    Combine the root queries of every answer of a project into one tree.

    Sets the sort direction of every walked query to the one of its
    question and builds the answer/term indexes on the way.

    Args:
        project_id: Project whose questionnaire is combined.
        query_repository: Resolves the descendants of the root queries.
        metadata_loader: Loads sections, questions and answers.
        settings: Overrides the global settings.
        metrics: Overrides the global metrics.

    Returns:
        CombinedQuery; `tree` is None when no answer has a participating query.

    Raises:
        MetadataLoadError: The metadata loader failed.
        CriteriaFetchError: The descendant fetch failed.
        DataIntegrityError: Strict mode is on and ids had to be skipped.
        ConfigurationError: A stored query uses the reserved combined root id.
    """
    settings = settings or get_settings()
    metrics = metrics or QueryTreeMetrics()

    try:
        with metrics.fetch_latency.time(labels={"source": "metadata"}):
            sections, questions, answers = await metadata_loader.load_project_metadata(project_id)
    except FetchError:
        metrics.combinations.inc(labels={"outcome": "failed"})
        raise
    except Exception as e:
        metrics.combinations.inc(labels={"outcome": "failed"})
        logger.error(f"[Combiner] Metadata load failed for project {project_id}: {e}")
        raise MetadataLoadError(project_id, str(e)) from e

    root_queries = select_root_queries(answers.values(), questions)

    if not root_queries:
        logger.debug(f"[Combiner] Project {project_id} has no searchable answers")
        metrics.combinations.inc(labels={"outcome": "empty"})
        return CombinedQuery(
            tree=None,
            answer_map=answers,
            section_map=sections,
            question_map=questions,
        )

    # We want to hydrate all answer queries of the project in one call
    try:
        with metrics.fetch_latency.time(labels={"source": "criteria"}):
            terms = await query_repository.find_descendants(root_queries)
    except FetchError:
        metrics.combinations.inc(labels={"outcome": "failed"})
        raise
    except Exception as e:
        metrics.combinations.inc(labels={"outcome": "failed"})
        logger.error(f"[Combiner] Descendant fetch failed for project {project_id}: {e}")
        raise CriteriaFetchError(project_id, len(root_queries), str(e)) from e

    tree, term_map, orphans = build_query_tree(terms)
    integrity = IntegrityReport(orphan_nodes=orphans)
    if orphans:
        logger.warning(
            f"[Combiner] Dropped {len(orphans)} descendants without parent in project {project_id}"
        )

    # The synthetic root id is reserved; a stored query carrying it would be
    # shadowed by the synthetic root in id lookups
    combined_root_id = settings.combiner.combined_root_id
    if combined_root_id in term_map or any(r.id == combined_root_id for r in root_queries):
        metrics.combinations.inc(labels={"outcome": "failed"})
        raise ConfigurationError(
            f"Combined root id '{combined_root_id}' is used by a stored query of project "
            f"{project_id}; set QUERYTREE_COMBINED_ROOT_ID to an unused id",
            {"project_id": project_id, "combined_root_id": combined_root_id},
        )

    combined_query = Query(id=combined_root_id, match=QueryMatchType.ANY)
    indexes = TreeIndexes()
    question_roots: dict[str, list[Query]] = {}

    # The root query is traversed differently than the rest of the tree
    # because it is linked to an answer
    for root_query in root_queries:
        answer = answers.get(root_query.answer_id) if root_query.answer_id else None
        question = questions.get(answer.question_id) if answer and answer.question_id else None

        if answer is None or question is None:
            logger.warning(
                f"[Combiner] Root query {root_query.id} has no resolvable answer/question; skipped"
            )
            integrity.unresolved_roots.append(root_query.id)
            continue

        combined_query.groups.append(root_query)
        root_query.sort_direction = question.sort_direction
        root_query.groups = tree.get(root_query.id, [])
        indexes.visited.add(root_query.id)

        for child in root_query.groups:
            walk_query(child, answer, question, tree, indexes)

        add_one_to_multimap(question_roots, question.id, root_query)

    integrity.revisited_nodes.extend(indexes.revisited)
    _record_integrity(integrity, metrics)

    if integrity.has_issues and settings.combiner.strict_integrity:
        metrics.combinations.inc(labels={"outcome": "failed"})
        raise DataIntegrityError(project_id, integrity.as_dict())

    metrics.combinations.inc(labels={"outcome": "combined"})
    logger.info(
        f"[Combiner] Project {project_id}: {len(combined_query.groups)} answer queries, "
        f"{len(indexes.term_to_answer)} registered terms"
    )

    return CombinedQuery(
        tree=combined_query,
        answer_to_terms=indexes.answer_to_terms,
        term_to_answer=indexes.term_to_answer,
        answer_map=answers,
        terms=terms,
        term_map=term_map,
        collected_children=indexes.collected_children,
        section_map=sections,
        question_map=questions,
        question_roots=question_roots,
        integrity=integrity,
    )


def _record_integrity(integrity: IntegrityReport, metrics: QueryTreeMetrics) -> None:
    for reason, ids in integrity.as_dict().items():
        if ids:
            metrics.integrity_skips.inc(len(ids), labels={"reason": reason})
