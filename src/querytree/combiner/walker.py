"""
Tree Walker

Recursive descent over one answer's criteria subtree. Hydrates `groups` from
the parent index and propagates the question's sort direction to every node
attached to the tree. Enabled queries are also registered in the term/answer
indexes the query translators need; queries below a disabled one are not.
"""

import logging
from dataclasses import dataclass, field

from querytree.core.schemas import Answer, Query, Question
from querytree.utils.multimap import add_one_to_multimap

logger = logging.getLogger(__name__)


ParentIndex = dict[str, list[Query]]


@dataclass
class TreeIndexes:
    """
    Indexes built while walking the answer subtrees of one combination.

    Created per call and threaded through the walk; never shared between
    combinations.

    Attributes:
        term_to_answer: Query id -> owning answer.
        answer_to_terms: Answer id -> every query registered for it, in walk order.
        collected_children: Category query id -> whether a direct child has `collect`.
            Leaf category queries have no entry.
        visited: Query ids already walked.
        revisited: Query ids reached more than once (cycles or shared children).
    """

    term_to_answer: dict[str, Answer] = field(default_factory=dict)
    answer_to_terms: dict[str, list[Query]] = field(default_factory=dict)
    collected_children: dict[str, bool] = field(default_factory=dict)
    visited: set[str] = field(default_factory=set)
    revisited: list[str] = field(default_factory=list)


def walk_query(
    node: Query,
    answer: Answer,
    question: Question,
    tree: ParentIndex,
    indexes: TreeIndexes,
) -> None:
    """
    Walk `node` and its descendants; nothing below a disabled query is indexed.

    Args:
        node: Query to register.
        answer: Answer owning the subtree.
        question: Question owning the answer; its sort direction wins.
        tree: Parent id -> children index of the fetched descendants.
        indexes: Per-call indexes to fill.
    """
    children = _attach(node, answer, question, tree, indexes)
    if children is None:
        return

    indexes.term_to_answer[node.id] = answer
    add_one_to_multimap(indexes.answer_to_terms, answer.id, node)

    # Disabled queries halt the creation of nested groups; the subtree stays
    # in the tree but is not indexed
    if node.disabled:
        for child in children:
            _attach_subtree(child, answer, question, tree, indexes)
        return
    if not children:
        return

    for child in children:
        if child.disabled:
            _attach_subtree(child, answer, question, tree, indexes)
        else:
            walk_query(child, answer, question, tree, indexes)

    if node.category:
        indexes.collected_children[node.id] = any(child.collect for child in children)


def _attach_subtree(
    node: Query,
    answer: Answer,
    question: Question,
    tree: ParentIndex,
    indexes: TreeIndexes,
) -> None:
    """Hydrate and sort a subtree without registering any of its queries."""
    children = _attach(node, answer, question, tree, indexes)
    for child in children or []:
        _attach_subtree(child, answer, question, tree, indexes)


def _attach(
    node: Query,
    answer: Answer,
    question: Question,
    tree: ParentIndex,
    indexes: TreeIndexes,
) -> list[Query] | None:
    """
    Mark `node` visited, apply the question's sort direction and set its
    children from the parent index.

    Returns the children, or None when the node was already visited.
    """
    if node.id in indexes.visited:
        logger.warning(
            f"[Walker] Query {node.id} reached twice (answer {answer.id}); not descending again"
        )
        indexes.revisited.append(node.id)
        return None
    indexes.visited.add(node.id)

    node.sort_direction = question.sort_direction

    children = tree.get(node.id, [])
    node.groups = children
    return children
