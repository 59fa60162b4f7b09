"""
Query Tree Container

Classification of an already built query tree, shared between the query
optimizers and translators. Every node is classified once, at construction:

- term: a query with a category, e.g. `medication.name = X`
- group: a query without a category, combining its children (AND/OR/NOT)
- parent term: an enabled term directly below a group (or the root), i.e. a
  top-level criterion rather than one nested inside another term
- nested term: a term directly below another term; the enclosing term is
  indexed by the nested term's id
"""

from __future__ import annotations

from querytree.core.enums import NodeKind
from querytree.core.schemas import Query


class QueryTreeContainer:
    """
    Read-only classification of a query tree.

    Usage:
        container = QueryTreeContainer(combined.tree)
        for term in container.get_parent_terms():
            enclosing = container.get_parent_term(term.id)
    """

    def __init__(self, root_node: Query | None = None) -> None:
        self._groups: list[Query] = []
        self._terms: list[Query] = []
        self._parent_terms: list[Query] = []
        self._kinds: dict[str, NodeKind] = {}
        self._terms_by_id: dict[str, Query] = {}
        self._groups_by_id: dict[str, Query] = {}
        self._parent_term_by_nested_id: dict[str, Query] = {}

        if root_node is not None:
            self._index_tree(root_node, None)

    def __len__(self) -> int:
        return len(self._terms) + len(self._groups)

    def get_all_terms(self) -> list[Query]:
        """Returns all terms, in pre-order."""
        return list(self._terms)

    def get_parent_terms(self) -> list[Query]:
        """Returns all enabled terms that are not nested in another term."""
        return list(self._parent_terms)

    def get_groups(self) -> list[Query]:
        return list(self._groups)

    def get_nested_term_ids(self) -> list[str]:
        """Ids of terms whose direct parent is a term."""
        return list(self._parent_term_by_nested_id)

    def get_term(self, term_id: str) -> Query | None:
        """Returns the term with the given identifier."""
        return self._terms_by_id.get(term_id)

    def get_group(self, group_id: str) -> Query | None:
        """Returns the group with the given identifier."""
        return self._groups_by_id.get(group_id)

    def get_parent_term(self, term_id: str) -> Query | None:
        """Returns the term enclosing the nested term with the given identifier."""
        return self._parent_term_by_nested_id.get(term_id)

    def kind_of(self, node_id: str) -> NodeKind | None:
        """Classification of the node with the given identifier."""
        return self._kinds.get(node_id)

    def _index_tree(self, node: Query, parent_node: Query | None) -> None:
        """Adds all terms and groups in the given (sub)tree to the indexes."""
        if node.id:
            kind = node.kind
            self._kinds.setdefault(node.id, kind)

            if kind is NodeKind.TERM:
                self._terms.append(node)
                self._terms_by_id.setdefault(node.id, node)

                if parent_node is not None and parent_node.id and parent_node.is_term:
                    self._parent_term_by_nested_id.setdefault(node.id, parent_node)
                elif not node.disabled:
                    self._parent_terms.append(node)
            else:
                self._groups.append(node)
                self._groups_by_id.setdefault(node.id, node)

        for child in node.groups:
            self._index_tree(child, node)
