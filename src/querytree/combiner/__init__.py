"""
QueryTree Combiner

Combines answer queries into one tree and walks it to build the term/answer
indexes.
"""

from querytree.combiner.combiner import (
    CombinedQuery,
    IntegrityReport,
    build_query_tree,
    combine_project_queries,
    is_root_candidate,
    select_root_queries,
)
from querytree.combiner.walker import TreeIndexes, walk_query

__all__ = [
    "CombinedQuery",
    "IntegrityReport",
    "TreeIndexes",
    "build_query_tree",
    "combine_project_queries",
    "is_root_candidate",
    "select_root_queries",
    "walk_query",
]
