"""
QueryTree Indexing

Term/group classification of built query trees.
"""

from querytree.indexing.container import QueryTreeContainer

__all__ = ["QueryTreeContainer"]
