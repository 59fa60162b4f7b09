"""
QueryTree Storage Layer

Collaborator contracts of the combiner and reference implementations.
"""

from querytree.storage.base import CriteriaRepository, MetadataLoader, ProjectMetadata
from querytree.storage.memory import InMemoryCriteriaStore
from querytree.storage.sqlite_store import SqliteCriteriaStore

__all__ = [
    "CriteriaRepository",
    "MetadataLoader",
    "ProjectMetadata",
    "InMemoryCriteriaStore",
    "SqliteCriteriaStore",
]
