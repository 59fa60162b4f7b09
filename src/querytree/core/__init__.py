"""
QueryTree Core

Enumerations, exceptions and schemas shared by every layer.
"""

from querytree.core.enums import (
    IntegrityIssue,
    NodeKind,
    QueryMatchType,
    QuestionType,
    SearchCategoryType,
    SortDirection,
)
from querytree.core.exceptions import (
    ConfigurationError,
    CriteriaFetchError,
    DataIntegrityError,
    FetchError,
    MetadataLoadError,
    ProjectNotFoundError,
    QueryTreeError,
    StorageError,
)
from querytree.core.schemas import Answer, Query, Question, Section

__all__ = [
    # Enums
    "IntegrityIssue",
    "NodeKind",
    "QueryMatchType",
    "QuestionType",
    "SearchCategoryType",
    "SortDirection",
    # Exceptions
    "QueryTreeError",
    "ConfigurationError",
    "FetchError",
    "MetadataLoadError",
    "CriteriaFetchError",
    "DataIntegrityError",
    "StorageError",
    "ProjectNotFoundError",
    # Schemas
    "Section",
    "Query",
    "Answer",
    "Question",
]
