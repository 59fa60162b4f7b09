"""
QueryTree Custom Exceptions

This module defines all custom exceptions used throughout QueryTree.
Exceptions are organized by layer/responsibility.
"""

from typing import Any


class QueryTreeError(Exception):
    """Base exception for all QueryTree errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigurationError(QueryTreeError):
    """Error in system configuration."""

    pass


# =============================================================================
# FETCH ERRORS
# =============================================================================


class FetchError(QueryTreeError):
    """An upstream collaborator failed; the combination is aborted."""

    def __init__(self, message: str, project_id: str, source: str):
        super().__init__(message, {"project_id": project_id, "source": source})
        self.project_id = project_id


class MetadataLoadError(FetchError):
    """Loading sections, questions and answers failed."""

    def __init__(self, project_id: str, reason: str):
        super().__init__(
            f"Failed to load metadata for project {project_id}: {reason}",
            project_id=project_id,
            source="metadata",
        )


class CriteriaFetchError(FetchError):
    """Fetching the descendants of the root queries failed."""

    def __init__(self, project_id: str, root_count: int, reason: str):
        super().__init__(
            f"Failed to fetch descendants of {root_count} root queries "
            f"for project {project_id}: {reason}",
            project_id=project_id,
            source="criteria",
        )
        self.details["root_count"] = root_count


# =============================================================================
# DATA INTEGRITY ERRORS
# =============================================================================


class DataIntegrityError(QueryTreeError):
    """Criteria storage and questionnaire metadata disagree (strict mode only)."""

    def __init__(self, project_id: str, issues: dict[str, list[str]]):
        summary = ", ".join(f"{kind}={len(ids)}" for kind, ids in issues.items() if ids)
        super().__init__(
            f"Data integrity issues in project {project_id}: {summary}",
            {"project_id": project_id, "issues": issues},
        )


# =============================================================================
# STORAGE ERRORS
# =============================================================================


class StorageError(QueryTreeError):
    """Base error for storage operations."""

    pass


class ProjectNotFoundError(StorageError):
    """Requested project not found."""

    def __init__(self, project_id: str):
        super().__init__(f"Project not found: {project_id}", {"project_id": project_id})
