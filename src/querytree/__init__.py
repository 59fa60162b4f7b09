"""
QueryTree

Combines the criteria fragments of questionnaire answers into a single
query tree and indexes it for translation into storage and search queries.
"""

__version__ = "0.1.0"

from querytree.config import Settings, get_settings

__all__ = ["Settings", "get_settings", "__version__"]
