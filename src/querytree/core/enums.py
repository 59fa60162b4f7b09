"""
QueryTree Core Enumerations

Vocabulary shared by the questionnaire metadata, the criteria nodes and the
tree indexes.
"""

from enum import Enum


class SearchCategoryType(str, Enum):
    """Searchable domain of a criteria term."""

    DEMOGRAPHIC = "demographic"
    APPOINTMENT = "appointment"
    MEASUREMENT = "measurement"
    PROCEDURE = "procedure"
    MEDICATION = "medication"
    DIAGNOSIS = "diagnosis"
    LABORATORY = "laboratory"
    REPORT = "report"


class QuestionType(str, Enum):
    """How a question selects its answers."""

    SINGLE_ANSWER = "single_answer"
    MULTIPLE_CHOICE_SINGLE_ANSWER = "multiple_choice_single_answer"
    REPEATED = "repeated"


class QueryMatchType(str, Enum):
    """Boolean combinator applied to the children of a criteria node.

    - ANY: at least one child matches (OR)
    - ALL: every child matches (AND)
    - NONE: no child matches (NOT ANY)
    - NONE_ALL: not every child matches (NOT ALL)
    """

    ANY = "any"
    ALL = "all"
    NONE = "none"
    NONE_ALL = "none_all"


class SortDirection(str, Enum):
    """Order in which matched results are presented."""

    ASC = "asc"
    DESC = "desc"


class NodeKind(str, Enum):
    """Classification of a criteria node.

    A node with a category is a TERM (an evaluable filter); a node without
    one is a GROUP (a pure combinator over its children).
    """

    TERM = "term"
    GROUP = "group"


class IntegrityIssue(str, Enum):
    """Kinds of metadata/criteria skew skipped while combining."""

    ORPHAN_NODE = "orphan_node"
    UNRESOLVED_ROOT = "unresolved_root"
    REVISITED_NODE = "revisited_node"
