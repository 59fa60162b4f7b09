"""
QueryTree Test Configuration

Shared fixtures and test utilities.
"""

import os
import tempfile
from pathlib import Path
from typing import Generator

import pytest


# Set test environment before any imports
os.environ.setdefault("LOG_LEVEL", "DEBUG")

# Use temp directories for storage during tests
_test_temp_dir = Path(tempfile.gettempdir()) / "querytree_test"
_test_temp_dir.mkdir(parents=True, exist_ok=True)
os.environ.setdefault("QUERYTREE_DB_PATH", str(_test_temp_dir / "criteria_test.db"))


from querytree.core.enums import (  # noqa: E402
    QueryMatchType,
    QuestionType,
    SearchCategoryType,
    SortDirection,
)
from querytree.core.schemas import Answer, Query, Question, Section  # noqa: E402
from querytree.storage.memory import InMemoryCriteriaStore  # noqa: E402


@pytest.fixture(autouse=True)
def reset_settings() -> Generator[None, None, None]:
    """Reset settings before each test."""
    from querytree.config import reset_settings

    reset_settings()
    yield
    reset_settings()


@pytest.fixture(autouse=True)
def reset_metrics() -> Generator[None, None, None]:
    """Reset the global metrics registry before each test."""
    from querytree.observability.metrics import reset_metrics

    reset_metrics()
    yield
    reset_metrics()


@pytest.fixture
def medication_question() -> Question:
    """
    Single answer question whose answer query is

        ALL(medication.name = statin [collected child], NOT(report.text contains 'allergy'))
    """
    root = Query(
        id="q-med-root",
        match=QueryMatchType.ALL,
        sort_direction=SortDirection.ASC,
        groups=[
            Query(
                id="q-med-term",
                category=SearchCategoryType.MEDICATION,
                filters=[{"field": "name", "op": "=", "value": "statin"}],
                groups=[
                    Query(
                        id="q-med-start",
                        category=SearchCategoryType.MEDICATION,
                        collect=True,
                        filters=[{"field": "start_date", "op": ">", "value": 2018}],
                    ),
                ],
            ),
            Query(
                id="q-med-not",
                match=QueryMatchType.NONE,
                groups=[
                    Query(
                        id="q-med-report",
                        category=SearchCategoryType.REPORT,
                        filters=[{"field": "text", "op": "contains", "value": "allergy"}],
                    ),
                ],
            ),
        ],
    )
    return Question(
        id="question-med",
        question_type=QuestionType.SINGLE_ANSWER,
        sort_direction=SortDirection.DESC,
        section_id="section-1",
        answers=[Answer(id="answer-med", label="On statins", query=root)],
    )


@pytest.fixture
def ldl_question() -> Question:
    """Multiple choice question with a visible and a hidden 'nothing found' answer."""
    visible = Query(
        id="q-ldl-root",
        match=QueryMatchType.ANY,
        groups=[
            Query(
                id="q-ldl-term",
                category=SearchCategoryType.MEASUREMENT,
                filters=[
                    {"field": "name", "op": "=", "value": "LDL"},
                    {"field": "value", "op": "<", "value": 1.81},
                    {"field": "unit", "op": "=", "value": "mmol/l"},
                ],
            ),
        ],
    )
    hidden = Query(
        id="q-ldl-hidden-root",
        match=QueryMatchType.NONE,
        groups=[Query(id="q-ldl-hidden-term", category=SearchCategoryType.MEASUREMENT)],
    )
    return Question(
        id="question-ldl",
        question_type=QuestionType.MULTIPLE_CHOICE_SINGLE_ANSWER,
        sort_direction=SortDirection.ASC,
        section_id="section-1",
        answers=[
            Answer(id="answer-ldl", label="LDL below target", query=visible),
            Answer(id="answer-ldl-none", label="No LDL measured", hidden=True, query=hidden),
        ],
    )


@pytest.fixture
def memory_store(medication_question: Question, ldl_question: Question) -> InMemoryCriteriaStore:
    """In-memory store holding project-1 with both sample questions."""
    store = InMemoryCriteriaStore()
    store.add_section("project-1", Section(id="section-1", name="Lipids"))
    store.add_question("project-1", medication_question)
    store.add_question("project-1", ldl_question)
    return store
