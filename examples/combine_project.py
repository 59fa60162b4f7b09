#!/usr/bin/env python3
"""
Example: Combine a project's criteria

Seeds a temporary SQLite store with one questionnaire, combines every
answer's criteria into a single tree and prints the derived indexes.

Requirements:
    pip install -e ".[dev]"

Usage:
    PYTHONPATH=src python examples/combine_project.py
"""

import asyncio
import logging
import sys
import tempfile
from pathlib import Path

# Ensure src is in path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from querytree.combiner import combine_project_queries  # noqa: E402
from querytree.config import get_settings  # noqa: E402
from querytree.core import (  # noqa: E402
    Answer,
    Query,
    QueryMatchType,
    Question,
    QuestionType,
    SearchCategoryType,
    Section,
    SortDirection,
)
from querytree.indexing import QueryTreeContainer  # noqa: E402
from querytree.observability import get_querytree_metrics  # noqa: E402
from querytree.storage import SqliteCriteriaStore  # noqa: E402


def seed(store: SqliteCriteriaStore, project_id: str) -> None:
    """Store two questions: a statin prescription and an LDL target."""
    store.create_project(project_id)
    store.add_section(project_id, Section(id="lipids", name="Lipid management"))

    statin = Question(
        id="statin",
        section_id="lipids",
        question_type=QuestionType.SINGLE_ANSWER,
        answers=[
            Answer(
                id="statin-yes",
                label="Statin prescribed",
                query=Query(
                    id="statin-root",
                    groups=[
                        Query(
                            id="statin-medication",
                            category=SearchCategoryType.MEDICATION,
                            filters=[{"field": "atc", "op": "starts_with", "value": "C10AA"}],
                            groups=[Query(id="statin-start", collect=True)],
                        )
                    ],
                ),
            )
        ],
    )

    ldl = Question(
        id="ldl",
        section_id="lipids",
        question_type=QuestionType.MULTIPLE_CHOICE_SINGLE_ANSWER,
        sort_direction=SortDirection.ASC,
        answers=[
            Answer(
                id="ldl-on-target",
                label="LDL below 1.8 mmol/l",
                query=Query(
                    id="ldl-root",
                    match=QueryMatchType.ANY,
                    groups=[
                        Query(
                            id="ldl-measurement",
                            category=SearchCategoryType.MEASUREMENT,
                            filters=[
                                {"field": "name", "op": "=", "value": "LDL"},
                                {"field": "value", "op": "<", "value": 1.81},
                                {"field": "unit", "op": "=", "value": "mmol/l"},
                            ],
                        )
                    ],
                ),
            ),
            Answer(
                id="ldl-not-measured",
                hidden=True,
                query=Query(
                    id="ldl-missing-root",
                    match=QueryMatchType.NONE,
                    groups=[
                        Query(id="ldl-any-measurement", category=SearchCategoryType.MEASUREMENT)
                    ],
                ),
            ),
        ],
    )

    store.add_question(project_id, statin, position=0)
    store.add_question(project_id, ldl, position=1)


def print_tree(node: Query, depth: int = 0) -> None:
    label = node.category.value if node.category else node.match.value
    direction = node.sort_direction.value if node.sort_direction else "-"
    print(f"    {'  ' * depth}{node.id} [{label}, sort={direction}]")
    for child in node.groups:
        print_tree(child, depth + 1)


async def main() -> None:
    settings = get_settings()
    logging.basicConfig(level=settings.logging.log_level)

    with tempfile.TemporaryDirectory() as tmpdir:
        store = SqliteCriteriaStore(db_path=Path(tmpdir) / "criteria.db")
        seed(store, "demo")

        combined = await combine_project_queries("demo", store, store)

    if combined.is_empty:
        print("No criteria to combine.")
        return

    print("Combined tree:")
    print_tree(combined.tree)
    print()

    print("Terms per answer:")
    for answer_id, terms in combined.answer_to_terms.items():
        print(f"    {answer_id}: {', '.join(t.id for t in terms)}")
    print(f"Collected children: {combined.collected_children}")
    print(f"Integrity issues: {combined.integrity.as_dict()}")
    print()

    container = QueryTreeContainer(combined.tree)
    print(f"Groups:       {[g.id for g in container.get_groups()]}")
    print(f"Parent terms: {[t.id for t in container.get_parent_terms()]}")
    for term_id in container.get_nested_term_ids():
        print(f"Nested term:  {term_id} inside {container.get_parent_term(term_id).id}")

    metrics = get_querytree_metrics()
    print(f"Combinations: {metrics.combinations.values()}")


if __name__ == "__main__":
    asyncio.run(main())
