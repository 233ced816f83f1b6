"""
Migration planner: dependency-ordered category sequence for a selection.
"""

import heapq
from typing import Iterable, List, Optional

from .categories import CATALOG, CATALOG_INDEX, DEPENDENCIES, MigrationCategory
from .domain import MigrationOptions
from .errors import PlanningError


def plan_categories(
    selected: Iterable,
    options: Optional[MigrationOptions] = None,
) -> List[MigrationCategory]:
    """
    Order the selected categories so that every category runs after the
    selected categories it depends on. Ties keep catalog order.

    Unselected dependencies are not pulled in; they only constrain order.
    Options are accepted for interface symmetry and do not change ordering.

    Raises:
        PlanningError: empty selection or a name outside the catalog.
    """
    chosen = set()
    for value in selected:
        try:
            chosen.add(MigrationCategory(value))
        except ValueError as e:
            raise PlanningError(f"Unknown migration category: {value}") from e

    if not chosen:
        raise PlanningError("Select at least one category to migrate")

    blockers = {
        category: {dep for dep in DEPENDENCIES.get(category, ()) if dep in chosen}
        for category in chosen
    }

    ready = [CATALOG_INDEX[c] for c, deps in blockers.items() if not deps]
    heapq.heapify(ready)
    ordered: List[MigrationCategory] = []

    while ready:
        category = CATALOG[heapq.heappop(ready)]
        ordered.append(category)
        for dependent, deps in blockers.items():
            if category in deps:
                deps.discard(category)
                if not deps:
                    heapq.heappush(ready, CATALOG_INDEX[dependent])

    # The dependency table is acyclic, so every chosen category is emitted
    return ordered
