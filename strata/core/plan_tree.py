"""Parent/child bookkeeping over the stored plan history."""

import logging
from collections.abc import Iterable

from .models import PlanResponse

logger = logging.getLogger(__name__)

DEFAULT_MAX_HOPS = 20


class PlanTree:
    """Ordered collection of completed plans, newest insert first.

    Plans link to their parent through ``parent_id``. Links may dangle (the
    parent was deleted) or, in corrupted data, form cycles; walks over them
    are bounded instead of failing.
    """

    def __init__(
        self,
        plans: Iterable[PlanResponse] = (),
        max_hops: int = DEFAULT_MAX_HOPS,
    ):
        self._plans: list[PlanResponse] = list(plans)
        self.max_hops = max_hops

    def __len__(self) -> int:
        return len(self._plans)

    def __iter__(self):
        return iter(self._plans)

    def __contains__(self, plan_id: str) -> bool:
        return self.get(plan_id) is not None

    @property
    def plans(self) -> list[PlanResponse]:
        return list(self._plans)

    def get(self, plan_id: str) -> PlanResponse | None:
        for plan in self._plans:
            if plan.id == plan_id:
                return plan
        return None

    def get_by_created_at(self, created_at: int) -> PlanResponse | None:
        for plan in self._plans:
            if plan.created_at == created_at:
                return plan
        return None

    def ancestry_path(
        self, plan: PlanResponse, max_hops: int | None = None
    ) -> list[PlanResponse]:
        """Return ancestors root-first, ending with ``plan`` itself."""
        limit = self.max_hops if max_hops is None else max_hops
        path = [plan]
        current = plan
        hops = 0
        while current.parent_id and hops < limit:
            parent = self.get(current.parent_id)
            if parent is None:
                break
            path.insert(0, parent)
            current = parent
            hops += 1
        if hops >= limit and current.parent_id:
            logger.warning(
                "Ancestry walk for plan %s stopped after %d hops", plan.id, limit
            )
        return path

    def children(self, plan: PlanResponse) -> list[PlanResponse]:
        """Direct children of ``plan``, newest first."""
        return sorted(
            (p for p in self._plans if p.parent_id == plan.id and p.id != plan.id),
            key=lambda p: p.created_at,
            reverse=True,
        )

    def find_breakdown(self, parent_id: str, goal: str) -> PlanResponse | None:
        """An existing decomposition of ``goal`` under ``parent_id``, if any."""
        for plan in self._plans:
            if plan.parent_id == parent_id and plan.goal == goal:
                return plan
        return None

    def upsert(self, plan: PlanResponse) -> None:
        """Insert ``plan`` at the front, replacing any entry with the same id."""
        self._plans = [plan] + [p for p in self._plans if p.id != plan.id]

    def delete(self, created_at: int) -> bool:
        """Remove the plan stored under ``created_at``. Children are kept."""
        remaining = [p for p in self._plans if p.created_at != created_at]
        removed = len(remaining) != len(self._plans)
        self._plans = remaining
        return removed

    def clear(self) -> None:
        self._plans = []

    def archive(self) -> list[PlanResponse]:
        """All plans, newest first by creation time."""
        return sorted(self._plans, key=lambda p: p.created_at, reverse=True)
