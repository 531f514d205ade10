"""Application state: history, active plan and language, with persistence hooks."""

import logging
import threading
from collections.abc import AsyncIterator, Iterator
from contextlib import contextmanager

from .errors import GenerationInProgressError, StrataError
from .models import Language, PlanResponse
from .plan_tree import DEFAULT_MAX_HOPS, PlanTree
from .planning import PlanningServiceProtocol, PlanUpdate
from .storage import HistoryRepository

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = (
    "Something went wrong while generating your plan. Please try again."
)


class AppState:
    """Single owner of the mutable UI state.

    History and language are loaded from the repository by :meth:`load` and
    written back in full whenever they change. Only one generation may run at
    a time.
    """

    def __init__(
        self,
        repository: HistoryRepository,
        planner: PlanningServiceProtocol,
        max_hops: int = DEFAULT_MAX_HOPS,
    ):
        self.repository = repository
        self.planner = planner
        self.history = PlanTree(max_hops=max_hops)
        self.language = repository.default_language
        self.active_plan: PlanResponse | None = None
        self.error: str | None = None
        self.decomposing_task: str | None = None
        self._generating = False
        self._completed = False
        self._lock = threading.Lock()

    @property
    def is_generating(self) -> bool:
        return self._generating

    # -- persistence --------------------------------------------------------

    def load(self) -> "AppState":
        self.history = PlanTree(
            self.repository.load_history(), max_hops=self.history.max_hops
        )
        self.language = self.repository.load_language()
        logger.info(
            "Loaded %d plans from history (language=%s)",
            len(self.history),
            self.language.value,
        )
        return self

    def _save_history(self):
        self.repository.save_history(self.history.plans)

    def set_language(self, language: Language | str) -> None:
        self.language = Language(language)
        self.repository.save_language(self.language)

    # -- navigation ---------------------------------------------------------

    def select(self, plan_id: str) -> PlanResponse | None:
        plan = self.history.get(plan_id)
        if plan is not None:
            self.active_plan = plan
        return plan

    def reset(self) -> None:
        """Clear the active plan (the "new plan" screen)."""
        self.active_plan = None

    def path(self) -> list[PlanResponse]:
        if self.active_plan is None:
            return []
        return self.history.ancestry_path(self.active_plan)

    def children(self) -> list[PlanResponse]:
        if self.active_plan is None:
            return []
        return self.history.children(self.active_plan)

    def dismiss_error(self) -> None:
        self.error = None

    # -- history mutation ---------------------------------------------------

    def delete(self, created_at: int) -> bool:
        removed = self.history.delete(created_at)
        if removed:
            self._save_history()
        if self.active_plan is not None and self.active_plan.created_at == created_at:
            self.active_plan = None
        return removed

    def clear_history(self) -> None:
        self.history.clear()
        self._save_history()
        self.active_plan = None

    # -- generation ---------------------------------------------------------

    @contextmanager
    def _generation(self, decomposing_task: str | None = None):
        with self._lock:
            if self._generating:
                raise GenerationInProgressError("A plan is already being generated")
            self._generating = True
        previous = self.active_plan
        self.error = None
        self.decomposing_task = decomposing_task
        self._completed = False
        try:
            yield
        except StrataError as e:
            logger.error(f"Plan generation failed: {e}")
            self.error = GENERIC_ERROR_MESSAGE
            raise
        finally:
            # Partial snapshots never outlive an unfinished generation.
            if not self._completed:
                if self.error is None:
                    logger.warning("Plan generation stopped before completion")
                self.active_plan = previous
            self._generating = False
            self.decomposing_task = None

    def _apply(self, update: PlanUpdate) -> PlanUpdate:
        self.active_plan = update.plan
        if update.is_final:
            self.history.upsert(update.plan)
            self._save_history()
            self._completed = True
        return update

    async def generate(
        self,
        goal: str,
        parent_id: str | None = None,
        is_sub_task: bool = False,
        decomposing_task: str | None = None,
    ) -> AsyncIterator[PlanUpdate]:
        """Run a generation, yielding every snapshot after applying it."""
        with self._generation(decomposing_task):
            async for update in self.planner.stream_plan(
                goal, self.language, is_sub_task=is_sub_task, parent_id=parent_id
            ):
                yield self._apply(update)

    def generate_sync(
        self,
        goal: str,
        parent_id: str | None = None,
        is_sub_task: bool = False,
        decomposing_task: str | None = None,
    ) -> Iterator[PlanUpdate]:
        """Synchronous twin of :meth:`generate`."""
        with self._generation(decomposing_task):
            for update in self.planner.iter_plan(
                goal, self.language, is_sub_task=is_sub_task, parent_id=parent_id
            ):
                yield self._apply(update)

    def existing_breakdown(self, step_title: str) -> PlanResponse | None:
        """Make an already generated decomposition of ``step_title`` active."""
        if self.active_plan is None:
            raise ValueError("No active plan to break down")
        existing = self.history.find_breakdown(self.active_plan.id, step_title)
        if existing is not None:
            self.active_plan = existing
        return existing

    async def breakdown(self, step_title: str) -> AsyncIterator[PlanUpdate]:
        """Decompose a step of the active plan into an hourly sub-plan.

        Reuses a stored decomposition when one exists; in that case a single
        final update carrying it is yielded.
        """
        existing = self.existing_breakdown(step_title)
        if existing is not None:
            yield PlanUpdate(existing, is_final=True)
            return
        async for update in self.generate(
            step_title,
            parent_id=self.active_plan.id,
            is_sub_task=True,
            decomposing_task=step_title,
        ):
            yield update

    def breakdown_sync(self, step_title: str) -> Iterator[PlanUpdate]:
        """Synchronous twin of :meth:`breakdown`."""
        existing = self.existing_breakdown(step_title)
        if existing is not None:
            yield PlanUpdate(existing, is_final=True)
            return
        yield from self.generate_sync(
            step_title,
            parent_id=self.active_plan.id,
            is_sub_task=True,
            decomposing_task=step_title,
        )
