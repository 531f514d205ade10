"""Plan generation: streams a response and surfaces partial plans as it grows."""

import logging
import time
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable, Iterator
from dataclasses import dataclass
from typing import Protocol

from .decoding import decode_final, decode_partial, is_worth_surfacing
from .llm_providers import LLMProvider, LLMProviderFactory
from .models import Language, PlanResponse
from .prompts import build_prompt

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class PlanUpdate:
    """One snapshot of a plan being generated; the last one is final."""

    plan: PlanResponse
    is_final: bool = False


class PlanStreamAccumulator:
    """Accumulates streamed text for a single generation request.

    The plan id and creation timestamp are fixed at construction and carried
    by every snapshot, whatever the payload says.
    """

    def __init__(
        self,
        goal: str,
        parent_id: str | None = None,
        plan_id: str | None = None,
        created_at: int | None = None,
    ):
        self.goal = goal
        self.parent_id = parent_id
        self.plan_id = plan_id or str(uuid.uuid4())
        self.created_at = created_at if created_at is not None else now_ms()
        self._fragments: list[str] = []

    @property
    def text(self) -> str:
        return "".join(self._fragments)

    def feed(self, fragment: str) -> PlanResponse | None:
        """Add a fragment; return a snapshot when the buffer decodes usefully."""
        self._fragments.append(fragment)
        partial = decode_partial(self.text)
        if not is_worth_surfacing(partial):
            return None
        return partial.to_snapshot(
            plan_id=self.plan_id,
            created_at=self.created_at,
            fallback_goal=self.goal,
            parent_id=self.parent_id,
        )

    def finish(self) -> PlanResponse:
        """Strictly decode the complete response. Raises ``PlanDecodeError``."""
        plan = decode_final(
            self.text,
            plan_id=self.plan_id,
            created_at=self.created_at,
            parent_id=self.parent_id,
            fallback_goal=self.goal,
        )
        logger.info(
            "Plan %s complete: %d phases, %d steps",
            plan.id,
            len(plan.phases),
            sum(len(phase.steps) for phase in plan.phases),
        )
        return plan


class PlanningServiceProtocol(Protocol):
    """Protocol for plan generation implementations."""

    def stream_plan(
        self,
        goal: str,
        language: Language,
        is_sub_task: bool = False,
        parent_id: str | None = None,
    ) -> AsyncIterator[PlanUpdate]: ...

    def iter_plan(
        self,
        goal: str,
        language: Language,
        is_sub_task: bool = False,
        parent_id: str | None = None,
    ) -> Iterator[PlanUpdate]: ...


PartialCallback = Callable[[PlanResponse], Awaitable[None] | None]


class PlanningService:
    """Drives one generation request end-to-end against an LLM provider."""

    def __init__(self, provider: LLMProvider):
        self.llm_provider = provider

    @classmethod
    def create(
        cls,
        provider_type: str = "gemini",
        model: str = "gemini-2.0-flash",
        base_url: str = "http://localhost:11434",
        api_key: str | None = None,
    ) -> "PlanningService":
        provider_kwargs = {}
        if provider_type.lower() == "ollama":
            provider_kwargs["base_url"] = base_url
        elif provider_type.lower() == "gemini":
            provider_kwargs["api_key"] = api_key

        return cls(
            LLMProviderFactory.create_provider(
                provider_type=provider_type, model=model, **provider_kwargs
            )
        )

    def _start(self, goal, language, is_sub_task, parent_id):
        accumulator = PlanStreamAccumulator(goal, parent_id=parent_id)
        prompt = build_prompt(goal, language, is_sub_task=is_sub_task)
        logger.info(
            "Generating %s plan %s for goal %r",
            "tactical" if is_sub_task else "strategic",
            accumulator.plan_id,
            goal,
        )
        logger.debug("Full prompt sent to model:\n%s", prompt)
        return accumulator, prompt

    async def stream_plan(
        self,
        goal: str,
        language: Language,
        is_sub_task: bool = False,
        parent_id: str | None = None,
    ) -> AsyncIterator[PlanUpdate]:
        """Yield partial snapshots in arrival order, then the final plan."""
        accumulator, prompt = self._start(goal, language, is_sub_task, parent_id)
        async for fragment in self.llm_provider.stream_response(prompt):
            snapshot = accumulator.feed(fragment)
            if snapshot is not None:
                yield PlanUpdate(snapshot)
        yield PlanUpdate(accumulator.finish(), is_final=True)

    def iter_plan(
        self,
        goal: str,
        language: Language,
        is_sub_task: bool = False,
        parent_id: str | None = None,
    ) -> Iterator[PlanUpdate]:
        """Synchronous twin of :meth:`stream_plan`."""
        accumulator, prompt = self._start(goal, language, is_sub_task, parent_id)
        for fragment in self.llm_provider.stream_response_sync(prompt):
            snapshot = accumulator.feed(fragment)
            if snapshot is not None:
                yield PlanUpdate(snapshot)
        yield PlanUpdate(accumulator.finish(), is_final=True)

    async def generate_plan(
        self,
        goal: str,
        language: Language,
        is_sub_task: bool = False,
        parent_id: str | None = None,
        on_partial_update: PartialCallback | None = None,
    ) -> PlanResponse:
        """Run a full generation, reporting partial plans through a callback."""
        final_plan = None
        async for update in self.stream_plan(
            goal, language, is_sub_task=is_sub_task, parent_id=parent_id
        ):
            if update.is_final:
                final_plan = update.plan
            elif on_partial_update:
                result = on_partial_update(update.plan)
                if result is not None:
                    await result
        return final_plan

    def close(self):
        """Close any open connections."""
        self.llm_provider.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.close()
