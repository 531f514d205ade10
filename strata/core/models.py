from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Difficulty(str, Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


class TaskType(str, Enum):
    RESEARCH = "Research"
    ACTION = "Action"
    MILESTONE = "Milestone"
    PREPARATION = "Preparation"


class Language(str, Enum):
    EN = "en"
    ZH = "zh"


class _WireModel(BaseModel):
    """Base for plan types; camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


class PlanStep(_WireModel):
    id: str
    title: str
    description: str
    estimated_duration: str
    difficulty: Difficulty
    type: TaskType
    is_breakable: bool


class PlanPhase(_WireModel):
    id: str
    title: str
    description: str
    duration: str
    is_recurring: bool
    frequency: str | None = None
    steps: list[PlanStep] = Field(default_factory=list)


class PlanResponse(_WireModel):
    id: str
    parent_id: str | None = None
    goal: str
    summary: str
    motivational_quote: str
    phases: list[PlanPhase] = Field(default_factory=list)
    created_at: int

    def iter_steps(self):
        for phase in self.phases:
            yield from phase.steps

    def find_step(self, step_id: str) -> PlanStep | None:
        for step in self.iter_steps():
            if step.id == step_id:
                return step
        return None


# Streamed documents may be cut anywhere, so every field of the partial
# variants is optional and enum fields are kept as raw strings until the
# snapshot is built.


class PartialStep(_WireModel):
    id: str | None = None
    title: str | None = None
    description: str | None = None
    estimated_duration: str | None = None
    difficulty: str | None = None
    type: str | None = None
    is_breakable: bool | None = None

    def to_step(self, index: int) -> PlanStep:
        return PlanStep(
            id=self.id or f"step-{index + 1}",
            title=self.title or "",
            description=self.description or "",
            estimated_duration=self.estimated_duration or "",
            difficulty=_coerce(Difficulty, self.difficulty, Difficulty.MEDIUM),
            type=_coerce(TaskType, self.type, TaskType.ACTION),
            is_breakable=bool(self.is_breakable),
        )


class PartialPhase(_WireModel):
    id: str | None = None
    title: str | None = None
    description: str | None = None
    duration: str | None = None
    is_recurring: bool | None = None
    frequency: str | None = None
    steps: list[PartialStep] = Field(default_factory=list)

    def to_phase(self, index: int) -> PlanPhase:
        return PlanPhase(
            id=self.id or f"phase-{index + 1}",
            title=self.title or "",
            description=self.description or "",
            duration=self.duration or "",
            is_recurring=bool(self.is_recurring),
            frequency=self.frequency,
            steps=[step.to_step(i) for i, step in enumerate(self.steps)],
        )


class PartialPlan(_WireModel):
    goal: str | None = None
    summary: str | None = None
    motivational_quote: str | None = None
    phases: list[PartialPhase] = Field(default_factory=list)

    def to_plan(
        self,
        plan_id: str,
        created_at: int,
        fallback_goal: str,
        parent_id: str | None = None,
        summary: str = "",
        motivational_quote: str = "",
    ) -> PlanResponse:
        """Build a complete plan; absent fields take the given defaults."""
        return PlanResponse(
            id=plan_id,
            parent_id=parent_id,
            goal=self.goal or fallback_goal,
            summary=self.summary or summary,
            motivational_quote=self.motivational_quote or motivational_quote,
            phases=[phase.to_phase(i) for i, phase in enumerate(self.phases)],
            created_at=created_at,
        )

    def to_snapshot(
        self,
        plan_id: str,
        created_at: int,
        fallback_goal: str,
        parent_id: str | None = None,
    ) -> PlanResponse:
        """Build a displayable plan, filling gaps with placeholder values."""
        return self.to_plan(
            plan_id,
            created_at,
            fallback_goal,
            parent_id=parent_id,
            summary="Generating strategy...",
            motivational_quote="...",
        )


def _coerce(enum_cls, value, default):
    # Models sometimes answer "easy" or " Action"; match on the folded value.
    if isinstance(value, str):
        folded = value.strip().casefold()
        for member in enum_cls:
            if member.value.casefold() == folded:
                return member
    return default
