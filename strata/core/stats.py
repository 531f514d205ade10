"""Summary statistics shown next to a plan."""

import math
from collections import Counter
from dataclasses import asdict, dataclass

from .models import Difficulty, PlanResponse, TaskType


@dataclass
class TypeShare:
    type: TaskType
    count: int
    percentage: int


@dataclass
class PlanStats:
    total_steps: int
    difficulty: dict[Difficulty, int]
    types: list[TypeShare]

    def to_dict(self) -> dict:
        return {
            "totalSteps": self.total_steps,
            "difficulty": {d.value: n for d, n in self.difficulty.items()},
            "types": [
                {**asdict(share), "type": share.type.value} for share in self.types
            ],
        }


def _percent(count: int, total: int) -> int:
    # Halves round up, not to even: 1 of 8 is 13%.
    return math.floor(count / total * 100 + 0.5)


def compute_stats(plan: PlanResponse) -> PlanStats:
    """Count steps by difficulty and by type.

    Zero counts are omitted. Difficulties keep Easy/Medium/Hard order; types
    are sorted by count, largest first, with percentages of the total.
    """
    steps = list(plan.iter_steps())
    total = len(steps)
    difficulty_counts = Counter(step.difficulty for step in steps)
    type_counts = Counter(step.type for step in steps)

    difficulty = {d: difficulty_counts[d] for d in Difficulty if difficulty_counts[d]}
    types = [
        TypeShare(t, type_counts[t], _percent(type_counts[t], total))
        for t in TaskType
        if type_counts[t]
    ]
    types.sort(key=lambda share: share.count, reverse=True)
    return PlanStats(total_steps=total, difficulty=difficulty, types=types)
