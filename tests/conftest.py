"""
Pytest configuration and fixtures for Strata tests.
"""

import json

import pytest

from strata.core.llm_providers import LLMProvider
from strata.core.models import Language, PlanResponse
from strata.core.planning import PlanningService
from strata.core.state import AppState
from strata.core.storage import HistoryRepository, MemoryStore


SAMPLE_DOCUMENT = {
    "goal": "Learn Piano",
    "summary": "A steady path from scales to songs.",
    "motivationalQuote": "Practice makes progress.",
    "phases": [
        {
            "id": "p1",
            "title": "Phase 1: Foundations",
            "description": "Posture, scales and reading.",
            "duration": "Weeks 1-4",
            "isRecurring": True,
            "frequency": "Daily",
            "steps": [
                {
                    "id": "s1",
                    "title": "Day 1: Posture and C major",
                    "description": "Sit, breathe, play the C major scale.",
                    "estimatedDuration": "1 Day",
                    "difficulty": "Easy",
                    "type": "Preparation",
                    "isBreakable": True,
                },
                {
                    "id": "s2",
                    "title": "Day 2: Reading \"treble\" clef",
                    "description": "Learn notes on the staff \\ ledger lines.",
                    "estimatedDuration": "1 Day",
                    "difficulty": "Medium",
                    "type": "Research",
                    "isBreakable": True,
                },
            ],
        },
        {
            "id": "p2",
            "title": "Phase 2: First pieces",
            "description": "Play simple songs hands together.",
            "duration": "Weeks 5-8",
            "isRecurring": False,
            "steps": [
                {
                    "id": "s3",
                    "title": "Week 5: Ode to Joy",
                    "description": "Right hand, then both hands.",
                    "estimatedDuration": "1 Week",
                    "difficulty": "Hard",
                    "type": "Milestone",
                    "isBreakable": True,
                }
            ],
        },
    ],
}


def split_text(text: str, size: int) -> list[str]:
    return [text[i:i + size] for i in range(0, len(text), size)]


def make_plan(plan_id: str, created_at: int, parent_id=None, goal=None) -> PlanResponse:
    return PlanResponse(
        id=plan_id,
        parent_id=parent_id,
        goal=goal or f"Goal {plan_id}",
        summary="Summary",
        motivational_quote="Quote",
        phases=[],
        created_at=created_at,
    )


class FakeProvider(LLMProvider):
    """Replays canned fragments through both streaming interfaces."""

    def __init__(self, fragments=None, error: Exception | None = None):
        self.fragments = list(fragments or [])
        self.error = error
        self.prompts: list[str] = []
        self.closed = False

    async def stream_response(self, prompt: str):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        for fragment in self.fragments:
            yield fragment

    def stream_response_sync(self, prompt: str):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        yield from self.fragments

    def close(self):
        self.closed = True


@pytest.fixture
def sample_text():
    return json.dumps(SAMPLE_DOCUMENT)


@pytest.fixture
def fake_provider(sample_text):
    return FakeProvider(split_text(sample_text, 37))


@pytest.fixture
def planner(fake_provider):
    return PlanningService(fake_provider)


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def repository(memory_store):
    return HistoryRepository(memory_store, default_language=Language.EN)


@pytest.fixture
def app_state(repository, planner):
    return AppState(repository, planner).load()


@pytest.fixture
def flask_app(app_state):
    """Create a Flask app for testing."""
    from app import create_app
    app = create_app(state=app_state)
    app.config['TESTING'] = True
    return app


@pytest.fixture
def client(flask_app):
    """Create a test client for Flask app."""
    return flask_app.test_client()
