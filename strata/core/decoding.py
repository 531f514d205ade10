"""Decoding of streamed plan documents, partial and final."""

import json
import logging

from pydantic import ValidationError

from .errors import PlanDecodeError
from .models import PartialPlan, PlanResponse
from .repair import repair_json, scan, strip_code_fences, strip_opening_fence

logger = logging.getLogger(__name__)


def _load_partial(candidate: str) -> PartialPlan | None:
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None
    try:
        return PartialPlan.model_validate(data)
    except ValidationError:
        return None


def drop_unfinished_member(text: str) -> str | None:
    """Cut a buffer back to its last finished value.

    When the innermost open container is an object inside an array (a phase
    or step still being written) the whole element goes. Otherwise the text
    is cut at the last comma, dropping the member after it. Returns ``None``
    when nothing can be dropped.
    """
    modified = strip_opening_fence(text)
    stack, last_comma = scan(modified)
    if len(stack) >= 2 and stack[-1][0] == "{" and stack[-2][0] == "[":
        return modified[: stack[-1][1]].rstrip().rstrip(",")
    if last_comma < 0:
        return None
    return modified[:last_comma]


def decode_partial(text: str) -> PartialPlan | None:
    """Best-effort decode of the text accumulated so far.

    Returns ``None`` when the buffer does not yet form a usable document;
    callers should simply wait for more data. Missing ``phases`` and missing
    per-phase ``steps`` come back as empty lists.
    """
    partial = _load_partial(repair_json(text))
    if partial is None:
        trimmed = drop_unfinished_member(text)
        if trimmed is not None:
            partial = _load_partial(repair_json(trimmed))
    if partial is None:
        logger.debug("Partial decode not ready yet (%d chars buffered)", len(text))
    return partial


def is_worth_surfacing(partial: PartialPlan | None) -> bool:
    """A partial is shown only once it carries a goal or at least one phase."""
    if partial is None:
        return False
    return bool(partial.goal) or bool(partial.phases)


def decode_final(
    text: str,
    plan_id: str,
    created_at: int,
    parent_id: str | None = None,
    fallback_goal: str = "",
) -> PlanResponse:
    """Strictly decode a finished response, falling back to one repaired attempt.

    Only text that is not a JSON object is fatal. Missing fields and
    unexpected enum spellings get the same defaults as streamed snapshots.
    Identity fields always come from the caller, never from the payload.
    """
    try:
        data = json.loads(strip_code_fences(text))
    except json.JSONDecodeError as e:
        logger.warning("Final JSON parse failed, retrying with repair: %s", e)
        logger.debug("Accumulated text was: %s", text)
        try:
            data = json.loads(repair_json(text))
        except json.JSONDecodeError as repair_error:
            raise PlanDecodeError(
                f"Response is not valid JSON: {repair_error}", raw_text=text
            ) from repair_error

    if not isinstance(data, dict):
        raise PlanDecodeError("Response is not a JSON object", raw_text=text)

    try:
        partial = PartialPlan.model_validate(data)
    except ValidationError as e:
        raise PlanDecodeError(
            f"Response members have the wrong JSON types: {e}", raw_text=text
        ) from e

    return partial.to_plan(
        plan_id=plan_id,
        created_at=created_at,
        fallback_goal=fallback_goal,
        parent_id=parent_id,
    )
