"""Structural repair of truncated JSON text.

Streaming responses arrive as arbitrary prefixes of a JSON document. The
helpers here close whatever brackets are still open so the prefix becomes a
candidate for ``json.loads``. They only look at bracket and string-literal
structure; anything else (trailing commas, half-written literals) is left for
the decoder to reject.
"""

import re

_OPENING_FENCE = re.compile(r"^```[A-Za-z0-9_-]*")
_CLOSING_FENCE = re.compile(r"```$")
_CLOSERS = {"{": "}", "[": "]"}


def strip_opening_fence(text: str) -> str:
    """Trim whitespace and drop a leading ``` marker (with optional language tag)."""
    return _OPENING_FENCE.sub("", text.strip(), count=1).lstrip()


def strip_code_fences(text: str) -> str:
    """Drop both the leading and the trailing ``` markers of a finished response."""
    cleaned = strip_opening_fence(text).strip()
    return _CLOSING_FENCE.sub("", cleaned).strip()


def scan(text: str) -> tuple[list[tuple[str, int]], int]:
    """Return the unclosed brackets as ``(opener, index)`` pairs, outermost
    first, and the index of the last comma outside a string literal (-1 if
    none)."""
    stack: list[tuple[str, int]] = []
    in_string = False
    escaped = False
    last_comma = -1

    for index, char in enumerate(text):
        if escaped:
            escaped = False
            continue
        if char == "\\":
            escaped = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue

        if char in _CLOSERS:
            stack.append((char, index))
        elif char == "}":
            if stack and stack[-1][0] == "{":
                stack.pop()
        elif char == "]":
            if stack and stack[-1][0] == "[":
                stack.pop()
        elif char == ",":
            last_comma = index

    return stack, last_comma


def repair_json(text: str) -> str:
    """Close every unterminated ``{`` / ``[`` in ``text``.

    Never raises. The result is not guaranteed to be valid JSON: an open
    string literal or a dangling comma still fails to decode.
    """
    modified = strip_opening_fence(text)
    stack, _ = scan(modified)
    return modified + "".join(_CLOSERS[opener] for opener, _ in reversed(stack))
