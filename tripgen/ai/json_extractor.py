"""Recover a JSON value from raw model text.

Gemini output can be wrapped in markdown fences, preceded by commentary,
followed by prose, or cut off mid-structure near the token limit. The
extractor:

1. Removes every fence marker (```` ``` ```` with an optional language tag).
2. Drops everything before the first opener.
3. Scans string-aware, tracking the open container stack.
4. Cuts at the point where the root container closes.
5. If the text ends early, closes the open string and then every open
   container, innermost first.
6. Parses. When the closed text still does not parse (cut inside a key,
   after a colon, mid-literal), it backs off to the most recent comma or
   opener and closes from there.
"""
import json
import logging
import re
from typing import Any, Iterator, List, NamedTuple, Optional, Tuple

from tripgen.errors import MalformedResponseError

logger = logging.getLogger("json-extractor")

FENCE_PATTERN = re.compile(r"```[A-Za-z0-9_+-]*")
SNIPPET_LENGTH = 100
MAX_REPAIR_ATTEMPTS = 64

_CLOSERS = {"{": "}", "[": "]"}


class _Scan(NamedTuple):
    end: Optional[int]  # index just past the root closer, None if never closed
    in_string: bool
    escaped: bool
    stack: Tuple[str, ...]
    cuts: List[Tuple[int, Tuple[str, ...]]]


def strip_code_fences(text: str) -> str:
    """Remove markdown fence markers wherever they appear."""
    return FENCE_PATTERN.sub("", text).strip()


def _scan(text: str) -> _Scan:
    stack: List[str] = []
    cuts: List[Tuple[int, Tuple[str, ...]]] = []
    in_string = False
    escaped = False

    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch in _CLOSERS:
            stack.append(ch)
            cuts.append((i + 1, tuple(stack)))
        elif ch in ("}", "]"):
            if stack and _CLOSERS[stack[-1]] == ch:
                stack.pop()
                if not stack:
                    return _Scan(i + 1, False, False, (), cuts)
        elif ch == ",":
            cuts.append((i, tuple(stack)))

    return _Scan(None, in_string, escaped, tuple(stack), cuts)


def _closers(stack: Tuple[str, ...]) -> str:
    return "".join(_CLOSERS[opener] for opener in reversed(stack))


def _repair_candidates(text: str, scan: _Scan) -> Iterator[str]:
    closed = text
    if scan.in_string:
        if scan.escaped:
            closed = closed[:-1]
        closed += '"'
    yield closed + _closers(scan.stack)

    for index, stack in list(reversed(scan.cuts))[:MAX_REPAIR_ATTEMPTS]:
        yield text[:index] + _closers(stack)


def _extract(raw_text: str, opener: str) -> Any:
    if not raw_text or not raw_text.strip():
        raise MalformedResponseError("Empty model response")

    cleaned = strip_code_fences(raw_text)
    start = cleaned.find(opener)
    if start == -1:
        raise MalformedResponseError(
            f"No JSON {'object' if opener == '{' else 'array'} found in model response",
            head=cleaned[:SNIPPET_LENGTH],
            tail=cleaned[-SNIPPET_LENGTH:],
        )
    if start > 0:
        logger.debug(f"Discarding {start} chars of commentary before JSON")

    candidate = cleaned[start:]
    scan = _scan(candidate)

    if scan.end is not None:
        trailing = candidate[scan.end:].strip()
        if trailing:
            logger.debug(f"Ignoring {len(trailing)} chars after JSON")
        candidate = candidate[:scan.end]
        attempts: Iterator[str] = iter([candidate])
    else:
        logger.warning(
            f"JSON truncated (open containers: {''.join(scan.stack)}, "
            f"inside string: {scan.in_string}), attempting to repair..."
        )
        attempts = _repair_candidates(candidate, scan)

    first_error: Optional[json.JSONDecodeError] = None
    for attempt in attempts:
        try:
            value = json.loads(attempt)
        except json.JSONDecodeError as e:
            if first_error is None:
                first_error = e
            continue
        if first_error is not None:
            logger.info(f"Recovered JSON by trimming to {len(attempt)} chars")
        return value

    raise MalformedResponseError(
        f"JSON parsing failed: {first_error}",
        head=candidate[:SNIPPET_LENGTH],
        tail=candidate[-SNIPPET_LENGTH:],
    )


def extract_json(raw_text: str) -> dict:
    """Extract a JSON object from raw model text, repairing truncation."""
    return _extract(raw_text, "{")


def extract_json_array(raw_text: str) -> list:
    """Extract a JSON array from raw model text, repairing truncation.

    A lone object is wrapped in a list.
    """
    cleaned = strip_code_fences(raw_text or "")
    brace, bracket = cleaned.find("{"), cleaned.find("[")
    if brace != -1 and (bracket == -1 or brace < bracket):
        return [_extract(raw_text, "{")]
    return _extract(raw_text, "[")
