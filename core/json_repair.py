"""Best-effort recovery of JSON values from malformed request bodies.

The cascade tries an ordered list of strategies and keeps the first value that
parses. Each strategy is a plain function ``text -> value`` that raises
``ValueError`` when it cannot produce JSON.

Known limitation: the heuristic repair quotes bare keys and swaps every single
quote for a double quote, so string values that legitimately contain quote
characters (or ``word:`` sequences) can be corrupted. There is no validation
or rollback of that transform.
"""

import json
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import unquote

WRAPPING_QUOTES_PATTERN = re.compile(r"^[\"']|[\"']\Z")
UNQUOTED_KEY_PATTERN = re.compile(r"([\"'])?([a-zA-Z0-9_]+)([\"'])?:")
TRAILING_COMMA_PATTERN = re.compile(r",(\s*[}\]])")

# Applied in order; ``\\`` runs after the quote escapes.
ESCAPE_SEQUENCES = (
    ('\\"', '"'),
    ("\\'", "'"),
    ("\\\\", "\\"),
    ("\\n", "\n"),
    ("\\r", "\r"),
    ("\\t", "\t"),
)

Strategy = Callable[[str], Any]


class StringifiedDocument(ValueError):
    """Parsed value is a string holding a further JSON object or array."""


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def loads(text: str) -> Any:
    """Strictly parse JSON text.

    NaN/Infinity are rejected, and a string literal that itself contains a
    JSON object or array is rejected so later strategies can unwrap it.
    """
    value = json.loads(text, parse_constant=_reject_constant)
    if isinstance(value, str) and _is_document(value):
        raise StringifiedDocument("JSON string wraps an encoded document")
    return value


def _is_document(value: str) -> bool:
    stripped = value.strip()
    if not stripped or stripped[0] not in "{[":
        return False
    try:
        json.loads(stripped, parse_constant=_reject_constant)
    except ValueError:
        return False
    return True


def dumps(value: Any) -> str:
    """Serialize a JSON value canonically (compact separators, UTF-8 kept)."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def strip_wrapping_quotes(text: str) -> str:
    return WRAPPING_QUOTES_PATTERN.sub("", text)


def unescape(text: str) -> str:
    for escaped, plain in ESCAPE_SEQUENCES:
        text = text.replace(escaped, plain)
    return text


def heuristic_fix(text: str) -> str:
    """Quote bare keys, turn single quotes into double quotes, drop trailing commas."""
    text = UNQUOTED_KEY_PATTERN.sub(r'"\2":', text)
    text = text.replace("'", '"')
    return TRAILING_COMMA_PATTERN.sub(r"\1", text)


def parse_direct(text: str) -> Any:
    return loads(text)


def parse_unquoted(text: str) -> Any:
    """Handle a document that was itself encoded as a string literal."""
    return loads(strip_wrapping_quotes(text))


def parse_unescaped(text: str) -> Any:
    """Handle double-escaped payloads, with or without wrapping quotes."""
    return loads(unescape(strip_wrapping_quotes(text)))


def parse_percent_decoded(text: str) -> Any:
    """Handle URL-encoded JSON."""
    try:
        decoded = unquote(text, errors="strict")
    except UnicodeDecodeError as e:
        raise ValueError(f"percent-decoding failed: {e}") from e
    return loads(decoded)


def parse_heuristic(text: str) -> Any:
    return loads(heuristic_fix(text))


DEFAULT_STRATEGIES: tuple[tuple[str, Strategy], ...] = (
    ("direct", parse_direct),
    ("unquoted", parse_unquoted),
    ("unescaped", parse_unescaped),
    ("percent-decoded", parse_percent_decoded),
    ("heuristic", parse_heuristic),
)


@dataclass(frozen=True)
class RepairResult:
    """Outcome of a cascade run."""

    value: Any = None
    strategy: str | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.strategy is not None

    def serialize(self) -> str:
        return dumps(self.value)


def first_success(
    text: str,
    strategies: tuple[tuple[str, Strategy], ...] = DEFAULT_STRATEGIES,
) -> RepairResult:
    """Run strategies in order and return the first one that yields a value."""
    errors: list[str] = []
    for name, strategy in strategies:
        try:
            value = strategy(text)
        except (ValueError, RecursionError) as e:
            errors.append(f"{name}: {e}")
            continue
        return RepairResult(value=value, strategy=name, errors=errors)
    return RepairResult(errors=errors)


def repair_json(text: str) -> RepairResult:
    """Recover a JSON value from raw body text."""
    if not text:
        return RepairResult(errors=["empty body"])
    return first_success(text)
