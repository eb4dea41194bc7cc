"""Locate translatable text in FTB Quests SNBT chapter files.

Quest files are not strict SNBT: separators between entries are optional,
strings may contain escaped quotes, and descriptions are often multi-line
string arrays.  Rather than parsing the whole grammar, this module scans the
raw text for ``key: "value"`` and ``key: [ ... ]`` occurrences whose key is
player-facing (title / description / subtitle) and records their offsets.

Duplicate keys are numbered by document order (``title_0``, ``title_1`` …).
The numbering is a pure function of the text, so extraction and reinsertion
agree as long as they see the same source.
"""

import bisect
import re
from dataclasses import dataclass

from . import QUEST_TRANSLATABLE_KEYS, VARIABLE_REFERENCE_RE

# key: "value", value may contain escaped characters
_STRING_ENTRY_RE = re.compile(
    r'([a-zA-Z_][a-zA-Z_0-9]*):\s*"([^"\\]*(?:\\.[^"\\]*)*)"')
# key: [   (opening of an array value)
_ARRAY_KEY_RE = re.compile(r'([a-zA-Z_][a-zA-Z_0-9]*):\s*\[')
# A single quoted element inside an array body
QUOTED_STRING_RE = re.compile(r'"([^"\\]*(?:\\.[^"\\]*)*)"')
# Escape sequences understood on read
_UNESCAPE_RE = re.compile(r'\\(["\\nrt])')
_UNESCAPE_MAP = {'"': '"', '\\': '\\', 'n': '\n', 'r': '\r', 't': '\t'}
_ESCAPE_RE = re.compile(r'["\\\n\r\t]')
_ESCAPE_MAP = {v: "\\" + k for k, v in _UNESCAPE_MAP.items()}


@dataclass(frozen=True)
class TextMatch:
    """One translatable occurrence inside a snapshot of the source text.

    ``raw_value`` is the unescaped text; for arrays it is the literal
    elements joined with newlines.  ``start``/``end`` span from the key to
    the closing quote or bracket.
    """
    key: str
    raw_value: str
    start: int
    end: int
    is_array: bool = False


def escape_snbt(text: str) -> str:
    """Escape a value for writing inside double quotes.

    Line breaks and tabs are written as \\n, \\r, \\t so a scalar stays on
    one line; this is the exact inverse of ``unescape_snbt``.
    """
    return _ESCAPE_RE.sub(lambda m: _ESCAPE_MAP[m.group(0)], text)


def unescape_snbt(text: str) -> str:
    """Reverse SNBT escapes (\\", \\\\, \\n, \\r, \\t) in one left-to-right pass."""
    return _UNESCAPE_RE.sub(lambda m: _UNESCAPE_MAP[m.group(1)], text)


def find_matching_bracket(content: str, start: int) -> int:
    """Return the index of the ``]`` closing the ``[`` at *start*, or -1.

    Brackets inside double-quoted strings are ignored; a backslash escapes
    the next character only.
    """
    depth = 1
    in_string = False
    escaped = False

    for i in range(start + 1, len(content)):
        c = content[i]
        if escaped:
            escaped = False
            continue
        if c == "\\":
            escaped = True
            continue
        if c == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if c == "[":
            depth += 1
        elif c == "]":
            depth -= 1
            if depth == 0:
                return i
    return -1


def is_variable_reference(value: str) -> bool:
    """True for symbolic references that must never be translated.

    ``{.pack.quests.title}`` (brace-wrapped) and dotted identifiers with three
    or more segments like ``ftb.shop.notify.guidance``.
    """
    trimmed = value.strip()
    if not trimmed:
        return False
    if trimmed.startswith("{") and trimmed.endswith("}"):
        return True
    return bool(VARIABLE_REFERENCE_RE.match(trimmed))


def is_translatable_value(value: str) -> bool:
    """Literal, non-blank text that is not a reference."""
    return bool(value.strip()) and not is_variable_reference(value)


def _quoted_spans(content: str) -> list[tuple[int, int]]:
    """(start, end) of every double-quoted string literal, in order."""
    spans = []
    start = -1
    escaped = False
    for i, c in enumerate(content):
        if escaped:
            escaped = False
        elif c == "\\":
            escaped = True
        elif c == '"':
            if start < 0:
                start = i
            else:
                spans.append((start, i + 1))
                start = -1
    return spans


def _inside_string(spans: list, starts: list, pos: int) -> bool:
    i = bisect.bisect_right(starts, pos) - 1
    return i >= 0 and spans[i][0] < pos < spans[i][1]


def _scan_strings(content: str, spans: list, starts: list) -> list[TextMatch]:
    matches = []
    for m in _STRING_ENTRY_RE.finditer(content):
        key = m.group(1)
        if key not in QUEST_TRANSLATABLE_KEYS or not m.group(2):
            continue
        if _inside_string(spans, starts, m.start()):
            continue
        value = unescape_snbt(m.group(2))
        if is_translatable_value(value):
            matches.append(TextMatch(key, value, m.start(), m.end(), False))
    return matches


def _scan_arrays(content: str, spans: list, starts: list) -> list[TextMatch]:
    matches = []
    for m in _ARRAY_KEY_RE.finditer(content):
        key = m.group(1)
        if key not in QUEST_TRANSLATABLE_KEYS:
            continue
        if _inside_string(spans, starts, m.start()):
            continue

        array_start = m.end() - 1
        array_end = find_matching_bracket(content, array_start)
        if array_end == -1:
            continue

        body = content[array_start + 1:array_end]
        trimmed = body.strip()
        # Empty arrays and arrays of compounds (e.g. rich text) are skipped
        if not trimmed or trimmed.startswith("{"):
            continue

        lines = []
        for el in QUOTED_STRING_RE.finditer(body):
            element = unescape_snbt(el.group(1))
            if is_translatable_value(element):
                lines.append(element)
        if lines:
            matches.append(TextMatch(key, "\n".join(lines), m.start(), array_end + 1, True))
    return matches


def find_text_matches(content: str) -> tuple[TextMatch, ...]:
    """Scan *content* for translatable scalars and string arrays.

    Both passes are merged and ordered by start offset so duplicate-key
    numbering follows document order.  A match that starts inside an
    earlier match's span is dropped, which keeps replacements disjoint.
    """
    spans = _quoted_spans(content)
    starts = [s for s, _ in spans]
    found = _scan_strings(content, spans, starts) + _scan_arrays(content, spans, starts)
    found.sort(key=lambda tm: tm.start)

    result = []
    last_end = -1
    for tm in found:
        if tm.start < last_end:
            continue
        result.append(tm)
        last_end = tm.end
    return tuple(result)


def assign_unique_keys(matches) -> list[str]:
    """Number repeated keys in order: title_0, description_0, title_1, …"""
    counters: dict[str, int] = {}
    keys = []
    for tm in matches:
        n = counters.get(tm.key, 0)
        keys.append(f"{tm.key}_{n}")
        counters[tm.key] = n + 1
    return keys


def extract_translatable_texts(content: str) -> dict[str, str]:
    """Return an insertion-ordered {unique_key: text} map for a quest file."""
    matches = find_text_matches(content)
    return {uk: tm.raw_value for uk, tm in zip(assign_unique_keys(matches), matches)}


def count_characters(texts: dict) -> int:
    """Total characters to be sent for translation."""
    return sum(len(v) for v in texts.values())
