"""Write translations back into SNBT quest text.

Matches are recomputed from the text being written, never carried over
from extraction, so the unique keys line up even when the translation map
has been through a JSON round trip or a different process.  All edits are
collected first and applied from the end of the text backwards.
"""

import logging
from dataclasses import dataclass

from .snbt_text import (
    QUOTED_STRING_RE, assign_unique_keys, escape_snbt, find_text_matches,
    is_translatable_value, unescape_snbt,
)

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Replacement:
    """Replace ``content[start:end]`` with ``text``."""
    start: int
    end: int
    text: str


def extract_indent(body: str) -> str:
    """Element indentation of a multi-line array body (tab if single-line)."""
    nl = body.find("\n")
    if nl == -1:
        return "\t"
    start = nl + 1
    end = start
    while end < len(body) and body[end] in " \t":
        end += 1
    return body[start:end] if end > start else "\t"


def build_string_array(elements: list, indent: str) -> str:
    """Format already-escaped elements as a one-per-line SNBT array."""
    parts = ["["]
    for el in elements:
        parts.append(f'\n{indent}"{el}"')
    if elements:
        base_indent = indent[:-1] if indent.endswith("\t") else indent
        parts.append("\n" + base_indent)
    parts.append("]")
    return "".join(parts)


def merge_array_elements(original_elements: list, translated: str) -> list:
    """Swap translated lines into the literal elements of an array.

    *original_elements* are raw (still escaped) element bodies.  Blank and
    reference elements are kept and consume no translated line; if the
    translation runs short, the remaining literals keep their original text.
    """
    lines = translated.split("\n")
    merged = []
    idx = 0
    for raw in original_elements:
        if not is_translatable_value(unescape_snbt(raw)):
            merged.append(raw)
        elif idx < len(lines):
            merged.append(escape_snbt(lines[idx]))
            idx += 1
        else:
            merged.append(raw)
    if idx < len(lines):
        log.debug("Dropped %d surplus translated line(s)", len(lines) - idx)
    return merged


def build_replacements(content: str, translations: dict) -> list[Replacement]:
    """Compute replacements for every match whose unique key was translated.

    Keys absent from *translations* and values identical to the source are
    left alone, so an untouched map reproduces *content* exactly.
    """
    matches = find_text_matches(content)
    replacements = []

    for unique_key, tm in zip(assign_unique_keys(matches), matches):
        translated = translations.get(unique_key)
        if translated is None or translated == tm.raw_value:
            continue

        if tm.is_array:
            array_start = content.index("[", tm.start, tm.end)
            body = content[array_start + 1:tm.end - 1]
            originals = [m.group(1) for m in QUOTED_STRING_RE.finditer(body)]
            merged = merge_array_elements(originals, translated)
            new_text = build_string_array(merged, extract_indent(body))
            replacements.append(Replacement(array_start, tm.end, new_text))
        else:
            value_start = content.index('"', tm.start, tm.end)
            new_text = '"' + escape_snbt(translated) + '"'
            replacements.append(Replacement(value_start, tm.end, new_text))

    return replacements


def apply_replacements(content: str, replacements: list) -> str:
    """Apply non-overlapping replacements, last offset first."""
    result = content
    for r in sorted(replacements, key=lambda r: r.start, reverse=True):
        result = result[:r.start] + r.text + result[r.end:]
    return result


def apply_translations(content: str, translations: dict) -> str:
    """Return *content* with translated values substituted in place."""
    replacements = build_replacements(content, translations)
    log.debug("Applying %d replacement(s)", len(replacements))
    return apply_replacements(content, replacements)
