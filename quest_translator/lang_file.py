"""FTB Quests lang files (``lang/en_us.snbt``).

A lang file is one compound whose children are strings or lists of strings
keyed by ``quest.<id>.title``, ``quest.<id>.quest_desc`` and
``task.<id>.title`` (plus keys we leave alone, like chapter titles).  FTB
writes it without commas between entries, so the text is normalized before
it is parsed as a tree.  Writing goes back through the original text, not
the tree, to keep formatting and untranslated entries byte-identical.
"""

import logging
import re
from dataclasses import dataclass

from . import LANG_KEY_RE
from .snbt_applier import Replacement, apply_replacements, build_string_array, extract_indent
from .snbt_text import (
    QUOTED_STRING_RE, escape_snbt, find_matching_bracket, unescape_snbt,
)

log = logging.getLogger(__name__)

MAX_NORMALIZE_PASSES = 5
PREVIEW_LENGTH = 200

# Separator normalization.  Each pattern ends a value and is followed by
# whitespace containing a newline, then the start of another entry.
_NEXT = r'(\s*[\r\n]+\s*)(?=[a-zA-Z_0-9"\'{\[+\-.])'
_NUMBER = r'[-+]?[0-9]+\.?[0-9]*(?:[eE][-+]?[0-9]+)?[dDfFlLbBsS]?'
_SEPARATOR_RULES = [
    (re.compile(r'"' + _NEXT), r'",\1'),
    (re.compile(r'\]' + _NEXT), r'],\1'),
    (re.compile(r'\}' + _NEXT), r'},\1'),
    (re.compile(r'\b(true|false)' + _NEXT), r'\1,\2'),
    (re.compile(r'(:[ \t]*[A-Za-z0-9._+\-]+)' + _NEXT), r'\1,\2'),
    (re.compile(r'(?<![\w.])(' + _NUMBER + r')' + _NEXT), r'\1,\2'),
]

_WS_RE = re.compile(r'\s+')
_UNQUOTED_RE = re.compile(r'[A-Za-z0-9._+\-]+')
_INT_RE = re.compile(r'^[-+]?[0-9]+[bBsSlL]?$')
_FLOAT_RE = re.compile(r'^[-+]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][-+]?[0-9]+)?[fFdD]?$')


class SNBTSyntaxError(ValueError):
    """Malformed SNBT; ``pos`` is the offset where parsing stopped."""

    def __init__(self, message: str, pos: int):
        super().__init__(f"{message} at offset {pos}")
        self.pos = pos


class LangFileParseError(ValueError):
    """A lang file could not be read as a tree."""

    def __init__(self, filename: str, cause: Exception, content: str = ""):
        self.filename = filename
        self.cause = cause
        self.preview = make_preview(content)
        reason = str(cause) or type(cause).__name__
        super().__init__(
            f"Failed to parse SNBT file: {filename}\n"
            f"Cause: {reason}\n"
            f"File preview: {self.preview}"
        )


@dataclass(frozen=True)
class ExtractedText:
    """A translatable lang entry; lists are joined with newlines."""
    key: str
    value: str
    is_list: bool = False


def make_preview(content: str, length: int = PREVIEW_LENGTH) -> str:
    """First *length* characters with whitespace runs collapsed to one space."""
    if not content:
        return "(empty or unreadable)"
    preview = _WS_RE.sub(" ", content[:length])
    if len(content) > length:
        preview += "..."
    return preview


def normalize_separators(content: str, max_passes: int = MAX_NORMALIZE_PASSES) -> str:
    """Insert the commas FTB omits between entries.

    Runs until nothing changes (at most *max_passes* times): one insertion
    can expose the next missing separator.
    """
    for _ in range(max_passes):
        before = content
        for pattern, repl in _SEPARATOR_RULES:
            content = pattern.sub(repl, content)
        if content == before:
            break
    return content


class _Reader:
    """Recursive-descent SNBT reader producing plain Python values."""

    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def parse(self):
        value = self.read_value()
        self.skip_ws()
        if self.pos != len(self.text):
            raise SNBTSyntaxError("Trailing data after root value", self.pos)
        return value

    def skip_ws(self):
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def peek(self) -> str:
        self.skip_ws()
        if self.pos >= len(self.text):
            raise SNBTSyntaxError("Unexpected end of input", self.pos)
        return self.text[self.pos]

    def expect(self, ch: str):
        if self.peek() != ch:
            raise SNBTSyntaxError(f"Expected '{ch}' but found '{self.text[self.pos]}'", self.pos)
        self.pos += 1

    def read_value(self):
        ch = self.peek()
        if ch == "{":
            return self.read_compound()
        if ch == "[":
            return self.read_list()
        if ch in "\"'":
            return self.read_quoted()
        return self.read_literal()

    def read_compound(self) -> dict:
        self.expect("{")
        result = {}
        if self.peek() == "}":
            self.pos += 1
            return result
        while True:
            key = self.read_quoted() if self.peek() in "\"'" else self.read_word()
            self.expect(":")
            result[key] = self.read_value()
            ch = self.peek()
            self.pos += 1
            if ch == "}":
                return result
            if ch != ",":
                raise SNBTSyntaxError(f"Expected ',' or '}}' but found '{ch}'", self.pos - 1)
            if self.peek() == "}":  # trailing comma
                self.pos += 1
                return result

    def read_list(self) -> list:
        self.expect("[")
        # Typed arrays: [B; 1b, 2b], [I; 1, 2], [L; 1L]
        if re.match(r'[BIL]\s*;', self.text[self.pos:self.pos + 4]):
            self.pos = self.text.index(";", self.pos) + 1
        result = []
        if self.peek() == "]":
            self.pos += 1
            return result
        while True:
            result.append(self.read_value())
            ch = self.peek()
            self.pos += 1
            if ch == "]":
                return result
            if ch != ",":
                raise SNBTSyntaxError(f"Expected ',' or ']' but found '{ch}'", self.pos - 1)
            if self.peek() == "]":
                self.pos += 1
                return result

    def read_quoted(self) -> str:
        quote = self.peek()
        start = self.pos + 1
        i = start
        while i < len(self.text):
            c = self.text[i]
            if c == "\\":
                i += 2
                continue
            if c == quote:
                self.pos = i + 1
                raw = self.text[start:i]
                if quote == "'":
                    return raw.replace("\\'", "'").replace("\\\\", "\\")
                return unescape_snbt(raw)
            i += 1
        raise SNBTSyntaxError("Unterminated string", start - 1)

    def read_word(self) -> str:
        self.skip_ws()
        m = _UNQUOTED_RE.match(self.text, self.pos)
        if not m:
            found = self.text[self.pos] if self.pos < len(self.text) else "EOF"
            raise SNBTSyntaxError(f"Unexpected character '{found}'", self.pos)
        self.pos = m.end()
        return m.group(0)

    def read_literal(self):
        word = self.read_word()
        if word in ("true", "false"):
            return word == "true"
        if _INT_RE.match(word):
            return int(word.rstrip("bBsSlL"))
        if _FLOAT_RE.match(word) and any(c.isdigit() for c in word):
            return float(word.rstrip("fFdD"))
        return word


def parse_snbt(content: str):
    """Parse SNBT text into dicts, lists, strings, numbers and booleans."""
    return _Reader(content).parse()


def parse_lang_file(content: str, filename: str = "<string>") -> dict:
    """Normalize and parse a lang file; the root must be a compound."""
    try:
        root = parse_snbt(normalize_separators(content))
    except SNBTSyntaxError as e:
        raise LangFileParseError(filename, e, content) from e
    if not isinstance(root, dict):
        raise LangFileParseError(
            filename, TypeError(f"Root is {type(root).__name__}, expected compound"), content)
    return root


def is_lang_key(key: str) -> bool:
    return bool(LANG_KEY_RE.match(key))


def extract_lang_texts(root) -> list[ExtractedText]:
    """Walk the root compound's children for translatable lang entries."""
    texts = []
    if not isinstance(root, dict):
        return texts
    for key, value in root.items():
        if not is_lang_key(key):
            continue
        if isinstance(value, str):
            texts.append(ExtractedText(key, value, False))
        elif isinstance(value, list):
            parts = [v for v in value if isinstance(v, str)]
            texts.append(ExtractedText(key, "\n".join(parts), True))
    return texts


def _find_entry_value(content: str, key: str) -> int:
    """Offset of the value belonging to top-level *key*, or -1."""
    pattern = re.compile(
        r'(?m)(?:^|[{,])[ \t]*(?:"' + re.escape(escape_snbt(key)) + r'"|'
        + re.escape(key) + r')[ \t]*:[ \t]*')
    m = pattern.search(content)
    return m.end() if m else -1


def build_lang_replacements(content: str, translations: dict) -> list[Replacement]:
    """Replacements for each translated lang key found in *content*."""
    replacements = []
    for key, translated in translations.items():
        pos = _find_entry_value(content, key)
        if pos < 0 or pos >= len(content):
            log.debug("Lang key not found: %s", key)
            continue

        if content[pos] == '"':
            m = QUOTED_STRING_RE.match(content, pos)
            if not m or unescape_snbt(m.group(1)) == translated:
                continue
            replacements.append(Replacement(pos, m.end(), '"' + escape_snbt(translated) + '"'))
        elif content[pos] == "[":
            end = find_matching_bracket(content, pos)
            if end < 0:
                continue
            body = content[pos + 1:end]
            current = "\n".join(unescape_snbt(m.group(1)) for m in QUOTED_STRING_RE.finditer(body))
            if current == translated:
                continue
            elements = [escape_snbt(line) for line in translated.split("\n")]
            replacements.append(Replacement(pos, end + 1, build_string_array(elements, extract_indent(body))))
    return replacements


def apply_lang_translations(content: str, translations: dict) -> str:
    """Return the lang file text with translated entries rewritten in place."""
    return apply_replacements(content, build_lang_replacements(content, translations))
