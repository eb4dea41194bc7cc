"""Per-file processing: read a quest or lang file, translate it, write it out."""

import enum
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .lang_file import apply_lang_translations, extract_lang_texts, parse_lang_file
from .snbt_applier import apply_translations
from .snbt_text import count_characters, extract_translatable_texts
from .translation_engine import BatchTranslationEngine

log = logging.getLogger(__name__)


class QuestFileType(enum.Enum):
    QUEST_FILE = "quest"
    LANG_FILE = "lang"


def detect_file_type(path) -> QuestFileType:
    """``.../lang/<locale>.snbt`` is a lang file; every other .snbt is a quest file."""
    p = Path(path)
    if p.parent.name == "lang" and p.suffix == ".snbt":
        return QuestFileType.LANG_FILE
    return QuestFileType.QUEST_FILE


# Minecraft locale file names for the provider language codes
TARGET_LOCALES = {
    "ja": "ja_jp", "zh": "zh_cn", "zh-tw": "zh_tw", "ko": "ko_kr", "de": "de_de",
    "fr": "fr_fr", "es": "es_es", "pt": "pt_br", "ru": "ru_ru", "it": "it_it",
    "pl": "pl_pl", "en": "en_us",
}


def find_existing_translation(src, target_lang: str) -> Optional[Path]:
    """The target-locale lang file next to *src*, if the pack already ships one."""
    src = Path(src)
    if detect_file_type(src) is not QuestFileType.LANG_FILE:
        return None
    locale = TARGET_LOCALES.get(target_lang.lower(), target_lang.lower().replace("-", "_"))
    candidate = src.with_name(locale + ".snbt")
    if candidate.is_file() and candidate.resolve() != src.resolve():
        return candidate
    return None


@dataclass
class QuestFileResult:
    input_path: str
    output_path: Optional[str]
    file_type: QuestFileType
    translated: bool = False
    success: bool = False
    char_count: int = 0
    error: Optional[str] = None


class QuestFileProcessor:
    """Drives extraction, translation and reinsertion for whole files."""

    def __init__(self, engine: BatchTranslationEngine):
        self.engine = engine

    def translate_quest_text(self, content: str) -> str:
        texts = extract_translatable_texts(content)
        if not texts:
            return content
        return apply_translations(content, self.engine.translate(texts))

    def translate_lang_text(self, content: str, filename: str = "<string>") -> str:
        entries = extract_lang_texts(parse_lang_file(content, filename))
        texts = {e.key: e.value for e in entries if e.value.strip()}
        if not texts:
            return content
        return apply_lang_translations(content, self.engine.translate(texts))

    def _count(self, content: str, file_type: QuestFileType, filename: str) -> int:
        if file_type is QuestFileType.LANG_FILE:
            entries = extract_lang_texts(parse_lang_file(content, filename))
            return sum(len(e.value) for e in entries if e.value.strip())
        return count_characters(extract_translatable_texts(content))

    def process_file(self, src, dst, existing_translation=None) -> QuestFileResult:
        """Translate *src* into *dst*; failures are logged and put on the result.

        A lang file with an *existing_translation* is not sent to the
        provider: the existing file is copied to *dst* instead.
        """
        src, dst = Path(src), Path(dst)
        file_type = detect_file_type(src)
        result = QuestFileResult(str(src), None, file_type)
        try:
            if file_type is QuestFileType.LANG_FILE and existing_translation is not None:
                existing = Path(existing_translation)
                log.info("[skip] %s - using existing %s", src.name, existing.name)
                dst.parent.mkdir(parents=True, exist_ok=True)
                if existing.resolve() != dst.resolve():
                    shutil.copyfile(existing, dst)
                result.output_path = str(dst)
                result.success = True
                return result

            content = src.read_text(encoding="utf-8")
            char_count = self._count(content, file_type, src.name)
            dst.parent.mkdir(parents=True, exist_ok=True)

            if char_count == 0:
                log.info("[skip] %s - nothing to translate", src.name)
                if src.resolve() != dst.resolve():
                    shutil.copyfile(src, dst)
                result.output_path = str(dst)
                result.success = True
                return result

            if file_type is QuestFileType.LANG_FILE:
                translated = self.translate_lang_text(content, src.name)
            else:
                translated = self.translate_quest_text(content)
            dst.write_text(translated, encoding="utf-8")
        except Exception as e:
            log.error("Quest file translation failed: %s\nCause: %s", src, e)
            result.translated = True
            result.error = str(e)
            return result

        log.info("[translated] %s - done (%d chars)", src.name, char_count)
        result.output_path = str(dst)
        result.translated = True
        result.success = True
        result.char_count = char_count
        return result
