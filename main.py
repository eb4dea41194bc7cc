"""FTB Quests Translator — translate quest and lang SNBT files.

Launch with: python main.py <file.snbt> [more files] -o <output dir>
"""

import argparse
import logging
import sys
from pathlib import Path

from quest_translator.config import load_settings
from quest_translator.providers import PROVIDERS, create_provider
from quest_translator.quest_processor import QuestFileProcessor, find_existing_translation
from quest_translator.translation_engine import BatchTranslationEngine

log = logging.getLogger("quest_translator")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Translate FTB Quests SNBT quest and lang files")
    parser.add_argument("inputs", nargs="+", help="Quest (.snbt) or lang/<locale>.snbt files")
    parser.add_argument("-o", "--output", help="Output directory (default: <input>.translated)")
    parser.add_argument("--settings", help="Settings JSON (default: _settings.json)")
    parser.add_argument("--provider", choices=sorted(PROVIDERS), help="Translation provider")
    parser.add_argument("--source-lang", help="Source language code")
    parser.add_argument("--target-lang", help="Target language code")
    parser.add_argument("--retranslate", action="store_true",
                        help="Translate lang files even if the target locale file exists")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def output_path(src: Path, output_dir) -> Path:
    if output_dir:
        # Keep lang files under lang/ so they are still detected as such
        if src.parent.name == "lang":
            return Path(output_dir) / "lang" / src.name
        return Path(output_dir) / src.name
    return src.with_name(src.stem + ".translated" + src.suffix)


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = load_settings(args.settings)
    provider_name = args.provider or settings.provider
    target_lang = args.target_lang or settings.target_lang
    try:
        provider = create_provider(
            provider_name, settings.api_key,
            source_lang=args.source_lang or settings.source_lang,
            target_lang=target_lang,
            **settings.provider_overrides())
    except (ValueError, TypeError) as e:
        log.error("Cannot start: %s", e)
        return 1

    processor = QuestFileProcessor(BatchTranslationEngine(provider))
    results = []
    for name in args.inputs:
        src = Path(name)
        existing = None if args.retranslate else find_existing_translation(src, target_lang)
        results.append(processor.process_file(src, output_path(src, args.output), existing))

    failed = [r for r in results if not r.success]
    translated = sum(1 for r in results if r.success and r.translated)
    chars = sum(r.char_count for r in results)
    print(f"{len(results)} file(s): {translated} translated, "
          f"{len(results) - translated - len(failed)} unchanged, {len(failed)} failed "
          f"({chars} chars)")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
