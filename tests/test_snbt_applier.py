from quest_translator.snbt_applier import (
    Replacement, apply_replacements, apply_translations, build_replacements,
    build_string_array, extract_indent, merge_array_elements,
)
from quest_translator.snbt_text import extract_translatable_texts

from test_snbt_text import QUEST


def test_round_trip_identity():
    texts = extract_translatable_texts(QUEST)
    assert build_replacements(QUEST, texts) == []
    assert apply_translations(QUEST, texts) == QUEST


def test_round_trip_single_line_array_with_escapes():
    content = 'description: ["line\\none", "two"]\ntitle: "tab\\there"\n'
    texts = extract_translatable_texts(content)
    assert texts["description_0"] == "line\none\ntwo"
    assert apply_translations(content, texts) == content


def test_translate_quest_file():
    out = apply_translations(QUEST, {
        "title_0": "Willkommen",
        "description_0": 'Erste\nZweite "x"',
        "title_2": "Steinzeit",
    })
    assert '\t\t\ttitle: "Willkommen"\n' in out
    assert (
        '\t\t\tdescription: [\n'
        '\t\t\t\t"Erste"\n'
        '\t\t\t\t""\n'
        '\t\t\t\t"{.pack.quests.hint}"\n'
        '\t\t\t\t"Zweite \\"x\\""\n'
        '\t\t\t]\n'
    ) in out
    assert 'title: "Steinzeit"' in out
    # Untranslated keys keep their source text
    assert 'title: "Collect wood"' in out
    assert 'subtitle: "ftb.shop.notify.guidance"' in out


def test_array_merge_keeps_references():
    content = 'description: ["a", "{ref}", "b"]'
    out = apply_translations(content, {"description_0": "A\nB"})
    assert out == 'description: [\n\t"A"\n\t"{ref}"\n\t"B"\n]'


def test_merge_array_elements():
    assert merge_array_elements(["a", "{ref}", "b"], "A\nB") == ["A", "{ref}", "B"]
    # Short translation: remaining literals keep their original text
    assert merge_array_elements(["a", "", "b"], "A") == ["A", "", "b"]
    assert merge_array_elements(["a"], 'say "x"') == ['say \\"x\\"']


def test_missing_keys_leave_text_unchanged():
    content = 'title: "One"\ntitle: "Two"\n'
    assert apply_translations(content, {}) == content
    assert apply_translations(content, {"subtitle_0": "x"}) == content
    assert apply_translations(content, {"title_1": "Zwei"}) == 'title: "One"\ntitle: "Zwei"\n'


def test_scalar_translation_is_escaped():
    out = apply_translations('title: "x"', {"title_0": 'say "hi" \\ now'})
    assert out == 'title: "say \\"hi\\" \\\\ now"'


def test_scalar_line_breaks_stay_escaped():
    content = 'title: "LINE ONE\\nLINE TWO"\n'
    assert extract_translatable_texts(content) == {"title_0": "LINE ONE\nLINE TWO"}
    out = apply_translations(content, {"title_0": "Zeile eins\nZeile zwei"})
    assert out == 'title: "Zeile eins\\nZeile zwei"\n'


def test_replacements_of_different_lengths():
    content = 'title: "a"\nsubtitle: "b"\ndescription: "c"'
    out = apply_translations(content, {
        "title_0": "a much longer title",
        "subtitle_0": "B",
        "description_0": "",
    })
    assert out == 'title: "a much longer title"\nsubtitle: "B"\ndescription: ""'


def test_apply_replacements_descending():
    content = "0123456789"
    out = apply_replacements(content, [Replacement(2, 4, "ab"), Replacement(6, 7, "XYZ")])
    assert out == "01ab45XYZ789"


def test_indentation_helpers():
    assert extract_indent('"a", "b"') == "\t"
    assert extract_indent('\n    "a"\n  ') == "    "
    assert build_string_array([], "\t") == "[]"
    assert build_string_array(["x"], "\t\t") == '[\n\t\t"x"\n\t]'
