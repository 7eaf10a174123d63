import pytest

from fencemark.core.completion_rules import FENCE_LANGUAGES
from fencemark.core.completions import completions_at, get_completions, structural_completions
from fencemark.core.document import Document


def test_heading_trigger_replaces_typed_hashes() -> None:
    result = get_completions("##", 10, 12)
    assert result is not None
    assert result.rule == "heading"
    assert (result.replace_from, result.replace_to) == (10, 12)
    assert [c.label for c in result.candidates] == [f"{'#' * n} Heading {n}" for n in range(1, 7)]
    assert [c.priority for c in result.candidates] == [100, 90, 80, 70, 60, 50]
    assert result.candidates[0].insert_text == "# "
    assert all((c.replace_from, c.replace_to) == (10, 12) for c in result.candidates)


def test_seven_hashes_do_not_trigger() -> None:
    assert get_completions("#######", 0, 7) is None


@pytest.mark.parametrize("marker", ["-", "*", "+"])
def test_list_trigger_at_line_start(marker: str) -> None:
    result = get_completions(marker, 0, 1)
    assert result.rule == "list"
    assert [c.insert_text for c in result.candidates] == ["- ", "- [ ] ", "- [x] ", "1. "]
    assert (result.replace_from, result.replace_to) == (0, 1)


def test_ordered_list_trigger() -> None:
    result = get_completions("1.", 5, 7)
    assert [c.insert_text for c in result.candidates] == ["1. "]
    assert result.replace_from == 5


def test_link_replaces_only_bracket() -> None:
    result = get_completions("see [", 0, 5)
    assert result.rule == "link"
    assert (result.replace_from, result.replace_to) == (4, 5)
    assert result.candidates[0].insert_text == "[Link text](url)"


@pytest.mark.parametrize("text, start", [("![", 0), ("text ![", 5)])
def test_image_replaces_both_characters(text: str, start: int) -> None:
    result = get_completions(text, 0, len(text))
    assert result.rule == "image"
    assert result.replace_from == start
    assert result.candidates[0].insert_text == "![Alt text](image-url)"


def test_code_fence_trigger_lists_languages_in_priority_order() -> None:
    result = get_completions("```", 20, 23)
    assert result.rule == "code_block"
    assert [c.label for c in result.candidates] == [f"```{lang}" for lang, _, _ in FENCE_LANGUAGES]
    assert result.candidates[1].insert_text == "```python\n\n```"
    assert all(c.insert_text.split("\n")[1] == "" for c in result.candidates)
    assert (result.replace_from, result.replace_to) == (20, 23)


def test_indented_backticks_fall_through_to_inline_code() -> None:
    result = get_completions("  ```", 0, 5)
    assert result.rule == "inline_code"
    assert result.replace_from == 4


def test_table_trigger() -> None:
    result = get_completions("|", 0, 1)
    assert [c.detail for c in result.candidates] == ["Table (2 columns)", "Table (3 columns)"]
    assert result.candidates[0].insert_text.splitlines() == [
        "| Header 1 | Header 2 |",
        "| -------- | -------- |",
        "| Cell 1   | Cell 2   |",
    ]
    assert get_completions("a |", 0, 3) is None


def test_blockquote_and_inline_code() -> None:
    assert get_completions(">", 0, 1).candidates[0].insert_text == "> "
    inline = get_completions("use `", 0, 5)
    assert inline.rule == "inline_code"
    assert inline.replace_from == 4
    assert inline.candidates[0].insert_text == "`code`"


@pytest.mark.parametrize(
    "text, labels",
    [
        ("word *", ["**Bold text**", "*Italic text*"]),
        ("word _", ["__Bold text__", "_Italic text_"]),
        ("_", ["__Bold text__", "_Italic text_"]),
    ],
)
def test_emphasis_uses_typed_delimiter(text: str, labels: list) -> None:
    result = get_completions(text, 0, len(text))
    assert result.rule == "emphasis"
    assert [c.label for c in result.candidates] == labels
    assert [c.insert_text for c in result.candidates] == labels
    assert result.replace_from == len(text) - 1


def test_strikethrough() -> None:
    result = get_completions("x ~", 0, 3)
    assert result.candidates[0].insert_text == "~~Strikethrough~~"
    assert result.replace_from == 2


@pytest.mark.parametrize("text", ["", "hello", "# ", "## title"])
def test_no_trigger_returns_none(text: str) -> None:
    assert get_completions(text, 0, len(text)) is None


def test_contract_violations_raise() -> None:
    with pytest.raises(ValueError):
        get_completions("ab", 0, 5)
    with pytest.raises(ValueError):
        get_completions("a\n#", 0, 3)


def test_candidate_apply_replaces_span() -> None:
    text = "see [ here"
    candidate = get_completions("see [", 0, 5).candidates[0]
    updated, cursor = candidate.apply(text)
    assert updated == "see [Link text](url) here"
    assert cursor == 20


def test_limited_caps_candidates() -> None:
    result = get_completions("```", 0, 3)
    assert len(result.limited(3)) == 3
    assert result.limited(20) is result


def test_completions_at_uses_current_line_only() -> None:
    doc = Document.from_text("intro\n##")
    result = completions_at(doc, len(doc))
    assert (result.replace_from, result.replace_to) == (6, 8)


def test_recognized_fence_defers_to_bundle() -> None:
    text = "```python\n#\n```\n#"
    doc = Document.from_text(text)
    assert structural_completions(doc, 11) is None
    prose = structural_completions(doc, len(text))
    assert prose.rule == "heading"
    assert (prose.replace_from, prose.replace_to) == (16, 17)


def test_unrecognized_or_untagged_fence_keeps_markdown_completions() -> None:
    unknown = Document.from_text("```nolangxyz\n#\n```")
    result = structural_completions(unknown, 14)
    assert result is not None and result.rule == "heading"
    plain = Document.from_text("```\n-\n```")
    assert structural_completions(plain, 5).rule == "list"
