from tandem.protector import (
    COMMENT_RULE,
    ContentProtector,
    classify_line,
    is_protected_line,
)


def test_image_and_link_lines_are_swapped_for_placeholders():
    text = " ![alt](img.png)\nHello world\n- [link](url)"
    protector = ContentProtector()

    result = protector.protect(text)

    assert result.filtered == "[NOTR-0-KEEP]\nHello world\n[NOTR-1-KEEP]"
    assert result.placeholders == {
        "[NOTR-0-KEEP]": " ![alt](img.png)",
        "[NOTR-1-KEEP]": "- [link](url)",
    }
    assert [span.rule for span in result.spans] == ["image", "link-item"]
    assert protector.restore(result.filtered, result.placeholders) == text


def test_restore_after_translation_keeps_protected_lines():
    text = "Intro\nhttps://example.com/a\nOutro"
    protector = ContentProtector()
    result = protector.protect(text)

    translated = result.filtered.replace("Intro", "Einleitung").replace("Outro", "Schluss")

    assert protector.restore(translated, result.placeholders) == (
        "Einleitung\nhttps://example.com/a\nSchluss"
    )


def test_round_trip_when_input_already_contains_tokens():
    text = "Text mentioning [NOTR-0-KEEP] literally\n![pic](a.png)\nmore"
    protector = ContentProtector()

    result = protector.protect(text)

    assert "[NOTR-0-KEEP]" not in result.placeholders
    assert list(result.placeholders.values()) == ["![pic](a.png)"]
    assert protector.restore(result.filtered, result.placeholders) == text


def test_restored_line_containing_a_token_is_not_rescanned():
    protector = ContentProtector()
    placeholders = {"[NOTR-1-KEEP]": "see [NOTR-2-KEEP]", "[NOTR-2-KEEP]": "X"}

    restored = protector.restore("[NOTR-1-KEEP]\n[NOTR-2-KEEP]", placeholders)

    assert restored == "see [NOTR-2-KEEP]\nX"


def test_rules_apply_in_order_first_match_wins():
    assert classify_line("- [Docs](https://github.com/org/repo)") == "link-item"
    assert classify_line("https://github.com/org/repo") == "url"
    assert classify_line("Read more on github.com today") == "domain"
    assert classify_line("⚠️ Careful with this step") == "symbol"
    assert classify_line('<YouTubeEmbed id="abc" />') == "embed"
    assert classify_line("</video>") == "embed"
    assert classify_line("An ordinary sentence.") is None


def test_is_protected_line_matches_classification():
    assert is_protected_line("![logo](logo.svg)")
    assert not is_protected_line("# Heading")


def test_extra_lines_are_protected_with_comment_rule():
    text = "x = 1  # keep me\nPlain prose"
    protector = ContentProtector()

    result = protector.protect(text, extra_lines={1})

    assert result.filtered == "[NOTR-0-KEEP]\nPlain prose"
    assert result.spans[0].rule == COMMENT_RULE


def test_missing_and_only_placeholders():
    protector = ContentProtector()
    result = protector.protect("![a](a.png)\nhttps://x.org")

    assert protector.only_placeholders(result)
    assert protector.missing_placeholders("[NOTR-0-KEEP]", result.placeholders) == [
        "[NOTR-1-KEEP]"
    ]


def test_empty_text_round_trips():
    protector = ContentProtector()
    result = protector.protect("")

    assert result.filtered == ""
    assert result.placeholders == {}
    assert protector.restore("", result.placeholders) == ""
