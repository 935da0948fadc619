import itertools
import random

import pytest

from tandem.sanitizer import CANONICAL_PLACEHOLDER, cleanup, has_corrupted_placeholders


FRAGMENTS = [
    "[NOTR-",
    "1",
    "-KEEP]",
    "_",
    "__",
    " ",
    "\n",
    "\n\n\n",
    "text",
    "【",
    "notr - 2 - keep",
    "Protected_1_2",
    "<YouTubeEmbed />",
    "```",
]


def generated_texts():
    yield from ("".join(parts) for parts in itertools.product(FRAGMENTS, repeat=3))
    rng = random.Random(20240611)
    for _ in range(300):
        yield "".join(rng.choice(FRAGMENTS) for _ in range(rng.randint(4, 12)))


SAMPLES = [
    "",
    "Plain text only",
    "Intro\n[NOTR-3-KEEP]\nOutro",
    "Intro\n[ NOTR - 3 - KEEP ]\n\n\n\nOutro",
    "Line [notr–12–keep] with a mangled token",
    "【NOTR-4-KEEP】 full-width brackets",
    "___TRANSLATION_PROTECT_1_2___\n_<YouTubeEmbed id=\"x\" />",
    "__ Protected_1_2__ text\n\n \n\nmore",
    "Keep __bold__ and snake_case_names intact",
]


@pytest.mark.parametrize("text", SAMPLES)
def test_cleanup_is_idempotent(text):
    once = cleanup(text)
    assert cleanup(once) == once


def test_cleanup_is_idempotent_on_generated_fragments():
    for text in generated_texts():
        once = cleanup(text)
        assert cleanup(once) == once, repr(text)
        assert not CANONICAL_PLACEHOLDER.search(once), repr(text)
        assert not has_corrupted_placeholders(once), repr(text)
        assert "\n\n\n" not in once, repr(text)


def test_cleanup_removes_canonical_tokens_and_collapses_blank_lines():
    assert cleanup("Intro\n[NOTR-3-KEEP]\n\n\nOutro") == "Intro\n\nOutro"


def test_cleanup_removes_mangled_tokens():
    assert cleanup("Before [ notr - 7 - keep ] after") == "Before  after"
    assert "NOTR" not in cleanup("【NOTR—4—KEEP】 text")


def test_cleanup_removes_legacy_tokens_and_leading_underscores():
    text = "___TRANSLATION_PROTECT_1_2___\n_<YouTubeEmbed id=\"x\" />"

    assert cleanup(text) == '<YouTubeEmbed id="x" />'


def test_cleanup_leaves_ordinary_underscores_alone():
    text = "Keep __bold__ and snake_case_names intact"

    assert cleanup(text) == text


def test_cleanup_handles_fragments_joined_by_a_previous_removal():
    assert "NOTR" not in cleanup("[NOTR-[NOTR-1-KEEP]2-KEEP]")


def test_intact_tokens_are_not_corrupted():
    assert not has_corrupted_placeholders("Text\n[NOTR-0-KEEP]\nMore")
    assert not has_corrupted_placeholders("Nothing special here")


def test_mangled_tokens_are_detected():
    assert has_corrupted_placeholders("[NOTR - 0 - KEEP]")
    assert has_corrupted_placeholders("notr-5-keep")
    assert has_corrupted_placeholders("__ Protected_1_2__")


def test_detection_does_not_modify_input():
    text = "[ NOTR-1-KEEP ]"
    has_corrupted_placeholders(text)
    assert text == "[ NOTR-1-KEEP ]"
