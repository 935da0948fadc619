import pathlib

import pytest

from tandem.cli import derive_output_path, main, parse_line_numbers
from tandem.errors import TandemError


def test_parse_line_numbers():
    assert parse_line_numbers("3, 5,,7") == [3, 5, 7]
    with pytest.raises(TandemError):
        parse_line_numbers("2,x")
    with pytest.raises(TandemError):
        parse_line_numbers("0")


def test_derive_output_path_appends_language():
    path = derive_output_path(pathlib.Path("/docs/article.md"), "Simplified Chinese")

    assert path == pathlib.Path("/docs/article_Simplified-Chinese.md")


def test_comments_command_lists_comment_lines(tmp_path, capsys):
    source = tmp_path / "code.py"
    source.write_text("# one\nx = 1\n// two", encoding="utf-8")

    assert main(["comments", str(source)]) == 0

    out = capsys.readouterr().out
    assert "2 comments found" in out
    assert "one" in out and "two" in out


def test_clean_command_writes_cleaned_file(tmp_path):
    source = tmp_path / "dirty.md"
    target = tmp_path / "clean.md"
    source.write_text("Intro\n[NOTR - 1 - KEEP]\n\n\n\nOutro", encoding="utf-8")

    assert main(["clean", str(source), "-o", str(target)]) == 0
    assert target.read_text(encoding="utf-8") == "Intro\n\nOutro"

    assert main(["clean", str(source), "-o", str(target)]) == 1


def test_progress_command(tmp_path, capsys):
    source = tmp_path / "en.md"
    target = tmp_path / "de.md"
    source.write_text("Hello\nWorld", encoding="utf-8")
    target.write_text("Hallo\nWorld", encoding="utf-8")

    assert main(["progress", str(source), str(target)]) == 0

    out = capsys.readouterr().out
    assert "1/2 lines translated (50%)" in out
    assert "Untranslated lines: 2" in out


def test_translate_with_offline_provider(tmp_path, capsys):
    source = tmp_path / "article.md"
    source.write_text("Hello\n![img](a.png)", encoding="utf-8")

    code = main(["translate", str(source), "-t", "German", "-p", "echo"])

    assert code == 0
    written = tmp_path / "article_German.md"
    assert written.read_text(encoding="utf-8") == "Hello\n![img](a.png)"
    out = capsys.readouterr().out
    assert "Translation complete." in out
    assert "Protected lines: 1" in out


def test_translate_refuses_to_overwrite(tmp_path, capsys):
    source = tmp_path / "article.md"
    source.write_text("Hello", encoding="utf-8")
    (tmp_path / "article_German.md").write_text("old", encoding="utf-8")

    code = main(["translate", str(source), "-t", "German", "-p", "echo"])

    assert code == 1
    assert "already exists" in capsys.readouterr().out


def test_invalid_comment_numbers_exit_with_usage_error(tmp_path):
    source = tmp_path / "article.md"
    source.write_text("Hello", encoding="utf-8")

    with pytest.raises(SystemExit) as excinfo:
        main(["translate", str(source), "-t", "de", "-p", "echo", "--comments", "a"])

    assert excinfo.value.code == 2


@pytest.mark.parametrize(
    "command",
    [
        ["comments", "{bad}"],
        ["clean", "{bad}"],
        ["progress", "{bad}", "{good}"],
        ["translate", "{bad}", "-t", "German", "-p", "echo"],
    ],
)
def test_undecodable_input_exits_with_error(tmp_path, capsys, command):
    bad = tmp_path / "latin1.md"
    good = tmp_path / "ok.md"
    bad.write_bytes(b"\xff\xfe")
    good.write_text("Hello", encoding="utf-8")

    argv = [arg.format(bad=bad, good=good) for arg in command]

    assert main(argv) == 1
    assert "is not UTF-8 text" in capsys.readouterr().out
    assert not (tmp_path / "latin1_German.md").exists()
