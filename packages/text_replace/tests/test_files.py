from __future__ import annotations

import logging
import re
from pathlib import Path

import pytest

import text_replace.files as files
from text_replace import (
    ConfigurationError,
    LiteralFilter,
    MatchFound,
    PatternFilter,
    iter_files,
    replace_text_in_file,
    replace_text_in_files,
    search_text_in_files,
)


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_replace_text_in_file_shrinks_and_truncates(tmp_path: Path) -> None:
    target = _write(tmp_path / "a.txt", "foo and foo and foo\n")

    replace_text_in_file(target, [LiteralFilter("foo", "x")])

    assert target.read_text(encoding="utf-8") == "x and x and x\n"


def test_replace_text_in_file_with_small_chunks(tmp_path: Path) -> None:
    text = "prefix " + "-value-" * 500 + " suffix"
    target = _write(tmp_path / "big.txt", text)

    replace_text_in_file(target, [LiteralFilter("value", "v")], chunk_size=16)

    assert target.read_text(encoding="utf-8") == text.replace("value", "v")


def test_replace_text_in_file_longer_replacement_within_one_chunk(tmp_path: Path, caplog) -> None:
    target = _write(tmp_path / "short.txt", "a-a-a")

    with caplog.at_level(logging.WARNING, logger="text_replace.files"):
        replace_text_in_file(target, [LiteralFilter("a", "abc")])

    assert target.read_text(encoding="utf-8") == "abc-abc-abc"
    assert "overtook" not in caplog.text


def test_replace_text_in_file_warns_when_output_overtakes_input(tmp_path: Path, caplog) -> None:
    target = _write(tmp_path / "grow.txt", "a" * 64)

    with caplog.at_level(logging.WARNING, logger="text_replace.files"):
        replace_text_in_file(target, [LiteralFilter("a", "bbbb")], chunk_size=8)

    assert "overtook unread input" in caplog.text


def test_iter_files_respects_dot_and_exclude(tmp_path: Path) -> None:
    _write(tmp_path / "a.txt", "")
    _write(tmp_path / "sub" / "b.txt", "")
    _write(tmp_path / "skip" / "c.txt", "")
    _write(tmp_path / ".hidden" / "d.txt", "")
    _write(tmp_path / "e.md", "")

    found = [p.relative_to(tmp_path).as_posix() for p in iter_files(tmp_path, ["**/*.txt"], ["skip"])]
    assert found == ["a.txt", "sub/b.txt"]

    with_dot = [
        p.relative_to(tmp_path).as_posix()
        for p in iter_files(tmp_path, ["**/*.txt"], ["skip"], dot=True)
    ]
    assert ".hidden/d.txt" in with_dot


def test_iter_files_skips_symlinks_unless_followed(tmp_path: Path) -> None:
    real = _write(tmp_path / "real.txt", "")
    (tmp_path / "link.txt").symlink_to(real)

    assert [p.name for p in iter_files(tmp_path, ["*.txt"])] == ["real.txt"]
    assert [p.name for p in iter_files(tmp_path, ["*.txt"], follow_symlinks=True)] == [
        "link.txt",
        "real.txt",
    ]


def test_replace_text_in_files(tmp_path: Path) -> None:
    _write(tmp_path / "one.txt", "hello OLD\n")
    _write(tmp_path / "pkg" / "two.txt", "OLD OLD\n")
    untouched = _write(tmp_path / "three.md", "OLD\n")

    processed = replace_text_in_files(tmp_path, ["**/*.txt"], [LiteralFilter("OLD", "NEW")])

    assert sorted(p.name for p in processed) == ["one.txt", "two.txt"]
    assert (tmp_path / "one.txt").read_text(encoding="utf-8") == "hello NEW\n"
    assert (tmp_path / "pkg" / "two.txt").read_text(encoding="utf-8") == "NEW NEW\n"
    assert untouched.read_text(encoding="utf-8") == "OLD\n"


def test_replace_text_in_files_validates_before_touching_files(tmp_path: Path) -> None:
    target = _write(tmp_path / "one.txt", "value")

    with pytest.raises(ConfigurationError):
        replace_text_in_files(tmp_path, ["*.txt"], [PatternFilter(re.compile("v"))])

    assert target.read_text(encoding="utf-8") == "value"


def test_replace_text_in_files_attempts_every_file_before_failing(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    _write(tmp_path / "a.txt", "x")
    _write(tmp_path / "b.txt", "x")
    _write(tmp_path / "c.txt", "x")
    original = files.replace_text_in_file

    def _flaky(path, filters, **kwargs):
        if Path(path).name == "b.txt":
            raise OSError("disk on fire")
        original(path, filters, **kwargs)

    monkeypatch.setattr(files, "replace_text_in_file", _flaky)

    with pytest.raises(OSError, match="disk on fire"):
        replace_text_in_files(tmp_path, ["*.txt"], [LiteralFilter("x", "y")])

    assert (tmp_path / "a.txt").read_text(encoding="utf-8") == "y"
    assert (tmp_path / "c.txt").read_text(encoding="utf-8") == "y"


def test_search_text_in_files_reports_only_matching_files(tmp_path: Path) -> None:
    _write(tmp_path / "a.txt", "one needle, two needle")
    _write(tmp_path / "b.txt", "hay")

    results = search_text_in_files(tmp_path, ["*.txt"], [LiteralFilter("needle", "needle")])

    assert [r.path.name for r in results] == ["a.txt"]
    assert len(results[0].matches) == 2
    assert results[0].matches[0] == MatchFound(position=4, length=6)
    assert (tmp_path / "a.txt").read_text(encoding="utf-8") == "one needle, two needle"


def test_replace_text_in_file_keeps_invalid_utf8_bytes(tmp_path: Path) -> None:
    target = tmp_path / "mixed.bin"
    target.write_bytes(b"foo " * 40 + b"\xff\xfe tail")

    replace_text_in_file(target, [LiteralFilter("foo", "x")], chunk_size=16)

    assert target.read_bytes() == b"x " * 40 + b"\xff\xfe tail"


def test_replace_text_in_files_rewrites_binary_launchers(tmp_path: Path) -> None:
    old = "/tmp/template/.venv"
    head = b"\x7fELF\x02\x01\x01\x00" + bytes(range(0x80, 0xC0))
    launcher = tmp_path / "bin" / "tool"
    launcher.parent.mkdir()
    launcher.write_bytes(head + b"#!" + old.encode() + b"/bin/python\x00\x80\x81" + head)
    script = _write(tmp_path / "bin" / "activate", f'VIRTUAL_ENV="{old}"\n')

    processed = replace_text_in_files(tmp_path, ["bin/*"], [LiteralFilter(old, "/sandbox/.venv")])

    assert sorted(p.name for p in processed) == ["activate", "tool"]
    assert launcher.read_bytes() == head + b"#!/sandbox/.venv/bin/python\x00\x80\x81" + head
    assert script.read_text(encoding="utf-8") == 'VIRTUAL_ENV="/sandbox/.venv"\n'


def test_replace_text_in_file_failure_before_output_leaves_file_untouched(tmp_path: Path) -> None:
    target = _write(tmp_path / "a.txt", "boom and more")

    def _explode(match: re.Match[str]) -> str:
        raise RuntimeError("bad replacement")

    with pytest.raises(RuntimeError, match="bad replacement"):
        replace_text_in_file(target, [PatternFilter(re.compile("boom"), _explode)], max_match_length=4)

    assert target.read_text(encoding="utf-8") == "boom and more"


def test_replace_text_in_file_failure_after_output_truncates(tmp_path: Path, caplog) -> None:
    target = _write(tmp_path / "a.txt", "ab " * 40 + "boom tail")

    def _replace(match: re.Match[str]) -> str:
        if match.group() == "boom":
            raise RuntimeError("bad replacement")
        return "x"

    with caplog.at_level(logging.ERROR, logger="text_replace.files"):
        with pytest.raises(RuntimeError, match="bad replacement"):
            replace_text_in_file(
                target,
                [PatternFilter(re.compile("ab|boom"), _replace)],
                max_match_length=4,
                chunk_size=16,
            )

    rewritten = target.read_text(encoding="utf-8")
    assert rewritten
    assert set(rewritten.split()) == {"x"}
    assert "truncated" in caplog.text


@pytest.mark.parametrize("chunk_size", [1, 3, 7, 64])
def test_search_text_in_file_does_not_modify_and_counts_across_chunks(tmp_path: Path, chunk_size: int) -> None:
    text = "needle-hay-" * 12 + "need" + "le"
    target = _write(tmp_path / "a.txt", text)

    result = files.search_text_in_file(target, [LiteralFilter("needle", "needle")], chunk_size=chunk_size)

    assert len(result.matches) == 13
    assert all(match.length == 6 for match in result.matches)
    assert target.read_text(encoding="utf-8") == text
