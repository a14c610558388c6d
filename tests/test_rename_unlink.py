import errno
import os

import pytest

from removefile.randomness import RandomSource
from removefile.rename_unlink import (
    is_empty_directory,
    random_sibling_name,
    rename_unlink,
)
from removefile.state import RemoveFileState


class _Scripted:
    def __init__(self, data: bytes):
        self._values = iter(data)

    def random_char(self):
        return next(self._values)


def test_is_empty_directory(tmp_path):
    empty = tmp_path / "empty"
    empty.mkdir()
    full = tmp_path / "full"
    full.mkdir()
    (full / "child").write_text("x")
    assert is_empty_directory(empty) is True
    assert is_empty_directory(full) is False
    assert is_empty_directory(tmp_path / "missing") is False


def test_sibling_name_skips_non_alnum(tmp_path):
    base = str(tmp_path / "victim")
    source = _Scripted(b"!@" + bytes([200]) + b"a" * 14)
    name = random_sibling_name(base, source)
    assert name == str(tmp_path) + "/" + "a" * 14


def test_sibling_name_retries_on_collision(tmp_path):
    (tmp_path / ("a" * 14)).write_text("taken")
    source = _Scripted(b"a" * 14 + b"b" * 14)
    name = random_sibling_name(str(tmp_path / "victim"), source)
    assert name == str(tmp_path) + "/" + "b" * 14


def test_sibling_name_without_directory(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert random_sibling_name("file.txt", _Scripted(b"Z9" * 7)) == "Z9" * 7


def test_sibling_name_with_real_source(tmp_path):
    with RandomSource() as source:
        name = random_sibling_name(str(tmp_path / "x"), source)
    directory, base = os.path.split(name)
    assert directory == str(tmp_path)
    assert len(base) == 14
    assert base.isalnum() and base.isascii()
    assert not os.path.lexists(name)


def test_removes_regular_file(tmp_path):
    target = tmp_path / "woot"
    target.write_text("Hello World\n")
    assert is_empty_directory(tmp_path) is False
    rename_unlink(str(target), RemoveFileState())
    assert is_empty_directory(tmp_path) is True
    assert os.listdir(tmp_path) == []


def test_removes_empty_directory(tmp_path):
    target = tmp_path / "bar"
    target.mkdir()
    assert is_empty_directory(tmp_path) is False
    rename_unlink(str(target), RemoveFileState())
    assert is_empty_directory(tmp_path) is True
    assert os.listdir(tmp_path) == []


def test_removes_symlink_not_target(tmp_path):
    target = tmp_path / "target"
    target.write_text("data")
    link = tmp_path / "link"
    os.symlink(target, link)
    rename_unlink(str(link), RemoveFileState())
    assert os.listdir(tmp_path) == ["target"]


def test_non_empty_directory_is_left_alone(tmp_path):
    target = tmp_path / "baz"
    target.mkdir()
    (target / "woot").write_text("x")
    with pytest.raises(OSError) as info:
        rename_unlink(str(target), RemoveFileState())
    assert info.value.errno == errno.ENOTEMPTY
    assert sorted(os.listdir(tmp_path)) == ["baz"]
    assert os.listdir(target) == ["woot"]


def test_missing_path_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        rename_unlink(str(tmp_path / "missing"), RemoveFileState())


def test_uses_state_random_source_without_closing(tmp_path):
    target = tmp_path / "file"
    target.write_text("x")
    source = RandomSource()
    state = RemoveFileState(random_source=source)
    rename_unlink(str(target), state)
    assert source.closed is False
    assert os.listdir(tmp_path) == []
    state.close()
    assert source.closed is True