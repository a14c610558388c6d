"""Remove a path after first renaming it to a random name beside it."""

from __future__ import annotations

import contextlib
import errno
import os
import stat
import string
from typing import Iterator

from .randomness import RandomSource
from .state import RemoveFileFlags, RemoveFileState

_NAME_LENGTH = 14
_ALNUM = frozenset((string.ascii_letters + string.digits).encode("ascii"))


def is_empty_directory(path) -> bool:
    """Whether ``path`` is a readable directory with no entries."""
    try:
        with os.scandir(path) as entries:
            return next(entries, None) is None
    except OSError:
        return False


def _random_alnum(source) -> str:
    while True:
        value = source.random_char()
        if value in _ALNUM:
            return chr(value)


def random_sibling_name(path, source) -> str:
    """Return an unused path in the same directory with a random 14-character name."""
    path = os.fspath(path)
    head, sep, _ = path.rpartition("/")
    prefix = head + sep
    while True:
        candidate = prefix + "".join(_random_alnum(source) for _ in range(_NAME_LENGTH))
        if not os.path.lexists(candidate):
            return candidate


@contextlib.contextmanager
def _source_for(state: RemoveFileState) -> Iterator[RandomSource]:
    if state.random_source is not None:
        yield state.random_source
        return
    with RandomSource() as source:
        yield source


def rename_unlink(path, state: RemoveFileState) -> None:
    """Rename ``path`` to a random sibling name, then remove it.

    Directories must be empty. Raises OSError on failure.
    """
    path = os.fspath(path)
    with _source_for(state) as source:
        new_name = random_sibling_name(path, source)

    info = os.lstat(path)
    if stat.S_ISDIR(info.st_mode) and not is_empty_directory(path):
        # Removal would fail anyway, so leave the name as it is.
        raise OSError(errno.ENOTEMPTY, os.strerror(errno.ENOTEMPTY), path)

    os.rename(path, new_name)

    try:
        info = os.lstat(new_name)
    except OSError:
        raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), new_name) from None

    if stat.S_ISDIR(info.st_mode):
        os.rmdir(new_name)
        return
    if state.unlink_flags & RemoveFileFlags.SYSTEM_DISCARDED:
        os.unlink(new_name)
        return
    os.unlink(new_name)