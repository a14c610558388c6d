"""Entry points: remove a path, remove relative to a directory, cancel a removal."""

from __future__ import annotations

import errno
import os
import stat
from typing import Optional

from .randomness import RandomSource
from .state import SECURE_FLAGS, RemoveFileFlags, RemoveFileState
from .tree_walker import tree_walk_remove, tree_walk_remove_slim

try:
    import fcntl
except ImportError:  # pragma: no cover - platforms without fcntl
    fcntl = None

# Longest accepted path, in bytes, counting the terminating NUL.
PATH_MAX = 1024
# Longest accepted path when ALLOW_LONG_PATHS is given.
LONG_PATH_MAX = 8192


def _os_error(code: int, path=None) -> OSError:
    if path is None:
        return OSError(code, os.strerror(code))
    return OSError(code, os.strerror(code), path)


def _byte_length(path: str) -> int:
    return len(os.fsencode(path))


def _canonical(path: str, max_len: int) -> str:
    """Return the absolute, resolved form of a directory path; other paths unchanged."""
    try:
        info = os.lstat(path)
    except OSError:
        return path
    if not stat.S_ISDIR(info.st_mode):
        return path
    resolved = os.path.realpath(path)
    if _byte_length(resolved) >= max_len:
        return path
    return resolved


def _prepare_random(state: RemoveFileState) -> None:
    source = state.random_source
    if source is not None and not source.closed:
        return
    state.random_source = RandomSource(seed=os.getpid())


def removefile(path, state: Optional[RemoveFileState] = None, flags=0) -> None:
    """Remove ``path`` as ``flags`` ask, using ``state`` for callbacks and cancellation.

    Raises OSError on failure: EINVAL for a missing path, ENAMETOOLONG for a
    path that is too long, and the walker's error otherwise.
    """
    if path is None:
        raise _os_error(errno.EINVAL)
    path = os.fsdecode(os.fspath(path))
    flags = RemoveFileFlags(flags)
    max_len = LONG_PATH_MAX if flags & RemoveFileFlags.ALLOW_LONG_PATHS else PATH_MAX
    if _byte_length(path) >= max_len:
        raise _os_error(errno.ENAMETOOLONG, path)

    local_state = state is None
    if local_state:
        state = RemoveFileState()
    try:
        state.cancelled = False
        state.unlink_flags = flags
        if flags & SECURE_FLAGS:
            _prepare_random(state)

        target = _canonical(path, max_len)
        if flags & RemoveFileFlags.RECURSIVE_SLIM:
            tree_walk_remove_slim(target, state)
        else:
            tree_walk_remove(target, state)
    finally:
        if local_state:
            state.close()


def removefile_cancel(state: Optional[RemoveFileState]) -> None:
    """Ask the removal running with ``state`` to stop; EINVAL without a state."""
    if state is None:
        raise _os_error(errno.EINVAL)
    state.cancel()


def _directory_path(fd: int) -> str:
    get_path = getattr(fcntl, "F_GETPATH", None) if fcntl is not None else None
    if get_path is not None:
        buffer = fcntl.fcntl(fd, get_path, bytes(PATH_MAX))
        return os.fsdecode(buffer.split(b"\0", 1)[0])
    for link in (f"/proc/self/fd/{fd}", f"/dev/fd/{fd}"):
        try:
            return os.readlink(link)
        except OSError:
            continue
    raise _os_error(errno.ENOTSUP)


def removefileat(dir_fd: Optional[int], path, state: Optional[RemoveFileState] = None,
                 flags=0) -> None:
    """Remove ``path`` relative to the directory open as ``dir_fd``.

    Absolute paths, and a ``dir_fd`` of None, act like :func:`removefile`.
    Raises OSError: ENOTDIR when ``dir_fd`` is not a directory and
    ENAMETOOLONG when the joined path is too long.
    """
    if path is None:
        raise _os_error(errno.EINVAL)
    path = os.fsdecode(os.fspath(path))
    if path.startswith("/") or dir_fd is None:
        removefile(path, state, flags)
        return

    info = os.fstat(dir_fd)
    if not stat.S_ISDIR(info.st_mode):
        raise _os_error(errno.ENOTDIR)

    joined = f"{_directory_path(dir_fd)}/{path}"
    if _byte_length(joined) >= PATH_MAX:
        raise _os_error(errno.ENAMETOOLONG, joined)
    removefile(joined, state, flags)