"""Depth-first removal of a directory tree, with callbacks and cancellation."""

from __future__ import annotations

import contextlib
import enum
import errno
import os
import stat
from dataclasses import dataclass
from typing import Iterator, List, Optional, Set, Tuple

from .rename_unlink import rename_unlink
from .state import (
    OVERWRITE_FLAGS,
    ROOT_LEVEL,
    CallbackResult,
    RemoveFileFlags,
    RemoveFileState,
    WalkEntry,
)
from .sunlink import secure_unlink

# Longest path the slim walker builds, counted in bytes.
_MAX_PATH = 1024

_USER_LOCKS = stat.UF_APPEND | stat.UF_IMMUTABLE
_SYSTEM_LOCKS = stat.SF_APPEND | stat.SF_IMMUTABLE


class _Info(enum.Enum):
    """What the walk found at an entry."""

    D = "directory, pre-order"
    DP = "directory, post-order"
    F = "regular file"
    SL = "symbolic link"
    DEFAULT = "other file"
    NS = "no stat information"
    DNR = "unreadable directory"
    ERR = "error"
    DC = "directory cycle"


def _as_str(path) -> str:
    return os.fsdecode(os.fspath(path))


def _os_error(code: int, path: str) -> OSError:
    return OSError(code, os.strerror(code), path)


def _errno_of(exc: OSError) -> int:
    return exc.errno or errno.EIO


def _identity(info: os.stat_result) -> Tuple[int, int]:
    return info.st_dev, info.st_ino


@dataclass(eq=False)
class _Node:
    path: str
    accpath: str
    level: int
    info: _Info = _Info.NS
    stat: Optional[os.stat_result] = None
    error: int = 0
    number: int = 0
    skip: bool = False
    parent_fd: Optional[int] = None

    @property
    def entry(self) -> WalkEntry:
        return WalkEntry(path=self.path, level=self.level, stat=self.stat, accpath=self.accpath)


class _Walk:
    """Physical, depth-first traversal that visits directories before and after their contents."""

    def __init__(self, root: str, change_dir: bool, one_device: bool) -> None:
        self.root = root
        self.change_dir = change_dir
        self.one_device = one_device
        self.root_dev: Optional[int] = None
        self._ancestors: Set[Tuple[int, int]] = set()
        self._stack: List[Tuple[_Node, Iterator[_Node]]] = []
        self._saved_cwd: Optional[int] = None

    def skip(self, node: _Node) -> None:
        """Do not descend into ``node``."""
        node.skip = True

    def _stat(self, path: str, accpath: str, level: int) -> _Node:
        node = _Node(path, accpath, level)
        try:
            info = os.lstat(accpath)
        except OSError as exc:
            node.info = _Info.NS
            node.error = _errno_of(exc)
            return node
        node.stat = info
        mode = info.st_mode
        if stat.S_ISDIR(mode):
            node.info = _Info.DC if _identity(info) in self._ancestors else _Info.D
        elif stat.S_ISLNK(mode):
            node.info = _Info.SL
        elif stat.S_ISREG(mode):
            node.info = _Info.F
        else:
            node.info = _Info.DEFAULT
        return node

    def _enter(self, node: _Node) -> None:
        fd = os.open(".", os.O_RDONLY)
        try:
            os.chdir(node.accpath)
        except OSError:
            os.close(fd)
            raise
        node.parent_fd = fd

    def _leave(self, node: _Node) -> None:
        fd, node.parent_fd = node.parent_fd, None
        if fd is None:
            return
        try:
            os.fchdir(fd)
        finally:
            os.close(fd)

    def _children(self, node: _Node) -> Optional[List[_Node]]:
        try:
            names = os.listdir(node.accpath)
        except OSError as exc:
            node.info = _Info.DNR
            node.error = _errno_of(exc)
            return None
        if not names:
            return []
        if self.change_dir:
            try:
                self._enter(node)
            except OSError as exc:
                node.info = _Info.ERR
                node.error = _errno_of(exc)
                return None
        base = node.path[:-1] if node.path.endswith("/") else node.path
        children = []
        for name in names:
            child_path = f"{base}/{name}"
            accpath = name if self.change_dir else child_path
            children.append(self._stat(child_path, accpath, node.level + 1))
        return children

    def _release(self) -> None:
        for node, _ in self._stack:
            if node.parent_fd is not None:
                os.close(node.parent_fd)
                node.parent_fd = None
        self._stack.clear()
        if self._saved_cwd is not None:
            try:
                os.fchdir(self._saved_cwd)
            finally:
                os.close(self._saved_cwd)
                self._saved_cwd = None

    def nodes(self) -> Iterator[_Node]:
        """Yield every entry; directories come as D first and as DP last."""
        if self.change_dir:
            self._saved_cwd = os.open(".", os.O_RDONLY)
        try:
            root = self._stat(self.root, self.root, ROOT_LEVEL)
            if root.stat is not None:
                self.root_dev = root.stat.st_dev
            siblings: Iterator[_Node] = iter([root])
            while True:
                node = next(siblings, None)
                if node is None:
                    if not self._stack:
                        return
                    node, siblings = self._stack.pop()
                    self._ancestors.discard(_identity(node.stat))
                    try:
                        self._leave(node)
                    except OSError as exc:
                        node.info = _Info.ERR
                        node.error = _errno_of(exc)
                        yield node
                        return
                    node.info = _Info.DP
                    yield node
                    continue

                yield node
                if node.info is not _Info.D:
                    continue
                if node.skip or (self.one_device and node.stat.st_dev != self.root_dev):
                    node.info = _Info.DP
                    yield node
                    continue

                key = _identity(node.stat)
                self._ancestors.add(key)
                children = self._children(node)
                if not children:
                    self._ancestors.discard(key)
                    if children is not None:
                        node.info = _Info.DP
                    yield node
                    continue
                self._stack.append((node, siblings))
                siblings = iter(children)
        finally:
            self._release()


def _user_locks_stuck(node: _Node) -> bool:
    """Clear user immutable/append flags as root; True when that fails."""
    geteuid = getattr(os, "geteuid", None)
    if geteuid is None or geteuid() != 0 or node.stat is None:
        return False
    flags = getattr(node.stat, "st_flags", 0)
    if not flags & _USER_LOCKS or flags & _SYSTEM_LOCKS:
        return False
    chflags = getattr(os, "chflags", None)
    if chflags is None:
        return False
    try:
        chflags(node.accpath, flags & ~_USER_LOCKS)
    except OSError:
        return True
    return False


def _process(walk: _Walk, node: _Node, state: RemoveFileState) -> int:
    flags = RemoveFileFlags(state.unlink_flags)
    recursive = bool(flags & RemoveFileFlags.RECURSIVE)
    keep_parent = bool(flags & RemoveFileFlags.KEEP_PARENT)
    secure = bool(flags & OVERWRITE_FLAGS)
    path = node.accpath
    info = node.info

    if info is _Info.D:
        # Succeeds only for a directory hard link, which must not be descended.
        try:
            os.unlink(path)
        except OSError:
            pass
        else:
            walk.skip(node)
        return 0
    if info is _Info.DC:
        state.error_num = errno.ELOOP
        return -1
    if info in (_Info.DNR, _Info.ERR, _Info.NS):
        state.error_num = node.error
        return -1

    try:
        if info is _Info.DP:
            if state.runtime_flags == CallbackResult.SKIP:
                state.runtime_flags = 0
                return 0
            if not recursive or (keep_parent and node.level == ROOT_LEVEL):
                return 0
            if secure:
                rename_unlink(path, state)
            elif _user_locks_stuck(node):
                raise _os_error(errno.EACCES, path)
            else:
                os.rmdir(path)
        elif secure:
            secure_unlink(path, state)
        elif _user_locks_stuck(node):
            raise _os_error(errno.EACCES, path)
        else:
            os.unlink(path)
    except OSError as exc:
        state.error_num = _errno_of(exc)
        return -1
    return 0


def tree_walk_remove(path, state: RemoveFileState) -> None:
    """Remove ``path`` as the state's flags ask, calling its callbacks on the way.

    Raises OSError with the errno kept in ``state.error_num`` on failure,
    and with ECANCELED when the state was cancelled.
    """
    path = _as_str(path)
    flags = RemoveFileFlags(state.unlink_flags)
    one_device = not flags & RemoveFileFlags.CROSS_MOUNT
    walk = _Walk(path, change_dir=bool(flags & RemoveFileFlags.ALLOW_LONG_PATHS),
                 one_device=one_device)
    confirm = state.confirm_callback
    status = state.status_callback
    on_error = state.error_callback
    rval = 0

    with contextlib.closing(walk.nodes()) as nodes:
        for node in nodes:
            res = CallbackResult.PROCEED

            # A directory the confirm callback skipped stays, even if empty.
            if node.info is _Info.DP and node.number == CallbackResult.SKIP:
                node.number = 0
                continue
            if (node.info is _Info.DP and one_device and node.stat is not None
                    and node.stat.st_dev != walk.root_dev):
                continue
            if state.cancelled:
                break

            state.recurse_entry = node.entry
            if confirm is not None and node.info is not _Info.DP:
                res = confirm(state, node.path, state.confirm_context)
            if state.cancelled:
                break

            if res == CallbackResult.PROCEED:
                state.error_num = 0
                rval = _process(walk, node, state)
                if state.error_num != 0:
                    # Vanished entries below the root are not the caller's concern.
                    if (state.error_num not in (errno.ENOENT, errno.ENOTDIR)
                            or node.level == ROOT_LEVEL):
                        if on_error is not None:
                            res = on_error(state, node.path, state.error_context)
                            if res in (CallbackResult.PROCEED, CallbackResult.SKIP):
                                rval = 0
                            elif res == CallbackResult.STOP:
                                rval = -1
                        else:
                            res = CallbackResult.STOP
                elif status is not None and node.info is not _Info.D:
                    res = status(state, node.path, state.status_context)

            if node.info is _Info.D and res == CallbackResult.SKIP:
                node.number = CallbackResult.SKIP
            if res == CallbackResult.SKIP or not flags & RemoveFileFlags.RECURSIVE:
                walk.skip(node)
            if res == CallbackResult.STOP or state.cancelled:
                break

    if state.cancelled:
        state.error_num = errno.ECANCELED
        rval = -1
    state.recurse_entry = None
    if rval:
        raise _os_error(state.error_num or errno.EIO, path)


@dataclass
class _Frame:
    path: str
    entries: "os.ScandirIterator"
    dev: int


def _error_handled(path: str, state: RemoveFileState, level: int, exc: OSError) -> bool:
    state.error_num = _errno_of(exc)
    if state.error_num in (errno.ENOENT, errno.ENOTDIR) and level != 0:
        return True
    callback = state.error_callback
    return callback is not None and callback(state, path, state.error_context) != CallbackResult.STOP


def _slim_loop(frames: List[_Frame], state: RemoveFileState, flags: RemoveFileFlags) -> bool:
    keep_parent = bool(flags & RemoveFileFlags.KEEP_PARENT)
    cross_mount = bool(flags & RemoveFileFlags.CROSS_MOUNT)
    while frames:
        if state.cancelled:
            state.error_num = errno.ECANCELED
            return False
        frame = frames[-1]
        level = len(frames) - 1
        try:
            entry = next(frame.entries, None)
        except OSError as exc:
            state.error_num = _errno_of(exc)
            return False

        if entry is None:
            if not (keep_parent and level == 0):
                try:
                    os.rmdir(frame.path)
                except OSError as exc:
                    if not _error_handled(frame.path, state, level, exc):
                        return False
            frames.pop().entries.close()
            continue

        child = f"{frame.path}/{entry.name}"
        if len(os.fsencode(child)) >= _MAX_PATH:
            state.error_num = errno.ENAMETOOLONG
            return False
        try:
            is_dir = entry.is_dir(follow_symlinks=False)
        except OSError:
            continue

        if not is_dir:
            try:
                os.unlink(child)
            except OSError as exc:
                if not _error_handled(child, state, level, exc):
                    return False
            continue

        if not cross_mount:
            try:
                child_dev = os.stat(child).st_dev
            except OSError as exc:
                state.error_num = _errno_of(exc)
                return False
            if child_dev != frame.dev:
                continue
        # Empty directories go at once, without being opened.
        try:
            os.rmdir(child)
            continue
        except OSError:
            pass
        try:
            entries = os.scandir(child)
        except OSError:
            continue
        try:
            child_dev = os.stat(child).st_dev
        except OSError:
            entries.close()
            continue
        frames.append(_Frame(child, entries, child_dev))
    return True


def tree_walk_remove_slim(path, state: RemoveFileState) -> None:
    """Remove the directory ``path`` and its contents using little memory.

    Confirm and status callbacks, overwriting and long paths are not
    supported and raise OSError(EINVAL). Other failures raise OSError with
    the errno kept in ``state.error_num``.
    """
    path = _as_str(path)
    flags = RemoveFileFlags(state.unlink_flags)
    unsupported = flags & (OVERWRITE_FLAGS | RemoveFileFlags.ALLOW_LONG_PATHS)
    if state.confirm_callback or state.status_callback or unsupported:
        state.error_num = errno.EINVAL
        raise _os_error(errno.EINVAL, path)

    try:
        entries = os.scandir(path)
    except OSError as exc:
        state.error_num = _errno_of(exc)
        raise _os_error(state.error_num, path) from None
    try:
        dev = os.stat(path).st_dev
    except OSError as exc:
        entries.close()
        state.error_num = _errno_of(exc)
        raise _os_error(state.error_num, path) from None

    frames = [_Frame(path, entries, dev)]
    try:
        ok = _slim_loop(frames, state, flags)
    finally:
        for frame in frames:
            frame.entries.close()
    if not ok:
        raise _os_error(state.error_num or errno.EIO, path)