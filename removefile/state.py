"""Flags, callback results and the state object shared by a removal."""

from __future__ import annotations

import enum
import errno
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

if TYPE_CHECKING:
    from .randomness import RandomSource


class RemoveFileFlags(enum.IntFlag):
    """Options that control how a path is removed."""

    RECURSIVE = 1 << 0
    KEEP_PARENT = 1 << 1
    SECURE_7_PASS = 1 << 2
    SECURE_35_PASS = 1 << 3
    SECURE_1_PASS = 1 << 4
    SECURE_3_PASS = 1 << 5
    SECURE_1_PASS_ZERO = 1 << 6
    CROSS_MOUNT = 1 << 7
    ALLOW_LONG_PATHS = 1 << 8
    CLEAR_PURGEABLE = 1 << 9
    SYSTEM_DISCARDED = 1 << 10
    RECURSIVE_SLIM = 1 << 11


# Flags that ask for random data to be written before removal.
SECURE_FLAGS = (
    RemoveFileFlags.SECURE_7_PASS
    | RemoveFileFlags.SECURE_35_PASS
    | RemoveFileFlags.SECURE_1_PASS
    | RemoveFileFlags.SECURE_3_PASS
)

# Every flag that makes a file be overwritten before it is unlinked.
OVERWRITE_FLAGS = SECURE_FLAGS | RemoveFileFlags.SECURE_1_PASS_ZERO


class CallbackResult(enum.IntEnum):
    """What a callback tells the walker to do next."""

    PROCEED = 0
    SKIP = 1
    STOP = 2


class StateKey(enum.IntEnum):
    """Keys accepted by :meth:`RemoveFileState.get` and :meth:`RemoveFileState.set`."""

    CONFIRM_CALLBACK = 1
    CONFIRM_CONTEXT = 2
    ERROR_CALLBACK = 3
    ERROR_CONTEXT = 4
    ERRNO = 5
    STATUS_CALLBACK = 6
    STATUS_CONTEXT = 7
    FTSENT = 8


ROOT_LEVEL = 0


@dataclass
class WalkEntry:
    """The entry a tree walk is currently looking at."""

    path: str
    level: int = ROOT_LEVEL
    stat: Optional[os.stat_result] = None
    accpath: Optional[str] = None

    @property
    def is_root(self) -> bool:
        return self.level == ROOT_LEVEL


Callback = Callable[["RemoveFileState", str, Any], int]

_ATTRIBUTES: Dict[StateKey, str] = {
    StateKey.CONFIRM_CALLBACK: "confirm_callback",
    StateKey.CONFIRM_CONTEXT: "confirm_context",
    StateKey.ERROR_CALLBACK: "error_callback",
    StateKey.ERROR_CONTEXT: "error_context",
    StateKey.ERRNO: "error_num",
    StateKey.STATUS_CALLBACK: "status_callback",
    StateKey.STATUS_CONTEXT: "status_context",
}


def _invalid(message: str) -> OSError:
    return OSError(errno.EINVAL, message)


def _key(key) -> StateKey:
    try:
        return StateKey(key)
    except ValueError:
        raise _invalid(f"unknown state key {key!r}") from None


@dataclass
class RemoveFileState:
    """Callbacks, progress and resources of one or more removals."""

    confirm_callback: Optional[Callback] = None
    confirm_context: Any = None
    error_callback: Optional[Callback] = None
    error_context: Any = None
    error_num: int = 0
    status_callback: Optional[Callback] = None
    status_context: Any = None
    recurse_entry: Optional[WalkEntry] = None
    runtime_flags: int = 0
    unlink_flags: RemoveFileFlags = RemoveFileFlags(0)
    cancelled: bool = False
    random_source: Optional["RandomSource"] = None
    buffer: Optional[bytearray] = None

    def get(self, key):
        """Return the value stored under ``key``; raise OSError(EINVAL) if unknown."""
        key = _key(key)
        if key is StateKey.FTSENT:
            if self.recurse_entry is None:
                raise _invalid("no entry is being walked")
            return self.recurse_entry
        return getattr(self, _ATTRIBUTES[key])

    def set(self, key, value) -> None:
        """Store ``value`` under ``key``; raise OSError(EINVAL) if not settable."""
        key = _key(key)
        if key is StateKey.FTSENT:
            raise _invalid("the walked entry cannot be set")
        if key is StateKey.ERRNO:
            value = int(value)
        setattr(self, _ATTRIBUTES[key], value)

    def cancel(self) -> None:
        """Ask a removal running with this state to stop."""
        self.cancelled = True

    def close(self) -> None:
        """Release the random source and the write buffer."""
        if self.random_source is not None:
            self.random_source.close()
            self.random_source = None
        self.buffer = None

    def __enter__(self) -> "RemoveFileState":
        return self

    def __exit__(self, *args) -> None:
        self.close()