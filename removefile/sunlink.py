"""Overwrite a regular file's contents before unlinking it."""

from __future__ import annotations

import contextlib
import enum
import errno
import io
import os
import stat
import sys
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

from .randomness import RandomSource
from .rename_unlink import rename_unlink
from .state import RemoveFileFlags, RemoveFileState

try:
    import fcntl
except ImportError:  # pragma: no cover - platforms without fcntl
    fcntl = None

# Largest write buffer, matching the file system's largest buffer size.
MAX_BUFFER_SIZE = 1 << 20

# Room beyond the logical buffer so a 3-byte pattern can start 0..2 bytes in.
_BUFFER_SLACK = 4

_MAX_PATH = 1024
_RESOURCE_FORK = "/..namedfork/rsrc"
_U32 = 0xFFFFFFFF

_FLUSHING_FLAGS = (
    RemoveFileFlags.SECURE_7_PASS
    | RemoveFileFlags.SECURE_35_PASS
    | RemoveFileFlags.SECURE_3_PASS
)

_PROTECTED_FLAGS = (
    stat.UF_IMMUTABLE
    | stat.UF_APPEND
    | stat.UF_NOUNLINK
    | stat.SF_IMMUTABLE
    | stat.SF_APPEND
    | stat.SF_NOUNLINK
)


class PassKind(enum.IntEnum):
    """What one overwrite pass writes."""

    SINGLE = 0
    RANDOM = 1
    TRIPLE = 2


@dataclass(frozen=True)
class OverwritePass:
    """One pass over the file: random data, one byte, or a 3-byte pattern."""

    kind: PassKind
    pattern: Tuple[int, ...] = ()


def _random(count: int) -> List[OverwritePass]:
    return [OverwritePass(PassKind.RANDOM)] * count


def _byte(value: int) -> OverwritePass:
    return OverwritePass(PassKind.SINGLE, (value,))


def _triple(byte1: int, byte2: int, byte3: int) -> OverwritePass:
    return OverwritePass(PassKind.TRIPLE, (byte1, byte2, byte3))


def buffer_size(file_size: int, block_size: int) -> int:
    """Return the write buffer size for a file: whole blocks, capped at MAX_BUFFER_SIZE."""
    if block_size <= 0:
        raise ValueError("block size must be positive")
    if file_size < 0:
        raise ValueError("file size must not be negative")
    size = (((file_size // block_size) & _U32) * block_size) & _U32
    if file_size % block_size:
        size = (size + block_size) & _U32
    elif size < block_size:
        size = block_size
    return min(size, MAX_BUFFER_SIZE)


def triple_pattern(byte1: int, byte2: int, byte3: int, length: int) -> bytes:
    """Return ``length`` bytes repeating ``byte1, byte2, byte3``."""
    unit = bytes((byte1, byte2, byte3))
    if length < 0:
        raise ValueError("length must not be negative")
    return (unit * (length // 3 + 1))[:length]


def overwrite_passes(flags) -> List[OverwritePass]:
    """Return the passes the strongest requested overwrite scheme performs."""
    flags = RemoveFileFlags(flags)
    if flags & RemoveFileFlags.SECURE_35_PASS:
        return [
            *_random(4),
            _byte(0x55),
            _byte(0xAA),
            _triple(0x92, 0x49, 0x24),
            _triple(0x49, 0x24, 0x92),
            _triple(0x24, 0x92, 0x49),
            *(_byte(value) for value in range(0x00, 0x100, 0x11)),
            _triple(0x92, 0x49, 0x24),
            _triple(0x49, 0x24, 0x92),
            _triple(0x24, 0x92, 0x49),
            _triple(0x6D, 0xB6, 0xDB),
            _triple(0xB6, 0xDB, 0x6D),
            _triple(0xDB, 0x6D, 0xB6),
            *_random(4),
        ]
    if flags & RemoveFileFlags.SECURE_7_PASS:
        return [
            _byte(0xF6),
            _byte(0x00),
            _byte(0xFF),
            *_random(1),
            _byte(0x00),
            _byte(0xFF),
            *_random(1),
        ]
    if flags & RemoveFileFlags.SECURE_3_PASS:
        return [*_random(2), _byte(0xAA)]
    if flags & RemoveFileFlags.SECURE_1_PASS:
        return _random(1)
    if flags & RemoveFileFlags.SECURE_1_PASS_ZERO:
        return [_byte(0x00)]
    return []


@contextlib.contextmanager
def _random_source(state: RemoveFileState, needed: bool) -> Iterator[Optional[RandomSource]]:
    if state.random_source is not None or not needed:
        yield state.random_source
        return
    with RandomSource() as source:
        yield source


def _prepare_buffer(state: RemoveFileState, file_size: int, block_size: int) -> int:
    size = buffer_size(file_size, block_size)
    needed = size + _BUFFER_SLACK
    if state.buffer is None or len(state.buffer) < needed:
        state.buffer = bytearray(needed)
    return size


def _flush(fileobj) -> None:
    fileobj.flush()
    try:
        fd = fileobj.fileno()
    except (AttributeError, io.UnsupportedOperation):
        return
    full_sync = getattr(fcntl, "F_FULLFSYNC", None) if fcntl is not None else None
    with contextlib.suppress(OSError):
        if full_sync is not None:
            try:
                fcntl.fcntl(fd, full_sync)
                return
            except OSError:
                pass
        os.fsync(fd)


def _write(fileobj, data) -> int:
    written = fileobj.write(data)
    return written if written and written > 0 else 0


def _run_pass(fileobj, file_size: int, size: int, step: OverwritePass,
              state: RemoveFileState, source: Optional[RandomSource]) -> None:
    if state.cancelled:
        return
    buffer = state.buffer
    if step.kind is PassKind.SINGLE:
        buffer[:size] = bytes(step.pattern) * size
    elif step.kind is PassKind.TRIPLE:
        buffer[:] = triple_pattern(*step.pattern, len(buffer))

    with memoryview(buffer) as view:
        fileobj.seek(0)
        count = 0
        while count < file_size - size:
            start = 0
            if step.kind is PassKind.RANDOM:
                buffer[:size] = source.randomize(size)
            elif step.kind is PassKind.TRIPLE:
                start = count % 3
            count += _write(fileobj, view[start:start + size])
            if state.cancelled:
                return
        remaining = file_size - count
        start = 0
        if step.kind is PassKind.RANDOM:
            buffer[:remaining] = source.randomize(remaining)
        elif step.kind is PassKind.TRIPLE:
            start = count % 3
        _write(fileobj, view[start:start + remaining])

    if state.unlink_flags & _FLUSHING_FLAGS:
        _flush(fileobj)
    fileobj.seek(0)


def overwrite_file(fileobj, file_size: int, block_size: int, state: RemoveFileState) -> None:
    """Overwrite the first ``file_size`` bytes of ``fileobj`` as the state's flags ask.

    Stops early, leaving the file partly written, once the state is cancelled.
    """
    size = _prepare_buffer(state, file_size, block_size)
    passes = overwrite_passes(state.unlink_flags)
    needs_random = any(step.kind is PassKind.RANDOM for step in passes)
    with _random_source(state, needs_random) as source:
        for step in passes:
            _run_pass(fileobj, file_size, size, step, state, source)


def _block_size(info: os.stat_result) -> int:
    return getattr(info, "st_blksize", 0) or 4096


def _disable_cache(fd: int) -> None:
    no_cache = getattr(fcntl, "F_NOCACHE", None) if fcntl is not None else None
    if no_cache is not None:
        with contextlib.suppress(OSError):
            fcntl.fcntl(fd, no_cache, 1)


def _overwrite_path(path: str, info: os.stat_result, state: RemoveFileState,
                    check_protection: bool) -> None:
    fd = os.open(path, os.O_WRONLY)
    with open(fd, "wb", buffering=0) as fileobj:
        if check_protection and getattr(info, "st_flags", 0) & _PROTECTED_FLAGS:
            raise PermissionError(errno.EPERM, os.strerror(errno.EPERM), path)
        _disable_cache(fd)
        overwrite_file(fileobj, info.st_size, _block_size(info), state)


def _overwrite_resource_fork(path: str, state: RemoveFileState) -> None:
    fork = path + _RESOURCE_FORK
    if len(fork) > _MAX_PATH - 1:
        raise OSError(errno.ENAMETOOLONG, os.strerror(errno.ENAMETOOLONG), fork)
    try:
        info = os.lstat(fork)
    except OSError as exc:
        if exc.errno in (errno.ENOENT, errno.ENOTDIR):
            return
        raise
    if info.st_size > 0:
        _overwrite_path(fork, info, state, check_protection=False)


def secure_unlink(path, state: RemoveFileState) -> None:
    """Overwrite a regular file as the state's flags ask, then remove it.

    Anything that is not a regular file with a single link is removed
    without being overwritten. Raises OSError on failure, with ECANCELED
    when the state was cancelled during the overwrite.
    """
    path = os.fspath(path)
    info = os.lstat(path)
    if not stat.S_ISREG(info.st_mode) or info.st_nlink > 1:
        rename_unlink(path, state)
        return

    _overwrite_path(path, info, state, check_protection=True)
    if sys.platform == "darwin":
        _overwrite_resource_fork(path, state)

    if state.cancelled:
        raise OSError(errno.ECANCELED, os.strerror(errno.ECANCELED), path)
    rename_unlink(path, state)