import errno

import pytest

from removefile.randomness import RandomSource
from removefile.state import (
    OVERWRITE_FLAGS,
    SECURE_FLAGS,
    CallbackResult,
    RemoveFileFlags,
    RemoveFileState,
    StateKey,
    WalkEntry,
)


def _confirm(state, path, context):
    return CallbackResult.PROCEED


def _error(state, path, context):
    return CallbackResult.PROCEED


def _status(state, path, context):
    return CallbackResult.PROCEED


@pytest.mark.parametrize(
    "value, member",
    [
        (1 << 0, RemoveFileFlags.RECURSIVE),
        (1 << 1, RemoveFileFlags.KEEP_PARENT),
        (1 << 3, RemoveFileFlags.SECURE_35_PASS),
        (1 << 7, RemoveFileFlags.CROSS_MOUNT),
        (1 << 11, RemoveFileFlags.RECURSIVE_SLIM),
    ],
)
def test_flag_values_match_header(value, member):
    assert RemoveFileFlags(value) is member


def test_overwrite_flags_extend_secure_flags():
    state = RemoveFileState(unlink_flags=RemoveFileFlags.SECURE_1_PASS_ZERO)
    assert state.unlink_flags & SECURE_FLAGS == 0
    assert state.unlink_flags & OVERWRITE_FLAGS
    assert OVERWRITE_FLAGS & SECURE_FLAGS == SECURE_FLAGS


@pytest.mark.parametrize(
    "value, member",
    [
        (0, CallbackResult.PROCEED),
        (1, CallbackResult.SKIP),
        (2, CallbackResult.STOP),
    ],
)
def test_callback_results(value, member):
    assert CallbackResult(value) is member


def test_defaults():
    state = RemoveFileState()
    assert state.get(StateKey.ERRNO) == 0
    assert state.get(StateKey.CONFIRM_CALLBACK) is None
    assert state.cancelled is False


@pytest.mark.parametrize(
    "key, callback",
    [
        (StateKey.CONFIRM_CALLBACK, _confirm),
        (StateKey.ERROR_CALLBACK, _error),
        (StateKey.STATUS_CALLBACK, _status),
    ],
)
def test_callback_round_trip(key, callback):
    state = RemoveFileState()
    state.set(key, callback)
    assert state.get(key) is callback


@pytest.mark.parametrize(
    "key, context",
    [
        (StateKey.CONFIRM_CONTEXT, 1234),
        (StateKey.ERROR_CONTEXT, 4567),
        (StateKey.STATUS_CONTEXT, 5678),
    ],
)
def test_context_round_trip(key, context):
    state = RemoveFileState()
    state.set(int(key), context)
    assert state.get(key) == context


def test_errno_round_trip():
    state = RemoveFileState()
    state.set(StateKey.ERRNO, errno.ENOENT)
    assert state.get(StateKey.ERRNO) == errno.ENOENT
    assert state.error_num == errno.ENOENT


def test_unknown_key_set_raises_einval():
    state = RemoveFileState()
    with pytest.raises(OSError) as info:
        state.set(1234567, 1234567)
    assert info.value.errno == errno.EINVAL


def test_unknown_key_get_raises_einval():
    state = RemoveFileState()
    with pytest.raises(OSError) as info:
        state.get(1234567)
    assert info.value.errno == errno.EINVAL


def test_ftsent_without_entry_raises_einval():
    state = RemoveFileState()
    with pytest.raises(OSError) as info:
        state.get(StateKey.FTSENT)
    assert info.value.errno == errno.EINVAL


def test_ftsent_returns_current_entry():
    entry = WalkEntry(path="/tmp/x", level=1)
    state = RemoveFileState(recurse_entry=entry)
    assert state.get(StateKey.FTSENT) is entry
    assert entry.is_root is False


def test_ftsent_cannot_be_set():
    state = RemoveFileState()
    with pytest.raises(OSError) as info:
        state.set(StateKey.FTSENT, WalkEntry(path="x"))
    assert info.value.errno == errno.EINVAL


def test_cancel_marks_state():
    state = RemoveFileState()
    state.cancel()
    assert state.cancelled is True


def test_context_manager_releases_resources(tmp_path):
    source = RandomSource(device=str(tmp_path / "missing"))
    with RemoveFileState(random_source=source, buffer=bytearray(8)) as state:
        assert state.random_source is source
    assert source.closed is True
    assert state.random_source is None
    assert state.buffer is None