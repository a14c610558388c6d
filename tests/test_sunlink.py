import errno
import hashlib
import io
import os

import pytest

from removefile.rename_unlink import is_empty_directory
from removefile.state import RemoveFileFlags, RemoveFileState
from removefile.sunlink import (
    MAX_BUFFER_SIZE,
    OverwritePass,
    PassKind,
    buffer_size,
    overwrite_file,
    overwrite_passes,
    secure_unlink,
    triple_pattern,
)


class _Recorder(io.BytesIO):
    """Records a digest of the contents every time it is rewound."""

    def __init__(self, data):
        super().__init__(data)
        self.digests = []

    def seek(self, pos, whence=0):
        if pos == 0 and whence == 0:
            self.digests.append(hashlib.sha256(self.getvalue()).digest())
        return super().seek(pos, whence)


def _digest(data):
    return hashlib.sha256(data).digest()


def test_buffer_size_rounds_partial_block_up():
    assert buffer_size(10, 4096) == 4096


def test_buffer_size_exact_blocks():
    assert buffer_size(8192, 4096) == 8192


def test_buffer_size_empty_file_uses_one_block():
    assert buffer_size(0, 4096) == 4096


def test_buffer_size_is_capped():
    assert buffer_size(50 * MAX_BUFFER_SIZE + 3, 4096) == MAX_BUFFER_SIZE


def test_buffer_size_is_block_multiple():
    for size in (1, 511, 512, 513, 100_000):
        result = buffer_size(size, 512)
        assert result % 512 == 0
        assert result >= min(size, MAX_BUFFER_SIZE)


def test_buffer_size_rejects_bad_block():
    with pytest.raises(ValueError):
        buffer_size(10, 0)


def test_triple_pattern_repeats():
    assert triple_pattern(1, 2, 3, 7) == bytes([1, 2, 3, 1, 2, 3, 1])


def test_triple_pattern_length_and_period():
    data = triple_pattern(0x92, 0x49, 0x24, 100)
    assert len(data) == 100
    assert all(data[i] == data[i + 3] for i in range(97))


def test_passes_none_without_secure_flags():
    assert overwrite_passes(RemoveFileFlags.RECURSIVE) == []


def test_passes_one_pass_zero():
    assert overwrite_passes(RemoveFileFlags.SECURE_1_PASS_ZERO) == [
        OverwritePass(PassKind.SINGLE, (0,))
    ]


def test_passes_one_pass_random():
    assert overwrite_passes(RemoveFileFlags.SECURE_1_PASS) == [OverwritePass(PassKind.RANDOM)]


def test_passes_three_pass():
    passes = overwrite_passes(RemoveFileFlags.SECURE_3_PASS)
    assert [p.kind for p in passes] == [PassKind.RANDOM, PassKind.RANDOM, PassKind.SINGLE]
    assert passes[-1].pattern == (0xAA,)


def test_passes_seven_pass():
    passes = overwrite_passes(RemoveFileFlags.SECURE_7_PASS)
    assert len(passes) == 7
    assert passes[0] == OverwritePass(PassKind.SINGLE, (0xF6,))
    assert sum(p.kind is PassKind.RANDOM for p in passes) == 2


def test_passes_thirty_five_overrides_seven():
    flags = RemoveFileFlags.SECURE_35_PASS | RemoveFileFlags.SECURE_7_PASS
    passes = overwrite_passes(flags)
    assert len(passes) == 35
    assert passes == overwrite_passes(RemoveFileFlags.SECURE_35_PASS)
    assert sum(p.kind is PassKind.RANDOM for p in passes) == 8
    assert OverwritePass(PassKind.TRIPLE, (0x6D, 0xB6, 0xDB)) in passes


def test_overwrite_zero_pass():
    data = io.BytesIO(b"Hello World\n")
    state = RemoveFileState(unlink_flags=RemoveFileFlags.SECURE_1_PASS_ZERO)
    overwrite_file(data, 12, 4096, state)
    assert data.getvalue() == bytes(12)
    assert data.tell() == 0


def test_overwrite_three_pass_ends_with_aa():
    payload = b"secret contents" * 1000
    data = io.BytesIO(payload)
    state = RemoveFileState(unlink_flags=RemoveFileFlags.SECURE_3_PASS)
    overwrite_file(data, len(payload), 512, state)
    assert data.getvalue() == b"\xaa" * len(payload)


def test_overwrite_random_keeps_length():
    payload = b"x" * 5000
    data = io.BytesIO(payload)
    state = RemoveFileState(unlink_flags=RemoveFileFlags.SECURE_7_PASS)
    overwrite_file(data, len(payload), 512, state)
    assert len(data.getvalue()) == len(payload)
    assert data.getvalue() != payload


def test_overwrite_sets_buffer_with_slack():
    state = RemoveFileState(unlink_flags=RemoveFileFlags.SECURE_1_PASS_ZERO)
    overwrite_file(io.BytesIO(b"abc"), 3, 512, state)
    assert len(state.buffer) == buffer_size(3, 512) + 4


def test_overwrite_cancelled_leaves_data():
    payload = b"keep me"
    data = io.BytesIO(payload)
    state = RemoveFileState(unlink_flags=RemoveFileFlags.SECURE_3_PASS)
    state.cancel()
    overwrite_file(data, len(payload), 512, state)
    assert data.getvalue() == payload


def test_triple_pass_stays_aligned_across_writes():
    size = MAX_BUFFER_SIZE + 5
    recorder = _Recorder(bytes(size))
    state = RemoveFileState(unlink_flags=RemoveFileFlags.SECURE_35_PASS)
    overwrite_file(recorder, size, 4096, state)
    assert _digest(triple_pattern(0x92, 0x49, 0x24, size)) in recorder.digests
    assert _digest(triple_pattern(0xDB, 0x6D, 0xB6, size)) in recorder.digests
    assert _digest(b"\x55" * size) in recorder.digests
    assert len(recorder.getvalue()) == size


def test_overwrite_real_file(tmp_path):
    target = tmp_path / "woot"
    target.write_bytes(b"Hello World\n" * 100)
    state = RemoveFileState(unlink_flags=RemoveFileFlags.SECURE_3_PASS)
    with open(target, "r+b") as fileobj:
        overwrite_file(fileobj, 1200, 4096, state)
    assert target.read_bytes() == b"\xaa" * 1200


def test_secure_unlink_removes_file(tmp_path):
    target = tmp_path / "woot"
    target.write_bytes(b"Hello World\n")
    state = RemoveFileState(unlink_flags=RemoveFileFlags.SECURE_1_PASS)
    assert is_empty_directory(tmp_path) is False
    secure_unlink(target, state)
    assert is_empty_directory(tmp_path) is True
    assert list(tmp_path.iterdir()) == []


def test_secure_unlink_symlink_keeps_target(tmp_path):
    target = tmp_path / "target"
    target.write_bytes(b"Hello World\n")
    link = tmp_path / "link"
    link.symlink_to(target)
    state = RemoveFileState(unlink_flags=RemoveFileFlags.SECURE_1_PASS)
    secure_unlink(link, state)
    assert not os.path.lexists(link)
    assert target.read_bytes() == b"Hello World\n"


def test_secure_unlink_hard_link_not_overwritten(tmp_path):
    original = tmp_path / "original"
    original.write_bytes(b"Hello World\n")
    other = tmp_path / "other"
    os.link(original, other)
    state = RemoveFileState(unlink_flags=RemoveFileFlags.SECURE_1_PASS_ZERO)
    secure_unlink(original, state)
    assert not original.exists()
    assert other.read_bytes() == b"Hello World\n"


def test_secure_unlink_missing(tmp_path):
    state = RemoveFileState(unlink_flags=RemoveFileFlags.SECURE_1_PASS)
    with pytest.raises(FileNotFoundError):
        secure_unlink(tmp_path / "absent", state)


def test_secure_unlink_cancelled(tmp_path):
    target = tmp_path / "woot"
    target.write_bytes(b"Hello World\n")
    state = RemoveFileState(unlink_flags=RemoveFileFlags.SECURE_1_PASS_ZERO)
    state.cancel()
    with pytest.raises(OSError) as info:
        secure_unlink(target, state)
    assert info.value.errno == errno.ECANCELED
    assert target.read_bytes() == b"Hello World\n"