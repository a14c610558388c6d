"""Random bytes for overwriting files and for picking throwaway names."""

from __future__ import annotations

import errno
import os
import random
import stat
import time
from typing import BinaryIO, Optional

_URANDOM = "/dev/urandom"


class RandomSource:
    """Reads the system random device, or a seeded generator when there is none."""

    def __init__(self, seed: Optional[int] = None, device: str = _URANDOM) -> None:
        self._device: Optional[BinaryIO] = None
        self._rng: Optional[random.Random] = None
        self._closed = False
        try:
            is_char_device = stat.S_ISCHR(os.stat(device).st_mode)
        except OSError:
            is_char_device = False
        if is_char_device:
            try:
                self._device = open(device, "rb", buffering=0)
            except OSError:
                self._device = None
        if self._device is None:
            self._rng = random.Random(os.getpid() if seed is None else seed)
            self._reseed()

    def _reseed(self) -> None:
        now = time.time()
        seconds = int(now)
        micros = int((now - seconds) * 1_000_000)
        mix = (seconds + micros + os.getpid()) & 0xFFFFFFFF
        self._rng.seed(self._rng.getrandbits(32) ^ mix)

    @property
    def uses_device(self) -> bool:
        """Whether bytes come from the random device."""
        return self._device is not None

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise ValueError("random source is closed")

    def _read(self, length: int) -> bytes:
        chunks = bytearray()
        while len(chunks) < length:
            chunk = self._device.read(length - len(chunks))
            if not chunk:
                raise OSError(errno.EIO, "random device returned no data")
            chunks += chunk
        return bytes(chunks)

    def random_char(self) -> int:
        """Return one random byte value, 0 to 255."""
        self._check_open()
        if self._device is not None:
            return self._read(1)[0]
        return self._rng.getrandbits(8)

    def randomize(self, length: int) -> bytes:
        """Return ``length`` random bytes."""
        self._check_open()
        if length < 0:
            raise ValueError("length must not be negative")
        if length == 0:
            return b""
        if self._device is not None:
            return self._read(length)
        return self._rng.randbytes(length)

    def close(self) -> None:
        """Close the device; further use raises ValueError."""
        if self._device is not None:
            self._device.close()
            self._device = None
        self._closed = True

    def __enter__(self) -> "RandomSource":
        return self

    def __exit__(self, *args) -> None:
        self.close()