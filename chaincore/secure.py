"""
chaincore Secret Buffers
Scoped key material that is overwritten on release.
"""

from contextlib import contextmanager
from typing import Iterator, Optional, Union

BytesLike = Union[bytes, bytearray, memoryview]


class SecretBytes:
    """
    Mutable buffer holding secret key material.

    The buffer is overwritten with zeros by ``wipe()``, on context-manager
    exit (including exceptions) and when the object is collected. Callers
    that need an immutable copy for a library call get one from ``bytes()``;
    such copies are short-lived temporaries that cannot be scrubbed.
    """

    __slots__ = ('_buffer', '_wiped')

    def __init__(self, value: BytesLike):
        self._buffer = bytearray(value)
        self._wiped = False

    def __bytes__(self) -> bytes:
        self._check()
        return bytes(self._buffer)

    def __len__(self) -> int:
        return len(self._buffer)

    def __eq__(self, other) -> bool:
        if isinstance(other, SecretBytes):
            other = other._buffer
        if not isinstance(other, (bytes, bytearray)):
            return NotImplemented
        return self._buffer == other

    __hash__ = None

    def __repr__(self) -> str:
        state = 'wiped' if self._wiped else f'{len(self._buffer)} bytes'
        return f"SecretBytes(<{state}>)"

    @property
    def wiped(self) -> bool:
        return self._wiped

    def buffer(self) -> bytearray:
        """The underlying mutable buffer (not a copy)."""
        self._check()
        return self._buffer

    def wipe(self) -> None:
        for i in range(len(self._buffer)):
            self._buffer[i] = 0
        self._wiped = True

    def _check(self) -> None:
        if self._wiped:
            raise ValueError("Secret has been wiped")

    def __enter__(self) -> 'SecretBytes':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.wipe()

    def __del__(self) -> None:
        self.wipe()


def secure_zero(buffer: Optional[bytearray]) -> None:
    """Overwrite a bytearray in place."""
    if buffer is None:
        return
    for i in range(len(buffer)):
        buffer[i] = 0


@contextmanager
def scoped_secret(value: BytesLike) -> Iterator[SecretBytes]:
    """
    Hold ``value`` in a SecretBytes for the duration of a block.

    Example:
        with scoped_secret(derive_key()) as key:
            signature = sign(digest, bytes(key))
    """
    secret = value if isinstance(value, SecretBytes) else SecretBytes(value)
    try:
        yield secret
    finally:
        secret.wipe()
        if isinstance(value, bytearray):
            secure_zero(value)
