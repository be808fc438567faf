from __future__ import annotations

from typing import Union

from query_watch.errors import ScrubbedSecretError


def wipe_bytes(buf: bytearray) -> None:
    """Overwrite ``buf`` with zero bytes in place, then empty it."""
    for i in range(len(buf)):
        buf[i] = 0
    del buf[:]


def trimmed(buf: bytearray) -> bytearray:
    """Return a whitespace-trimmed copy of ``buf`` and wipe the original."""
    out = buf.strip()
    wipe_bytes(buf)
    return out


class SecretBuffer:
    """
    Mutable holder for a secret value.

    The value lives in a ``bytearray`` so it can be zeroed in place. Any ``str``
    produced by :meth:`reveal` is an immutable copy outside this discipline;
    callers should reveal as late as possible.
    """

    __slots__ = ("_buf", "_wiped")

    def __init__(self, value: Union[str, bytes, bytearray, None] = None) -> None:
        if value is None:
            self._buf = bytearray()
        elif isinstance(value, bytearray):
            # take ownership, no copy
            self._buf = value
        elif isinstance(value, str):
            self._buf = bytearray(value.encode("utf-8"))
        else:
            self._buf = bytearray(value)
        self._wiped = False

    def __len__(self) -> int:
        return len(self._buf)

    def __bool__(self) -> bool:
        return len(self._buf) > 0

    def __repr__(self) -> str:
        state = "wiped" if self._wiped else ("***" if self._buf else "empty")
        return f"SecretBuffer({state})"

    __str__ = __repr__

    @property
    def wiped(self) -> bool:
        return self._wiped

    def reveal(self, errors: str = "strict") -> str:
        if self._wiped:
            raise ScrubbedSecretError("secret was read after it had been wiped")
        return self._buf.decode("utf-8", errors)

    def raw(self) -> bytearray:
        """Return the backing buffer itself (not a copy)."""
        if self._wiped:
            raise ScrubbedSecretError("secret was read after it had been wiped")
        return self._buf

    def wipe(self) -> None:
        wipe_bytes(self._buf)
        self._wiped = True


__all__ = ["SecretBuffer", "wipe_bytes", "trimmed"]
