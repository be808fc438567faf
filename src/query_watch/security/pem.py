"""
Locates the first RFC 1421/7468 PEM block in a key buffer without decoding
it. Decoding and decryption are left to ``cryptography``; this module only
classifies the envelope and reframes its body under another label.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

_BEGIN = b"-----BEGIN "
_END = b"-----END "
_DASHES = b"-----"
_BASE64_LINE = re.compile(rb"[A-Za-z0-9+/=\s]*")
_NON_SPACE = re.compile(rb"\S")


@dataclass(frozen=True)
class PemEnvelope:
    label: str
    legacy_encrypted: bool
    # offsets into the source buffer, end exclusive
    inner_start: int
    inner_end: int

    def reframe(self, data: bytearray, label: str) -> bytearray:
        """Copy the block body into a fresh, wipeable buffer under ``label``."""
        marker = label.encode("ascii") + _DASHES + b"\n"
        out = bytearray(_BEGIN + marker)
        view = memoryview(data)[self.inner_start : self.inner_end]
        try:
            out += view
        finally:
            view.release()
        out += _END + marker
        return out


def _find_begin(data: bytearray) -> int:
    pos = 0
    while True:
        idx = data.find(_BEGIN, pos)
        if idx <= 0 or data[idx - 1] == 0x0A:
            return idx
        pos = idx + 1


def _has_base64_body(data: bytearray, pos: int, end: int) -> bool:
    """Skip ``Name: value`` header lines and check what follows is base64 text."""
    while pos < end:
        nl = data.find(b"\n", pos, end)
        if nl < 0:
            nl = end
        # base64 never contains ':'
        if data.find(b":", pos, nl) < 0:
            break
        pos = nl + 1
    view = memoryview(data)[pos:end]
    try:
        return (
            _BASE64_LINE.fullmatch(view) is not None
            and _NON_SPACE.search(view) is not None
        )
    finally:
        view.release()


def find_envelope(data: bytearray) -> Optional[PemEnvelope]:
    """
    Return the first complete block in ``data``, or None when there is none
    or its body is not base64 text.
    """
    start = _find_begin(data)
    if start < 0:
        return None
    line_end = data.find(b"\n", start)
    if line_end < 0:
        return None
    type_line = bytes(data[start:line_end]).rstrip(b"\r")
    if not type_line.endswith(_DASHES) or len(type_line) <= len(_BEGIN) + len(_DASHES):
        return None
    label = type_line[len(_BEGIN) : -len(_DASHES)]

    end = data.find(_END + label + _DASHES, line_end)
    if end < 0:
        return None
    if not _has_base64_body(data, line_end + 1, end):
        return None

    return PemEnvelope(
        label=label.decode("ascii", "replace"),
        legacy_encrypted=data.find(b"DEK-Info:", line_end, end) >= 0,
        inner_start=line_end + 1,
        inner_end=end,
    )


__all__ = ["PemEnvelope", "find_envelope"]
