"""Key material handling and secret scrubbing for warehouse authentication."""

from __future__ import annotations

from .key_material import KeyMaterialParser, PrivateKeyHandle, parse_private_key
from .scrubber import scrub, scrub_key

__all__ = [
    "KeyMaterialParser",
    "PrivateKeyHandle",
    "parse_private_key",
    "scrub",
    "scrub_key",
]
