"""
UnitEcon Core Hashing - Public API
====================================
"""

from core.hashing.hasher import (
    VERSION_TAG_LENGTH,
    canonical_serialize,
    content_hash,
    version_tag,
)

__all__ = [
    "VERSION_TAG_LENGTH",
    "canonical_serialize",
    "content_hash",
    "version_tag",
]
