"""
UnitEcon Core Hashing - Content Hash Computation
==================================================
Content hashes identify a Dataset (or a derived report) by value.

Formula:
    content_hash = SHA256(canonical_json(value))
    version_tag  = content_hash[:8]

Rules:
- Canonical JSON: sorted keys, no whitespace variability
- No salt, no randomness - determinism is mandatory
- Same value ALWAYS produces the same hash, regardless of dict
  insertion order

Uses:
- "last persisted" bookkeeping (skip redundant writes)
- report publish dedupe
- validation cache keys
- FinancialReport.data_version

This module ONLY computes. It does not persist or dispatch.
"""

import hashlib
import json
from typing import Any


VERSION_TAG_LENGTH = 8


# ══════════════════════════════════════════════════════════════
# CANONICAL SERIALIZATION
# ══════════════════════════════════════════════════════════════

def canonical_serialize(value: Any) -> str:
    """
    Produce a deterministic JSON string from value.

    Rules:
    - Keys sorted alphabetically at all levels
    - separators=(',', ':')
    - ensure_ascii=True for cross-platform consistency
    - Default str() for non-serializable types (datetime, Decimal)
    """
    return json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=True,
        default=str,
    )


# ══════════════════════════════════════════════════════════════
# HASH COMPUTATION
# ══════════════════════════════════════════════════════════════

def content_hash(value: Any) -> str:
    """
    64-character lowercase hex SHA-256 digest of the canonical form.
    """
    canonical = canonical_serialize(value)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def version_tag(value: Any) -> str:
    """Short content-derived tag, e.g. '3fa94c1e'."""
    return content_hash(value)[:VERSION_TAG_LENGTH]
