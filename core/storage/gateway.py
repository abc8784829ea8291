"""
UnitEcon Storage - Persistence Gateway Contract
=================================================
The engine treats storage as an opaque key/value store of serialized
JSON strings. No transactions, no atomicity beyond the medium's own
write-then-read consistency.

    save(key, value) → None
    load(key)        → str | None   (None when the key is absent)

Implementations:
- InMemoryGateway   → tests and ephemeral sessions (this module)
- DjangoBlobGateway → relational storage via the Django ORM (service.py)

Gateways may raise any exception; the coordinator wraps failures in
PersistenceError at its own boundary.
"""

from __future__ import annotations

import copy
import logging
from typing import Dict, List, Optional, Protocol, Tuple

logger = logging.getLogger("unitecon.storage")


class PersistenceGateway(Protocol):
    def save(self, key: str, value: str) -> None:
        ...  # pragma: no cover

    def load(self, key: str) -> Optional[str]:
        ...  # pragma: no cover


class InMemoryGateway:
    """
    Dict-backed gateway that records every write.

    `writes` lists (key, value) pairs in write order, which lets tests
    assert how many times the underlying store was actually touched.
    """

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._blobs: Dict[str, str] = dict(initial or {})
        self.writes: List[Tuple[str, str]] = []

    def save(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError(f"value must be str, got {type(value).__name__}.")
        self._blobs[key] = value
        self.writes.append((key, value))
        logger.debug(f"Saved '{key}' ({len(value)} chars)")

    def load(self, key: str) -> Optional[str]:
        return self._blobs.get(key)

    def write_count(self, key: Optional[str] = None) -> int:
        if key is None:
            return len(self.writes)
        return sum(1 for k, _ in self.writes if k == key)

    def snapshot(self) -> Dict[str, str]:
        return copy.deepcopy(self._blobs)
