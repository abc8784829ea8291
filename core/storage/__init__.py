"""
UnitEcon Core Storage - Public API
====================================
Key/value persistence gateway contract.

The Django-backed gateway lives in core.storage.service and is not
exported here, so this package stays importable without Django.
"""

from core.storage.errors import PersistenceError
from core.storage.gateway import InMemoryGateway, PersistenceGateway

__all__ = [
    "PersistenceError",
    "PersistenceGateway",
    "InMemoryGateway",
]
