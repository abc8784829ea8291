"""
UnitEcon Storage - Django Gateway
===================================
PersistenceGateway over the StoredBlob table.
Import this module only after Django is configured.
"""

from __future__ import annotations

import logging
from typing import Optional

from django.db import transaction

from core.storage.models import StoredBlob

logger = logging.getLogger("unitecon.storage")


class DjangoBlobGateway:
    """Key/value gateway backed by the Django ORM."""

    def __init__(self, using: str = "default"):
        self._using = using

    def save(self, key: str, value: str) -> None:
        if not key:
            raise ValueError("key must be non-empty.")
        with transaction.atomic(using=self._using):
            StoredBlob.objects.using(self._using).update_or_create(
                key=key, defaults={"value": value},
            )
        logger.debug(f"Stored blob '{key}' ({len(value)} chars)")

    def load(self, key: str) -> Optional[str]:
        row = (
            StoredBlob.objects.using(self._using)
            .filter(key=key)
            .values_list("value", flat=True)
            .first()
        )
        return row

    def delete(self, key: str) -> bool:
        deleted, _ = StoredBlob.objects.using(self._using).filter(key=key).delete()
        return deleted > 0
