"""
UnitEcon Storage - Blob Model
===============================
"""

from __future__ import annotations

from django.db import models


class StoredBlob(models.Model):
    key = models.CharField(primary_key=True, max_length=255)
    value = models.TextField()
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "unitecon_storage_blobs"
        ordering = ["key"]

    def __str__(self) -> str:
        return f"{self.key} ({len(self.value)} chars)"
