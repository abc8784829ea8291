"""
UnitEcon Storage - App Configuration
======================================
Relational backing for the persistence gateway: one row per key.

This app:
- Stores serialized blobs by key
- Overwrites on save (last write wins)

This app does NOT:
- Interpret blob contents
- Version or diff blobs
"""

from django.apps import AppConfig


class CoreStorageConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "core.storage"
    label = "core_storage"
    verbose_name = "UnitEcon Blob Storage"
