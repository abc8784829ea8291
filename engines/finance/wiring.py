"""
UnitEcon Finance Wiring
=========================
Builds a SyncCoordinator from Django settings.

Adapter-only glue:
- settings.UNITECON_SYNC → SyncConfig
- DjangoBlobGateway as the default persistence gateway

Django refuses ORM calls from inside a running event loop, so a
coordinator backed by DjangoBlobGateway is driven by a scheduler that
runs callbacks outside one (ManualScheduler, or a worker's own turn
loop). Pair AsyncioScheduler with a gateway that is safe there.
"""

from __future__ import annotations

from typing import Optional

from django.conf import settings

from core.config.rules import SyncConfig
from core.storage.gateway import PersistenceGateway
from core.storage.service import DjangoBlobGateway
from core.time import Clock, Scheduler
from engines.finance.sync import SyncCoordinator


def sync_config_from_settings() -> SyncConfig:
    return SyncConfig.from_mapping(getattr(settings, "UNITECON_SYNC", None))


def build_coordinator(
    *,
    scheduler: Scheduler,
    gateway: Optional[PersistenceGateway] = None,
    clock: Optional[Clock] = None,
) -> SyncCoordinator:
    return SyncCoordinator(
        gateway=gateway if gateway is not None else DjangoBlobGateway(),
        scheduler=scheduler,
        clock=clock,
        config=sync_config_from_settings(),
    )
