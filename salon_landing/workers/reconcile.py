"""Periodic sweep for tenant markers stuck mid-provisioning."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from salon_landing.core.config import get_settings
from salon_landing.core.database import async_session_factory
from salon_landing.core.documents import DocumentStore
from salon_landing.core.errors import DocumentNotFoundError
from salon_landing.models.base import utcnow_iso
from salon_landing.services import layout

logger = logging.getLogger(__name__)


def _marker_time(marker: dict) -> datetime | None:
    raw = marker.get("updated_at") or marker.get("reserved_at") or marker.get("created_at")
    if not raw:
        return None
    try:
        stamp = datetime.fromisoformat(raw)
    except (TypeError, ValueError):
        return None
    if stamp.tzinfo is None:
        stamp = stamp.replace(tzinfo=timezone.utc)
    return stamp


async def mark_stalled_markers(
    store: DocumentStore,
    older_than: timedelta,
    now: datetime | None = None,
) -> list[str]:
    """Flag in-flight markers not touched for ``older_than`` as stalled.

    Returns the identifiers that were flagged.
    """
    now = now or datetime.now(timezone.utc)
    stalled: list[str] = []

    for identifier, marker in await store.list(layout.TENANTS):
        if marker.get("state") not in layout.IN_FLIGHT_STATES:
            continue
        stamp = _marker_time(marker)
        if stamp is not None and now - stamp < older_than:
            continue
        try:
            await store.update(layout.marker_path(identifier), {
                "state": layout.MarkerState.STALLED.value,
                "stalled_from": marker.get("state"),
                "stalled_at": utcnow_iso(),
            })
        except DocumentNotFoundError:
            continue
        stalled.append(identifier)
        logger.warning(
            "Tenant %s stuck in '%s' since %s (request %s)",
            identifier, marker.get("state"), stamp, marker.get("request_id"),
        )
    return stalled


async def reconcile_provisioning_markers(ctx: dict) -> dict:
    """ARQ cron task wrapping ``mark_stalled_markers``."""
    store = ctx.get("document_store") or DocumentStore(async_session_factory)
    older_than = timedelta(minutes=get_settings().stale_marker_minutes)
    stalled = await mark_stalled_markers(store, older_than)
    if stalled:
        logger.info("Flagged %d stalled tenant markers", len(stalled))
    return {"stalled": stalled}
