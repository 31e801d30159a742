"""
Source listing and health routes.
"""

import asyncio

from fastapi import APIRouter, Depends

from regscan.database import Database
from regscan.scanner.sources.registry import STATIC_SOURCE_IDS, load_dynamic_sources, static_sources
from regscan.web.dependencies import get_db

router = APIRouter(prefix="/sources", tags=["sources"])


@router.get("")
async def list_sources(db: Database = Depends(get_db)):
    """List selectable sources with the ids accepted by ``selectedSourceIds``."""
    ids_by_name = {name: source_id for source_id, name in STATIC_SOURCE_IDS.items()}
    dynamic = await asyncio.to_thread(load_dynamic_sources, db.sources)

    sources = [
        {"id": ids_by_name.get(s.name, s.name), "name": s.name, "type": s.type, "region": s.region, "builtin": True}
        for s in static_sources()
    ]
    sources += [
        {"id": s.id, "name": s.name, "type": s.type, "region": s.region, "builtin": False}
        for s in dynamic.value
    ]
    return {"sources": sources, "custom_sources_available": not dynamic.degraded}


@router.get("/health")
async def source_health(db: Database = Depends(get_db)):
    """Latest health record per source, failing sources first."""
    records = await asyncio.to_thread(db.health.filter, {})
    order = {"failing": 0, "degraded": 1, "healthy": 2}
    records.sort(key=lambda r: (order.get(r.get("status"), 3), r.get("source_name") or ""))
    return {"sources": records}
