"""HTTP read endpoint serving merged LSOA lookups."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import APIRouter, FastAPI, Request

from deprivare.datasets.catalog import default_registry
from deprivare.datasets.registry import DatasetRegistry
from deprivare.pipeline.lookup import lookup
from deprivare.store.sqlite_store import DeprivationStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/uk", tags=["lsoa"])


@router.get("/lsoa/{lsoa}")
def get_lsoa(lsoa: str, request: Request) -> dict[str, Any]:
    """Every installed dataset's values for an LSOA; ``{}`` when none are stored."""
    store: DeprivationStore = request.app.state.store
    return lookup(store, lsoa)


def create_app(db_path: Path, registry: DatasetRegistry | None = None) -> FastAPI:
    """Create the FastAPI application over a read-only store at ``db_path``."""
    schema = (registry or default_registry()).schema()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store = DeprivationStore.open_or_create(db_path, schema, read_only=True)
        app.state.store = store
        logger.info("Serving deprivation data from %s", db_path)
        try:
            yield
        finally:
            store.close()

    app_instance = FastAPI(title="deprivare", lifespan=lifespan)
    app_instance.include_router(router)
    return app_instance
