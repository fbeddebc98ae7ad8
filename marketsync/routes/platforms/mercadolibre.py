# marketsync/routes/platforms/mercadolibre.py
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from marketsync.core.config import Settings, get_settings
from marketsync.core.enums import SyncDirection
from marketsync.core.exceptions import (
    InventoryUnitNotFoundError,
    ListingAlreadyLinkedError,
    MarketplaceAPIError,
    MarketplaceAuthError,
    RemoteItemNotFoundError,
    StoreWriteError,
    SyncError,
    SyncInProgressError,
)
from marketsync.dependencies import (
    get_activity_logger,
    get_auth_manager,
    get_catalog_store,
    get_marketplace_client,
)
from marketsync.integrations.base import CatalogStore, MarketplaceClient
from marketsync.schemas.inventory import LinkWithUnit, ListingLinkCreate
from marketsync.schemas.marketplace import ItemImportRequest
from marketsync.services.activity_logger import ActivityLogger
from marketsync.services.item_importer import ItemImporter
from marketsync.services.mercadolibre.auth import MercadoLibreAuthManager
from marketsync.services.sync_orchestrator import SyncOrchestrator, run_sync_exclusive

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/mercadolibre", tags=["mercadolibre"])


def _orchestrator(store: CatalogStore, marketplace: MarketplaceClient, settings: Settings) -> SyncOrchestrator:
    return SyncOrchestrator(
        store,
        marketplace,
        platform=settings.SYNC_PLATFORM,
        reference_note=settings.SYNC_REFERENCE_NOTE,
    )


@router.get("/stock")
async def get_linked_stock(
    include_remote: bool = Query(True),
    status: Optional[str] = Query("active"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    store: CatalogStore = Depends(get_catalog_store),
    marketplace: MarketplaceClient = Depends(get_marketplace_client),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    """
    Listing links for the marketplace with the local variant they mirror, plus
    one page of the seller's own Mercado Libre listings.
    """
    entries = await store.get_listing_links(settings.SYNC_PLATFORM)
    response: Dict[str, Any] = {
        "linked_items": [entry.model_dump(mode="json") for entry in entries],
        "total": len(entries),
    }
    if not include_remote:
        return response

    try:
        items, total_remote = await marketplace.list_seller_items(status=status, limit=limit, offset=offset)
    except MarketplaceAuthError as e:
        raise HTTPException(status_code=401, detail={"error": str(e), "needs_auth": True})
    except MarketplaceAPIError as e:
        logger.error(f"Could not list Mercado Libre items: {e}")
        raise HTTPException(status_code=502, detail=str(e))

    response["ml_items"] = [item.model_dump(mode="json") for item in items]
    response["total_ml_items"] = total_remote
    return response


@router.post("/import")
async def import_item(
    payload: ItemImportRequest,
    store: CatalogStore = Depends(get_catalog_store),
    marketplace: MarketplaceClient = Depends(get_marketplace_client),
    activity: ActivityLogger = Depends(get_activity_logger),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    """Create a product (one variant per variation) from a Mercado Libre item and link it"""
    importer = ItemImporter(store, marketplace, platform=settings.SYNC_PLATFORM)
    try:
        result = await importer.import_item(payload.ml_item_id)
    except ListingAlreadyLinkedError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RemoteItemNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except MarketplaceAuthError as e:
        raise HTTPException(status_code=401, detail={"error": str(e), "needs_auth": True})
    except MarketplaceAPIError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except StoreWriteError as e:
        logger.error(f"Could not import item {payload.ml_item_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    await activity.log_import(result)
    return {
        "success": True,
        **result.to_dict(),
        "message": f"Imported {result.item_id} as {result.product_sku} with {len(result.variants)} variants",
    }


@router.post("/stock/link")
async def link_and_push(
    payload: ListingLinkCreate,
    store: CatalogStore = Depends(get_catalog_store),
    marketplace: MarketplaceClient = Depends(get_marketplace_client),
    activity: ActivityLogger = Depends(get_activity_logger),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    """
    Link a variant to a Mercado Libre item (and optionally a variation), then
    push the variant's stock there right away.
    """
    try:
        async with store.unit_of_work():
            link = await store.upsert_listing_link(
                payload.variant_id,
                settings.SYNC_PLATFORM,
                payload.ml_item_id,
                payload.ml_variation_id,
            )
        unit = await store.get_inventory_unit(payload.variant_id)
    except InventoryUnitNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StoreWriteError as e:
        logger.error(f"Could not link variant {payload.variant_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    await activity.log_link(link)

    report = await _orchestrator(store, marketplace, settings).sync_link(
        SyncDirection.PUSH, LinkWithUnit(link=link, unit=unit)
    )

    return {
        "success": not report.errors,
        "link": link.model_dump(mode="json"),
        "pushed": report.synced == 1,
        "quantity": unit.stock_quantity,
        "errors": report.errors,
    }


@router.post("/stock/sync")
async def sync_stock(
    direction: SyncDirection = Query(SyncDirection.PUSH),
    store: CatalogStore = Depends(get_catalog_store),
    marketplace: MarketplaceClient = Depends(get_marketplace_client),
    activity: ActivityLogger = Depends(get_activity_logger),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    """Run a full reconciliation pass over every linked listing"""
    try:
        report = await run_sync_exclusive(_orchestrator(store, marketplace, settings), direction)
    except SyncInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except SyncError as e:
        raise HTTPException(status_code=502, detail=str(e))

    await activity.log_sync(report)
    return report.to_dict()


@router.get("/auth")
async def get_authorization_url(auth: MercadoLibreAuthManager = Depends(get_auth_manager)) -> Dict[str, str]:
    return {"authorization_url": auth.get_authorization_url()}


@router.get("/auth/callback")
async def auth_callback(
    code: str = Query(..., min_length=1),
    auth: MercadoLibreAuthManager = Depends(get_auth_manager),
) -> Dict[str, Any]:
    try:
        token_data = await auth.exchange_code(code)
    except MarketplaceAPIError as e:
        raise HTTPException(status_code=502, detail=str(e))

    logger.info(f"Mercado Libre connected for user {token_data.get('user_id')}")
    return {
        "success": True,
        "user_id": token_data.get("user_id"),
        "expires_in": token_data.get("expires_in"),
    }
