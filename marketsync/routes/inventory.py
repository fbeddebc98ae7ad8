# marketsync/routes/inventory.py
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Query

from marketsync.core.exceptions import (
    InventoryUnitNotFoundError,
    StaleQuantityError,
    StoreWriteError,
    ValidationError,
)
from marketsync.dependencies import get_activity_logger, get_catalog_store
from marketsync.integrations.base import CatalogStore
from marketsync.schemas.inventory import StockAdjustmentCreate
from marketsync.services.activity_logger import ActivityLogger
from marketsync.services.stock_ledger import StockLedger

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/inventory", tags=["inventory"])


@router.post("/variants/{variant_id}/adjustments")
async def adjust_stock(
    variant_id: str,
    payload: StockAdjustmentCreate,
    store: CatalogStore = Depends(get_catalog_store),
    activity: ActivityLogger = Depends(get_activity_logger),
) -> Dict[str, Any]:
    """Apply a manual stock change (receipt, sale, correction) through the ledger"""
    ledger = StockLedger(store)
    try:
        movement = await ledger.record(variant_id, payload.delta, payload.kind, payload.reference)
        unit = await store.get_inventory_unit(variant_id)
    except InventoryUnitNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StaleQuantityError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except StoreWriteError as e:
        logger.error(f"Stock adjustment for {variant_id} failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    await activity.log_adjustment(movement, unit.stock_quantity)

    return {
        "success": True,
        "movement": movement.model_dump(mode="json"),
        "stock_quantity": unit.stock_quantity,
    }


@router.get("/variants/{variant_id}/movements")
async def get_movements(
    variant_id: str,
    initial_quantity: int = Query(0),
    store: CatalogStore = Depends(get_catalog_store),
) -> Dict[str, Any]:
    ledger = StockLedger(store)
    try:
        check = await ledger.verify_consistency(variant_id, initial_quantity)
    except InventoryUnitNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    movements = await ledger.history(variant_id)

    return {
        "variant_id": variant_id,
        "movements": [m.model_dump(mode="json") for m in movements],
        "ledger": check.model_dump(),
    }


@router.get("/low-stock")
async def get_low_stock(store: CatalogStore = Depends(get_catalog_store)) -> Dict[str, Any]:
    """Variants at or below their min_stock_alert"""
    units = await store.get_low_stock_units()
    return {
        "items": [u.model_dump() for u in units],
        "count": len(units),
    }
