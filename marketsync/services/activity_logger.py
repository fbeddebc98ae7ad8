# marketsync/services/activity_logger.py
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from marketsync.models.activity_log import ActivityLog
from marketsync.schemas.inventory import StockMovement

logger = logging.getLogger(__name__)


class ActivityLogger:
    """
    Records sync runs, manual adjustments, link changes and imports in activity_log.

    Failures are logged and swallowed: the audit trail never interrupts the
    operation it describes.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def log_activity(
        self,
        action: str,
        entity_type: str,
        entity_id: str,
        platform: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        commit: bool = True,
    ) -> Optional[ActivityLog]:
        """
        Log an activity in the system.

        Args:
            action: The action performed (sync, adjust, link, import)
            entity_type: The type of entity affected (platform, product_variant, listing, product)
            entity_id: The ID of the affected entity
            platform: Optional platform name
            details: Optional additional details as a dictionary
            commit: Commit immediately (the entry is only flushed otherwise)

        Returns:
            The created ActivityLog instance, or None if it could not be written
        """
        try:
            log_entry = ActivityLog(
                action=action,
                entity_type=entity_type,
                entity_id=str(entity_id),
                platform=platform,
                details=details,
                created_at=datetime.now(timezone.utc)
            )

            self.db.add(log_entry)
            if commit:
                await self.db.commit()
            else:
                await self.db.flush()

            logger.debug(
                f"Activity logged: {action} {entity_type} {entity_id} "
                f"(platform: {platform or 'N/A'})"
            )

            return log_entry

        except Exception as e:
            logger.error(f"Error logging activity: {str(e)}")
            try:
                await self.db.rollback()
            except Exception as rollback_error:
                logger.error(f"Rollback after activity log failure failed: {rollback_error}")
            return None

    async def log_sync(self, report) -> Optional[ActivityLog]:
        """Log a finished SyncReport"""
        return await self.log_activity(
            action="sync",
            entity_type="platform",
            entity_id=report.platform,
            platform=report.platform,
            details={
                "sync_run_id": report.sync_run_id,
                "direction": report.direction.value,
                "status": report.status.value,
                "synced": report.synced,
                "unchanged": report.unchanged,
                "total": report.total,
                "errors": report.errors[:50],
                "error_count": len(report.errors),
                "duration_seconds": report.duration_seconds,
            }
        )

    async def log_adjustment(self, movement: StockMovement, new_quantity: int) -> Optional[ActivityLog]:
        return await self.log_activity(
            action="adjust",
            entity_type="product_variant",
            entity_id=movement.inventory_unit_id,
            details={
                "movement_id": movement.id,
                "kind": movement.kind.value,
                "delta": movement.delta,
                "new_quantity": new_quantity,
                "reference": movement.reference,
            }
        )

    async def log_link(self, link) -> Optional[ActivityLog]:
        return await self.log_activity(
            action="link",
            entity_type="listing",
            entity_id=link.id,
            platform=link.platform,
            details={
                "variant_id": link.inventory_unit_id,
                "item_id": link.remote_item_id,
                "variation_id": link.remote_variation_id,
            }
        )

    async def log_import(self, result) -> Optional[ActivityLog]:
        """Log an ImportResult: one product with its variants and links"""
        return await self.log_activity(
            action="import",
            entity_type="product",
            entity_id=result.product_id,
            platform=result.platform,
            details={
                "item_id": result.item_id,
                "sku": result.product_sku,
                "variants": [
                    {"variant_id": v.variant_id, "sku": v.sku, "variation_id": v.remote_variation_id}
                    for v in result.variants
                ],
            }
        )
