# marketsync/services/stock_ledger.py
"""
Append-only stock ledger.

Every on-hand quantity change made by this service goes through
StockLedger.record, which writes the new quantity and the matching
StockMovement inside one unit of work. Either both are committed or
neither is, so initial quantity + sum(deltas) always equals the stored
quantity for a variant.
"""

import logging
from typing import List, Optional, Union

from marketsync.core.enums import MovementKind
from marketsync.core.exceptions import StaleQuantityError, ValidationError
from marketsync.integrations.base import CatalogStore
from marketsync.schemas.inventory import LedgerCheck, StockMovement, StockMovementCreate

logger = logging.getLogger(__name__)


class StockLedger:
    """Records quantity changes for inventory units, paired with their movement entry."""

    def __init__(self, store: CatalogStore):
        self.store = store

    @staticmethod
    def _validate(delta: int, kind: MovementKind) -> None:
        if isinstance(delta, bool) or not isinstance(delta, int):
            raise ValidationError(f"Stock delta must be an integer, got {delta!r}")
        if delta == 0:
            raise ValidationError("A stock movement must change the quantity")
        if kind == MovementKind.RECEIVED and delta < 0:
            raise ValidationError("Received stock must have a positive delta")
        if kind == MovementKind.SOLD and delta > 0:
            raise ValidationError("Sold stock must have a negative delta")

    async def record(
        self,
        unit_id: str,
        delta: int,
        kind: Union[MovementKind, str],
        reference: Optional[str] = None,
        *,
        expected_quantity: Optional[int] = None,
    ) -> StockMovement:
        """
        Apply a signed quantity change to a unit and append its ledger entry.

        Args:
            unit_id: Inventory unit (product variant) id
            delta: Signed change, positive for an increase
            kind: Movement kind (received, sold, adjusted, sync-reconciled)
            reference: Free-text reference stored with the movement
            expected_quantity: If given, the write is refused when the stored
                quantity no longer matches it

        Returns:
            The created StockMovement

        Raises:
            ValidationError: Zero delta or a delta whose sign contradicts the kind
            StaleQuantityError: The stored quantity differs from expected_quantity
            InventoryUnitNotFoundError: Unknown unit
            StoreWriteError: The store could not commit; nothing was applied
        """
        try:
            kind = MovementKind(kind)
        except ValueError:
            raise ValidationError(f"Unknown movement kind: {kind!r}")
        self._validate(delta, kind)

        async with self.store.unit_of_work():
            unit = await self.store.get_inventory_unit(unit_id)

            if expected_quantity is not None and unit.stock_quantity != expected_quantity:
                raise StaleQuantityError(
                    f"Variant {unit_id} quantity changed from {expected_quantity} to {unit.stock_quantity}"
                )

            new_quantity = unit.stock_quantity + delta
            if new_quantity < 0:
                logger.warning(f"Variant {unit_id} ({unit.sku}) goes negative: {unit.stock_quantity} -> {new_quantity}")

            await self.store.set_inventory_quantity(unit_id, new_quantity)
            movement = await self.store.append_stock_movement(
                StockMovementCreate(
                    inventory_unit_id=unit_id,
                    delta=delta,
                    kind=kind,
                    reference=reference,
                )
            )

        logger.debug(f"Ledger: variant {unit_id} {kind.value} {delta:+d} -> {new_quantity}")
        return movement

    async def history(self, unit_id: str) -> List[StockMovement]:
        return await self.store.get_stock_movements(unit_id)

    async def reconstruct_quantity(self, unit_id: str, initial_quantity: int = 0) -> int:
        """Quantity implied by the ledger: initial + sum of all deltas"""
        movements = await self.store.get_stock_movements(unit_id)
        return initial_quantity + sum(m.delta for m in movements)

    async def verify_consistency(self, unit_id: str, initial_quantity: int = 0) -> LedgerCheck:
        unit = await self.store.get_inventory_unit(unit_id)
        reconstructed = await self.reconstruct_quantity(unit_id, initial_quantity)
        consistent = reconstructed == unit.stock_quantity
        if not consistent:
            logger.error(
                f"Ledger mismatch for variant {unit_id}: ledger says {reconstructed}, "
                f"stored {unit.stock_quantity}"
            )
        return LedgerCheck(
            inventory_unit_id=unit_id,
            initial_quantity=initial_quantity,
            reconstructed_quantity=reconstructed,
            stored_quantity=unit.stock_quantity,
            consistent=consistent,
        )
