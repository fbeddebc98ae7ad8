from typing import Dict, List, Optional

from marketsync.core.exceptions import DatabaseError, StoreWriteError


class InMemoryTokenStore:
    """Stands in for SqlTokenStore; survives MercadoLibreAuthManager._tokens being cleared"""

    def __init__(self, state: Optional[Dict] = None):
        self.state = dict(state) if state else None
        self.saves: List[Dict] = []

        # Toggles to test error scenarios
        self.fail_on_load = False
        self.fail_on_save = False

    async def load(self) -> Optional[Dict]:
        if self.fail_on_load:
            raise DatabaseError("settings table unavailable")
        return dict(self.state) if self.state else None

    async def save(self, state: Dict) -> None:
        if self.fail_on_save:
            raise StoreWriteError("settings upsert failed")
        self.saves.append(dict(state))
        self.state = dict(state)
