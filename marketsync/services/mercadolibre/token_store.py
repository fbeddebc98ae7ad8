"""
Database persistence for the Mercado Libre token pair.

Mercado Libre invalidates a refresh token once it has been used, so the
rotated pair is written to the settings table after every grant. Each call
opens its own short session and never joins a caller's transaction.
"""

import logging
from typing import Callable, Dict, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from marketsync.core.exceptions import DatabaseError, StoreWriteError
from marketsync.database import async_session
from marketsync.models.app_setting import AppSetting

logger = logging.getLogger(__name__)

TOKEN_SETTING_KEY = "ml_tokens"


class SqlTokenStore:

    def __init__(self, session_factory: Optional[Callable[[], AsyncSession]] = None, key: str = TOKEN_SETTING_KEY):
        self.session_factory = session_factory or async_session
        self.key = key

    async def load(self) -> Optional[Dict]:
        try:
            async with self.session_factory() as db:
                result = await db.execute(select(AppSetting.value).where(AppSetting.key == self.key))
                value = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise DatabaseError(f"Could not read {self.key}: {e}") from e
        return dict(value) if value else None

    async def save(self, state: Dict) -> None:
        async with self.session_factory() as db:
            try:
                setting = await db.get(AppSetting, self.key)
                if setting is None:
                    db.add(AppSetting(key=self.key, value=state))
                else:
                    setting.value = state
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                raise StoreWriteError(f"Could not save {self.key}: {e}") from e
        logger.debug(f"Saved {self.key}")
