"""
Mercado Libre OAuth handling.

Access tokens are cached in memory and refreshed from the refresh token when
they are about to expire. Mercado Libre rotates the refresh token on every
refresh, so each new pair is also written to the token store; a fresh process
picks up from the stored pair instead of the already used ML_REFRESH_TOKEN.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional
from urllib.parse import urlencode

import httpx

from marketsync.core.config import Settings, get_settings
from marketsync.core.exceptions import DatabaseError, MarketplaceAuthError

logger = logging.getLogger(__name__)


class MercadoLibreAuthManager:
    """
    Manages Mercado Libre OAuth tokens: in-memory cache, optional persistent token store
    """

    # Class-level cache shared across instances (one seller account per process)
    _tokens: Dict[str, Dict] = {}

    def __init__(self, settings: Optional[Settings] = None, token_store=None):
        self.settings = settings or get_settings()
        self.token_store = token_store
        self.client_id = self.settings.ML_CLIENT_ID
        self.client_secret = self.settings.ML_CLIENT_SECRET
        self.redirect_uri = self.settings.ML_REDIRECT_URI
        self.token_url = f"{self.settings.ML_API_URL}/oauth/token"
        self.refresh_margin = timedelta(seconds=self.settings.ML_TOKEN_REFRESH_MARGIN_SECONDS)

        if self.settings.ML_ACCESS_TOKEN and "access_token" not in self._tokens.get(self.client_id, {}):
            # Pre-issued token: valid until proven otherwise, refreshed after the margin
            self._store(self.settings.ML_ACCESS_TOKEN, None, int(self.refresh_margin.total_seconds()) * 2)

    def _state(self) -> Dict:
        return self._tokens.setdefault(self.client_id, {})

    def _store(self, access_token: str, refresh_token: Optional[str], expires_in: int, user_id=None) -> None:
        state = self._state()
        state["access_token"] = access_token
        state["expires_at"] = datetime.now(timezone.utc) + timedelta(seconds=expires_in)
        if refresh_token:
            state["refresh_token"] = refresh_token
        if user_id:
            state["user_id"] = user_id

    def _valid_access_token(self) -> Optional[str]:
        state = self._state()
        token = state.get("access_token")
        expires_at = state.get("expires_at")
        if token and expires_at and expires_at - self.refresh_margin > datetime.now(timezone.utc):
            return token
        return None

    async def _load_stored_tokens(self) -> None:
        """Replace the cached pair with the persisted one, if there is one"""
        if self.token_store is None:
            return
        try:
            stored = await self.token_store.load()
        except DatabaseError as e:
            logger.error(f"Could not load stored Mercado Libre tokens: {e}")
            raise MarketplaceAuthError(f"Could not load stored Mercado Libre tokens: {e}") from e
        if not stored:
            return

        state = self._state()
        for key in ("access_token", "refresh_token", "user_id"):
            if stored.get(key):
                state[key] = stored[key]
        if stored.get("expires_at"):
            state["expires_at"] = datetime.fromisoformat(stored["expires_at"])

    async def _persist_tokens(self) -> None:
        if self.token_store is None:
            return
        state = self._state()
        try:
            await self.token_store.save({
                "access_token": state.get("access_token"),
                "refresh_token": state.get("refresh_token"),
                "user_id": state.get("user_id"),
                "expires_at": state["expires_at"].isoformat() if state.get("expires_at") else None,
            })
        except DatabaseError as e:
            # The new pair is still cached in this process
            logger.error(f"Could not persist rotated Mercado Libre tokens: {e}")

    def get_refresh_token(self) -> Optional[str]:
        return self._state().get("refresh_token") or self.settings.ML_REFRESH_TOKEN or None

    def get_user_id(self) -> Optional[str]:
        user_id = self._state().get("user_id")
        return str(user_id) if user_id else None

    async def get_access_token(self) -> str:
        """
        Get a valid access token, refreshing if necessary
        """
        token = self._valid_access_token()
        if token:
            return token

        # Another process may have rotated the pair since it was cached here
        await self._load_stored_tokens()
        token = self._valid_access_token()
        if token:
            return token

        refresh_token = self.get_refresh_token()
        if not refresh_token:
            raise MarketplaceAuthError("Mercado Libre is not connected: no refresh token available")
        if not self.client_id or not self.client_secret:
            raise MarketplaceAuthError("Missing ML_CLIENT_ID / ML_CLIENT_SECRET")

        logger.info("Refreshing Mercado Libre access token")
        token_data = await self._request_token({
            "grant_type": "refresh_token",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": refresh_token,
        })
        return token_data["access_token"]

    def get_authorization_url(self) -> str:
        """URL that starts the seller authorization flow"""
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
        }
        return f"{self.settings.ML_AUTH_URL}/authorization?{urlencode(params)}"

    async def exchange_code(self, code: str) -> Dict:
        """Exchange an authorization code for tokens; returns the token payload"""
        return await self._request_token({
            "grant_type": "authorization_code",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "code": code,
            "redirect_uri": self.redirect_uri,
        })

    async def _request_token(self, form: Dict[str, str]) -> Dict:
        try:
            async with httpx.AsyncClient(timeout=self.settings.ML_REQUEST_TIMEOUT) as client:
                response = await client.post(
                    self.token_url,
                    data=form,
                    headers={"Accept": "application/json"},
                )
        except httpx.RequestError as e:
            logger.error(f"Network error requesting Mercado Libre token: {str(e)}")
            raise MarketplaceAuthError(f"Network error requesting access token: {str(e)}")

        if response.status_code != 200:
            logger.error(f"Mercado Libre token request failed: {response.text}")
            raise MarketplaceAuthError(f"Token request failed ({response.status_code}): {response.text}")

        token_data = response.json()
        self._store(
            token_data["access_token"],
            token_data.get("refresh_token"),
            int(token_data.get("expires_in", 21600)),
            user_id=token_data.get("user_id"),
        )
        await self._persist_tokens()
        return token_data

    def clear_tokens(self):
        """Clear all tokens from memory"""
        self._tokens.pop(self.client_id, None)
