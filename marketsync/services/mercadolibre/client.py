import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from marketsync.core.config import Settings, get_settings
from marketsync.core.exceptions import (
    MarketplaceAPIError,
    MarketplaceAuthError,
    MarketplaceRateLimitError,
)
from marketsync.integrations.base import MarketplaceClient
from marketsync.schemas.marketplace import RemoteItem, RemoteVariation
from marketsync.services.mercadolibre.auth import MercadoLibreAuthManager

logger = logging.getLogger(__name__)

ITEM_ATTRIBUTES = "id,title,status,price,permalink,available_quantity,seller_custom_field,attributes,variations"


def _seller_key(entry: Dict[str, Any]) -> Optional[str]:
    """seller_custom_field, or the SELLER_SKU attribute used by newer listings"""
    if entry.get("seller_custom_field"):
        return str(entry["seller_custom_field"])
    for attribute in entry.get("attributes") or []:
        if attribute.get("id") == "SELLER_SKU" and attribute.get("value_name"):
            return str(attribute["value_name"])
    return None


def _variation_name(variation: Dict[str, Any]) -> Optional[str]:
    values = [a.get("value_name") for a in variation.get("attribute_combinations") or [] if a.get("value_name")]
    return " / ".join(values) or None


def _price(value: Any) -> Optional[float]:
    return float(value) if value is not None else None


def parse_item(body: Dict[str, Any]) -> RemoteItem:
    return RemoteItem(
        id=str(body["id"]),
        title=body.get("title"),
        status=body.get("status"),
        price=_price(body.get("price")),
        permalink=body.get("permalink"),
        seller_sku=_seller_key(body),
        available_quantity=int(body.get("available_quantity") or 0),
        variations=[
            RemoteVariation(
                id=str(v["id"]),
                name=_variation_name(v),
                price=_price(v.get("price")),
                available_quantity=int(v.get("available_quantity") or 0),
                seller_custom_field=_seller_key(v),
            )
            for v in body.get("variations") or []
        ],
    )


class MercadoLibreClient(MarketplaceClient):
    """
    Client for the Mercado Libre items API.
    Credentials are obtained (and refreshed) through MercadoLibreAuthManager.
    Rate-limited requests (429) are retried with exponential backoff before
    MarketplaceRateLimitError reaches the caller.
    """

    def __init__(self, settings: Optional[Settings] = None, auth_manager: Optional[MercadoLibreAuthManager] = None):
        self.settings = settings or get_settings()
        self.auth_manager = auth_manager or MercadoLibreAuthManager(self.settings)
        self.api_url = self.settings.ML_API_URL.rstrip("/")
        self.multiget_limit = max(1, self.settings.ML_MULTIGET_LIMIT)
        self.timeout = self.settings.ML_REQUEST_TIMEOUT

    async def _get_headers(self) -> Dict[str, str]:
        """Get headers with auth token for API requests"""
        token = await self.auth_manager.get_access_token()
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json"
        }

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        backoff = self.settings.ML_RATE_LIMIT_BACKOFF_SECONDS
        async for attempt in AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(1, self.settings.ML_RATE_LIMIT_RETRIES)),
            wait=wait_exponential(multiplier=backoff, min=backoff, max=backoff * 8),
            retry=retry_if_exception_type(MarketplaceRateLimitError),
        ):
            with attempt:
                return await self._send(method, path, **kwargs)

    async def _send(self, method: str, path: str, **kwargs) -> Any:
        headers = await self._get_headers()
        url = f"{self.api_url}{path}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(method, url, headers=headers, **kwargs)
        except httpx.RequestError as e:
            logger.error(f"Network error calling Mercado Libre {method} {path}: {str(e)}")
            raise MarketplaceAPIError(f"Network error calling {path}: {str(e)}")

        if response.status_code in (401, 403):
            logger.error(f"Mercado Libre auth error on {path}: {response.text}")
            raise MarketplaceAuthError(f"Mercado Libre rejected credentials ({response.status_code})")
        if response.status_code == 429:
            logger.warning(f"Mercado Libre rate limit hit on {path}")
            raise MarketplaceRateLimitError("Mercado Libre rate limit exceeded")
        if response.status_code not in (200, 201):
            logger.error(f"Mercado Libre API error: {response.text}")
            raise MarketplaceAPIError(f"ML API Error ({response.status_code}): {self._error_message(response)}")

        return response.json()

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or response.reason_phrase
        if isinstance(body, dict):
            return body.get("message") or body.get("error") or response.reason_phrase
        return response.reason_phrase

    async def get_remote_items(self, item_ids: List[str]) -> List[RemoteItem]:
        """
        Fetch items with their variations via the multiget endpoint

        Args:
            item_ids: Item ids; duplicates are ignored

        Returns:
            List[RemoteItem]: Items that were found. Entries the API answers
            with a non-200 code (deleted, forbidden) are left out.

        Raises:
            MarketplaceAPIError: If a request fails
        """
        unique_ids = list(dict.fromkeys(str(i) for i in item_ids if i))
        items: List[RemoteItem] = []

        for start in range(0, len(unique_ids), self.multiget_limit):
            chunk = unique_ids[start:start + self.multiget_limit]
            payload = await self._request(
                "GET",
                "/items",
                params={"ids": ",".join(chunk), "attributes": ITEM_ATTRIBUTES},
            )
            for entry in payload or []:
                code = entry.get("code")
                body = entry.get("body") or {}
                if code != 200:
                    logger.warning(f"Item lookup returned {code}: {body.get('message') or body}")
                    continue
                items.append(parse_item(body))

        return items

    async def _seller_id(self) -> str:
        user_id = self.auth_manager.get_user_id()
        if user_id:
            return str(user_id)
        me = await self._request("GET", "/users/me")
        return str(me["id"])

    async def list_seller_items(
        self,
        status: Optional[str] = "active",
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[RemoteItem], int]:
        """One page of the seller's own listings, with details; returns (items, total listings)"""
        seller_id = await self._seller_id()
        params: Dict[str, Any] = {"offset": offset, "limit": limit}
        if status:
            params["status"] = status

        page = await self._request("GET", f"/users/{seller_id}/items/search", params=params)
        item_ids = [str(i) for i in page.get("results") or []]
        total = int((page.get("paging") or {}).get("total", len(item_ids)))

        items = await self.get_remote_items(item_ids) if item_ids else []
        return items, total

    async def set_item_quantity(self, item_id: str, quantity: int) -> None:
        await self._request("PUT", f"/items/{item_id}", json={"available_quantity": quantity})
        logger.debug(f"Set item {item_id} available_quantity={quantity}")

    async def set_variation_quantity(self, item_id: str, variation_id: str, quantity: int) -> None:
        # Only this variation is addressed; sibling variations are left untouched
        await self._request(
            "PUT",
            f"/items/{item_id}/variations/{variation_id}",
            json={"available_quantity": quantity},
        )
        logger.debug(f"Set item {item_id} variation {variation_id} available_quantity={quantity}")
