"""HTTP client for a running Bidboard API."""

from typing import Any, Optional

import httpx

from .errors import (
    AuthorizationError,
    ConflictError,
    InvalidStateError,
    MarketError,
    NotFoundError,
    UnauthenticatedError,
    ValidationError,
)

ERRORS_BY_CODE: dict[str, type[MarketError]] = {
    cls.code: cls
    for cls in (
        NotFoundError,
        AuthorizationError,
        ValidationError,
        InvalidStateError,
        ConflictError,
        UnauthenticatedError,
    )
}


def _raise_for_error(response: httpx.Response) -> None:
    """Turn a structured error body back into the matching MarketError."""
    if response.is_success:
        return
    try:
        body = response.json()
    except ValueError:
        response.raise_for_status()
        return
    error_cls = ERRORS_BY_CODE.get(body.get("error", ""))
    if error_cls is None:
        response.raise_for_status()
        return
    raise error_cls(body.get("detail", response.reason_phrase))


class BidboardClient:
    """Async client for the Bidboard REST API.

    Example:
        async with BidboardClient("http://localhost:8000") as client:
            await client.login("owner@example.com", "password123")
            collection = await client.create_collection("Prints", stocks=5, price=1000.0)
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            transport=transport,
            timeout=30.0,
        )

    async def __aenter__(self) -> "BidboardClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    def _headers(self) -> dict[str, str]:
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        response = await self.client.request(method, path, headers=self._headers(), **kwargs)
        _raise_for_error(response)
        return response.json()

    # ============================================================
    # Auth
    # ============================================================

    async def register(self, email: str, password: str, name: str) -> dict[str, Any]:
        """Register and keep the returned token for later calls."""
        data = await self._request(
            "POST", "/auth/register", json={"email": email, "password": password, "name": name}
        )
        self.token = data["access_token"]
        return data

    async def login(self, email: str, password: str) -> dict[str, Any]:
        """Log in and keep the returned token for later calls."""
        data = await self._request("POST", "/auth/login", json={"email": email, "password": password})
        self.token = data["access_token"]
        return data

    async def logout(self) -> None:
        await self._request("POST", "/auth/logout")
        self.token = None

    async def profile(self) -> dict[str, Any]:
        return await self._request("GET", "/auth/profile")

    # ============================================================
    # Collections
    # ============================================================

    async def list_collections(self, limit: int | None = None) -> list[dict[str, Any]]:
        params = {"limit": limit} if limit else None
        data = await self._request("GET", "/collections", params=params)
        return data.get("collections", [])

    async def get_collection(self, collection_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/collections/{collection_id}")

    async def create_collection(
        self,
        name: str,
        stocks: int,
        price: float,
        description: str | None = None,
    ) -> dict[str, Any]:
        payload = {"name": name, "stocks": stocks, "price": price}
        if description is not None:
            payload["description"] = description
        return await self._request("POST", "/collections", json=payload)

    async def update_collection(self, collection_id: str, **fields: Any) -> dict[str, Any]:
        return await self._request("PATCH", f"/collections/{collection_id}", json=fields)

    async def delete_collection(self, collection_id: str) -> dict[str, Any]:
        return await self._request("DELETE", f"/collections/{collection_id}")

    # ============================================================
    # Bids
    # ============================================================

    async def list_bids(self, collection_id: str) -> list[dict[str, Any]]:
        data = await self._request("GET", "/bids", params={"collectionId": collection_id})
        return data.get("bids", [])

    async def get_bid(self, bid_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/bids/{bid_id}")

    async def place_bid(self, collection_id: str, price: float) -> dict[str, Any]:
        return await self._request(
            "POST", "/bids", json={"collectionId": collection_id, "price": price}
        )

    async def update_bid(self, bid_id: str, price: float) -> dict[str, Any]:
        return await self._request("PATCH", f"/bids/{bid_id}", json={"price": price})

    async def cancel_bid(self, bid_id: str) -> dict[str, Any]:
        return await self._request("DELETE", f"/bids/{bid_id}")

    async def accept_bid(self, collection_id: str, bid_id: str) -> dict[str, Any]:
        return await self._request("POST", f"/bids/accept/{collection_id}/{bid_id}")

    async def reject_bid(self, collection_id: str, bid_id: str) -> dict[str, Any]:
        return await self._request("POST", f"/bids/reject/{collection_id}/{bid_id}")
