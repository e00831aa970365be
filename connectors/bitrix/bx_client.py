"""Bitrix24 REST Client.

Low-level client for Bitrix24 inbound-webhook REST calls.
Handles the webhook URL, the result/error envelope, and cursor pagination.
Nothing here retries: every failure surfaces as RemoteCallError.
"""

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

import aiohttp

from core.errors import RemoteCallError
from core.observability.logging import get_logger
from core.security.link_store import LinkStore

logger = get_logger(__name__)


@dataclass
class BXApiConfig:
    """Configuration for the Bitrix REST client."""
    timeout_seconds: float = 30.0
    method_suffix: str = ".json"

    def method_url(self, base_url: str, method: str) -> str:
        """Get the URL for a REST method, e.g. {base}/crm.item.get.json."""
        return f"{base_url.rstrip('/')}/{method}{self.method_suffix}"


class BXApiClient:
    """HTTP client for the Bitrix24 REST API.

    Provides:
    - Webhook URL resolution through a LinkStore
    - Result/error envelope unwrapping
    - Automatic "next"-cursor pagination

    Usage:
        client = BXApiClient(link_store, BXApiConfig())
        await client.connect()
        item = await client.call("crm.item.get", {"entityTypeId": 2, "id": 42})
        rows = await client.list_all("crm.item.productrow.list", params, "productRows")
    """

    def __init__(
        self,
        link_store: LinkStore,
        api_config: Optional[BXApiConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """Initialize API client.

        Args:
            link_store: Source of the encrypted webhook link
            api_config: API configuration
            session: Pre-built HTTP session (the client will not close it)
        """
        self.link_store = link_store
        self.api_config = api_config or BXApiConfig()
        self._session = session
        self._owns_session = session is None

    async def connect(self) -> None:
        """Initialize HTTP session."""
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=self.api_config.timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True

    async def disconnect(self) -> None:
        """Close HTTP session."""
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    async def _request(self, method: str, params: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """POST a REST method and return the decoded response envelope.

        Raises:
            ConfigurationError: Webhook link not initialized
            RemoteCallError: Transport failure, error envelope or undecodable body
        """
        base_url = await self.link_store.get_base_url()
        if self._session is None:
            await self.connect()

        url = self.api_config.method_url(base_url, method)
        logger.debug(f"Calling {method}")

        try:
            async with self._session.post(url, json=dict(params or {})) as response:
                status = response.status
                text = await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            message = str(e) or type(e).__name__
            logger.warning(f"{method} transport failure: {message}")
            raise RemoteCallError(f"{method}: {message} - ", method=method)

        data = self._decode(text)

        if isinstance(data, dict) and data.get("error"):
            error_code = str(data["error"])
            description = data.get("error_description") or ""
            logger.warning(
                f"{method} returned error {error_code}",
                extra_fields={"http_status": status, "error_description": description},
            )
            raise RemoteCallError(
                f"{method}: {error_code} - {description}",
                method=method,
                error_code=error_code,
                status_code=status,
            )

        if status >= 400:
            logger.warning(f"{method} failed with HTTP {status}")
            raise RemoteCallError(f"{method}: HTTP {status} - {text[:200]}", method=method, status_code=status)

        if not isinstance(data, dict):
            raise RemoteCallError(f"{method}: invalid response - body is not a JSON object", method=method, status_code=status)

        return data

    @staticmethod
    def _decode(text: str) -> Any:
        if not text:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return None

    async def call(self, method: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        """Call a REST method and return its "result".

        Args:
            method: REST method name (e.g. "catalog.document.add")
            params: JSON body

        Returns:
            The "result" field of the response, unvalidated
        """
        envelope = await self._request(method, params)
        return envelope.get("result")

    async def list_all(
        self,
        method: str,
        params: Optional[Mapping[str, Any]] = None,
        items_key: str = "items",
    ) -> List[Dict[str, Any]]:
        """Collect every page of a list method.

        Bitrix list methods return one page per call plus a "next" offset
        while more pages remain; the offset is sent back as "start".

        Args:
            method: List method name
            params: Base parameters (not mutated)
            items_key: Key holding the page items inside "result"

        Returns:
            All items, in response order
        """
        page_params: Dict[str, Any] = {**(params or {}), "start": 0}
        all_results: List[Dict[str, Any]] = []
        pages = 0

        while True:
            envelope = await self._request(method, page_params)
            pages += 1
            result = envelope.get("result")

            if isinstance(result, list):
                all_results.extend(result)
            elif isinstance(result, dict):
                all_results.extend(result.get(items_key) or [])

            next_start = envelope.get("next")
            if next_start is None and isinstance(result, dict):
                next_start = result.get("next")
            if next_start is None:
                break
            page_params = {**page_params, "start": next_start}

        logger.debug(f"{method}: collected {len(all_results)} items in {pages} page(s)")
        return all_results
