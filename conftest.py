"""Shared test doubles.

RecordingBXClient replaces the HTTP round trip of BXApiClient with canned
response envelopes and records every (method, params) pair, so the client's
own pagination and envelope handling still run in tests.
"""

import copy
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import pytest

from connectors.bitrix.bx_client import BXApiClient
from connectors.bitrix.bx_connector import BitrixConnector
from core.errors import RemoteCallError
from core.security.link_store import InMemoryLinkStore


Response = Union[Dict[str, Any], Exception, Callable[[Dict[str, Any]], Any]]

MUTATING_METHODS = (
    "catalog.document.add",
    "catalog.document.element.add",
    "catalog.document.conduct",
)


class RecordingBXClient(BXApiClient):
    """BXApiClient whose responses come from a per-method script."""

    def __init__(self, responses: Optional[Dict[str, Union[Response, List[Response]]]] = None):
        super().__init__(InMemoryLinkStore())
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.responses: Dict[str, Union[Response, List[Response]]] = {
            "catalog.document.add": {"result": {"document": {"id": 1001}}},
            "catalog.document.element.add": {"result": {"documentElement": {"id": 1}}},
            "catalog.document.conduct": {"result": True},
        }
        self.responses.update(responses or {})

    async def connect(self) -> None:
        pass

    async def disconnect(self) -> None:
        pass

    async def _request(self, method, params=None):
        params = copy.deepcopy(dict(params or {}))
        self.calls.append((method, params))

        scripted = self.responses.get(method)
        if isinstance(scripted, list):
            if not scripted:
                raise AssertionError(f"No scripted response left for {method}")
            scripted = scripted.pop(0)
        if scripted is None:
            raise RemoteCallError(f"{method}: ERROR_METHOD_NOT_FOUND - unscripted", method=method)
        if callable(scripted):
            scripted = scripted(params)
        if isinstance(scripted, Exception):
            raise scripted
        return scripted

    def methods(self) -> List[str]:
        return [method for method, _ in self.calls]

    def calls_to(self, method: str) -> List[Dict[str, Any]]:
        return [params for m, params in self.calls if m == method]

    def mutation_calls(self) -> List[str]:
        return [m for m in self.methods() if m in MUTATING_METHODS]


def product_rows(*rows: Dict[str, Any], next_start: Optional[int] = None) -> Dict[str, Any]:
    """Envelope of one crm.item.productrow.list page."""
    envelope: Dict[str, Any] = {"result": {"productRows": list(rows)}, "total": len(rows)}
    if next_start is not None:
        envelope["next"] = next_start
    return envelope


@pytest.fixture
def bx_client() -> RecordingBXClient:
    return RecordingBXClient()


@pytest.fixture
def connector(bx_client) -> BitrixConnector:
    return BitrixConnector(bx_client)
