"""Bitrix24 CRM / inventory operations.

Wraps the REST methods the document pipeline needs:

    crm.item.productrow.list      product rows of a deal or smart-process item
    crm.item.get                  the item itself (custom warehouse fields)
    catalog.document.add          create a warehouse document
    catalog.document.element.add  attach one product row
    catalog.document.conduct      conduct (post) the document
"""

from typing import Any, Dict, List

from connectors.bitrix.bx_client import BXApiClient
from connectors.bitrix.bx_models import BXDocumentElementFields, BXDocumentFields
from core.errors import RemoteCallError


PRODUCT_ROW_LIST = "crm.item.productrow.list"
ITEM_GET = "crm.item.get"
DOCUMENT_ADD = "catalog.document.add"
DOCUMENT_ELEMENT_ADD = "catalog.document.element.add"
DOCUMENT_CONDUCT = "catalog.document.conduct"


class BitrixConnector:
    """Named Bitrix operations on top of BXApiClient."""

    def __init__(self, client: BXApiClient):
        self.client = client

    async def get_product_rows(self, owner_type: str, owner_id: int) -> List[Dict[str, Any]]:
        """All product rows owned by an element, across pages."""
        params = {
            "filter": {"=ownerType": owner_type, "=ownerId": int(owner_id)},
            "select": ["*"],
        }
        return await self.client.list_all(PRODUCT_ROW_LIST, params, "productRows")

    async def get_item(self, entity_type_id: int, item_id: int) -> Dict[str, Any]:
        """Read a CRM item; an empty dict if the response has none."""
        result = await self.client.call(ITEM_GET, {"entityTypeId": entity_type_id, "id": int(item_id)})
        if isinstance(result, dict) and isinstance(result.get("item"), dict):
            return result["item"]
        return {}

    async def create_document(self, fields: BXDocumentFields) -> int:
        """Create a warehouse document and return its id."""
        result = await self.client.call(DOCUMENT_ADD, {"fields": fields.to_fields()})
        try:
            return int(result["document"]["id"])
        except (KeyError, TypeError, ValueError):
            raise RemoteCallError(
                f"{DOCUMENT_ADD}: unexpected response - document id missing in {result!r}",
                method=DOCUMENT_ADD,
            )

    async def add_document_element(self, fields: BXDocumentElementFields) -> Any:
        return await self.client.call(DOCUMENT_ELEMENT_ADD, {"fields": fields.to_fields()})

    async def conduct_document(self, doc_id: int) -> bool:
        result = await self.client.call(DOCUMENT_CONDUCT, {"id": doc_id})
        return bool(result)
