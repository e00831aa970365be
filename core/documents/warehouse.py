"""Transfer store resolution from CRM item fields.

When a transfer request lacks storeFrom or storeTo, the missing side is read
from the source item: a caller-named field first, then the conventional
user fields below, in order.
"""

from typing import Any, Dict, Optional, Sequence

from connectors.bitrix.bx_connector import BitrixConnector
from core.documents.owner import entity_type_id_from_owner_short
from core.documents.params import is_blank, to_positive_int
from core.documents.policy import StoreAssignment
from core.errors import ValidationError
from core.observability.logging import get_logger

logger = get_logger(__name__)


STORE_FROM_FALLBACK_FIELDS = ("UF_STORE_FROM", "UF_WAREHOUSE_FROM", "UF_CRM_STORE_FROM")
STORE_TO_FALLBACK_FIELDS = ("UF_STORE_TO", "UF_WAREHOUSE_TO", "UF_CRM_STORE_TO")


def store_from_item(
    item: Dict[str, Any],
    override_field: Optional[str],
    fallback_fields: Sequence[str],
) -> Optional[int]:
    """Read a store id off an item.

    A present override field decides on its own, even if its value is not a
    usable id. Otherwise the first fallback field that holds a value does.
    """
    if override_field and item.get(override_field) is not None:
        return to_positive_int(item[override_field])

    for field_name in fallback_fields:
        value = item.get(field_name)
        if not is_blank(value):
            return to_positive_int(value)
    return None


class WarehouseResolver:
    """Fills in missing transfer stores from the source CRM item."""

    def __init__(self, connector: BitrixConnector):
        self.connector = connector

    async def resolve_transfer_stores(
        self,
        owner_type: str,
        entity_id: int,
        store_from: Optional[int] = None,
        store_to: Optional[int] = None,
        store_from_field: Optional[str] = None,
        store_to_field: Optional[str] = None,
    ) -> StoreAssignment:
        """Resolve both transfer stores, reading the item once.

        Raises:
            ValidationError: Owner type has no entity type id, or a side stays unresolved
        """
        entity_type_id = entity_type_id_from_owner_short(owner_type)
        if not entity_type_id:
            raise ValidationError(f"Cannot determine entityTypeId for owner type {owner_type!r}")

        item = await self.connector.get_item(entity_type_id, entity_id)

        resolved_from = store_from or store_from_item(item, store_from_field, STORE_FROM_FALLBACK_FIELDS)
        resolved_to = store_to or store_from_item(item, store_to_field, STORE_TO_FALLBACK_FIELDS)

        missing = [
            name for name, value in (("storeFrom", resolved_from), ("storeTo", resolved_to))
            if not value
        ]
        if missing:
            raise ValidationError(
                f"docType=M requires both stores (storeFrom & storeTo); unresolved: {', '.join(missing)}. "
                "Pass them as parameters or name the item fields with storeFromField/storeToField.",
                details={"got": {"storeFrom": store_from, "storeTo": store_to}},
            )

        logger.info(
            "Transfer stores resolved from item",
            extra_fields={"store_from": resolved_from, "store_to": resolved_to},
        )
        return StoreAssignment(store_from=resolved_from, store_to=resolved_to)
