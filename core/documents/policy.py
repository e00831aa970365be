"""Warehouse document types and their store rules.

    S  receipt   - goods arrive at a destination store
    M  transfer  - goods move from one store to another
    D  write-off - goods leave a source store

A generic ``storeId`` stands in for the destination of a receipt or the
source of a write-off. A transfer needs both sides, possibly filled in from
the CRM item (see core/documents/warehouse.py).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from core.documents.params import is_blank, to_positive_int
from core.errors import ValidationError


class DocumentType(str, Enum):
    """Bitrix warehouse document type codes."""
    RECEIPT = "S"
    TRANSFER = "M"
    WRITEOFF = "D"


def map_doc_type(raw: Any) -> DocumentType:
    code = "" if raw is None else str(raw).strip().upper()
    try:
        return DocumentType(code)
    except ValueError:
        raise ValidationError("docType must be S (receipt), M (transfer) or D (write-off)")


def validate_store_inputs(
    doc_type: DocumentType,
    store_id: Optional[Any] = None,
    store_from: Optional[Any] = None,
    store_to: Optional[Any] = None,
) -> None:
    """Check which raw store parameters a document type requires or forbids.

    Transfers are only checked once the warehouse fallback has run.

    Raises:
        ValidationError: Naming the missing or disallowed parameter
    """
    has_id, has_from, has_to = (not is_blank(v) for v in (store_id, store_from, store_to))

    if doc_type is DocumentType.RECEIPT:
        if not (has_id or has_to):
            raise ValidationError("docType=S requires storeId (or storeTo)")
        if has_from:
            raise ValidationError("docType=S does not accept storeFrom. Use docType=M for transfers.")
    elif doc_type is DocumentType.WRITEOFF:
        if not (has_id or has_from):
            raise ValidationError("docType=D requires storeId (or storeFrom)")
        if has_to:
            raise ValidationError("docType=D does not accept storeTo. Use docType=M for transfers.")


def parse_store(name: str, value: Any) -> Optional[int]:
    """Normalize a store id parameter; blank means absent.

    Raises:
        ValidationError: If the value is present but not a positive integer
    """
    if is_blank(value):
        return None
    store = to_positive_int(value)
    if store is None:
        raise ValidationError(f"{name} must be a positive integer, got {value!r}")
    return store


@dataclass(frozen=True)
class StoreAssignment:
    """Normalized store ids of a request."""
    store_id: Optional[int] = None
    store_from: Optional[int] = None
    store_to: Optional[int] = None

    def is_transfer_complete(self) -> bool:
        return bool(self.store_from and self.store_to)

    def for_doc_type(self, doc_type: DocumentType) -> Dict[str, int]:
        """Store fields a document row carries, keyed by Bitrix field name.

        Raises:
            ValidationError: If a required side is still missing
        """
        if doc_type is DocumentType.RECEIPT:
            store_to = self.store_to or self.store_id
            if not store_to:
                raise ValidationError("docType=S requires storeId (or storeTo)")
            return {"storeTo": store_to}

        if doc_type is DocumentType.WRITEOFF:
            store_from = self.store_from or self.store_id
            if not store_from:
                raise ValidationError("docType=D requires storeId (or storeFrom)")
            return {"storeFrom": store_from}

        if not self.is_transfer_complete():
            raise ValidationError("docType=M requires storeFrom and storeTo")
        return {"storeFrom": self.store_from, "storeTo": self.store_to}
