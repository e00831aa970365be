"""Request and outcome models of the document pipeline.

Field names follow the wire format (camelCase) through aliases; Python code
uses the snake_case attribute names.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.documents.params import to_number, to_positive_int


class PipelineModel(BaseModel):
    """Base model accepting both alias and attribute names."""

    model_config = ConfigDict(populate_by_name=True)


class ProcessDocsRequest(PipelineModel):
    """Flat parameter set of a process_docs call.

    All values are kept as received (strings from a query string); the
    pipeline interprets them.
    """
    elem_id: Optional[str] = Field(None, alias="elemId")
    doc_type: Optional[str] = Field(None, alias="docType")

    store_id: Optional[str] = Field(None, alias="storeId")
    store_from: Optional[str] = Field(None, alias="storeFrom")
    store_to: Optional[str] = Field(None, alias="storeTo")

    owner_type: Optional[str] = Field(None, alias="ownerType")
    owner_type_short: Optional[str] = Field(None, alias="ownerTypeShort")
    elem_type: Optional[str] = Field(None, alias="elemType")
    spa_type_id: Optional[str] = Field(None, alias="spaTypeId")
    entity_type_id: Optional[str] = Field(None, alias="entityTypeId")
    smart_type_id: Optional[str] = Field(None, alias="smartTypeId")

    conduct: Optional[str] = Field(None, alias="conduct")
    dry_run: Optional[str] = Field(None, alias="dryRun")
    store_from_field: Optional[str] = Field(None, alias="storeFromField")
    store_to_field: Optional[str] = Field(None, alias="storeToField")
    site_id: Optional[str] = Field(None, alias="siteId")

    @field_validator("*", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> "ProcessDocsRequest":
        """Build from a query-string style mapping, ignoring unknown names."""
        known = {f.alias or name for name, f in cls.model_fields.items()}
        return cls.model_validate({k: v for k, v in params.items() if k in known})

    def as_params(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


@dataclass(frozen=True)
class ProductRow:
    """One product line of a CRM element."""
    product_id: int
    quantity: float

    @classmethod
    def from_remote(cls, row: Mapping[str, Any]) -> Optional["ProductRow"]:
        """Parse a crm.item.productrow row; None if it is not submittable.

        Rows without a positive product id or a positive quantity are dropped.
        """
        product_id = to_positive_int(row.get("PRODUCT_ID") or row.get("productId"))
        quantity = to_number(row.get("QUANTITY") or row.get("quantity"))
        if product_id is None or quantity is None or quantity <= 0:
            return None
        return cls(product_id=product_id, quantity=quantity)


class PreviewRow(PipelineModel):
    product_id: int = Field(..., alias="productId")
    quantity: float = Field(..., alias="quantity")


class DryRunPreview(PipelineModel):
    """What a request would do, computed without remote mutation."""
    dry_run: bool = Field(True, alias="dryRun")
    elem_id: int = Field(..., alias="elemId")
    owner_type_short: str = Field(..., alias="ownerTypeShort")
    doc_type_incoming: str = Field(..., alias="docTypeIncoming")
    bitrix_doc_type: str = Field(..., alias="bitrixDocType")
    responsible_id: int = Field(..., alias="responsibleId")
    currency: str = Field(..., alias="currency")
    rows: List[PreviewRow] = Field(default_factory=list, alias="rows")
    stores: Dict[str, int] = Field(default_factory=dict, alias="stores")
    rows_skipped: int = Field(0, alias="rowsSkipped")


class RowOutcome(PipelineModel):
    """Result of attaching one row to a document."""
    product_id: int = Field(..., alias="productId")
    quantity: float = Field(..., alias="quantity")
    ok: bool = Field(..., alias="ok")
    error: Optional[str] = Field(None, alias="error")


class DocumentResult(PipelineModel):
    """Final outcome of a processed request."""
    ok: bool = Field(True, alias="ok")
    doc_id: int = Field(..., alias="docId")
    conducted: bool = Field(False, alias="conducted")
    rows_added: int = Field(0, alias="rowsAdded")
    rows_skipped: int = Field(0, alias="rowsSkipped")
    failed_rows: List[RowOutcome] = Field(default_factory=list, alias="failedRows")


Outcome = Union[DryRunPreview, DocumentResult]
