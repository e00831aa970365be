"""Bitrix24 payload models.

These map to the "fields" objects of the catalog.document.* REST methods.
They are separate from the pipeline models in core/documents/.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class BXBaseModel(BaseModel):
    """Base model for Bitrix REST payloads."""

    model_config = ConfigDict(populate_by_name=True)

    def to_fields(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class BXDocumentFields(BXBaseModel):
    """Fields for catalog.document.add.

    Maps to: catalog.document.add {fields: {...}}
    """
    doc_type: str = Field(..., alias="docType")
    title: str = Field(..., alias="title")
    responsible_id: int = Field(..., alias="responsibleId")
    currency: str = Field(..., alias="currency")
    date: str = Field(..., alias="date")
    site_id: Optional[str] = Field(None, alias="siteId")


class BXDocumentElementFields(BXBaseModel):
    """Fields for catalog.document.element.add.

    Receipts carry storeTo only, write-offs storeFrom only, transfers both.
    """
    doc_id: int = Field(..., alias="docId")
    element_id: int = Field(..., alias="elementId")
    amount: float = Field(..., alias="amount")
    store_from: Optional[int] = Field(None, alias="storeFrom")
    store_to: Optional[int] = Field(None, alias="storeTo")
