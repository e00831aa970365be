"""Warehouse document pipeline - CRM product rows to Bitrix inventory documents."""

from core.documents.models import (
    DocumentResult,
    DryRunPreview,
    Outcome,
    ProcessDocsRequest,
    ProductRow,
    RowOutcome,
)
from core.documents.owner import (
    entity_type_id_from_owner_short,
    resolve_owner_type_short,
)
from core.documents.pipeline import AttachMode, DocumentPipeline, PipelineSettings
from core.documents.policy import DocumentType, StoreAssignment, map_doc_type
from core.documents.warehouse import WarehouseResolver

__all__ = [
    "AttachMode",
    "DocumentPipeline",
    "PipelineSettings",
    "DocumentType",
    "StoreAssignment",
    "map_doc_type",
    "resolve_owner_type_short",
    "entity_type_id_from_owner_short",
    "WarehouseResolver",
    "ProcessDocsRequest",
    "ProductRow",
    "DryRunPreview",
    "DocumentResult",
    "RowOutcome",
    "Outcome",
]
