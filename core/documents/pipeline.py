"""Warehouse document pipeline.

Turns the product rows of a CRM deal or smart-process item into a Bitrix
warehouse document:

    1. validate the request and resolve owner type / document type
    2. collect the item's product rows (404 when there are none)
    3. resolve stores, reading transfer stores off the item if needed
    4. dry-run: return a preview and stop
    5. create the document, attach rows concurrently, conduct it

Attachment failures are not compensated: a document created before a
failing row stays on the portal with the rows that did get attached.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from connectors.bitrix.bx_connector import BitrixConnector
from connectors.bitrix.bx_models import BXDocumentElementFields, BXDocumentFields
from core.config import BridgeSettings
from core.documents.models import (
    DocumentResult,
    DryRunPreview,
    Outcome,
    PreviewRow,
    ProcessDocsRequest,
    ProductRow,
    RowOutcome,
)
from core.documents.owner import DEFAULT_SPA_ENTITY_TYPE_ID, resolve_owner_type_short
from core.documents.params import (
    OWNER_TYPE_ALIASES,
    SUB_TYPE_ID_ALIASES,
    first_present,
    is_blank,
    parse_flag,
    to_positive_int,
)
from core.documents.policy import (
    DocumentType,
    StoreAssignment,
    map_doc_type,
    parse_store,
    validate_store_inputs,
)
from core.documents.warehouse import WarehouseResolver
from core.errors import NotFoundError, RemoteCallError, ValidationError
from core.observability.logging import bind_correlation, get_logger, with_correlation

logger = get_logger(__name__)


class AttachMode(str, Enum):
    """How row attachment failures are handled."""
    FAIL_FAST = "fail_fast"      # first failure fails the request
    BEST_EFFORT = "best_effort"  # attempt every row, report failures


@dataclass
class PipelineSettings:
    """Fixed document attributes and attachment behaviour."""
    responsible_id: int = 1
    currency: str = "KZT"
    default_spa_entity_type_id: int = DEFAULT_SPA_ENTITY_TYPE_ID
    attach_mode: AttachMode = AttachMode.FAIL_FAST
    attach_concurrency: int = 10

    @classmethod
    def from_bridge_settings(cls, settings: BridgeSettings) -> "PipelineSettings":
        return cls(
            responsible_id=settings.responsible_id,
            currency=settings.currency,
            default_spa_entity_type_id=settings.spa_entity_type_id,
            attach_mode=AttachMode(settings.attach_mode),
            attach_concurrency=settings.attach_concurrency,
        )


def filter_rows(raw_rows: Sequence[dict]) -> Tuple[List[ProductRow], int]:
    """Split remote rows into submittable rows and a skipped count."""
    rows = [row for row in (ProductRow.from_remote(r) for r in raw_rows) if row is not None]
    return rows, len(raw_rows) - len(rows)


class DocumentPipeline:
    """Processes one request at a time; safe to share between requests."""

    def __init__(
        self,
        connector: BitrixConnector,
        settings: Optional[PipelineSettings] = None,
        warehouse_resolver: Optional[WarehouseResolver] = None,
    ):
        self.connector = connector
        self.settings = settings or PipelineSettings()
        self.warehouse_resolver = warehouse_resolver or WarehouseResolver(connector)

    async def process(self, request: ProcessDocsRequest) -> Outcome:
        """Run the pipeline for one request.

        Raises:
            ValidationError: Bad or contradictory parameters
            NotFoundError: The element has no product rows
            RemoteCallError: Any Bitrix failure
            ConfigurationError: Webhook link not initialized
        """
        if is_blank(request.elem_id):
            raise ValidationError("elemId is required")
        if is_blank(request.doc_type):
            raise ValidationError("docType is required (S|M|D)")

        elem_id = to_positive_int(request.elem_id)
        if elem_id is None:
            raise ValidationError(f"elemId must be a positive integer, got {request.elem_id!r}")

        params = request.as_params()
        owner_type = resolve_owner_type_short(
            explicit_type=first_present(params, OWNER_TYPE_ALIASES),
            legacy_type=request.elem_type,
            sub_type_id=first_present(params, SUB_TYPE_ID_ALIASES),
            default_sub_type_id=self.settings.default_spa_entity_type_id,
        )
        doc_type = map_doc_type(request.doc_type)
        validate_store_inputs(doc_type, request.store_id, request.store_from, request.store_to)
        stores = StoreAssignment(
            store_id=parse_store("storeId", request.store_id),
            store_from=parse_store("storeFrom", request.store_from),
            store_to=parse_store("storeTo", request.store_to),
        )

        with with_correlation(elem_id=elem_id, owner_type=owner_type, doc_type=doc_type.value):
            return await self._run(request, elem_id, owner_type, doc_type, stores)

    async def _run(
        self,
        request: ProcessDocsRequest,
        elem_id: int,
        owner_type: str,
        doc_type: DocumentType,
        stores: StoreAssignment,
    ) -> Outcome:
        logger.info(f"Collecting product rows for {owner_type} #{elem_id}")
        raw_rows = await self.connector.get_product_rows(owner_type, elem_id)
        logger.info(f"Product rows found: {len(raw_rows)}")
        if not raw_rows:
            raise NotFoundError(
                "The element has no product rows",
                details={"elemId": elem_id, "ownerTypeShort": owner_type},
            )

        if doc_type is DocumentType.TRANSFER and not stores.is_transfer_complete():
            stores = await self._resolve_transfer_stores(request, elem_id, owner_type, stores)
        store_fields = stores.for_doc_type(doc_type)

        rows, skipped = filter_rows(raw_rows)
        if skipped:
            logger.info(f"Skipping {skipped} row(s) without a product id or quantity")

        if parse_flag(request.dry_run, default=False):
            return DryRunPreview(
                elem_id=elem_id,
                owner_type_short=owner_type,
                doc_type_incoming=str(request.doc_type).strip().upper(),
                bitrix_doc_type=doc_type.value,
                responsible_id=self.settings.responsible_id,
                currency=self.settings.currency,
                rows=[PreviewRow(product_id=r.product_id, quantity=r.quantity) for r in rows],
                stores=store_fields,
                rows_skipped=skipped,
            )

        doc_id = await self._create_document(request, elem_id, owner_type, doc_type)
        bind_correlation(doc_id=doc_id)
        logger.info(f"Document #{doc_id} created, attaching {len(rows)} row(s)")

        outcomes = await self._attach_rows(doc_id, rows, store_fields)
        failed = [o for o in outcomes if not o.ok]

        conducted = False
        if parse_flag(request.conduct, default=True):
            if failed:
                logger.warning(f"Not conducting document #{doc_id}: {len(failed)} row(s) failed")
            else:
                conducted = await self.connector.conduct_document(doc_id)
                logger.info(f"Document #{doc_id} conducted: {conducted}")

        return DocumentResult(
            doc_id=doc_id,
            conducted=conducted,
            rows_added=len(outcomes) - len(failed),
            rows_skipped=skipped,
            failed_rows=failed,
        )

    async def _resolve_transfer_stores(
        self,
        request: ProcessDocsRequest,
        elem_id: int,
        owner_type: str,
        stores: StoreAssignment,
    ) -> StoreAssignment:
        resolved = await self.warehouse_resolver.resolve_transfer_stores(
            owner_type,
            elem_id,
            store_from=stores.store_from,
            store_to=stores.store_to,
            store_from_field=request.store_from_field or None,
            store_to_field=request.store_to_field or None,
        )
        return StoreAssignment(
            store_id=stores.store_id,
            store_from=resolved.store_from,
            store_to=resolved.store_to,
        )

    async def _create_document(
        self,
        request: ProcessDocsRequest,
        elem_id: int,
        owner_type: str,
        doc_type: DocumentType,
    ) -> int:
        fields = BXDocumentFields(
            doc_type=doc_type.value,
            title=f"Auto {doc_type.value} from {owner_type} #{elem_id}",
            responsible_id=self.settings.responsible_id,
            currency=self.settings.currency,
            date=datetime.now(timezone.utc).isoformat(),
            site_id=None if is_blank(request.site_id) else request.site_id,
        )
        return await self.connector.create_document(fields)

    async def _attach_rows(
        self,
        doc_id: int,
        rows: Sequence[ProductRow],
        store_fields: dict,
    ) -> List[RowOutcome]:
        """Attach all rows concurrently, at most attach_concurrency in flight."""
        semaphore = asyncio.Semaphore(self.settings.attach_concurrency)

        async def attach(row: ProductRow) -> RowOutcome:
            fields = BXDocumentElementFields(
                doc_id=doc_id,
                element_id=row.product_id,
                amount=row.quantity,
                store_from=store_fields.get("storeFrom"),
                store_to=store_fields.get("storeTo"),
            )
            async with semaphore:
                await self.connector.add_document_element(fields)
            return RowOutcome(product_id=row.product_id, quantity=row.quantity, ok=True)

        # every attachment settles before the request ends, in both modes
        results = await asyncio.gather(*(attach(row) for row in rows), return_exceptions=True)

        if self.settings.attach_mode is AttachMode.FAIL_FAST:
            errors = [r for r in results if isinstance(r, BaseException)]
            if errors:
                logger.error(
                    f"{len(errors)} of {len(rows)} row(s) failed; document #{doc_id} is left partially filled"
                )
                raise errors[0]
            return list(results)

        outcomes: List[RowOutcome] = []
        for row, result in zip(rows, results):
            if isinstance(result, RemoteCallError):
                outcomes.append(RowOutcome(
                    product_id=row.product_id,
                    quantity=row.quantity,
                    ok=False,
                    error=result.message,
                ))
            elif isinstance(result, BaseException):
                raise result
            else:
                outcomes.append(result)

        failed = sum(1 for o in outcomes if not o.ok)
        if failed:
            logger.warning(
                f"{failed} of {len(rows)} row(s) failed to attach to document #{doc_id}",
                extra_fields={"failed_product_ids": [o.product_id for o in outcomes if not o.ok]},
            )
        return outcomes
