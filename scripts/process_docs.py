"""Run the warehouse document pipeline from the command line.

Uses the same settings and webhook link as the API server (the .env file
written by /init), without going through HTTP. Handy for dry-runs:

    python scripts/process_docs.py --elem-id 42 --doc-type S --store-id 7 --dry-run
    python scripts/process_docs.py --elem-id 42 --doc-type M --owner-type DYNAMIC_1068
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from connectors.bitrix.bx_client import BXApiClient, BXApiConfig
from connectors.bitrix.bx_connector import BitrixConnector
from core.config import BridgeSettings
from core.documents.models import ProcessDocsRequest
from core.documents.pipeline import DocumentPipeline, PipelineSettings
from core.errors import BridgeError
from core.observability.logging import configure_logging, get_logger
from core.security.link_store import EnvFileLinkStore

logger = get_logger(__name__)


async def run_pipeline(params: Dict[str, Any], settings: BridgeSettings) -> Dict[str, Any]:
    """Process one request and return the outcome as a wire-format dict."""
    client = BXApiClient(
        EnvFileLinkStore(settings.env_file),
        BXApiConfig(timeout_seconds=settings.bx_timeout_seconds),
    )
    await client.connect()
    try:
        pipeline = DocumentPipeline(
            BitrixConnector(client),
            PipelineSettings.from_bridge_settings(settings),
        )
        outcome = await pipeline.process(ProcessDocsRequest.from_params(params))
        return outcome.model_dump(by_alias=True)
    finally:
        await client.disconnect()


def main():
    """Entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Create a Bitrix warehouse document from CRM product rows")
    parser.add_argument("--elem-id", required=True, help="Deal or smart-process item id")
    parser.add_argument("--doc-type", required=True, help="S (receipt), M (transfer) or D (write-off)")
    parser.add_argument("--store-id", help="Generic store id (S/D)")
    parser.add_argument("--store-from", help="Source store id")
    parser.add_argument("--store-to", help="Destination store id")
    parser.add_argument("--owner-type", help="'D' or 'DYNAMIC_<id>'")
    parser.add_argument("--spa-type-id", help="Smart-process entity type id")
    parser.add_argument("--elem-type", help="Legacy element type S|D")
    parser.add_argument("--store-from-field", help="Item field holding the source store")
    parser.add_argument("--store-to-field", help="Item field holding the destination store")
    parser.add_argument("--site-id", help="Site id for the document")
    parser.add_argument("--no-conduct", action="store_true", help="Create the document without conducting it")
    parser.add_argument("--dry-run", action="store_true", help="Preview without creating anything")
    parser.add_argument("--env-file", default=None, help="Dotenv file (default: ENV_FILE or .env)")
    args = parser.parse_args()

    settings = BridgeSettings.from_env(args.env_file)
    configure_logging(level=settings.log_level, json_format=settings.log_json)

    params = {
        "elemId": args.elem_id,
        "docType": args.doc_type,
        "storeId": args.store_id,
        "storeFrom": args.store_from,
        "storeTo": args.store_to,
        "ownerType": args.owner_type,
        "spaTypeId": args.spa_type_id,
        "elemType": args.elem_type,
        "storeFromField": args.store_from_field,
        "storeToField": args.store_to_field,
        "siteId": args.site_id,
        "conduct": "false" if args.no_conduct else "true",
        "dryRun": "true" if args.dry_run else "false",
    }
    params = {k: v for k, v in params.items() if v is not None}

    try:
        result = asyncio.run(run_pipeline(params, settings))
    except BridgeError as e:
        print(json.dumps(e.to_dict(), ensure_ascii=False, indent=2), file=sys.stderr)
        return 1

    print(json.dumps(result, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
