"""Bitrix24 Connector Package.

Talks to a Bitrix24 portal through an inbound webhook.
"""

from connectors.bitrix.bx_client import BXApiClient, BXApiConfig
from connectors.bitrix.bx_connector import BitrixConnector
from connectors.bitrix.bx_models import BXDocumentFields, BXDocumentElementFields

__all__ = [
    "BXApiClient",
    "BXApiConfig",
    "BitrixConnector",
    "BXDocumentFields",
    "BXDocumentElementFields",
]
