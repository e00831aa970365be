"""Remote system connectors.

bitrix/ talks to a Bitrix24 portal over its inbound-webhook REST API:
- bx_client: transport, error envelope, pagination
- bx_connector: the CRM and inventory-document operations
- bx_models: request payloads
"""
