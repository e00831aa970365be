"""Core module - document pipeline, configuration, security and logging.

Bitrix-specific transport and REST method names belong in /connectors/.
"""

__version__ = "1.0.0"
