"""
Tenant AI exceptions.

The core recovers from every one of these before a reply is produced;
they exist so adapters and table builders can signal what went wrong.
"""


class TenantAIError(Exception):
    """Base class for errors raised inside the assistant core"""


class FlowConfigurationError(TenantAIError):
    """A flow table references an unknown flow, state or ordering rule"""


class CatalogUnavailableError(TenantAIError):
    """The property catalog could not be reached or answered badly"""
