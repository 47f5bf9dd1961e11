"""NetSuite Connector Package.

Posts order payloads to NetSuite and links the returned ids back to the
source orders.
"""

from connectors.netsuite.ns_client import (
    NetSuiteApiError,
    NetSuiteAuthenticationError,
    NetSuiteOrderClient,
    NetSuiteTransportError,
    SyncResult,
    SyncState,
    WriteBackError,
    extract_external_id,
    is_success_status,
)
from connectors.netsuite.ns_auth import (
    NetSuiteAuthConfig,
    NetSuiteAuthProvider,
    NetSuiteToken,
    TokenProvider,
)

__all__ = [
    # Client
    "NetSuiteOrderClient",
    "SyncResult",
    "SyncState",
    "extract_external_id",
    "is_success_status",
    # Auth
    "NetSuiteAuthConfig",
    "NetSuiteAuthProvider",
    "NetSuiteToken",
    "TokenProvider",
    # Errors
    "NetSuiteApiError",
    "NetSuiteAuthenticationError",
    "NetSuiteTransportError",
    "WriteBackError",
]
