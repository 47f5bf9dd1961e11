"""ERP Connectors - outbound integrations for the order sync pipeline.

This package handles:
- ERP-specific authentication
- API communication
- Response classification and id write-back

The pipeline depends only on the NetSuite client's ``synchronize`` call and
the ``TokenProvider`` protocol, so both can be swapped or faked in tests.
"""

from connectors.netsuite import (
    NetSuiteApiError,
    NetSuiteAuthConfig,
    NetSuiteAuthenticationError,
    NetSuiteAuthProvider,
    NetSuiteOrderClient,
    NetSuiteTransportError,
    SyncResult,
    SyncState,
    TokenProvider,
    WriteBackError,
)

__all__ = [
    "NetSuiteApiError",
    "NetSuiteAuthConfig",
    "NetSuiteAuthenticationError",
    "NetSuiteAuthProvider",
    "NetSuiteOrderClient",
    "NetSuiteTransportError",
    "SyncResult",
    "SyncState",
    "TokenProvider",
    "WriteBackError",
]
