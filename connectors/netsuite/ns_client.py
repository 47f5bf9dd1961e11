"""NetSuite HTTP Client.

Posts one order payload per call to the NetSuite order endpoint, classifies
the response and writes the NetSuite id back onto the source order.
Each order gets exactly one attempt; there is no retry loop.
"""

from typing import Dict, Optional, Tuple
from dataclasses import dataclass
from enum import Enum
import asyncio
import json
import logging

import aiohttp

from core.audit import AuditLogger
from core.mapping.payload import OrderPayload
from order_store.repository import OrderRepository

logger = logging.getLogger(__name__)


SUCCESS_STATUSES = (200, 201)

# Checked in this order
EXTERNAL_ID_KEYS = ("updatedID", "createdID")

SYNCHRONIZE_SOURCE = "synchronize"
WRITE_BACK_SOURCE = "write_back_external_id"


class NetSuiteApiError(Exception):
    """Base exception for NetSuite API errors."""
    def __init__(self, message: str, status_code: int = 0, response_body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class NetSuiteAuthenticationError(NetSuiteApiError):
    """Bearer token could not be issued."""
    pass


class NetSuiteTransportError(NetSuiteApiError):
    """Connection error or timeout before a response arrived."""
    pass


class WriteBackError(Exception):
    """The NetSuite id could not be stored on the source order."""
    def __init__(self, message: str, order_id: str, external_id: str):
        super().__init__(message)
        self.order_id = order_id
        self.external_id = external_id


class SyncState(str, Enum):
    """Terminal state of one order in a batch."""
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    SUCCESS_WITH_WRITE_BACK_FAILURE = "SUCCESS_WITH_WRITE_BACK_FAILURE"
    FAILURE = "FAILURE"


@dataclass
class SyncResult:
    """Outcome of synchronizing one order."""
    order_id: str
    state: SyncState = SyncState.PENDING
    status_code: Optional[int] = None
    response_body: str = ""
    external_id: Optional[str] = None
    written_back: bool = False
    error: Optional[str] = None

    @property
    def is_success(self) -> bool:
        """NetSuite accepted the order (write-back may still have failed)."""
        return self.state in (SyncState.SUCCESS, SyncState.SUCCESS_WITH_WRITE_BACK_FAILURE)


def is_success_status(status: int) -> bool:
    return status in SUCCESS_STATUSES


def extract_external_id(response_body: str) -> Optional[str]:
    """Pull the NetSuite id out of a success response.

    Returns:
        The value of ``updatedID``, else ``createdID``, else None
    """
    if not response_body:
        return None
    try:
        data = json.loads(response_body)
    except ValueError:
        logger.warning("NetSuite response is not JSON; no external id extracted")
        return None
    if not isinstance(data, dict):
        return None

    for key in EXTERNAL_ID_KEYS:
        value = data.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


class NetSuiteOrderClient:
    """HTTP client for the NetSuite order endpoint.

    Provides:
    - One authenticated POST per order
    - Response classification (200/201 only)
    - Idempotent write-back of the NetSuite id
    - One audit record per attempt

    Usage:
        async with aiohttp.ClientSession() as session:
            client = NetSuiteOrderClient(endpoint_url, repository, audit, session=session)
            result = await client.synchronize("O1", payload, token)
    """

    def __init__(
        self,
        endpoint_url: str,
        repository: OrderRepository,
        audit_logger: AuditLogger,
        session: Optional[aiohttp.ClientSession] = None,
        timeout_seconds: int = 60,
    ):
        """Initialize the client.

        Args:
            endpoint_url: NetSuite endpoint receiving order payloads
            repository: Source store, used for the id write-back
            audit_logger: Sink for outcome records
            session: Shared aiohttp session; one is opened by connect() if omitted
            timeout_seconds: Total timeout per callout
        """
        self.endpoint_url = endpoint_url
        self.repository = repository
        self.audit_logger = audit_logger
        self.timeout_seconds = timeout_seconds
        self._session = session
        self._owns_session = False

    async def connect(self) -> None:
        """Open an HTTP session if none was provided."""
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True

    async def disconnect(self) -> None:
        """Close the HTTP session if this client opened it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None
            self._owns_session = False

    async def __aenter__(self) -> "NetSuiteOrderClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()

    def _get_headers(self, bearer_token: str) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {bearer_token}",
        }

    async def _post(self, body: str, bearer_token: str) -> Tuple[int, str]:
        """Send one request.

        Returns:
            (status, response text)

        Raises:
            NetSuiteTransportError: Connection failure or timeout
        """
        if self._session is None:
            raise NetSuiteApiError("Not connected. Call connect() first.")

        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        try:
            async with self._session.post(
                self.endpoint_url,
                data=body,
                headers=self._get_headers(bearer_token),
                timeout=timeout,
            ) as response:
                return response.status, await response.text()
        except asyncio.TimeoutError:
            raise NetSuiteTransportError(
                f"Request timed out after {self.timeout_seconds}s"
            )
        except aiohttp.ClientError as e:
            raise NetSuiteTransportError(f"{type(e).__name__}: {e}")

    async def synchronize(self, order_id: str, payload: OrderPayload, bearer_token: str) -> SyncResult:
        """Send one order to NetSuite and process the result.

        Transport failures become a FAILURE result; they are not raised.

        Args:
            order_id: Source order id
            payload: Assembled order payload
            bearer_token: Token shared by the whole batch

        Returns:
            SyncResult in a terminal state
        """
        request_body = payload.to_json()
        result = SyncResult(order_id=order_id)

        try:
            status, response_text = await self._post(request_body, bearer_token)
        except NetSuiteTransportError as e:
            logger.error(f"NetSuite callout failed for order {order_id}: {e}")
            self.audit_logger.log_failure(
                SYNCHRONIZE_SOURCE,
                request_body=request_body,
                response_body=str(e),
                record_id=order_id,
            )
            result.state = SyncState.FAILURE
            result.error = str(e)
            return result

        result.status_code = status
        result.response_body = response_text

        if not is_success_status(status):
            logger.warning(f"NetSuite rejected order {order_id} with status {status}")
            self.audit_logger.log_failure(
                SYNCHRONIZE_SOURCE,
                request_body=request_body,
                response_body=response_text,
                record_id=order_id,
                status_code=status,
            )
            result.state = SyncState.FAILURE
            result.error = f"HTTP {status}"
            return result

        self.audit_logger.log_success(
            SYNCHRONIZE_SOURCE,
            request_body=request_body,
            response_body=response_text,
            record_id=order_id,
            status_code=status,
        )
        result.state = SyncState.SUCCESS
        result.external_id = extract_external_id(response_text)

        if result.external_id:
            try:
                result.written_back = self.write_back_external_id(order_id, result.external_id)
            except WriteBackError as e:
                logger.error(str(e))
                self.audit_logger.log_failure(
                    WRITE_BACK_SOURCE,
                    request_body=json.dumps({"orderId": order_id, "externalId": result.external_id}),
                    response_body=str(e),
                    record_id=order_id,
                )
                result.state = SyncState.SUCCESS_WITH_WRITE_BACK_FAILURE
                result.error = str(e)

        return result

    def write_back_external_id(self, order_id: str, external_id: str) -> bool:
        """Store the NetSuite id on the order unless it already has one.

        Returns:
            True if the order was updated

        Raises:
            WriteBackError: The store could not be read or updated
        """
        try:
            current = self.repository.get_external_order_id(order_id)
            if current and current.strip():
                logger.info(
                    f"Order {order_id} already linked to {current}; ignoring {external_id}"
                )
                return False
            updated = self.repository.set_external_order_id(order_id, external_id)
        except Exception as e:
            raise WriteBackError(
                f"Write-back of {external_id} to order {order_id} failed: {e}",
                order_id,
                external_id,
            ) from e

        if updated:
            logger.info(f"Order {order_id} linked to NetSuite id {external_id}")
        return updated
