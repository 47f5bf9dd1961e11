"""Batch entry point for synchronizing orders to NetSuite.

A batch resolves its settings, loads the order graphs, obtains one bearer
token and then sends the orders one at a time. Nothing raised inside a
batch reaches the caller: every outcome ends up in the audit trail.

Usage:
    await sync_orders_batch(["O1", "O2"])

    pipeline = OrderSyncPipeline(settings, repository=repo, audit_logger=audit)
    results = await pipeline.run(["O1", "O2"], batch_id="batch-001")
"""

import os
import time
import uuid
from pathlib import Path
from typing import Iterable, List, Optional

import aiohttp

from connectors.netsuite import (
    NetSuiteAuthConfig,
    NetSuiteAuthProvider,
    NetSuiteOrderClient,
    SyncResult,
    SyncState,
    TokenProvider,
)
from connectors.netsuite.ns_client import SYNCHRONIZE_SOURCE
from core.audit import AuditLogger, SQLiteAuditBackend
from core.config import ConfigurationError, IntegrationSettings
from core.config.settings import DEFAULT_CHANNEL_NAME, DEFAULT_DB_PATH
from core.mapping.payload import assemble_from
from core.observability import (
    get_logger,
    record_batch_aborted,
    record_batch_completed,
    record_batch_started,
    record_order_outcome,
    with_correlation,
)
from order_store import OrderRepository, OrderWithChildren, SQLiteOrderRepository


logger = get_logger(__name__)

BATCH_SOURCE = "sync_orders_batch"


def new_batch_id() -> str:
    return f"batch-{uuid.uuid4().hex[:12]}"


def build_audit_logger(settings: IntegrationSettings) -> AuditLogger:
    """Audit logger writing to the configured SQLite audit store."""
    return AuditLogger(channel=settings.channel_name).add_backend(
        SQLiteAuditBackend(settings.audit_db_path)
    )


def _fallback_audit_logger() -> AuditLogger:
    # Settings are unusable, so only the audit path is taken from the environment
    audit_path = Path(
        os.environ.get("ORDER_SYNC_AUDIT_DB_PATH")
        or os.environ.get("ORDER_SYNC_DB_PATH")
        or DEFAULT_DB_PATH
    )
    logger.warning(
        f"Recording configuration error in audit store {audit_path}",
        extra_fields={"audit_db_path": str(audit_path)},
    )
    return AuditLogger(channel=DEFAULT_CHANNEL_NAME).add_backend(SQLiteAuditBackend(audit_path))


class OrderSyncPipeline:
    """Synchronizes batches of orders with already-resolved settings.

    Collaborators left as None are built from the settings: a SQLite
    repository and audit store, a NetSuite token provider and client sharing
    one aiohttp session per batch.
    """

    def __init__(
        self,
        settings: IntegrationSettings,
        repository: Optional[OrderRepository] = None,
        token_provider: Optional[TokenProvider] = None,
        audit_logger: Optional[AuditLogger] = None,
        client: Optional[NetSuiteOrderClient] = None,
    ):
        self.settings = settings
        self.repository = repository or SQLiteOrderRepository(settings.db_path)
        self.audit_logger = audit_logger or build_audit_logger(settings)
        self.token_provider = token_provider
        self.client = client

    async def run(self, order_ids: Iterable[str], batch_id: Optional[str] = None) -> List[SyncResult]:
        """Synchronize one batch.

        Returns:
            One result per order found, in processing order; empty if the
            batch was aborted before the first callout.
        """
        batch_id = batch_id or new_batch_id()
        order_ids = list(order_ids)

        with with_correlation(batch_id=batch_id):
            started = time.monotonic()
            record_batch_started(batch_id, order_count=len(order_ids))

            records = self.repository.fetch_batch(order_ids, self.settings.excluded_record_types)
            if len(records) < len(set(order_ids)):
                found = {r.order_id for r in records}
                missing = sorted(set(order_ids) - found)
                logger.warning(
                    f"{len(missing)} order(s) not found in store",
                    extra_fields={"missing_order_ids": missing},
                )

            session = None
            if self.token_provider is None or self.client is None:
                session = aiohttp.ClientSession()

            try:
                token_provider = self.token_provider or NetSuiteAuthProvider(
                    NetSuiteAuthConfig.from_settings(self.settings), session=session
                )
                client = self.client or NetSuiteOrderClient(
                    self.settings.endpoint_url,
                    self.repository,
                    self.audit_logger,
                    session=session,
                    timeout_seconds=self.settings.timeout_seconds,
                )

                try:
                    bearer_token = await token_provider.get_bearer_token()
                except Exception as e:
                    logger.error(f"Token issuance failed, batch aborted: {e}")
                    self.audit_logger.log_failure(
                        BATCH_SOURCE,
                        response_body=f"Token issuance failed: {e}",
                    )
                    record_batch_aborted(batch_id, "token")
                    return []

                results = []
                for record in records:
                    results.append(await self._sync_order(client, record, bearer_token))
            finally:
                if session is not None:
                    await session.close()

            duration_ms = (time.monotonic() - started) * 1000
            record_batch_completed(batch_id, duration_ms)
            succeeded = sum(1 for r in results if r.is_success)
            logger.info(
                f"Batch finished: {succeeded}/{len(results)} orders accepted by NetSuite",
                extra_fields={"duration_ms": round(duration_ms, 1)},
            )
            return results

    async def _sync_order(
        self,
        client: NetSuiteOrderClient,
        record: OrderWithChildren,
        bearer_token: str,
    ) -> SyncResult:
        order_id = record.order_id
        with with_correlation(order_id=order_id):
            started = time.monotonic()
            try:
                payload = assemble_from(record)
                result = await client.synchronize(order_id, payload, bearer_token)
            except Exception as e:
                logger.exception(f"Unexpected error synchronizing order {order_id}: {e}")
                self.audit_logger.log_failure(
                    SYNCHRONIZE_SOURCE,
                    response_body=f"{type(e).__name__}: {e}",
                    record_id=order_id,
                )
                result = SyncResult(order_id=order_id, state=SyncState.FAILURE, error=str(e))

            record_order_outcome(result.state.value, (time.monotonic() - started) * 1000)
            logger.info(f"Order {order_id} finished with {result.state.value}")
            return result


async def execute_batch(
    order_ids: Iterable[str],
    *,
    settings: Optional[IntegrationSettings] = None,
    repository: Optional[OrderRepository] = None,
    token_provider: Optional[TokenProvider] = None,
    audit_logger: Optional[AuditLogger] = None,
    client: Optional[NetSuiteOrderClient] = None,
    batch_id: Optional[str] = None,
) -> List[SyncResult]:
    """Run one batch and return its per-order results. Never raises."""
    batch_id = batch_id or new_batch_id()

    with with_correlation(batch_id=batch_id):
        try:
            settings = settings or IntegrationSettings.from_env()
        except ConfigurationError as e:
            logger.error(f"Integration settings unavailable, batch skipped: {e}")
            try:
                (audit_logger or _fallback_audit_logger()).log_failure(
                    BATCH_SOURCE,
                    response_body=f"Configuration error: {e}",
                )
            except Exception as audit_error:
                logger.error(f"Could not record configuration error: {audit_error}")
            record_batch_aborted(batch_id, "configuration")
            return []

        try:
            pipeline = OrderSyncPipeline(
                settings,
                repository=repository,
                token_provider=token_provider,
                audit_logger=audit_logger,
                client=client,
            )
            return await pipeline.run(order_ids, batch_id=batch_id)
        except Exception as e:
            logger.exception(f"Batch failed: {e}")
            try:
                (audit_logger or build_audit_logger(settings)).log_failure(
                    BATCH_SOURCE,
                    response_body=f"{type(e).__name__}: {e}",
                )
            except Exception as audit_error:
                logger.error(f"Could not record batch failure: {audit_error}")
            record_batch_aborted(batch_id, "error")
            return []


async def sync_orders_batch(
    order_ids: Iterable[str],
    *,
    settings: Optional[IntegrationSettings] = None,
    repository: Optional[OrderRepository] = None,
    token_provider: Optional[TokenProvider] = None,
    audit_logger: Optional[AuditLogger] = None,
    client: Optional[NetSuiteOrderClient] = None,
    batch_id: Optional[str] = None,
) -> None:
    """Synchronize the given orders to NetSuite.

    Outcomes surface only through the audit trail and the external id
    write-back; nothing is returned and nothing is raised.
    """
    await execute_batch(
        order_ids,
        settings=settings,
        repository=repository,
        token_provider=token_provider,
        audit_logger=audit_logger,
        client=client,
        batch_id=batch_id,
    )
