"""
Order Sync Pipeline Test

End-to-end batch scenarios against in-memory collaborators:
1. Refund milestones never reach NetSuite
2. A created order is linked once and never relinked
3. Token failure aborts the batch before any callout
4. Missing settings abort the batch before any fetch
5. One failing order does not stop the rest of the batch
"""

import asyncio
import json
from datetime import date
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from connectors.netsuite import (
    NetSuiteAuthenticationError,
    NetSuiteOrderClient,
    SyncResult,
    SyncState,
)
from core.audit import AuditLogger, AuditOutcome, InMemoryAuditBackend, SQLiteAuditBackend
from core.config import ConfigurationError, IntegrationSettings, json_logs_enabled
from order_store import (
    InMemoryOrderRepository,
    Milestone,
    MilestoneLineItem,
    Order,
    OrderRepository,
)
from order_sync import OrderSyncPipeline, execute_batch, sync_orders_batch
from test_netsuite_client import FakeResponse, FakeSession


SETTINGS = IntegrationSettings(
    endpoint_url="https://netsuite.example.com/restlet/orders",
    token_url="https://netsuite.example.com/token",
    client_assertion="signed.jwt",
)


class StaticTokenProvider:
    def __init__(self, token: str = "tok-batch"):
        self.token = token
        self.calls = 0

    async def get_bearer_token(self) -> str:
        self.calls += 1
        return self.token


class FailingTokenProvider:
    async def get_bearer_token(self) -> str:
        raise NetSuiteAuthenticationError("Token request failed: 401 - invalid_client", 401)


def _repository():
    return InMemoryOrderRepository(
        orders=[
            Order(id="O1", order_number="ORD-0001", effective_date=date(2024, 4, 1)),
            Order(id="O2", order_number="ORD-0002"),
        ],
        milestones=[
            Milestone(id="M-REFUND", order_id="O1", record_type="Fee_Refunds", term_start_date=date(2024, 4, 1)),
            Milestone(id="M-STD", order_id="O1", record_type="Standard", term_start_date=date(2024, 4, 1)),
            Milestone(id="M-O2", order_id="O2", record_type="Standard"),
        ],
        line_items=[
            MilestoneLineItem(id="L-REFUND", milestone_id="M-REFUND"),
            MilestoneLineItem(id="L-STD-2", milestone_id="M-STD", start_date=date(2024, 5, 1)),
            MilestoneLineItem(id="L-STD-1", milestone_id="M-STD", start_date=date(2024, 4, 1)),
        ],
    )


def _run(order_ids, session, repository=None, token_provider=None, batch_id="batch-test"):
    repository = repository or _repository()
    backend = InMemoryAuditBackend()
    audit = AuditLogger(channel=SETTINGS.channel_name).add_backend(backend)
    client = NetSuiteOrderClient(SETTINGS.endpoint_url, repository, audit, session=session)
    token_provider = token_provider or StaticTokenProvider()

    results = asyncio.run(execute_batch(
        order_ids,
        settings=SETTINGS,
        repository=repository,
        token_provider=token_provider,
        audit_logger=audit,
        client=client,
        batch_id=batch_id,
    ))
    return results, backend, repository


class TestBatchScenarios:

    def test_refund_milestone_excluded_from_payload(self):
        session = FakeSession(FakeResponse(200, "{}"))

        _run(["O1"], session)

        body = json.loads(session.calls[0]["data"])
        assert [m["id"] for m in body["milestone"]] == ["M-STD"]
        assert [li["Id"] for li in body["milestone"][0]["milestoneline"]] == ["L-STD-1", "L-STD-2"]
        assert "L-REFUND" not in session.calls[0]["data"]

    def test_created_id_written_once(self):
        repository = _repository()

        session = FakeSession(FakeResponse(201, '{"createdID":"NS-100"}'))
        results, _, _ = _run(["O1"], session, repository=repository)
        assert results[0].state == SyncState.SUCCESS
        assert repository.get_external_order_id("O1") == "NS-100"

        session = FakeSession(FakeResponse(200, '{"updatedID":"NS-999"}'))
        results, _, _ = _run(["O1"], session, repository=repository)
        assert results[0].state == SyncState.SUCCESS
        assert repository.get_external_order_id("O1") == "NS-100"
        assert repository.write_count == 1

    def test_token_failure_aborts_batch(self):
        session = FakeSession(FakeResponse(201, '{"createdID":"NS-100"}'))

        results, backend, repository = _run(["O1", "O2"], session, token_provider=FailingTokenProvider())

        assert results == []
        assert session.calls == []
        assert repository.write_count == 0
        assert repository.get_external_order_id("O1") is None
        (record,) = backend.records
        assert record.source == "sync_orders_batch"
        assert record.outcome == AuditOutcome.FAILURE
        assert record.batch_id == "batch-test"
        assert "invalid_client" in record.response_body

    def test_token_fetched_once_per_batch(self):
        session = FakeSession(FakeResponse(200, "{}"), FakeResponse(200, "{}"))
        provider = StaticTokenProvider("tok-shared")

        _run(["O1", "O2"], session, token_provider=provider)

        assert provider.calls == 1
        assert [c["headers"]["Authorization"] for c in session.calls] == ["Bearer tok-shared"] * 2

    def test_failures_are_isolated(self):
        session = FakeSession(
            FakeResponse(500, "Internal error"),
            FakeResponse(201, '{"createdID":"NS-2"}'),
        )

        results, backend, repository = _run(["O1", "O2"], session)

        assert [r.state for r in results] == [SyncState.FAILURE, SyncState.SUCCESS]
        assert repository.get_external_order_id("O2") == "NS-2"
        outcomes = [(r.record_id, r.outcome) for r in backend.records]
        assert outcomes == [("O1", AuditOutcome.FAILURE), ("O2", AuditOutcome.SUCCESS)]
        assert all(r.batch_id == "batch-test" for r in backend.records)

    def test_missing_orders_are_skipped(self):
        session = FakeSession(FakeResponse(200, "{}"))

        results, _, _ = _run(["missing", "O2"], session)

        assert [r.order_id for r in results] == ["O2"]
        assert len(session.calls) == 1

    def test_unexpected_error_does_not_stop_batch(self):
        backend = InMemoryAuditBackend()
        audit = AuditLogger().add_backend(backend)
        client = MagicMock()
        client.synchronize = AsyncMock(side_effect=[
            RuntimeError("boom"),
            SyncResult(order_id="O2", state=SyncState.SUCCESS),
        ])

        results = asyncio.run(execute_batch(
            ["O1", "O2"],
            settings=SETTINGS,
            repository=_repository(),
            token_provider=StaticTokenProvider(),
            audit_logger=audit,
            client=client,
        ))

        assert [r.state for r in results] == [SyncState.FAILURE, SyncState.SUCCESS]
        (record,) = backend.records
        assert record.record_id == "O1"
        assert "boom" in record.response_body


class TestBatchGuards:

    def test_missing_configuration_skips_batch(self):
        backend = InMemoryAuditBackend()
        audit = AuditLogger().add_backend(backend)
        repository = MagicMock(spec=OrderRepository)
        token_provider = MagicMock()

        with patch(
            "order_sync.pipeline.IntegrationSettings.from_env",
            side_effect=ConfigurationError("Missing integration settings: endpoint_url"),
        ):
            result = asyncio.run(sync_orders_batch(
                ["O1"],
                repository=repository,
                token_provider=token_provider,
                audit_logger=audit,
            ))

        assert result is None
        repository.fetch_batch.assert_not_called()
        token_provider.get_bearer_token.assert_not_called()
        (record,) = backend.records
        assert record.source == "sync_orders_batch"
        assert "endpoint_url" in record.response_body

    def test_configuration_error_recorded_in_named_audit_store(self, tmp_path, monkeypatch):
        audit_path = tmp_path / "audit.db"
        monkeypatch.setenv("ORDER_SYNC_AUDIT_DB_PATH", str(audit_path))

        with patch(
            "order_sync.pipeline.IntegrationSettings.from_env",
            side_effect=ConfigurationError("Missing integration settings: token_url"),
        ), patch("order_sync.pipeline.logger") as pipeline_logger:
            asyncio.run(sync_orders_batch(["O1"], batch_id="batch-cfg"))

        (record,) = SQLiteAuditBackend(audit_path).query()
        assert record.source == "sync_orders_batch"
        assert record.batch_id == "batch-cfg"
        assert "token_url" in record.response_body
        warnings = [c.args[0] for c in pipeline_logger.warning.call_args_list]
        assert any(str(audit_path) in message for message in warnings)

    def test_store_failure_does_not_raise(self):
        backend = InMemoryAuditBackend()
        audit = AuditLogger().add_backend(backend)
        repository = MagicMock(spec=OrderRepository)
        repository.fetch_batch.side_effect = RuntimeError("store offline")

        results = asyncio.run(execute_batch(
            ["O1"],
            settings=SETTINGS,
            repository=repository,
            token_provider=StaticTokenProvider(),
            audit_logger=audit,
            client=MagicMock(),
        ))

        assert results == []
        assert backend.records[0].source == "sync_orders_batch"

    def test_audit_backend_failure_is_swallowed(self):
        broken = MagicMock()
        broken.log.side_effect = OSError("disk full")
        audit = AuditLogger().add_backend(broken)
        repository = _repository()
        session = FakeSession(FakeResponse(201, '{"createdID":"NS-1"}'))
        client = NetSuiteOrderClient(SETTINGS.endpoint_url, repository, audit, session=session)

        results = asyncio.run(execute_batch(
            ["O1"],
            settings=SETTINGS,
            repository=repository,
            token_provider=StaticTokenProvider(),
            audit_logger=audit,
            client=client,
        ))

        assert results[0].state == SyncState.SUCCESS
        assert repository.get_external_order_id("O1") == "NS-1"

    def test_pipeline_uses_configured_exclusions(self):
        settings = IntegrationSettings(
            endpoint_url=SETTINGS.endpoint_url,
            token_url=SETTINGS.token_url,
            client_assertion=SETTINGS.client_assertion,
            excluded_record_types=frozenset(),
        )
        repository = _repository()
        audit = AuditLogger().add_backend(InMemoryAuditBackend())
        session = FakeSession(FakeResponse(200, "{}"))
        client = NetSuiteOrderClient(settings.endpoint_url, repository, audit, session=session)
        pipeline = OrderSyncPipeline(
            settings,
            repository=repository,
            token_provider=StaticTokenProvider(),
            audit_logger=audit,
            client=client,
        )

        asyncio.run(pipeline.run(["O1"]))

        body = json.loads(session.calls[0]["data"])
        assert sorted(m["id"] for m in body["milestone"]) == ["M-REFUND", "M-STD"]


class TestSettings:

    def test_required_values(self):
        with pytest.raises(ConfigurationError):
            IntegrationSettings.from_env({})

    def test_defaults(self, tmp_path):
        settings = IntegrationSettings.from_env({
            "NETSUITE_ENDPOINT_URL": "https://ns/orders",
            "NETSUITE_TOKEN_URL": "https://ns/token",
            "NETSUITE_CLIENT_ASSERTION": "jwt",
            "ORDER_SYNC_DB_PATH": str(tmp_path / "orders.db"),
        })

        assert settings.timeout_seconds == 60
        assert settings.channel_name == "NetSuite"
        assert settings.audit_db_path == tmp_path / "orders.db"
        assert settings.excluded_record_types == frozenset({"Fee_Refunds", "Deposit_Refunds"})
        assert settings.json_logs is False

    def test_overrides(self):
        settings = IntegrationSettings.from_env({
            "NETSUITE_ENDPOINT_URL": "https://ns/orders",
            "NETSUITE_TOKEN_URL": "https://ns/token",
            "NETSUITE_CLIENT_ASSERTION": "jwt",
            "NETSUITE_TIMEOUT_SECONDS": "30",
            "ORDER_SYNC_EXCLUDED_RECORD_TYPES": "Fee_Refunds, Credit_Notes",
            "ORDER_SYNC_LOG_JSON": "true",
        })

        assert settings.timeout_seconds == 30
        assert settings.excluded_record_types == frozenset({"Fee_Refunds", "Credit_Notes"})
        assert settings.json_logs is True

    @pytest.mark.parametrize("raw", ["", "   ", " , ,"])
    def test_blank_exclusions_keep_refund_types(self, raw):
        settings = IntegrationSettings.from_env({
            "NETSUITE_ENDPOINT_URL": "https://ns/orders",
            "NETSUITE_TOKEN_URL": "https://ns/token",
            "NETSUITE_CLIENT_ASSERTION": "jwt",
            "ORDER_SYNC_EXCLUDED_RECORD_TYPES": raw,
        })

        assert "Fee_Refunds" in settings.excluded_record_types
        assert "Deposit_Refunds" in settings.excluded_record_types

    def test_json_logs_without_credentials(self):
        assert json_logs_enabled({"ORDER_SYNC_LOG_JSON": "yes"}) is True
        assert json_logs_enabled({"ORDER_SYNC_LOG_JSON": "off"}) is False
        assert json_logs_enabled({}) is False

    def test_bad_timeout(self):
        with pytest.raises(ConfigurationError):
            IntegrationSettings.from_env({
                "NETSUITE_ENDPOINT_URL": "https://ns/orders",
                "NETSUITE_TOKEN_URL": "https://ns/token",
                "NETSUITE_CLIENT_ASSERTION": "jwt",
                "NETSUITE_TIMEOUT_SECONDS": "soon",
            })


class TestTemporalWiring:

    def test_activity_reports_order_count(self):
        from temporalio.testing import ActivityEnvironment
        from activities.order_sync import OrderSyncActivityInput, sync_orders_batch_activity

        async def run_in_activity_context():
            return await ActivityEnvironment().run(
                sync_orders_batch_activity,
                OrderSyncActivityInput(order_ids=["O1", "O9"], batch_id="batch-7"),
            )

        fake_results = [SyncResult(order_id="O1", state=SyncState.SUCCESS)]
        with patch("activities.order_sync.execute_batch", AsyncMock(return_value=fake_results)) as run:
            output = asyncio.run(run_in_activity_context())

        assert output.batch_id == "batch-7"
        assert output.order_count == 1
        run.assert_awaited_once_with(["O1", "O9"], batch_id="batch-7")

    def test_batch_timeout_grows_with_batch(self):
        from workflows.order_sync_workflow import batch_timeout

        assert batch_timeout(10) > batch_timeout(1)
        assert batch_timeout(0) == batch_timeout(1)

    def test_workflow_imports(self):
        from workflows import OrderSyncInput, OrderSyncWorkflow, TASK_QUEUE

        assert TASK_QUEUE == "order-sync"
        assert OrderSyncInput(order_ids=["O1"]).batch_id is None
        assert OrderSyncWorkflow is not None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
