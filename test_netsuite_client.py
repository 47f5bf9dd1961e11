"""
NetSuite connector tests.

Uses an in-process fake of the aiohttp session so no network is touched:
status classification, external id extraction, write-back idempotency,
transport failures and the client-credentials token request.
"""

import asyncio
import json
import sqlite3
from unittest.mock import MagicMock

import aiohttp
import pytest

from connectors.netsuite import (
    NetSuiteAuthConfig,
    NetSuiteAuthenticationError,
    NetSuiteAuthProvider,
    NetSuiteOrderClient,
    SyncState,
    extract_external_id,
    is_success_status,
)
from connectors.netsuite.ns_auth import CLIENT_ASSERTION_TYPE
from core.audit import AuditLogger, AuditOutcome, InMemoryAuditBackend
from core.mapping.payload import assemble
from order_store import InMemoryOrderRepository, Milestone, Order


ENDPOINT = "https://netsuite.example.com/restlet/orders"


# =============================================================================
# Fakes
# =============================================================================

class FakeResponse:
    def __init__(self, status: int, body: str = ""):
        self.status = status
        self._body = body

    async def text(self) -> str:
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Records every POST and replays canned responses in order."""

    def __init__(self, *responses, error: Exception = None):
        self.responses = list(responses)
        self.error = error
        self.calls = []
        self.closed = False

    def post(self, url, data=None, headers=None, timeout=None):
        self.calls.append({"url": url, "data": data, "headers": headers, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.responses.pop(0)

    async def close(self):
        self.closed = True


def _client(session, repository=None):
    backend = InMemoryAuditBackend()
    audit = AuditLogger(channel="NetSuite").add_backend(backend)
    repository = repository or InMemoryOrderRepository(orders=[Order(id="O1")])
    client = NetSuiteOrderClient(ENDPOINT, repository, audit, session=session)
    return client, backend, repository


def _payload():
    return assemble(Order(id="O1", order_number="ORD-1"), [Milestone(id="M1", order_id="O1")])


# =============================================================================
# Tests
# =============================================================================

class TestResponseInterpretation:

    def test_only_200_and_201_succeed(self):
        assert is_success_status(200)
        assert is_success_status(201)
        for status in (202, 204, 301, 400, 401, 404, 500, 503):
            assert not is_success_status(status)

    def test_updated_id_takes_precedence(self):
        body = json.dumps({"createdID": "NS-1", "updatedID": "NS-2"})
        assert extract_external_id(body) == "NS-2"

    def test_created_id(self):
        assert extract_external_id('{"createdID": "NS-100"}') == "NS-100"

    def test_numeric_id_is_stringified(self):
        assert extract_external_id('{"createdID": 4711}') == "4711"

    def test_no_id(self):
        assert extract_external_id("") is None
        assert extract_external_id("not json") is None
        assert extract_external_id('["createdID"]') is None
        assert extract_external_id('{"updatedID": "", "createdID": null}') is None


class TestSynchronize:

    def test_request_shape(self):
        session = FakeSession(FakeResponse(200, "{}"))
        client, _, _ = _client(session)

        asyncio.run(client.synchronize("O1", _payload(), "tok-123"))

        call = session.calls[0]
        assert call["url"] == ENDPOINT
        assert call["headers"]["Content-Type"] == "application/json"
        assert call["headers"]["Authorization"] == "Bearer tok-123"
        assert call["timeout"].total == 60
        body = json.loads(call["data"])
        assert body["orderid"] == "O1"
        assert body["milestone"][0]["id"] == "M1"

    def test_created_writes_back(self):
        session = FakeSession(FakeResponse(201, '{"createdID":"NS-100"}'))
        client, backend, repo = _client(session)

        result = asyncio.run(client.synchronize("O1", _payload(), "tok"))

        assert result.state == SyncState.SUCCESS
        assert result.external_id == "NS-100"
        assert result.written_back is True
        assert repo.get_external_order_id("O1") == "NS-100"

        (record,) = backend.records
        assert record.outcome == AuditOutcome.SUCCESS
        assert record.source == "synchronize"
        assert record.channel == "NetSuite"
        assert record.record_id == "O1"
        assert record.status_code == 201
        assert json.loads(record.request_body)["orderid"] == "O1"
        assert record.response_body == '{"createdID":"NS-100"}'

    def test_success_without_id_leaves_order_alone(self):
        session = FakeSession(FakeResponse(200, '{"status":"ok"}'))
        client, _, repo = _client(session)

        result = asyncio.run(client.synchronize("O1", _payload(), "tok"))

        assert result.state == SyncState.SUCCESS
        assert result.external_id is None
        assert repo.write_count == 0

    @pytest.mark.parametrize("status", [400, 500])
    def test_error_status_is_failure_with_raw_body(self, status):
        raw = '{"error":{"code":"INVALID_FLD_VALUE"}}'
        session = FakeSession(FakeResponse(status, raw))
        client, backend, repo = _client(session)

        result = asyncio.run(client.synchronize("O1", _payload(), "tok"))

        assert result.state == SyncState.FAILURE
        assert result.status_code == status
        assert repo.write_count == 0
        (record,) = backend.records
        assert record.outcome == AuditOutcome.FAILURE
        assert record.response_body == raw

    def test_error_status_ignores_ids(self):
        session = FakeSession(FakeResponse(400, '{"createdID":"NS-1"}'))
        client, _, repo = _client(session)

        asyncio.run(client.synchronize("O1", _payload(), "tok"))

        assert repo.get_external_order_id("O1") is None

    def test_connection_error_is_failure(self):
        session = FakeSession(error=aiohttp.ClientConnectionError("connection refused"))
        client, backend, _ = _client(session)

        result = asyncio.run(client.synchronize("O1", _payload(), "tok"))

        assert result.state == SyncState.FAILURE
        assert result.status_code is None
        (record,) = backend.records
        assert record.outcome == AuditOutcome.FAILURE
        assert "connection refused" in record.response_body

    def test_timeout_is_failure(self):
        session = FakeSession(error=asyncio.TimeoutError())
        client, backend, _ = _client(session)

        result = asyncio.run(client.synchronize("O1", _payload(), "tok"))

        assert result.state == SyncState.FAILURE
        assert "timed out" in backend.records[0].response_body

    def test_exactly_one_attempt(self):
        session = FakeSession(FakeResponse(503, "unavailable"), FakeResponse(201, '{"createdID":"X"}'))
        client, _, _ = _client(session)

        asyncio.run(client.synchronize("O1", _payload(), "tok"))

        assert len(session.calls) == 1

    def test_write_back_failure_is_distinct(self):
        repo = MagicMock()
        repo.get_external_order_id.return_value = None
        repo.set_external_order_id.side_effect = sqlite3.OperationalError("database is locked")
        session = FakeSession(FakeResponse(201, '{"createdID":"NS-100"}'))
        client, backend, _ = _client(session, repository=repo)

        result = asyncio.run(client.synchronize("O1", _payload(), "tok"))

        assert result.state == SyncState.SUCCESS_WITH_WRITE_BACK_FAILURE
        assert result.is_success
        success, failure = backend.records
        assert success.source == "synchronize"
        assert success.outcome == AuditOutcome.SUCCESS
        assert failure.source == "write_back_external_id"
        assert failure.outcome == AuditOutcome.FAILURE
        assert "database is locked" in failure.response_body


class TestWriteBack:

    def test_second_write_back_is_a_no_op(self):
        client, _, repo = _client(FakeSession())

        assert client.write_back_external_id("O1", "NS-100") is True
        assert client.write_back_external_id("O1", "NS-100") is False
        assert repo.write_count == 1

    def test_existing_id_is_never_overwritten(self):
        repo = InMemoryOrderRepository(orders=[Order(id="O1", external_order_id="NS-100")])
        client, _, _ = _client(FakeSession(), repository=repo)

        assert client.write_back_external_id("O1", "NS-200") is False
        assert repo.get_external_order_id("O1") == "NS-100"
        assert repo.write_count == 0


class TestAuthProvider:

    def _provider(self, session):
        config = NetSuiteAuthConfig(token_url="https://netsuite.example.com/token", client_assertion="signed.jwt")
        return NetSuiteAuthProvider(config, session=session)

    def test_token_request(self):
        session = FakeSession(FakeResponse(200, '{"access_token":"tok-1","expires_in":1800}'))
        provider = self._provider(session)

        token = asyncio.run(provider.get_bearer_token())

        assert token == "tok-1"
        assert provider.token.expires_in == 1800
        form = session.calls[0]["data"]
        assert form["grant_type"] == "client_credentials"
        assert form["client_assertion_type"] == CLIENT_ASSERTION_TYPE
        assert form["client_assertion"] == "signed.jwt"
        assert session.closed is False

    def test_non_200_raises(self):
        session = FakeSession(FakeResponse(401, "invalid_client"))

        with pytest.raises(NetSuiteAuthenticationError) as exc_info:
            asyncio.run(self._provider(session).get_bearer_token())

        assert exc_info.value.status_code == 401
        assert exc_info.value.response_body == "invalid_client"

    def test_missing_token_raises(self):
        session = FakeSession(FakeResponse(200, '{"token_type":"Bearer"}'))

        with pytest.raises(NetSuiteAuthenticationError):
            asyncio.run(self._provider(session).get_bearer_token())

    def test_transport_error_raises(self):
        session = FakeSession(error=aiohttp.ClientConnectionError("unreachable"))

        with pytest.raises(NetSuiteAuthenticationError):
            asyncio.run(self._provider(session).get_bearer_token())


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
