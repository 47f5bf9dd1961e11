"""Outcome logging and persistence.

Provides the append-only audit trail for every NetSuite callout: request,
response (or error text), channel, outcome and originating operation.
Supports multiple persistence backends.
"""

import json
import sqlite3
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from core.models.refs import AuditOutcome, OutcomeRecord
from core.observability.logging import current_batch_id, get_logger


logger = get_logger(__name__)


def create_outcome_record(
    outcome: AuditOutcome,
    source: str,
    channel: str,
    request_body: str = "",
    response_body: str = "",
    record_id: Optional[str] = None,
    batch_id: Optional[str] = None,
    status_code: Optional[int] = None,
) -> OutcomeRecord:
    """Create a new outcome record with auto-generated ID and timestamp.

    Args:
        outcome: Success or Failure
        source: Operation that produced the record (e.g. "synchronize")
        channel: Integration channel name
        request_body: Serialized request
        response_body: Raw response body or error text
        record_id: Source order identifier
        batch_id: Batch the attempt belonged to
        status_code: HTTP status if a response arrived

    Returns:
        OutcomeRecord ready for logging
    """
    return OutcomeRecord(
        event_id=str(uuid.uuid4()),
        timestamp=datetime.utcnow(),
        request_body=request_body or "",
        response_body=response_body or "",
        channel=channel,
        outcome=outcome,
        source=source,
        record_id=record_id,
        batch_id=batch_id,
        status_code=status_code,
    )


class AuditBackend(ABC):
    """Abstract base class for audit persistence backends."""

    @abstractmethod
    def log(self, record: OutcomeRecord) -> None:
        """Persist an outcome record."""
        pass

    @abstractmethod
    def query(
        self,
        record_id: Optional[str] = None,
        outcome: Optional[AuditOutcome] = None,
        source: Optional[str] = None,
        limit: int = 100,
    ) -> List[OutcomeRecord]:
        """Query outcome records with filters, oldest first."""
        pass


def _matches(
    record: OutcomeRecord,
    record_id: Optional[str],
    outcome: Optional[AuditOutcome],
    source: Optional[str],
) -> bool:
    if record_id and record.record_id != record_id:
        return False
    if outcome and record.outcome != outcome:
        return False
    if source and record.source != source:
        return False
    return True


class SQLiteAuditBackend(AuditBackend):
    """Audit backend that appends rows to an integration_logs table."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._init_table()

    def _init_table(self) -> None:
        conn = sqlite3.connect(str(self.db_path))
        try:
            cursor = conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS integration_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    event_id TEXT NOT NULL UNIQUE,
                    record_id TEXT,
                    batch_id TEXT,
                    channel TEXT NOT NULL,
                    outcome TEXT NOT NULL,
                    source TEXT NOT NULL,
                    status_code INTEGER,
                    request_body TEXT,
                    response_body TEXT,
                    created_at TEXT NOT NULL
                )
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_integration_logs_record
                ON integration_logs(record_id)
            """)
            conn.commit()
        finally:
            conn.close()

    def log(self, record: OutcomeRecord) -> None:
        conn = sqlite3.connect(str(self.db_path))
        try:
            conn.execute("""
                INSERT INTO integration_logs
                (event_id, record_id, batch_id, channel, outcome, source,
                 status_code, request_body, response_body, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                record.event_id,
                record.record_id,
                record.batch_id,
                record.channel,
                record.outcome.value,
                record.source,
                record.status_code,
                record.request_body,
                record.response_body,
                record.timestamp.isoformat(),
            ))
            conn.commit()
        finally:
            conn.close()

    def query(
        self,
        record_id: Optional[str] = None,
        outcome: Optional[AuditOutcome] = None,
        source: Optional[str] = None,
        limit: int = 100,
    ) -> List[OutcomeRecord]:
        query = "SELECT * FROM integration_logs WHERE 1 = 1"
        params: list = []
        if record_id:
            query += " AND record_id = ?"
            params.append(record_id)
        if outcome:
            query += " AND outcome = ?"
            params.append(outcome.value)
        if source:
            query += " AND source = ?"
            params.append(source)
        query += " ORDER BY id LIMIT ?"
        params.append(int(limit))

        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        try:
            rows = conn.execute(query, params).fetchall()
        finally:
            conn.close()

        return [
            OutcomeRecord(
                event_id=row["event_id"],
                timestamp=datetime.fromisoformat(row["created_at"]),
                request_body=row["request_body"] or "",
                response_body=row["response_body"] or "",
                channel=row["channel"],
                outcome=AuditOutcome(row["outcome"]),
                source=row["source"],
                record_id=row["record_id"],
                batch_id=row["batch_id"],
                status_code=row["status_code"],
            )
            for row in rows
        ]


class JSONFileAuditBackend(AuditBackend):
    """Audit backend that stores records in JSON files.

    Stores one file per day in YYYY-MM-DD.json format.
    """

    def __init__(self, base_path: Path):
        """Initialize with base directory for audit files."""
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _get_file_path(self, day: datetime) -> Path:
        return self.base_path / f"{day.strftime('%Y-%m-%d')}.json"

    def log(self, record: OutcomeRecord) -> None:
        """Append record to its daily file."""
        file_path = self._get_file_path(record.timestamp)

        records = []
        if file_path.exists():
            with open(file_path, "r", encoding="utf-8") as f:
                records = json.load(f)

        records.append(record.model_dump(mode="json"))

        with open(file_path, "w", encoding="utf-8") as f:
            json.dump(records, f, indent=2)

    def query(
        self,
        record_id: Optional[str] = None,
        outcome: Optional[AuditOutcome] = None,
        source: Optional[str] = None,
        limit: int = 100,
    ) -> List[OutcomeRecord]:
        results = []
        for file_path in sorted(self.base_path.glob("*.json")):
            with open(file_path, "r", encoding="utf-8") as f:
                records = json.load(f)
            for data in records:
                record = OutcomeRecord.model_validate(data)
                if not _matches(record, record_id, outcome, source):
                    continue
                results.append(record)
                if len(results) >= limit:
                    return results
        return results


class InMemoryAuditBackend(AuditBackend):
    """In-memory audit backend for testing."""

    def __init__(self):
        self._records: List[OutcomeRecord] = []

    @property
    def records(self) -> List[OutcomeRecord]:
        return list(self._records)

    def log(self, record: OutcomeRecord) -> None:
        self._records.append(record)

    def query(
        self,
        record_id: Optional[str] = None,
        outcome: Optional[AuditOutcome] = None,
        source: Optional[str] = None,
        limit: int = 100,
    ) -> List[OutcomeRecord]:
        results = [r for r in self._records if _matches(r, record_id, outcome, source)]
        return results[:limit]

    def clear(self) -> None:
        """Clear all records (for testing)."""
        self._records.clear()


class AuditLogger:
    """Main outcome logger that fans out to multiple backends.

    Usage:
        audit = AuditLogger(channel="NetSuite")
        audit.add_backend(SQLiteAuditBackend(Path("order_sync.db")))

        audit.log_success(
            source="synchronize",
            request_body=payload_json,
            response_body=response_text,
            record_id="O1",
        )
    """

    def __init__(self, channel: str = "NetSuite"):
        self.channel = channel
        self._backends: List[AuditBackend] = []

    def add_backend(self, backend: AuditBackend) -> "AuditLogger":
        """Add an audit backend."""
        self._backends.append(backend)
        return self

    def log(self, record: OutcomeRecord) -> None:
        """Log record to all backends."""
        for backend in self._backends:
            try:
                backend.log(record)
            except Exception as e:
                # Audit failures never break a sync run
                logger.error(
                    f"Audit logging failed for backend {type(backend).__name__}: {e}",
                    extra_fields={"event_id": record.event_id},
                )

    def _record(self, outcome: AuditOutcome, source: str, **kwargs) -> OutcomeRecord:
        # Records made inside a batch are tagged with it unless the caller says otherwise
        kwargs.setdefault("batch_id", current_batch_id())
        record = create_outcome_record(outcome, source, self.channel, **kwargs)
        self.log(record)
        return record

    def log_success(self, source: str, **kwargs) -> OutcomeRecord:
        """Log a Success outcome."""
        return self._record(AuditOutcome.SUCCESS, source, **kwargs)

    def log_failure(self, source: str, **kwargs) -> OutcomeRecord:
        """Log a Failure outcome."""
        return self._record(AuditOutcome.FAILURE, source, **kwargs)

    def query(
        self,
        record_id: Optional[str] = None,
        outcome: Optional[AuditOutcome] = None,
        source: Optional[str] = None,
        limit: int = 100,
    ) -> List[OutcomeRecord]:
        """Query records from the first backend."""
        if not self._backends:
            return []
        return self._backends[0].query(record_id, outcome, source, limit)
