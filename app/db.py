"""
Database module for the IntakeGate service.

SQLite storage for intake links, inbound messages and intake responses.
One `SqliteStore` implements all three store interfaces over a single
database file. Connections are thread-local per store instance.

Timestamps are stored as fixed-width ISO-8601 UTC strings
(YYYY-MM-DDTHH:MM:SS.mmmZ), so string comparison is time comparison.
"""

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional

from intakegate.errors import DuplicateTokenError
from intakegate.records import (
    Attachment,
    Classification,
    IntakeChannel,
    IntakeLinkRecord,
    IntakeResponse,
    LinkStatus,
    MessageChannel,
    MessageRecord,
    Urgency,
)
from intakegate.stores import IntakeLinkStore, IntakeResponseStore, MessageStore
from intakegate.tokens import IntakeLinkKind
from intakegate.util import parse_iso8601, to_iso8601

logger = logging.getLogger(__name__)

BUSY_TIMEOUT_SECONDS = 10.0

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS intake_links (
        id TEXT PRIMARY KEY,
        tenant_id TEXT NOT NULL,
        kind TEXT NOT NULL,
        workspace_id TEXT,
        token_hash TEXT NOT NULL UNIQUE,
        token_tail TEXT NOT NULL,
        allowed_channels TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'active',
        created_by TEXT NOT NULL,
        created_at TEXT NOT NULL,
        expires_at TEXT NOT NULL
    );""",
    """
    CREATE INDEX IF NOT EXISTS idx_intake_links_tenant_hash
    ON intake_links(tenant_id, token_hash);""",
    """
    CREATE INDEX IF NOT EXISTS idx_intake_links_tenant_workspace
    ON intake_links(tenant_id, workspace_id);""",
    """
    CREATE TABLE IF NOT EXISTS messages (
        id TEXT PRIMARY KEY,
        tenant_id TEXT NOT NULL,
        workspace_id TEXT NOT NULL,
        channel TEXT NOT NULL,
        sender TEXT NOT NULL,
        subject TEXT,
        body TEXT NOT NULL,
        attachments_json TEXT NOT NULL DEFAULT '[]',
        received_at TEXT NOT NULL,
        unread INTEGER NOT NULL DEFAULT 1,
        urgency TEXT,
        classification TEXT
    );""",
    """
    CREATE INDEX IF NOT EXISTS idx_messages_tenant_workspace
    ON messages(tenant_id, workspace_id, received_at);""",
    """
    CREATE TABLE IF NOT EXISTS intake_responses (
        id TEXT PRIMARY KEY,
        tenant_id TEXT NOT NULL,
        intake_link_id TEXT NOT NULL,
        workspace_id TEXT,
        submitted_at TEXT NOT NULL,
        responses_json TEXT NOT NULL
    );""",
    """
    CREATE INDEX IF NOT EXISTS idx_intake_responses_tenant_link
    ON intake_responses(tenant_id, intake_link_id);""",
)


def _link_from_row(row: sqlite3.Row) -> IntakeLinkRecord:
    return IntakeLinkRecord(
        id=row["id"],
        tenant_id=row["tenant_id"],
        kind=IntakeLinkKind(row["kind"]),
        workspace_id=row["workspace_id"],
        token_hash=row["token_hash"],
        token_tail=row["token_tail"],
        allowed_channels=frozenset(IntakeChannel(c) for c in json.loads(row["allowed_channels"])),
        status=LinkStatus(row["status"]),
        created_by=row["created_by"],
        created_at=parse_iso8601(row["created_at"]),
        expires_at=parse_iso8601(row["expires_at"]),
    )


def _message_from_row(row: sqlite3.Row) -> MessageRecord:
    attachments = tuple(
        Attachment(name=a["name"], size=int(a["size"]), content_type=a["contentType"])
        for a in json.loads(row["attachments_json"])
    )
    return MessageRecord(
        id=row["id"],
        tenant_id=row["tenant_id"],
        workspace_id=row["workspace_id"],
        channel=MessageChannel(row["channel"]),
        sender=row["sender"],
        subject=row["subject"],
        body=row["body"],
        attachments=attachments,
        received_at=parse_iso8601(row["received_at"]),
        unread=bool(row["unread"]),
        urgency=Urgency(row["urgency"]) if row["urgency"] else None,
        classification=Classification(row["classification"]) if row["classification"] else None,
    )


def _response_from_row(row: sqlite3.Row) -> IntakeResponse:
    return IntakeResponse(
        id=row["id"],
        tenant_id=row["tenant_id"],
        intake_link_id=row["intake_link_id"],
        workspace_id=row["workspace_id"],
        submitted_at=parse_iso8601(row["submitted_at"]),
        responses=json.loads(row["responses_json"]),
    )


class SqliteStore(IntakeLinkStore, MessageStore, IntakeResponseStore):
    """
    SQLite-backed storage for all IntakeGate records.

    Every query filters on tenant_id. The single-use transition is one
    conditional UPDATE whose rowcount decides the winner.
    """

    def __init__(self, db_path: str):
        self._path = Path(db_path)
        self._local = threading.local()
        self._connections: List[sqlite3.Connection] = []
        self._conn_lock = threading.Lock()
        self.init_db()

    @property
    def path(self) -> Path:
        return self._path

    def _get_connection(self) -> sqlite3.Connection:
        """
        Get this thread's connection, opening it on first use.
        """
        conn = getattr(self._local, "conn", None)
        if conn is None:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self._path), timeout=BUSY_TIMEOUT_SECONDS, check_same_thread=False)
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            conn.execute("PRAGMA temp_store=MEMORY;")
            conn.row_factory = sqlite3.Row
            self._local.conn = conn
            with self._conn_lock:
                self._connections.append(conn)
        return conn

    @contextmanager
    def _transaction(self):
        """
        Commit on success, roll back on failure.
        """
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def init_db(self) -> None:
        """
        Initialize schema and indexes. Safe to call multiple times.
        """
        with self._transaction() as conn:
            for statement in _SCHEMA:
                conn.execute(statement)

    # ------------------------------------------------------------
    # Intake links
    # ------------------------------------------------------------

    def insert(self, record: IntakeLinkRecord) -> None:
        try:
            with self._transaction() as conn:
                conn.execute(
                    "INSERT INTO intake_links(id, tenant_id, kind, workspace_id, token_hash, "
                    "token_tail, allowed_channels, status, created_by, created_at, expires_at) "
                    "VALUES(?,?,?,?,?,?,?,?,?,?,?)",
                    (
                        record.id,
                        record.tenant_id,
                        record.kind.value,
                        record.workspace_id,
                        record.token_hash,
                        record.token_tail,
                        json.dumps(sorted(c.value for c in record.allowed_channels)),
                        record.status.value,
                        record.created_by,
                        to_iso8601(record.created_at),
                        to_iso8601(record.expires_at),
                    )
                )
        except sqlite3.IntegrityError as e:
            if "token_hash" in str(e):
                raise DuplicateTokenError("token hash already registered")
            raise

    def get(self, tenant_id: str, link_id: str) -> Optional[IntakeLinkRecord]:
        conn = self._get_connection()
        cur = conn.execute(
            "SELECT * FROM intake_links WHERE tenant_id=? AND id=?",
            (tenant_id, link_id)
        )
        row = cur.fetchone()
        return _link_from_row(row) if row else None

    def find_by_token_hash(self, tenant_id: str, token_hash: str) -> Optional[IntakeLinkRecord]:
        conn = self._get_connection()
        cur = conn.execute(
            "SELECT * FROM intake_links WHERE tenant_id=? AND token_hash=?",
            (tenant_id, token_hash)
        )
        row = cur.fetchone()
        return _link_from_row(row) if row else None

    def list_links(self, tenant_id: str, workspace_id: Optional[str] = None) -> List[IntakeLinkRecord]:
        conn = self._get_connection()
        if workspace_id is None:
            cur = conn.execute(
                "SELECT * FROM intake_links WHERE tenant_id=? ORDER BY created_at DESC",
                (tenant_id,)
            )
        else:
            cur = conn.execute(
                "SELECT * FROM intake_links WHERE tenant_id=? AND workspace_id=? "
                "ORDER BY created_at DESC",
                (tenant_id, workspace_id)
            )
        return [_link_from_row(row) for row in cur.fetchall()]

    def transition_status(
        self,
        tenant_id: str,
        link_id: str,
        expected: LinkStatus,
        new: LinkStatus,
        not_expired_at: Optional[datetime] = None
    ) -> bool:
        """
        Atomic compare-and-set on status. Returns True only if this call
        changed the row.
        """
        sql = "UPDATE intake_links SET status=? WHERE tenant_id=? AND id=? AND status=?"
        params: List[Any] = [new.value, tenant_id, link_id, expected.value]
        if not_expired_at is not None:
            sql += " AND expires_at > ?"
            params.append(to_iso8601(not_expired_at))

        with self._transaction() as conn:
            cur = conn.execute(sql, params)
            return cur.rowcount == 1

    # ------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------

    def add_message(self, message: MessageRecord) -> None:
        """Write a message as ingestion would."""
        with self._transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO messages(id, tenant_id, workspace_id, channel, sender, "
                "subject, body, attachments_json, received_at, unread, urgency, classification) "
                "VALUES(?,?,?,?,?,?,?,?,?,?,?,?)",
                (
                    message.id,
                    message.tenant_id,
                    message.workspace_id,
                    message.channel.value,
                    message.sender,
                    message.subject,
                    message.body,
                    json.dumps([
                        {"name": a.name, "size": a.size, "contentType": a.content_type}
                        for a in message.attachments
                    ]),
                    to_iso8601(message.received_at),
                    1 if message.unread else 0,
                    message.urgency.value if message.urgency else None,
                    message.classification.value if message.classification else None,
                )
            )

    def list_messages(self, tenant_id: str, workspace_id: Optional[str] = None) -> List[MessageRecord]:
        conn = self._get_connection()
        if workspace_id is None:
            cur = conn.execute(
                "SELECT * FROM messages WHERE tenant_id=? ORDER BY received_at DESC",
                (tenant_id,)
            )
        else:
            cur = conn.execute(
                "SELECT * FROM messages WHERE tenant_id=? AND workspace_id=? "
                "ORDER BY received_at DESC",
                (tenant_id, workspace_id)
            )
        return [_message_from_row(row) for row in cur.fetchall()]

    def get_message(self, tenant_id: str, message_id: str) -> Optional[MessageRecord]:
        conn = self._get_connection()
        cur = conn.execute(
            "SELECT * FROM messages WHERE tenant_id=? AND id=?",
            (tenant_id, message_id)
        )
        row = cur.fetchone()
        return _message_from_row(row) if row else None

    # ------------------------------------------------------------
    # Intake responses
    # ------------------------------------------------------------

    def save_response(self, response: IntakeResponse) -> None:
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO intake_responses(id, tenant_id, intake_link_id, workspace_id, "
                "submitted_at, responses_json) VALUES(?,?,?,?,?,?)",
                (
                    response.id,
                    response.tenant_id,
                    response.intake_link_id,
                    response.workspace_id,
                    to_iso8601(response.submitted_at),
                    json.dumps(response.responses, sort_keys=True),
                )
            )

    def list_responses(self, tenant_id: str, intake_link_id: Optional[str] = None) -> List[IntakeResponse]:
        conn = self._get_connection()
        if intake_link_id is None:
            cur = conn.execute(
                "SELECT * FROM intake_responses WHERE tenant_id=? ORDER BY submitted_at ASC",
                (tenant_id,)
            )
        else:
            cur = conn.execute(
                "SELECT * FROM intake_responses WHERE tenant_id=? AND intake_link_id=? "
                "ORDER BY submitted_at ASC",
                (tenant_id, intake_link_id)
            )
        return [_response_from_row(row) for row in cur.fetchall()]

    # ------------------------------------------------------------
    # Test support and cleanup
    # ------------------------------------------------------------

    def reset(self) -> None:
        """
        Clear all tables but keep the schema. For test isolation.
        """
        with self._transaction() as conn:
            conn.execute("DELETE FROM intake_links")
            conn.execute("DELETE FROM messages")
            conn.execute("DELETE FROM intake_responses")

    def close(self) -> None:
        """Close every connection this store opened."""
        with self._conn_lock:
            for conn in self._connections:
                conn.close()
            self._connections.clear()
        self._local = threading.local()
