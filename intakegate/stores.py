"""
Persistence interfaces for IntakeGate.

Every read takes `tenant_id` as a mandatory positional argument so a query
without a tenant filter cannot be written against these interfaces.

In-memory implementations are provided for tests and single-process use;
`app.db.SqliteStore` implements the same interfaces on SQLite.
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional

from .errors import DuplicateTokenError
from .records import IntakeLinkRecord, IntakeResponse, LinkStatus, MessageRecord


class IntakeLinkStore(ABC):
    """Abstract interface for intake link registry storage."""

    @abstractmethod
    def insert(self, record: IntakeLinkRecord) -> None:
        """
        Persist a new record.

        Raises:
            DuplicateTokenError: If record.token_hash is already stored
        """
        pass

    @abstractmethod
    def get(self, tenant_id: str, link_id: str) -> Optional[IntakeLinkRecord]:
        pass

    @abstractmethod
    def find_by_token_hash(self, tenant_id: str, token_hash: str) -> Optional[IntakeLinkRecord]:
        pass

    @abstractmethod
    def list_links(self, tenant_id: str, workspace_id: Optional[str] = None) -> List[IntakeLinkRecord]:
        """Records for a tenant, newest first."""
        pass

    @abstractmethod
    def transition_status(
        self,
        tenant_id: str,
        link_id: str,
        expected: LinkStatus,
        new: LinkStatus,
        not_expired_at: Optional[datetime] = None
    ) -> bool:
        """
        Atomically move a record from `expected` to `new`.

        If `not_expired_at` is given the transition also requires
        expires_at > not_expired_at. Returns True only for the caller
        whose update took effect.
        """
        pass


class MessageStore(ABC):
    """Abstract interface for inbound message storage (read side)."""

    @abstractmethod
    def list_messages(self, tenant_id: str, workspace_id: Optional[str] = None) -> List[MessageRecord]:
        """Messages for a tenant, newest first."""
        pass

    @abstractmethod
    def get_message(self, tenant_id: str, message_id: str) -> Optional[MessageRecord]:
        pass


class IntakeResponseStore(ABC):
    """Abstract interface for submitted intake answers."""

    @abstractmethod
    def save_response(self, response: IntakeResponse) -> None:
        pass

    @abstractmethod
    def list_responses(self, tenant_id: str, intake_link_id: Optional[str] = None) -> List[IntakeResponse]:
        pass


class InMemoryLinkStore(IntakeLinkStore):
    """Thread-safe in-memory registry storage."""

    def __init__(self):
        self._records: Dict[str, IntakeLinkRecord] = {}
        self._by_hash: Dict[str, str] = {}
        self._lock = threading.RLock()

    def insert(self, record: IntakeLinkRecord) -> None:
        with self._lock:
            if record.token_hash in self._by_hash:
                raise DuplicateTokenError("token hash already registered")
            self._records[record.id] = record
            self._by_hash[record.token_hash] = record.id

    def get(self, tenant_id: str, link_id: str) -> Optional[IntakeLinkRecord]:
        with self._lock:
            record = self._records.get(link_id)
        if record is None or record.tenant_id != tenant_id:
            return None
        return record

    def find_by_token_hash(self, tenant_id: str, token_hash: str) -> Optional[IntakeLinkRecord]:
        with self._lock:
            link_id = self._by_hash.get(token_hash)
            record = self._records.get(link_id) if link_id else None
        if record is None or record.tenant_id != tenant_id:
            return None
        return record

    def list_links(self, tenant_id: str, workspace_id: Optional[str] = None) -> List[IntakeLinkRecord]:
        with self._lock:
            records = [
                r for r in self._records.values()
                if r.tenant_id == tenant_id
                and (workspace_id is None or r.workspace_id == workspace_id)
            ]
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    def transition_status(
        self,
        tenant_id: str,
        link_id: str,
        expected: LinkStatus,
        new: LinkStatus,
        not_expired_at: Optional[datetime] = None
    ) -> bool:
        with self._lock:
            record = self._records.get(link_id)
            if record is None or record.tenant_id != tenant_id:
                return False
            if record.status != expected:
                return False
            if not_expired_at is not None and record.expires_at <= not_expired_at:
                return False
            self._records[link_id] = replace(record, status=new)
            return True


class InMemoryMessageStore(MessageStore):
    """In-memory message storage; `add_message` stands in for ingestion."""

    def __init__(self, messages: Optional[List[MessageRecord]] = None):
        self._messages: Dict[str, MessageRecord] = {}
        self._lock = threading.RLock()
        for message in messages or []:
            self.add_message(message)

    def add_message(self, message: MessageRecord) -> None:
        with self._lock:
            self._messages[message.id] = message

    def list_messages(self, tenant_id: str, workspace_id: Optional[str] = None) -> List[MessageRecord]:
        with self._lock:
            messages = [
                m for m in self._messages.values()
                if m.tenant_id == tenant_id
                and (workspace_id is None or m.workspace_id == workspace_id)
            ]
        return sorted(messages, key=lambda m: m.received_at, reverse=True)

    def get_message(self, tenant_id: str, message_id: str) -> Optional[MessageRecord]:
        with self._lock:
            message = self._messages.get(message_id)
        if message is None or message.tenant_id != tenant_id:
            return None
        return message


class InMemoryResponseStore(IntakeResponseStore):

    def __init__(self):
        self._responses: List[IntakeResponse] = []
        self._lock = threading.RLock()

    def save_response(self, response: IntakeResponse) -> None:
        with self._lock:
            self._responses.append(response)

    def list_responses(self, tenant_id: str, intake_link_id: Optional[str] = None) -> List[IntakeResponse]:
        with self._lock:
            return [
                r for r in self._responses
                if r.tenant_id == tenant_id
                and (intake_link_id is None or r.intake_link_id == intake_link_id)
            ]
