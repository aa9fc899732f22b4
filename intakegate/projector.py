"""
IntakeGate Visibility Projector

Derives the staff-visible MessageMeta from a full MessageRecord. This is
the only path through which staff-facing message data is produced.

Masking rules:
- sender:  email -> local@****.tld; phone -> all but the last 4 digits
           starred; any other handle -> first character + ****
- subject: first words kept (at most 3, never all), remainder -> ****
- snippet: whitespace collapsed, embedded emails and runs of 5+ digits
           masked, cut at a word boundary to 40 characters
- attachments: count only

Pure and deterministic: the same record always yields the same meta.
"""

import re
from typing import Iterable, List, Optional

from .records import (
    Classification,
    MessageChannel,
    MessageMeta,
    MessageRecord,
    Urgency,
)

MASK = "****"
SNIPPET_LENGTH = 40
SUBJECT_VISIBLE_WORDS = 3
PHONE_VISIBLE_DIGITS = 4
MIN_MASKED_DIGITS = 7
SNIPPET_MIN_MASKED_DIGITS = 5

_EMAIL_PATTERN = re.compile(r'^([^@\s]+)@([^@\s]+)$')
_EMBEDDED_EMAIL_PATTERN = re.compile(r'[^@\s]+@[^@\s]+\.[A-Za-z]{2,}')
_PHONE_PATTERN = re.compile(r'^\+?[\d\s().-]+$')
_NUMBER_RUN_PATTERN = re.compile(r'\+?\(?\d[\d\s().-]{3,}\d')

URGENT_KEYWORDS = ("urgent", "asap", "immediately", "emergency", "deadline", "due soon")
MISSING_DOCS_KEYWORDS = ("missing", "upload", "document", "attached", "w-2", "1099")
APPOINTMENT_KEYWORDS = ("appointment", "schedule", "meeting", "call")


def _digit_count(value: str) -> int:
    return sum(1 for ch in value if ch.isdigit())


def _mask_digits(value: str, visible: int = PHONE_VISIBLE_DIGITS) -> str:
    """Star every digit except the last `visible`, keeping separators."""
    remaining = _digit_count(value) - visible
    out = []
    for ch in value:
        if ch.isdigit() and remaining > 0:
            out.append("*")
            remaining -= 1
        else:
            out.append(ch)
    return "".join(out)


def mask_contact(sender: str) -> str:
    """Mask a sender address or number for triage display."""
    sender = (sender or "").strip()
    m = _EMAIL_PATTERN.match(sender)
    if m:
        local, domain = m.groups()
        if "." in domain:
            return f"{local}@{MASK}.{domain.rsplit('.', 1)[1]}"
        return f"{local}@{MASK}"
    if _PHONE_PATTERN.match(sender) and _digit_count(sender) >= MIN_MASKED_DIGITS:
        return _mask_digits(sender)
    if not sender:
        return MASK
    return sender[0] + MASK


def mask_subject(subject: Optional[str]) -> Optional[str]:
    if subject is None or not subject.strip():
        return None
    words = subject.split()
    keep = min(SUBJECT_VISIBLE_WORDS, len(words) - 1)
    if keep <= 0:
        return MASK
    return " ".join(words[:keep]) + " " + MASK


def _mask_number_run(match) -> str:
    text = match.group(0)
    if _digit_count(text) >= SNIPPET_MIN_MASKED_DIGITS:
        return MASK
    return text


def make_snippet(body: str, length: int = SNIPPET_LENGTH) -> str:
    """Short, non-reversible preview of a message body."""
    text = " ".join((body or "").split())
    text = _EMBEDDED_EMAIL_PATTERN.sub(lambda m: mask_contact(m.group(0)), text)
    text = _NUMBER_RUN_PATTERN.sub(_mask_number_run, text)
    if len(text) <= length:
        return text
    cut = text[:length]
    if " " in cut:
        cut = cut[:cut.rfind(" ")]
    return cut.rstrip(" ,.;:") + "..."


def derive_urgency(record: MessageRecord) -> Urgency:
    """Keyword and channel based urgency, used when ingestion did not tag one."""
    text = f"{record.subject or ''} {record.body or ''}".lower()
    if any(k in text for k in URGENT_KEYWORDS):
        return Urgency.HIGH
    if record.channel in (MessageChannel.SMS, MessageChannel.WHATSAPP):
        return Urgency.HIGH
    if record.channel == MessageChannel.EMAIL:
        return Urgency.LOW
    return Urgency.MED


def derive_classification(record: MessageRecord) -> Classification:
    text = f"{record.subject or ''} {record.body or ''}".lower()
    if any(k in text for k in MISSING_DOCS_KEYWORDS):
        return Classification.MISSING_DOCS
    if any(k in text for k in APPOINTMENT_KEYWORDS):
        return Classification.APPOINTMENT
    if "?" in text:
        return Classification.QUESTION
    return Classification.GENERAL


def project(record: MessageRecord) -> MessageMeta:
    """Build the redacted view of a message."""
    return MessageMeta(
        id=record.id,
        tenant_id=record.tenant_id,
        workspace_id=record.workspace_id,
        channel=record.channel,
        from_masked=mask_contact(record.sender),
        subject_masked=mask_subject(record.subject),
        snippet_masked=make_snippet(record.body),
        unread=record.unread,
        received_at=record.received_at,
        urgency=record.urgency or derive_urgency(record),
        classification=record.classification or derive_classification(record),
        attachment_count=len(record.attachments),
    )


def project_all(records: Iterable[MessageRecord]) -> List[MessageMeta]:
    return [project(r) for r in records]
