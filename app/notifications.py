"""
Outbound notifications for the IntakeGate service.

Posts a short text message to a Slack-compatible incoming webhook when an
intake link is redeemed. Notification is a side channel: failures are
logged and never surface to the visitor.
"""

import logging
from typing import Optional

import requests

from intakegate.records import IntakeLinkRecord, IntakeResponse
from intakegate.util import to_iso8601

from .logging_config import audit_log

logger = logging.getLogger(__name__)


class WebhookNotifier:
    """Fire-and-forget webhook notifier. No-op without a URL."""

    def __init__(self, webhook_url: Optional[str] = None, timeout: float = 5.0, review_url: Optional[str] = None):
        self._url = webhook_url or ""
        self._timeout = timeout
        self._review_url = review_url

    @property
    def enabled(self) -> bool:
        return bool(self._url)

    def intake_submitted(self, link: IntakeLinkRecord, response: IntakeResponse) -> bool:
        """
        Announce a submitted intake form.

        Returns:
            True if the webhook accepted the message, False if disabled or failed
        """
        if not self.enabled:
            return False

        lines = [
            f"New intake submission ({link.kind.value})",
            f"Link: {link.id} (...{link.token_tail})",
            f"Workspace: {link.workspace_id}" if link.workspace_id else "",
            f"Submitted: {to_iso8601(response.submitted_at)}",
            f"Review: {self._review_url}" if self._review_url else "",
        ]
        payload = {"text": "\n".join(line for line in lines if line)}

        try:
            r = requests.post(self._url, json=payload, timeout=self._timeout)
            r.raise_for_status()
            return True
        except Exception as e:
            logger.warning("intake notification failed for link %s: %s", link.id, type(e).__name__)
            audit_log.notification_failed("webhook", type(e).__name__, link_id=link.id)
            return False
