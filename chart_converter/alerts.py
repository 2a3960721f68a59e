"""Slack alerts for charts the pipeline had to abandon.

WHY: A chart abandoned mid-run (transport failure, rate-limit retries
exhausted) is silently retried on the next run, but an operator should
hear about it when it keeps happening. Posting to a Slack channel is the
lowest-friction way to get that signal in front of someone.

HOW: SlackAlerter wraps a slack_bolt App and posts plain-text messages
with chat_postMessage. build_alerter() returns None when SLACK_BOT_TOKEN
or SLACK_ALERT_CHANNEL is not configured, and the dispatcher then only
logs.

RULES:
- App is created with token_verification_enabled=False (no network on init)
- send() never raises: alert failures are logged and swallowed
- The Slack call is blocking; async callers run it in a worker thread
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from slack_bolt import App

from chart_converter.config import SLACK_ALERT_CHANNEL, SLACK_BOT_TOKEN

logger = logging.getLogger(__name__)


class SlackAlerter:
    """Posts alert messages to one Slack channel."""

    def __init__(self, token: str, channel: str, app: Optional[App] = None) -> None:
        self.channel = channel
        self._app = app or App(token=token, token_verification_enabled=False)

    def send(self, text: str) -> bool:
        """Post text to the alert channel. Returns True on success."""
        try:
            self._app.client.chat_postMessage(channel=self.channel, text=text)
        except Exception:
            logger.exception("Failed to post alert to Slack channel %s", self.channel)
            return False
        return True

    async def send_async(self, text: str) -> bool:
        return await asyncio.to_thread(self.send, text)


def build_alerter(
    token: Optional[str] = None,
    channel: Optional[str] = None,
) -> Optional[SlackAlerter]:
    """Create a SlackAlerter from configuration, or None if not configured."""
    token = token if token is not None else SLACK_BOT_TOKEN
    channel = channel if channel is not None else SLACK_ALERT_CHANNEL
    if not token or not channel:
        return None
    return SlackAlerter(token=token, channel=channel)
