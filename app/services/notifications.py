"""
Outgoing email notifications.

Fire-and-forget: callers hand an OutgoingEmail to send_in_background() and
move on; failures are logged, never raised. Without RESEND_API_KEY the
notifier runs dry, logging each message and keeping it in the outbox.
"""
import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from app.config import settings
from app.services.clock import to_local
from app.services.event_log import log_event
from app.templating import env

logger = logging.getLogger(__name__)

SEND_ATTEMPTS = 2


@dataclass(frozen=True)
class OutgoingEmail:
    to: str
    subject: str
    html: str


def _render(template_name: str, **context: Any) -> str:
    return env.get_template(f"emails/{template_name}").render(
        org_name=settings.ORG_NAME,
        tagline=settings.ORG_TAGLINE,
        date_format=settings.REPORT_DATE_FORMAT,
        **context,
    )


def activity_logged_email(activity: Any) -> OutgoingEmail:
    return OutgoingEmail(
        to=activity.submitted_by,
        subject="Activity Logged Successfully",
        html=_render("activity_logged.html", activity=activity),
    )


def reminder_email(event: Any) -> OutgoingEmail:
    starts_at = to_local(event.start_time).strftime("%H:%M")
    return OutgoingEmail(
        to=event.email,
        subject=f"🔔 Reminder: {event.title} - Starting in 1 Hour",
        html=_render("reminder.html", event=event, starts_at=starts_at),
    )


def welcome_email(profile: Any) -> OutgoingEmail:
    return OutgoingEmail(
        to=profile.email,
        subject=f"Welcome to {settings.ORG_NAME} Activities Portal",
        html=_render("welcome.html", profile=profile),
    )


class Notifier:
    def __init__(
        self,
        api_key: str = settings.RESEND_API_KEY,
        api_url: str = settings.EMAIL_API_URL,
        sender: str = settings.EMAIL_FROM,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._api_key = api_key
        self._api_url = api_url
        self._sender = sender
        self._client = client or httpx.AsyncClient(timeout=15.0)
        self._tasks: set[asyncio.Task] = set()
        self.outbox: deque[OutgoingEmail] = deque(maxlen=50)

    @property
    def dry_run(self) -> bool:
        return not self._api_key

    async def send(self, email: OutgoingEmail) -> bool:
        if not email.to:
            logger.warning("Email '%s' has no recipient, skipped", email.subject)
            return False

        if self.dry_run:
            logger.info("[EMAIL][DRY_RUN] to=%s subject=%s", email.to, email.subject)
            self.outbox.append(email)
            return True

        for attempt in range(1, SEND_ATTEMPTS + 1):
            try:
                response = await self._client.post(
                    self._api_url,
                    headers={"Authorization": f"Bearer {self._api_key}"},
                    json={
                        "from": self._sender,
                        "to": [email.to],
                        "subject": email.subject,
                        "html": email.html,
                    },
                )
                response.raise_for_status()
                self.outbox.append(email)
                logger.info("Email sent to %s: %s", email.to, email.subject)
                return True
            except httpx.HTTPError as exc:
                logger.warning(
                    "Email to %s failed (attempt %d/%d): %s", email.to, attempt, SEND_ATTEMPTS, exc
                )

        log_event("error", "email", f"Email to {email.to} failed: {email.subject}")
        return False

    def send_in_background(self, email: OutgoingEmail) -> asyncio.Task:
        task = asyncio.create_task(self.send(email))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for in-flight background sends."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        await self.drain()
        await self._client.aclose()
