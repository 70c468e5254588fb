"""
Notification outbox.

Scheduling operations never talk to the email service or write in-app
notifications directly. They queue OutboxMessage rows here, and
NotificationDispatcher delivers them later. Neither queueing nor delivery
can change the outcome of the operation that produced the message.
"""

import json
import logging
from datetime import timedelta
from typing import Optional

import httpx
from sqlalchemy.orm import Session as DBSession

from config import get_settings
from shared.models.entities import OutboxMessage
from shared.utils.constants import (
    EMAIL_FUNCTION_APPROVAL,
    EMAIL_FUNCTION_REJECTION,
    EMAIL_FUNCTION_REQUEST,
    NOTIFICATION_DROPIN_REQUEST,
    NOTIFICATION_DROPIN_RESPONSE,
    NOTIFICATION_RESCHEDULE_REQUEST,
    NOTIFICATION_RESCHEDULE_RESPONSE,
    OUTBOX_BATCH_SIZE,
    OUTBOX_CLAIM_STALE_MINUTES,
)
from shared.utils.exceptions import NotificationDeliveryFailure
from scheduling.repositories.notification_repository import NotificationRepository

logger = logging.getLogger(__name__)

KIND_APPROVAL_EMAIL = "approval_email"
KIND_REJECTION_EMAIL = "rejection_email"
KIND_REQUEST_EMAIL = "request_email"
KIND_IN_APP = "in_app"

EMAIL_FUNCTIONS = {
    KIND_APPROVAL_EMAIL: EMAIL_FUNCTION_APPROVAL,
    KIND_REJECTION_EMAIL: EMAIL_FUNCTION_REJECTION,
    KIND_REQUEST_EMAIL: EMAIL_FUNCTION_REQUEST,
}


def _type_label(request_type: str) -> str:
    if request_type == "dropin":
        return "Drop-in"
    if request_type == "reschedule":
        return "Reschedule"
    raise ValueError(f"Unknown request type: {request_type}")


def _join_names(names: list[str]) -> str:
    return ", ".join(names)


class NotificationService:
    """Queue request, approval and rejection notifications."""

    def __init__(self, db: DBSession):
        self.db = db
        self.repo = NotificationRepository(db)

    def _enqueue(self, kind: str, payload: dict) -> Optional[str]:
        """Queue one message; returns an error string instead of raising."""
        try:
            self.repo.enqueue(kind, payload)
            return None
        except Exception as e:
            self.db.rollback()
            failure = NotificationDeliveryFailure(kind, e)
            logger.error(f"Could not queue notification: {failure}", exc_info=True)
            return str(failure)

    def enqueue_request_created(
        self,
        request_ids: list[str],
        tutor_id: str,
        parent_id: str,
        parent_name: str,
        student_names: list[str],
        subject: str,
        request_type: str,
        preferred_date: str,
        preferred_time: Optional[str],
        notes: Optional[str],
        original_lesson_date: Optional[str] = None,
    ) -> list[str]:
        """Tell the tutor a new request arrived: one in-app notification and one email."""
        label = _type_label(request_type)
        names = _join_names(student_names)
        notification_type = (
            NOTIFICATION_DROPIN_REQUEST if request_type == "dropin" else NOTIFICATION_RESCHEDULE_REQUEST
        )
        failures = []
        in_app = {
            "recipient_id": tutor_id,
            "sender_id": parent_id,
            "type": notification_type,
            "title": f"New {label} Request",
            "message": f"{parent_name} requested a {label.lower()} lesson for {names} on {preferred_date}",
            "data": {"request_ids": request_ids, "request_type": request_type},
            "action_url": "/requests",
        }
        email = {
            "request_id": request_ids[0],
            "parent_id": parent_id,
            "parent_name": parent_name,
            "student_name": names,
            "subject": subject,
            "preferred_date": preferred_date,
            "preferred_time": preferred_time,
            "reason": notes,
            "request_type": request_type,
            "original_lesson_date": original_lesson_date,
        }
        for kind, payload in ((KIND_IN_APP, in_app), (KIND_REQUEST_EMAIL, email)):
            error = self._enqueue(kind, payload)
            if error:
                failures.append(error)
        return failures

    def enqueue_decision(
        self,
        approved: bool,
        tutor_id: str,
        parent_id: str,
        student_names: list[str],
        subject: str,
        request_type: str,
        preferred_date: str,
        tutor_response: Optional[str],
        request_group_id: Optional[str],
        is_scheduled: bool = False,
    ) -> list[str]:
        """Tell a parent their request was approved or declined."""
        label = _type_label(request_type)
        names = _join_names(student_names)
        notification_type = (
            NOTIFICATION_DROPIN_RESPONSE if request_type == "dropin" else NOTIFICATION_RESCHEDULE_RESPONSE
        )
        if approved:
            title = f"{label} Request Approved"
            message = f"Your {label.lower()} request for {names} has been approved"
        else:
            title = f"{label} Request Declined"
            message = f"Your {label.lower()} request for {names} has been declined"
        if tutor_response:
            message = f"{message}: {tutor_response}"

        in_app = {
            "recipient_id": parent_id,
            "sender_id": tutor_id,
            "type": notification_type,
            "title": title,
            "message": message,
            "data": {"request_group_id": request_group_id, "approved": approved},
            "action_url": "/requests",
        }
        email = {
            "parent_id": parent_id,
            "student_name": names,
            "subject": subject,
            "preferred_date": preferred_date,
            "tutor_response": tutor_response,
            "request_group_id": request_group_id,
            "request_type": request_type,
        }
        if approved:
            email["is_scheduled"] = is_scheduled

        failures = []
        email_kind = KIND_APPROVAL_EMAIL if approved else KIND_REJECTION_EMAIL
        for kind, payload in ((KIND_IN_APP, in_app), (email_kind, email)):
            error = self._enqueue(kind, payload)
            if error:
                failures.append(error)
        return failures


class NotificationDispatcher:
    """Deliver pending outbox messages."""

    def __init__(self, db: DBSession, http_client: Optional[httpx.Client] = None):
        self.db = db
        self.repo = NotificationRepository(db)
        self.settings = get_settings()
        self.http_client = http_client

    def dispatch_pending(self, limit: int = OUTBOX_BATCH_SIZE) -> dict:
        """
        Deliver up to limit pending messages, oldest first.

        Messages are claimed before delivery, so dispatchers running at the
        same time split the backlog instead of sending it twice.

        Returns counts of messages sent, failed for good, and left pending
        for another attempt.
        """
        counts = {"sent": 0, "failed": 0, "retrying": 0}
        messages = self.repo.claim_pending(limit, timedelta(minutes=OUTBOX_CLAIM_STALE_MINUTES))
        if not messages:
            return counts

        client = self.http_client or httpx.Client(timeout=self.settings.email_timeout_seconds)
        try:
            for message in messages:
                try:
                    self._deliver(message, client)
                    self.repo.mark_sent(message)
                    counts["sent"] += 1
                except Exception as e:
                    failure = NotificationDeliveryFailure(message.kind, e)
                    logger.warning(f"Outbox message {message.id}: {failure}")
                    self.db.rollback()
                    self.repo.mark_attempt_failed(
                        message, str(e), self.settings.notification_max_attempts
                    )
                    if message.status == "failed":
                        logger.error(
                            f"Outbox message {message.id} gave up after {message.attempts} attempts"
                        )
                        counts["failed"] += 1
                    else:
                        counts["retrying"] += 1
        finally:
            if self.http_client is None:
                client.close()

        logger.info(
            f"Outbox dispatch: {counts['sent']} sent, {counts['failed']} failed, "
            f"{counts['retrying']} retrying"
        )
        return counts

    def _deliver(self, message: OutboxMessage, client: httpx.Client) -> None:
        payload = json.loads(message.payload_json)
        if message.kind == KIND_IN_APP:
            self.repo.create_notification(
                recipient_id=payload.get("recipient_id"),
                sender_id=payload.get("sender_id"),
                type=payload["type"],
                title=payload["title"],
                message=payload["message"],
                data=payload.get("data"),
                action_url=payload.get("action_url"),
            )
            return

        if message.kind not in EMAIL_FUNCTIONS:
            raise ValueError(f"Unknown outbox message kind: {message.kind}")

        function_name = EMAIL_FUNCTIONS[message.kind]
        if not self.settings.email_function_url:
            logger.info(f"Email delivery not configured; would call {function_name} with {payload}")
            return

        url = f"{self.settings.email_function_url.rstrip('/')}/{function_name}"
        headers = {}
        if self.settings.email_function_key:
            headers["Authorization"] = f"Bearer {self.settings.email_function_key}"
        response = client.post(url, json=payload, headers=headers)
        response.raise_for_status()
