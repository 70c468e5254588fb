"""Notification outbox and in-app notification data access layer."""

import json
from datetime import datetime, timedelta
from typing import Optional
from uuid import uuid4

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session as DBSession

from shared.models.entities import Notification, OutboxMessage


class NotificationRepository:
    """Queue outbox messages and store delivered in-app notifications."""

    def __init__(self, db: DBSession):
        self.db = db

    def enqueue(self, kind: str, payload: dict) -> OutboxMessage:
        message = OutboxMessage(
            id=str(uuid4()),
            kind=kind,
            payload_json=json.dumps(payload),
            status="pending",
            attempts=0,
            created_at=datetime.utcnow(),
        )
        self.db.add(message)
        self.db.commit()
        return message

    def claim_pending(self, limit: int, stale_after: timedelta) -> list[OutboxMessage]:
        """
        Move up to limit deliverable messages to 'sending' and return them.

        Deliverable means pending, or stuck in sending since before
        stale_after. Rows are locked with SKIP LOCKED where the backend
        supports it, and each claim is a conditional UPDATE on the status
        the row was read with, so two dispatchers never both get a row.
        """
        now = datetime.utcnow()
        stale_before = now - stale_after
        deliverable = or_(
            OutboxMessage.status == "pending",
            and_(OutboxMessage.status == "sending", OutboxMessage.claimed_at < stale_before),
        )
        candidates = (
            self.db.query(OutboxMessage.id, OutboxMessage.status)
            .filter(deliverable)
            .order_by(OutboxMessage.created_at.asc(), OutboxMessage.id.asc())
            .limit(limit)
            .with_for_update(skip_locked=True)
            .all()
        )

        claimed_ids = []
        for message_id, status in candidates:
            updated = (
                self.db.query(OutboxMessage)
                .filter(OutboxMessage.id == message_id, OutboxMessage.status == status, deliverable)
                .update({"status": "sending", "claimed_at": now}, synchronize_session=False)
            )
            if updated:
                claimed_ids.append(message_id)
        self.db.commit()

        if not claimed_ids:
            return []
        return (
            self.db.query(OutboxMessage)
            .filter(OutboxMessage.id.in_(claimed_ids))
            .order_by(OutboxMessage.created_at.asc(), OutboxMessage.id.asc())
            .all()
        )

    def mark_sent(self, message: OutboxMessage) -> None:
        message.status = "sent"
        message.attempts += 1
        message.sent_at = datetime.utcnow()
        message.last_error = None
        self.db.commit()

    def mark_attempt_failed(self, message: OutboxMessage, error: str, max_attempts: int) -> None:
        message.attempts += 1
        message.last_error = error
        message.status = "failed" if message.attempts >= max_attempts else "pending"
        message.claimed_at = None
        self.db.commit()

    def create_notification(
        self,
        recipient_id: Optional[str],
        sender_id: Optional[str],
        type: str,
        title: str,
        message: str,
        data: Optional[dict] = None,
        action_url: Optional[str] = None,
    ) -> Notification:
        notification = Notification(
            id=str(uuid4()),
            recipient_id=recipient_id,
            sender_id=sender_id,
            type=type,
            title=title,
            message=message,
            data_json=json.dumps(data) if data is not None else None,
            action_url=action_url,
            created_at=datetime.utcnow(),
        )
        self.db.add(notification)
        self.db.commit()
        return notification

    def list_for_recipient(self, recipient_id: Optional[str]) -> list[Notification]:
        query = self.db.query(Notification)
        if recipient_id is None:
            query = query.filter(Notification.recipient_id.is_(None))
        else:
            query = query.filter(Notification.recipient_id == recipient_id)
        return query.order_by(Notification.created_at.desc()).all()
