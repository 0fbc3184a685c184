"""Recipient resolution and delivery of notifications to inboxes.

A send resolves the target selector to a set of (role, email) recipients,
appends one entry to each recipient's inbox and reports how many distinct
recipients were addressed. Inbox writes are independent of each other: a
failing write is logged and the remaining recipients are still served.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from ..core.config import settings as app_settings
from ..domain.ids import IdFactory, create_id
from ..domain.models import (
    AdminAppointmentRecord,
    AdminUserRecord,
    AppNotification,
    AppointmentStatus,
    NotificationTarget,
    Role,
    SentNotificationLog,
)
from ..storage.bus import InboxKey
from .inbox import Inbox

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

STATUS_LABELS = {
    AppointmentStatus.pending: "pending review",
    AppointmentStatus.approved: "approved",
    AppointmentStatus.rejected: "rejected",
    AppointmentStatus.cancelled: "cancelled",
}


@dataclass(frozen=True)
class Recipient:
    role: Role
    email: str

    @property
    def inbox(self) -> InboxKey:
        return InboxKey(self.role, self.email)


def resolve_recipients(
    users: Sequence[AdminUserRecord],
    target: NotificationTarget,
    target_email: Optional[str] = None,
    builtin_admin: str = app_settings.BUILTIN_ADMIN_EMAIL,
) -> List[Recipient]:
    """Recipients for a target selector, de-duplicated by (role, email)."""
    registered = [Recipient(Role(user.role), user.email) for user in users]
    admin = Recipient(Role.admin, builtin_admin)
    target = NotificationTarget(target)

    if target == NotificationTarget.all:
        selected = [*registered, admin]
    elif target == NotificationTarget.users:
        selected = [r for r in registered if r.role == Role.user]
    elif target == NotificationTarget.admins:
        selected = [*(r for r in registered if r.role == Role.admin), admin]
    else:
        email = (target_email or "").strip().lower()
        selected = [r for r in registered if r.email.lower() == email]
        if email == builtin_admin.lower():
            selected.append(admin)

    deduped: Dict[tuple, Recipient] = {}
    for recipient in selected:
        deduped[(recipient.role, recipient.email)] = recipient
    return list(deduped.values())


def resolve_appointment_recipient(
    appointment: AdminAppointmentRecord, users: Iterable[AdminUserRecord]
) -> Optional[str]:
    """Email of the account an appointment belongs to, if it can be told.

    Uses the stored email, then an email typed into the contact field that
    belongs to a registered account, then a unique full-name match.
    """
    if appointment.user_email:
        return appointment.user_email
    accounts = [user for user in users if user.role == Role.user and user.email]

    contact = appointment.id_or_phone.strip().lower()
    if EMAIL_RE.match(contact):
        for user in accounts:
            if user.email.lower() == contact:
                return user.email

    name = " ".join(appointment.full_name.split()).lower()
    if name:
        matches = [user for user in accounts if " ".join(user.full_name.split()).lower() == name]
        if len(matches) == 1:
            return matches[0].email
    return None


class Notifier:
    def __init__(
        self,
        store,
        inbox: Optional[Inbox] = None,
        builtin_admin: str = app_settings.BUILTIN_ADMIN_EMAIL,
        new_id: IdFactory = create_id,
    ) -> None:
        self.store = store
        self.inbox = inbox or Inbox(store)
        self.builtin_admin = builtin_admin
        self.new_id = new_id

    def push(
        self,
        recipient: Recipient,
        title: str,
        message: str,
        link: Optional[str] = None,
        tag: Optional[str] = None,
        created_at=None,
    ) -> bool:
        notification = AppNotification(
            id=self.new_id("notif"),
            title=title,
            message=message,
            created_at=created_at or self.store.clock(),
            read=False,
            link=link,
            tag=tag,
        )
        try:
            return self.inbox.append(recipient.inbox, notification)
        except OSError:
            logger.exception(
                "Failed to deliver notification",
                extra={"recipient": recipient.inbox.storage_key},
            )
            return False

    def send(
        self,
        target: NotificationTarget,
        title: str,
        message: str,
        target_email: Optional[str] = None,
        users: Optional[Sequence[AdminUserRecord]] = None,
    ) -> SentNotificationLog:
        """Fan a message out and return the log entry describing the send."""
        users = self.store.read_users() if users is None else users
        target = NotificationTarget(target)
        recipients = resolve_recipients(users, target, target_email, self.builtin_admin)
        sent_at = self.store.clock()
        for recipient in recipients:
            self.push(recipient, title.strip(), message.strip(), created_at=sent_at)
        logger.info("Notification sent", extra={"recipient_count": len(recipients)})
        if target != NotificationTarget.email:
            target_email = None
        return SentNotificationLog(
            id=self.new_id("sent"),
            target=target,
            title=title.strip(),
            message=message.strip(),
            target_email=(target_email or "").strip() or None,
            sent_at=sent_at,
            recipient_count=len(recipients),
        )

    def notify_user(
        self,
        email: Optional[str],
        title: str,
        message: str,
        link: Optional[str] = None,
        tag: Optional[str] = None,
    ) -> bool:
        if not email:
            return False
        return self.push(Recipient(Role.user, email), title, message, link, tag)

    def notify_admins(
        self, title: str, message: str, link: Optional[str] = None, tag: Optional[str] = None
    ) -> int:
        """Notify every admin account plus the built-in administrator.

        The send is recorded in the sent-notification log with target "admins".
        """
        emails = [self.builtin_admin]
        for user in self.store.read_users():
            if user.role == Role.admin and user.email not in emails:
                emails.append(user.email)
        sent_at = self.store.clock()
        for email in emails:
            self.push(
                Recipient(Role.admin, email),
                title,
                message,
                link,
                f"{tag}-{email}" if tag else None,
                created_at=sent_at,
            )
        self.store.append_sent_notification(
            SentNotificationLog(
                id=self.new_id("sent-auto"),
                target=NotificationTarget.admins,
                title=title,
                message=message,
                sent_at=sent_at,
                recipient_count=len(emails),
            )
        )
        return len(emails)

    def notify_appointment_status_changed(
        self,
        appointment: AdminAppointmentRecord,
        users: Optional[Sequence[AdminUserRecord]] = None,
    ) -> bool:
        users = self.store.read_users() if users is None else users
        email = resolve_appointment_recipient(appointment, users)
        if email is None:
            logger.info(
                "No recipient for appointment status change",
                extra={"appointment_id": appointment.id},
            )
            return False
        reason = appointment.status_reason or ""
        message = (
            f"Appointment {appointment.appointment_code} is "
            f"{STATUS_LABELS[AppointmentStatus(appointment.status)]}."
        )
        if reason:
            message += f" Reason: {reason}"
        return self.notify_user(
            email,
            "Appointment status updated",
            message,
            link="/dashboard",
            tag=f"appointment-status-{appointment.id}-{AppointmentStatus(appointment.status).value}-{reason}",
        )

    def notify_appointment_created(self, appointment: AdminAppointmentRecord) -> None:
        when = f"{appointment.date.isoformat()}, {appointment.interval}"
        self.notify_user(
            appointment.user_email,
            "Appointment registered",
            f"Appointment {appointment.appointment_code} for {when} has been submitted.",
            link="/dashboard",
            tag=f"appointment-created-{appointment.appointment_code}",
        )
        self.notify_admins(
            "New appointment",
            f"New request {appointment.appointment_code} ({when}).",
            link="/admin/appointments",
            tag=f"admin-appointment-created-{appointment.appointment_code}",
        )

    def notify_appointment_rescheduled(
        self, appointment: AdminAppointmentRecord, notify_admins: bool = False
    ) -> None:
        when = f"{appointment.date.isoformat()}, {appointment.interval}"
        self.notify_user(
            appointment.user_email,
            "Appointment rescheduled",
            f"Appointment {appointment.appointment_code} was moved to {when}.",
            link="/dashboard",
            tag=f"reschedule-{appointment.previous_appointment_id}-{appointment.id}",
        )
        if notify_admins:
            self.notify_admins(
                "Appointment rescheduled",
                f"{appointment.full_name} moved {appointment.appointment_code} to {when}.",
                link="/admin/appointments",
                tag=f"admin-reschedule-{appointment.id}",
            )

    def notify_quiz_completed(
        self, email: Optional[str], category_title: str, score: float, passed: bool
    ) -> bool:
        stamp = int(self.store.clock().timestamp() * 1000)
        return self.notify_user(
            email,
            "Test passed" if passed else "Test completed",
            f"{category_title}: {score:g}%{' (passed)' if passed else ''}.",
            link="/tests",
            tag=f"quiz-{category_title}-{score:g}-{stamp}",
        )
