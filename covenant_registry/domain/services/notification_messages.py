"""Plain-text rendering of notification messages.

Pure functions: each returns a ``(subject, body)`` pair. Copy is kept
deliberately minimal; delivery and triggering live in the dispatcher.
"""

from __future__ import annotations

from datetime import datetime

from covenant_registry.domain.models.notification import UrgencyLevel
from covenant_registry.domain.models.witness import Witness

CRITICAL_COUNTDOWN_DAYS = 7
WARNING_COUNTDOWN_DAYS = 14


def countdown_urgency(days_remaining: int) -> UrgencyLevel:
    if days_remaining <= CRITICAL_COUNTDOWN_DAYS:
        return UrgencyLevel.CRITICAL
    if days_remaining <= WARNING_COUNTDOWN_DAYS:
        return UrgencyLevel.WARNING
    return UrgencyLevel.INFO


def _greeting(name: str | None) -> str:
    return f"Hello {name}," if name else "Hello witness,"


def render_welcome(witness: Witness, dashboard_url: str) -> tuple[str, str]:
    subject = f"Welcome, Covenant Witness #{witness.sequence_number}"
    body = (
        f"{_greeting(witness.display_name)}\n\n"
        f"Your registration for {witness.identifier} was accepted. "
        f"You are witness #{witness.sequence_number}.\n\n"
        f"Follow the launch at {dashboard_url}"
    )
    return subject, body


def render_milestone(threshold: int, population: int, message: str) -> tuple[str, str]:
    subject = f"Covenant Milestone: {message}"
    body = (
        f"{message}.\n\n"
        f"The registry crossed {threshold} witnesses "
        f"(current population {population})."
    )
    return subject, body


def render_emergency(
    urgency: UrgencyLevel,
    subject: str,
    message: str,
    action_required: str | None = None,
    deadline: datetime | None = None,
) -> tuple[str, str]:
    lines = [f"[{urgency.value.upper()}] {message}"]
    if action_required:
        lines.append(f"Action required: {action_required}")
    if deadline is not None:
        lines.append(f"Deadline: {deadline.isoformat()}")
    return f"COVENANT ALERT: {subject}", "\n\n".join(lines)


def render_countdown(days_remaining: int, deadline: datetime) -> tuple[str, str]:
    if days_remaining == 1:
        subject = "TOMORROW: The Covenant Begins"
    else:
        subject = f"{days_remaining} Days Until Covenant Launch"
    body = (
        f"The covenant launches on {deadline.date().isoformat()}. "
        f"{days_remaining} day(s) remaining."
    )
    return subject, body


def render_daily_auction(day: int, title: str, end_time: datetime) -> tuple[str, str]:
    subject = f"Day {day}: {title} - Auction Live"
    body = f"Today's auction '{title}' is live until {end_time.isoformat()}."
    return subject, body
