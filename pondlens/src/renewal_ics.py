"""iCalendar reminder for a Pond Pro renewal date."""

from __future__ import annotations

from datetime import date, datetime, timezone

PRODID = "-//Pond0x Community Tools//EN"


def _format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def build_renewal_ics(
    title: str,
    description: str,
    renewal_date: date,
    now: datetime | None = None,
) -> str:
    """Build a single-event VCALENDAR document.

    :param title: Event summary.
    :param description: Event description.
    :param renewal_date: All-day event date.
    :param now: Creation time (default: current UTC time).
    :returns: ICS text with CRLF line endings.
    """
    now = now or datetime.now(timezone.utc)
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{PRODID}",
        "BEGIN:VEVENT",
        f"UID:pondpro-renewal-{int(now.timestamp() * 1000)}@pond0x.tools",
        f"DTSTAMP:{_format_timestamp(now)}",
        f"DTSTART;VALUE=DATE:{renewal_date.strftime('%Y%m%d')}",
        f"SUMMARY:{title}",
        f"DESCRIPTION:{description}",
        "END:VEVENT",
        "END:VCALENDAR",
    ]
    return "\r\n".join(lines) + "\r\n"
