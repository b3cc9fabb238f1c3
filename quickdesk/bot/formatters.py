"""Message text formatters."""

from datetime import datetime
from html import escape

from quickdesk.db.models import Document, GreetingsAndClosings, Reminder, Suggestion
from quickdesk.storage.reminder_store import ReminderGroups
from quickdesk.utils.time_utils import format_relative_time, from_ms, utc_now

PRIORITY_EMOJI = {
    "low": "🔵",
    "medium": "🔔",
    "high": "🚨",
}

RECURRENCE_TEXT = {
    "daily": "Every day",
    "weekly": "Every week",
    "monthly": "Every month",
}


def format_reminder(reminder: Reminder, now: datetime | None = None) -> str:
    """Format a reminder as a message."""
    if now is None:
        now = utc_now()

    lines = [f"<b>{escape(reminder.title)}</b>"]

    due_str = reminder.date_time.strftime("%b %d, %Y at %H:%M UTC")
    relative = format_relative_time(reminder.date_time, now)
    lines.append(f"📅 {due_str} ({relative})")

    if reminder.recurrence in RECURRENCE_TEXT:
        lines.append(f"🔁 {RECURRENCE_TEXT[reminder.recurrence]}")

    if reminder.snooze_count:
        lines.append(f"⏸ Snoozed {reminder.snooze_count}x")

    if reminder.description:
        lines.append(f"\n{escape(reminder.description)}")

    return "\n".join(lines)


def format_notification(reminder: Reminder) -> str:
    """Format the message sent when a reminder fires."""
    emoji = PRIORITY_EMOJI.get(reminder.priority, "🔔")
    header = f"{emoji} <b>Reminder</b>\n\n"
    body = f"<b>{escape(reminder.title)}</b>"
    if reminder.description:
        body += f"\n\n{escape(reminder.description)}"
    return header + body


def format_reminder_groups(groups: ReminderGroups, now: datetime | None = None) -> str:
    """Format reminders the way the panel lists them: pending, active, acknowledged."""
    if now is None:
        now = utc_now()

    if not (groups.pending or groups.active or groups.acknowledged):
        return "You have no reminders."

    sections = []

    if groups.pending:
        lines = [f"<b>🔔 Pending ({len(groups.pending)})</b>"]
        for r in groups.pending:
            fired = from_ms(r.fired_at).strftime("%b %d %H:%M") if r.fired_at else "?"
            lines.append(f"• {escape(r.title)} (fired {fired})")
        sections.append("\n".join(lines))

    if groups.active:
        lines = [f"<b>📅 Scheduled ({len(groups.active)})</b>"]
        for r in groups.active:
            lines.append(
                f"• {escape(r.title)} - {r.date_time.strftime('%b %d %H:%M')} "
                f"({format_relative_time(r.date_time, now)})"
            )
        sections.append("\n".join(lines))

    if groups.acknowledged:
        lines = [f"<b>✓ Completed ({len(groups.acknowledged)})</b>"]
        for r in groups.acknowledged:
            lines.append(f"• <s>{escape(r.title)}</s>")
        sections.append("\n".join(lines))

    return "\n\n".join(sections)


def format_import_summary(count: int, document: Document) -> str:
    if count == 0:
        return "Nothing to import."
    return (
        f"✓ Imported {count} message{'s' if count != 1 else ''}.\n"
        f"You now have {len(document.messages)} messages in "
        f"{len(document.categories)} categories."
    )


def format_template_summary(document: Document) -> str:
    lines = [f"<b>Templates ({len(document.messages)})</b>\n"]
    for category in document.categories:
        count = len(document.messages_in(category.id))
        shortcut = f" [{escape(category.shortcut)}]" if category.shortcut else ""
        lines.append(f"📁 {escape(category.name)}{shortcut}: {count}")
    return "\n".join(lines)


def format_greetings(data: GreetingsAndClosings) -> str:
    """Both snippet lists, the default of each marked with a star."""
    sections = []
    for heading, items, default_id in (
        ("Greetings", data.greetings, data.default_greeting_id),
        ("Closings", data.closings, data.default_closing_id),
    ):
        lines = [f"<b>{heading} ({len(items)})</b>"]
        for snippet in items:
            star = "⭐ " if snippet.id == default_id else ""
            lines.append(f"• {star}{escape(snippet.title)}")
        sections.append("\n".join(lines))
    return "\n\n".join(sections)


def format_suggestion(suggestion: Suggestion) -> str:
    preview = suggestion.content[:200]
    if len(suggestion.content) > 200:
        preview += "…"
    return (
        f"💡 <b>Template suggestion</b>\n\n"
        f"You have typed this {suggestion.count} times:\n\n"
        f"<i>{escape(preview)}</i>"
    )


def format_help_message() -> str:
    """Format the help message."""
    return """
<b>QuickDesk Commands</b>

<b>Reminders:</b>
/reminders - Pending, scheduled and completed reminders
/remind &lt;ISO date&gt; &lt;title&gt; - New reminder: <code>/remind 2024-03-01T09:00 Send report</code>

<b>Templates:</b>
/templates - Categories and message counts
/export - Download all templates as JSON
/greetings - Greeting and closing snippets
Send a <code>.json</code> export file to import its messages

<b>Tips:</b>
• When a reminder fires, use the buttons to complete, snooze or dismiss it
• Recurring reminders roll forward to the next occurrence when completed
• Completed reminders are kept for the retention period, then removed
""".strip()
