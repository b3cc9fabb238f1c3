"""Constants and default values."""

from dataclasses import dataclass

# Storage keys
STORAGE_KEY = "quickMessagesData"
SETTINGS_STORAGE_KEY = "extensionSettingsData"
REMINDERS_STORAGE_KEY = "remindersData"
NOTES_STORAGE_KEY = "editorNotesData"
USAGE_TRACKING_KEY = "usageTrackingData"
SUGGESTED_TEMPLATES_KEY = "suggestedTramites"
GREETINGS_CLOSINGS_KEY = "greetingsClosingsData"

# Synced partition quota (bytes)
SYNC_QUOTA_BYTES = 102_400
SYNC_QUOTA_BYTES_PER_ITEM = 8_192

# Template document
DATA_VERSION = 3
NOTES_VERSION = 2

# Seeded for a fresh installation: (name, shortcut)
DEFAULT_CATEGORIES = [
    ("General", "alt+0"),
    ("Payroll", "alt+1"),
    ("Onvio", "alt+3"),
    ("Standard Procedures", "alt+8"),
]
MIGRATED_CATEGORY_NAME = "General (Migrated)"
UNNAMED_CATEGORY = "Unnamed Category"
UNTITLED_MESSAGE = "Untitled"
IMPORTED_MESSAGE_TITLE = "Imported Message"

# Browser/OS combinations a category shortcut may never take over
PROTECTED_SHORTCUTS = frozenset(
    [
        "ctrl+c", "ctrl+v", "ctrl+x", "ctrl+a", "ctrl+z", "ctrl+y",
        "ctrl+s", "ctrl+p", "ctrl+f", "ctrl+g", "ctrl+h", "ctrl+j",
        "ctrl+k", "ctrl+l", "ctrl+n", "ctrl+o", "ctrl+r", "ctrl+t",
        "ctrl+w", "ctrl+u",
        "ctrl+shift+t", "ctrl+shift+n", "ctrl+shift+w",
        "ctrl+shift+i", "ctrl+shift+j", "ctrl+shift+c",
        "alt+f4", "alt+tab",
        "f1", "f5", "f11", "f12",
    ]
)

# Reminders
RECURRENCES = ("none", "daily", "weekly", "monthly")
PRIORITIES = ("low", "medium", "high")
DEFAULT_PRIORITY = "medium"
MIN_LEAD_TIME_MS = 1000  # a reminder must be at least this far in the future
MISSED_ALARM_GRACE_MS = 5 * 60 * 1000
DAY_MS = 24 * 60 * 60 * 1000


@dataclass
class SnoozePreset:
    """A one-tap snooze choice offered on a notification."""

    key: str
    label: str
    minutes: int | None = None  # None means "tomorrow at TOMORROW_HOUR"


SNOOZE_PRESETS = [
    SnoozePreset("15m", "15 minutes", 15),
    SnoozePreset("1h", "1 hour", 60),
    SnoozePreset("tomorrow", "Tomorrow (9:00)"),
]
TOMORROW_HOUR = 9

# Settings
RETENTION_MIN_DAYS = 1
RETENTION_MAX_DAYS = 30
THEMES = [
    "padrao",
    "serenidade",
    "lumen",
    "pink",
    "forest",
    "dark-graphite",
    "dark",
    "tokyo-night",
]
DEFAULT_THEME = "padrao"
LEGACY_THEME_ALIASES = {"light": "padrao"}

DEFAULT_SETTINGS = {
    "reminderRetentionDays": 7,
    "editorTheme": DEFAULT_THEME,
    "previewResizable": False,
    "fabPosition": "bottom-left",
    "toolbarButtons": {
        "link": True,
        "emoji": True,
        "username": True,
        "color": True,
        "highlight": True,
        "lists": True,
        "bullet": True,
        "reminders": True,
        "quickSteps": True,
        "notes": True,
        "fab": True,
        "goToTop": True,
    },
    "uiSettings": {
        "iconSize": 1.0,
        "uiFontSize": 14,
        "editorFontSize": 14,
    },
}
NESTED_SETTINGS = ("toolbarButtons", "uiSettings")

# Notes
DEFAULT_NOTE_TITLE = "General Notes"
MIGRATED_NOTE_TITLE = "Old Notes (Migrated)"

# Greetings and closings
SNIPPET_KINDS = ("greetings", "closings")
STARTER_GREETINGS = [
    ("Simple", "[greeting], [user]! How are you? I hope all is well! 😄"),
    (
        "Contact and access",
        "[greeting], [user]! How are you? I hope all is well! 😉\n\n"
        "Following our phone call and the remote connection to your machine, ",
    ),
    (
        "Thanks",
        "[greeting], [user]! How are you?\n\n"
        "Thank you for sending the information and files.\n"
        "I am already looking into your case and will get back to you soon. 👍",
    ),
]
STARTER_CLOSINGS = [
    (
        "Simple",
        "If you have any questions about this request, I am here to help!\n\n"
        "We remain at your disposal.\n[closing]! 👋",
    ),
    ("Awaiting reply", "I look forward to your reply.\n[closing]! 😊"),
    (
        "Happy to help",
        "Happy to help! If there is nothing else, please rate this request "
        "by marking it as 'Resolved'.\nYour feedback matters to us.\n\n[closing]! ✨",
    ),
]

# Suggestions
SUGGESTION_THRESHOLD = 5
MIN_SUGGESTION_LENGTH = 100
