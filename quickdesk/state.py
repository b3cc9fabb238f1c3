"""Application state shared by handlers and jobs (kept in ``bot_data["state"]``)."""

from dataclasses import dataclass

from quickdesk.db.kv_store import KeyValueStore
from quickdesk.db.models import Reminder
from quickdesk.engine.protocol import SchedulerClient
from quickdesk.engine.scheduler import Notifier, Scheduler
from quickdesk.engine.suggestions import SuggestionEngine
from quickdesk.storage.greetings_store import GreetingsStore
from quickdesk.storage.notes_store import NotesStore
from quickdesk.storage.reminder_store import ReminderStore
from quickdesk.storage.settings_store import SettingsStore
from quickdesk.storage.template_store import TemplateStore
from quickdesk.utils.constants import DEFAULT_THEME


@dataclass
class AppState:
    kv: KeyValueStore
    templates: TemplateStore
    settings: SettingsStore
    reminders: ReminderStore
    notes: NotesStore
    greetings: GreetingsStore
    suggestions: SuggestionEngine
    scheduler: Scheduler
    notifier: Notifier
    theme: str = DEFAULT_THEME

    async def load_theme(self) -> str:
        self.theme = await self.settings.load_theme()
        return self.theme

    async def heartbeat(self) -> list[Reminder]:
        return await self.scheduler.heartbeat(self.reminders, self.notifier)


def build_state(kv: KeyValueStore, notifier: Notifier) -> AppState:
    """Wire the stores to one connection and the scheduler to its client."""
    scheduler = Scheduler(kv)
    settings = SettingsStore(kv)
    templates = TemplateStore(kv)

    return AppState(
        kv=kv,
        templates=templates,
        settings=settings,
        reminders=ReminderStore(kv, SchedulerClient(scheduler.handle_message), settings),
        notes=NotesStore(kv),
        greetings=GreetingsStore(kv),
        suggestions=SuggestionEngine(kv, templates),
        scheduler=scheduler,
        notifier=notifier,
    )
