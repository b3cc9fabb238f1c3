"""Store error taxonomy."""


class StoreError(Exception):
    """Base class for every error raised by the stores."""


class CorruptDataError(StoreError):
    """A stored or imported document is unparseable or structurally invalid."""


class NotFoundError(StoreError):
    """The referenced entity does not exist."""


class QuotaExceededError(StoreError):
    """A write would exceed the synced partition quota."""


class SchedulerUnavailableError(StoreError):
    """The background scheduler did not acknowledge a request."""


class ValidationError(StoreError, ValueError):
    """Input refused before any write; message is meant for the user."""


class DuplicateNameError(ValidationError):
    pass


class ShortcutConflictError(ValidationError):
    pass


class LastCategoryError(ValidationError):
    pass


class MissingDateTimeError(ValidationError):
    pass


class PastDateTimeError(ValidationError):
    pass


class InvalidSettingsError(ValidationError):
    pass
