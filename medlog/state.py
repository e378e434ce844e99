import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List

from .notifications import Notifier, ReminderPreferences, ResetConfirmation
from .schemas import Dependent, IntakeLog, Medication, UserProfile

if TYPE_CHECKING:
    from .store import LocalStore


@dataclass
class AppState:
    """Everything the app persists. Owned by the entry point, never global."""

    medications: List[Medication] = field(default_factory=list)
    logs: List[IntakeLog] = field(default_factory=list)
    dependents: List[Dependent] = field(default_factory=list)
    profile: UserProfile = field(default_factory=UserProfile)

    def find_medication(self, medication_id):
        return next((m for m in self.medications if m.id == medication_id), None)

    def has_dependent(self, dependent_id) -> bool:
        return any(d.id == dependent_id for d in self.dependents)


@dataclass
class AppContext:
    """State plus the collaborators every mutation needs."""

    state: AppState
    store: "LocalStore"
    notifier: Notifier = field(default_factory=Notifier)
    reset_confirmation: ResetConfirmation = field(default_factory=ResetConfirmation)
    preferences: ReminderPreferences = field(default_factory=ReminderPreferences)
    lock: threading.RLock = field(default_factory=threading.RLock)

    def persist(self, *names):
        for name in names:
            self.store.save(name, getattr(self.state, name))

