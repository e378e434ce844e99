import os
import sys
from pathlib import Path

import pytest

# Keep the module-level app in medlog.main off the real database file
os.environ.setdefault("MEDLOG_DATABASE_URL", "sqlite://")

# Ensure repository root is on sys.path so tests can import local modules
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from medlog.database import make_session_factory  # noqa: E402
from medlog.notifications import Notifier, ResetConfirmation  # noqa: E402
from medlog.schemas import UserProfile  # noqa: E402
from medlog.state import AppContext  # noqa: E402
from medlog.store import LocalStore  # noqa: E402


class ManualScheduler:
    """Collects delayed callbacks so tests decide when timers fire."""

    def __init__(self):
        self.pending = []

    def __call__(self, delay, callback):
        self.pending.append((delay, callback))

    def fire_all(self):
        pending, self.pending = self.pending, []
        return [callback() for _, callback in pending]


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def store():
    return LocalStore(make_session_factory("sqlite://"))


@pytest.fixture
def ctx(store, scheduler):
    return AppContext(
        state=store.load(),
        store=store,
        notifier=Notifier(scheduler=scheduler),
        reset_confirmation=ResetConfirmation(scheduler=scheduler),
    )


@pytest.fixture
def ready_ctx(ctx):
    """Context whose profile is set up, so medications can be created."""
    ctx.state.profile = UserProfile(name="Sophia Bennett")
    ctx.persist("profile")
    return ctx
