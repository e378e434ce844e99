"""
Transient UI state: the toast, the simulated push banner, the reset
double-confirm and the reminder preferences.

Auto-dismiss timers carry the generation token that was current when they
were started. A timer that fires after newer state replaced it finds a
different token and does nothing.
"""
import logging
import threading
from typing import Callable, Optional

from pydantic import field_validator

from .schemas import CamelModel

logger = logging.getLogger(__name__)

TOAST_SECONDS = 3.0
PUSH_SECONDS = 10.0
RESET_CONFIRM_SECONDS = 5.0

NOTIFICATION_SOUNDS = ["chime", "pulsar", "nature", "staccato", "gentle"]
SNOOZE_OPTIONS = ["5 mins", "10 mins", "15 mins", "30 mins", "1 hour"]

Scheduler = Callable[[float, Callable[[], None]], None]


def thread_scheduler(delay: float, callback: Callable[[], None]):
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()


class Toast(CamelModel):
    message: str
    sub: str
    token: int


class PushBanner(CamelModel):
    title: str
    body: str
    token: int


class ReminderPreferences(CamelModel):
    push_enabled: bool = True
    critical_enabled: bool = True
    sound: str = "chime"
    snooze: str = "10 mins"

    @field_validator("sound")
    @classmethod
    def known_sound(cls, v):
        if v not in NOTIFICATION_SOUNDS:
            raise ValueError(f"unknown sound {v!r}")
        return v

    @field_validator("snooze")
    @classmethod
    def known_snooze(cls, v):
        if v not in SNOOZE_OPTIONS:
            raise ValueError(f"unknown snooze option {v!r}")
        return v


class Notifier:
    def __init__(self, scheduler: Optional[Scheduler] = thread_scheduler):
        self.scheduler = scheduler
        self.toast: Optional[Toast] = None
        self.push: Optional[PushBanner] = None
        self.last_shown: Optional[Toast] = None
        self._generation = 0
        self._lock = threading.Lock()

    def _next_token(self) -> int:
        self._generation += 1
        return self._generation

    def show_toast(self, message: str, sub: str) -> Toast:
        with self._lock:
            toast = Toast(message=message, sub=sub, token=self._next_token())
            self.toast = toast
            self.last_shown = toast
        logger.info("Toast: %s - %s", message, sub)
        if self.scheduler:
            self.scheduler(TOAST_SECONDS, lambda: self.dismiss_toast(toast.token))
        return toast

    def dismiss_toast(self, token: int) -> bool:
        with self._lock:
            if self.toast is None or self.toast.token != token:
                return False
            self.toast = None
            return True

    def trigger_push(self, title: str, body: str) -> PushBanner:
        with self._lock:
            banner = PushBanner(title=title, body=body, token=self._next_token())
            self.push = banner
        logger.info("Push banner: %s", title)
        if self.scheduler:
            self.scheduler(PUSH_SECONDS, lambda: self.dismiss_push(banner.token))
        return banner

    def dismiss_push(self, token: int) -> bool:
        with self._lock:
            if self.push is None or self.push.token != token:
                return False
            self.push = None
            return True

    @property
    def generation(self) -> int:
        return self._generation

    def toast_since(self, generation: int) -> Optional[Toast]:
        """The latest toast, if it was raised after ``generation``."""
        with self._lock:
            toast = self.last_shown
        if toast is not None and toast.token > generation:
            return toast
        return None


class ResetConfirmation:
    """Two presses within the window confirm a reset; one press just arms it."""

    def __init__(self, scheduler: Optional[Scheduler] = thread_scheduler):
        self.scheduler = scheduler
        self.confirming = False
        self._generation = 0
        self._lock = threading.Lock()

    def press(self) -> bool:
        """Returns True when this press confirms the reset."""
        with self._lock:
            if self.confirming:
                self.confirming = False
                self._generation += 1
                return True
            self.confirming = True
            self._generation += 1
            token = self._generation
        if self.scheduler:
            self.scheduler(RESET_CONFIRM_SECONDS, lambda: self.expire(token))
        return False

    def expire(self, token: int) -> bool:
        with self._lock:
            if not self.confirming or token != self._generation:
                return False
            self.confirming = False
            return True


def send_test_reminder(notifier: Notifier, preferences: ReminderPreferences, medication_name: str):
    if not preferences.push_enabled:
        return None
    return notifier.trigger_push(
        f"Time for {medication_name}",
        f"It's time for your scheduled dose of {medication_name}. Please take 1 tablet with water.",
    )
