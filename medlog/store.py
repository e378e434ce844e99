"""
Local persistence for the four MedLog collections.

Each collection lives under its own key (``<prefix>_meds``, ``<prefix>_logs``,
``<prefix>_dependents``, ``<prefix>_profile``) as JSON text. Reads never fail:
a missing or unreadable entry falls back to that collection's default while
the other collections load normally.
"""
import json
import logging
import os
from typing import List

from pydantic import TypeAdapter, ValidationError

from . import crud
from .database import make_session_factory
from .schemas import Dependent, IntakeLog, Medication, UserProfile
from .state import AppState

logger = logging.getLogger(__name__)

STORAGE_KEY = os.getenv("MEDLOG_STORAGE_KEY", "medlog_pro_data_v1")

KEY_SUFFIXES = {
    "medications": "_meds",
    "logs": "_logs",
    "dependents": "_dependents",
    "profile": "_profile",
}

_ADAPTERS = {
    "medications": TypeAdapter(List[Medication]),
    "logs": TypeAdapter(List[IntakeLog]),
    "dependents": TypeAdapter(List[Dependent]),
    "profile": TypeAdapter(UserProfile),
}


def default_for(name: str):
    if name == "profile":
        return UserProfile()
    return []


class LocalStore:
    def __init__(self, session_factory=None, prefix: str = STORAGE_KEY):
        self.session_factory = session_factory or make_session_factory()
        self.prefix = prefix

    def key_for(self, name: str) -> str:
        return f"{self.prefix}{KEY_SUFFIXES[name]}"

    def read(self, name: str):
        with self.session_factory() as db:
            raw = crud.get_entry(db, self.key_for(name))
        if raw is None:
            return default_for(name)
        try:
            return _ADAPTERS[name].validate_json(raw)
        except ValidationError as e:
            logger.warning("Stored %s is unreadable, using defaults: %s", name, e.errors()[:1])
            return default_for(name)

    def load(self) -> AppState:
        return AppState(**{name: self.read(name) for name in KEY_SUFFIXES})

    def save(self, name: str, value):
        if isinstance(value, list):
            payload = [item.to_storage() for item in value]
        else:
            payload = value.to_storage()
        with self.session_factory() as db:
            crud.put_entry(db, self.key_for(name), json.dumps(payload))
        logger.debug("Saved %s", name)

    def reset(self):
        """Drop all four keys in a single transaction."""
        with self.session_factory() as db:
            deleted = crud.delete_entries(db, [self.key_for(name) for name in KEY_SUFFIXES])
        logger.info("Cleared %d stored collections", deleted)
