from enum import Enum
from typing import Iterable, List, Optional

from .schemas import SELF_SCOPE, Dependent, IntakeLog, Medication, UserProfile


class TimeOfDay(str, Enum):
    ALL = "All"
    MORNING = "Morning"
    AFTERNOON = "Afternoon"


def _in_scope(dependent_id: Optional[str], scope: str) -> bool:
    if scope == SELF_SCOPE:
        return not dependent_id
    return dependent_id == scope


def scope_medications(medications: Iterable[Medication], scope: str = SELF_SCOPE) -> List[Medication]:
    return [m for m in medications if _in_scope(m.dependent_id, scope)]


def scope_logs(logs: Iterable[IntakeLog], scope: str = SELF_SCOPE) -> List[IntakeLog]:
    return [l for l in logs if _in_scope(l.dependent_id, scope)]


def search_medications(
    medications: Iterable[Medication],
    term: str = "",
    time_filter: TimeOfDay = TimeOfDay.ALL,
) -> List[Medication]:
    """Name/category search plus the AM/PM quick filter of the medication list."""
    needle = (term or "").lower()
    marker = {TimeOfDay.MORNING: "AM", TimeOfDay.AFTERNOON: "PM"}.get(TimeOfDay(time_filter))
    result = []
    for med in medications:
        if needle not in med.name.lower() and needle not in med.category.lower():
            continue
        if marker and not any(marker in t for t in med.scheduled_times):
            continue
        result.append(med)
    return result


def person_label(profile: UserProfile) -> str:
    return profile.name.strip() or "Me"


def available_scopes(profile: UserProfile, dependents: Iterable[Dependent]):
    """Selectable person tabs as ``(scope, label)`` pairs, self first.

    Records owned by a dependent who has since been removed stay stored but no
    tab reaches them.
    """
    return [(SELF_SCOPE, person_label(profile))] + [(d.id, d.name) for d in dependents]
