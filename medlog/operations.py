"""
Every change to the application state goes through these functions.

Each one takes the ``AppContext`` explicitly, updates the in-memory
collections, saves the touched collection straight away and reports the
outcome through the toast. Validation problems abort without mutating
anything; ids that no longer resolve are ignored.
"""
import logging
import uuid
from datetime import datetime
from typing import List, Optional

from .derived import interval_label, suggested_times
from .schemas import (
    SELF_SCOPE,
    Dependent,
    DosageForm,
    IntakeLog,
    IntakeStatus,
    Medication,
    MedicationIn,
    MedicationStatus,
    UserProfile,
    default_unit_for,
    unit_for_form,
)
from .state import AppContext, AppState

logger = logging.getLogger(__name__)

TIME_FORMAT = "%I:%M %p"


def new_id() -> str:
    return uuid.uuid4().hex[:9]


def _resolve_dependent(ctx: AppContext, dependent_id: Optional[str]):
    """Returns ``(ok, normalized_id)``."""
    if not dependent_id or dependent_id == SELF_SCOPE:
        return True, None
    if not ctx.state.has_dependent(dependent_id):
        return False, None
    return True, dependent_id


# ----------------------------
# Medications
# ----------------------------
def add_or_update_medication(ctx: AppContext, data: MedicationIn) -> Optional[Medication]:
    with ctx.lock:
        name = (data.name or "").strip()
        if not name:
            ctx.notifier.show_toast("Error", "Medication name is required")
            return None

        ok, dependent_id = _resolve_dependent(ctx, data.dependent_id)
        if not ok:
            ctx.notifier.show_toast("Error", "Unknown family member")
            return None

        if data.id:
            return _update_medication(ctx, data, name, dependent_id)
        return _create_medication(ctx, data, name, dependent_id)


def _update_medication(ctx: AppContext, data: MedicationIn, name: str, dependent_id) -> Optional[Medication]:
    existing = ctx.state.find_medication(data.id)
    if existing is None:
        logger.debug("Edit of unknown medication %s ignored", data.id)
        return None

    form = data.form or existing.form
    form_changed = data.form is not None and data.form != existing.form
    if data.dosage_unit and (data.dosage_unit != existing.dosage_unit or not form_changed):
        unit = data.dosage_unit
    elif form_changed:
        # unit left as it was, so the new form picks it
        unit = unit_for_form(form, existing.dosage_unit)
    else:
        unit = existing.dosage_unit

    updated = existing.model_copy(
        update={
            "name": name,
            "dosage": data.dosage or existing.dosage,
            "dosage_unit": unit,
            "form": form,
            "category": data.category or existing.category,
            "frequency": data.frequency or existing.frequency,
            "scheduled_times": data.scheduled_times or existing.scheduled_times,
            "dependent_id": dependent_id,
        }
    )
    ctx.state.medications = [updated if m.id == existing.id else m for m in ctx.state.medications]
    ctx.persist("medications")
    logger.info("Updated medication %s", updated.id)
    ctx.notifier.show_toast("Updated", f"{name} changes saved")
    return updated


def _create_medication(ctx: AppContext, data: MedicationIn, name: str, dependent_id) -> Optional[Medication]:
    if not ctx.state.profile.is_complete:
        ctx.notifier.show_toast("Profile Required", "Please set up your name first")
        return None

    form = data.form or DosageForm.TABLET
    frequency = data.frequency or 1
    times = data.scheduled_times or suggested_times(frequency)
    medication = Medication(
        id=new_id(),
        name=name,
        dosage=data.dosage or "10",
        dosage_unit=data.dosage_unit or default_unit_for(form),
        form=form,
        category=data.category or "GENERAL",
        frequency=frequency,
        interval=interval_label(frequency),
        scheduled_times=times,
        next_dose=times[0],
        status=MedicationStatus.ACTIVE,
        dependent_id=dependent_id,
    )
    ctx.state.medications = [medication] + ctx.state.medications
    ctx.persist("medications")
    logger.info("Added medication %s", medication.id)
    ctx.notifier.show_toast("Success", f"{name} added to schedule")
    return medication


def delete_medication(ctx: AppContext, medication_id: str) -> Optional[Medication]:
    with ctx.lock:
        medication = ctx.state.find_medication(medication_id)
        if medication is None:
            logger.debug("Delete of unknown medication %s ignored", medication_id)
            return None
        ctx.state.medications = [m for m in ctx.state.medications if m.id != medication_id]
        ctx.persist("medications")
        logger.info("Deleted medication %s", medication_id)
        ctx.notifier.show_toast("Deleted", f"{medication.name} removed")
        return medication


def record_dose_taken(
    ctx: AppContext,
    medication_id: str,
    day: str,
    now: Optional[datetime] = None,
) -> Optional[IntakeLog]:
    """Log one confirmed dose. Extra doses beyond the frequency are still logged."""
    with ctx.lock:
        medication = ctx.state.find_medication(medication_id)
        if medication is None:
            logger.debug("Dose for unknown medication %s ignored", medication_id)
            return None

        now = now or datetime.now()
        time_str = now.strftime(TIME_FORMAT)
        log = IntakeLog(
            id=new_id(),
            medication_id=medication.id,
            medication_name=medication.name,
            time=time_str,
            date=day,
            status=IntakeStatus.CONFIRMED,
            dependent_id=medication.dependent_id,
        )
        ctx.state.logs = [log] + ctx.state.logs
        ctx.persist("logs")

        if day == now.date().isoformat():
            ctx.state.medications = [
                m.model_copy(update={"last_taken": f"{time_str} today"}) if m.id == medication.id else m
                for m in ctx.state.medications
            ]
            ctx.persist("medications")

        ctx.notifier.show_toast("Dose Logged", f"Recorded {medication.name} at {time_str}")
        return log


# ----------------------------
# Profile & family
# ----------------------------
def new_dependent(name: str, relationship: str = "Family") -> Optional[Dependent]:
    name = (name or "").strip()
    if not name:
        return None
    return Dependent(id=new_id(), name=name, relationship=relationship or "Family")


def _assign_ids(dependents: List[Dependent]) -> List[Dependent]:
    """New family members arrive without an id; unnamed ones are dropped."""
    result = []
    for dep in dependents:
        if not dep.id:
            dep = new_dependent(dep.name, dep.relationship)
        if dep is not None:
            result.append(dep)
    return result


def save_profile(
    ctx: AppContext,
    profile: UserProfile,
    dependents: Optional[List[Dependent]] = None,
) -> bool:
    with ctx.lock:
        if not profile.is_complete:
            ctx.notifier.show_toast("Error", "Please enter your name to continue.")
            return False
        ctx.state.profile = profile
        ctx.persist("profile")
        if dependents is not None:
            # removed dependents keep their medications and logs in storage
            ctx.state.dependents = _assign_ids(dependents)
            ctx.persist("dependents")
        ctx.notifier.show_toast("Profile Updated", "Information saved successfully")
        return True


def reset_all(ctx: AppContext) -> AppState:
    with ctx.lock:
        ctx.store.reset()
        fresh = AppState()
        ctx.state.medications = fresh.medications
        ctx.state.logs = fresh.logs
        ctx.state.dependents = fresh.dependents
        ctx.state.profile = fresh.profile
        logger.info("All data reset")
        ctx.notifier.show_toast("App Reset", "All your data has been permanently cleared.")
        return ctx.state
