"""
Domain schemas for MedLog.

Every model serializes with camelCase keys (``dosageUnit``, ``scheduledTimes``,
``dependentId`` ...) so the stored JSON text keeps the layout the app has
always written. Python code uses the snake_case attribute names.
"""
from datetime import date as dt_date
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

SELF_SCOPE = "self"

DOSAGE_UNITS = ("mg", "ml", "mcg", "g", "pills", "drop", "IU")

BLOOD_TYPES = ("A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-", "Unknown")


class DosageForm(str, Enum):
    TABLET = "Tablet"
    CAPSULE = "Capsule"
    SOFTGEL = "Softgel"
    LIQUID = "Liquid"
    SYRINGE = "Syringe"


class MedicationStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class IntakeStatus(str, Enum):
    CONFIRMED = "Confirmed"
    MISSED = "Missed"
    LATE = "Late"


# Forms measured by volume; everything else defaults to milligrams.
FORM_DEFAULT_UNITS: Dict[DosageForm, str] = {
    DosageForm.LIQUID: "ml",
    DosageForm.SYRINGE: "ml",
}


def default_unit_for(form: DosageForm) -> str:
    return FORM_DEFAULT_UNITS.get(form, "mg")


def unit_for_form(form: DosageForm, current_unit: Optional[str] = None) -> str:
    """Unit to use after switching a medication to ``form``.

    Volume forms always take ``ml``. Solid forms keep the current unit unless it
    is still ``ml`` from a previous liquid form, in which case it reverts.
    """
    if form in FORM_DEFAULT_UNITS:
        return FORM_DEFAULT_UNITS[form]
    if not current_unit or current_unit == "ml":
        return default_unit_for(form)
    return current_unit


def normalize_unit(value: Optional[str]) -> Optional[str]:
    """Match a free-form unit to a known one, case-insensitively."""
    if not value:
        return None
    cleaned = value.strip()
    for unit in DOSAGE_UNITS:
        if cleaned.lower() == unit.lower():
            return unit
    if cleaned.lower() == "drops":
        return "drop"
    return cleaned.lower()


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_storage(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ----------------------------
# Entities
# ----------------------------
class Dependent(CamelModel):
    id: str = ""
    name: str
    relationship: str = "Family"
    avatar: Optional[str] = None


class UserProfile(CamelModel):
    name: str = ""
    email: str = ""
    phone: str = ""
    blood_type: str = "Unknown"
    allergies: str = "None"

    @field_validator("blood_type")
    @classmethod
    def known_blood_type(cls, v):
        if v not in BLOOD_TYPES:
            raise ValueError(f"unknown blood type {v!r}")
        return v

    @property
    def is_complete(self) -> bool:
        return bool(self.name.strip())


class Medication(CamelModel):
    id: str
    name: str
    dosage: str = "10"
    dosage_unit: str = "mg"
    form: DosageForm = Field(DosageForm.TABLET, alias="type")
    category: str = "GENERAL"
    frequency: int = 1
    interval: str = "Once Daily"
    next_dose: str = "09:00 AM"
    scheduled_times: List[str] = Field(default_factory=list)
    last_taken: Optional[str] = None
    status: MedicationStatus = MedicationStatus.ACTIVE
    color: Optional[str] = None
    dependent_id: Optional[str] = None


class IntakeLog(CamelModel):
    id: str
    medication_id: str
    medication_name: str
    time: str
    date: str
    status: IntakeStatus = IntakeStatus.CONFIRMED
    notes: Optional[str] = None
    dependent_id: Optional[str] = None


# ----------------------------
# Inputs
# ----------------------------
class MedicationIn(CamelModel):
    """Add/edit form payload. Absent fields mean "keep" on edit, "default" on add."""

    id: Optional[str] = None
    name: str = ""
    dosage: Optional[str] = None
    dosage_unit: Optional[str] = None
    form: Optional[DosageForm] = Field(None, alias="type")
    category: Optional[str] = None
    frequency: Optional[int] = Field(None, ge=1)
    scheduled_times: Optional[List[str]] = None
    dependent_id: Optional[str] = None

    @field_validator("category")
    @classmethod
    def upper_category(cls, v):
        return v.strip().upper() if v else v


class DoseTakenIn(CamelModel):
    date: str

    @field_validator("date")
    @classmethod
    def iso_date(cls, v):
        # only yyyy-mm-dd; logs are matched to days by exact string
        if dt_date.fromisoformat(v).isoformat() != v:
            raise ValueError(f"expected YYYY-MM-DD, got {v!r}")
        return v


class ProfileIn(CamelModel):
    profile: UserProfile
    dependents: Optional[List[Dependent]] = None


# ----------------------------
# Label scanner result
# ----------------------------
class LabelScan(CamelModel):
    """Best-effort guess read off a medication label. Any field may be missing."""

    name: Optional[str] = None
    dosage_value: Optional[str] = None
    dosage_unit: Optional[str] = None
    form: Optional[str] = None
    category: Optional[str] = None
    frequency: Optional[int] = None

    @field_validator("dosage_value", mode="before")
    @classmethod
    def stringify_dosage(cls, v):
        return str(v) if v is not None else v

    @field_validator("frequency", mode="before")
    @classmethod
    def lenient_frequency(cls, v):
        try:
            return int(v)
        except (TypeError, ValueError):
            return None

    def to_prefill(self) -> dict:
        prefill = {}
        if self.name:
            prefill["name"] = self.name.strip()
        if self.dosage_value:
            prefill["dosage"] = self.dosage_value.strip()
        unit = normalize_unit(self.dosage_unit)
        if unit:
            prefill["dosage_unit"] = unit
        if self.category:
            prefill["category"] = self.category.strip().upper()
        if self.frequency and self.frequency > 0:
            prefill["frequency"] = self.frequency
        if self.form:
            try:
                form = DosageForm(self.form.strip().capitalize())
            except ValueError:
                form = None
            if form is not None:
                prefill["form"] = form
                if form in FORM_DEFAULT_UNITS:
                    prefill["dosage_unit"] = FORM_DEFAULT_UNITS[form]
        return prefill
