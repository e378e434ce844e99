import logging
import os
from datetime import date, datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, File, HTTPException, Query, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware

from . import derived, filters, operations
from .database import DATABASE_URL, make_session_factory
from .notifications import Notifier, PushBanner, ReminderPreferences, ResetConfirmation, Toast, send_test_reminder
from .scanner import ScanError, scan_label
from .schemas import (
    SELF_SCOPE,
    CamelModel,
    Dependent,
    DoseTakenIn,
    IntakeLog,
    LabelScan,
    Medication,
    MedicationIn,
    ProfileIn,
    UserProfile,
)
from .state import AppContext
from .store import LocalStore

logger = logging.getLogger(__name__)


# ----------------------------
# Response Schemas
# ----------------------------
class ScopeOut(CamelModel):
    id: str
    label: str


class StateOut(CamelModel):
    medications: List[Medication]
    logs: List[IntakeLog]
    dependents: List[Dependent]
    profile: UserProfile
    profile_complete: bool
    scopes: List[ScopeOut]


class ActionOut(CamelModel):
    toast: Optional[Toast] = None


class MedicationActionOut(ActionOut):
    medication: Optional[Medication] = None


class DoseActionOut(ActionOut):
    log: Optional[IntakeLog] = None


class ProfileActionOut(ActionOut):
    saved: bool


class ResetOut(ActionOut):
    reset: bool
    confirming: bool


class ScheduleOut(CamelModel):
    date: str
    is_today: bool
    person: str
    statuses: List[derived.DoseStatus]
    progress: derived.DayProgress


class HistoryOut(CamelModel):
    person: str
    groups: List[derived.HistoryGroup]
    total: int


class MedicationListOut(CamelModel):
    person: str
    medications: List[Medication]
    adherence: derived.WeeklyAdherence


class NotificationsOut(CamelModel):
    toast: Optional[Toast] = None
    push: Optional[PushBanner] = None


class ReminderTestIn(CamelModel):
    medication_name: str = "Vitamin D3"


class ScanOut(CamelModel):
    scan: LabelScan
    prefill: MedicationIn


# ----------------------------
# Dependencies
# ----------------------------
def get_ctx(request: Request) -> AppContext:
    return request.app.state.ctx


def resolve_person(ctx: AppContext, person: str) -> str:
    if person == SELF_SCOPE or ctx.state.has_dependent(person):
        return person
    raise HTTPException(status_code=404, detail="Person not found")


def parse_day(value: Optional[str]) -> date:
    if not value:
        return date.today()
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Invalid date {value!r}, expected YYYY-MM-DD")


def create_app(database_url: Optional[str] = None, notifier: Optional[Notifier] = None,
               reset_confirmation: Optional[ResetConfirmation] = None) -> FastAPI:
    store = LocalStore(make_session_factory(database_url or DATABASE_URL))
    ctx = AppContext(
        state=store.load(),
        store=store,
        notifier=notifier or Notifier(),
        reset_confirmation=reset_confirmation or ResetConfirmation(),
    )

    app = FastAPI(title="MedLog - Local Medication Tracker")
    app.state.ctx = ctx

    origins = ["http://localhost:8501", "http://127.0.0.1:8501"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ----------------------------
    # Health & state
    # ----------------------------
    @app.get("/health")
    def health():
        return {"status": "ok", "time": datetime.now().isoformat()}

    @app.get("/state", response_model=StateOut)
    def get_state(ctx: AppContext = Depends(get_ctx)):
        with ctx.lock:
            state = ctx.state
            return StateOut(
                medications=state.medications,
                logs=state.logs,
                dependents=state.dependents,
                profile=state.profile,
                profile_complete=state.profile.is_complete,
                scopes=[ScopeOut(id=i, label=l) for i, l in filters.available_scopes(state.profile, state.dependents)],
            )

    # ----------------------------
    # Views
    # ----------------------------
    @app.get("/schedule", response_model=ScheduleOut)
    def get_schedule(person: str = SELF_SCOPE, day: Optional[str] = Query(None, alias="date"),
                     ctx: AppContext = Depends(get_ctx)):
        target = parse_day(day).isoformat()
        with ctx.lock:
            person = resolve_person(ctx, person)
            meds = filters.scope_medications(ctx.state.medications, person)
            logs = filters.scope_logs(ctx.state.logs, person)
        statuses = derived.day_statuses(meds, logs, target)
        return ScheduleOut(
            date=target,
            is_today=target == date.today().isoformat(),
            person=person,
            statuses=statuses,
            progress=derived.day_progress(statuses),
        )

    @app.get("/history", response_model=HistoryOut)
    def get_history(person: str = SELF_SCOPE, search: str = "", day: Optional[str] = Query(None, alias="date"),
                    ctx: AppContext = Depends(get_ctx)):
        date_filter = parse_day(day).isoformat() if day else None
        with ctx.lock:
            person = resolve_person(ctx, person)
            logs = filters.scope_logs(ctx.state.logs, person)
        groups = derived.group_history(logs, search, date_filter)
        return HistoryOut(person=person, groups=groups, total=sum(len(g.logs) for g in groups))

    @app.get("/medications", response_model=MedicationListOut)
    def list_medications(person: str = SELF_SCOPE, search: str = "",
                         time_filter: filters.TimeOfDay = filters.TimeOfDay.ALL,
                         ctx: AppContext = Depends(get_ctx)):
        with ctx.lock:
            person = resolve_person(ctx, person)
            meds = filters.scope_medications(ctx.state.medications, person)
            logs = filters.scope_logs(ctx.state.logs, person)
        return MedicationListOut(
            person=person,
            medications=filters.search_medications(meds, search, time_filter),
            adherence=derived.weekly_adherence(meds, logs, date.today()),
        )

    # ----------------------------
    # Medications
    # ----------------------------
    @app.post("/medications", response_model=MedicationActionOut)
    def save_medication(med: MedicationIn, ctx: AppContext = Depends(get_ctx)):
        marker = ctx.notifier.generation
        saved = operations.add_or_update_medication(ctx, med)
        return MedicationActionOut(medication=saved, toast=ctx.notifier.toast_since(marker))

    @app.put("/medications/{med_id}", response_model=MedicationActionOut)
    def update_medication(med_id: str, med: MedicationIn, ctx: AppContext = Depends(get_ctx)):
        med = med.model_copy(update={"id": med_id})
        marker = ctx.notifier.generation
        saved = operations.add_or_update_medication(ctx, med)
        return MedicationActionOut(medication=saved, toast=ctx.notifier.toast_since(marker))

    @app.delete("/medications/{med_id}", response_model=MedicationActionOut)
    def delete_medication(med_id: str, ctx: AppContext = Depends(get_ctx)):
        marker = ctx.notifier.generation
        removed = operations.delete_medication(ctx, med_id)
        return MedicationActionOut(medication=removed, toast=ctx.notifier.toast_since(marker))

    @app.post("/medications/{med_id}/taken", response_model=DoseActionOut)
    def mark_taken(med_id: str, payload: DoseTakenIn, ctx: AppContext = Depends(get_ctx)):
        marker = ctx.notifier.generation
        log = operations.record_dose_taken(ctx, med_id, payload.date)
        return DoseActionOut(log=log, toast=ctx.notifier.toast_since(marker))

    # ----------------------------
    # Label scanning
    # ----------------------------
    @app.post("/scan", response_model=ScanOut)
    async def scan(file: UploadFile = File(...)):
        data = await file.read()
        try:
            result = await run_in_threadpool(scan_label, data, file.content_type)
        except ScanError as e:
            raise HTTPException(status_code=502, detail=str(e))
        return ScanOut(scan=result, prefill=MedicationIn(**result.to_prefill()))

    # ----------------------------
    # Profile & reset
    # ----------------------------
    @app.put("/profile", response_model=ProfileActionOut)
    def save_profile(payload: ProfileIn, ctx: AppContext = Depends(get_ctx)):
        marker = ctx.notifier.generation
        saved = operations.save_profile(ctx, payload.profile, payload.dependents)
        return ProfileActionOut(saved=saved, toast=ctx.notifier.toast_since(marker))

    @app.post("/reset", response_model=ResetOut)
    def reset(ctx: AppContext = Depends(get_ctx)):
        """First call arms the reset, a second call within the window performs it."""
        marker = ctx.notifier.generation
        confirmed = ctx.reset_confirmation.press()
        if confirmed:
            operations.reset_all(ctx)
        return ResetOut(
            reset=confirmed,
            confirming=ctx.reset_confirmation.confirming,
            toast=ctx.notifier.toast_since(marker),
        )

    # ----------------------------
    # Notifications & alerts
    # ----------------------------
    @app.get("/notifications", response_model=NotificationsOut)
    def get_notifications(ctx: AppContext = Depends(get_ctx)):
        return NotificationsOut(toast=ctx.notifier.toast, push=ctx.notifier.push)

    @app.post("/notifications/push/{token}/dismiss")
    def dismiss_push(token: int, ctx: AppContext = Depends(get_ctx)):
        return {"dismissed": ctx.notifier.dismiss_push(token)}

    @app.get("/alerts/preferences", response_model=ReminderPreferences)
    def get_preferences(ctx: AppContext = Depends(get_ctx)):
        return ctx.preferences

    @app.put("/alerts/preferences", response_model=ReminderPreferences)
    def put_preferences(prefs: ReminderPreferences, ctx: AppContext = Depends(get_ctx)):
        ctx.preferences = prefs
        return ctx.preferences

    @app.post("/alerts/test", response_model=NotificationsOut)
    def send_test_alert(payload: ReminderTestIn, ctx: AppContext = Depends(get_ctx)):
        banner = send_test_reminder(ctx.notifier, ctx.preferences, payload.medication_name)
        return NotificationsOut(toast=ctx.notifier.toast, push=banner)

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=os.getenv("MEDLOG_LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="127.0.0.1", port=port)
