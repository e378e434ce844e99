from datetime import date

import pytest
from fastapi.testclient import TestClient

from medlog import main
from medlog.notifications import Notifier, ResetConfirmation
from medlog.scanner import ScanError
from medlog.schemas import LabelScan

DAY = "2024-05-01"


@pytest.fixture
def client():
    app = main.create_app(
        "sqlite://",
        notifier=Notifier(scheduler=None),
        reset_confirmation=ResetConfirmation(scheduler=None),
    )
    return TestClient(app)


@pytest.fixture
def profile_client(client):
    resp = client.put("/profile", json={"profile": {"name": "Sophia Bennett", "bloodType": "O+"}})
    assert resp.status_code == 200
    return client


def test_health(client):
    assert client.get("/health").json()["status"] == "ok"


def test_fresh_state(client):
    data = client.get("/state").json()
    assert data["medications"] == []
    assert data["profile"]["bloodType"] == "Unknown"
    assert data["profileComplete"] is False
    assert data["scopes"] == [{"id": "self", "label": "Me"}]


def test_medication_requires_profile(client):
    resp = client.post("/medications", json={"name": "Aspirin"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["medication"] is None
    assert body["toast"]["message"] == "Profile Required"


def test_schedule_flow(profile_client):
    client = profile_client
    created = client.post("/medications", json={"name": "Aspirin", "dosage": "81", "frequency": 2}).json()
    med = created["medication"]
    assert med["scheduledTimes"] == ["08:00 AM", "08:00 PM"]
    assert med["type"] == "Tablet"
    assert created["toast"]["sub"] == "Aspirin added to schedule"

    schedule = client.get("/schedule", params={"date": DAY}).json()
    assert schedule["progress"] == {"remainingCount": 2, "totalScheduled": 2, "takenCount": 0, "progressPercent": 0}

    taken = client.post(f"/medications/{med['id']}/taken", json={"date": DAY}).json()
    assert taken["log"]["medicationName"] == "Aspirin"
    assert taken["toast"]["message"] == "Dose Logged"

    schedule = client.get("/schedule", params={"date": DAY}).json()
    status = schedule["statuses"][0]
    assert status["dosesRemaining"] == 1
    assert status["calculatedNextDose"] == "08:00 PM"
    assert schedule["progress"]["progressPercent"] == 50
    assert schedule["isToday"] is (DAY == date.today().isoformat())

    history = client.get("/history").json()
    assert history["total"] == 1
    assert history["groups"][0]["date"] == DAY


def test_edit_and_delete(profile_client):
    client = profile_client
    med = client.post("/medications", json={"name": "Ibuprofen"}).json()["medication"]

    edited = client.put(f"/medications/{med['id']}", json={"name": "Ibuprofen", "type": "Liquid"}).json()
    assert edited["medication"]["dosageUnit"] == "ml"
    assert edited["toast"]["message"] == "Updated"

    client.post(f"/medications/{med['id']}/taken", json={"date": DAY})
    deleted = client.delete(f"/medications/{med['id']}").json()
    assert deleted["toast"]["sub"] == "Ibuprofen removed"
    assert client.get("/medications").json()["medications"] == []
    assert client.get("/history").json()["total"] == 1

    missing = client.delete("/medications/nope").json()
    assert missing["medication"] is None
    assert missing["toast"] is None


def test_dependent_scopes(profile_client):
    client = profile_client
    client.put("/profile", json={
        "profile": {"name": "Sophia Bennett"},
        "dependents": [{"id": "kid", "name": "Liam", "relationship": "Child"}],
    })
    client.post("/medications", json={"name": "Amoxicillin", "dependentId": "kid"})
    client.post("/medications", json={"name": "Lisinopril"})

    assert [m["name"] for m in client.get("/medications").json()["medications"]] == ["Lisinopril"]
    kid = client.get("/medications", params={"person": "kid"}).json()
    assert [m["name"] for m in kid["medications"]] == ["Amoxicillin"]
    assert len(kid["adherence"]["days"]) == 7

    scopes = client.get("/state").json()["scopes"]
    assert scopes == [{"id": "self", "label": "Sophia Bennett"}, {"id": "kid", "label": "Liam"}]

    assert client.get("/schedule", params={"person": "nobody"}).status_code == 404


def test_medication_search_and_time_filter(profile_client):
    client = profile_client
    client.post("/medications", json={"name": "Metformin", "category": "diabetes", "scheduledTimes": ["06:00 PM"]})
    client.post("/medications", json={"name": "Vitamin D3", "scheduledTimes": ["08:00 AM"]})

    found = client.get("/medications", params={"search": "DIAB"}).json()["medications"]
    assert [m["name"] for m in found] == ["Metformin"]
    morning = client.get("/medications", params={"time_filter": "Morning"}).json()["medications"]
    assert [m["name"] for m in morning] == ["Vitamin D3"]


def test_invalid_input(profile_client):
    client = profile_client
    assert client.get("/schedule", params={"date": "yesterday"}).status_code == 422
    assert client.post("/medications", json={"name": "X", "frequency": 0}).status_code == 422
    assert client.post("/medications/abc/taken", json={"date": "01/05/2024"}).status_code == 422


def test_profile_requires_name(client):
    body = client.put("/profile", json={"profile": {"name": " "}}).json()
    assert body["saved"] is False
    assert body["toast"]["sub"] == "Please enter your name to continue."


def test_reset_double_press(profile_client):
    client = profile_client
    client.post("/medications", json={"name": "Aspirin"})

    first = client.post("/reset").json()
    assert first == {"reset": False, "confirming": True, "toast": None}
    assert len(client.get("/state").json()["medications"]) == 1

    second = client.post("/reset").json()
    assert second["reset"] is True
    assert second["confirming"] is False
    assert second["toast"]["message"] == "App Reset"
    state = client.get("/state").json()
    assert state["medications"] == [] and state["profile"]["name"] == ""


def test_alerts(client):
    prefs = client.get("/alerts/preferences").json()
    assert prefs == {"pushEnabled": True, "criticalEnabled": True, "sound": "chime", "snooze": "10 mins"}

    pushed = client.post("/alerts/test", json={"medicationName": "Aspirin"}).json()
    assert pushed["push"]["title"] == "Time for Aspirin"
    token = client.get("/notifications").json()["push"]["token"]
    assert client.post(f"/notifications/push/{token}/dismiss").json() == {"dismissed": True}
    assert client.get("/notifications").json()["push"] is None

    assert client.put("/alerts/preferences", json={**prefs, "pushEnabled": False}).status_code == 200
    assert client.post("/alerts/test", json={}).json()["push"] is None
    assert client.put("/alerts/preferences", json={**prefs, "sound": "siren"}).status_code == 422


def test_scan_returns_prefill(client, monkeypatch):
    monkeypatch.setattr(main, "scan_label", lambda data, mime: LabelScan(
        name="Amoxicillin", dosage_value="250", dosage_unit="mg", form="Capsule", category="antibiotic"))
    resp = client.post("/scan", files={"file": ("label.png", b"fake", "image/png")})
    assert resp.status_code == 200
    body = resp.json()
    assert body["scan"]["dosageValue"] == "250"
    assert body["prefill"]["type"] == "Capsule"
    assert body["prefill"]["category"] == "ANTIBIOTIC"


def test_scan_failure_is_reported(client, monkeypatch):
    def failing(data, mime):
        raise ScanError("The label could not be read. Please enter the details manually.")

    monkeypatch.setattr(main, "scan_label", failing)
    resp = client.post("/scan", files={"file": ("label.png", b"fake", "image/png")})
    assert resp.status_code == 502
    assert "could not be read" in resp.json()["detail"]


@pytest.mark.parametrize("bad_date", ["20240501", "2024-5-1", "2024-W18-3", "yesterday"])
def test_dose_date_must_be_calendar_format(profile_client, bad_date):
    client = profile_client
    med = client.post("/medications", json={"name": "Aspirin"}).json()["medication"]
    resp = client.post(f"/medications/{med['id']}/taken", json={"date": bad_date})
    assert resp.status_code == 422
    assert client.get("/history").json()["total"] == 0
    schedule = client.get("/schedule", params={"date": DAY}).json()
    assert schedule["statuses"][0]["dosesRemaining"] == 1


def test_blood_type_must_be_known(client):
    resp = client.put("/profile", json={"profile": {"name": "Sophia", "bloodType": "Q-"}})
    assert resp.status_code == 422
    assert client.get("/state").json()["profile"]["bloodType"] == "Unknown"

    ok = client.put("/profile", json={"profile": {"name": "Sophia", "bloodType": "AB-"}}).json()
    assert ok["saved"] is True
    assert client.get("/state").json()["profile"]["bloodType"] == "AB-"


def test_syringe_without_unit_is_stored_in_ml(profile_client):
    med = profile_client.post("/medications", json={"name": "Insulin", "type": "Syringe"}).json()["medication"]
    assert med["dosageUnit"] == "ml"


def test_new_family_members_get_ids(profile_client):
    body = profile_client.put("/profile", json={
        "profile": {"name": "Sophia Bennett"},
        "dependents": [{"name": "Liam", "relationship": "Child"}],
    }).json()
    assert body["saved"] is True
    deps = profile_client.get("/state").json()["dependents"]
    assert deps[0]["name"] == "Liam" and deps[0]["id"]
