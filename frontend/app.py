# frontend/app.py
import os
from datetime import date, datetime, timedelta

import pandas as pd
import plotly.express as px
import requests
import streamlit as st

# ---------------------------
# Configuration
# ---------------------------
BACKEND_BASE = os.getenv("MEDLOG_BACKEND", "http://127.0.0.1:8000")

FORMS = ["Tablet", "Capsule", "Softgel", "Liquid", "Syringe"]
UNITS = ["mg", "ml", "mcg", "g", "pills", "drop", "IU"]
BLOOD_TYPES = ["A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-", "Unknown"]
SNOOZE_OPTIONS = ["5 mins", "10 mins", "15 mins", "30 mins", "1 hour"]
SOUNDS = {
    "chime": "Modern Chime",
    "pulsar": "Digital Pulsar",
    "nature": "Nature Echo",
    "staccato": "Fast Staccato",
    "gentle": "Gentle Rise",
}


# helpers to call the local API with error handling
def backend_call(method, path, **kwargs):
    try:
        resp = requests.request(method, BACKEND_BASE + path, timeout=kwargs.pop("timeout", 8), **kwargs)
        resp.raise_for_status()
        return resp.json()
    except requests.exceptions.RequestException as e:
        st.warning(f"Backend {method} {path} failed: {e}")
        return None


def backend_get(path, params=None):
    return backend_call("GET", path, params=params, timeout=4)


def backend_post(path, json=None, files=None):
    return backend_call("POST", path, json=json, files=files)


def backend_put(path, json=None):
    return backend_call("PUT", path, json=json)


def backend_delete(path):
    return backend_call("DELETE", path)


def show_toast(result):
    """Queue the toast an action returned; it is shown after the rerun."""
    if result and result.get("toast"):
        st.session_state.pending_toast = result["toast"]


def flush_toast():
    toast = st.session_state.pop("pending_toast", None)
    if toast:
        st.toast(f"**{toast['message']}** - {toast['sub']}")


def nice_date(iso):
    if iso == date.today().isoformat():
        return "Today"
    return datetime.strptime(iso, "%Y-%m-%d").strftime("%A, %B %d, %Y")


# ---------------------------
# Session state
# ---------------------------
if "person" not in st.session_state:
    st.session_state.person = "self"
if "selected_date" not in st.session_state:
    st.session_state.selected_date = date.today().isoformat()
if "prefill" not in st.session_state:
    st.session_state.prefill = {}

st.set_page_config(page_title="MedLog", layout="centered", initial_sidebar_state="expanded")

app_state = backend_get("/state")
if app_state is None:
    st.error("The MedLog service is not running. Start it with `python -m medlog.main`.")
    st.stop()

profile = app_state["profile"]
scopes = {s["id"]: s["label"] for s in app_state["scopes"]}
if st.session_state.person not in scopes:
    st.session_state.person = "self"

# ---------------------------
# Push banner (simulated reminder)
# ---------------------------
notifications = backend_get("/notifications") or {}
push = notifications.get("push")
if push:
    with st.container(border=True):
        st.markdown(f"**{push['title']}**")
        st.caption(push["body"])
        if st.button("Dismiss", key="dismiss_push"):
            backend_post(f"/notifications/push/{push['token']}/dismiss")
            st.rerun()

st.sidebar.title("MedLog")
pages = ["Schedule", "History", "Medications", "Alerts", "Profile"]
page = st.sidebar.radio("Go to", pages)


def person_selector():
    if len(scopes) <= 1:
        return
    ids = list(scopes.keys())
    st.session_state.person = st.radio(
        "Person",
        ids,
        index=ids.index(st.session_state.person),
        format_func=lambda i: scopes[i],
        horizontal=True,
    )


# ---------------------------
# PAGE: Schedule
# ---------------------------
def page_schedule():
    st.title("Schedule")
    person_selector()

    today = date.today()
    days = [today + timedelta(days=i) for i in range(-3, 4)]
    cols = st.columns(len(days))
    for col, d in zip(cols, days):
        label = f"{d.strftime('%a')}\n{d.day}"
        kind = "primary" if d.isoformat() == st.session_state.selected_date else "secondary"
        if col.button(label, key=f"day_{d.isoformat()}", type=kind, use_container_width=True):
            st.session_state.selected_date = d.isoformat()
            st.rerun()

    sched = backend_get("/schedule", params={"person": st.session_state.person, "date": st.session_state.selected_date})
    if not sched:
        return
    progress = sched["progress"]

    if not sched["statuses"]:
        if not app_state["profileComplete"]:
            st.info("To get started with medication tracking, please set up your profile name first (Profile page).")
        else:
            st.info("Track your medications, get reminders, and stay consistent. Start by adding your first medication.")
        return

    if sched["isToday"]:
        remaining = progress["remainingCount"]
        st.subheader(f"{remaining} doses remaining" if remaining > 0 else "All caught up!")
    else:
        st.subheader(f"Schedule for {sched['date']}")

    for status in sched["statuses"]:
        med = status["medication"]
        with st.container(border=True):
            c1, c2 = st.columns([3, 1])
            with c1:
                st.markdown(f"**{med['name']}**  \n{med['dosage']}{med.get('dosageUnit', 'mg')} • {med['frequency']}x Daily")
                st.caption(f"{med['category']} • Next: {status['calculatedNextDose']}")
            with c2:
                if status["isFullyTaken"]:
                    st.success("Taken")
                else:
                    st.caption(f"{status['dosesRemaining']} left")
            if status["dosesRemaining"] > 0:
                label = f"Dose {status['doseIndex'] + 1} Taken" if med["frequency"] > 1 else "Dose Taken"
                if st.button(label, key=f"take_{med['id']}"):
                    show_toast(backend_post(f"/medications/{med['id']}/taken", json={"date": sched["date"]}))
                    st.rerun()

    st.markdown("### Daily Progress")
    st.progress(progress["progressPercent"] / 100)
    st.caption(f"{progress['takenCount']}/{progress['totalScheduled']} doses")


# ---------------------------
# PAGE: History
# ---------------------------
def page_history():
    st.title("History")
    person_selector()
    c1, c2 = st.columns([2, 1])
    search = c1.text_input("Search history...")
    use_date = c2.checkbox("Filter by date")
    picked = c2.date_input("Date", value=date.today(), disabled=not use_date)

    params = {"person": st.session_state.person, "search": search}
    if use_date:
        params["date"] = picked.isoformat()
    history = backend_get("/history", params=params)
    if not history:
        return
    if not history["groups"]:
        st.info("No intake records found.")
        return
    for group in history["groups"]:
        st.markdown(f"#### {nice_date(group['date'])}")
        df = pd.DataFrame(group["logs"])[["medicationName", "time", "status"]]
        st.table(df.rename(columns={"medicationName": "Medication", "time": "Time", "status": "Status"}))


# ---------------------------
# PAGE: Medications
# ---------------------------
def medication_form(existing=None):
    prefill = st.session_state.prefill if existing is None else {}
    base = existing or {}

    def pick(field, default):
        return prefill.get(field) or base.get(field) or default

    key = existing["id"] if existing else "new"
    with st.form(f"med_form_{key}"):
        name = st.text_input("Medicine Name", value=pick("name", ""))
        c1, c2 = st.columns(2)
        dosage = c1.text_input("Dosage", value=pick("dosage", ""))
        unit = pick("dosageUnit", "mg")
        dosage_unit = c2.selectbox("Unit", UNITS, index=UNITS.index(unit) if unit in UNITS else 0)
        form = pick("type", "Tablet")
        med_type = st.selectbox("Form", FORMS, index=FORMS.index(form) if form in FORMS else 0)
        category = st.text_input("Category", value=pick("category", "GENERAL"))
        current_freq = int(pick("frequency", 1))
        frequency = st.number_input("Times per day", min_value=1, max_value=max(6, current_freq), value=current_freq)
        times = st.text_input(
            "Scheduled times (comma separated, leave empty for suggestions)",
            value=", ".join(base.get("scheduledTimes", [])),
        )
        people = list(scopes.keys())
        owner = base.get("dependentId") or st.session_state.person
        dependent_id = st.selectbox(
            "For", people, index=people.index(owner) if owner in people else 0, format_func=lambda i: scopes[i]
        )
        if st.form_submit_button("Save medication"):
            payload = {
                "name": name,
                "dosage": dosage or None,
                # untouched unit with a new form lets the service pick it (Liquid, Syringe -> ml)
                "dosageUnit": None if dosage_unit == unit and med_type != form else dosage_unit,
                "type": med_type,
                "category": category or None,
                "frequency": int(frequency),
                "scheduledTimes": [t.strip() for t in times.split(",") if t.strip()] or None,
                "dependentId": dependent_id,
            }
            if existing:
                result = backend_put(f"/medications/{existing['id']}", json=payload)
            else:
                result = backend_post("/medications", json=payload)
                if result and result.get("medication"):
                    st.session_state.prefill = {}
            show_toast(result)
            st.rerun()


def scan_section():
    uploaded = st.file_uploader("Scan a medication label", type=["png", "jpg", "jpeg", "webp"])
    if uploaded and st.button("Scan label"):
        try:
            resp = requests.post(
                BACKEND_BASE + "/scan",
                files={"file": (uploaded.name, uploaded.getbuffer(), uploaded.type)},
                timeout=60,
            )
        except requests.exceptions.RequestException as e:
            st.error(f"Label scanning failed: {e}")
            return
        if resp.status_code != 200:
            st.error(f"Label scanning failed: {resp.json().get('detail', resp.text)}")
            return
        st.session_state.prefill = {k: v for k, v in resp.json()["prefill"].items() if v not in (None, "")}
        st.success("Label scanned. Review the details below before saving.")


def page_medications():
    st.title("Medications")
    person_selector()
    c1, c2 = st.columns([2, 1])
    search = c1.text_input("Search by name or category")
    time_filter = c2.selectbox("Time of day", ["All", "Morning", "Afternoon"])

    listing = backend_get(
        "/medications",
        params={"person": st.session_state.person, "search": search, "time_filter": time_filter},
    )
    if listing is None:
        return

    adherence = listing["adherence"]
    st.markdown("### Weekly Adherence")
    st.metric("Last 7 days", f"{adherence['overallWeekSuccess']}%")
    df = pd.DataFrame(adherence["days"])
    df["percent"] = (df["percentage"] * 100).round(0)
    fig = px.bar(df, x="date", y="percent", hover_data=["takenDoses", "expectedDoses"], title="Doses taken vs expected")
    fig.update_layout(margin=dict(l=0, r=0, t=30, b=0), height=260, yaxis_title="%", xaxis_title="")
    st.plotly_chart(fig, use_container_width=True)

    st.markdown("### Current Medications")
    for med in listing["medications"]:
        with st.expander(f"{med['name']} • {med['dosage']}{med['dosageUnit']} • {med['interval']}"):
            st.write(f"Category: {med['category']} • Form: {med['type']} • Times: {', '.join(med['scheduledTimes'])}")
            if med.get("lastTaken"):
                st.caption(f"Last taken {med['lastTaken']}")
            medication_form(med)
            if st.button("Delete", key=f"del_{med['id']}"):
                show_toast(backend_delete(f"/medications/{med['id']}"))
                st.rerun()
    if not listing["medications"]:
        st.info("No medications match.")

    st.markdown("### Add Medication")
    if not app_state["profileComplete"]:
        st.warning("Profile Required: please set up your name first (Profile page).")
        return
    scan_section()
    medication_form()


# ---------------------------
# PAGE: Alerts
# ---------------------------
def page_alerts():
    st.title("Settings & Alerts")
    prefs = backend_get("/alerts/preferences")
    if prefs is None:
        return
    with st.form("alerts"):
        push_enabled = st.toggle("Push notifications", value=prefs["pushEnabled"])
        critical_enabled = st.toggle("Critical alerts", value=prefs["criticalEnabled"])
        sound_ids = list(SOUNDS.keys())
        sound = st.selectbox("Alert sound", sound_ids, index=sound_ids.index(prefs["sound"]), format_func=SOUNDS.get)
        snooze = st.selectbox("Snooze", SNOOZE_OPTIONS, index=SNOOZE_OPTIONS.index(prefs["snooze"]))
        if st.form_submit_button("Save preferences"):
            backend_put("/alerts/preferences", json={
                "pushEnabled": push_enabled,
                "criticalEnabled": critical_enabled,
                "sound": sound,
                "snooze": snooze,
            })
            st.success("Preferences saved")

    st.markdown("### Test a reminder")
    name = st.text_input("Medication", value="Vitamin D3")
    if st.button("Test"):
        backend_post("/alerts/test", json={"medicationName": name})
        st.rerun()


# ---------------------------
# PAGE: Profile
# ---------------------------
def page_profile():
    st.title("Welcome to MedLog" if not app_state["profileComplete"] else "User Profile")
    if "dependents_draft" not in st.session_state:
        st.session_state.dependents_draft = list(app_state["dependents"])

    with st.form("profile"):
        name = st.text_input("Full Name *", value=profile["name"])
        email = st.text_input("Email", value=profile["email"])
        phone = st.text_input("Phone", value=profile["phone"])
        blood = profile.get("bloodType", "Unknown")
        blood_type = st.selectbox("Blood Type", BLOOD_TYPES, index=BLOOD_TYPES.index(blood) if blood in BLOOD_TYPES else 8)
        allergies = st.text_input("Allergies", value=profile["allergies"])
        if st.form_submit_button("Save profile"):
            result = backend_put("/profile", json={
                "profile": {"name": name, "email": email, "phone": phone, "bloodType": blood_type, "allergies": allergies},
                "dependents": st.session_state.dependents_draft,
            })
            show_toast(result)
            if result and result.get("saved"):
                st.session_state.pop("dependents_draft", None)
            st.rerun()

    st.markdown("### Family Members")
    for i, dep in enumerate(list(st.session_state.dependents_draft)):
        c1, c2 = st.columns([4, 1])
        c1.write(f"{dep['name']} ({dep.get('relationship', 'Family')})")
        if c2.button("Remove", key=f"rm_{i}"):
            st.session_state.dependents_draft.pop(i)
            st.rerun()
    c1, c2 = st.columns([4, 1])
    new_name = c1.text_input("Add family member", key="new_dependent")
    if c2.button("Add") and new_name.strip():
        st.session_state.dependents_draft.append(
            {"id": "", "name": new_name.strip(), "relationship": "Family"}
        )
        st.rerun()
    st.caption("Family changes are kept when you save the profile.")

    st.markdown("---")
    if st.button("Reset all data", type="secondary"):
        result = backend_post("/reset")
        if result and result["confirming"]:
            st.warning("Press again within 5 seconds to permanently clear all data.")
        else:
            show_toast(result)
            st.session_state.pop("dependents_draft", None)
            st.rerun()


# ---------------------------
# Router
# ---------------------------
if page == "Schedule":
    page_schedule()
elif page == "History":
    page_history()
elif page == "Medications":
    page_medications()
elif page == "Alerts":
    page_alerts()
elif page == "Profile":
    page_profile()
else:
    st.write("Page not found")

flush_toast()
st.markdown("---")
st.caption("MedLog keeps all data on this machine via the local service at " + BACKEND_BASE)
