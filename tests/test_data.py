import json

import pytest

from catequesis.data import ReportStore, load_snapshot, snapshot_from_dict
from catequesis.models import ClassAttendance, EventAttendance, MonthlyReport



@pytest.fixture
def store():
    st = ReportStore(":memory:")
    try:
        yield st
    finally:
        st.close()


def _report(**kw):
    base = dict(scope="all_students", scope_id=None, month="2025-03", report_type="students",
                generated_by="u2", summary="Resumen", recommendations=["Uno", "Dos"])
    base.update(kw)
    return MonthlyReport(**base)


def test_snapshot_from_dict_builds_tagged_staff_records(snapshot):
    u1 = snapshot.users[0]
    assert isinstance(u1.attendance_history[0], ClassAttendance)
    assert isinstance(u1.attendance_history[2], EventAttendance)
    assert u1.event_record_for("e1").status == "present"
    assert u1.class_record_for("2025-03-08").mass == "late"
    assert snapshot.students[0].parent_email == "padres@example.com"
    assert snapshot.group_name("g1") == "Confirmación"
    assert snapshot.group_name(None) is None


def test_snapshot_accepts_snake_case():
    snap = snapshot_from_dict({
        "class_days": ["2025-01-11"],
        "students": [{"id": 7, "name": "Luis", "group_id": "g1",
                      "attendance_history": [{"date": "2025-01-11", "catechism": "late", "mass": None}]}],
    })
    s = snap.students[0]
    assert s.id == "7" and s.group_id == "g1"
    assert s.record_for("2025-01-11").mass == "absent"
    assert snap.class_days == ["2025-01-11"]


def test_snapshot_rejects_unknown_record_type():
    with pytest.raises(ValueError):
        snapshot_from_dict({"users": [{"id": "u", "attendanceHistory": [{"date": "2025-01-01", "type": "x"}]}]})


def test_load_snapshot(tmp_path, raw_snapshot):
    path = tmp_path / "snap.json"
    path.write_text(json.dumps(raw_snapshot), encoding="utf-8")
    snap = load_snapshot(str(path))
    assert len(snap.students) == 2 and len(snap.events) == 3


def test_store_insert_and_find(store):
    saved = store.insert(_report())
    assert saved.id is not None and saved.generated_at
    found = store.find("2025-03", "all_students", None, "students")
    assert found.summary == "Resumen"
    assert found.recommendations == ["Uno", "Dos"]
    assert found.scope_id is None
    assert store.find("2025-04", "all_students", None, "students") is None


def test_store_duplicate_returns_existing(store):
    first = store.insert(_report())
    again = store.insert(_report(summary="Otro"))
    assert again.existing
    assert again.id == first.id
    assert again.summary == "Resumen"


def test_store_group_scope_keyed_by_id(store):
    store.insert(_report(scope="group", scope_id="g1"))
    store.insert(_report(scope="group", scope_id="g2", summary="G2"))
    assert store.find("2025-03", "group", "g2", "students").summary == "G2"
    assert len(store.list_reports("2025-03")) == 2
    assert len(store.list_reports()) == 2


def test_store_on_disk(tmp_path):
    st = ReportStore(str(tmp_path / "informes.db"))
    st.insert(_report())
    st.close()
    st = ReportStore(str(tmp_path / "informes.db"))
    assert st.find("2025-03", "all_students", None, "students") is not None
    st.close()
