import json

import httpx
import pytest

from catequesis.exceptions import NotificationError, TooManyRecipientsError
from catequesis.models import AttendanceRecord, DispatchResult, Student
from catequesis.notifications import (
    AbsenceNotifier,
    absence_body,
    absence_label,
    absence_subject,
    absentees,
    needs_absence_notice,
)


def make_notifier(handler, cap=30):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return AbsenceNotifier("https://fn.example.com/functions/v1/", "tok", cap=cap, client=client)


def test_absence_label():
    assert absence_label("absent", "absent") == "ni a catequesis ni a misa"
    assert absence_label("absent", "present") == "catequesis"
    assert absence_label("present", "absent") == "misa"
    assert absence_label("late", "absent") == "misa"


def test_needs_absence_notice():
    assert needs_absence_notice(None)
    assert needs_absence_notice(AttendanceRecord("2025-03-08", "present", "absent"))
    assert not needs_absence_notice(AttendanceRecord("2025-03-08", "late", "present"))


def test_absentees(snapshot):
    result = [(s.id, label) for s, label in absentees(snapshot.students, "2025-03-08")]
    assert result == [("s1", "misa"), ("s2", "ni a catequesis ni a misa")]
    assert [s.id for s, _ in absentees(snapshot.students, "2024-10-05")] == ["s2"]


def test_subject_and_body():
    assert absence_subject("Ana", "2025-03-08") == "Ausencia registrada - Ana - 2025-03-08"
    body = absence_body("Ana", "misa")
    assert body.startswith("Estimados padres de Ana,")
    assert "no ha asistido a misa." in body


def test_send_one_posts_payload():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"ok": True})

    make_notifier(handler).send_one("s1", "2025-03-08", "catequesis")
    req = seen[0]
    assert req.url.path == "/functions/v1/send-absence-email"
    assert req.headers["Authorization"] == "Bearer tok"
    assert json.loads(req.content) == {"student_id": "s1", "date": "2025-03-08",
                                       "absence_label": "catequesis"}


def test_send_one_rejects_unknown_label():
    notifier = make_notifier(lambda r: httpx.Response(200, json={"ok": True}))
    with pytest.raises(ValueError):
        notifier.send_one("s1", "2025-03-08", "recreo")


def test_send_bulk_counts():
    def handler(request):
        assert json.loads(request.content)["student_ids"] == ["s1", "s2", "s3"]
        return httpx.Response(200, json={"ok": True, "sent": 1, "skipped_no_email": 1,
                                         "skipped_present_both": 1, "errors": 0})

    result = make_notifier(handler).send_bulk("2025-03-08", ["s1", "s2", "s3"])
    assert result == DispatchResult(sent=1, skipped_no_email=1, skipped_present_both=1, errors=0)


def test_send_bulk_cap_rejected_before_sending():
    calls = []
    notifier = make_notifier(lambda r: calls.append(r) or httpx.Response(200, json={"ok": True}), cap=2)
    with pytest.raises(TooManyRecipientsError) as exc:
        notifier.send_bulk("2025-03-08", ["a", "b", "c"])
    assert exc.value.got == 3 and exc.value.maximum == 2
    assert calls == []


def test_send_bulk_empty_is_noop():
    notifier = make_notifier(lambda r: pytest.fail("no debería llamar"))
    assert notifier.send_bulk("2025-03-08", []) == DispatchResult()


def test_remote_error_raises():
    notifier = make_notifier(lambda r: httpx.Response(400, json={"ok": False, "error": "too_many_recipients"}))
    with pytest.raises(NotificationError, match="too_many_recipients"):
        notifier.send_bulk("2025-03-08", ["s1"])


def test_transport_error_raises():
    def handler(request):
        raise httpx.ConnectError("sin red", request=request)

    with pytest.raises(NotificationError):
        make_notifier(handler).send_one("s1", "2025-03-08", "misa")


def test_student_without_records_gets_full_label():
    s = Student("x", name="X")
    assert absentees([s], "2025-03-08")[0][1] == "ni a catequesis ni a misa"


def test_notifier_closes_only_its_own_client():
    with AbsenceNotifier("https://fn.example.com", "tok") as notifier:
        own = notifier.client
    assert own.is_closed

    notifier = make_notifier(lambda r: httpx.Response(200, json={"ok": True}))
    with notifier:
        pass
    assert not notifier.client.is_closed
