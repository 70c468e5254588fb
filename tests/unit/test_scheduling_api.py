"""
Tests for the scheduling routers: availability, breaks, slots,
lesson requests and notifications.

Auth is replaced by overriding get_current_user; the role checks in
require_tutor / require_parent still run on top of it.
"""

from datetime import datetime

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from auth.middleware.auth_middleware import get_current_user
from database import get_db
from shared.models.entities import LessonRequest
from scheduling.api import availability, breaks, lesson_requests, notifications, slots
from scheduling.repositories.lesson_repository import LessonRepository
from scheduling.repositories.notification_repository import NotificationRepository


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def acting():
    """Holder for the user the overridden auth dependency returns."""
    return {"user": None}


@pytest.fixture
def client(db_session, acting):
    app = FastAPI()
    for module in (availability, breaks, slots, lesson_requests, notifications):
        app.include_router(module.router)

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = lambda: acting["user"]
    return TestClient(app)


@pytest.fixture
def background(mocker):
    return mocker.patch("scheduling.api.lesson_requests.run_in_background")


@pytest.fixture
def as_tutor(acting, tutor):
    acting["user"] = tutor
    return tutor


@pytest.fixture
def as_parent(acting, parent):
    acting["user"] = parent
    return parent


@pytest.fixture
def monday_schedule(client, acting, tutor):
    """Tutor works 09:00-17:00 on Mondays with a lunch break."""
    previous = acting["user"]
    acting["user"] = tutor
    window = client.post("/availability", json={"start_time": "9:00 AM", "end_time": "5:00 PM", "day_of_week": 1})
    lunch = client.post("/breaks", json={"start_time": "12:00", "end_time": "13:00", "day_of_week": 1})
    acting["user"] = previous
    return window.json(), lunch.json()


# ===========================================================================
# Availability
# ===========================================================================

class TestAvailabilityApi:

    def test_create_and_list(self, client, as_tutor):
        resp = client.post("/availability", json={"start_time": "9:00 AM", "end_time": "1700", "day_of_week": 1})
        assert resp.status_code == 201
        data = resp.json()
        assert (data["start_time"], data["end_time"], data["is_recurring"]) == ("09:00", "17:00", True)

        listed = client.get("/availability").json()
        assert [w["id"] for w in listed] == [data["id"]]

    def test_weekly_has_seven_days(self, client, as_tutor, monday_schedule):
        days = client.get("/availability/weekly").json()["days"]
        assert sorted(days) == [str(d) for d in range(7)]
        assert len(days["1"]) == 1

    def test_invalid_window(self, client, as_tutor):
        resp = client.post("/availability", json={"start_time": "17:00", "end_time": "09:00", "day_of_week": 1})
        assert resp.status_code == 422

    def test_bad_time_text(self, client, as_tutor):
        resp = client.post("/availability", json={"start_time": "morning", "end_time": "09:00", "day_of_week": 1})
        assert resp.status_code == 422

    def test_day_out_of_range(self, client, as_tutor):
        resp = client.post("/availability", json={"start_time": "08:00", "end_time": "09:00", "day_of_week": 7})
        assert resp.status_code == 422

    def test_parent_cannot_create(self, client, as_parent):
        resp = client.post("/availability", json={"start_time": "08:00", "end_time": "09:00", "day_of_week": 1})
        assert resp.status_code == 403

    def test_delete_blocked_by_break(self, client, as_tutor, monday_schedule):
        window, lunch = monday_schedule
        resp = client.delete(f"/availability/{window['id']}")
        assert resp.status_code == 409
        assert resp.json()["detail"]["break_ids"] == [lunch["id"]]

    def test_delete_unknown(self, client, as_tutor):
        assert client.delete("/availability/missing").status_code == 404

    def test_update(self, client, as_tutor):
        created = client.post("/availability", json={"start_time": "09:00", "end_time": "12:00", "day_of_week": 2}).json()
        resp = client.put(f"/availability/{created['id']}", json={"start_time": "10:00", "end_time": "12:00", "day_of_week": 2})
        assert resp.status_code == 200
        assert resp.json()["start_time"] == "10:00"


# ===========================================================================
# Breaks
# ===========================================================================

class TestBreaksApi:

    def test_outside_availability(self, client, as_tutor, monday_schedule):
        resp = client.post("/breaks", json={"start_time": "07:00", "end_time": "08:00", "day_of_week": 1})
        assert resp.status_code == 422
        assert "Monday" in resp.json()["detail"]

    def test_suggestion(self, client, as_tutor, monday_schedule):
        resp = client.get("/breaks/suggestion", params={"day_of_week": 1})
        assert resp.json() == {"day_of_week": 1, "start_time": "12:30", "end_time": "13:30"}

    def test_suggestion_without_availability(self, client, as_tutor):
        resp = client.get("/breaks/suggestion", params={"day_of_week": 3})
        assert resp.json() == {"day_of_week": 3, "start_time": None, "end_time": None}

    def test_delete(self, client, as_tutor, monday_schedule):
        _, lunch = monday_schedule
        resp = client.delete(f"/breaks/{lunch['id']}")
        assert resp.json() == {"status": "deleted", "id": lunch["id"]}


# ===========================================================================
# Slots
# ===========================================================================

class TestSlotsApi:

    def test_bookable_windows(self, client, as_parent, tutor, monday_schedule):
        resp = client.get(f"/slots/{tutor.id}/2024-03-11")
        assert resp.status_code == 200
        data = resp.json()
        assert data["day_of_week"] == 1
        assert data["windows"] == [
            {"start_time": "09:00", "end_time": "12:00"},
            {"start_time": "13:00", "end_time": "17:00"},
        ]

    def test_bad_date(self, client, as_parent, tutor):
        assert client.get(f"/slots/{tutor.id}/2024-02-30").status_code == 422

    def test_check(self, client, as_parent, tutor, monday_schedule):
        ok = client.get(f"/slots/{tutor.id}/2024-03-11/check", params={"start": "2:00 PM", "end": "3:00 PM"}).json()
        assert ok["available"] is True
        assert ok["start_time"] == "14:00"
        clash = client.get(f"/slots/{tutor.id}/2024-03-11/check", params={"start": "11:30", "end": "12:30"}).json()
        assert clash["available"] is False

    def test_busy_defaults_to_caller(self, client, as_tutor, monday_schedule, students, make_lesson):
        make_lesson(students[0], scheduled_at=datetime(2024, 3, 11, 15, 0))
        busy = client.get("/slots/busy/2024-03-11").json()
        assert [b["slot_type"] for b in busy] == ["break", "lesson"]
        assert busy[1]["start"] == "2024-03-11T15:00:00"


# ===========================================================================
# Lesson requests
# ===========================================================================

class TestLessonRequestsApi:

    def _create(self, client, tutor, students, **kwargs):
        body = {
            "tutor_id": tutor.id,
            "student_ids": [s.id for s in students],
            "subject": "piano",
            "preferred_date": "2024-03-11",
            "preferred_time": "15:00",
            "preferred_duration": 90,
        }
        body.update(kwargs)
        return client.post("/lesson-requests", json=body)

    def test_parent_creates_group(self, client, as_parent, tutor, students, monday_schedule, background):
        resp = self._create(client, tutor, students[:2])
        assert resp.status_code == 201
        data = resp.json()
        assert len(data) == 2
        assert data[0]["request_group_id"] == data[1]["request_group_id"]
        assert data[0]["request_type"] == "dropin"
        background.assert_called_once()

    def test_tutor_cannot_create(self, client, as_tutor, tutor, students, background):
        assert self._create(client, tutor, students[:1]).status_code == 403

    def test_unavailable_slot(self, client, as_parent, tutor, students, monday_schedule, background):
        resp = self._create(client, tutor, students[:1], preferred_time="11:30")
        assert resp.status_code == 409
        background.assert_not_called()

    def test_empty_student_list(self, client, as_parent, tutor, background):
        assert self._create(client, tutor, []).status_code == 422

    def test_unknown_subject(self, client, as_parent, tutor, students, background):
        assert self._create(client, tutor, students[:1], subject="chess").status_code == 422

    def test_list_by_role(self, client, acting, tutor, parent, students, make_request):
        make_request(students[0])
        acting["user"] = tutor
        assert len(client.get("/lesson-requests").json()) == 1
        acting["user"] = parent
        assert len(client.get("/lesson-requests", params={"status": "rejected"}).json()) == 0

    def test_grouped_and_pending_count(self, client, as_tutor, students, make_request):
        make_request(students[0], request_group_id="g")
        make_request(students[1], request_group_id="g")
        make_request(students[2], offset_minutes=5)

        grouped = client.get("/lesson-requests/grouped").json()
        assert [g["is_combined_session"] for g in grouped] == [False, True]
        assert client.get("/lesson-requests/pending-count").json() == {"count": 2}

    def test_approve_combined(self, client, as_tutor, students, make_request, background, db_session):
        ids = [make_request(s, request_group_id="g", preferred_duration=90).id for s in students[:2]]

        resp = client.post("/lesson-requests/approve", json={"request_ids": ids, "tutor_response": "Done"})

        assert resp.status_code == 200
        data = resp.json()
        assert data["session_id"] is not None
        assert [m["status"] for m in data["members"]] == ["scheduled", "scheduled"]
        lesson = LessonRepository(db_session).get_by_id(data["members"][0]["scheduled_lesson_id"])
        assert lesson.duration_min == 45
        background.assert_called_once()

    def test_approve_part_of_group_unprocessable(self, client, as_tutor, students, make_request, background, db_session):
        ids = [make_request(s, request_group_id="g").id for s in students]

        resp = client.post("/lesson-requests/approve", json={"request_ids": ids[:1]})

        assert resp.status_code == 422
        db_session.expire_all()
        assert {r.status for r in db_session.query(LessonRequest).all()} == {"pending"}
        background.assert_not_called()

    def test_approve_twice_conflicts(self, client, as_tutor, students, make_request, background):
        request = make_request(students[0])
        client.post("/lesson-requests/approve", json={"request_ids": [request.id]})
        resp = client.post("/lesson-requests/reject", json={"request_ids": [request.id], "reason": "late"})
        assert resp.status_code == 409

    def test_partial_failure_reports_failed_ids(self, client, as_tutor, students, make_request, background, mocker):
        ids = [make_request(s, request_group_id="g").id for s in students[:2]]
        mocker.patch.object(LessonRepository, "create_session", side_effect=RuntimeError("boom"))

        resp = client.post("/lesson-requests/approve", json={"request_ids": ids})

        assert resp.status_code == 500
        assert resp.json()["detail"]["failed_request_ids"] == ids
        background.assert_called_once()

    def test_other_tutor_cannot_reject(self, client, acting, other_tutor, students, make_request, background, db_session):
        request = make_request(students[0])
        acting["user"] = other_tutor
        resp = client.post("/lesson-requests/reject", json={"request_ids": [request.id]})
        assert resp.status_code == 403
        db_session.expire_all()
        assert db_session.query(LessonRequest).one().status == "pending"

    def test_parent_deletes_pending(self, client, as_parent, students, make_request):
        request = make_request(students[0])
        assert client.delete(f"/lesson-requests/{request.id}").json() == {"status": "deleted", "id": request.id}

    def test_parent_cannot_approve(self, client, as_parent, students, make_request, background):
        request = make_request(students[0])
        assert client.post("/lesson-requests/approve", json={"request_ids": [request.id]}).status_code == 403


# ===========================================================================
# Notifications
# ===========================================================================

class TestNotificationsApi:

    def test_list_own_and_broadcast_for_tutor(self, client, as_tutor, tutor, parent, db_session):
        repo = NotificationRepository(db_session)
        repo.create_notification(tutor.id, None, "dropin_request", "Mine", "for the tutor")
        repo.create_notification(None, None, "dropin_request", "Broadcast", "for all tutors")
        repo.create_notification(parent.id, tutor.id, "dropin_response", "Theirs", "for the parent")

        titles = {n["title"] for n in client.get("/notifications").json()}
        assert titles == {"Mine", "Broadcast"}

    def test_parent_sees_only_own(self, client, as_parent, tutor, parent, db_session):
        repo = NotificationRepository(db_session)
        repo.create_notification(None, None, "dropin_request", "Broadcast", "for all tutors")
        repo.create_notification(parent.id, tutor.id, "dropin_response", "Theirs", "for the parent")

        assert [n["title"] for n in client.get("/notifications").json()] == ["Theirs"]

    def test_dispatch(self, client, as_tutor, db_session):
        NotificationRepository(db_session).enqueue("approval_email", {"parent_id": "p1"})
        resp = client.post("/notifications/dispatch")
        assert resp.json() == {"sent": 1, "failed": 0, "retrying": 0}

    def test_dispatch_requires_tutor(self, client, as_parent):
        assert client.post("/notifications/dispatch").status_code == 403
