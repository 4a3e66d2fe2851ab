"""
Class endpoints, including schedule replacement and its warnings
"""
from datetime import time

import pytest
from sqlalchemy.exc import IntegrityError

from api.routes import classes as classes_routes
from models.schedule_entry import ScheduleEntry


def _class_body(school, subjects, **kw):
    body = {
        "name": "Hifz A",
        "schoolId": school.id,
        "subjectIds": [s.id for s in subjects],
        "maxStudents": 20,
        "academicYear": "2024-2025",
    }
    body.update(kw)
    return body


def test_create_with_schedule(client, admin_headers, factory):
    school = factory.school()
    teacher = factory.teacher(schools=[school])
    quran = factory.subject("Quran")

    resp = client.post(
        "/api/classes",
        headers=admin_headers,
        json=_class_body(
            school,
            [quran],
            teacherId=teacher.id,
            primarySubjectId=quran.id,
            schedule=[{"subjectId": quran.id, "dayOfWeek": 0, "startTime": "08:00", "endTime": "09:30", "room": "A1"}],
        ),
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["currentStudents"] == 0
    assert body["teacher"]["id"] == teacher.id
    assert body["primarySubject"]["name"] == "Quran"
    assert body["scheduleWarnings"] == []
    (entry,) = body["schedule"]
    assert entry["startTime"] == "08:00"
    assert entry["timeRange"] == "08:00 - 09:30"
    assert entry["dayName"] == "Sunday"
    assert entry["subject"]["name"] == "Quran"


def test_teacher_must_belong_to_school(client, admin_headers, factory):
    school = factory.school()
    outsider = factory.teacher(schools=[factory.school()])
    subject = factory.subject()

    resp = client.post("/api/classes", headers=admin_headers, json=_class_body(school, [subject], teacherId=outsider.id))
    assert resp.status_code == 400
    assert resp.json()["message"] == "Teacher is not assigned to this school"


def test_bad_schedule_is_a_hard_error(client, admin_headers, factory):
    school = factory.school()
    subject = factory.subject()

    backwards = client.post(
        "/api/classes",
        headers=admin_headers,
        json=_class_body(
            school, [subject], schedule=[{"subjectId": subject.id, "dayOfWeek": 1, "startTime": "10:00", "endTime": "09:00"}]
        ),
    )
    assert backwards.status_code == 400
    assert backwards.json()["code"] == "INVALID_TIME_RANGE"

    malformed = client.post(
        "/api/classes",
        headers=admin_headers,
        json=_class_body(
            school, [subject], schedule=[{"subjectId": subject.id, "dayOfWeek": 1, "startTime": "9am", "endTime": "10:00"}]
        ),
    )
    assert malformed.status_code == 400
    assert malformed.json()["code"] == "INVALID_TIME_FORMAT"

    other = factory.subject()
    foreign = client.post(
        "/api/classes",
        headers=admin_headers,
        json=_class_body(
            school, [subject], schedule=[{"subjectId": other.id, "dayOfWeek": 1, "startTime": "08:00", "endTime": "09:00"}]
        ),
    )
    assert foreign.status_code == 400
    assert foreign.json()["code"] == "SCHEDULE_SUBJECT_NOT_IN_CLASS"

    listed = client.get("/api/classes", headers=admin_headers).json()
    assert listed["total"] == 0


def test_conflicts_are_warnings_not_errors(client, admin_headers, factory):
    school = factory.school()
    subject = factory.subject()
    booked = factory.school_class("Tajweed", school=school, subjects=[subject])
    factory.entry(booked, subject, day=2, start="08:00", end="09:00", room="Hall")

    resp = client.post(
        "/api/classes",
        headers=admin_headers,
        json=_class_body(
            school,
            [subject],
            schedule=[{"subjectId": subject.id, "dayOfWeek": 2, "startTime": "08:30", "endTime": "09:30", "room": "hall"}],
        ),
    )
    assert resp.status_code == 201
    assert resp.json()["scheduleWarnings"] == [
        "Room conflict: hall is already booked at 08:00 - 09:00 for class Tajweed"
    ]
    assert len(resp.json()["schedule"]) == 1


def test_schedule_update_replaces_instead_of_merging(client, admin_headers, factory):
    subject = factory.subject()
    cls = factory.school_class(subjects=[subject])
    factory.entry(cls, subject, day=0, start="08:00", end="09:00")
    factory.entry(cls, subject, day=1, start="08:00", end="09:00")

    resp = client.put(
        f"/api/classes/{cls.id}",
        headers=admin_headers,
        json={"schedule": [{"subjectId": subject.id, "dayOfWeek": 4, "startTime": "13:00", "endTime": "14:00"}]},
    )
    assert resp.status_code == 200
    assert [(e["dayOfWeek"], e["startTime"]) for e in resp.json()["schedule"]] == [(4, "13:00")]

    untouched = client.put(f"/api/classes/{cls.id}", headers=admin_headers, json={"name": "Renamed"})
    assert untouched.json()["name"] == "Renamed"
    assert len(untouched.json()["schedule"]) == 1


def test_capacity_cannot_drop_below_active_students(client, admin_headers, factory):
    cls = factory.school_class(max_students=5)
    factory.enrollment(factory.student(), cls)
    factory.enrollment(factory.student(), cls)

    resp = client.put(f"/api/classes/{cls.id}", headers=admin_headers, json={"maxStudents": 1})
    assert resp.status_code == 400
    assert resp.json()["code"] == "CAPACITY_BELOW_ENROLLMENT"

    ok = client.put(f"/api/classes/{cls.id}", headers=admin_headers, json={"maxStudents": 2})
    assert ok.json()["maxStudents"] == 2


def test_capacity_bounds_are_validated(client, admin_headers, factory):
    school = factory.school()
    subject = factory.subject()
    resp = client.post("/api/classes", headers=admin_headers, json=_class_body(school, [subject], maxStudents=201))
    assert resp.status_code == 400
    assert resp.json()["code"] == "VALIDATION_ERROR"


def test_delete_refused_while_students_are_active(client, admin_headers, factory):
    subject = factory.subject()
    cls = factory.school_class(subjects=[subject])
    enrollment = factory.enrollment(factory.student(), cls)
    factory.entry(cls, subject, day=0, start="08:00", end="09:00")

    refused = client.delete(f"/api/classes/{cls.id}", headers=admin_headers)
    assert refused.status_code == 400
    assert refused.json()["code"] == "CLASS_IN_USE"

    client.put(f"/api/enrollments/{enrollment.id}", headers=admin_headers, json={"status": "inactive"})
    deleted = client.delete(f"/api/classes/{cls.id}", headers=admin_headers)
    assert deleted.status_code == 200
    assert client.get(f"/api/classes/{cls.id}", headers=admin_headers).status_code == 404
    assert client.get("/api/schedule", headers=admin_headers).json() == []


def test_class_students_lists_active_only(client, admin_headers, factory):
    cls = factory.school_class()
    factory.enrollment(factory.student("Amina"), cls)
    factory.enrollment(factory.student("Bilal"), cls, status="graduated")

    resp = client.get(f"/api/classes/{cls.id}/students", headers=admin_headers)
    assert [s["name"] for s in resp.json()] == ["Amina"]


def test_same_start_twice_is_a_duplicate_slot(client, admin_headers, factory):
    school = factory.school()
    quran = factory.subject("Quran")
    slot = {"subjectId": quran.id, "dayOfWeek": 2, "startTime": "08:00", "endTime": "09:00"}

    resp = client.post(
        "/api/classes",
        headers=admin_headers,
        json=_class_body(school, [quran], schedule=[slot, {**slot, "endTime": "08:45"}]),
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "DUPLICATE_SCHEDULE_SLOT"


def test_other_integrity_errors_are_not_reported_as_duplicate_slots(db, factory):
    quran = factory.subject("Quran")
    cls = factory.school_class(subjects=[quran])
    db.add(
        ScheduleEntry(class_id=cls.id, subject_id=quran.id, day_of_week=9, start_time=time(8, 0), end_time=time(9, 0))
    )

    with pytest.raises(IntegrityError):
        classes_routes._commit_schedule(db)
