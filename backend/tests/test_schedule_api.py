"""
Schedule endpoints: validation, conflict report, room utilization and views
"""
import pytest


@pytest.fixture()
def timetable(factory):
    """Two classes of one teacher sharing room A1 on Monday, overlapping by half an hour."""
    school = factory.school("Dar al-Huda")
    teacher = factory.teacher("Ustadh Bilal", schools=[school])
    quran = factory.subject("Quran")
    fiqh = factory.subject("Fiqh")
    hifz = factory.school_class("Hifz", school=school, teacher=teacher, subjects=[quran])
    fiqh_class = factory.school_class("Fiqh 1", school=school, teacher=teacher, subjects=[fiqh])
    first = factory.entry(hifz, quran, day=1, start="08:00", end="09:30", room="A1")
    second = factory.entry(fiqh_class, fiqh, day=1, start="09:00", end="10:00", room="a1")
    factory.entry(fiqh_class, fiqh, day=3, start="08:00", end="09:00", room="B2")
    factory.enrollment(factory.student("Amina"), hifz)
    return {
        "school": school,
        "teacher": teacher,
        "quran": quran,
        "hifz": hifz,
        "fiqh_class": fiqh_class,
        "first": first,
        "second": second,
    }


def test_validate_reports_conflicts_without_blocking(client, admin_headers, factory, timetable):
    other = factory.school_class("Tajweed", school=timetable["school"])
    resp = client.post(
        "/api/schedule/validate",
        headers=admin_headers,
        json={
            "classId": other.id,
            "subjectId": timetable["quran"].id,
            "dayOfWeek": 1,
            "startTime": "09:15",
            "endTime": "09:45",
            "room": "A1",
        },
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["valid"] is False
    assert body["conflicts"] == [
        "Room conflict: A1 is already booked at 08:00 - 09:30 for class Hifz",
        "Room conflict: A1 is already booked at 09:00 - 10:00 for class Fiqh 1",
    ]
    assert body["schedule"]["startTime"] == "09:15"


def test_validate_touching_slot_is_valid(client, admin_headers, timetable):
    resp = client.post(
        "/api/schedule/validate",
        headers=admin_headers,
        json={
            "classId": timetable["hifz"].id,
            "subjectId": timetable["quran"].id,
            "dayOfWeek": 1,
            "startTime": "10:00",
            "endTime": "11:00",
            "room": "A1",
        },
    )
    assert resp.json()["valid"] is True
    assert resp.json()["conflicts"] == []


def test_validate_bad_range_and_unknown_class(client, admin_headers, timetable):
    bad = client.post(
        "/api/schedule/validate",
        headers=admin_headers,
        json={"classId": timetable["hifz"].id, "subjectId": 1, "dayOfWeek": 1, "startTime": "11:00", "endTime": "10:00"},
    )
    assert bad.status_code == 400
    assert bad.json()["message"] == "End time must be after start time"

    unknown = client.post(
        "/api/schedule/validate",
        headers=admin_headers,
        json={"classId": 999, "subjectId": 1, "dayOfWeek": 1, "startTime": "10:00", "endTime": "11:00"},
    )
    assert unknown.status_code == 400
    assert unknown.json()["code"] == "CLASS_NOT_FOUND"


def test_validate_needs_admin(client, teacher_headers, timetable):
    resp = client.post(
        "/api/schedule/validate",
        headers=teacher_headers,
        json={"classId": timetable["hifz"].id, "subjectId": 1, "dayOfWeek": 1, "startTime": "10:00", "endTime": "11:00"},
    )
    assert resp.status_code == 403


def test_conflict_report_lists_both_sides(client, admin_headers, timetable):
    body = client.get("/api/schedule/conflicts", headers=admin_headers).json()
    assert body["totalConflicts"] == 2
    by_id = {c["scheduleId"]: c for c in body["conflicts"]}
    assert set(by_id) == {timetable["first"].id, timetable["second"].id}

    first = by_id[timetable["first"].id]
    assert first["className"] == "Hifz"
    assert first["subjectName"] == "Quran"
    assert first["dayName"] == "Monday"
    assert first["timeRange"] == "08:00 - 09:30"
    assert first["conflicts"] == [
        "Room conflict: A1 is already booked at 09:00 - 10:00 for class Fiqh 1",
        "Teacher conflict: Ustadh Bilal is already scheduled at 09:00 - 10:00",
    ]


def test_room_utilization(client, admin_headers, timetable):
    body = client.get("/api/schedule/rooms", headers=admin_headers).json()
    assert body["totalRooms"] == 2
    a1, b2 = body["rooms"]
    assert a1["room"] == "A1"
    assert a1["totalHours"] == 2.5
    assert [s["className"] for s in a1["sessions"]] == ["Hifz", "Fiqh 1"]
    assert a1["sessions"][0]["duration"] == 1.5
    # room and teacher double-bookings of both sessions
    assert len(a1["conflicts"]) == 4
    assert b2 == {
        "room": "B2",
        "totalHours": 1.0,
        "sessions": [
            {
                "classId": timetable["fiqh_class"].id,
                "className": "Fiqh 1",
                "subjectName": "Fiqh",
                "dayOfWeek": 3,
                "dayName": "Wednesday",
                "timeRange": "08:00 - 09:00",
                "duration": 1.0,
            }
        ],
        "conflicts": [],
    }


def test_filtered_schedule_groups_by_class(client, admin_headers, timetable):
    body = client.get("/api/schedule", headers=admin_headers, params={"dayOfWeek": 1}).json()
    assert [g["className"] for g in body] == ["Hifz", "Fiqh 1"]
    hifz = body[0]
    assert hifz["teacher"] == {"id": timetable["teacher"].id, "name": "Ustadh Bilal"}
    assert hifz["school"]["name"] == "Dar al-Huda"
    assert [s["name"] for s in hifz["students"]] == ["Amina"]

    by_room = client.get("/api/schedule", headers=admin_headers, params={"room": "b2"}).json()
    assert [len(g["schedule"]) for g in by_room] == [1]


def test_weekly_includes_day_names(client, admin_headers, timetable):
    body = client.get("/api/schedule/weekly", headers=admin_headers).json()
    assert body["dayNames"][0] == "Sunday"
    assert len(body["schedule"]) == 2


def test_class_teacher_and_school_views(client, admin_headers, timetable):
    cls = client.get(f"/api/schedule/class/{timetable['fiqh_class'].id}", headers=admin_headers).json()
    assert cls["className"] == "Fiqh 1"
    assert [e["dayOfWeek"] for e in cls["schedule"]] == [1, 3]

    teacher = client.get(f"/api/schedule/teacher/{timetable['teacher'].id}", headers=admin_headers).json()
    assert teacher["totalClasses"] == 2
    assert len(teacher["schedule"]) == 3
    assert teacher["schedule"][0]["school"] == "Dar al-Huda"

    school = client.get(f"/api/schedule/school/{timetable['school'].id}", headers=admin_headers).json()
    assert [d["day"] for d in school["scheduleByDay"]][:2] == ["Sunday", "Monday"]
    assert len(school["scheduleByDay"][1]["classes"]) == 2
    assert school["allSchedules"][0]["teacher"] == "Ustadh Bilal"

    missing = client.get("/api/schedule/teacher/999", headers=admin_headers)
    assert missing.status_code == 404
    assert missing.json()["message"] == "Teacher not found"


def test_room_filter_matches_underscore_literally(client, admin_headers, factory):
    quran = factory.subject("Quran")
    cls = factory.school_class(subjects=[quran])
    factory.entry(cls, quran, day=2, start="08:00", end="09:00", room="A_1")
    factory.entry(cls, quran, day=2, start="10:00", end="11:00", room="AB1")

    body = client.get("/api/schedule", headers=admin_headers, params={"room": "a_1"}).json()
    assert [e["room"] for group in body for e in group["schedule"]] == ["A_1"]
