"""
School and teacher rosters, and the predefined subject catalog
"""
import pytest


@pytest.fixture()
def campus(factory):
    """Two schools; one teacher working in both; rosters built from active enrollments."""

    main = factory.school("Dar al-Huda")
    branch = factory.school("Dar al-Noor")
    bilal = factory.teacher("Ustadh Bilal", schools=[main, branch])
    idle = factory.teacher("Ustadh Umar", schools=[main])
    quran, fiqh = factory.subject("Quran"), factory.subject("Fiqh")

    alif = factory.school_class("Alif", school=main, teacher=bilal, subjects=[quran, fiqh], max_students=10)
    ba = factory.school_class("Ba", school=main, subjects=[quran])
    jim = factory.school_class("Jim", school=branch, teacher=bilal, subjects=[fiqh])

    amina, bakr, zaid, yusuf = (factory.student(n) for n in ("Amina", "Bakr", "Zaid", "Yusuf"))
    factory.enrollment(amina, alif)
    factory.enrollment(amina, ba)
    factory.enrollment(bakr, alif)
    factory.enrollment(zaid, alif, status="inactive")
    factory.enrollment(yusuf, jim)
    return {"main": main, "branch": branch, "bilal": bilal, "idle": idle, "alif": alif}


def test_school_classes_count_active_students(client, admin_headers, campus):
    body = client.get(f"/api/schools/{campus['main'].id}/classes", headers=admin_headers).json()
    assert [c["name"] for c in body] == ["Alif", "Ba"]
    alif, ba = body
    assert alif["studentsCount"] == 2
    assert alif["subjectsCount"] == 2
    assert alif["maxStudents"] == 10
    assert alif["teacher"] == {"id": campus["bilal"].id, "name": "Ustadh Bilal"}
    assert alif["school"] == {"id": campus["main"].id, "name": "Dar al-Huda"}
    assert ba["studentsCount"] == 1
    assert ba["teacher"] is None


def test_school_students_are_distinct_with_class_names(client, admin_headers, campus):
    body = client.get(f"/api/schools/{campus['main'].id}/students", headers=admin_headers).json()
    assert [(s["name"], s["classes"]) for s in body] == [("Amina", ["Alif", "Ba"]), ("Bakr", ["Alif"])]
    assert body[0]["fullName"] == "Amina Full"


def test_school_teachers_count_classes_in_that_school(client, admin_headers, campus):
    body = client.get(f"/api/schools/{campus['main'].id}/teachers", headers=admin_headers).json()
    assert [(t["name"], t["classesCount"]) for t in body] == [("Ustadh Bilal", 1), ("Ustadh Umar", 0)]


def test_teacher_classes_and_students_span_schools(client, admin_headers, campus):
    teacher_id = campus["bilal"].id
    classes = client.get(f"/api/teachers/{teacher_id}/classes", headers=admin_headers).json()
    assert [(c["name"], c["school"]["name"]) for c in classes] == [("Alif", "Dar al-Huda"), ("Jim", "Dar al-Noor")]

    students = client.get(f"/api/teachers/{teacher_id}/students", headers=admin_headers).json()
    assert [(s["name"], s["classes"]) for s in students] == [
        ("Amina", ["Alif"]),
        ("Bakr", ["Alif"]),
        ("Yusuf", ["Jim"]),
    ]

    assert client.get(f"/api/teachers/{campus['idle'].id}/students", headers=admin_headers).json() == []


def test_rosters_of_missing_parents_are_404(client, admin_headers):
    assert client.get("/api/schools/999/classes", headers=admin_headers).status_code == 404
    assert client.get("/api/schools/999/students", headers=admin_headers).status_code == 404
    assert client.get("/api/teachers/999/classes", headers=admin_headers).status_code == 404


def test_predefined_catalog(client, teacher_headers):
    body = client.get("/api/subjects/predefined", headers=teacher_headers).json()
    assert len(body) == 15
    assert body[0] == {"index": 0, "name": "Quran", "nameArabic": "القرآن الكريم", "category": "quran"}


def test_bulk_create_from_catalog_collects_errors(client, admin_headers, factory):
    factory.subject("Tajweed")
    resp = client.post("/api/subjects/bulk-create", headers=admin_headers, json={"subjectIndices": [0, 2, 99, 0]})
    assert resp.status_code == 200
    body = resp.json()
    assert [s["name"] for s in body["created"]] == ["Quran"]
    assert body["created"][0]["level"] == "beginner"
    assert body["errors"] == [
        'Subject "Tajweed" already exists',
        "Invalid subject index: 99",
        'Subject "Quran" already exists',
    ]

    grouped = client.get("/api/subjects/categories", headers=admin_headers).json()
    assert list(grouped) == ["quran"]
    assert [s["name"] for s in grouped["quran"]] == ["Quran", "Tajweed"]


def test_bulk_create_needs_admin_and_a_list(client, admin_headers, teacher_headers):
    assert (
        client.post("/api/subjects/bulk-create", headers=teacher_headers, json={"subjectIndices": [0]}).status_code
        == 403
    )
    bad = client.post("/api/subjects/bulk-create", headers=admin_headers, json={"subjectIndices": "0"})
    assert bad.status_code == 400
    assert bad.json()["code"] == "VALIDATION_ERROR"
