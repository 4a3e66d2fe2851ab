"""
Enrollment capacity guard and lifecycle bookkeeping
"""
from datetime import date

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError

from core.errors import ConflictError, NotFoundError, ReferenceNotFoundError, ValidationError
from models.enrollment import Enrollment
from models.school_class import SchoolClass
from services import enrollment_lifecycle
from services.enrollment_capacity import CapacityPolicy, active_count, find_count_drift, recompute_current_students


YEAR = "2024-2025"
TODAY = date(2024, 9, 1)


def _enroll(db, student, cls, **kw):
    return enrollment_lifecycle.create_enrollment(
        db, student_id=student.id, class_id=cls.id, enrollment_date=TODAY, academic_year=YEAR, **kw
    )


def _stored_count(db, cls) -> int:
    db.expire_all()
    return db.get(SchoolClass, cls.id).current_students


class TestCreate:
    def test_capacity_boundary(self, db, factory):
        cls = factory.school_class(max_students=2)
        first, second, third = factory.student(), factory.student(), factory.student()

        _enroll(db, first, cls)
        _enroll(db, second, cls)
        assert _stored_count(db, cls) == 2

        with pytest.raises(ConflictError) as exc:
            _enroll(db, third, cls)
        assert exc.value.code == "CLASS_FULL"
        assert exc.value.message == "Class is full. Maximum students reached."
        assert _stored_count(db, cls) == 2

    def test_duplicate_active_rejected_before_capacity(self, db, factory):
        cls = factory.school_class(max_students=1)
        student = factory.student()
        _enroll(db, student, cls)

        with pytest.raises(ConflictError) as exc:
            _enroll(db, student, cls)
        assert exc.value.code == "ALREADY_ENROLLED"
        assert exc.value.message == "Student is already enrolled in this class"

    def test_inactive_history_does_not_block_reenrollment(self, db, factory):
        cls = factory.school_class(max_students=1)
        student = factory.student()
        factory.enrollment(student, cls, status="inactive")

        enrollment = _enroll(db, student, cls)
        assert enrollment.status == "active"
        assert _stored_count(db, cls) == 1

    def test_missing_references(self, db, factory):
        cls = factory.school_class()
        student = factory.student()
        with pytest.raises(ReferenceNotFoundError, match="Student not found"):
            enrollment_lifecycle.create_enrollment(
                db, student_id=999, class_id=cls.id, enrollment_date=TODAY, academic_year=YEAR
            )
        with pytest.raises(ReferenceNotFoundError, match="Class not found"):
            enrollment_lifecycle.create_enrollment(
                db, student_id=student.id, class_id=999, enrollment_date=TODAY, academic_year=YEAR
            )

    def test_custom_policy(self, db, factory):
        class NoSeats(CapacityPolicy):
            def admits(self, *, active_count, max_students):
                return False

        cls = factory.school_class(max_students=10)
        with pytest.raises(ConflictError) as exc:
            _enroll(db, factory.student(), cls, policy=NoSeats())
        assert exc.value.code == "CLASS_FULL"

    def test_partial_unique_index_rejects_second_active_row(self, db, factory):
        cls = factory.school_class()
        student = factory.student()
        factory.enrollment(student, cls)

        db.add(Enrollment(student_id=student.id, class_id=cls.id, status="active", enrollment_date=TODAY, academic_year=YEAR))
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()

        db.add(Enrollment(student_id=student.id, class_id=cls.id, status="graduated", enrollment_date=TODAY, academic_year=YEAR))
        db.commit()


class TestBulk:
    def test_partial_success(self, db, factory):
        cls = factory.school_class(max_students=2)
        already = factory.student("Amina")
        fresh = factory.student("Yusuf")
        late = factory.student("Maryam")
        factory.enrollment(already, cls)

        result = enrollment_lifecycle.bulk_create_enrollments(
            db,
            student_ids=[already.id, 404, fresh.id, late.id],
            class_id=cls.id,
            enrollment_date=TODAY,
            academic_year=YEAR,
        )

        assert [e.student_id for e in result.created] == [fresh.id]
        assert result.errors == [
            "Student Amina is already enrolled in this class",
            "Student with ID 404 not found",
            "Class is full. Cannot enroll student Maryam",
        ]
        assert _stored_count(db, cls) == 2
        assert active_count(db, cls.id) == 2

    def test_failed_write_is_reported_and_batch_continues(self, db, factory, monkeypatch):
        cls = factory.school_class(max_students=5)
        first, second, third = factory.student(), factory.student(), factory.student()

        real_commit = db.commit
        calls = {"n": 0}

        def flaky_commit():
            calls["n"] += 1
            if calls["n"] == 2:
                raise OperationalError("COMMIT", {}, Exception("disk I/O error"))
            real_commit()

        monkeypatch.setattr(db, "commit", flaky_commit)
        result = enrollment_lifecycle.bulk_create_enrollments(
            db,
            student_ids=[first.id, second.id, third.id],
            class_id=cls.id,
            enrollment_date=TODAY,
            academic_year=YEAR,
        )
        monkeypatch.undo()

        assert [e.student_id for e in result.created] == [first.id, third.id]
        assert result.errors == [f"Failed to enroll student with ID {second.id}"]
        assert active_count(db, cls.id) == 2
        assert _stored_count(db, cls) == 2

    def test_empty_list(self, db, factory):
        cls = factory.school_class()
        with pytest.raises(ValidationError) as exc:
            enrollment_lifecycle.bulk_create_enrollments(
                db, student_ids=[], class_id=cls.id, enrollment_date=TODAY, academic_year=YEAR
            )
        assert exc.value.message == "studentIds must be a non-empty array"

    def test_missing_class(self, db, factory):
        with pytest.raises(ReferenceNotFoundError):
            enrollment_lifecycle.bulk_create_enrollments(
                db, student_ids=[factory.student().id], class_id=999, enrollment_date=TODAY, academic_year=YEAR
            )


class TestStatus:
    def test_leaving_active_frees_a_seat(self, db, factory):
        cls = factory.school_class(max_students=1)
        enrollment = factory.enrollment(factory.student(), cls)

        enrollment_lifecycle.update_enrollment_status(db, enrollment_id=enrollment.id, status="graduated")
        assert _stored_count(db, cls) == 0
        _enroll(db, factory.student(), cls)
        assert _stored_count(db, cls) == 1

    def test_reactivation_rechecks_capacity(self, db, factory):
        cls = factory.school_class(max_students=1)
        old = factory.enrollment(factory.student(), cls, status="inactive")
        factory.enrollment(factory.student(), cls)

        with pytest.raises(ConflictError) as exc:
            enrollment_lifecycle.update_enrollment_status(db, enrollment_id=old.id, status="active")
        assert exc.value.code == "CLASS_FULL"
        db.expire_all()
        assert db.get(Enrollment, old.id).status == "inactive"

    def test_reactivation_rejects_second_active_row(self, db, factory):
        cls = factory.school_class(max_students=5)
        student = factory.student()
        old = factory.enrollment(student, cls, status="inactive")
        factory.enrollment(student, cls)

        with pytest.raises(ConflictError) as exc:
            enrollment_lifecycle.update_enrollment_status(db, enrollment_id=old.id, status="active")
        assert exc.value.code == "ALREADY_ENROLLED"

    def test_invalid_status(self, db, factory):
        enrollment = factory.enrollment(factory.student(), factory.school_class())
        with pytest.raises(ValidationError) as exc:
            enrollment_lifecycle.update_enrollment_status(db, enrollment_id=enrollment.id, status="expelled")
        assert exc.value.code == "INVALID_STATUS"

    def test_same_status_is_noop(self, db, factory):
        cls = factory.school_class(max_students=1)
        enrollment = factory.enrollment(factory.student(), cls)
        out = enrollment_lifecycle.update_enrollment_status(db, enrollment_id=enrollment.id, status="active")
        assert out.status == "active"
        assert _stored_count(db, cls) == 1

    def test_missing(self, db):
        with pytest.raises(NotFoundError):
            enrollment_lifecycle.update_enrollment_status(db, enrollment_id=1, status="inactive")

    def test_every_status_can_reach_every_other(self):
        for current in ("active", "inactive", "transferred", "graduated"):
            for target in ("active", "inactive", "transferred", "graduated"):
                assert enrollment_lifecycle.can_transition(current, target) is (current != target)


class TestTransfer:
    def test_bookkeeping(self, db, factory):
        source = factory.school_class(max_students=5)
        target = factory.school_class(max_students=5)
        student = factory.student()
        enrollment = factory.enrollment(student, source)

        new = enrollment_lifecycle.transfer_enrollment(db, enrollment_id=enrollment.id, new_class_id=target.id)

        db.expire_all()
        assert db.get(Enrollment, enrollment.id).status == "transferred"
        assert new.class_id == target.id
        assert new.status == "active"
        assert new.academic_year == enrollment.academic_year
        assert new.enrollment_date == date.today()
        assert db.get(SchoolClass, source.id).current_students == 0
        assert db.get(SchoolClass, target.id).current_students == 1

    def test_full_target_leaves_everything_unchanged(self, db, factory):
        source = factory.school_class(max_students=5)
        target = factory.school_class(max_students=1)
        factory.enrollment(factory.student(), target)
        enrollment = factory.enrollment(factory.student(), source)

        with pytest.raises(ConflictError) as exc:
            enrollment_lifecycle.transfer_enrollment(db, enrollment_id=enrollment.id, new_class_id=target.id)
        assert exc.value.message == "New class is full. Maximum students reached."

        db.expire_all()
        assert db.get(Enrollment, enrollment.id).status == "active"
        assert db.get(SchoolClass, source.id).current_students == 1
        assert db.get(SchoolClass, target.id).current_students == 1
        assert len(db.execute(select(Enrollment).where(Enrollment.class_id == target.id)).scalars().all()) == 1

    def test_already_in_target(self, db, factory):
        source = factory.school_class()
        target = factory.school_class()
        student = factory.student()
        enrollment = factory.enrollment(student, source)
        factory.enrollment(student, target)

        with pytest.raises(ConflictError) as exc:
            enrollment_lifecycle.transfer_enrollment(db, enrollment_id=enrollment.id, new_class_id=target.id)
        assert exc.value.message == "Student is already enrolled in the new class"

    def test_missing_target(self, db, factory):
        enrollment = factory.enrollment(factory.student(), factory.school_class())
        with pytest.raises(ReferenceNotFoundError, match="New class not found"):
            enrollment_lifecycle.transfer_enrollment(db, enrollment_id=enrollment.id, new_class_id=999)

    def test_only_active_can_transfer(self, db, factory):
        enrollment = factory.enrollment(factory.student(), factory.school_class(), status="graduated")
        with pytest.raises(ConflictError) as exc:
            enrollment_lifecycle.transfer_enrollment(
                db, enrollment_id=enrollment.id, new_class_id=factory.school_class().id
            )
        assert exc.value.code == "ENROLLMENT_NOT_ACTIVE"


class TestDeletes:
    def test_delete_enrollment_recounts(self, db, factory):
        cls = factory.school_class()
        enrollment = factory.enrollment(factory.student(), cls)
        enrollment_lifecycle.delete_enrollment(db, enrollment_id=enrollment.id)
        assert _stored_count(db, cls) == 0

    def test_delete_student_recounts_every_class(self, db, factory):
        a = factory.school_class()
        b = factory.school_class()
        student = factory.student()
        stays = factory.student()
        factory.enrollment(student, a)
        factory.enrollment(student, b)
        factory.enrollment(stays, a)

        enrollment_lifecycle.delete_student(db, student_id=student.id)

        assert _stored_count(db, a) == 1
        assert _stored_count(db, b) == 0
        assert db.execute(select(Enrollment).where(Enrollment.student_id == student.id)).first() is None


def test_drift_is_detected_and_repaired(db, factory):
    cls = factory.school_class()
    factory.enrollment(factory.student(), cls)
    db.get(SchoolClass, cls.id).current_students = 7
    db.commit()

    (drift,) = find_count_drift(db)
    assert (drift.class_id, drift.stored, drift.actual) == (cls.id, 7, 1)

    recompute_current_students(db, [cls.id])
    db.commit()
    assert find_count_drift(db) == []
