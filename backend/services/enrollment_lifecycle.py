from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import delete as sa_delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from core.errors import ConflictError, NotFoundError, ReferenceNotFoundError, ValidationError
from models.enrollment import ENROLLMENT_STATUSES, Enrollment
from models.student import Student
from services.enrollment_capacity import (
    DEFAULT_CAPACITY_POLICY,
    REJECT_DUPLICATE,
    REJECT_FULL,
    CapacityPolicy,
    admission_rejection,
    lock_class,
    recompute_current_students,
)


logger = logging.getLogger(__name__)


# Administrative corrections are allowed in every direction. Tighten by
# removing targets here; moving into "active" always re-checks admission.
ALLOWED_STATUS_TRANSITIONS: dict[str, frozenset[str]] = {
    s: frozenset(t for t in ENROLLMENT_STATUSES if t != s) for s in ENROLLMENT_STATUSES
}

ALREADY_ENROLLED = "Student is already enrolled in this class"
CLASS_FULL = "Class is full. Maximum students reached."


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_STATUS_TRANSITIONS.get(current, frozenset())


def _admission_error(reason: str, *, duplicate_message: str, full_message: str) -> ConflictError:
    if reason == REJECT_DUPLICATE:
        return ConflictError(duplicate_message, code="ALREADY_ENROLLED")
    return ConflictError(full_message, code="CLASS_FULL")


def _commit(db: Session, *, duplicate_message: str) -> None:
    """Commit, mapping a partial-unique-index violation to the duplicate conflict."""

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.info("Active enrollment rejected by unique index: %s", exc.orig)
        raise ConflictError(duplicate_message, code="ALREADY_ENROLLED") from exc


def create_enrollment(
    db: Session,
    *,
    student_id: int,
    class_id: int,
    enrollment_date: date,
    academic_year: str,
    policy: CapacityPolicy = DEFAULT_CAPACITY_POLICY,
) -> Enrollment:
    if db.get(Student, student_id) is None:
        raise ReferenceNotFoundError("Student not found", code="STUDENT_NOT_FOUND")
    school_class = lock_class(db, class_id)
    if school_class is None:
        raise ReferenceNotFoundError("Class not found", code="CLASS_NOT_FOUND")

    reason = admission_rejection(db, student_id=student_id, school_class=school_class, policy=policy)
    if reason is not None:
        db.rollback()
        logger.info("Enrollment rejected student_id=%s class_id=%s reason=%s", student_id, class_id, reason)
        raise _admission_error(reason, duplicate_message=ALREADY_ENROLLED, full_message=CLASS_FULL)

    enrollment = Enrollment(
        student_id=student_id,
        class_id=school_class.id,
        status="active",
        enrollment_date=enrollment_date,
        academic_year=academic_year,
    )
    db.add(enrollment)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError(ALREADY_ENROLLED, code="ALREADY_ENROLLED") from exc
    recompute_current_students(db, [school_class.id])
    _commit(db, duplicate_message=ALREADY_ENROLLED)

    logger.info("Enrollment created id=%s student_id=%s class_id=%s", enrollment.id, student_id, class_id)
    return enrollment


@dataclass
class BulkEnrollmentResult:
    created: list[Enrollment] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def _bulk_admit_one(
    db: Session,
    *,
    student_id: int,
    class_id: int,
    enrollment_date: date,
    academic_year: str,
    policy: CapacityPolicy,
) -> Enrollment | str:
    """Admit and commit one student; returns the new row or the error message."""

    student = db.get(Student, student_id)
    if student is None:
        return f"Student with ID {student_id} not found"

    school_class = lock_class(db, class_id)
    reason = admission_rejection(db, student_id=student.id, school_class=school_class, policy=policy)
    if reason == REJECT_DUPLICATE:
        db.rollback()
        return f"Student {student.name} is already enrolled in this class"
    if reason == REJECT_FULL:
        db.rollback()
        return f"Class is full. Cannot enroll student {student.name}"

    enrollment = Enrollment(
        student_id=student.id,
        class_id=class_id,
        status="active",
        enrollment_date=enrollment_date,
        academic_year=academic_year,
    )
    db.add(enrollment)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return f"Student {student.name} is already enrolled in this class"
    return enrollment


def bulk_create_enrollments(
    db: Session,
    *,
    student_ids: list[int],
    class_id: int,
    enrollment_date: date,
    academic_year: str,
    policy: CapacityPolicy = DEFAULT_CAPACITY_POLICY,
) -> BulkEnrollmentResult:
    """Enroll each student independently, in order.

    Every admitted student is committed on its own, so a later failure never
    undoes an earlier success. Each admission sees the rows committed
    earlier in the same batch.
    """

    if not student_ids:
        raise ValidationError("studentIds must be a non-empty array", code="EMPTY_STUDENT_IDS")
    if lock_class(db, class_id) is None:
        raise ReferenceNotFoundError("Class not found", code="CLASS_NOT_FOUND")
    db.rollback()

    result = BulkEnrollmentResult()
    try:
        for student_id in student_ids:
            try:
                outcome = _bulk_admit_one(
                    db,
                    student_id=student_id,
                    class_id=class_id,
                    enrollment_date=enrollment_date,
                    academic_year=academic_year,
                    policy=policy,
                )
            except SQLAlchemyError:
                db.rollback()
                logger.exception("Bulk enrollment failed student_id=%s class_id=%s", student_id, class_id)
                outcome = f"Failed to enroll student with ID {student_id}"

            if isinstance(outcome, Enrollment):
                result.created.append(outcome)
            else:
                result.errors.append(outcome)
    finally:
        # Earlier students are already committed; the stored count must follow them.
        db.rollback()
        recompute_current_students(db, [class_id])
        db.commit()

    logger.info(
        "Bulk enrollment class_id=%s requested=%d created=%d errors=%d",
        class_id,
        len(student_ids),
        len(result.created),
        len(result.errors),
    )
    return result


def update_enrollment_status(
    db: Session,
    *,
    enrollment_id: int,
    status: str,
    policy: CapacityPolicy = DEFAULT_CAPACITY_POLICY,
) -> Enrollment:
    enrollment = db.get(Enrollment, enrollment_id)
    if enrollment is None:
        raise NotFoundError("Enrollment not found")
    if status not in ENROLLMENT_STATUSES:
        raise ValidationError(
            "Invalid enrollment status",
            code="INVALID_STATUS",
            details={"allowed": list(ENROLLMENT_STATUSES)},
        )
    if status == enrollment.status:
        return enrollment
    if not can_transition(enrollment.status, status):
        raise ValidationError(
            f"Cannot change enrollment status from {enrollment.status} to {status}",
            code="INVALID_STATUS_TRANSITION",
        )

    if status == "active":
        school_class = lock_class(db, enrollment.class_id)
        reason = admission_rejection(db, student_id=enrollment.student_id, school_class=school_class, policy=policy)
        if reason is not None:
            db.rollback()
            raise _admission_error(reason, duplicate_message=ALREADY_ENROLLED, full_message=CLASS_FULL)

    previous = enrollment.status
    enrollment.status = status
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError(ALREADY_ENROLLED, code="ALREADY_ENROLLED") from exc
    recompute_current_students(db, [enrollment.class_id])
    _commit(db, duplicate_message=ALREADY_ENROLLED)

    logger.info("Enrollment status changed id=%s %s -> %s", enrollment.id, previous, status)
    return enrollment


def transfer_enrollment(
    db: Session,
    *,
    enrollment_id: int,
    new_class_id: int,
    policy: CapacityPolicy = DEFAULT_CAPACITY_POLICY,
) -> Enrollment:
    """Close an active enrollment and open one in ``new_class_id``, atomically.

    The old row becomes ``transferred`` (kept as history). The new row is
    active, dated today, and keeps the old academic year. Both classes are
    recounted in the same transaction; any failure leaves everything as it
    was.
    """

    enrollment = db.get(Enrollment, enrollment_id)
    if enrollment is None:
        raise NotFoundError("Enrollment not found")
    if enrollment.status != "active":
        raise ConflictError("Only active enrollments can be transferred", code="ENROLLMENT_NOT_ACTIVE")

    old_class_id = int(enrollment.class_id)
    # Lock in id order so two opposite transfers cannot deadlock.
    locked = {cid: lock_class(db, cid) for cid in sorted({old_class_id, int(new_class_id)})}
    new_class = locked[int(new_class_id)]
    if new_class is None:
        db.rollback()
        raise ReferenceNotFoundError("New class not found", code="CLASS_NOT_FOUND")

    reason = admission_rejection(db, student_id=enrollment.student_id, school_class=new_class, policy=policy)
    if reason is not None:
        db.rollback()
        logger.info(
            "Transfer rejected enrollment_id=%s new_class_id=%s reason=%s", enrollment_id, new_class_id, reason
        )
        raise _admission_error(
            reason,
            duplicate_message="Student is already enrolled in the new class",
            full_message="New class is full. Maximum students reached.",
        )

    try:
        enrollment.status = "transferred"
        new_enrollment = Enrollment(
            student_id=enrollment.student_id,
            class_id=new_class.id,
            status="active",
            enrollment_date=date.today(),
            academic_year=enrollment.academic_year,
        )
        db.add(new_enrollment)
        db.flush()
        recompute_current_students(db, [old_class_id, new_class.id])
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("Student is already enrolled in the new class", code="ALREADY_ENROLLED") from exc
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Enrollment transferred id=%s student_id=%s from_class=%s to_class=%s new_id=%s",
        enrollment.id,
        enrollment.student_id,
        old_class_id,
        new_class.id,
        new_enrollment.id,
    )
    return new_enrollment


def delete_enrollment(db: Session, *, enrollment_id: int) -> None:
    enrollment = db.get(Enrollment, enrollment_id)
    if enrollment is None:
        raise NotFoundError("Enrollment not found")

    class_id = enrollment.class_id
    db.delete(enrollment)
    db.flush()
    recompute_current_students(db, [class_id])
    db.commit()
    logger.info("Enrollment deleted id=%s class_id=%s", enrollment_id, class_id)


def delete_student(db: Session, *, student_id: int) -> None:
    """Delete a student, its enrollments, and recount every class it touched."""

    student = db.get(Student, student_id)
    if student is None:
        raise NotFoundError("Student not found")

    class_ids = db.execute(select(Enrollment.class_id).where(Enrollment.student_id == student.id).distinct()).scalars().all()
    db.execute(sa_delete(Enrollment).where(Enrollment.student_id == student.id))
    recompute_current_students(db, class_ids)
    db.delete(student)
    db.commit()
    logger.info("Student deleted id=%s affected_classes=%s", student_id, sorted(class_ids))
