"""
eMadrasa API - test configuration and fixtures
"""
import os
from datetime import date, time
from typing import Generator

import pytest

# Settings are read at import time.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret-key-for-testing"
os.environ["ENVIRONMENT"] = "test"
os.environ["AUTO_CREATE_SCHEMA"] = "false"
os.environ["ENABLE_ENROLLMENT_TRANSFER"] = "true"

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from api.routes import auth as auth_routes
from core.database import ENGINE, SessionLocal, get_db
from core.security import create_access_token
from main import app
from models import (
    Base,
    ClassSubject,
    Enrollment,
    ScheduleEntry,
    School,
    SchoolClass,
    Student,
    Subject,
    Teacher,
    TeacherSchool,
    User,
)
from services.enrollment_capacity import recompute_current_students


ACADEMIC_YEAR = "2024-2025"


@pytest.fixture()
def db() -> Generator[Session, None, None]:
    """Fresh schema and session for each test"""
    Base.metadata.create_all(bind=ENGINE)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        Base.metadata.drop_all(bind=ENGINE)


@pytest.fixture()
def client(db: Session) -> Generator[TestClient, None, None]:
    """Test client sharing the test session"""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    auth_routes.login_throttle.reset()
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        auth_routes.login_throttle.reset()


def _user(db: Session, *, username: str, role: str, password_hash: str = "not-a-bcrypt-hash") -> User:
    user = User(username=username, password_hash=password_hash, role=role, name=username.title(), is_active=True)
    db.add(user)
    db.commit()
    return user


def _headers(user: User) -> dict[str, str]:
    token, _ = create_access_token(user_id=user.id, username=user.username, role=user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def admin_user(db: Session) -> User:
    return _user(db, username="admin", role="admin")


@pytest.fixture()
def teacher_user(db: Session) -> User:
    return _user(db, username="ustadh", role="teacher")


@pytest.fixture()
def admin_headers(admin_user: User) -> dict[str, str]:
    return _headers(admin_user)


@pytest.fixture()
def teacher_headers(teacher_user: User) -> dict[str, str]:
    return _headers(teacher_user)


class Factory:
    """Commits every row it creates so the API sees it."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self._seq = 0

    def _next(self) -> int:
        self._seq += 1
        return self._seq

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        return obj

    def school(self, name: str | None = None, **kw) -> School:
        return self._save(
            School(
                name=name or f"School {self._next()}",
                school_type=kw.pop("school_type", "madrasa"),
                founded_year=kw.pop("founded_year", 1990),
                **kw,
            )
        )

    def teacher(self, name: str | None = None, *, schools: list[School] = (), **kw) -> Teacher:
        teacher = self._save(Teacher(name=name or f"Teacher {self._next()}", join_date=date(2020, 1, 1), **kw))
        for school in schools:
            self.db.add(TeacherSchool(teacher_id=teacher.id, school_id=school.id))
        self.db.commit()
        return teacher

    def subject(self, name: str | None = None, **kw) -> Subject:
        return self._save(
            Subject(
                name=name or f"Subject {self._next()}",
                category=kw.pop("category", "quran"),
                level=kw.pop("level", "beginner"),
                **kw,
            )
        )

    def student(self, name: str | None = None, **kw) -> Student:
        name = name or f"Student {self._next()}"
        return self._save(
            Student(
                name=name,
                full_name=kw.pop("full_name", f"{name} Full"),
                gender=kw.pop("gender", "male"),
                enrollment_date=kw.pop("enrollment_date", date(2024, 9, 1)),
                academic_year=kw.pop("academic_year", ACADEMIC_YEAR),
                level=kw.pop("level", "beginner"),
                **kw,
            )
        )

    def school_class(
        self,
        name: str | None = None,
        *,
        school: School | None = None,
        teacher: Teacher | None = None,
        subjects: list[Subject] = (),
        max_students: int = 30,
    ) -> SchoolClass:
        school = school or self.school()
        cls = self._save(
            SchoolClass(
                name=name or f"Class {self._next()}",
                school_id=school.id,
                teacher_id=teacher.id if teacher is not None else None,
                max_students=max_students,
                current_students=0,
                academic_year=ACADEMIC_YEAR,
            )
        )
        for subject in subjects:
            self.db.add(ClassSubject(class_id=cls.id, subject_id=subject.id))
        self.db.commit()
        return cls

    def entry(
        self,
        school_class: SchoolClass,
        subject: Subject,
        *,
        day: int,
        start: str,
        end: str,
        room: str | None = None,
    ) -> ScheduleEntry:
        sh, sm = (int(p) for p in start.split(":"))
        eh, em = (int(p) for p in end.split(":"))
        return self._save(
            ScheduleEntry(
                class_id=school_class.id,
                subject_id=subject.id,
                day_of_week=day,
                start_time=time(sh, sm),
                end_time=time(eh, em),
                room=room,
            )
        )

    def enrollment(self, student: Student, school_class: SchoolClass, *, status: str = "active") -> Enrollment:
        enrollment = Enrollment(
            student_id=student.id,
            class_id=school_class.id,
            status=status,
            enrollment_date=date(2024, 9, 1),
            academic_year=ACADEMIC_YEAR,
        )
        self.db.add(enrollment)
        self.db.flush()
        recompute_current_students(self.db, [school_class.id])
        self.db.commit()
        return enrollment


@pytest.fixture()
def factory(db: Session) -> Factory:
    return Factory(db)
