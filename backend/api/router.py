from __future__ import annotations

from fastapi import APIRouter, Depends

from api.deps import get_current_user
from api.routes import auth, classes, enrollments, schedule, schools, students, subjects, teachers


api_router = APIRouter()
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])

# Every non-auth route needs a signed-in user; mutations add require_admin per route.
_protected = [Depends(get_current_user)]
api_router.include_router(schools.router, prefix="/schools", tags=["schools"], dependencies=_protected)
api_router.include_router(teachers.router, prefix="/teachers", tags=["teachers"], dependencies=_protected)
api_router.include_router(subjects.router, prefix="/subjects", tags=["subjects"], dependencies=_protected)
api_router.include_router(students.router, prefix="/students", tags=["students"], dependencies=_protected)
api_router.include_router(classes.router, prefix="/classes", tags=["classes"], dependencies=_protected)
api_router.include_router(enrollments.router, prefix="/enrollments", tags=["enrollments"], dependencies=_protected)
api_router.include_router(schedule.router, prefix="/schedule", tags=["schedule"], dependencies=_protected)
