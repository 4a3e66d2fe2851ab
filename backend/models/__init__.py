from models.base import Base
from models.class_subject import ClassSubject
from models.enrollment import Enrollment
from models.schedule_entry import ScheduleEntry
from models.school import School
from models.school_class import SchoolClass
from models.student import Student
from models.subject import Subject
from models.teacher import Teacher
from models.teacher_school import TeacherSchool
from models.user import User

__all__ = [
	"Base",
	"ClassSubject",
	"Enrollment",
	"ScheduleEntry",
	"School",
	"SchoolClass",
	"Student",
	"Subject",
	"Teacher",
	"TeacherSchool",
	"User",
]
