from __future__ import annotations
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Integer, Text, JSON, ForeignKey
from sqlalchemy.orm import relationship
from .db import Base


SESSION_ACTIVE = "active"
SESSION_CLOSED = "closed"


class Cycle(Base):
	__tablename__ = "cycles"
	id = Column(Integer, primary_key=True)
	name = Column(String(256), nullable=False)


class ClassSession(Base):
	__tablename__ = "sessions"
	id = Column(Integer, primary_key=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
	# Stored uppercase; students may type it in any case
	session_code = Column(String(16), nullable=False, index=True)
	title = Column(String(256), nullable=True)
	status = Column(String(16), default=SESSION_ACTIVE, nullable=False)
	# {"markdown": str, "generated_at": ISO-8601 str}
	ai_report = Column(JSON(none_as_null=True), nullable=True)
	cycle_id = Column(Integer, ForeignKey("cycles.id"), nullable=False)

	cycle = relationship(Cycle)


class Student(Base):
	__tablename__ = "students"
	id = Column(Integer, primary_key=True)
	full_name = Column(String(256), nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Response(Base):
	__tablename__ = "responses"
	id = Column(Integer, primary_key=True)
	session_id = Column(Integer, ForeignKey("sessions.id"), nullable=False, index=True)
	student_id = Column(Integer, ForeignKey("students.id"), nullable=False)
	# {"q1": achievement, "q2": skill, "q3": lesson}
	answers = Column(JSON, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

	student = relationship(Student)


class CurriculumItem(Base):
	__tablename__ = "curriculum_items"
	id = Column(Integer, primary_key=True)
	# e.g. "RA" (learning outcome) or "CE" (evaluation criterion)
	type = Column(String(32), nullable=False)
	description = Column(Text, nullable=False)
	embedding = Column(JSON(none_as_null=True), nullable=True)
