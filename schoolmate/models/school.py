"""Per-tenant school tables.

Every table here is created inside each tenant schema when the tenant is
provisioned.  The set is versioned as a whole by
:data:`TENANT_SCHEMA_VERSION`; tenant schemas are created in full and are
not migrated table by table.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from schoolmate.db import TenantBase

TENANT_SCHEMA_VERSION = 3


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _uuid() -> uuid.UUID:
    return uuid.uuid4()


def _pk() -> Mapped[uuid.UUID]:
    return mapped_column(UUID(as_uuid=True), primary_key=True, default=_uuid)


def _fk(target: str, nullable: bool = False) -> Mapped[uuid.UUID]:
    return mapped_column(
        UUID(as_uuid=True), ForeignKey(target, ondelete="CASCADE"), nullable=nullable
    )


# ---------------------------------------------------------------------------
# Identity & communication
# ---------------------------------------------------------------------------


class User(TenantBase):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = _pk()
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(32), nullable=False)
    mobile_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class Holiday(TenantBase):
    __tablename__ = "holidays"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    on_date: Mapped[date] = mapped_column("date", Date, nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    is_public_holiday: Mapped[bool] = mapped_column(Boolean, nullable=False)


class Post(TenantBase):
    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    author: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class Complaint(TenantBase):
    __tablename__ = "complaints"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    author: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    is_anonymous: Mapped[bool] = mapped_column(Boolean, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    # JSON-encoded comment thread
    comments: Mapped[str] = mapped_column(Text, nullable=False, default="[]")


class OtpCode(TenantBase):
    __tablename__ = "otp_codes"

    id: Mapped[uuid.UUID] = _pk()
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    otp_code: Mapped[str] = mapped_column(String(6), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_used: Mapped[bool] = mapped_column(Boolean, default=False)
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class SchoolConfig(TenantBase):
    __tablename__ = "school_config"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    school_name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str] = mapped_column(Text, nullable=False)
    logo_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    logo_s3_key: Mapped[str | None] = mapped_column(String(500), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone_number_1: Mapped[str | None] = mapped_column(String(20), nullable=True)
    phone_number_2: Mapped[str | None] = mapped_column(String(20), nullable=True)
    website: Mapped[str | None] = mapped_column(String(255), nullable=True)


class Rule(TenantBase):
    __tablename__ = "rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    rule: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )


class FcmToken(TenantBase):
    __tablename__ = "fcm_tokens"

    id: Mapped[uuid.UUID] = _pk()
    user_id: Mapped[uuid.UUID] = _fk("users.id")
    token: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    device_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    platform: Mapped[str] = mapped_column(String(50), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )


# ---------------------------------------------------------------------------
# Academic structure
# ---------------------------------------------------------------------------


class AcademicYear(TenantBase):
    __tablename__ = "academic_years"

    id: Mapped[uuid.UUID] = _pk()
    year: Mapped[str] = mapped_column(String(9), nullable=False)  # "2024-2025"
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=False)


class Subject(TenantBase):
    __tablename__ = "subjects"

    id: Mapped[uuid.UUID] = _pk()
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)


class SchoolClass(TenantBase):
    __tablename__ = "classes"

    id: Mapped[uuid.UUID] = _pk()
    class_name: Mapped[str] = mapped_column(String(50), nullable=False)
    section_name: Mapped[str] = mapped_column(String(50), nullable=False)
    academic_year_id: Mapped[uuid.UUID] = _fk("academic_years.id")


class ClassSubject(TenantBase):
    __tablename__ = "class_subjects"
    __table_args__ = (
        UniqueConstraint("class_id", "subject_id", "academic_year_id"),
    )

    id: Mapped[uuid.UUID] = _pk()
    class_id: Mapped[uuid.UUID] = _fk("classes.id")
    subject_id: Mapped[uuid.UUID] = _fk("subjects.id")
    academic_year_id: Mapped[uuid.UUID] = _fk("academic_years.id")


class StudentAssignment(TenantBase):
    __tablename__ = "student_assignments"
    __table_args__ = (
        UniqueConstraint("student_id", "class_id", "academic_year_id"),
    )

    id: Mapped[uuid.UUID] = _pk()
    student_id: Mapped[uuid.UUID] = _fk("users.id")
    class_id: Mapped[uuid.UUID] = _fk("classes.id")
    academic_year_id: Mapped[uuid.UUID] = _fk("academic_years.id")


class StaffClassAssignment(TenantBase):
    __tablename__ = "staff_class_assignments"
    __table_args__ = (
        UniqueConstraint("staff_id", "class_id", "academic_year_id"),
    )

    id: Mapped[uuid.UUID] = _pk()
    staff_id: Mapped[uuid.UUID] = _fk("users.id")
    class_id: Mapped[uuid.UUID] = _fk("classes.id")
    academic_year_id: Mapped[uuid.UUID] = _fk("academic_years.id")
    # CLASS_TEACHER, COORDINATOR or ASSISTANT
    role: Mapped[str | None] = mapped_column(String(50), nullable=True)


class StaffSubjectAssignment(TenantBase):
    __tablename__ = "staff_subject_assignments"
    __table_args__ = (
        UniqueConstraint("staff_id", "class_subject_id", "class_id", "academic_year_id"),
    )

    id: Mapped[uuid.UUID] = _pk()
    staff_id: Mapped[uuid.UUID] = _fk("users.id")
    class_subject_id: Mapped[uuid.UUID] = _fk("class_subjects.id")
    class_id: Mapped[uuid.UUID] = _fk("classes.id")
    academic_year_id: Mapped[uuid.UUID] = _fk("academic_years.id")


# ---------------------------------------------------------------------------
# Exams & attendance
# ---------------------------------------------------------------------------


class Exam(TenantBase):
    __tablename__ = "exams"
    __table_args__ = (
        UniqueConstraint("name", "class_id", "subject_id", "academic_year_id"),
    )

    id: Mapped[uuid.UUID] = _pk()
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    subject_id: Mapped[uuid.UUID] = _fk("subjects.id")
    class_id: Mapped[uuid.UUID] = _fk("classes.id")
    academic_year_id: Mapped[uuid.UUID] = _fk("academic_years.id")
    max_marks: Mapped[int] = mapped_column(Integer, nullable=False)
    on_date: Mapped[date] = mapped_column("date", Date, nullable=False)
    result_status: Mapped[str] = mapped_column(String(20), default="NOT_STARTED")
    results_published_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class ExamSchedule(TenantBase):
    __tablename__ = "exam_schedules"
    __table_args__ = (UniqueConstraint("exam_id", "class_id"),)

    id: Mapped[uuid.UUID] = _pk()
    exam_id: Mapped[uuid.UUID] = _fk("exams.id")
    class_id: Mapped[uuid.UUID] = _fk("classes.id")
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class ExamResult(TenantBase):
    __tablename__ = "exam_results"
    __table_args__ = (UniqueConstraint("exam_id", "student_id"),)

    id: Mapped[uuid.UUID] = _pk()
    exam_id: Mapped[uuid.UUID] = _fk("exams.id")
    student_id: Mapped[uuid.UUID] = _fk("users.id")
    marks_obtained: Mapped[int] = mapped_column(Integer, nullable=False)
    grade: Mapped[str | None] = mapped_column(String(10), nullable=True)


class Attendance(TenantBase):
    __tablename__ = "attendance"
    __table_args__ = (UniqueConstraint("student_id", "class_id", "date"),)

    id: Mapped[uuid.UUID] = _pk()
    student_id: Mapped[uuid.UUID] = _fk("users.id")
    class_id: Mapped[uuid.UUID] = _fk("classes.id")
    on_date: Mapped[date] = mapped_column("date", Date, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)


# ---------------------------------------------------------------------------
# Fees
# ---------------------------------------------------------------------------


class FeesStructure(TenantBase):
    __tablename__ = "fees_structures"
    __table_args__ = (UniqueConstraint("class_id", "academic_year_id", "name"),)

    id: Mapped[uuid.UUID] = _pk()
    class_id: Mapped[uuid.UUID] = _fk("classes.id")
    academic_year_id: Mapped[uuid.UUID] = _fk("academic_years.id")
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    is_mandatory: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )


class StudentFee(TenantBase):
    __tablename__ = "student_fees"

    id: Mapped[uuid.UUID] = _pk()
    student_id: Mapped[uuid.UUID] = _fk("users.id")
    fee_structure_id: Mapped[uuid.UUID] = _fk("fees_structures.id")
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    paid_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )


class FeePayment(TenantBase):
    __tablename__ = "fee_payments"

    id: Mapped[uuid.UUID] = _pk()
    student_fee_id: Mapped[uuid.UUID] = _fk("student_fees.id")
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    payment_mode: Mapped[str] = mapped_column(String(20), nullable=False)
    payment_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    receipt_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


class TransportRoute(TenantBase):
    __tablename__ = "transport_routes"

    id: Mapped[uuid.UUID] = _pk()
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class TransportStop(TenantBase):
    __tablename__ = "transport_stops"
    __table_args__ = (UniqueConstraint("route_id", "name"),)

    id: Mapped[uuid.UUID] = _pk()
    route_id: Mapped[uuid.UUID] = _fk("transport_routes.id")
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False)
    monthly_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class StudentTransportAssignment(TenantBase):
    __tablename__ = "student_transport_assignments"
    __table_args__ = (UniqueConstraint("student_id", "academic_year_id"),)

    id: Mapped[uuid.UUID] = _pk()
    student_id: Mapped[uuid.UUID] = _fk("users.id")
    academic_year_id: Mapped[uuid.UUID] = _fk("academic_years.id")
    route_id: Mapped[uuid.UUID] = _fk("transport_routes.id")
    stop_id: Mapped[uuid.UUID] = _fk("transport_stops.id")
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


TENANT_TABLES: tuple[str, ...] = tuple(TenantBase.metadata.tables)
