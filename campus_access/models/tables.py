# =======================================================================================
# campus_access/models/tables.py - Ledger Schema
# =======================================================================================
from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    UniqueConstraint,
)

metadata = MetaData()

# ========== Identity (owned by provisioning, read-only here) ==========

students = Table(
    "students",
    metadata,
    Column("student_id", String(32), primary_key=True),
    Column("student_name", String(120), nullable=False),
    Column("program", String(120)),
)

rfid_mapping = Table(
    "rfid_mapping",
    metadata,
    Column("uid", String(100), primary_key=True),
    Column("student_id", String(32), ForeignKey("students.student_id"), nullable=False),
    Column("status", String(16), nullable=False, server_default="active"),
    Index("ix_rfid_mapping_student", "student_id", "status"),
)

facility_config = Table(
    "facility_config",
    metadata,
    Column("facility_id", String(32), primary_key=True),
    Column("display_name", String(120), nullable=False),
    Column("grace_window_minutes", Integer, nullable=False, server_default="0"),
    Column("auto_timeout_minutes", Integer),
)

# ========== Access Session Ledger ==========

facility_sessions = Table(
    "facility_sessions",
    metadata,
    Column("session_id", String(36), primary_key=True),
    Column("uid", String(100)),
    Column("student_id", String(32), ForeignKey("students.student_id"), nullable=False),
    Column("facility_id", String(32), ForeignKey("facility_config.facility_id"), nullable=False),
    Column("entry_time", DateTime, nullable=False),
    Column("exit_time", DateTime),
    Column("exit_reason", String(32)),
    Column("duration_minutes", Integer),
    Index("ix_sessions_student_facility", "student_id", "facility_id", "entry_time"),
    Index("ix_sessions_student_open", "student_id", "exit_time"),
)

# ========== Inventory Store ==========

equipment = Table(
    "equipment",
    metadata,
    Column("equipment_id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(120), nullable=False),
    Column("category", String(120)),
)

facility_equipment = Table(
    "facility_equipment",
    metadata,
    Column("facility_id", String(32), ForeignKey("facility_config.facility_id"), primary_key=True),
    Column("equipment_id", Integer, ForeignKey("equipment.equipment_id"), primary_key=True),
    Column("total_quantity", Integer, nullable=False),
    Column("available_quantity", Integer, nullable=False),
    CheckConstraint(
        "available_quantity >= 0 AND available_quantity <= total_quantity",
        name="ck_facility_equipment_available",
    ),
)

# ========== Equipment Custody Ledger ==========

equipment_issues = Table(
    "equipment_issues",
    metadata,
    Column("issue_id", String(36), primary_key=True),
    Column("uid", String(100)),
    Column("student_id", String(32), ForeignKey("students.student_id"), nullable=False),
    Column("student_name", String(120)),
    Column("status", String(16), nullable=False),
    Column("issued_at", DateTime, nullable=False),
    Column("returned_at", DateTime),
    Column("assistant_id", String(64)),
    Column("returned_by", String(64)),
    Index("ix_issues_student_status", "student_id", "status"),
)

equipment_issue_items = Table(
    "equipment_issue_items",
    metadata,
    Column("item_id", String(36), primary_key=True),
    Column("issue_id", String(36), ForeignKey("equipment_issues.issue_id"), nullable=False),
    Column("equipment_id", Integer, ForeignKey("equipment.equipment_id"), nullable=False),
    Column("equipment_type", String(120), nullable=False),
    Column("issued_qty", Integer, nullable=False),
    Column("returned_qty", Integer, nullable=False, server_default="0"),
    Column("status", String(16), nullable=False),
    CheckConstraint("issued_qty > 0", name="ck_issue_items_issued_positive"),
    CheckConstraint(
        "returned_qty >= 0 AND returned_qty <= issued_qty",
        name="ck_issue_items_returned_range",
    ),
    Index("ix_issue_items_issue", "issue_id"),
)

# ========== Operators ==========

admins = Table(
    "admins",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(64), nullable=False),
    Column("password_hash", String(255), nullable=False),
    UniqueConstraint("username", name="uq_admins_username"),
)
