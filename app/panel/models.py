from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

ROLE_SUPER_ADMIN = "superAdmin"
ROLE_EDITOR = "editor"
ROLE_SUB_ADMIN = "subAdmin"
ROLE_UNASSIGNED = "undefined"
EMPLOYEE_ROLES = (ROLE_SUPER_ADMIN, ROLE_EDITOR, ROLE_SUB_ADMIN, ROLE_UNASSIGNED)

DEFAULT_PROFILE_PICTURE = "public/uploads/profile_pictures/defaultProfilePicture.png"


class Base(DeclarativeBase):
    pass


class Employee(Base):
    """
    Admin panel account. Every login-capable user is an employee; `role` drives
    route access (see rbac.require_roles).
    """

    __tablename__ = "employees"
    __table_args__ = (
        Index("idx_employees_role", "role"),
        Index("idx_employees_is_active", "is_active"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employer_id: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    # Employees created without a password cannot log in until one is set.
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)

    phone: Mapped[str | None] = mapped_column(String(18), nullable=True)
    secondary_phone_number: Mapped[str | None] = mapped_column(String(18), nullable=True)
    address: Mapped[str | None] = mapped_column(String(200), nullable=True)
    position: Mapped[str | None] = mapped_column(String(128), nullable=True)
    role: Mapped[str] = mapped_column(String(32), nullable=False, default=ROLE_UNASSIGNED)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    profile_picture_path: Mapped[str | None] = mapped_column(String(512), nullable=True)
    profile_picture_original_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    profile_picture_server_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Forgot-password flow state
    otp: Mapped[str | None] = mapped_column(String(6), nullable=True)
    otp_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    change_password_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    is_forgot_password_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    created_by_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_by_role: Mapped[str | None] = mapped_column(String(32), nullable=True)
    created_by_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    def claims(self) -> dict:
        """Identity carried by access/refresh tokens."""
        return {"id": self.id, "role": self.role, "email": self.email}

    def to_safe_dict(self) -> dict:
        """Wire representation without password hash or OTP state."""
        return {
            "_id": self.id,
            "employer_id": self.employer_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "secondaryPhoneNumber": self.secondary_phone_number,
            "address": self.address,
            "position": self.position,
            "role": self.role,
            "isActive": self.is_active,
            "profilePicture": {
                "filePathURL": self.profile_picture_path,
                "fileOriginalName": self.profile_picture_original_name,
                "fileServerName": self.profile_picture_server_name,
            },
            "lastLoginAt": self.last_login_at.isoformat() if self.last_login_at else None,
            "createdBy": {
                "id": self.created_by_id,
                "role": self.created_by_role,
                "email": self.created_by_email,
            }
            if self.created_by_email
            else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


class AuditEvent(Base):
    """
    Append-only audit trail event.
    Keep this table intentionally generic; entity ids are stored as strings.
    """

    __tablename__ = "audit_events"
    __table_args__ = (Index("idx_audit_events_action", "action"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    request_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    actor_employee_id: Mapped[int | None] = mapped_column(ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    actor_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    actor_role: Mapped[str | None] = mapped_column(String(32), nullable=True)

    action: Mapped[str] = mapped_column(String(128), nullable=False)  # e.g. "category.create"
    entity_type: Mapped[str | None] = mapped_column(String(128), nullable=True)  # e.g. "Category"
    entity_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    metadata_json: Mapped[str | None] = mapped_column(Text, nullable=True)  # small JSON string
    client_ip: Mapped[str | None] = mapped_column(String(64), nullable=True)


# Ensure module models are imported so Base.metadata includes their tables.
# (Kept at bottom to avoid circular imports.)
from app.panel.modules.category.models import Category, SubCategory  # noqa: E402,F401
