from __future__ import annotations

import math
from http import HTTPStatus
from typing import Any

from sqlalchemy import or_
from sqlalchemy.orm import Session
from werkzeug.security import generate_password_hash

from app.panel.audit import record_event
from app.panel.errors import ApiError
from app.panel.models import DEFAULT_PROFILE_PICTURE, EMPLOYEE_ROLES, ROLE_SUPER_ADMIN, ROLE_UNASSIGNED, Employee
from app.panel.uploads import StoredUpload
from app.panel.validation import (
    Errors,
    add_error,
    clean_bool,
    clean_choice,
    clean_email,
    clean_int,
    clean_password,
    clean_str,
    reject_unknown,
)

SORTABLE_FIELDS = {
    "createdAt": Employee.created_at,
    "updatedAt": Employee.updated_at,
    "name": Employee.name,
    "email": Employee.email,
    "role": Employee.role,
    "employer_id": Employee.employer_id,
    "lastLoginAt": Employee.last_login_at,
}

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

# wire name -> column attribute
_PROFILE_FIELDS = {
    "name": "name",
    "phone": "phone",
    "secondaryPhoneNumber": "secondary_phone_number",
    "address": "address",
    "position": "position",
}


def _clean_profile(payload: dict[str, Any], errors: Errors, *, creating: bool) -> dict[str, Any]:
    data: dict[str, Any] = {}
    limits = {
        "name": (1, 50),
        "phone": (1, 18),
        "secondaryPhoneNumber": (1, 18),
        "address": (1, 200),
        "position": (1, 128),
    }
    required = {"name", "phone"} if creating else set()
    for wire, attr in _PROFILE_FIELDS.items():
        lo, hi = limits[wire]
        value = clean_str(payload, wire, errors, required=wire in required, min_len=lo, max_len=hi)
        if value is not None:
            data[attr] = value

    employer_id = clean_str(payload, "employer_id", errors, required=creating, min_len=1, max_len=20)
    if employer_id is not None:
        data["employer_id"] = employer_id
    email = clean_email(payload, "email", errors, required=creating)
    if email is not None:
        data["email"] = email
    role = clean_choice(payload, "role", errors, EMPLOYEE_ROLES)
    if role is not None:
        data["role"] = role
    is_active = clean_bool(payload, "isActive", errors)
    if is_active is not None:
        data["is_active"] = is_active
    password = clean_password(payload, "password", errors, required=False)
    if password is not None:
        data["password"] = password
    return data


def validate_create_payload(payload: dict[str, Any]) -> tuple[dict[str, Any], Errors]:
    errors: Errors = {}
    data = _clean_profile(payload, errors, creating=True)
    return data, errors


def validate_update_payload(payload: dict[str, Any]) -> tuple[dict[str, Any], Errors]:
    errors: Errors = {}
    data = _clean_profile(payload, errors, creating=False)
    data["id"] = clean_int(payload, "_id", errors, min_value=1)
    if data["id"] is None and "_id" not in errors:
        add_error(errors, "_id", "_id is required")
    return data, errors


def validate_lookup(payload: dict[str, Any]) -> tuple[dict[str, Any], Errors]:
    errors: Errors = {}
    data = {
        "email": clean_email(payload, "email", errors, required=False),
        "employer_id": clean_str(payload, "employer_id", errors, max_len=20),
    }
    if not errors and not data["email"] and not data["employer_id"]:
        add_error(errors, "email", "email or employer_id is required")
    return data, errors


def validate_delete_payload(payload: dict[str, Any]) -> tuple[dict[str, Any], Errors]:
    errors: Errors = {}
    reject_unknown(payload, {"email", "employer_id"}, errors)
    data = {
        "email": clean_email(payload, "email", errors),
        "employer_id": clean_str(payload, "employer_id", errors, required=True, max_len=20),
    }
    return data, errors


def validate_list_query(payload: dict[str, Any]) -> tuple[dict[str, Any], Errors]:
    errors: Errors = {}
    data = {
        "page": clean_int(payload, "page", errors, default=1, min_value=1),
        "limit": clean_int(payload, "limit", errors, default=DEFAULT_PAGE_SIZE, min_value=1, max_value=MAX_PAGE_SIZE),
        "search": clean_str(payload, "search", errors, max_len=100),
        "is_active": clean_bool(payload, "isActive", errors),
        "sort": clean_choice(payload, "sort", errors, tuple(SORTABLE_FIELDS)) or "createdAt",
        "order": clean_choice(payload, "order", errors, ("asc", "desc")) or "desc",
    }
    return data, errors


def _by_email(s: Session, email: str) -> Employee | None:
    return s.query(Employee).filter(Employee.email == email).one_or_none()


def _by_employer_id(s: Session, employer_id: str) -> Employee | None:
    return s.query(Employee).filter(Employee.employer_id == employer_id).one_or_none()


def _apply_picture(e: Employee, picture: StoredUpload | None) -> None:
    if picture is None:
        e.profile_picture_path = DEFAULT_PROFILE_PICTURE
        e.profile_picture_original_name = None
        e.profile_picture_server_name = None
        return
    e.profile_picture_path = picture.url
    e.profile_picture_original_name = picture.original_name
    e.profile_picture_server_name = picture.server_name


def check_create_conflicts(s: Session, data: dict[str, Any]) -> None:
    """Raised before anything is written (including the uploaded picture)."""
    if _by_email(s, data["email"]):
        raise ApiError(HTTPStatus.CONFLICT, "Employee already registered")
    if data.get("role") == ROLE_SUPER_ADMIN and data.get("is_active") is False:
        raise ApiError(HTTPStatus.FORBIDDEN, "You can not inactive a supper Admin")
    if _by_employer_id(s, data["employer_id"]):
        raise ApiError(HTTPStatus.CONFLICT, "Employee id is already exist for other employee use unique one")


def create_employee(s: Session, data: dict[str, Any], actor: Employee, picture: StoredUpload | None = None) -> Employee:
    check_create_conflicts(s, data)
    password = data.get("password")
    e = Employee(
        employer_id=data["employer_id"],
        name=data["name"],
        email=data["email"],
        password_hash=generate_password_hash(password) if password else None,
        phone=data.get("phone"),
        secondary_phone_number=data.get("secondary_phone_number"),
        address=data.get("address"),
        position=data.get("position"),
        role=data.get("role") or ROLE_UNASSIGNED,
        is_active=data.get("is_active", True),
        created_by_id=actor.id,
        created_by_role=actor.role,
        created_by_email=actor.email,
    )
    _apply_picture(e, picture)
    s.add(e)
    s.flush()
    record_event(
        s,
        actor=actor,
        action="employee.create",
        entity_type="Employee",
        entity_id=str(e.id),
        metadata={"email": e.email, "employer_id": e.employer_id, "role": e.role},
    )
    return e


def find_employee(s: Session, *, email: str | None, employer_id: str | None) -> Employee:
    e = (_by_email(s, email) if email else None) or (_by_employer_id(s, employer_id) if employer_id else None)
    if not e:
        raise ApiError(HTTPStatus.NOT_FOUND, "User not found! Use a valid employee id or email.")
    return e


def list_employees(s: Session, q: dict[str, Any], *, super_admins: bool) -> dict[str, Any]:
    """
    Paginated listing. Super admins are listed separately from everyone else,
    so the two tables in the panel never overlap.
    """
    query = s.query(Employee)
    if super_admins:
        query = query.filter(Employee.role == ROLE_SUPER_ADMIN)
    else:
        query = query.filter(Employee.role != ROLE_SUPER_ADMIN)
    if q.get("is_active") is not None:
        query = query.filter(Employee.is_active.is_(q["is_active"]))
    if q.get("search"):
        like = f"%{q['search']}%"
        columns = [Employee.name, Employee.email, Employee.employer_id]
        if not super_admins:
            columns.append(Employee.role)
        query = query.filter(or_(*[col.ilike(like) for col in columns]))

    total = query.count()
    column = SORTABLE_FIELDS[q["sort"]]
    ordering = column.asc() if q["order"] == "asc" else column.desc()
    page, limit = q["page"], q["limit"]
    rows = query.order_by(ordering, Employee.id.asc()).offset((page - 1) * limit).limit(limit).all()

    total_pages = math.ceil(total / limit) if limit else 0
    return {
        "pagination": {
            "total": total,
            "page": page,
            "limit": limit,
            "totalPages": total_pages,
            "hasNextPage": page < total_pages,
            "hasPrevPage": page > 1,
        },
        "employees": [e.to_safe_dict() for e in rows],
    }


def update_employee(s: Session, data: dict[str, Any], actor: Employee) -> Employee:
    e = s.get(Employee, data["id"])
    if not e:
        raise ApiError(HTTPStatus.NOT_FOUND, "User not found! Invalid employee ID.")

    resulting_role = data.get("role") or e.role
    if resulting_role == ROLE_SUPER_ADMIN and data.get("is_active") is False:
        raise ApiError(HTTPStatus.FORBIDDEN, "You cannot deactivate a Super Admin")

    email = data.get("email")
    if email and email != e.email and _by_email(s, email):
        raise ApiError(HTTPStatus.CONFLICT, "Email is already in use by another employee.")
    employer_id = data.get("employer_id")
    if employer_id and employer_id != e.employer_id and _by_employer_id(s, employer_id):
        raise ApiError(HTTPStatus.CONFLICT, "Employer ID is already in use by another employee.")

    changed: list[str] = []
    for attr in ("name", "email", "employer_id", "phone", "secondary_phone_number", "address", "position", "role", "is_active"):
        if attr in data and getattr(e, attr) != data[attr]:
            setattr(e, attr, data[attr])
            changed.append(attr)
    if data.get("password"):
        e.password_hash = generate_password_hash(data["password"])
        changed.append("password")

    s.flush()
    record_event(
        s,
        actor=actor,
        action="employee.update",
        entity_type="Employee",
        entity_id=str(e.id),
        metadata={"changed": changed},
    )
    return e


def replace_profile_picture(s: Session, e: Employee, picture: StoredUpload, actor: Employee) -> str | None:
    """Points the employee at the new picture; returns the previous URL for cleanup."""
    previous = e.profile_picture_path
    _apply_picture(e, picture)
    s.flush()
    record_event(
        s,
        actor=actor,
        action="employee.profile_picture",
        entity_type="Employee",
        entity_id=str(e.id),
        metadata={"key": picture.key, "size_bytes": picture.size_bytes},
    )
    return previous if previous != DEFAULT_PROFILE_PICTURE else None


def delete_employee(s: Session, *, email: str, employer_id: str, actor: Employee) -> None:
    if email == actor.email:
        raise ApiError(
            HTTPStatus.NOT_ACCEPTABLE,
            "You can not delete your own account as to maintain the web admin At last one super admin is "
            "necessary. Ask other admin to delete your account",
        )
    e = (
        s.query(Employee)
        .filter(Employee.email == email, Employee.employer_id == employer_id)
        .one_or_none()
    )
    if not e:
        raise ApiError(HTTPStatus.NOT_FOUND, "User not found! Use a valid employee id or email.")
    record_event(
        s,
        actor=actor,
        action="employee.delete",
        entity_type="Employee",
        entity_id=str(e.id),
        metadata={"email": email, "employer_id": employer_id},
    )
    s.delete(e)


def load_for_export(s: Session) -> list[Employee]:
    rows = s.query(Employee).order_by(Employee.id).all()
    if not rows:
        raise ApiError(HTTPStatus.NOT_FOUND, "No employees found")
    return rows
