from __future__ import annotations

import io
from http import HTTPStatus

from flask import Blueprint, current_app, g, request, send_file

from app.panel.cookies import set_access_cookie
from app.panel.db import db_session
from app.panel.errors import ApiError
from app.panel.exports import XLSX_MIMETYPE, employees_workbook, export_filename
from app.panel.mailer import send_welcome_email
from app.panel.models import ROLE_SUPER_ADMIN, Employee
from app.panel.modules.employees import service
from app.panel.rbac import require_auth, require_roles
from app.panel.responses import send_response
from app.panel.tokens import generate_access_token
from app.panel.uploads import delete_stored, save_profile_picture
from app.panel.validation import Errors, clean_int, query_payload, raise_if_errors, request_payload

bp = Blueprint("employees", __name__)


def _current_user() -> Employee:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


@bp.post("/create")
@require_roles(ROLE_SUPER_ADMIN)
def create_employee():
    data, errors = service.validate_create_payload(request_payload())
    raise_if_errors(errors, "create employee Validation Error")

    s = db_session()
    service.check_create_conflicts(s, data)

    f = request.files.get("profilePicture")
    picture = save_profile_picture(f) if f and f.filename else None
    try:
        e = service.create_employee(s, data, _current_user(), picture)
        s.commit()
    except Exception:
        s.rollback()
        if picture:
            delete_stored(picture.url)
        raise

    if not send_welcome_email(e.email, e.name, data.get("password")):
        current_app.logger.warning("Welcome email not delivered (employee_id=%s)", e.id)

    return send_response(
        HTTPStatus.CREATED,
        "New Employer Created Successfully",
        {"employer": e.to_safe_dict()},
        renew_session=True,
    )


@bp.get("/get")
@require_auth
def get_employee():
    q, errors = service.validate_lookup(query_payload())
    raise_if_errors(errors, "get employee Validation Error")
    e = service.find_employee(db_session(), email=q["email"], employer_id=q["employer_id"])
    return send_response(
        HTTPStatus.OK,
        "Employee information retrieved successfully!",
        {"employee": e.to_safe_dict()},
        renew_session=True,
    )


@bp.get("/get-all")
@require_roles(ROLE_SUPER_ADMIN)
def get_all_employees():
    q, errors = service.validate_list_query(query_payload())
    raise_if_errors(errors, "get all employee Validation Error")
    result = service.list_employees(db_session(), q, super_admins=False)
    return send_response(HTTPStatus.OK, "Employee list retrieved successfully!", result, renew_session=True)


@bp.get("/get-all-sup")
@require_roles(ROLE_SUPER_ADMIN)
def get_all_super_admins():
    q, errors = service.validate_list_query(query_payload())
    raise_if_errors(errors, "get all super admin Validation Error")
    result = service.list_employees(db_session(), q, super_admins=True)
    return send_response(HTTPStatus.OK, "Employee list retrieved successfully!", result, renew_session=True)


@bp.patch("/update")
@require_roles(ROLE_SUPER_ADMIN)
def update_employee():
    data, errors = service.validate_update_payload(request_payload())
    raise_if_errors(errors, "update employee Validation Error")
    s = db_session()
    e = service.update_employee(s, data, _current_user())
    s.commit()
    return send_response(
        HTTPStatus.OK,
        "Employee information updated successfully!",
        {"employee": e.to_safe_dict()},
        renew_session=True,
    )


@bp.patch("/update-profile-pic")
@require_roles(ROLE_SUPER_ADMIN)
def update_profile_picture():
    errors: Errors = {}
    employee_id = clean_int(request_payload(), "_id", errors, min_value=1)
    if employee_id is None and not errors:
        errors["_id"] = ["_id is required"]
    raise_if_errors(errors, "update profile picture Validation Error")

    f = request.files.get("profilePicture")
    if not f or not f.filename:
        raise ApiError(HTTPStatus.BAD_REQUEST, "No file uploaded")

    s = db_session()
    e = s.get(Employee, employee_id)
    if not e:
        raise ApiError(HTTPStatus.NOT_FOUND, "User not found! Use a valid employee id or email.")

    picture = save_profile_picture(f)
    try:
        previous = service.replace_profile_picture(s, e, picture, _current_user())
        s.commit()
    except Exception:
        s.rollback()
        delete_stored(picture.url)
        raise
    delete_stored(previous)

    return send_response(
        HTTPStatus.OK,
        "Employee profile picture updated successfully!",
        {"employee": e.to_safe_dict()},
        renew_session=True,
    )


@bp.delete("/delete")
@require_roles(ROLE_SUPER_ADMIN)
def delete_employee():
    data, errors = service.validate_delete_payload(request_payload() or query_payload())
    raise_if_errors(errors, "delete employee Validation Error")
    s = db_session()
    service.delete_employee(s, email=data["email"], employer_id=data["employer_id"], actor=_current_user())
    s.commit()
    return send_response(HTTPStatus.ACCEPTED, "Employee delete successfully!", {}, renew_session=True)


@bp.get("/export-employees")
@require_roles(ROLE_SUPER_ADMIN)
def export_employees():
    rows = service.load_for_export(db_session())
    resp = send_file(
        io.BytesIO(employees_workbook(rows)),
        mimetype=XLSX_MIMETYPE,
        as_attachment=True,
        download_name=export_filename("employees"),
        max_age=0,
    )
    set_access_cookie(resp, generate_access_token(**_current_user().claims()))
    return resp
