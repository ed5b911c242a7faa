from __future__ import annotations

import io
from http import HTTPStatus

from flask import Blueprint, g, send_file

from app.panel.cookies import set_access_cookie
from app.panel.db import db_session
from app.panel.exports import XLSX_MIMETYPE, categories_workbook, export_filename
from app.panel.models import ROLE_EDITOR, ROLE_SUB_ADMIN, ROLE_SUPER_ADMIN, ROLE_UNASSIGNED, Employee
from app.panel.modules.category import service
from app.panel.ratelimit import rate_limited
from app.panel.rbac import require_auth, require_roles
from app.panel.responses import send_response
from app.panel.tokens import generate_access_token
from app.panel.validation import query_payload, raise_if_errors, request_payload

bp = Blueprint("category", __name__)

_MANAGERS = (ROLE_SUPER_ADMIN, ROLE_EDITOR, ROLE_SUB_ADMIN)
_DELETERS = (ROLE_SUPER_ADMIN, ROLE_EDITOR)


def _current_user() -> Employee:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _query_or_body() -> dict:
    # DELETE callers send identifiers either as query params or as a JSON body.
    return {**query_payload(), **request_payload()}


# ---------- Categories ----------
@bp.post("/create")
@require_roles(*_MANAGERS)
def create_category():
    data, errors = service.validate_create_category(request_payload())
    raise_if_errors(errors, "create category Validation Error")
    s = db_session()
    c = service.create_category(s, data, _current_user())
    s.commit()
    return send_response(
        HTTPStatus.CREATED,
        "New category Created Successfully",
        {"category": c.to_admin_dict()},
        renew_session=True,
    )


@bp.get("/get")
@rate_limited("public")
@require_auth
def get_category():
    q, errors = service.validate_category_query(query_payload())
    raise_if_errors(errors, "get category Validation Error")
    result = service.get_categories_public(
        db_session(),
        category_id=q["category_id"],
        with_sub_categories=q["with_sub_categories"],
    )
    return send_response(HTTPStatus.OK, "Category fetched successfully", {"category": result})


@bp.get("/get-admin")
@require_roles(*_MANAGERS, ROLE_UNASSIGNED)
def get_category_admin():
    q, errors = service.validate_category_query(query_payload())
    raise_if_errors(errors, "get category for admin Validation Error")
    total, result = service.get_categories_admin(
        db_session(),
        category_id=q["category_id"],
        with_sub_categories=q["with_sub_categories"],
        is_displayed=q["is_displayed"],
    )
    return send_response(
        HTTPStatus.OK,
        "Category fetched for admin successfully",
        {"totalCategoryCount": total, "category": result},
        renew_session=True,
    )


@bp.patch("/update")
@require_roles(*_MANAGERS)
def update_category():
    data, errors = service.validate_update_category(request_payload())
    raise_if_errors(errors, "update category Validation Error")
    s = db_session()
    c, subs_updated = service.update_category(s, data, _current_user())
    s.commit()
    return send_response(
        HTTPStatus.ACCEPTED,
        "Category updated successfully",
        {"category": c.to_admin_dict(), "subcategoriesUpdated": subs_updated},
        renew_session=True,
    )


@bp.delete("/delete")
@require_roles(*_DELETERS)
def delete_category():
    data, errors = service.validate_delete_category(_query_or_body())
    raise_if_errors(errors, "delete category Validation Error")
    s = db_session()
    deleted = service.delete_category(s, data["category_id"], _current_user())
    s.commit()
    return send_response(
        HTTPStatus.OK,
        "Category and all related subcategories deleted successfully",
        {"deletedCategoryId": deleted},
        renew_session=True,
    )


# ---------- Sub-categories ----------
@bp.post("/create-sub")
@require_roles(*_MANAGERS)
def create_sub_category():
    data, errors = service.validate_create_sub_category(request_payload())
    raise_if_errors(errors, "create sub category Validation Error")
    s = db_session()
    sc = service.create_sub_category(s, data, _current_user())
    s.commit()
    return send_response(
        HTTPStatus.CREATED,
        "New sub-category Created Successfully",
        {"subcategory": sc.to_admin_dict()},
        renew_session=True,
    )


@bp.patch("/update-sub")
@require_auth
def update_sub_category():
    data, errors = service.validate_update_sub_category(request_payload())
    raise_if_errors(errors, "Update Sub Category Validation Error")
    s = db_session()
    sc = service.update_sub_category(s, data, _current_user())
    s.commit()
    return send_response(
        HTTPStatus.OK,
        "Sub-category updated successfully",
        {"subCategory": sc.to_admin_dict()},
        renew_session=True,
    )


@bp.get("/get-sub")
@rate_limited("public")
@require_auth
def get_sub_category():
    q, errors = service.validate_sub_category_query(query_payload())
    raise_if_errors(errors, "get sub category Validation Error")
    result = service.get_sub_categories_public(
        db_session(),
        sub_category_id=q["sub_category_id"],
        with_category=q["with_category"],
    )
    return send_response(HTTPStatus.OK, "Sub-category fetched successfully", {"subCategory": result})


@bp.get("/get-sub-admin")
@require_roles(*_MANAGERS)
def get_sub_category_admin():
    q, errors = service.validate_sub_category_query(query_payload())
    raise_if_errors(errors, "get sub category for admin Validation Error")
    total, result = service.get_sub_categories_admin(
        db_session(),
        sub_category_id=q["sub_category_id"],
        with_category=q["with_category"],
        is_displayed=q["is_displayed"],
    )
    return send_response(
        HTTPStatus.OK,
        "Sub-category fetched for admin successfully",
        {"totalSubCategoryCount": total, "subCategory": result},
        renew_session=True,
    )


@bp.delete("/delete-sub")
@require_roles(*_DELETERS)
def delete_sub_category():
    data, errors = service.validate_delete_sub_category(_query_or_body())
    raise_if_errors(errors, "delete sub category Validation Error")
    s = db_session()
    deleted = service.delete_sub_category(s, data["sub_category_id"], _current_user())
    s.commit()
    return send_response(
        HTTPStatus.OK,
        "Sub-category deleted successfully",
        {"deletedSubCategoryId": deleted},
        renew_session=True,
    )


# ---------- Export ----------
@bp.get("/export")
@require_roles(ROLE_SUPER_ADMIN)
def export_categories():
    s = db_session()
    cats, subs = service.load_for_export(s)
    content = categories_workbook(cats, subs)
    resp = send_file(
        io.BytesIO(content),
        mimetype=XLSX_MIMETYPE,
        as_attachment=True,
        download_name=export_filename("categories"),
        max_age=0,
    )
    set_access_cookie(resp, generate_access_token(**_current_user().claims()))
    return resp
