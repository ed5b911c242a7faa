from __future__ import annotations

from flask import Blueprint, current_app, redirect, render_template, request

from app.gateway.cookies import is_token_expired
from app.gateway.middleware import ACCESS_COOKIE

bp = Blueprint("pages", __name__)

DASHBOARD_NAV = [
    ("/dashboard", "Overview"),
    ("/dashboard/categories", "Categories"),
    ("/dashboard/employees", "Employees"),
    ("/dashboard/employees/create", "New employee"),
    ("/dashboard/settings", "Settings"),
]


def _dashboard(title: str, section: str, endpoint: str | None = None):
    return render_template(
        "dashboard/page.html",
        title=title,
        section=section,
        endpoint=endpoint,
        nav=DASHBOARD_NAV,
    )


@bp.get("/login")
def login():
    # A still-valid session skips the form
    token = request.cookies.get(ACCESS_COOKIE)
    if token and not is_token_expired(token, current_app.config["ACCESS_TOKEN_TTL_SECONDS"]):
        return redirect("/dashboard")
    return render_template("login.html")


@bp.get("/forgot-password")
def forgot_password():
    return render_template("forgot_password.html")


@bp.get("/dashboard")
def dashboard():
    return _dashboard("Dashboard", "overview")


@bp.get("/dashboard/categories")
def categories():
    return _dashboard("Categories", "categories", "category/get-admin")


@bp.get("/dashboard/employees")
def employees():
    return _dashboard("Employees", "employees", "employee/get-all")


@bp.get("/dashboard/employees/create")
def create_employee():
    return _dashboard("New employee", "employee-create", "employee/create")


@bp.get("/dashboard/settings")
def settings():
    return _dashboard("Settings", "settings", "auth/change-password-profile")
