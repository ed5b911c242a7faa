import io
from types import SimpleNamespace

import pytest
from openpyxl import load_workbook
from werkzeug.security import generate_password_hash

from app.panel import create_app
from app.panel.db import session_scope
from app.panel.models import ROLE_EDITOR, ROLE_SUB_ADMIN, ROLE_SUPER_ADMIN, ROLE_UNASSIGNED, Base, Employee
from app.panel.modules.category.models import Category, SubCategory


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("UPLOAD_FOLDER", str(tmp_path / "uploads"))
    monkeypatch.setenv("RATE_LIMIT_ENABLED", "false")
    monkeypatch.delenv("SMTP_SERVER", raising=False)

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])

    with session_scope(app) as s:
        for i, role in enumerate((ROLE_SUPER_ADMIN, ROLE_EDITOR, ROLE_SUB_ADMIN, ROLE_UNASSIGNED), start=1):
            s.add(
                Employee(
                    employer_id=f"EMP-{i}",
                    name=role,
                    email=f"{role.lower()}@example.com",
                    password_hash=generate_password_hash("pass1234"),
                    role=role,
                    is_active=True,
                )
            )
    return app


def _client(app, role=ROLE_SUPER_ADMIN):
    c = app.test_client()
    r = c.post("/api/v1/auth/login", json={"email": f"{role.lower()}@example.com", "password": "pass1234"})
    assert r.status_code == 200
    return c


@pytest.fixture()
def admin(app):
    return _client(app)


def _create(client, category_id="phones", name="Phones", **extra):
    return client.post("/api/v1/category/create", json={"categoryId": category_id, "categoryName": name, **extra})


def _create_sub(client, sub_id, name, category_id="phones", **extra):
    return client.post(
        "/api/v1/category/create-sub",
        json={"subCategoryId": sub_id, "subCategoryName": name, "categoryId": category_id, **extra},
    )


def test_create_category(admin):
    r = _create(admin)
    assert r.status_code == 201
    assert r.json["message"] == "New category Created Successfully"
    cat = r.json["data"]["category"]
    assert cat["categoryId"] == "phones"
    assert cat["isDisplayed"] is True
    assert cat["createdBy"]["email"] == "superadmin@example.com"
    # sliding session
    assert r.json["data"]["accessToken"]


def test_create_category_duplicate_id(admin):
    _create(admin)
    r = _create(admin, name="Other")
    assert r.status_code == 409
    assert r.json["message"] == "Category id already exists"


def test_create_category_validation(admin):
    r = admin.post("/api/v1/category/create", json={"categoryId": "x"})
    assert r.status_code == 400
    assert "categoryName" in r.json["errors"]
    assert "categoryId" in r.json["errors"]


def test_unassigned_role_cannot_create(app):
    c = _client(app, ROLE_UNASSIGNED)
    r = _create(c)
    assert r.status_code == 403
    assert r.json["message"] == "Access denied: Insufficient role."


def test_unassigned_role_can_read_admin_listing(app, admin):
    _create(admin)
    c = _client(app, ROLE_UNASSIGNED)
    r = c.get("/api/v1/category/get-admin")
    assert r.status_code == 200
    assert r.json["data"]["totalCategoryCount"] == 1


def test_public_get_hides_hidden_and_audit_fields(admin):
    _create(admin, "phones", "Phones")
    _create(admin, "audio", "Audio")
    _create(admin, "secret", "Secret", isDisplayed=False)
    _create_sub(admin, "android", "Android")
    _create_sub(admin, "ios", "IOS", isDisplayed=False)

    r = admin.get("/api/v1/category/get")
    assert r.status_code == 200
    cats = r.json["data"]["category"]
    assert [c["categoryId"] for c in cats] == ["audio", "phones"]
    phones = cats[1]
    assert "createdBy" not in phones
    assert [sc["subCategoryId"] for sc in phones["subCategories"]] == ["android"]


def test_public_get_single_category(admin):
    _create(admin)
    _create_sub(admin, "tablets", "Tablets")
    _create_sub(admin, "android", "Android")

    r = admin.get("/api/v1/category/get", query_string={"categoryId": "phones"})
    assert r.status_code == 200
    ids_only = r.json["data"]["category"]["subCategories"]
    assert all(isinstance(x, int) for x in ids_only)

    r = admin.get("/api/v1/category/get", query_string={"categoryId": "phones", "subCategory": "true"})
    names = [sc["subCategoryName"] for sc in r.json["data"]["category"]["subCategories"]]
    assert names == ["Android", "Tablets"]

    r = admin.get("/api/v1/category/get", query_string={"categoryId": "missing"})
    assert r.status_code == 404
    assert r.json["message"] == "Category not found"


def test_get_requires_login(app):
    r = app.test_client().get("/api/v1/category/get")
    assert r.status_code == 401


def test_admin_get_filters_by_display_flag(admin):
    _create(admin, "phones", "Phones")
    _create(admin, "secret", "Secret", isDisplayed=False)

    r = admin.get("/api/v1/category/get-admin", query_string={"isDisplayed": "false"})
    assert r.status_code == 200
    assert r.json["data"]["totalCategoryCount"] == 1
    assert [c["categoryId"] for c in r.json["data"]["category"]] == ["secret"]

    r = admin.get("/api/v1/category/get-admin", query_string={"isDisplayed": "maybe"})
    assert r.status_code == 400


def test_update_category_renames_and_reports_children(admin):
    cat_pk = _create(admin).json["data"]["category"]["_id"]
    _create_sub(admin, "android", "Android")

    r = admin.patch(
        "/api/v1/category/update",
        json={"_id": cat_pk, "newCategoryId": "mobiles", "newCategoryName": "Mobiles"},
    )
    assert r.status_code == 202
    assert r.json["data"]["category"]["categoryId"] == "mobiles"
    assert r.json["data"]["subcategoriesUpdated"] == {"matchedCount": 1, "modifiedCount": 1}
    assert r.json["data"]["category"]["updatedBy"]["email"] == "superadmin@example.com"

    r = admin.get("/api/v1/category/get-sub-admin", query_string={"subCategoryId": "android"})
    assert r.json["data"]["subCategory"]["categoryId"] == "mobiles"
    assert r.json["data"]["subCategory"]["categoryName"] == "Mobiles"


def test_update_category_conflicts(admin):
    pk = _create(admin, "phones", "Phones").json["data"]["category"]["_id"]
    _create(admin, "audio", "Audio")

    r = admin.patch("/api/v1/category/update", json={"_id": pk, "newCategoryId": "audio"})
    assert r.status_code == 409
    assert r.json["message"] == "New categoryId already exists"

    r = admin.patch("/api/v1/category/update", json={"_id": 9999, "newCategoryName": "Nope"})
    assert r.status_code == 404
    assert r.json["message"] == "Old categoryId is invalid or not found"


def test_delete_category_cascades(app, admin):
    _create(admin)
    _create_sub(admin, "android", "Android")
    _create_sub(admin, "ios", "IOS")

    r = admin.delete("/api/v1/category/delete", query_string={"categoryId": "phones"})
    assert r.status_code == 200
    assert r.json["data"]["deletedCategoryId"] == "phones"
    with session_scope(app) as s:
        assert s.query(Category).count() == 0
        assert s.query(SubCategory).count() == 0

    r = admin.delete("/api/v1/category/delete", json={"categoryId": "phones"})
    assert r.status_code == 404
    assert r.json["message"] == "Category not found."


def test_sub_admin_cannot_delete(app, admin):
    _create(admin)
    c = _client(app, ROLE_SUB_ADMIN)
    r = c.delete("/api/v1/category/delete", query_string={"categoryId": "phones"})
    assert r.status_code == 403


def test_create_sub_category_checks(admin):
    r = _create_sub(admin, "android", "Android", category_id="missing")
    assert r.status_code == 404
    assert r.json["message"] == "Category ID does not exist"

    _create(admin)
    r = _create_sub(admin, "android", "Android")
    assert r.status_code == 201
    assert r.json["data"]["subcategory"]["categoryName"] == "Phones"

    r = _create_sub(admin, "android", "Android again")
    assert r.status_code == 409
    assert r.json["message"] == "SubCategory ID already exists"


def test_update_sub_category_moves_between_parents(app, admin):
    _create(admin, "phones", "Phones")
    _create(admin, "audio", "Audio")
    sc_pk = _create_sub(admin, "headsets", "Headsets").json["data"]["subcategory"]["_id"]

    r = admin.patch(
        "/api/v1/category/update-sub",
        json={"_id": sc_pk, "newCategoryId": "audio", "newSubCategoryName": "Headphones", "isDisplayed": False},
    )
    assert r.status_code == 200
    sub = r.json["data"]["subCategory"]
    assert sub["categoryId"] == "audio"
    assert sub["subCategoryName"] == "Headphones"
    assert sub["isDisplayed"] is False

    with session_scope(app) as s:
        phones = s.query(Category).filter(Category.category_id == "phones").one()
        audio = s.query(Category).filter(Category.category_id == "audio").one()
        assert phones.sub_categories == []
        assert [sc.sub_category_id for sc in audio.sub_categories] == ["headsets"]

    r = admin.patch("/api/v1/category/update-sub", json={"_id": sc_pk, "newCategoryId": "missing"})
    assert r.status_code == 404
    assert r.json["message"] == "New categoryId not found."


def test_update_sub_category_duplicate_id(admin):
    _create(admin)
    _create_sub(admin, "android", "Android")
    pk = _create_sub(admin, "ios", "IOS").json["data"]["subcategory"]["_id"]
    r = admin.patch("/api/v1/category/update-sub", json={"_id": pk, "newSubCategoryId": "android"})
    assert r.status_code == 409
    assert r.json["message"] == "New subCategoryId already exists."


def test_get_sub_public_and_admin(admin):
    _create(admin)
    _create_sub(admin, "android", "Android")
    _create_sub(admin, "ios", "IOS", isDisplayed=False)

    r = admin.get("/api/v1/category/get-sub")
    assert [sc["subCategoryId"] for sc in r.json["data"]["subCategory"]] == ["android"]

    r = admin.get("/api/v1/category/get-sub", query_string={"subCategoryId": "ios"})
    assert r.status_code == 404
    assert r.json["message"] == "Sub Category not found"

    r = admin.get("/api/v1/category/get-sub", query_string={"subCategoryId": "android", "category": "true"})
    assert r.json["data"]["subCategory"]["category"]["categoryId"] == "phones"

    r = admin.get("/api/v1/category/get-sub-admin")
    assert r.json["data"]["totalSubCategoryCount"] == 2

    r = admin.get("/api/v1/category/get-sub-admin", query_string={"subCategoryId": "nope"})
    assert r.status_code == 404
    assert r.json["message"] == "sub Category not found"


def test_delete_sub_category(app, admin):
    _create(admin)
    _create_sub(admin, "android", "Android")

    r = admin.delete("/api/v1/category/delete-sub", query_string={"subCategoryId": "android"})
    assert r.status_code == 200
    assert r.json["data"]["deletedSubCategoryId"] == "android"
    with session_scope(app) as s:
        assert s.query(Category).count() == 1
        assert s.query(SubCategory).count() == 0

    r = admin.delete("/api/v1/category/delete-sub", query_string={"subCategoryId": "android"})
    assert r.status_code == 404


def test_export_categories(admin):
    r = admin.get("/api/v1/category/export")
    assert r.status_code == 404
    assert r.json["message"] == "No categories or subcategories found"

    _create(admin)
    _create_sub(admin, "android", "Android")
    r = admin.get("/api/v1/category/export")
    assert r.status_code == 200
    assert r.mimetype == "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    assert "attachment" in r.headers["Content-Disposition"]

    wb = load_workbook(io.BytesIO(r.data))
    assert wb.sheetnames == ["Categories", "SubCategories"]
    assert wb["Categories"].cell(row=1, column=2).value == "Category ID"
    assert wb["Categories"].cell(row=2, column=2).value == "phones"
    assert wb["SubCategories"].cell(row=2, column=2).value == "android"


def test_export_is_super_admin_only(app, admin):
    _create(admin)
    r = _client(app, ROLE_EDITOR).get("/api/v1/category/export")
    assert r.status_code == 403


def test_get_sub_admin_single_respects_display_flag(admin):
    _create(admin)
    _create_sub(admin, "ios", "IOS", isDisplayed=False)

    r = admin.get("/api/v1/category/get-sub-admin", query_string={"subCategoryId": "ios", "isDisplayed": "true"})
    assert r.status_code == 404
    assert r.json["message"] == "sub Category not found"

    r = admin.get("/api/v1/category/get-sub-admin", query_string={"subCategoryId": "ios", "isDisplayed": "false"})
    assert r.status_code == 200
    assert r.json["data"]["subCategory"]["subCategoryId"] == "ios"

    r = admin.get("/api/v1/category/get-sub-admin", query_string={"subCategoryId": "ios"})
    assert r.status_code == 200


def test_export_keeps_formula_like_names_as_text(admin):
    _create(admin, "evil", '=HYPERLINK("http://evil","x")')
    r = admin.get("/api/v1/category/export")
    assert r.status_code == 200

    cell = load_workbook(io.BytesIO(r.data))["Categories"].cell(row=2, column=3)
    assert cell.value == '=HYPERLINK("http://evil","x")'
    assert cell.data_type == "s"


def test_export_filename_is_stamped_with_current_time(admin, monkeypatch):
    monkeypatch.setattr("app.panel.exports.time", SimpleNamespace(time=lambda: 1718000000.123))
    _create(admin)
    r = admin.get("/api/v1/category/export")
    assert "categories_export_1718000000123.xlsx" in r.headers["Content-Disposition"]
