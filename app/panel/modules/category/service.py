from __future__ import annotations

from http import HTTPStatus
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.panel.audit import record_event
from app.panel.errors import ApiError
from app.panel.models import Employee
from app.panel.modules.category.models import Category, SubCategory
from app.panel.validation import Errors, add_error, clean_bool, clean_str

# ---------- validation ----------
#
# Each validate_* returns (cleaned data, errors). Keys that were not sent stay
# out of the cleaned data so update functions can tell "absent" from "false".


def _clean_pk(payload: dict[str, Any], field: str, errors: Errors) -> int | None:
    raw = payload.get(field)
    if raw is None or raw == "":
        add_error(errors, field, f"{field} is required")
        return None
    try:
        value = int(raw)
    except (TypeError, ValueError):
        add_error(errors, field, f"{field} must be a numeric id")
        return None
    if value < 1:
        add_error(errors, field, f"{field} must be a numeric id")
        return None
    return value


def _put(data: dict[str, Any], key: str, value: Any) -> None:
    if value is not None:
        data[key] = value


def validate_create_category(payload: dict[str, Any]) -> tuple[dict[str, Any], Errors]:
    errors: Errors = {}
    data: dict[str, Any] = {}
    _put(data, "category_name", clean_str(payload, "categoryName", errors, required=True, min_len=2, max_len=100))
    _put(data, "category_id", clean_str(payload, "categoryId", errors, required=True, min_len=2, max_len=50))
    _put(data, "is_displayed", clean_bool(payload, "isDisplayed", errors))
    return data, errors


def validate_category_query(payload: dict[str, Any]) -> tuple[dict[str, Any], Errors]:
    errors: Errors = {}
    data: dict[str, Any] = {
        "category_id": clean_str(payload, "categoryId", errors, min_len=2, max_len=50),
        "with_sub_categories": bool(clean_bool(payload, "subCategory", errors)),
        "is_displayed": clean_bool(payload, "isDisplayed", errors),
    }
    return data, errors


def validate_update_category(payload: dict[str, Any]) -> tuple[dict[str, Any], Errors]:
    errors: Errors = {}
    data: dict[str, Any] = {"id": _clean_pk(payload, "_id", errors)}
    _put(data, "category_name", clean_str(payload, "newCategoryName", errors, min_len=2, max_len=100))
    _put(data, "category_id", clean_str(payload, "newCategoryId", errors, min_len=2, max_len=50))
    _put(data, "is_displayed", clean_bool(payload, "isDisplayed", errors))
    return data, errors


def validate_delete_category(payload: dict[str, Any]) -> tuple[dict[str, Any], Errors]:
    errors: Errors = {}
    data = {"category_id": clean_str(payload, "categoryId", errors, required=True, min_len=2, max_len=50)}
    return data, errors


def validate_create_sub_category(payload: dict[str, Any]) -> tuple[dict[str, Any], Errors]:
    errors: Errors = {}
    data: dict[str, Any] = {}
    _put(data, "sub_category_name", clean_str(payload, "subCategoryName", errors, required=True, min_len=2, max_len=100))
    _put(data, "sub_category_id", clean_str(payload, "subCategoryId", errors, required=True, min_len=2, max_len=50))
    _put(data, "category_id", clean_str(payload, "categoryId", errors, required=True, min_len=2, max_len=50))
    _put(data, "is_displayed", clean_bool(payload, "isDisplayed", errors))
    return data, errors


def validate_update_sub_category(payload: dict[str, Any]) -> tuple[dict[str, Any], Errors]:
    errors: Errors = {}
    data: dict[str, Any] = {"id": _clean_pk(payload, "_id", errors)}
    _put(data, "sub_category_id", clean_str(payload, "newSubCategoryId", errors, min_len=2, max_len=50))
    _put(data, "sub_category_name", clean_str(payload, "newSubCategoryName", errors, min_len=2, max_len=100))
    _put(data, "category_id", clean_str(payload, "newCategoryId", errors, min_len=2, max_len=50))
    _put(data, "is_displayed", clean_bool(payload, "isDisplayed", errors))
    return data, errors


def validate_sub_category_query(payload: dict[str, Any]) -> tuple[dict[str, Any], Errors]:
    errors: Errors = {}
    data: dict[str, Any] = {
        "sub_category_id": clean_str(payload, "subCategoryId", errors, min_len=2, max_len=50),
        "with_category": bool(clean_bool(payload, "category", errors)),
        "is_displayed": clean_bool(payload, "isDisplayed", errors),
    }
    return data, errors


def validate_delete_sub_category(payload: dict[str, Any]) -> tuple[dict[str, Any], Errors]:
    errors: Errors = {}
    data = {"sub_category_id": clean_str(payload, "subCategoryId", errors, required=True, min_len=2, max_len=50)}
    return data, errors


# ---------- categories ----------


def _category_by_business_id(s: Session, category_id: str) -> Category | None:
    return s.query(Category).filter(Category.category_id == category_id).one_or_none()


def _sub_category_by_business_id(s: Session, sub_category_id: str) -> SubCategory | None:
    return s.query(SubCategory).filter(SubCategory.sub_category_id == sub_category_id).one_or_none()


def _by_name(subs: list[SubCategory]) -> list[SubCategory]:
    return sorted(subs, key=lambda sc: sc.sub_category_name.lower())


def create_category(s: Session, data: dict[str, Any], actor: Employee) -> Category:
    if _category_by_business_id(s, data["category_id"]):
        raise ApiError(HTTPStatus.CONFLICT, "Category id already exists")
    c = Category(
        category_id=data["category_id"],
        category_name=data["category_name"],
        is_displayed=data.get("is_displayed", True),
    )
    c.stamp_created(actor.claims())
    s.add(c)
    s.flush()
    record_event(
        s,
        actor=actor,
        action="category.create",
        entity_type="Category",
        entity_id=str(c.id),
        metadata={"category_id": c.category_id, "category_name": c.category_name},
    )
    return c


def get_categories_public(s: Session, *, category_id: str | None, with_sub_categories: bool) -> Any:
    """
    Displayed categories only, audit fields hidden.

    Without category_id every displayed category comes back (sorted by name)
    with its displayed sub-categories. With category_id, sub-categories are
    expanded (sorted by name) only when requested; otherwise listed by id.
    """
    if not category_id:
        cats = (
            s.query(Category)
            .filter(Category.is_displayed.is_(True))
            .order_by(func.lower(Category.category_name))
            .all()
        )
        return [c.to_public_dict([sc for sc in c.sub_categories if sc.is_displayed]) for c in cats]

    c = (
        s.query(Category)
        .filter(Category.category_id == category_id, Category.is_displayed.is_(True))
        .one_or_none()
    )
    if not c:
        raise ApiError(HTTPStatus.NOT_FOUND, "Category not found")
    if with_sub_categories:
        return c.to_public_dict(_by_name([sc for sc in c.sub_categories if sc.is_displayed]))
    return c.to_public_dict()


def get_categories_admin(
    s: Session,
    *,
    category_id: str | None,
    with_sub_categories: bool,
    is_displayed: bool | None,
) -> tuple[int, Any]:
    """
    Full records for the admin tables. Returns (total count under the
    is_displayed filter, result). Sub-categories are filtered the same way.
    """
    q = s.query(Category)
    if is_displayed is not None:
        q = q.filter(Category.is_displayed.is_(is_displayed))
    total = q.count()

    def _subs(c: Category) -> list[SubCategory] | None:
        if not with_sub_categories:
            return None
        if is_displayed is None:
            return list(c.sub_categories)
        return [sc for sc in c.sub_categories if sc.is_displayed == is_displayed]

    if not category_id:
        cats = q.order_by(func.lower(Category.category_name)).all()
        return total, [c.to_admin_dict(_subs(c)) for c in cats]

    c = q.filter(Category.category_id == category_id).one_or_none()
    if not c:
        raise ApiError(HTTPStatus.NOT_FOUND, "Category not found")
    return total, c.to_admin_dict(_subs(c))


def update_category(s: Session, data: dict[str, Any], actor: Employee) -> tuple[Category, dict[str, int] | None]:
    c = s.get(Category, data["id"])
    if not c:
        raise ApiError(HTTPStatus.NOT_FOUND, "Old categoryId is invalid or not found")

    new_id = data.get("category_id")
    new_name = data.get("category_name")
    if new_id and new_id != c.category_id and _category_by_business_id(s, new_id):
        raise ApiError(HTTPStatus.CONFLICT, "New categoryId already exists")

    before = {"category_id": c.category_id, "category_name": c.category_name, "is_displayed": c.is_displayed}
    if new_name:
        c.category_name = new_name
    if "is_displayed" in data:
        c.is_displayed = data["is_displayed"]
    if new_id:
        c.category_id = new_id
    c.stamp_updated(actor.claims())

    # Children read categoryId/categoryName through the parent row; they only
    # need their updatedBy stamp refreshed.
    sub_categories_updated = None
    if new_id or new_name:
        for sc in c.sub_categories:
            sc.stamp_updated(actor.claims())
        count = len(c.sub_categories)
        sub_categories_updated = {"matchedCount": count, "modifiedCount": count}

    s.flush()
    record_event(
        s,
        actor=actor,
        action="category.update",
        entity_type="Category",
        entity_id=str(c.id),
        metadata={
            "before": before,
            "after": {"category_id": c.category_id, "category_name": c.category_name, "is_displayed": c.is_displayed},
        },
    )
    return c, sub_categories_updated


def delete_category(s: Session, category_id: str, actor: Employee) -> str:
    c = _category_by_business_id(s, category_id)
    if not c:
        raise ApiError(HTTPStatus.NOT_FOUND, "Category not found.")
    sub_ids = [sc.sub_category_id for sc in c.sub_categories]
    s.delete(c)
    record_event(
        s,
        actor=actor,
        action="category.delete",
        entity_type="Category",
        entity_id=str(c.id),
        metadata={"category_id": category_id, "sub_category_ids": sub_ids},
    )
    return category_id


# ---------- sub-categories ----------


def create_sub_category(s: Session, data: dict[str, Any], actor: Employee) -> SubCategory:
    parent = _category_by_business_id(s, data["category_id"])
    if not parent:
        raise ApiError(HTTPStatus.NOT_FOUND, "Category ID does not exist")
    if _sub_category_by_business_id(s, data["sub_category_id"]):
        raise ApiError(HTTPStatus.CONFLICT, "SubCategory ID already exists")

    sc = SubCategory(
        sub_category_id=data["sub_category_id"],
        sub_category_name=data["sub_category_name"],
        is_displayed=data.get("is_displayed", True),
    )
    sc.stamp_created(actor.claims())
    parent.sub_categories.append(sc)
    s.flush()
    record_event(
        s,
        actor=actor,
        action="sub_category.create",
        entity_type="SubCategory",
        entity_id=str(sc.id),
        metadata={"sub_category_id": sc.sub_category_id, "category_id": parent.category_id},
    )
    return sc


def update_sub_category(s: Session, data: dict[str, Any], actor: Employee) -> SubCategory:
    sc = s.get(SubCategory, data["id"])
    if not sc:
        raise ApiError(HTTPStatus.NOT_FOUND, "Sub-category not found.")

    new_sub_id = data.get("sub_category_id")
    if new_sub_id and new_sub_id != sc.sub_category_id:
        if _sub_category_by_business_id(s, new_sub_id):
            raise ApiError(HTTPStatus.CONFLICT, "New subCategoryId already exists.")
        sc.sub_category_id = new_sub_id

    new_parent_id = data.get("category_id")
    if new_parent_id and new_parent_id != sc.category.category_id:
        new_parent = _category_by_business_id(s, new_parent_id)
        if not new_parent:
            raise ApiError(HTTPStatus.NOT_FOUND, "New categoryId not found.")
        sc.category = new_parent

    if data.get("sub_category_name"):
        sc.sub_category_name = data["sub_category_name"]
    if "is_displayed" in data:
        sc.is_displayed = data["is_displayed"]
    sc.stamp_updated(actor.claims())

    s.flush()
    record_event(
        s,
        actor=actor,
        action="sub_category.update",
        entity_type="SubCategory",
        entity_id=str(sc.id),
        metadata={k: v for k, v in data.items() if k != "id"},
    )
    return sc


def get_sub_categories_public(s: Session, *, sub_category_id: str | None, with_category: bool) -> Any:
    if not sub_category_id:
        subs = s.query(SubCategory).filter(SubCategory.is_displayed.is_(True)).order_by(SubCategory.id).all()
        return [sc.to_public_dict() for sc in subs]

    sc = (
        s.query(SubCategory)
        .filter(SubCategory.sub_category_id == sub_category_id, SubCategory.is_displayed.is_(True))
        .one_or_none()
    )
    if not sc:
        raise ApiError(HTTPStatus.NOT_FOUND, "Sub Category not found")
    if with_category:
        return {"subCategory": sc.to_public_dict(), "category": sc.category.to_public_dict() if sc.category else None}
    return sc.to_public_dict()


def get_sub_categories_admin(
    s: Session,
    *,
    sub_category_id: str | None,
    with_category: bool,
    is_displayed: bool | None,
) -> tuple[int, Any]:
    q = s.query(SubCategory)
    if is_displayed is not None:
        q = q.filter(SubCategory.is_displayed.is_(is_displayed))
    total = q.count()

    if not sub_category_id:
        return total, [sc.to_admin_dict() for sc in q.order_by(SubCategory.id).all()]

    sc = q.filter(SubCategory.sub_category_id == sub_category_id).one_or_none()
    if not sc:
        raise ApiError(HTTPStatus.NOT_FOUND, "sub Category not found")
    if with_category:
        return total, {"subCategory": sc.to_admin_dict(), "category": sc.category.to_admin_dict() if sc.category else None}
    return total, sc.to_admin_dict()


def delete_sub_category(s: Session, sub_category_id: str, actor: Employee) -> str:
    sc = _sub_category_by_business_id(s, sub_category_id)
    if not sc:
        raise ApiError(HTTPStatus.NOT_FOUND, "Sub-category not found.")
    parent_id = sc.category.category_id if sc.category else None
    sc.category.sub_categories.remove(sc)
    s.delete(sc)
    record_event(
        s,
        actor=actor,
        action="sub_category.delete",
        entity_type="SubCategory",
        entity_id=str(sc.id),
        metadata={"sub_category_id": sub_category_id, "category_id": parent_id},
    )
    return sub_category_id


def load_for_export(s: Session) -> tuple[list[Category], list[SubCategory]]:
    cats = s.query(Category).order_by(Category.id).all()
    subs = s.query(SubCategory).order_by(SubCategory.id).all()
    if not cats and not subs:
        raise ApiError(HTTPStatus.NOT_FOUND, "No categories or subcategories found")
    return cats, subs
