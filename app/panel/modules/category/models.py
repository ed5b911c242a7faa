from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.panel.models import Base


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class _AuditedMixin:
    created_by_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_by_role: Mapped[str | None] = mapped_column(String(32), nullable=True)
    created_by_email: Mapped[str | None] = mapped_column(String(320), nullable=True)

    updated_by_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    updated_by_role: Mapped[str | None] = mapped_column(String(32), nullable=True)
    updated_by_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    updated_by_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    def stamp_created(self, actor: dict) -> None:
        self.created_by_id = actor.get("id")
        self.created_by_role = actor.get("role")
        self.created_by_email = actor.get("email")

    def stamp_updated(self, actor: dict) -> None:
        self.updated_by_id = actor.get("id")
        self.updated_by_role = actor.get("role")
        self.updated_by_email = actor.get("email")
        self.updated_by_at = datetime.utcnow()

    def _audit_fields(self) -> dict:
        created_by = None
        if self.created_by_email:
            created_by = {"id": self.created_by_id, "role": self.created_by_role, "email": self.created_by_email}
        updated_by = None
        if self.updated_by_email:
            updated_by = {
                "id": self.updated_by_id,
                "role": self.updated_by_role,
                "email": self.updated_by_email,
                "updatedAt": _iso(self.updated_by_at),
            }
        return {
            "createdBy": created_by,
            "updatedBy": updated_by,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


class Category(_AuditedMixin, Base):
    __tablename__ = "categories"
    __table_args__ = (
        Index("idx_categories_name", "category_name"),
        Index("idx_categories_is_displayed", "is_displayed"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    category_id: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    category_name: Mapped[str] = mapped_column(String(100), nullable=False)
    is_displayed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    sub_categories: Mapped[list["SubCategory"]] = relationship(
        "SubCategory",
        back_populates="category",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="SubCategory.id",
    )

    def to_public_dict(self, sub_categories: list["SubCategory"] | None = None) -> dict:
        """
        Storefront shape: audit fields and the display flag are hidden.
        Without `sub_categories` the children are listed by id only.
        """
        d = {
            "_id": self.id,
            "categoryId": self.category_id,
            "categoryName": self.category_name,
        }
        if sub_categories is None:
            d["subCategories"] = [sc.id for sc in self.sub_categories]
        else:
            d["subCategories"] = [sc.to_dict() for sc in sub_categories]
        return d

    def to_admin_dict(self, sub_categories: list["SubCategory"] | None = None) -> dict:
        d = {
            "_id": self.id,
            "categoryId": self.category_id,
            "categoryName": self.category_name,
            "isDisplayed": self.is_displayed,
            **self._audit_fields(),
        }
        if sub_categories is not None:
            d["subCategories"] = [sc.to_admin_dict() for sc in sub_categories]
        return d


class SubCategory(_AuditedMixin, Base):
    __tablename__ = "sub_categories"
    __table_args__ = (
        Index("idx_sub_categories_parent", "parent_id"),
        Index("idx_sub_categories_is_displayed", "is_displayed"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    sub_category_id: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    sub_category_name: Mapped[str] = mapped_column(String(100), nullable=False)
    is_displayed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    parent_id: Mapped[int] = mapped_column(ForeignKey("categories.id", ondelete="CASCADE"), nullable=False)
    category: Mapped[Category] = relationship("Category", back_populates="sub_categories", lazy="joined")

    def to_dict(self) -> dict:
        return {
            "_id": self.id,
            "subCategoryId": self.sub_category_id,
            "subCategoryName": self.sub_category_name,
            "categoryId": self.category.category_id if self.category else None,
            "categoryName": self.category.category_name if self.category else None,
            "isDisplayed": self.is_displayed,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }

    def to_public_dict(self) -> dict:
        return {
            "_id": self.id,
            "subCategoryId": self.sub_category_id,
            "subCategoryName": self.sub_category_name,
            "categoryId": self.category.category_id if self.category else None,
            "categoryName": self.category.category_name if self.category else None,
            "isDisplayed": self.is_displayed,
        }

    def to_admin_dict(self) -> dict:
        return {
            "_id": self.id,
            "subCategoryId": self.sub_category_id,
            "subCategoryName": self.sub_category_name,
            "categoryId": self.category.category_id if self.category else None,
            "categoryName": self.category.category_name if self.category else None,
            "isDisplayed": self.is_displayed,
            **self._audit_fields(),
        }
