"""
Module: society_kernel.models.category
Responsibility: Income and expense categories (with optional subcategory).
Architecture position: Kernel > Models.  May import from db/base.py only.

Active categories define the rows the missing-data report expects every
fiscal month.
"""

from sqlalchemy import Boolean, CheckConstraint, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from society_kernel.db.base import Base


class CategoryModel(Base):
    """An income or expense category."""

    __tablename__ = "categories"

    __table_args__ = (
        CheckConstraint(
            "kind IN ('income', 'expense')",
            name="ck_categories_valid_kind",
        ),
        UniqueConstraint("kind", "name", "subcategory", name="uq_categories_name"),
    )

    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    subcategory: Mapped[str | None] = mapped_column(String(200), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        suffix = f" / {self.subcategory}" if self.subcategory else ""
        return f"<Category {self.kind}: {self.name}{suffix}>"
