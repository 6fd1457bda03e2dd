"""SQLAlchemy ORM base for entity tables.

Entity tables combine ``Base`` with ``EntityMixin`` to get the columns every
cacheable entity shares:

    class UserTable(EntityMixin, Base):
        __tablename__ = "users"

        email: Mapped[str] = mapped_column(String(320), unique=True)
"""

from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def generate_id() -> str:
    return str(uuid4())


class EntityMixin:
    """Identifier, audit and soft-delete columns."""

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    modified_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Soft-delete flag; flagged rows are invisible to repository reads
    destroyed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
