from __future__ import annotations

"""
👤 MovieShelf · User (accounts & auth)
=====================================

Login credentials for the catalog. Email uniqueness is case-insensitive
(functional index on `lower(email)`); emails are also normalised to lowercase
before insert.
"""

from sqlalchemy import Boolean, CheckConstraint, Index, String, func, text
from sqlalchemy.orm import Mapped, mapped_column

from movieshelf.db.base_class import Base, TimestampMixin, UUIDPKMixin


class User(UUIDPKMixin, TimestampMixin, Base):
    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(320), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False, doc="bcrypt hash")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))

    __table_args__ = (
        Index("uq_users_email_lower", func.lower(text("email")), unique=True),
        CheckConstraint("length(btrim(email)) > 0", name="email_not_blank"),
    )
