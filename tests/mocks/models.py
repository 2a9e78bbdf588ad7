"""ORM models used by database-backed tests."""

from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from trex_core.db.db_models import Base, MetaColumns


class UserModel(MetaColumns, Base):
    __tablename__ = "users"

    name: Mapped[str] = mapped_column(sa.String(128), nullable=False, default="")
    email: Mapped[str] = mapped_column(sa.String(256), nullable=False, default="")
