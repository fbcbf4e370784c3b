from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, SmallInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from alerthub.db import Base


class Menu(Base):
    __tablename__ = "menus"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    # 0 = top level
    parent_id: Mapped[int] = mapped_column(Integer, index=True, default=0)
    path: Mapped[str] = mapped_column(String(255), nullable=False)
    component: Mapped[str] = mapped_column(String(255), default="")
    icon: Mapped[str] = mapped_column(String(50), default="")
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    route_name: Mapped[str] = mapped_column(String(50), default="")
    hidden: Mapped[int] = mapped_column(SmallInteger, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_deleted: Mapped[int] = mapped_column(SmallInteger, index=True, default=0)
