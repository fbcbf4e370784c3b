from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from alerthub.services.menus import MenuNode


class MenuIn(BaseModel):
    name: str
    path: str
    parent_id: int = Field(default=0, ge=0)
    component: str = ""
    icon: str = ""
    sort_order: int = Field(default=0, ge=0)
    route_name: str = ""
    hidden: int = Field(default=0, ge=0, le=1)


class MenuUpdate(BaseModel):
    name: Optional[str] = None
    path: Optional[str] = None
    parent_id: Optional[int] = Field(default=None, ge=0)
    component: Optional[str] = None
    icon: Optional[str] = None
    sort_order: Optional[int] = Field(default=None, ge=0)
    route_name: Optional[str] = None
    hidden: Optional[int] = Field(default=None, ge=0, le=1)


class MenuOut(BaseModel):
    id: int
    name: str
    parent_id: int
    path: str
    component: str
    icon: str
    sort_order: int
    route_name: str
    hidden: int
    created_at: datetime
    updated_at: datetime
    children: list["MenuOut"] = []

    @classmethod
    def from_node(cls, node: MenuNode) -> "MenuOut":
        out = cls.model_validate(node.menu, from_attributes=True)
        out.children = [cls.from_node(c) for c in node.children]
        return out


class MenuPage(BaseModel):
    items: list[MenuOut]
    total: int
