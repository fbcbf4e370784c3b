from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from alerthub.exceptions import NotFoundOrDeleted, StorageError, ValidationError
from alerthub.models.menu import Menu

MENU_FIELDS = ("name", "parent_id", "path", "component", "icon", "sort_order", "route_name", "hidden")


@dataclass
class MenuNode:
    menu: Menu
    children: list["MenuNode"] = field(default_factory=list)


def build_menu_tree(menus: list[Menu]) -> list[MenuNode]:
    """Assemble a forest by ``parent_id``; menus whose parent is absent become roots."""
    nodes = {m.id: MenuNode(m) for m in menus}
    roots: list[MenuNode] = []
    for node in nodes.values():
        parent = nodes.get(node.menu.parent_id) if node.menu.parent_id else None
        if parent is None or parent is node:
            roots.append(node)
        else:
            parent.children.append(node)

    def _sort(items: list[MenuNode]) -> None:
        items.sort(key=lambda n: (n.menu.sort_order, n.menu.id))
        for n in items:
            _sort(n.children)

    _sort(roots)
    return roots


class MenuService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], *, logger: Any = None):
        self._sf = session_factory
        self._log = logger or structlog.get_logger(__name__)

    async def create(self, **fields: Any) -> Menu:
        values = self._validate(fields, partial=False)
        now = datetime.now(timezone.utc)
        try:
            async with self._sf() as session:
                if values["parent_id"]:
                    await self._require_parent(session, values["parent_id"])
                menu = Menu(**values, created_at=now, updated_at=now, is_deleted=0)
                session.add(menu)
                await session.commit()
                await session.refresh(menu)
        except SQLAlchemyError as e:
            raise self._storage_error("create", e) from e
        self._log.info("menu.created", menu_id=menu.id, parent_id=menu.parent_id)
        return menu

    async def get(self, menu_id: int) -> Menu:
        self._check_id(menu_id)
        try:
            async with self._sf() as session:
                menu = await self._get_live(session, menu_id)
        except SQLAlchemyError as e:
            raise self._storage_error("get", e, menu_id=menu_id) from e
        if menu is None:
            raise NotFoundOrDeleted(f"Menu {menu_id} not found", details={"id": menu_id})
        return menu

    async def update(self, menu_id: int, **fields: Any) -> Menu:
        self._check_id(menu_id)
        values = self._validate(fields, partial=True)
        if values.get("parent_id") == menu_id:
            raise ValidationError("A menu cannot be its own parent", details={"id": menu_id})
        try:
            async with self._sf() as session:
                if values.get("parent_id"):
                    await self._require_parent(session, values["parent_id"])
                    await self._reject_cycle(session, menu_id, values["parent_id"])
                values["updated_at"] = datetime.now(timezone.utc)
                result = await session.execute(
                    update(Menu)
                    .where(Menu.id == menu_id, Menu.is_deleted == 0)
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                await session.commit()
        except SQLAlchemyError as e:
            raise self._storage_error("update", e, menu_id=menu_id) from e
        if not result.rowcount:
            raise NotFoundOrDeleted(f"Menu {menu_id} not found or deleted", details={"id": menu_id})
        return await self.get(menu_id)

    async def delete(self, menu_id: int) -> None:
        self._check_id(menu_id)
        try:
            async with self._sf() as session:
                result = await session.execute(
                    update(Menu)
                    .where(Menu.id == menu_id, Menu.is_deleted == 0)
                    .values(is_deleted=1, updated_at=datetime.now(timezone.utc))
                    .execution_options(synchronize_session=False)
                )
                await session.commit()
        except SQLAlchemyError as e:
            raise self._storage_error("delete", e, menu_id=menu_id) from e
        if not result.rowcount:
            raise NotFoundOrDeleted(f"Menu {menu_id} not found or deleted", details={"id": menu_id})
        self._log.info("menu.deleted", menu_id=menu_id)

    async def list(self, page: int, size: int) -> tuple[list[Menu], int]:
        if page < 1 or size < 1:
            raise ValidationError("page and size must be at least 1", details={"page": page, "size": size})
        stmt = (
            select(Menu)
            .where(Menu.is_deleted == 0)
            .order_by(Menu.sort_order.asc(), Menu.id.asc())
            .offset((page - 1) * size)
            .limit(size)
        )
        try:
            async with self._sf() as session:
                rows = (await session.execute(stmt)).scalars().all()
                total = (
                    await session.execute(select(func.count()).select_from(Menu).where(Menu.is_deleted == 0))
                ).scalar_one()
        except SQLAlchemyError as e:
            raise self._storage_error("list", e) from e
        return list(rows), int(total)

    async def tree(self) -> list[MenuNode]:
        try:
            async with self._sf() as session:
                rows = (await session.execute(select(Menu).where(Menu.is_deleted == 0))).scalars().all()
        except SQLAlchemyError as e:
            raise self._storage_error("tree", e) from e
        return build_menu_tree(list(rows))

    @staticmethod
    def _check_id(menu_id: int) -> None:
        if menu_id <= 0:
            raise ValidationError(f"Invalid menu id: {menu_id}", details={"id": menu_id})

    @staticmethod
    def _validate(fields: dict[str, Any], *, partial: bool) -> dict[str, Any]:
        values = {k: v for k, v in fields.items() if k in MENU_FIELDS and v is not None}
        if not partial:
            for key in ("name", "path"):
                if not values.get(key):
                    raise ValidationError(f"{key} is required")
            values.setdefault("parent_id", 0)
        elif not values:
            raise ValidationError("No fields to update")
        for key in ("name", "path"):
            if key in values and not values[key]:
                raise ValidationError(f"{key} must not be empty")
        for key in ("parent_id", "sort_order"):
            if key in values and values[key] < 0:
                raise ValidationError(f"{key} must not be negative", details={key: values[key]})
        if "hidden" in values and values["hidden"] not in (0, 1):
            raise ValidationError("hidden must be 0 or 1", details={"hidden": values["hidden"]})
        return values

    @staticmethod
    async def _get_live(session: AsyncSession, menu_id: int) -> Menu | None:
        stmt = select(Menu).where(Menu.id == menu_id, Menu.is_deleted == 0)
        return (await session.execute(stmt)).scalars().first()

    async def _require_parent(self, session: AsyncSession, parent_id: int) -> None:
        if await self._get_live(session, parent_id) is None:
            raise ValidationError(f"Parent menu {parent_id} does not exist", details={"parent_id": parent_id})

    async def _reject_cycle(self, session: AsyncSession, menu_id: int, parent_id: int) -> None:
        seen: set[int] = set()
        current = parent_id
        while current and current not in seen:
            if current == menu_id:
                raise ValidationError("Menu parent would create a cycle", details={"parent_id": parent_id})
            seen.add(current)
            current = (
                await session.execute(select(Menu.parent_id).where(Menu.id == current))
            ).scalar_one_or_none() or 0

    def _storage_error(self, op: str, exc: Exception, **context: Any) -> StorageError:
        self._log.error("menu.storage_error", op=op, error=str(exc), **context)
        return StorageError("Menu storage unavailable", details={"op": op, **context})
