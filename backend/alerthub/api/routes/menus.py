from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from alerthub.core.auth import get_current_user, require_roles
from alerthub.dependencies import get_menu_service
from alerthub.schemas.menus import MenuIn, MenuOut, MenuPage, MenuUpdate
from alerthub.services.menus import MenuNode, MenuService


router = APIRouter(prefix="/menus", tags=["menus"], dependencies=[Depends(get_current_user)])


@router.get("/", response_model=MenuPage)
async def list_menus(
    page: int = Query(default=1, ge=1),
    size: int = Query(default=50, ge=1, le=500),
    is_tree: bool = Query(default=False),
    service: MenuService = Depends(get_menu_service),
) -> MenuPage:
    if is_tree:
        roots = await service.tree()
        return MenuPage(items=[MenuOut.from_node(n) for n in roots], total=len(roots))
    rows, total = await service.list(page, size)
    return MenuPage(items=[MenuOut.from_node(MenuNode(r)) for r in rows], total=total)


@router.post("/", response_model=MenuOut, status_code=201, dependencies=[Depends(require_roles("admin"))])
async def create_menu(body: MenuIn, service: MenuService = Depends(get_menu_service)) -> MenuOut:
    menu = await service.create(**body.model_dump())
    return MenuOut.from_node(MenuNode(menu))


@router.get("/{menu_id}", response_model=MenuOut)
async def get_menu(menu_id: int, service: MenuService = Depends(get_menu_service)) -> MenuOut:
    return MenuOut.from_node(MenuNode(await service.get(menu_id)))


@router.put("/{menu_id}", response_model=MenuOut, dependencies=[Depends(require_roles("admin"))])
async def update_menu(menu_id: int, body: MenuUpdate, service: MenuService = Depends(get_menu_service)) -> MenuOut:
    menu = await service.update(menu_id, **body.model_dump(exclude_unset=True))
    return MenuOut.from_node(MenuNode(menu))


@router.delete("/{menu_id}", dependencies=[Depends(require_roles("admin"))])
async def delete_menu(menu_id: int, service: MenuService = Depends(get_menu_service)) -> dict[str, str]:
    await service.delete(menu_id)
    return {"status": "ok"}
