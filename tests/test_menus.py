"""Tests for menu endpoints and their city scoping."""

import pytest
from httpx import AsyncClient

from portal.models.menu import Menu, MenuType


@pytest.fixture
async def menu_type(db_session) -> MenuType:
    menu_type = MenuType(name="Services")
    db_session.add(menu_type)
    await db_session.commit()
    return menu_type


@pytest.fixture
async def menus(db_session, city_a, city_b, menu_type) -> dict[str, Menu]:
    rows = {
        "alpha": Menu(city_id=city_a.id, type_id=menu_type.id, item="Alpha hall", link="/alpha"),
        "beta": Menu(city_id=city_b.id, type_id=menu_type.id, item="Beta hall", link="/beta"),
    }
    db_session.add_all(rows.values())
    await db_session.commit()
    return rows


async def test_menu_list_is_scoped(async_client: AsyncClient, menus, local_manager, global_manager, auth_headers):
    scoped = await async_client.get("/api/menus", headers=auth_headers(local_manager))
    assert [m["item"] for m in scoped.json()["data"]] == ["Alpha hall"]

    full = await async_client.get("/api/menus", headers=auth_headers(global_manager))
    assert {m["item"] for m in full.json()["data"]} == {"Alpha hall", "Beta hall"}


async def test_menu_list_without_assignments(async_client: AsyncClient, menus, make_user, auth_headers):
    loner = await make_user("local_manager")
    resp = await async_client.get("/api/menus", headers=auth_headers(loner))
    assert resp.json()["data"] == []


async def test_menu_detail_in_own_city(async_client: AsyncClient, menus, member, city_a, auth_headers, audit_entries):
    resp = await async_client.get(f"/api/menus/{menus['alpha'].id}", headers=auth_headers(member))
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["city"] == {"id": city_a.id, "name": "Alpha"}
    assert data["menu_type"]["name"] == "Services"
    assert len(await audit_entries("read")) == 1


async def test_menu_detail_in_other_city_is_forbidden(async_client: AsyncClient, menus, member, auth_headers, audit_entries):
    resp = await async_client.get(f"/api/menus/{menus['beta'].id}", headers=auth_headers(member))
    assert resp.status_code == 403
    assert len(await audit_entries("read-failed")) == 1


async def test_menu_detail_missing(async_client: AsyncClient, member, auth_headers, audit_entries):
    resp = await async_client.get("/api/menus/4040", headers=auth_headers(member))
    assert resp.status_code == 404
    assert len(await audit_entries("read-failed")) == 1


async def test_create_menu(async_client: AsyncClient, admin, city_a, menu_type, auth_headers):
    resp = await async_client.post(
        "/api/menus",
        json={"city_id": city_a.id, "type_id": menu_type.id, "item": "Tax office", "link": "/tax", "title": "Taxes"},
        headers=auth_headers(admin),
    )
    assert resp.status_code == 201
    menu = resp.json()["menu"]
    assert menu["item"] == "Tax office"
    assert menu["city"]["name"] == "Alpha"


async def test_create_menu_missing_fields(async_client: AsyncClient, admin, city_a, auth_headers, audit_entries):
    resp = await async_client.post(
        "/api/menus", json={"city_id": city_a.id, "item": "Half"}, headers=auth_headers(admin)
    )
    assert resp.status_code == 400
    assert len(await audit_entries("create-failed")) == 1


@pytest.mark.parametrize("missing", ["city", "type"])
async def test_create_menu_unknown_reference(async_client: AsyncClient, admin, city_a, menu_type, auth_headers, missing):
    body = {
        "city_id": 999 if missing == "city" else city_a.id,
        "type_id": 999 if missing == "type" else menu_type.id,
        "item": "Ghost",
        "link": "/ghost",
    }
    resp = await async_client.post("/api/menus", json=body, headers=auth_headers(admin))
    assert resp.status_code == 404


async def test_update_menu_moves_city(async_client: AsyncClient, admin, menus, city_b, auth_headers):
    resp = await async_client.put(
        f"/api/menus/{menus['alpha'].id}",
        json={"city_id": city_b.id, "title": "Moved"},
        headers=auth_headers(admin),
    )
    assert resp.status_code == 200
    menu = resp.json()["menu"]
    assert menu["city"]["id"] == city_b.id
    assert menu["title"] == "Moved"
    assert menu["item"] == "Alpha hall"


async def test_update_menu_rejects_blank_required_fields(
    async_client: AsyncClient, admin, menus, auth_headers, audit_entries, db_session
):
    resp = await async_client.put(
        f"/api/menus/{menus['alpha'].id}",
        json={"link": "", "item": "  "},
        headers=auth_headers(admin),
    )
    assert resp.status_code == 400
    assert resp.json()["success"] is False
    assert "item" in resp.json()["message"]
    assert "link" in resp.json()["message"]
    assert len(await audit_entries("update-failed")) == 1

    await db_session.refresh(menus["alpha"])
    assert (menus["alpha"].item, menus["alpha"].link) == ("Alpha hall", "/alpha")


async def test_delete_menu(async_client: AsyncClient, admin, menus, auth_headers):
    resp = await async_client.delete(f"/api/menus/{menus['beta'].id}", headers=auth_headers(admin))
    assert resp.status_code == 200
    listed = await async_client.get("/api/menus", headers=auth_headers(admin))
    assert [m["item"] for m in listed.json()["data"]] == ["Alpha hall"]


async def test_local_manager_cannot_mutate_menus(async_client: AsyncClient, local_manager, menus, auth_headers):
    resp = await async_client.delete(f"/api/menus/{menus['alpha'].id}", headers=auth_headers(local_manager))
    assert resp.status_code == 403
