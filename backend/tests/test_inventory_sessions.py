from sqlalchemy import select

import routers.inventory as inventory_router
from db.database import InventoryItem, InventorySession, Location, ProductVariation


async def _create_session(client, **body):
    r = await client.post("/inventory/sessions", json=body)
    assert r.status_code == 201, r.text
    return r.json()


async def _session_detail(client, session_id):
    r = await client.get(f"/inventory/sessions/{session_id}")
    assert r.status_code == 200, r.text
    return r.json()


async def test_total_session_counts_every_active_product(staff_client, catalog, staff_user):
    sessao = await _create_session(staff_client, tipo="Total")

    assert sessao["numero"] == 1
    assert sessao["nome"] == "Inventário #1"
    assert sessao["status"] == "Aberto"
    assert sessao["criado_por"] == str(staff_user.id)

    detail = await _session_detail(staff_client, sessao["id"])
    produtos = {it["produto_id"] for it in detail["itens"]}
    assert produtos == {catalog.cerveja.id, catalog.vinho.id, catalog.azeite.id}
    assert all(it["quantidade_contada"] == 0 for it in detail["itens"])
    # Defaults to the tenant's first active location
    assert {it["localizacao_id"] for it in detail["itens"]} == {catalog.armazem.id}

    by_product = {it["produto_id"]: it for it in detail["itens"]}
    assert by_product[catalog.vinho.id]["unidade_medida"] == "garrafa"
    # Ordered by product name
    assert [it["produto_nome"] for it in detail["itens"]] == ["Azeite", "Cerveja 33cl", "Vinho Tinto"]


async def test_session_numbers_are_sequential_per_tenant(staff_client, db, catalog, other_tenant):
    db.add(InventorySession(tenant_id=other_tenant.id, numero=7, nome="Outro", tipo="Total", status="Aberto"))
    await db.commit()

    first = await _create_session(staff_client, tipo="Total")
    second = await _create_session(staff_client, tipo="Total", nome="Fecho do mês")

    assert first["numero"] == 1
    assert second["numero"] == 2
    assert second["nome"] == "Fecho do mês"


async def test_custom_session_filters_by_family(staff_client, catalog):
    sessao = await _create_session(
        staff_client,
        tipo="Personalizado",
        filtros={"familia_id": catalog.bebidas.id},
    )
    detail = await _session_detail(staff_client, sessao["id"])

    assert {it["produto_id"] for it in detail["itens"]} == {catalog.cerveja.id, catalog.vinho.id}
    assert detail["filtros_usados"] == {"familia_id": catalog.bebidas.id}


async def test_custom_session_filters_by_subfamily(staff_client, catalog):
    sessao = await _create_session(
        staff_client,
        tipo="Personalizado",
        filtros={"subfamilia_id": catalog.oleos.id},
    )
    detail = await _session_detail(staff_client, sessao["id"])

    assert [it["produto_id"] for it in detail["itens"]] == [catalog.azeite.id]


async def test_custom_session_location_filter_becomes_default_location(staff_client, catalog):
    sessao = await _create_session(
        staff_client,
        tipo="Personalizado",
        filtros={"familia_id": catalog.bebidas.id, "localizacao_id": catalog.bar.id},
    )
    detail = await _session_detail(staff_client, sessao["id"])

    assert {it["localizacao_id"] for it in detail["itens"]} == {catalog.bar.id}
    assert {it["localizacao_nome"] for it in detail["itens"]} == {"Bar"}


async def test_custom_session_without_filters_is_empty(staff_client, catalog):
    sessao = await _create_session(staff_client, tipo="Personalizado")
    detail = await _session_detail(staff_client, sessao["id"])

    assert detail["itens"] == []
    assert detail["status"] == "Aberto"


async def test_calculator_session_uses_saved_list(staff_client, catalog):
    r = await staff_client.post(
        "/inventory/calculator-lists",
        json={
            "nome": "Compras de sexta",
            "itens": [
                {"tipo": "produto", "id": catalog.azeite.id, "quantidade": 2},
                {"tipo": "produto", "id": catalog.vinho.id, "quantidade": 6},
            ],
        },
    )
    assert r.status_code == 201, r.text
    lista = r.json()

    listed = await staff_client.get("/inventory/calculator-lists")
    assert [cl["id"] for cl in listed.json()] == [lista["id"]]

    sessao = await _create_session(
        staff_client,
        tipo="Calculadora",
        filtros={"lista_calculadora_id": lista["id"]},
    )
    detail = await _session_detail(staff_client, sessao["id"])

    assert {it["produto_id"] for it in detail["itens"]} == {catalog.azeite.id, catalog.vinho.id}


async def test_unknown_location_filter_is_rejected(staff_client, catalog):
    r = await staff_client.post(
        "/inventory/sessions",
        json={"tipo": "Personalizado", "filtros": {"localizacao_id": 9999}},
    )
    assert r.status_code == 404
    assert r.json()["detail"] == "Location not found"


async def test_add_item_for_product_outside_resolved_set(staff_client, catalog):
    sessao = await _create_session(
        staff_client,
        tipo="Personalizado",
        filtros={"subfamilia_id": catalog.oleos.id},
    )

    r = await staff_client.post(
        f"/inventory/sessions/{sessao['id']}/items",
        json={"produto_id": catalog.cerveja.id},
    )
    assert r.status_code == 201, r.text
    item = r.json()
    assert item["produto_id"] == catalog.cerveja.id
    assert item["produto_nome"] == "Cerveja 33cl"
    assert item["quantidade_contada"] == 0
    assert item["unidade_medida"] == "un"

    detail = await _session_detail(staff_client, sessao["id"])
    assert len(detail["itens"]) == 2


async def test_add_item_unknown_product(staff_client, catalog):
    sessao = await _create_session(staff_client, tipo="Total")

    r = await staff_client.post(f"/inventory/sessions/{sessao['id']}/items", json={"produto_id": 424242})
    assert r.status_code == 404
    assert r.json()["detail"] == "Product not found"


async def test_update_item_overwrites_count_and_metadata(staff_client, catalog, staff_user):
    sessao = await _create_session(staff_client, tipo="Total")
    detail = await _session_detail(staff_client, sessao["id"])
    item = next(it for it in detail["itens"] if it["produto_id"] == catalog.cerveja.id)

    r = await staff_client.put(
        f"/inventory/items/{item['id']}",
        json={"quantidade": 12.5, "localizacao_id": catalog.bar.id, "observacoes": "caixa aberta"},
    )
    assert r.status_code == 200, r.text
    updated = r.json()
    assert updated["quantidade_contada"] == 12.5
    assert updated["localizacao_id"] == catalog.bar.id
    assert updated["localizacao_nome"] == "Bar"
    assert updated["observacoes"] == "caixa aberta"
    assert updated["contado_por"] == str(staff_user.id)

    # A second count simply overwrites; negative values are not rejected.
    r = await staff_client.put(f"/inventory/items/{item['id']}", json={"quantidade": -1})
    assert r.status_code == 200
    assert r.json()["quantidade_contada"] == -1
    assert r.json()["localizacao_id"] == catalog.bar.id


async def test_delete_item(staff_client, catalog, session_maker):
    sessao = await _create_session(staff_client, tipo="Total")
    detail = await _session_detail(staff_client, sessao["id"])
    item_id = detail["itens"][0]["id"]

    r = await staff_client.delete(f"/inventory/items/{item_id}")
    assert r.status_code == 200
    assert r.json() == {"success": True}

    r = await staff_client.delete(f"/inventory/items/{item_id}")
    assert r.status_code == 404

    async with session_maker() as s:
        res = await s.execute(select(InventoryItem).where(InventoryItem.sessao_id == sessao["id"]))
        assert len(res.scalars().all()) == 2


async def test_list_sessions_defaults_to_open(staff_client, catalog):
    aberta = await _create_session(staff_client, tipo="Total")
    fechada = await _create_session(staff_client, tipo="Total")
    r = await staff_client.post(f"/inventory/sessions/{fechada['id']}/close")
    assert r.status_code == 200, r.text

    r = await staff_client.get("/inventory/sessions")
    assert [s["id"] for s in r.json()] == [aberta["id"]]

    r = await staff_client.get("/inventory/sessions", params={"status": "Fechado"})
    assert [s["id"] for s in r.json()] == [fechada["id"]]


async def test_sessions_are_tenant_scoped(staff_client, db, catalog, other_tenant):
    foreign = InventorySession(tenant_id=other_tenant.id, numero=1, nome="Outro", tipo="Total", status="Aberto")
    db.add(foreign)
    await db.commit()

    r = await staff_client.get(f"/inventory/sessions/{foreign.id}")
    assert r.status_code == 404

    r = await staff_client.post(f"/inventory/sessions/{foreign.id}/close")
    assert r.status_code == 400


async def test_staff_cannot_pick_another_tenant(staff_client, catalog, other_tenant):
    r = await staff_client.get("/inventory/sessions", headers={"X-Tenant-Id": str(other_tenant.id)})
    assert r.status_code == 403


async def test_superuser_selects_tenant_by_header(admin_client, catalog, tenant):
    r = await admin_client.post(
        "/inventory/sessions",
        json={"tipo": "Total"},
        headers={"X-Tenant-Id": str(tenant.id)},
    )
    assert r.status_code == 201, r.text

    r = await admin_client.get("/inventory/sessions")
    assert r.status_code == 400


async def test_locations(staff_client, catalog):
    r = await staff_client.post("/inventory/locations", json={"nome": "  Câmara frigorífica ", "descricao": "-18ºC"})
    assert r.status_code == 201, r.text
    assert r.json()["nome"] == "Câmara frigorífica"

    r = await staff_client.get("/inventory/locations")
    assert [loc["nome"] for loc in r.json()] == ["Armazém", "Bar", "Câmara frigorífica"]

    r = await staff_client.post("/inventory/locations", json={"nome": "   "})
    assert r.status_code == 422


async def test_calculator_session_ignores_recipe_and_combo_entries(staff_client, catalog):
    r = await staff_client.post(
        "/inventory/calculator-lists",
        json={
            "nome": "Menu de domingo",
            "itens": [
                {"tipo": "receita", "id": catalog.azeite.id, "quantidade": 4},
                {"tipo": "combo", "id": catalog.vinho.id, "quantidade": 1},
                {"tipo": "produto", "id": catalog.cerveja.id, "quantidade": 12},
            ],
        },
    )
    assert r.status_code == 201, r.text

    sessao = await _create_session(
        staff_client,
        tipo="Calculadora",
        filtros={"lista_calculadora_id": r.json()["id"]},
    )
    detail = await _session_detail(staff_client, sessao["id"])

    assert [it["produto_id"] for it in detail["itens"]] == [catalog.cerveja.id]


async def test_update_item_rejects_foreign_location(staff_client, db, catalog, other_tenant):
    foreign = Location(tenant_id=other_tenant.id, nome="Cave alheia", ativo=True)
    db.add(foreign)
    await db.commit()

    sessao = await _create_session(staff_client, tipo="Total")
    detail = await _session_detail(staff_client, sessao["id"])
    item = detail["itens"][0]

    r = await staff_client.put(
        f"/inventory/items/{item['id']}",
        json={"quantidade": 1, "localizacao_id": foreign.id},
    )
    assert r.status_code == 404
    assert r.json()["detail"] == "Location not found"

    detail = await _session_detail(staff_client, sessao["id"])
    unchanged = next(it for it in detail["itens"] if it["id"] == item["id"])
    assert unchanged["localizacao_id"] == catalog.armazem.id
    assert unchanged["quantidade_contada"] == 0
    assert unchanged["localizacao_nome"] == "Armazém"


async def test_update_item_rejects_variation_of_other_product_or_tenant(
    staff_client, db, catalog, tenant, other_tenant
):
    de_vinho = ProductVariation(tenant_id=tenant.id, produto_id=catalog.vinho.id, nome="Caixa 6", fator_conversao=6)
    alheia = ProductVariation(tenant_id=other_tenant.id, produto_id=catalog.cerveja.id, nome="Grade", fator_conversao=24)
    db.add_all([de_vinho, alheia])
    await db.commit()

    sessao = await _create_session(staff_client, tipo="Total")
    detail = await _session_detail(staff_client, sessao["id"])
    cerveja = next(it for it in detail["itens"] if it["produto_id"] == catalog.cerveja.id)

    for variacao_id in (de_vinho.id, alheia.id):
        r = await staff_client.put(
            f"/inventory/items/{cerveja['id']}",
            json={"quantidade": 1, "variacao_id": variacao_id},
        )
        assert r.status_code == 404
        assert r.json()["detail"] == "Variation not found"


async def test_create_session_failure_is_rolled_back(staff_client, catalog, session_maker, monkeypatch):
    async def broken_numbering(db, tenant_id):
        raise RuntimeError("sequence unavailable")

    monkeypatch.setattr(inventory_router, "_next_session_number", broken_numbering)

    r = await staff_client.post("/inventory/sessions", json={"tipo": "Total"})
    assert r.status_code == 500
    assert r.json()["detail"] == "Failed to create session: sequence unavailable"

    async with session_maker() as s:
        res = await s.execute(select(InventorySession))
        assert res.scalars().all() == []
