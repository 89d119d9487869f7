import base64
from pathlib import Path
from urllib.parse import urlparse

import pytest

from florify.services.catalog_types import CatalogRecord

from tests.fakes import StoreFailure, csv_text


CSV = csv_text(
    "codbarra;descricao;item_code;preco_unitario",
    "100;Girassol;G-1;5,00",
    "789;Rosa Vermelha Premium;R-01;0",
    "790;Lírio;L-01;0",
    ";Sem código;;1,00",
)


@pytest.fixture
def seeded(store, rosa):
    store._put(rosa)
    store._put(CatalogRecord(codbarra="790", descricao="Lírio", item_code="L-01"))
    return store


@pytest.mark.asyncio
async def test_analyze_requires_admin_key(client):
    r = await client.post("/v1/admin/catalog/imports:analyze", json={"filename": "c.csv", "content": CSV})
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_analyze_returns_four_categories(client, seeded, admin_headers):
    r = await client.post(
        "/v1/admin/catalog/imports:analyze",
        json={"filename": "catalogo.csv", "content": CSV},
        headers=admin_headers,
    )
    assert r.status_code == 200
    body = r.json()

    assert set(body) >= {"novos", "alterados", "semAlteracao", "erros"}
    assert [p["codbarra"] for p in body["novos"]] == ["100"]
    assert body["alterados"][0]["linha"] == 3
    assert body["alterados"][0]["diferencas"] == {
        "descricao": {"de": "Rosa Vermelha", "para": "Rosa Vermelha Premium"},
    }
    assert [p["codbarra"] for p in body["semAlteracao"]] == ["790"]
    assert body["erros"] == [{"linha": 5, "erro": "Campos obrigatórios ausentes (codbarra, descricao)"}]
    assert body["summary"]["total"] == 4

    # analysis never writes
    assert seeded.batches == {}
    assert "upsert_products" not in seeded.calls


@pytest.mark.asyncio
async def test_analyze_rejects_non_csv_filename(client, admin_headers):
    r = await client.post(
        "/v1/admin/catalog/imports:analyze",
        json={"filename": "catalogo.xlsx", "content": CSV},
        headers=admin_headers,
    )
    assert r.status_code == 415


@pytest.mark.asyncio
async def test_analyze_empty_file_is_unprocessable(client, admin_headers):
    r = await client.post(
        "/v1/admin/catalog/imports:analyze",
        json={"filename": "c.csv", "content": "codbarra;descricao\n"},
        headers=admin_headers,
    )
    assert r.status_code == 422
    assert r.json()["detail"] == "Arquivo CSV vazio ou sem dados válidos"


@pytest.mark.asyncio
async def test_apply_selected_rows(client, seeded, admin_headers):
    r = await client.post(
        "/v1/admin/catalog/imports:apply",
        json={"filename": "catalogo.csv", "content": CSV, "selected_new": ["100"], "selected_changed": ["789"]},
        headers=admin_headers,
    )
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "completed"
    assert (body["new_applied"], body["changed_applied"]) == (1, 1)
    assert body["audit"] == {"written": 3, "failed": 0}

    assert seeded.products["789"].descricao == "Rosa Vermelha Premium"
    assert seeded.products["100"].importacao_id == body["batch_id"]

    batch = seeded.batches[body["batch_id"]]
    assert batch["usuario_id"] == "usr_test"
    assert "/imports/cvh/usr_test/" in batch["arquivo_path"]


@pytest.mark.asyncio
async def test_apply_with_empty_selection_changes_nothing(client, seeded, admin_headers):
    r = await client.post(
        "/v1/admin/catalog/imports:apply",
        json={"filename": "catalogo.csv", "content": CSV, "selected_new": [], "selected_changed": []},
        headers=admin_headers,
    )
    assert r.status_code == 200
    assert (r.json()["new_applied"], r.json()["changed_applied"]) == (0, 0)
    assert "100" not in seeded.products
    assert seeded.products["789"].descricao == "Rosa Vermelha"


@pytest.mark.asyncio
async def test_apply_failure_reports_failed_batch(client, seeded, admin_headers):
    seeded.fail["upsert_products"] = StoreFailure("connection reset")

    r = await client.post(
        "/v1/admin/catalog/imports:apply",
        json={"filename": "catalogo.csv", "content": CSV},
        headers=admin_headers,
    )
    assert r.status_code == 500
    detail = r.json()["detail"]
    assert detail["message"] == "Falha na importação: connection reset"
    assert seeded.batches[detail["batch_id"]]["status"] == "failed"


@pytest.mark.asyncio
async def test_list_and_get_batches(client, seeded, admin_headers):
    applied = await client.post(
        "/v1/admin/catalog/imports:apply",
        json={"filename": "catalogo.csv", "content": CSV},
        headers=admin_headers,
    )
    batch_id = applied.json()["batch_id"]

    r = await client.get("/v1/admin/catalog/imports", headers=admin_headers)
    assert r.status_code == 200
    assert [b["id"] for b in r.json()] == [batch_id]

    r = await client.get(f"/v1/admin/catalog/imports/{batch_id}", headers=admin_headers)
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "completed"
    assert (body["total_linhas"], body["novos"], body["alterados"]) == (3, 1, 1)
    assert body["diff_preview"]["resumo_final"]["chave_identificacao"] == "codbarra"

    r = await client.get("/v1/admin/catalog/imports/imp_missing", headers=admin_headers)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_product_lookups(client, seeded, admin_headers):
    r = await client.get("/v1/admin/catalog/products", headers=admin_headers)
    assert r.status_code == 200
    assert {p["codbarra"] for p in r.json()} == {"789", "790"}

    r = await client.get("/v1/admin/catalog/products/by-barcode/789", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["descricao"] == "Rosa Vermelha"

    r = await client.get("/v1/admin/catalog/products/by-item-code/L-01", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["codbarra"] == "790"

    r = await client.get("/v1/admin/catalog/products/by-barcode/000", headers=admin_headers)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_apply_archives_the_original_bytes(client, seeded, admin_headers):
    raw = "\ufeffcodbarra;descricao\r\n100;Girassol\r\n".encode("utf-8")

    r = await client.post(
        "/v1/admin/catalog/imports:apply",
        json={"filename": "catalogo.csv", "content_base64": base64.b64encode(raw).decode("ascii")},
        headers=admin_headers,
    )
    assert r.status_code == 200
    assert seeded.products["100"].descricao == "Girassol"

    arquivo_path = seeded.batches[r.json()["batch_id"]]["arquivo_path"]
    assert Path(urlparse(arquivo_path).path).read_bytes() == raw


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [
    {"filename": "c.csv"},
    {"filename": "c.csv", "content": CSV, "content_base64": base64.b64encode(CSV.encode()).decode()},
    {"filename": "c.csv", "content_base64": "not base64!"},
])
async def test_request_needs_exactly_one_valid_content(client, admin_headers, payload):
    r = await client.post("/v1/admin/catalog/imports:analyze", json=payload, headers=admin_headers)
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_non_utf8_upload_is_unprocessable(client, admin_headers):
    raw = "codbarra;descricao\n789;Lírio\n".encode("latin-1")
    r = await client.post(
        "/v1/admin/catalog/imports:analyze",
        json={"filename": "c.csv", "content_base64": base64.b64encode(raw).decode("ascii")},
        headers=admin_headers,
    )
    assert r.status_code == 422
    assert r.json()["detail"] == "Arquivo CSV deve estar em UTF-8"


@pytest.mark.asyncio
async def test_unterminated_quote_is_reported_as_a_row_error(client, admin_headers):
    r = await client.post(
        "/v1/admin/catalog/imports:analyze",
        json={"filename": "c.csv", "content": csv_text("codbarra;descricao", '100;"Girassol', "101;Margarida")},
        headers=admin_headers,
    )
    assert r.status_code == 200
    body = r.json()
    assert body["novos"] == []
    assert [e["linha"] for e in body["erros"]] == [2]
