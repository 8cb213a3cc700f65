import pytest
from fastapi.testclient import TestClient

from gateways import LocalGateway
from main import app, get_gateway, get_owner_id


class RejectingLocalGateway(LocalGateway):
    """Deletes of ids in ``fail_ids`` are refused, one record at a time."""

    supports_atomic_batch = False

    def __init__(self, path):
        super().__init__(path)
        self.fail_ids = set()

    async def delete(self, occurrence_id):
        if occurrence_id in self.fail_ids:
            raise RuntimeError("store unavailable")
        await super().delete(occurrence_id)


@pytest.fixture
def store(tmp_path):
    return RejectingLocalGateway(tmp_path / "api_store.json")


@pytest.fixture
def client(store):
    app.dependency_overrides[get_gateway] = lambda: store
    app.dependency_overrides[get_owner_id] = lambda: "u1"
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _create_rent(client, months=3):
    response = client.post(
        "/api/series",
        json={
            "direction": "debit",
            "description": "Rent",
            "planned_amount": "R$ 1.000,00",
            "series_start_month": "2024-01",
            "duration": "fixed_months",
            "fixed_months": months,
        },
    )
    assert response.status_code == 201
    return response.json()["ids"]


def test_create_series_and_list_month(client):
    ids = _create_rent(client)
    assert len(ids) == 3

    response = client.get("/api/occurrences", params={"month": "2024-02"})
    assert response.status_code == 200
    items = response.json()["items"]
    assert len(items) == 1
    assert items[0]["planned_amount"] == 1000.0
    assert items[0]["owner_id"] == "u1"


def test_invalid_series_payload_is_422(client):
    response = client.post(
        "/api/series",
        json={
            "direction": "debit",
            "description": "Rent",
            "planned_amount": 10,
            "series_start_month": "2024-13",
        },
    )
    assert response.status_code == 422


def test_match_then_commit_settles(client):
    ids = _create_rent(client)

    response = client.get(
        "/api/entries/match",
        params={"description": " RENT", "direction": "debit", "month": "2024-02"},
    )
    assert response.json()["match"]["occurrence_id"] == ids[1]

    response = client.post(
        "/api/entries",
        json={
            "description": "rent",
            "direction": "debit",
            "competence_month": "2024-02",
            "actual_amount": "1.020,50",
        },
    )
    assert response.status_code == 201
    assert response.json() == {"occurrence_id": ids[1], "settled": True}


def test_patch_future_scope(client):
    ids = _create_rent(client, months=6)

    response = client.patch(
        f"/api/occurrences/{ids[3]}",
        params={"scope": "future"},
        json={"edits": {"planned_amount": 1200}},
    )
    assert response.status_code == 200
    assert sorted(response.json()["affected_ids"]) == sorted(ids[3:])

    items = client.get("/api/occurrences").json()["items"]
    amounts = {item["competence_month"]: item["planned_amount"] for item in items}
    assert amounts["2024-03"] == 1000.0
    assert amounts["2024-04"] == 1200.0


def test_patch_without_fields_is_400(client):
    ids = _create_rent(client)
    response = client.patch(f"/api/occurrences/{ids[0]}", json={"edits": {}})
    assert response.status_code == 400


def test_delete_unknown_occurrence_is_404(client):
    response = client.delete("/api/occurrences/does-not-exist")
    assert response.status_code == 404


def test_partial_delete_is_409(client, store):
    ids = _create_rent(client)
    store.fail_ids = {ids[1]}

    response = client.delete(f"/api/occurrences/{ids[0]}", params={"scope": "all"})

    assert response.status_code == 409
    body = response.json()["propagation"]
    assert body["scope"] == "all"
    assert body["mode"] == "delete"
    assert body["failed_ids"] == [ids[1]]
    remaining = client.get("/api/occurrences").json()["items"]
    assert [item["id"] for item in remaining] == [ids[1]]


def test_projection_year(client):
    _create_rent(client, months=2)
    response = client.get("/api/projection/2024")
    assert response.status_code == 200
    months = response.json()["months"]
    assert len(months) == 12
    assert months[1]["planned"]["accumulated"] == -2000.0
    assert months[0]["debit"][0]["lines"][0]["description"] == "Rent"


def test_categories_are_seeded(client):
    categories = client.get("/api/categories").json()
    assert {c["name"] for c in categories} >= {"Salary", "Housing"}
    assert client.get("/api/accounts").json() == []


def test_entry_body_is_validated_and_owner_comes_from_caller(client):
    response = client.post(
        "/api/entries",
        json={"direction": "debit", "competence_month": "2024-02", "actual_amount": 5},
    )
    assert response.status_code == 422

    response = client.post(
        "/api/entries",
        json={
            "owner_id": "intruder",
            "description": "Coffee",
            "direction": "debit",
            "competence_month": "2024-02",
            "actual_amount": "4,50",
        },
    )
    assert response.status_code == 201
    items = client.get("/api/occurrences", params={"month": "2024-02"}).json()["items"]
    assert [(i["owner_id"], i["actual_amount"]) for i in items] == [("u1", 4.5)]


def test_series_body_requires_month_count_for_fixed_duration(client):
    response = client.post(
        "/api/series",
        json={
            "direction": "credit",
            "description": "Salary",
            "planned_amount": 10,
            "series_start_month": "2024-01",
            "duration": "fixed_months",
        },
    )
    assert response.status_code == 422
