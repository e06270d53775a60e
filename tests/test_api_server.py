"""Tests for the FastAPI selection surface."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from api.server import APIServerConfig, create_app
from selection.session import SelectionSession

from tests.fakes import FakePageFetcher, make_records


@pytest.fixture
def fetcher() -> FakePageFetcher:
    return FakePageFetcher(make_records(30))


@pytest.fixture
def client(fetcher: FakePageFetcher) -> TestClient:
    session = SelectionSession(fetcher, page_size=12)
    session.navigate_to_page(1)
    app = create_app(APIServerConfig(session=session, api_key=None, cors_origins=[], max_page_size=100))
    return TestClient(app)


def test_health_reports_selection_count(client: TestClient) -> None:
    response = client.get("/v1/health")

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["page_loaded"] is True
    assert body["selection_count"] == 0


def test_toggle_then_navigate_back(client: TestClient) -> None:
    toggled = client.post("/v1/selection/toggle", json={"checked_ids": [1, 4]})
    assert toggled.status_code == 200
    assert toggled.json()["checked_ids"] == [1, 4]

    page_two = client.post("/v1/page/navigate", json={"page_index": 2}).json()
    assert page_two["checked_ids"] == []
    assert page_two["first_row_number"] == 13

    page_one = client.post("/v1/page/navigate", json={"page_index": 1}).json()
    assert page_one["checked_ids"] == [1, 4]
    assert [row["checked"] for row in page_one["rows"][:4]] == [True, False, False, True]
    assert page_one["rows"][0]["fields"]["title"] == "Artwork 1"


def test_toggle_with_foreign_id_is_rejected(client: TestClient) -> None:
    response = client.post("/v1/selection/toggle", json={"checked_ids": [99]})

    assert response.status_code == 400
    assert "error" in response.json()


def test_bulk_select_and_listing(client: TestClient) -> None:
    response = client.post("/v1/selection/bulk", json={"target": 20})

    assert response.status_code == 200
    body = response.json()
    assert body["added"] == 20
    assert body["pages_scanned"] == 2
    assert body["selection_count"] == 20
    assert len(body["page"]["checked_ids"]) == 12

    listing = client.get("/v1/selection").json()
    assert listing["count"] == 20
    assert [row["id"] for row in listing["records"]] == list(range(1, 21))


@pytest.mark.parametrize("target", ["many", True, 1.5, None])
def test_bulk_select_rejects_malformed_target(client: TestClient, target) -> None:
    response = client.post("/v1/selection/bulk", json={"target": target})

    assert response.status_code == 400


def test_bulk_select_failure_maps_to_bad_gateway(client: TestClient, fetcher: FakePageFetcher) -> None:
    fetcher.fail_on[2] = 1

    response = client.post("/v1/selection/bulk", json={"target": 20})

    assert response.status_code == 502
    assert response.json()["added"] == 12
    assert client.get("/v1/selection").json()["count"] == 12


def test_navigation_failure_maps_to_bad_gateway(client: TestClient, fetcher: FakePageFetcher) -> None:
    fetcher.fail_on[3] = 1

    response = client.post("/v1/page/navigate", json={"page_index": 3})

    assert response.status_code == 502
    assert client.get("/v1/page").json()["page_index"] == 1


def test_page_size_change_and_limits(client: TestClient) -> None:
    body = client.post("/v1/page/size", json={"page_size": 5}).json()
    assert body["page_size"] == 5
    assert body["page_count"] == 6

    assert client.post("/v1/page/size", json={"page_size": 500}).status_code == 400
    assert client.post("/v1/page/navigate", json={"page_index": 0}).status_code == 400


def test_reset_clears_selection(client: TestClient) -> None:
    client.post("/v1/selection/bulk", json={"target": 30})

    body = client.post("/v1/selection/reset").json()

    assert body["selection_count"] == 0
    assert body["checked_ids"] == []


def test_api_key_is_enforced_when_configured(fetcher: FakePageFetcher) -> None:
    session = SelectionSession(fetcher, page_size=12)
    app = create_app(APIServerConfig(session=session, api_key="s3cret-key", cors_origins=[]))
    client = TestClient(app)

    assert client.get("/v1/page").status_code == 401
    assert client.get("/v1/page", headers={"X-API-Key": "s3cret-key"}).status_code == 200
