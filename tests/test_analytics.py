"""Analytics listing and detail endpoint tests."""

import datetime

import pytest
import pytest_asyncio
from httpx import AsyncClient

from shortlink.config import Settings
from shortlink.dependencies import ServiceManager


def at(minute: int, second: int = 0) -> datetime.datetime:
    return datetime.datetime(2024, 5, 1, 10, minute, second)


def parse(value: str) -> datetime.datetime:
    return datetime.datetime.fromisoformat(value).replace(tzinfo=None)


@pytest_asyncio.fixture
async def seeded(seed_clicks) -> None:
    """Three ids with last clicks at 10:05 (alpha), 10:03 (beta) and 10:07 (gamma, no URL row)."""
    await seed_clicks(
        "alpha",
        [
            {"timestamp": at(1), "referrer": "https://r1.example", "country_code": "US", "ip": "192.0.2.1"},
            {"timestamp": at(5), "referrer": "https://r5.example", "country_code": "DE", "ip": "192.0.2.5"},
        ],
        original_url="https://a.example",
    )
    await seed_clicks("beta", [{"timestamp": at(3), "country_code": "FR"}], original_url="https://b.example")
    await seed_clicks("gamma", [{"timestamp": at(7), "referrer": "https://g.example"}])


def ids_of(response) -> list[str]:
    return [row["short_id"] for row in response.json()["data"]]


# ============================================================================
# AUTHENTICATION
# ============================================================================


@pytest.mark.asyncio
async def test_listing_requires_key(client: AsyncClient) -> None:
    response = await client.get("/analytics")
    assert response.status_code == 401
    assert response.json()["detail"] == "Unauthorized"


@pytest.mark.asyncio
async def test_listing_rejects_wrong_key(client: AsyncClient) -> None:
    response = await client.get("/analytics", headers={"x-api-key": "nope"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_listing_accepts_bearer_token(client: AsyncClient, auth_headers: dict[str, str]) -> None:
    response = await client.get("/analytics", headers={"Authorization": f"Bearer {auth_headers['x-api-key']}"})
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_unset_key_rejects_everything(
    client: AsyncClient, service_manager: ServiceManager, settings: Settings
) -> None:
    service_manager.settings = settings.model_copy(update={"API_KEY": None})

    assert (await client.get("/analytics")).status_code == 401
    assert (await client.get("/analytics", headers={"x-api-key": ""})).status_code == 401
    assert (await client.get("/analytics/alpha", headers={"Authorization": "Bearer "})).status_code == 401


@pytest.mark.asyncio
async def test_detail_requires_key(client: AsyncClient) -> None:
    response = await client.get("/analytics/alpha")
    assert response.status_code == 401


# ============================================================================
# LISTING
# ============================================================================


@pytest.mark.asyncio
async def test_listing_empty_store(client: AsyncClient, auth_headers: dict[str, str]) -> None:
    response = await client.get("/analytics", headers=auth_headers)
    assert response.status_code == 200
    assert response.json() == {"page": 1, "limit": 50, "sort": "desc", "total": 0, "data": []}


@pytest.mark.asyncio
async def test_listing_defaults_to_latest_first(client: AsyncClient, auth_headers: dict[str, str], seeded) -> None:
    response = await client.get("/analytics", headers=auth_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 3
    assert body["sort"] == "desc"
    assert ids_of(response) == ["gamma", "alpha", "beta"]


@pytest.mark.asyncio
async def test_listing_ascending(client: AsyncClient, auth_headers: dict[str, str], seeded) -> None:
    response = await client.get("/analytics", params={"sort": "ASC"}, headers=auth_headers)
    assert response.json()["sort"] == "asc"
    assert ids_of(response) == ["beta", "alpha", "gamma"]


@pytest.mark.asyncio
async def test_listing_unknown_sort_means_descending(
    client: AsyncClient, auth_headers: dict[str, str], seeded
) -> None:
    response = await client.get("/analytics", params={"sort": "sideways"}, headers=auth_headers)
    assert response.json()["sort"] == "desc"
    assert ids_of(response) == ["gamma", "alpha", "beta"]


@pytest.mark.asyncio
async def test_listing_summary_fields(client: AsyncClient, auth_headers: dict[str, str], seeded) -> None:
    response = await client.get("/analytics", headers=auth_headers)
    rows = {row["short_id"]: row for row in response.json()["data"]}

    alpha = rows["alpha"]
    assert alpha["click_count"] == 2
    assert parse(alpha["first_clicked"]) == at(1)
    assert parse(alpha["last_clicked"]) == at(5)
    assert alpha["latest_referrer"] == "https://r5.example"
    assert alpha["original_url"] == "https://a.example"

    assert rows["beta"]["click_count"] == 1
    assert rows["beta"]["latest_referrer"] == ""
    assert rows["gamma"]["original_url"] is None


@pytest.mark.asyncio
async def test_country_code_is_largest_not_latest(client: AsyncClient, auth_headers: dict[str, str], seeded) -> None:
    # alpha's latest click came from DE, but the aggregate reports the largest code seen
    response = await client.get("/analytics", headers=auth_headers)
    rows = {row["short_id"]: row for row in response.json()["data"]}
    assert rows["alpha"]["country_code"] == "US"


@pytest.mark.asyncio
async def test_latest_referrer_tie_takes_largest(
    client: AsyncClient, auth_headers: dict[str, str], seed_clicks
) -> None:
    await seed_clicks(
        "delta",
        [
            {"timestamp": at(2), "referrer": "https://z-older.example"},
            {"timestamp": at(9), "referrer": "https://a.example"},
            {"timestamp": at(9), "referrer": "https://b.example"},
        ],
    )
    response = await client.get("/analytics", headers=auth_headers)
    [row] = response.json()["data"]
    assert row["latest_referrer"] == "https://b.example"


@pytest.mark.asyncio
async def test_equal_last_click_ordered_by_id(client: AsyncClient, auth_headers: dict[str, str], seed_clicks) -> None:
    await seed_clicks("zeta", [{"timestamp": at(4)}])
    await seed_clicks("eta", [{"timestamp": at(4)}])

    desc = await client.get("/analytics", headers=auth_headers)
    asc = await client.get("/analytics", params={"sort": "asc"}, headers=auth_headers)
    assert ids_of(desc) == ["eta", "zeta"]
    assert ids_of(asc) == ["eta", "zeta"]


@pytest.mark.asyncio
async def test_listing_pagination(client: AsyncClient, auth_headers: dict[str, str], seeded) -> None:
    first = await client.get("/analytics", params={"page": 1, "limit": 2}, headers=auth_headers)
    second = await client.get("/analytics", params={"page": 2, "limit": 2}, headers=auth_headers)
    third = await client.get("/analytics", params={"page": 3, "limit": 2}, headers=auth_headers)

    assert ids_of(first) == ["gamma", "alpha"]
    assert ids_of(second) == ["beta"]
    assert ids_of(third) == []
    assert first.json()["total"] == second.json()["total"] == third.json()["total"] == 3


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("params", "page", "limit"),
    [
        ({"limit": 1000}, 1, 500),
        ({"limit": 0}, 1, 1),
        ({"limit": -5}, 1, 1),
        ({"page": 0}, 1, 50),
        ({"page": -3, "limit": 10}, 1, 10),
    ],
)
async def test_listing_clamps_paging(
    client: AsyncClient, auth_headers: dict[str, str], params: dict, page: int, limit: int
) -> None:
    response = await client.get("/analytics", params=params, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["page"] == page
    assert response.json()["limit"] == limit


@pytest.mark.asyncio
async def test_listing_non_numeric_paging(client: AsyncClient, auth_headers: dict[str, str]) -> None:
    response = await client.get("/analytics", params={"page": "two"}, headers=auth_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_redirects_show_up_in_listing(client: AsyncClient, auth_headers: dict[str, str]) -> None:
    await client.post("/create", json={"url": "https://example.com/tracked", "custom_id": "tracked"})
    await client.get("/tracked", headers={"referer": "https://first.example"}, follow_redirects=False)
    await client.get("/tracked", headers={"referer": "https://second.example"}, follow_redirects=False)

    response = await client.get("/analytics", headers=auth_headers)
    [row] = response.json()["data"]
    assert row["short_id"] == "tracked"
    assert row["click_count"] == 2
    assert row["original_url"] == "https://example.com/tracked"
    assert row["latest_referrer"] == "https://second.example"


# ============================================================================
# DETAIL
# ============================================================================


@pytest.mark.asyncio
async def test_detail_newest_first(client: AsyncClient, auth_headers: dict[str, str], seeded) -> None:
    response = await client.get("/analytics/alpha", headers=auth_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["id"] == "alpha"
    assert body["original_url"] == "https://a.example"
    assert body["click_count"] == 2
    assert [parse(event["timestamp"]) for event in body["analytics"]] == [at(5), at(1)]
    assert body["analytics"][0]["ip"] == "192.0.2.5"
    assert body["analytics"][0]["referrer"] == "https://r5.example"
    assert body["analytics"][0]["country_code"] == "DE"


@pytest.mark.asyncio
async def test_detail_without_url_row(client: AsyncClient, auth_headers: dict[str, str], seeded) -> None:
    response = await client.get("/analytics/gamma", headers=auth_headers)
    body = response.json()
    assert body["original_url"] is None
    assert body["click_count"] == 1


@pytest.mark.asyncio
async def test_detail_unknown_id_is_empty(client: AsyncClient, auth_headers: dict[str, str]) -> None:
    response = await client.get("/analytics/missing", headers=auth_headers)
    assert response.status_code == 200
    assert response.json() == {"id": "missing", "original_url": None, "click_count": 0, "analytics": []}


@pytest.mark.asyncio
async def test_detail_capped_at_limit(
    client: AsyncClient,
    auth_headers: dict[str, str],
    service_manager: ServiceManager,
    settings: Settings,
    seed_clicks,
) -> None:
    service_manager.settings = settings.model_copy(update={"ANALYTICS_DETAIL_LIMIT": 3})
    await seed_clicks("busy", [{"timestamp": at(minute)} for minute in range(5)], original_url="https://busy.example")

    response = await client.get("/analytics/busy", headers=auth_headers)
    body = response.json()
    assert body["click_count"] == 3
    assert [parse(event["timestamp"]) for event in body["analytics"]] == [at(4), at(3), at(2)]


@pytest.mark.asyncio
async def test_listing_page_far_past_the_end(client: AsyncClient, auth_headers: dict[str, str], seeded) -> None:
    response = await client.get("/analytics", params={"page": 10**18}, headers=auth_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["page"] == 10**18
    assert body["total"] == 3
    assert body["data"] == []
