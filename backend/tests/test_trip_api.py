"""
Integration tests for the trip and city endpoints.

Tests tenant scoping, role checks and the request/response mapping.
"""

from datetime import datetime

import pytest

from backend.app.models.enums import UserRole
from backend.app.models.trip_enums import TripConduct


@pytest.fixture
def company_headers(auth_headers):
    return auth_headers(1, UserRole.COMPANY, company_id=1)


@pytest.fixture
def ana_headers(auth_headers):
    return auth_headers(11, UserRole.DRIVER, company_id=1)


@pytest.fixture
def other_company_headers(auth_headers):
    return auth_headers(2, UserRole.COMPANY, company_id=2)


async def create_trip(client, headers, fleet, **overrides):
    body = {
        "user_id": 11,
        "origin_city_id": fleet["paris"],
        "destination_city_id": fleet["lyon"],
        "start_date": "2024-03-13T07:30:00",
    }
    body.update(overrides)
    response = await client.post("/v1/trips", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_requests_without_token_are_rejected(client):
    response = await client.get("/v1/trips")
    assert response.status_code in (401, 403)


@pytest.mark.asyncio
async def test_token_without_company_is_rejected(client, auth_headers):
    response = await client.get("/v1/trips", headers=auth_headers(5, UserRole.DRIVER))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_create_trip_injects_tenant(client, company_headers, fleet, classifier):
    classifier.label = TripConduct.AGGRESSIVE

    data = await create_trip(
        client, company_headers, fleet,
        company_id=2,
        input_conduct={"harsh_braking": 4},
    )

    assert data["company_id"] == 1
    assert data["user_id"] == 11
    assert data["status"] == "CREATED"
    assert data["conduct"] == "AGGRESSIVE"
    assert data["origin_name"] == "Paris"
    assert data["destination_name"] == "Lyon"
    assert data["details"] == []
    assert "total_alerts" not in data


@pytest.mark.asyncio
async def test_driver_creates_trips_for_themselves(client, ana_headers, fleet):
    data = await create_trip(client, ana_headers, fleet, user_id=12)
    assert data["user_id"] == 11


@pytest.mark.asyncio
async def test_create_trip_when_classifier_fails(client, company_headers, fleet, classifier):
    classifier.error = RuntimeError("prediction service down")

    data = await create_trip(client, company_headers, fleet)

    assert data["conduct"] == "UNKNOWN"


@pytest.mark.asyncio
async def test_update_and_not_found(client, company_headers, fleet):
    trip = await create_trip(client, company_headers, fleet)

    response = await client.patch(
        f"/v1/trips/{trip['id']}",
        json={"status": "COMPLETED", "end_date": "2024-03-13T19:00:00"},
        headers=company_headers,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "COMPLETED"
    assert response.json()["origin_city_id"] == fleet["paris"]

    response = await client.patch("/v1/trips/999", json={"status": "CANCELLED"}, headers=company_headers)
    assert response.status_code == 404
    assert response.json()["error_code"] == "ERR_NOT_FOUND_001"


@pytest.mark.asyncio
async def test_update_with_end_before_start(client, company_headers, fleet):
    trip = await create_trip(client, company_headers, fleet)

    response = await client.patch(
        f"/v1/trips/{trip['id']}",
        json={"end_date": "2024-03-01T00:00:00"},
        headers=company_headers,
    )

    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_TRIP_001"


@pytest.mark.asyncio
async def test_other_tenant_cannot_read_or_change_trip(client, company_headers, other_company_headers, fleet):
    trip = await create_trip(client, company_headers, fleet)

    assert (await client.get(f"/v1/trips/{trip['id']}", headers=other_company_headers)).status_code == 404
    response = await client.patch(
        f"/v1/trips/{trip['id']}", json={"status": "CANCELLED"}, headers=other_company_headers,
    )
    assert response.status_code == 404
    assert (await client.delete(f"/v1/trips/{trip['id']}", headers=other_company_headers)).status_code == 404


@pytest.mark.asyncio
async def test_search_with_alert_counters(client, company_headers, ana_headers, fleet):
    first = await create_trip(client, company_headers, fleet)
    await create_trip(
        client, company_headers, fleet,
        user_id=12,
        origin_city_id=fleet["lyon"],
        destination_city_id=fleet["marseille"],
        start_date="2024-03-14T07:30:00",
    )

    for minute in range(3):
        response = await client.post(
            f"/v1/trips/{first['id']}/alerts",
            json={"timestamp": f"2024-03-13T08:0{minute}:00", "type": "FATIGUE"},
            headers=ana_headers,
        )
        assert response.status_code == 201
    alert_id = response.json()["id"]

    response = await client.post(
        f"/v1/trips/{first['id']}/alerts/{alert_id}/respond", headers=ana_headers,
    )
    assert response.status_code == 200
    assert response.json()["responded"] is True

    response = await client.get(
        "/v1/trips/search", params={"destination": "paris"}, headers=company_headers,
    )
    assert response.status_code == 200
    results = response.json()
    assert [r["id"] for r in results] == [first["id"]]
    assert results[0]["total_alerts"] == 3
    assert results[0]["responded_alerts"] == 1

    response = await client.get("/v1/trips/search", headers=company_headers)
    assert [r["start_date"][:10] for r in response.json()] == ["2024-03-14", "2024-03-13"]

    response = await client.get("/v1/trips/search", params={"status": "CREATED"}, headers=ana_headers)
    assert [r["id"] for r in response.json()] == [first["id"]]


@pytest.mark.asyncio
async def test_routes_and_counts(client, company_headers, ana_headers, fleet):
    await create_trip(client, company_headers, fleet)
    await create_trip(client, company_headers, fleet, start_date="2024-03-14T07:30:00")
    await create_trip(
        client, company_headers, fleet,
        user_id=12,
        origin_city_id=fleet["lyon"],
        destination_city_id=fleet["marseille"],
    )

    response = await client.get("/v1/trips/routes", headers=company_headers)
    assert response.json()["routes"] == ["Lyon - Marseille", "Paris - Lyon"]

    response = await client.get("/v1/trips/routes", headers=ana_headers)
    assert response.json()["routes"] == ["Paris - Lyon"]

    response = await client.get("/v1/trips/count/by-driver", headers=ana_headers)
    assert response.json()["count"] == 2

    response = await client.get("/v1/trips/count/by-driver", params={"driver_id": 12}, headers=company_headers)
    assert response.json()["count"] == 1

    response = await client.get("/v1/trips/count/current-week", headers=company_headers)
    assert response.status_code == 200
    assert isinstance(response.json()["count"], int)

    response = await client.get("/v1/trips/count/last-week", headers=ana_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_only_company_accounts_delete(client, company_headers, ana_headers, fleet):
    trip = await create_trip(client, company_headers, fleet)

    assert (await client.delete(f"/v1/trips/{trip['id']}", headers=ana_headers)).status_code == 403
    assert (await client.delete(f"/v1/trips/{trip['id']}", headers=company_headers)).status_code == 204
    assert (await client.get(f"/v1/trips/{trip['id']}", headers=company_headers)).status_code == 404


@pytest.mark.asyncio
async def test_city_crud_is_tenant_scoped(client, company_headers, other_company_headers, fleet):
    response = await client.post("/v1/cities", json={"name": "Nice"}, headers=company_headers)
    assert response.status_code == 201
    nice = response.json()
    assert nice["company_id"] == 1

    response = await client.get("/v1/cities/count/by-company", headers=company_headers)
    assert response.json()["count"] == 4

    assert (await client.get(f"/v1/cities/{nice['id']}", headers=other_company_headers)).status_code == 404

    response = await client.patch(f"/v1/cities/{nice['id']}", json={"name": "Nizza"}, headers=company_headers)
    assert response.json()["name"] == "Nizza"

    assert (await client.delete(f"/v1/cities/{nice['id']}", headers=company_headers)).status_code == 204


@pytest.mark.asyncio
async def test_city_in_use_cannot_be_deleted(client, company_headers, fleet):
    await create_trip(client, company_headers, fleet)

    response = await client.delete(f"/v1/cities/{fleet['paris']}", headers=company_headers)

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_driver_count_stays_inside_the_tenant(client, company_headers, fleet, make_trip):
    berlin, hamburg = fleet["berlin"], fleet["hamburg"]
    await make_trip(2, 21, berlin, hamburg, datetime(2024, 3, 4))
    await make_trip(2, 21, hamburg, berlin, datetime(2024, 3, 5))

    response = await client.get("/v1/trips/count/by-driver", params={"driver_id": 21}, headers=company_headers)

    assert response.status_code == 200
    assert response.json()["count"] == 0


@pytest.mark.asyncio
async def test_unknown_city_is_a_bad_request(client, company_headers, fleet):
    response = await client.post("/v1/trips", json={
        "user_id": 11,
        "origin_city_id": 9999,
        "destination_city_id": fleet["lyon"],
        "start_date": "2024-03-13T07:30:00",
    }, headers=company_headers)

    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_TRIP_001"


@pytest.mark.asyncio
async def test_trip_cannot_go_to_another_tenants_driver(client, company_headers, auth_headers, fleet):
    response = await client.post("/v1/trips", json={
        "user_id": 21,
        "origin_city_id": fleet["paris"],
        "destination_city_id": fleet["lyon"],
        "start_date": "2024-03-13T07:30:00",
    }, headers=company_headers)
    assert response.status_code == 400

    carl_headers = auth_headers(21, UserRole.DRIVER, company_id=2)
    assert (await client.get("/v1/trips", headers=carl_headers)).json() == []


@pytest.mark.asyncio
async def test_role_denial_uses_the_error_envelope(client, ana_headers, fleet):
    trip = await create_trip(client, ana_headers, fleet)

    response = await client.delete(f"/v1/trips/{trip['id']}", headers=ana_headers)
    assert response.status_code == 403
    assert response.json()["error_code"] == "ERR_PERM_001"

    response = await client.patch(f"/v1/trips/{trip['id']}", json={"user_id": 12}, headers=ana_headers)
    assert response.status_code == 403
    assert response.json()["error_code"] == "ERR_PERM_001"
