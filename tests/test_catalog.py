"""Test the service catalog and price lists."""

import pytest

from servicehub.catalog import PriceType, validate_price_fields
from servicehub.database import JOB_POSTS_TABLE, PRICE_LISTS_TABLE, SERVICES_TABLE
from servicehub.errors import ValidationError


@pytest.fixture
def inactive_service(store):
    return store.insert(
        SERVICES_TABLE,
        {
            "name": "chimney sweep",
            "description": "Seasonal",
            "category": "Cleaning",
            "base_price": 80.0,
            "unit": "project",
            "is_active": False,
        },
    )


class TestValidatePriceFields:
    def test_fixed_requires_fixed_price(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_price_fields({"price_type": "fixed", "unit_price": 5})
        assert exc_info.value.message == "Fixed price is required for fixed price type"

    def test_range_requires_ordered_bounds(self):
        with pytest.raises(ValidationError, match="Min price cannot be greater than max price"):
            validate_price_fields({"price_type": PriceType.range, "min_price": 50, "max_price": 10})

    def test_other_type_fields_are_cleared(self):
        cleaned = validate_price_fields({"price_type": "per_unit", "unit_price": 3, "fixed_price": 99, "min_price": 1})
        assert cleaned["unit_price"] == 3
        assert cleaned["fixed_price"] is None
        assert cleaned["min_price"] is None
        assert cleaned["max_price"] is None


class TestServices:
    def test_public_list_hides_inactive(self, client, service, inactive_service):
        body = client.get("/services").json()
        assert [s["name"] for s in body["data"]] == ["pipe repair"]

    def test_admin_list_includes_inactive(self, client, admin, service, inactive_service):
        _, headers = admin
        body = client.get("/services", headers=headers).json()
        # Sorted by category, then name
        assert [s["name"] for s in body["data"]] == ["chimney sweep", "pipe repair"]

    def test_filter_by_category(self, client, service):
        assert client.get("/services", params={"category": "Plumbing"}).json()["pagination"]["total"] == 1
        assert client.get("/services", params={"category": "Moving"}).json()["pagination"]["total"] == 0

    def test_categories_only_active(self, client, service, inactive_service):
        assert client.get("/services/categories").json()["data"] == {"categories": ["Plumbing"]}

    def test_inactive_service_hidden_from_public(self, client, inactive_service):
        assert client.get(f"/services/{inactive_service['id']}").status_code == 404

    def test_admin_creates_service(self, client, admin):
        _, headers = admin
        payload = {"name": "  Lawn Mowing ", "description": "Weekly mowing", "category": "Gardening", "base_price": 30}
        response = client.post("/services", json=payload, headers=headers)
        assert response.status_code == 201

        created = response.json()["data"]["service"]
        assert created["name"] == "lawn mowing"
        assert created["unit"] == "hour"
        assert created["is_active"] is True

    def test_duplicate_name_case_insensitive(self, client, admin, service):
        _, headers = admin
        payload = {"name": "Pipe Repair", "description": "Again", "category": "Plumbing", "base_price": 10}
        response = client.post("/services", json=payload, headers=headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Service with this name already exists"

    def test_invalid_category(self, client, admin):
        _, headers = admin
        payload = {"name": "x", "description": "y", "category": "Astrology", "base_price": 1}
        response = client.post("/services", json=payload, headers=headers)
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "category"

    def test_non_admin_cannot_write(self, client, customer, service):
        _, headers = customer
        assert client.put(f"/services/{service['id']}", json={"base_price": 1}, headers=headers).status_code == 403
        assert client.delete(f"/services/{service['id']}", headers=headers).status_code == 403

    def test_update_and_delete(self, client, store, admin, service):
        _, headers = admin
        response = client.put(f"/services/{service['id']}", json={"base_price": 65.5}, headers=headers)
        assert response.json()["data"]["service"]["base_price"] == 65.5

        assert client.delete(f"/services/{service['id']}", headers=headers).status_code == 200
        assert store.get(SERVICES_TABLE, service["id"]) is None
        assert client.delete(f"/services/{service['id']}", headers=headers).status_code == 404

    def test_blank_name_rejected(self, client, admin, service):
        _, headers = admin
        payload = {"name": "   ", "description": "Blank", "category": "Other", "base_price": 1}
        response = client.post("/services", json=payload, headers=headers)
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "name"

        response = client.put(f"/services/{service['id']}", json={"name": "   "}, headers=headers)
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "name"
        assert client.get(f"/services/{service['id']}").json()["data"]["service"]["name"] == "pipe repair"

    def test_delete_removes_price_lists(self, client, store, admin, service):
        _, headers = admin
        store.insert(PRICE_LISTS_TABLE, {"service_id": service["id"], "price_type": "fixed", "fixed_price": 10})

        assert client.delete(f"/services/{service['id']}", headers=headers).status_code == 200
        assert store.find(PRICE_LISTS_TABLE, {"service_id": service["id"]}) == []

    def test_delete_referenced_service_conflicts(self, client, store, admin, customer, service):
        _, headers = admin
        customer_row, _ = customer
        store.insert(
            JOB_POSTS_TABLE,
            {
                "customer_id": customer_row["id"],
                "service_id": service["id"],
                "title": "Leak",
                "description": "Under the sink",
                "duration": "1 hour",
            },
        )

        response = client.delete(f"/services/{service['id']}", headers=headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Service is referenced by existing job posts"
        assert store.get(SERVICES_TABLE, service["id"]) is not None


class TestServiceProviders:
    """Approved providers whose skills name the service."""

    def test_matching_providers_best_rated_first(self, client, make_account, service):
        low, _ = make_account("provider", skills=["Emergency Pipe Repair"], rating=3.0)
        high, _ = make_account("provider", skills=["tiling", "pipe repair"], rating=4.5)
        make_account("provider", skills=["pipe repair"], is_approved=False)
        make_account("provider", skills=["gardening"], rating=5.0)

        response = client.get(f"/services/{service['id']}/providers")
        assert response.status_code == 200
        body = response.json()
        assert body["data"]["service"]["name"] == "pipe repair"
        assert body["data"]["service"]["base_price"] == 50.0
        assert [p["id"] for p in body["data"]["providers"]] == [high["id"], low["id"]]
        assert all("password_hash" not in p for p in body["data"]["providers"])
        assert body["pagination"] == {"page": 1, "limit": 10, "total": 2, "pages": 1}

    def test_paging_and_caller_search_ignored(self, client, make_account, service):
        for rating in (1.0, 2.0, 3.0):
            make_account("provider", skills=["pipe repair"], rating=rating)

        response = client.get(f"/services/{service['id']}/providers", params={"limit": "2", "page": "2", "search": "x"})
        body = response.json()
        assert [p["rating"] for p in body["data"]["providers"]] == [1.0]
        assert body["pagination"]["total"] == 3
        assert body["pagination"]["pages"] == 2

    def test_unknown_or_inactive_service(self, client, inactive_service):
        assert client.get("/services/missing/providers").status_code == 404
        assert client.get(f"/services/{inactive_service['id']}/providers").status_code == 404


class TestPriceLists:
    def _create(self, client, headers, service_id, **fields):
        payload = {"service_id": service_id, "price_type": "fixed", "fixed_price": 120}
        payload.update(fields)
        return client.post("/price-lists", json=payload, headers=headers)

    def test_create_embeds_service_and_clears_other_prices(self, client, admin, service):
        _, headers = admin
        response = self._create(client, headers, service["id"], unit_price=7)
        assert response.status_code == 201

        price_list = response.json()["data"]["priceList"]
        assert price_list["fixed_price"] == 120
        assert price_list["unit_price"] is None
        assert price_list["service"]["name"] == "pipe repair"

    def test_missing_price_for_type(self, client, admin, service):
        _, headers = admin
        response = self._create(client, headers, service["id"], price_type="per_unit", fixed_price=None)
        assert response.status_code == 400
        assert response.json()["errors"] == [
            {"field": "unit_price", "message": "Unit price is required for per_unit price type"}
        ]

    def test_unknown_service(self, client, admin):
        _, headers = admin
        assert self._create(client, headers, "missing").status_code == 404

    def test_switching_type_revalidates(self, client, admin, service):
        _, headers = admin
        price_list = self._create(client, headers, service["id"]).json()["data"]["priceList"]

        response = client.put(
            f"/price-lists/{price_list['id']}",
            json={"price_type": "range", "min_price": 100, "max_price": 50},
            headers=headers,
        )
        assert response.status_code == 400

        response = client.put(
            f"/price-lists/{price_list['id']}",
            json={"price_type": "range", "min_price": 50, "max_price": 100},
            headers=headers,
        )
        assert response.status_code == 200
        updated = response.json()["data"]["priceList"]
        assert updated["fixed_price"] is None
        assert (updated["min_price"], updated["max_price"]) == (50, 100)

    def test_for_service_lists_active_only(self, client, admin, service):
        _, headers = admin
        self._create(client, headers, service["id"])
        self._create(client, headers, service["id"], is_active=False)

        data = client.get(f"/price-lists/service/{service['id']}").json()["data"]
        assert data["service"]["id"] == service["id"]
        assert len(data["price_lists"]) == 1

    def test_public_list_and_get(self, client, admin, service):
        _, headers = admin
        visible = self._create(client, headers, service["id"]).json()["data"]["priceList"]
        hidden = self._create(client, headers, service["id"], is_active=False).json()["data"]["priceList"]

        assert client.get("/price-lists").json()["pagination"]["total"] == 1
        assert client.get(f"/price-lists/{visible['id']}").status_code == 200
        assert client.get(f"/price-lists/{hidden['id']}").status_code == 404
        assert client.get(f"/price-lists/{hidden['id']}", headers=headers).status_code == 200

    def test_delete(self, client, admin, service):
        _, headers = admin
        price_list = self._create(client, headers, service["id"]).json()["data"]["priceList"]
        assert client.delete(f"/price-lists/{price_list['id']}", headers=headers).status_code == 200
        assert client.delete(f"/price-lists/{price_list['id']}", headers=headers).status_code == 404
