"""Test reviews between customers and providers."""

import pytest


@pytest.fixture
def review(client, customer, provider):
    _, headers = customer
    provider_row, _ = provider
    response = client.post(
        "/reviews",
        json={"provider_id": provider_row["id"], "rating": 5, "comment": "Fixed it fast"},
        headers=headers,
    )
    assert response.status_code == 201
    return response.json()["data"]["review"]


class TestCreateReview:
    def test_customer_reviews_provider(self, review, customer, provider):
        customer_row, _ = customer
        provider_row, _ = provider
        assert review["customer_id"] == customer_row["id"]
        assert review["provider"]["id"] == provider_row["id"]
        assert review["provider"]["skills"] == ["plumbing"]
        assert review["customer"] == {"id": customer_row["id"], "name": customer_row["name"]}
        assert review["review_date"]

    def test_provider_reviews_customer(self, client, customer, provider):
        customer_row, _ = customer
        provider_row, headers = provider
        response = client.post(
            "/reviews", json={"customer_id": customer_row["id"], "rating": 4, "comment": "Polite"}, headers=headers
        )
        assert response.status_code == 201
        assert response.json()["data"]["review"]["provider_id"] == provider_row["id"]

    def test_counterpart_required(self, client, customer, provider):
        _, customer_headers = customer
        _, provider_headers = provider

        response = client.post("/reviews", json={"rating": 4, "comment": "x"}, headers=customer_headers)
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "provider_id"

        response = client.post("/reviews", json={"rating": 4, "comment": "x"}, headers=provider_headers)
        assert response.json()["errors"][0]["field"] == "customer_id"

    def test_unknown_provider(self, client, customer):
        _, headers = customer
        response = client.post("/reviews", json={"provider_id": "missing", "rating": 3, "comment": "x"}, headers=headers)
        assert response.status_code == 404
        assert response.json()["message"] == "Provider not found"

    def test_rating_bounds(self, client, customer, provider):
        _, headers = customer
        provider_row, _ = provider
        response = client.post(
            "/reviews", json={"provider_id": provider_row["id"], "rating": 6, "comment": "x"}, headers=headers
        )
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "rating"

    def test_admin_cannot_create(self, client, admin, provider):
        _, headers = admin
        provider_row, _ = provider
        response = client.post(
            "/reviews", json={"provider_id": provider_row["id"], "rating": 3, "comment": "x"}, headers=headers
        )
        assert response.status_code == 403


class TestReadReviews:
    def test_public_list_and_filter(self, client, review, make_account, customer):
        other_provider, _ = make_account("provider")
        _, headers = customer
        client.post("/reviews", json={"provider_id": other_provider["id"], "rating": 2, "comment": "Late"}, headers=headers)

        assert client.get("/reviews").json()["pagination"]["total"] == 2
        body = client.get("/reviews", params={"provider_id": other_provider["id"]}).json()
        assert [r["comment"] for r in body["data"]] == ["Late"]

        body = client.get("/reviews", params={"search": "FAST"}).json()
        assert [r["id"] for r in body["data"]] == [review["id"]]

    def test_get_review(self, client, review):
        assert client.get(f"/reviews/{review['id']}").json()["data"]["review"]["id"] == review["id"]
        assert client.get("/reviews/missing").status_code == 404

    def test_provider_sees_own_reviews(self, client, review, provider):
        _, headers = provider
        body = client.get("/providers/me/reviews", headers=headers).json()
        assert [r["id"] for r in body["data"]] == [review["id"]]


class TestUpdateAndDeleteReview:
    def test_author_updates(self, client, review, customer):
        _, headers = customer
        response = client.put(f"/reviews/{review['id']}", json={"rating": 4}, headers=headers)
        assert response.status_code == 200
        assert response.json()["data"]["review"]["rating"] == 4

    def test_other_customer_cannot_update(self, client, review, make_account):
        _, headers = make_account("customer")
        response = client.put(f"/reviews/{review['id']}", json={"rating": 1}, headers=headers)
        assert response.status_code == 403
        assert response.json()["message"] == "You can only update your own reviews"

    def test_admin_deletes_any(self, client, review, admin):
        _, headers = admin
        assert client.delete(f"/reviews/{review['id']}", headers=headers).status_code == 200
        assert client.get(f"/reviews/{review['id']}").status_code == 404

    def test_other_provider_cannot_delete(self, client, review, make_account):
        _, headers = make_account("provider")
        assert client.delete(f"/reviews/{review['id']}", headers=headers).status_code == 403
