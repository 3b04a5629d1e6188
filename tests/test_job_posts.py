"""Test job posts and the provider application workflow."""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest

from servicehub.auth import Identity
from servicehub.database import JOB_APPLICATIONS_TABLE, JOB_POSTS_TABLE
from servicehub.errors import ConflictError
from servicehub.jobs import JobPostCreate, JobPostService


@pytest.fixture
def post_payload(service):
    return {
        "title": "Fix kitchen sink",
        "description": "The sink drains slowly",
        "duration": "2 hours",
        "location": "Springfield",
        "service_id": service["id"],
    }


@pytest.fixture
def job_post(client, customer, post_payload):
    _, headers = customer
    response = client.post("/job-posts", json=post_payload, headers=headers)
    assert response.status_code == 201
    return response.json()["data"]["jobPost"]


def _apply(client, post_id, headers):
    return client.post(f"/job-posts/{post_id}/apply", headers=headers)


class TestCreateJobPost:
    def test_create(self, client, customer, post_payload):
        customer_row, headers = customer
        response = client.post("/job-posts", json=post_payload, headers=headers)
        assert response.status_code == 201

        post = response.json()["data"]["jobPost"]
        assert post["customer_id"] == customer_row["id"]
        assert post["title"] == "Fix kitchen sink"
        assert post["applications"] == []

    def test_only_customers_create(self, client, provider, admin, post_payload):
        for _, headers in (provider, admin):
            assert client.post("/job-posts", json=post_payload, headers=headers).status_code == 403

    def test_unknown_service(self, client, customer, post_payload):
        _, headers = customer
        post_payload["service_id"] = "no-such-service"
        response = client.post("/job-posts", json=post_payload, headers=headers)
        assert response.status_code == 404
        assert response.json()["message"] == "Service not found"

    def test_missing_required_field(self, client, customer, post_payload):
        _, headers = customer
        del post_payload["duration"]
        response = client.post("/job-posts", json=post_payload, headers=headers)
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "duration"


class TestReadJobPosts:
    """Customers are scoped to their own posts; everyone else sees all."""

    def test_customer_sees_only_own_posts(self, client, make_account, job_post, post_payload):
        _, other_headers = make_account("customer")
        client.post("/job-posts", json={**post_payload, "title": "Paint fence"}, headers=other_headers)

        data = client.get("/job-posts", headers=other_headers).json()["data"]
        assert [p["title"] for p in data] == ["Paint fence"]

    def test_customer_id_param_cannot_widen_scope(self, client, make_account, job_post):
        _, other_headers = make_account("customer")
        response = client.get("/job-posts", params={"customer_id": job_post["customer_id"]}, headers=other_headers)
        assert response.json()["pagination"]["total"] == 0

    def test_provider_and_admin_see_all(self, client, make_account, provider, admin, job_post, post_payload):
        _, other_headers = make_account("customer")
        client.post("/job-posts", json=post_payload, headers=other_headers)

        for _, headers in (provider, admin):
            assert client.get("/job-posts", headers=headers).json()["pagination"]["total"] == 2

    def test_search_and_pagination(self, client, customer, post_payload):
        _, headers = customer
        for i in range(12):
            client.post("/job-posts", json={**post_payload, "title": f"Job {i}"}, headers=headers)

        body = client.get("/job-posts", params={"page": 2, "limit": 5}, headers=headers).json()
        assert len(body["data"]) == 5
        assert body["pagination"] == {"page": 2, "limit": 5, "total": 12, "pages": 3}

        body = client.get("/job-posts", params={"search": "JOB 1"}, headers=headers).json()
        # Job 1, Job 10, Job 11
        assert body["pagination"]["total"] == 3

    def test_get_other_customers_post_forbidden(self, client, make_account, job_post):
        _, other_headers = make_account("customer")
        response = client.get(f"/job-posts/{job_post['id']}", headers=other_headers)
        assert response.status_code == 403

    def test_get_unknown_post(self, client, provider):
        _, headers = provider
        response = client.get("/job-posts/missing", headers=headers)
        assert response.status_code == 404
        assert response.json()["message"] == "Job post not found"

    def test_requires_authentication(self, client, job_post):
        assert client.get("/job-posts").status_code == 401


class TestJobPostSorting:
    @pytest.fixture
    def three_posts(self, store, customer, service):
        customer_row, headers = customer
        start = datetime(2025, 3, 1, tzinfo=timezone.utc)
        for minute, title in enumerate(["first", "second", "third"]):
            store.insert(
                JOB_POSTS_TABLE,
                {
                    "customer_id": customer_row["id"],
                    "service_id": service["id"],
                    "title": title,
                    "description": "Odd job",
                    "duration": "1 day",
                    "location": None,
                    "created_at": start + timedelta(minutes=minute),
                },
            )
        return headers

    def _titles(self, client, headers, sort):
        response = client.get("/job-posts", params={"sort": sort}, headers=headers)
        assert response.status_code == 200
        return [p["title"] for p in response.json()["data"]]

    @pytest.mark.parametrize("sort", ["-", ",", " , ", "-,+"])
    def test_sort_without_field_names_is_newest_first(self, client, three_posts, sort):
        assert self._titles(client, three_posts, sort) == ["third", "second", "first"]

    def test_unknown_sort_key_falls_back_to_newest_first(self, client, three_posts):
        assert self._titles(client, three_posts, "bogus") == ["third", "second", "first"]
        assert self._titles(client, three_posts, "password_hash,-bogus") == ["third", "second", "first"]

    def test_known_sort_key(self, client, three_posts):
        assert self._titles(client, three_posts, "title") == ["first", "second", "third"]
        assert self._titles(client, three_posts, "bogus,-title") == ["third", "second", "first"]


class TestUpdateAndDelete:
    def test_owner_updates(self, client, customer, job_post):
        _, headers = customer
        response = client.put(f"/job-posts/{job_post['id']}", json={"title": "Fix bathroom sink"}, headers=headers)
        assert response.status_code == 200
        assert response.json()["data"]["jobPost"]["title"] == "Fix bathroom sink"

    def test_other_customer_cannot_update(self, client, make_account, job_post):
        _, other_headers = make_account("customer")
        response = client.put(f"/job-posts/{job_post['id']}", json={"title": "Mine now"}, headers=other_headers)
        assert response.status_code == 403
        assert response.json()["message"] == "You can only update your own job posts"

    def test_admin_updates_any(self, client, admin, job_post):
        _, headers = admin
        response = client.put(f"/job-posts/{job_post['id']}", json={"location": "Shelbyville"}, headers=headers)
        assert response.status_code == 200

    def test_provider_cannot_update(self, client, provider, job_post):
        _, headers = provider
        assert client.put(f"/job-posts/{job_post['id']}", json={"title": "x"}, headers=headers).status_code == 403

    def test_update_to_unknown_service(self, client, customer, job_post):
        _, headers = customer
        response = client.put(f"/job-posts/{job_post['id']}", json={"service_id": "nope"}, headers=headers)
        assert response.status_code == 404

    def test_delete_removes_applications(self, client, store, customer, provider, job_post):
        _, customer_headers = customer
        _, provider_headers = provider
        _apply(client, job_post["id"], provider_headers)
        assert len(store.find(JOB_APPLICATIONS_TABLE)) == 1

        response = client.delete(f"/job-posts/{job_post['id']}", headers=customer_headers)
        assert response.status_code == 200
        assert store.get(JOB_POSTS_TABLE, job_post["id"]) is None
        assert store.find(JOB_APPLICATIONS_TABLE) == []

    def test_other_customer_cannot_delete(self, client, make_account, job_post):
        _, other_headers = make_account("customer")
        assert client.delete(f"/job-posts/{job_post['id']}", headers=other_headers).status_code == 403


class TestApplications:
    """Apply once, then the owner approves or rejects."""

    def test_full_workflow(self, client, customer, provider, make_account, job_post):
        _, customer_headers = customer
        provider_row, provider_headers = provider
        second_row, second_headers = make_account("provider")

        response = _apply(client, job_post["id"], provider_headers)
        assert response.status_code == 201
        applications = response.json()["data"]["jobPost"]["applications"]
        assert len(applications) == 1
        assert applications[0]["provider_id"] == provider_row["id"]
        assert applications[0]["status"] == "Applied"
        first_id = applications[0]["id"]

        applications = _apply(client, job_post["id"], second_headers).json()["data"]["jobPost"]["applications"]
        assert [a["provider_id"] for a in applications] == [provider_row["id"], second_row["id"]]
        second_id = applications[1]["id"]

        response = client.put(
            f"/job-posts/{job_post['id']}/applications/{first_id}/approve", headers=customer_headers
        )
        assert response.status_code == 200
        response = client.put(
            f"/job-posts/{job_post['id']}/applications/{second_id}/reject", headers=customer_headers
        )
        assert response.status_code == 200

        statuses = {a["id"]: a["status"] for a in response.json()["data"]["jobPost"]["applications"]}
        assert statuses == {first_id: "Approved", second_id: "Rejected"}

    def test_duplicate_application_conflicts(self, client, provider, job_post):
        _, headers = provider
        assert _apply(client, job_post["id"], headers).status_code == 201

        response = _apply(client, job_post["id"], headers)
        assert response.status_code == 400
        assert response.json()["message"] == "You have already applied to this job post"

    def test_only_providers_apply(self, client, customer, job_post):
        _, headers = customer
        assert _apply(client, job_post["id"], headers).status_code == 403

    def test_apply_to_unknown_post(self, client, provider):
        _, headers = provider
        assert _apply(client, "missing", headers).status_code == 404

    def test_approving_twice_conflicts(self, client, customer, provider, job_post):
        _, customer_headers = customer
        _, provider_headers = provider
        application = _apply(client, job_post["id"], provider_headers).json()["data"]["jobPost"]["applications"][0]
        url = f"/job-posts/{job_post['id']}/applications/{application['id']}/approve"

        assert client.put(url, headers=customer_headers).status_code == 200
        response = client.put(url, headers=customer_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Application is already approved"

    def test_rejected_application_can_be_approved(self, client, customer, provider, job_post):
        _, customer_headers = customer
        _, provider_headers = provider
        application = _apply(client, job_post["id"], provider_headers).json()["data"]["jobPost"]["applications"][0]
        base = f"/job-posts/{job_post['id']}/applications/{application['id']}"

        assert client.put(f"{base}/reject", headers=customer_headers).status_code == 200
        assert client.put(f"{base}/approve", headers=customer_headers).status_code == 200

    def test_only_owner_manages_applications(self, client, make_account, provider, job_post):
        _, provider_headers = provider
        _, other_headers = make_account("customer")
        application = _apply(client, job_post["id"], provider_headers).json()["data"]["jobPost"]["applications"][0]

        response = client.put(
            f"/job-posts/{job_post['id']}/applications/{application['id']}/approve", headers=other_headers
        )
        assert response.status_code == 403
        assert response.json()["message"] == "Only the owner of this job post can manage its applications"

    def test_unknown_application(self, client, customer, job_post):
        _, headers = customer
        response = client.put(f"/job-posts/{job_post['id']}/applications/missing/approve", headers=headers)
        assert response.status_code == 404
        assert response.json()["message"] == "Application not found"

    def test_application_of_another_post_not_found(self, client, customer, provider, job_post, post_payload):
        _, customer_headers = customer
        _, provider_headers = provider
        other_post = client.post("/job-posts", json=post_payload, headers=customer_headers).json()["data"]["jobPost"]
        application = _apply(client, other_post["id"], provider_headers).json()["data"]["jobPost"]["applications"][0]

        response = client.put(
            f"/job-posts/{job_post['id']}/applications/{application['id']}/approve", headers=customer_headers
        )
        assert response.status_code == 404


class TestConcurrency:
    def test_concurrent_applications_produce_one_record(self, store, customer, provider, service):
        customer_row, _ = customer
        provider_row, _ = provider
        jobs = JobPostService(store)
        post = jobs.create(
            Identity.from_account(customer_row),
            JobPostCreate(title="Race", description="d", duration="1h", service_id=service["id"]),
        )
        actor = Identity.from_account(provider_row)

        def attempt(_):
            try:
                jobs.apply(actor, post["id"])
                return True
            except ConflictError:
                return False

        with ThreadPoolExecutor(max_workers=8) as pool:
            outcomes = list(pool.map(attempt, range(8)))

        assert outcomes.count(True) == 1
        assert len(store.find(JOB_APPLICATIONS_TABLE, {"job_post_id": post["id"]})) == 1

    def test_concurrent_transition_loses_race(self, store, customer, provider, service):
        """A status change between read and write is reported, not overwritten."""
        customer_row, _ = customer
        provider_row, _ = provider
        jobs = JobPostService(store)
        owner = Identity.from_account(customer_row)
        post = jobs.create(owner, JobPostCreate(title="Race", description="d", duration="1h", service_id=service["id"]))
        application_id = jobs.apply(Identity.from_account(provider_row), post["id"])["applications"][0]["id"]

        original_update = store.update

        def racing_update(table, record_id, changes, expected=None):
            original_update(table, record_id, {"status": "Rejected"})
            return original_update(table, record_id, changes, expected=expected)

        store.update = racing_update
        with pytest.raises(ConflictError, match="already rejected"):
            jobs.approve_application(owner, post["id"], application_id)
