"""
sitepress/tests/test_plans_api.py
HTTP tests for /api/plan: sessions, method routing, error contract.
"""

import jwt
import pytest


def _auth(user_id):
    return {"X-User-Id": user_id}


def _create_plan(client, user_id, site_id):
    resp = client.post("/api/plan", params={"siteId": site_id}, headers=_auth(user_id))
    assert resp.status_code == 201
    return resp.json()["data"]["planId"]


class TestSession:
    def test_missing_session_is_401(self, client, make_site):
        site = make_site("alice", subdomain="blog")
        resp = client.get("/api/plan", params={"siteId": site.id})
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unauthorized"

    def test_bearer_session_is_accepted(self, client, make_site):
        site = make_site("alice", subdomain="blog")
        token = jwt.encode({"sub": "alice"}, "test-session-secret", algorithm="HS256")
        resp = client.post(
            "/api/plan",
            params={"siteId": site.id},
            headers={"Authorization": f"Bearer {token}"},
        )
        assert resp.status_code == 201

    def test_bad_bearer_session_is_401(self, client):
        resp = client.get(
            "/api/plan",
            params={"siteId": "x"},
            headers={"Authorization": "Bearer not-a-jwt", "X-User-Id": "alice"},
        )
        assert resp.status_code == 401


class TestMethodRouting:
    def test_unsupported_method_lists_allowed(self, client):
        resp = client.patch("/api/plan", headers=_auth("alice"))
        assert resp.status_code == 405
        assert resp.headers["allow"] == "GET, POST, DELETE, PUT"
        assert resp.json()["error"]["message"] == "Method PATCH Not Allowed"

    @pytest.mark.parametrize("method", ["PROPFIND", "TRACE", "HEAD", "OPTIONS"])
    def test_any_other_method_lists_full_allow(self, client, method):
        resp = client.request(method, "/api/plan", headers=_auth("alice"))
        assert resp.status_code == 405
        assert resp.headers["allow"] == "GET, POST, DELETE, PUT"

    def test_other_method_without_session_is_401(self, client):
        resp = client.request("PROPFIND", "/api/plan")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unauthorized"


class TestGetPlans:
    def test_list_site_plans(self, client, make_site):
        site = make_site("alice", subdomain="blog")
        plan_id = _create_plan(client, "alice", site.id)

        published = client.get("/api/plan", params={"siteId": site.id}, headers=_auth("alice"))
        drafts = client.get(
            "/api/plan", params={"siteId": site.id, "published": "false"}, headers=_auth("alice")
        )

        assert published.json()["count"] == 0
        assert published.json()["site"]["id"] == site.id
        assert [p["id"] for p in drafts.json()["data"]] == [plan_id]

    def test_foreign_site_lists_empty(self, client, make_site):
        site = make_site("alice", subdomain="blog")
        _create_plan(client, "alice", site.id)

        resp = client.get(
            "/api/plan", params={"siteId": site.id, "published": "false"}, headers=_auth("bob")
        )

        assert resp.status_code == 200
        assert resp.json() == {"data": [], "count": 0, "site": None}

    def test_get_single_plan_includes_site(self, client, make_site):
        site = make_site("alice", subdomain="blog")
        plan_id = _create_plan(client, "alice", site.id)

        resp = client.get("/api/plan", params={"planId": plan_id}, headers=_auth("alice"))

        assert resp.status_code == 200
        assert resp.json()["data"]["site"]["subdomain"] == "blog"

    def test_repeated_query_param_is_400(self, client):
        resp = client.get("/api/plan?siteId=a&siteId=b", headers=_auth("alice"))
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "bad_request"

    def test_invalid_published_flag_is_400(self, client, make_site):
        site = make_site("alice", subdomain="blog")
        resp = client.get(
            "/api/plan", params={"siteId": site.id, "published": "maybe"}, headers=_auth("alice")
        )
        assert resp.status_code == 400


class TestNotFoundIsIndistinguishable:
    def test_foreign_and_missing_plan_look_the_same(self, client, make_site):
        site = make_site("alice", subdomain="blog")
        make_site("bob", subdomain="bobs")
        plan_id = _create_plan(client, "alice", site.id)

        foreign = client.delete("/api/plan", params={"planId": plan_id}, headers=_auth("bob"))
        missing = client.delete("/api/plan", params={"planId": "nope"}, headers=_auth("bob"))

        assert foreign.status_code == missing.status_code == 404
        assert foreign.json()["error"]["code"] == missing.json()["error"]["code"]
        assert foreign.json()["error"]["message"] == missing.json()["error"]["message"]

    def test_foreign_and_missing_site_look_the_same(self, client, make_site):
        site = make_site("alice", subdomain="blog")

        foreign = client.post("/api/plan", params={"siteId": site.id}, headers=_auth("bob"))
        missing = client.post("/api/plan", params={"siteId": "nope"}, headers=_auth("bob"))

        assert foreign.status_code == missing.status_code == 404
        assert foreign.json()["detail"] == missing.json()["detail"]


class TestMutations:
    def test_create_without_site_id_is_400(self, client):
        resp = client.post("/api/plan", headers=_auth("alice"))
        assert resp.status_code == 400

    def test_update_then_delete_scenario(self, client, make_site, revalidation_client):
        site = make_site("user-a", subdomain="blog")
        make_site("user-b", subdomain="elsewhere")
        plan_id = _create_plan(client, "user-a", site.id)

        updated = client.put(
            "/api/plan",
            json={"id": plan_id, "title": "Hello", "slug": "hello", "published": True},
            headers=_auth("user-a"),
        )
        assert updated.status_code == 200
        assert updated.json()["data"]["slug"] == "hello"
        revalidation_client.calls.clear()

        denied = client.delete("/api/plan", params={"planId": plan_id}, headers=_auth("user-b"))
        assert denied.status_code == 404
        still_there = client.get("/api/plan", params={"planId": plan_id}, headers=_auth("user-a"))
        assert still_there.status_code == 200
        assert revalidation_client.calls == []

        deleted = client.delete("/api/plan", params={"planId": plan_id}, headers=_auth("user-a"))
        assert deleted.status_code == 200
        assert deleted.json() == {"data": {"planId": plan_id}, "warnings": []}
        assert revalidation_client.calls == [("blog.vercel.pub", "blog", "hello")]

    def test_update_ignores_caller_supplied_domains(self, client, make_site, revalidation_client):
        site = make_site("alice", subdomain="blog")
        plan_id = _create_plan(client, "alice", site.id)

        client.put(
            "/api/plan",
            json={"id": plan_id, "slug": "post", "subdomain": "victim", "customDomain": "victim.com"},
            headers=_auth("alice"),
        )

        assert revalidation_client.calls == [("blog.vercel.pub", "blog", "post")]

    def test_update_without_id_is_400(self, client):
        resp = client.put("/api/plan", json={"title": "x"}, headers=_auth("alice"))
        assert resp.status_code == 400

    def test_update_with_wrong_types_is_400(self, client, make_site):
        site = make_site("alice", subdomain="blog")
        plan_id = _create_plan(client, "alice", site.id)
        resp = client.put(
            "/api/plan", json={"id": plan_id, "published": {"nested": True}}, headers=_auth("alice")
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "bad_request"

    @pytest.mark.parametrize(
        "fields",
        [{"published": "yes"}, {"published": 1}, {"published": "true"}, {"title": 5}, {"slug": ""}],
    )
    def test_loosely_typed_fields_are_400_and_plan_unchanged(self, client, make_site, fields):
        site = make_site("alice", subdomain="blog")
        plan_id = _create_plan(client, "alice", site.id)

        resp = client.put("/api/plan", json={"id": plan_id, **fields}, headers=_auth("alice"))

        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "bad_request"
        stored = client.get("/api/plan", params={"planId": plan_id}, headers=_auth("alice")).json()["data"]
        assert stored["published"] is False
        assert stored["title"] is None

    def test_slug_conflict_is_409(self, client, make_site):
        site = make_site("alice", subdomain="blog")
        first = _create_plan(client, "alice", site.id)
        second = _create_plan(client, "alice", site.id)
        client.put("/api/plan", json={"id": first, "slug": "same"}, headers=_auth("alice"))

        resp = client.put("/api/plan", json={"id": second, "slug": "same"}, headers=_auth("alice"))

        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "conflict"

    def test_invalidation_failure_is_reported_as_warning(
        self, make_site, make_gateway, failing_revalidation_client
    ):
        from fastapi.testclient import TestClient
        from sitepress.api.plans import get_gateway
        from sitepress.main import app

        revalidation = failing_revalidation_client(failing={"alice.example.com"})
        gateway = make_gateway(revalidation)
        app.dependency_overrides[get_gateway] = lambda: gateway
        try:
            client = TestClient(app)
            site = make_site("alice", subdomain="blog", custom_domain="alice.example.com")
            plan_id = _create_plan(client, "alice", site.id)

            resp = client.put(
                "/api/plan", json={"id": plan_id, "title": "New"}, headers=_auth("alice")
            )
        finally:
            app.dependency_overrides.clear()

        assert resp.status_code == 200
        assert resp.json()["data"]["title"] == "New"
        assert resp.headers["x-invalidation-warnings"] == "1"
        assert [w["hostname"] for w in resp.json()["warnings"]] == ["alice.example.com"]

    def test_store_failure_hides_details(self, client, make_site, monkeypatch):
        from sqlalchemy.exc import OperationalError
        from sitepress.features.plans.persistence import PlanPersistence

        def boom(*args, **kwargs):
            raise OperationalError("DELETE FROM plans WHERE secret", {}, Exception("db down"))

        monkeypatch.setattr(PlanPersistence, "delete_owned_plan", staticmethod(boom))

        resp = client.delete("/api/plan", params={"planId": "p1"}, headers=_auth("alice"))

        assert resp.status_code == 500
        body = resp.json()
        assert body["error"]["code"] == "internal_error"
        assert "secret" not in resp.text
        assert "db down" not in resp.text
        assert body["error"]["request_id"] == resp.headers["x-request-id"]
