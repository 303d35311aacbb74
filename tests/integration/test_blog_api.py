"""Integration tests for the blog JSON API."""

import json

from datasette_blogtraffic.signing import now_millis, signed_headers

from conftest import TEST_API_TOKEN, TEST_SECRET, build_datasette, make_post


class TestCreateBlog:
    """POST /api/blogs"""

    async def test_create(self, datasette, send_signed):
        response = await send_signed("POST", "/api/blogs", make_post())

        assert response.status_code == 201
        data = response.json()
        assert data["message"] == "Blog added successfully"
        assert data["blog"]["blogId"] == "post-1"
        assert data["blog"]["keywords"] == [
            {"name": "ats", "volume": 1200},
            {"name": "resume tips", "volume": 0},
        ]
        assert data["blog"]["createdAt"]

        fetched = await datasette.client.get("/api/blogs?blogId=post-1")
        assert fetched.status_code == 200
        assert fetched.json()["title"] == "ATS Optimization Strategies"

    async def test_duplicate_returns_409_and_keeps_original(self, datasette, send_signed):
        await send_signed("POST", "/api/blogs", make_post(title="Original"))

        response = await send_signed("POST", "/api/blogs", make_post(title="Replacement"))

        assert response.status_code == 409
        assert response.json()["error"] == "Blog with this blogId already exists"
        fetched = await datasette.client.get("/api/blogs?blogId=post-1")
        assert fetched.json()["title"] == "Original"

    async def test_missing_core_fields(self, send_signed):
        post = make_post()
        del post["content"]
        del post["slug"]

        response = await send_signed("POST", "/api/blogs", post)

        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "Missing required core fields"
        assert "content" in data["details"]
        assert "slug" in data["details"]

    async def test_invalid_json(self, send_signed):
        response = await send_signed("POST", "/api/blogs", b"{not json")
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid JSON body"

    async def test_non_object_body(self, send_signed):
        response = await send_signed("POST", "/api/blogs", [make_post()])
        assert response.status_code == 400

    async def test_legacy_add_route(self, datasette, send_signed):
        response = await send_signed("POST", "/api/blogs/add", make_post("legacy"))
        assert response.status_code == 201
        assert (await datasette.client.get("/api/blogs?blogId=legacy")).status_code == 200


class TestSignatureChecks:
    """Writes without a valid signature are rejected before touching storage."""

    async def post_with(self, datasette, headers, body=None):
        body = body if body is not None else json.dumps(make_post()).encode("utf-8")
        return await datasette.client.request(
            "POST",
            "/api/blogs",
            content=body,
            headers={"Content-Type": "application/json", **headers},
        )

    async def assert_nothing_stored(self, datasette):
        response = await datasette.client.get("/api/blogs")
        assert response.json() == []

    async def test_no_auth_headers(self, datasette):
        response = await self.post_with(datasette, {})
        assert response.status_code == 401
        assert response.json()["error"] == "Missing auth headers"
        await self.assert_nothing_stored(datasette)

    async def test_empty_bearer_token(self, datasette):
        body = json.dumps(make_post()).encode("utf-8")
        headers = {
            **signed_headers(TEST_SECRET, TEST_API_TOKEN, body),
            "Authorization": "Bearer ",
        }
        response = await self.post_with(datasette, headers, body)
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid API token"}
        await self.assert_nothing_stored(datasette)

    async def test_non_canonical_timestamp(self, datasette):
        body = json.dumps(make_post()).encode("utf-8")
        timestamp_ms = now_millis()
        headers = signed_headers(TEST_SECRET, TEST_API_TOKEN, body, timestamp_ms)
        headers["X-Timestamp"] = f"00{timestamp_ms}"
        response = await self.post_with(datasette, headers, body)
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid timestamp"}
        await self.assert_nothing_stored(datasette)

    async def test_wrong_token(self, datasette):
        body = json.dumps(make_post()).encode("utf-8")
        headers = signed_headers(TEST_SECRET, "wrong-token", body)
        response = await self.post_with(datasette, headers, body)
        assert response.status_code == 401
        assert response.json()["error"] == "Invalid API token"
        await self.assert_nothing_stored(datasette)

    async def test_wrong_secret(self, datasette):
        body = json.dumps(make_post()).encode("utf-8")
        headers = signed_headers("wrong-secret", TEST_API_TOKEN, body)
        response = await self.post_with(datasette, headers, body)
        assert response.status_code == 401
        assert response.json()["error"] == "Invalid signature"
        await self.assert_nothing_stored(datasette)

    async def test_tampered_body(self, datasette):
        body = json.dumps(make_post()).encode("utf-8")
        headers = signed_headers(TEST_SECRET, TEST_API_TOKEN, body)
        tampered = json.dumps(make_post(title="Tampered")).encode("utf-8")
        response = await self.post_with(datasette, headers, tampered)
        assert response.status_code == 401
        assert response.json()["error"] == "Invalid signature"
        await self.assert_nothing_stored(datasette)

    async def test_reformatted_body_fails(self, datasette):
        """The signature covers the exact bytes sent, not the parsed JSON."""
        body = json.dumps(make_post()).encode("utf-8")
        headers = signed_headers(TEST_SECRET, TEST_API_TOKEN, body)
        reformatted = json.dumps(make_post(), indent=2).encode("utf-8")
        response = await self.post_with(datasette, headers, reformatted)
        assert response.status_code == 401

    async def test_expired_timestamp(self, datasette, send_signed):
        stale = now_millis() - 6 * 60 * 1000
        response = await send_signed("POST", "/api/blogs", make_post(), timestamp_ms=stale)
        assert response.status_code == 401
        assert response.json()["error"] == "Request expired"
        await self.assert_nothing_stored(datasette)

    async def test_future_timestamp(self, send_signed):
        future = now_millis() + 6 * 60 * 1000
        response = await send_signed("POST", "/api/blogs", make_post(), timestamp_ms=future)
        assert response.status_code == 401

    async def test_recent_timestamp_accepted(self, send_signed):
        recent = now_millis() - 60 * 1000
        response = await send_signed("POST", "/api/blogs", make_post(), timestamp_ms=recent)
        assert response.status_code == 201

    async def test_non_numeric_timestamp(self, datasette, send_signed):
        response = await send_signed(
            "POST", "/api/blogs", make_post(), headers={"X-Timestamp": "yesterday"}
        )
        assert response.status_code == 401
        assert response.json()["error"] == "Invalid timestamp"

    async def test_signing_not_configured(self, db_path, monkeypatch):
        monkeypatch.delenv("BLOGTRAFFIC_SECRET_KEY", raising=False)
        monkeypatch.delenv("BLOGTRAFFIC_API_TOKEN", raising=False)
        ds = build_datasette(db_path, secret_key="", api_token="")
        body = json.dumps(make_post()).encode("utf-8")
        headers = signed_headers(TEST_SECRET, TEST_API_TOKEN, body)

        response = await self.post_with(ds, headers, body)

        assert response.status_code == 500
        assert response.json()["error"] == "Request signing is not configured"


class TestReadBlogs:
    """GET /api/blogs"""

    async def test_empty_list(self, datasette):
        response = await datasette.client.get("/api/blogs")
        assert response.status_code == 200
        assert response.json() == []

    async def test_list_newest_first(self, datasette, send_signed):
        for blog_id in ["one", "two", "three"]:
            await send_signed("POST", "/api/blogs", make_post(blog_id))

        response = await datasette.client.get("/api/blogs")

        assert [b["blogId"] for b in response.json()] == ["three", "two", "one"]

    async def test_get_by_slug(self, datasette, send_signed):
        await send_signed("POST", "/api/blogs", make_post("one", slug="my-post"))
        response = await datasette.client.get("/api/blogs?slug=my-post")
        assert response.status_code == 200
        assert response.json()["blogId"] == "one"

    async def test_unknown_blog_id(self, datasette):
        response = await datasette.client.get("/api/blogs?blogId=missing")
        assert response.status_code == 404
        assert response.json() == {"error": "Blog not found"}

    async def test_unknown_slug(self, datasette):
        response = await datasette.client.get("/api/blogs?slug=missing")
        assert response.status_code == 404

    async def test_reads_do_not_need_signature(self, datasette):
        response = await datasette.client.get("/api/blogs", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 200


class TestUpdateBlog:
    """PATCH /api/blogs and PATCH /api/blogs/<blogId>/update"""

    async def test_partial_update(self, datasette, send_signed):
        await send_signed("POST", "/api/blogs", make_post())

        response = await send_signed(
            "PATCH", "/api/blogs", {"blogId": "post-1", "title": "Updated", "keywords": "seo"}
        )

        assert response.status_code == 200
        blog = response.json()["blog"]
        assert response.json()["message"] == "Blog updated successfully"
        assert blog["title"] == "Updated"
        assert blog["keywords"] == [{"name": "seo", "volume": 0}]
        assert blog["content"] == make_post()["content"]

    async def test_update_without_blog_id(self, send_signed):
        response = await send_signed("PATCH", "/api/blogs", {"title": "Updated"})
        assert response.status_code == 400

    async def test_update_missing_blog(self, send_signed):
        response = await send_signed("PATCH", "/api/blogs", {"blogId": "nope", "title": "x"})
        assert response.status_code == 404

    async def test_update_requires_signature(self, datasette, send_signed):
        await send_signed("POST", "/api/blogs", make_post())
        response = await datasette.client.request(
            "PATCH",
            "/api/blogs",
            content=json.dumps({"blogId": "post-1", "title": "Hijacked"}).encode("utf-8"),
        )
        assert response.status_code == 401
        fetched = await datasette.client.get("/api/blogs?blogId=post-1")
        assert fetched.json()["title"] == "ATS Optimization Strategies"

    async def test_legacy_update_route(self, datasette, send_signed):
        await send_signed("POST", "/api/blogs", make_post())
        response = await send_signed("PATCH", "/api/blogs/post-1/update", {"title": "Via path"})
        assert response.status_code == 200
        assert response.json()["blog"]["title"] == "Via path"

    async def test_legacy_update_rejects_other_blog_id(self, send_signed):
        await send_signed("POST", "/api/blogs", make_post())
        response = await send_signed(
            "PATCH", "/api/blogs/post-1/update", {"blogId": "post-2", "title": "x"}
        )
        assert response.status_code == 400


class TestDeleteBlog:
    """DELETE /api/blogs and DELETE /api/blogs/delete"""

    async def test_delete(self, datasette, send_signed):
        await send_signed("POST", "/api/blogs", make_post())

        response = await send_signed("DELETE", "/api/blogs", {"blogId": "post-1"})

        assert response.status_code == 200
        assert response.json() == {"message": "Blog deleted successfully"}
        assert (await datasette.client.get("/api/blogs?blogId=post-1")).status_code == 404

    async def test_delete_missing(self, send_signed):
        response = await send_signed("DELETE", "/api/blogs", {"blogId": "nope"})
        assert response.status_code == 404

    async def test_delete_without_blog_id(self, send_signed):
        response = await send_signed("DELETE", "/api/blogs", {})
        assert response.status_code == 400

    async def test_legacy_delete_route(self, datasette, send_signed):
        await send_signed("POST", "/api/blogs", make_post())
        response = await send_signed("DELETE", "/api/blogs/delete", {"blogId": "post-1"})
        assert response.status_code == 200
        assert (await datasette.client.get("/api/blogs")).json() == []


class TestMethodsAndCors:
    """Method handling and CORS headers on API routes."""

    async def test_unsupported_method(self, datasette):
        response = await datasette.client.request("PUT", "/api/blogs")
        assert response.status_code == 405

    async def test_legacy_route_wrong_method(self, datasette):
        response = await datasette.client.get("/api/blogs/add")
        assert response.status_code == 405

    async def test_preflight(self, datasette):
        response = await datasette.client.request(
            "OPTIONS", "/api/blogs", headers={"Origin": "http://localhost:3000"}
        )
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "http://localhost:3000"
        assert "PATCH" in response.headers["access-control-allow-methods"]
        assert "X-Timestamp" in response.headers["access-control-allow-headers"]

    async def test_unknown_origin_gets_fallback(self, datasette):
        response = await datasette.client.get(
            "/api/blogs", headers={"Origin": "https://evil.example.com"}
        )
        assert response.headers["access-control-allow-origin"] == "https://blogtraffic.vercel.app"

    async def test_error_responses_carry_cors(self, datasette):
        response = await datasette.client.get(
            "/api/blogs?blogId=missing", headers={"Origin": "http://localhost:3000"}
        )
        assert response.status_code == 404
        assert response.headers["access-control-allow-origin"] == "http://localhost:3000"
