"""Tests for the list HTTP API."""

import json
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from conftest import blog_lists, make_engine
from listforge.api.app import create_app


def header_auth(request):
    """Treat the X-User header as the id of an authenticated User."""
    user_id = request.headers.get("x-user")
    if not user_id:
        return None
    return {"id": user_id}, "User"


def only_authed(args):
    return args.authentication.item is not None


@pytest.fixture
def engine():
    lists = blog_lists(
        Post={"access": {"create": only_authed, "update": only_authed, "delete": only_authed}},
    )
    fields = dict(lists["User"]["fields"])
    fields["email"] = {"type": "text", "access": {"read": only_authed}}
    lists["User"] = {**lists["User"], "fields": fields}
    return make_engine(lists)


@pytest.fixture
def client(engine):
    with TestClient(create_app(engine=engine, authenticate=header_auth)) as client:
        yield client


def create_post(client, title="Hello", **extra):
    response = client.post(
        "/api/lists/Post/items",
        json={"data": {"title": title, **extra}},
        headers={"X-User": "u1"},
    )
    assert response.status_code == 201
    return response.json()["data"]


class TestMeta:
    def test_health(self, client):
        assert client.get("/api/health").json() == {"status": "ok"}

    def test_lists_describe_access(self, client):
        response = client.get("/api/lists")

        assert response.status_code == 200
        lists = {meta["name"]: meta for meta in response.json()["lists"]}
        assert set(lists) == {"User", "Post", "Tag"}
        assert lists["Post"]["access"] == {
            "create": False,
            "read": True,
            "update": False,
            "delete": False,
        }

    def test_list_meta(self, client):
        meta = client.get("/api/lists/Post/meta", headers={"X-User": "u1"}).json()

        assert meta["label"] == "Posts"
        assert meta["access"]["create"] is True
        assert meta["schema"]["queries"] == ["Post", "allPosts", "_allPostsMeta", "authenticatedPost"]
        status = next(f for f in meta["fields"] if f["path"] == "status")
        assert status["options"] == ["draft", "published"]

    def test_unknown_list(self, client):
        assert client.get("/api/lists/Nope/items").status_code == 404


class TestWrites:
    def test_create(self, client):
        post = create_post(client)
        assert post["title"] == "Hello"
        assert post["status"] == "draft"

    def test_create_denied(self, client):
        response = client.post("/api/lists/Post/items", json={"data": {"title": "x"}})

        assert response.status_code == 403
        error = response.json()["error"]
        assert error["kind"] == "AccessDeniedError"
        assert error["data"] == {"type": "mutation", "target": "createPost"}

    def test_validation_failure(self, client):
        response = client.post(
            "/api/lists/Post/items", json={"data": {"views": 1}}, headers={"X-User": "u1"}
        )

        assert response.status_code == 400
        assert response.json()["error"]["data"]["messages"] == [
            'Required field "title" is null or undefined.'
        ]

    def test_malformed_nested_input(self, client):
        response = client.post(
            "/api/lists/User/items",
            json={"data": {"name": "Ann", "posts": {"create": {"title": "a"}}}},
        )

        assert response.status_code == 400
        assert response.json()["error"]["data"]["messages"] == ["posts.create expects a list"]

    def test_update_and_delete(self, client):
        post = create_post(client)
        headers = {"X-User": "u1"}

        response = client.patch(
            f"/api/lists/Post/items/{post['id']}", json={"data": {"views": 4}}, headers=headers
        )
        assert response.json()["data"]["views"] == 4

        response = client.delete(f"/api/lists/Post/items/{post['id']}", headers=headers)
        assert response.status_code == 200
        assert client.get(f"/api/lists/Post/items/{post['id']}").status_code == 403

    def test_batches(self, client):
        headers = {"X-User": "u1"}
        response = client.post(
            "/api/lists/Post/items/batch",
            json={"data": [{"title": "a"}, {"title": "b"}]},
            headers=headers,
        )
        assert response.status_code == 201
        a, b = response.json()["data"]

        response = client.patch(
            "/api/lists/Post/items",
            json={"data": [{"id": a["id"], "data": {"views": 1}}, {"id": "gone", "data": {"views": 2}}]},
            headers=headers,
        )
        assert [p["views"] for p in response.json()["data"]] == [1]

        response = client.post(
            "/api/lists/Post/items/delete", json={"ids": [a["id"], b["id"]]}, headers=headers
        )
        assert len(response.json()["data"]) == 2
        assert client.get("/api/lists/Post/count").json() == {"count": 0}


class TestReads:
    def test_query_with_where(self, client):
        create_post(client, "a", views=1)
        create_post(client, "b", views=5)

        response = client.get(
            "/api/lists/Post/items",
            params={"where": json.dumps({"views_gt": 2}), "order_by": "title_ASC"},
        )

        assert [p["title"] for p in response.json()["data"]] == ["b"]

    def test_bad_where(self, client):
        create_post(client)
        assert client.get("/api/lists/Post/items", params={"where": "{oops"}).status_code == 400
        assert client.get("/api/lists/Post/items", params={"where": "[1]"}).status_code == 400
        response = client.get("/api/lists/Post/items", params={"where": json.dumps({"colour": 1})})
        assert response.status_code == 400

    def test_denied_field_reported_next_to_data(self, client):
        response = client.post(
            "/api/lists/User/items", json={"data": {"name": "Ann", "email": "ann@example.com"}}
        )
        # Anonymous callers may create but not read the email back
        assert response.status_code == 201
        body = response.json()
        assert "email" not in body["data"]
        assert body["data"]["name"] == "Ann"
        assert body["errors"][0]["data"] == {"type": "query", "target": "email"}

        user_id = body["data"]["id"]
        authed = client.get(f"/api/lists/User/items/{user_id}", headers={"X-User": user_id})
        assert authed.json()["data"]["email"] == "ann@example.com"
        assert authed.json()["errors"] == []

    def test_authenticated_item(self, client):
        user = client.post("/api/lists/User/items", json={"data": {"name": "Ann"}}).json()["data"]

        response = client.get("/api/lists/User/authenticated", headers={"X-User": user["id"]})
        assert response.json()["data"]["name"] == "Ann"

        assert client.get("/api/lists/User/authenticated").json() == {"data": None, "errors": []}
        assert client.get(
            "/api/lists/Post/authenticated", headers={"X-User": user["id"]}
        ).json()["data"] is None

    def test_count(self, client):
        create_post(client, "a")
        create_post(client, "b", status="published")

        response = client.get(
            "/api/lists/Post/count", params={"where": json.dumps({"status": "published"})}
        )
        assert response.json() == {"count": 1}


class TestAuthenticator:
    def test_async_authenticator_is_awaited(self, engine):
        authenticate = AsyncMock(return_value=({"id": "u1"}, "User"))

        with TestClient(create_app(engine=engine, authenticate=authenticate)) as client:
            response = client.post("/api/lists/Post/items", json={"data": {"title": "Hi"}})

        assert response.status_code == 201
        authenticate.assert_awaited_once()

    def test_no_authenticator_means_anonymous(self, engine):
        with TestClient(create_app(engine=engine)) as client:
            response = client.post("/api/lists/Post/items", json={"data": {"title": "Hi"}})

        assert response.status_code == 403


class TestListMutations:
    @pytest.fixture
    def client(self):
        async def publish(args, context, actions):
            post = await actions.item("Post", args["id"])
            posts = context.engine.get_list_by_key("Post")
            updated = await posts.update_mutation(post["id"], {"status": "published"}, context)
            return {"id": updated["id"], "status": updated["status"]}

        engine = make_engine(
            blog_lists(Post={"mutations": [{"name": "publishPost", "resolver": publish}]})
        )
        with TestClient(create_app(engine=engine, authenticate=header_auth)) as client:
            yield client

    def test_runs_resolver(self, client):
        post = create_post(client)

        response = client.post(
            "/api/lists/Post/mutations/publishPost", json={"args": {"id": post["id"]}}
        )

        assert response.status_code == 200
        assert response.json() == {"data": {"id": post["id"], "status": "published"}}

    def test_listed_in_meta(self, client):
        meta = client.get("/api/lists/Post/meta").json()
        assert meta["schema"]["mutations"] == ["publishPost"]

    def test_unknown_mutation(self, client):
        response = client.post("/api/lists/Post/mutations/archivePost", json={"args": {}})
        assert response.status_code == 404

    def test_resolver_errors_map_to_status(self, client):
        response = client.post("/api/lists/Post/mutations/publishPost", json={"args": {"id": "ghost"}})
        assert response.status_code == 403
