"""Tests for list-level access enforcement at every entry point."""

import pytest

from conftest import blog_lists, make_engine
from listforge.access.types import DENY, Operation
from listforge.errors import AccessDeniedError


async def _seed_posts(engine, *titles):
    sudo = engine.create_context(skip_access_control=True)
    posts = engine.get_list_by_key("Post")
    created = [await posts.create_mutation({"title": t}, sudo) for t in titles]
    engine.adapter.reset()
    return created


# =============================================================================
# Static deny
# =============================================================================


class TestStaticDeny:
    @pytest.fixture
    def denied(self):
        return make_engine(blog_lists(Post={"access": False}))

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "call",
        [
            lambda posts, ctx: posts.list_query({}, ctx),
            lambda posts, ctx: posts.list_query_meta({}, ctx),
            lambda posts, ctx: posts.item_query("p1", ctx),
            lambda posts, ctx: posts.create_mutation({"title": "x"}, ctx),
            lambda posts, ctx: posts.create_many_mutation([{"title": "x"}], ctx),
            lambda posts, ctx: posts.update_mutation("p1", {"title": "y"}, ctx),
            lambda posts, ctx: posts.update_many_mutation([{"id": "p1", "data": {"title": "y"}}], ctx),
            lambda posts, ctx: posts.delete_mutation("p1", ctx),
            lambda posts, ctx: posts.delete_many_mutation(["p1"], ctx),
        ],
    )
    async def test_every_entry_point_denied_without_storage(self, denied, call):
        posts = denied.get_list_by_key("Post")
        context = denied.create_context()

        with pytest.raises(AccessDeniedError):
            await call(posts, context)

        assert denied.adapter.calls == []

    @pytest.mark.asyncio
    async def test_error_names_the_entry_point(self, denied):
        posts = denied.get_list_by_key("Post")
        context = denied.create_context(authed_item={"id": "u1"}, authed_list_key="User")

        with pytest.raises(AccessDeniedError) as exc_info:
            await posts.create_mutation({"title": "x"}, context)

        assert exc_info.value.data == {"type": "mutation", "target": "createPost"}
        assert exc_info.value.internal_data["authedId"] == "u1"
        assert exc_info.value.internal_data["listKey"] == "Post"
        assert "authedId" not in exc_info.value.to_dict()["data"]

    @pytest.mark.asyncio
    async def test_read_denial_is_a_query(self, denied):
        posts = denied.get_list_by_key("Post")
        with pytest.raises(AccessDeniedError) as exc_info:
            await posts.list_query({}, denied.create_context())
        assert exc_info.value.data == {"type": "query", "target": "allPosts"}

    @pytest.mark.asyncio
    async def test_sudo_bypasses(self, denied):
        posts = denied.get_list_by_key("Post")
        sudo = denied.create_context(skip_access_control=True)

        created = await posts.create_mutation({"title": "x"}, sudo)

        assert (await posts.item_query(created["id"], sudo))["title"] == "x"


# =============================================================================
# Single-item lookups
# =============================================================================


class TestAccessControlledItem:
    @pytest.fixture
    def filtered(self):
        return make_engine(blog_lists(Post={"access": {"update": {"title": "mine"}}}))

    @pytest.mark.asyncio
    async def test_missing_and_filtered_are_indistinguishable(self, filtered):
        _, other = await _seed_posts(filtered, "mine", "other")
        posts = filtered.get_list_by_key("Post")
        context = filtered.create_context()

        with pytest.raises(AccessDeniedError) as missing:
            await posts.update_mutation("does-not-exist", {"title": "x"}, context)
        with pytest.raises(AccessDeniedError) as hidden:
            await posts.update_mutation(other["id"], {"title": "x"}, context)

        assert missing.value.to_dict() == hidden.value.to_dict()
        assert missing.value.internal_data["itemId"] == "does-not-exist"
        assert hidden.value.internal_data["itemId"] == other["id"]

    @pytest.mark.asyncio
    async def test_filtered_item_updates(self, filtered):
        mine, _ = await _seed_posts(filtered, "mine", "other")
        posts = filtered.get_list_by_key("Post")

        updated = await posts.update_mutation(mine["id"], {"views": 3}, filtered.create_context())

        assert updated["views"] == 3
        assert filtered.adapter.methods("Post")[0] == "items_query"

    @pytest.mark.asyncio
    async def test_delete_nonexistent_id(self, engine, context):
        posts = engine.get_list_by_key("Post")

        with pytest.raises(AccessDeniedError) as exc_info:
            await posts.delete_mutation("nope", context)

        assert exc_info.value.data["target"] == "deletePost"
        assert engine.adapter.methods() == ["find_by_id"]

    @pytest.mark.asyncio
    async def test_id_constraint_short_circuits(self):
        engine = make_engine(blog_lists(Post={"access": {"read": {"id": "only-this"}}}))
        posts = engine.get_list_by_key("Post")

        with pytest.raises(AccessDeniedError):
            await posts.item_query("something-else", engine.create_context())

        assert engine.adapter.calls == []

    @pytest.mark.asyncio
    async def test_filter_is_anded_with_id(self):
        engine = make_engine(blog_lists(Post={"access": {"read": {"status": "published"}}}))
        (draft,) = await _seed_posts(engine, "draft post")

        with pytest.raises(AccessDeniedError):
            await engine.get_list_by_key("Post").item_query(draft["id"], engine.create_context())

        _, method, args = engine.adapter.calls[0]
        assert method == "items_query"
        assert args == {"first": 1, "where": {"status": "published", "id": draft["id"]}}


# =============================================================================
# Multi-item lookups
# =============================================================================


class TestAccessControlledItems:
    @pytest.mark.asyncio
    async def test_update_many_skips_excluded(self):
        excluded: list[str] = []

        def not_excluded(args):
            return {"id_not_in": excluded}

        engine = make_engine(blog_lists(Post={"access": {"update": not_excluded}}))
        p1, p2, p3 = await _seed_posts(engine, "a", "b", "c")
        excluded.append(p3["id"])
        posts = engine.get_list_by_key("Post")

        results = await posts.update_many_mutation(
            [{"id": p["id"], "data": {"views": 1}} for p in (p1, p2, p3)],
            engine.create_context(),
        )

        assert len(results) == 2
        assert {r["id"] for r in results} == {p1["id"], p2["id"]}
        assert posts.adapter.items[p3["id"]]["views"] is None

    @pytest.mark.asyncio
    async def test_all_excluded_makes_no_query(self):
        engine = make_engine(blog_lists(Post={"access": {"delete": {"id_in": ["x"]}}}))
        posts = engine.get_list_by_key("Post")

        results = await posts.delete_many_mutation(["a", "b"], engine.create_context())

        assert results == []
        assert engine.adapter.calls == []

    @pytest.mark.asyncio
    async def test_missing_ids_dropped_silently(self, engine, context):
        (p1,) = await _seed_posts(engine, "a")
        posts = engine.get_list_by_key("Post")

        results = await posts.delete_many_mutation([p1["id"], "missing", p1["id"]], context)

        assert [r["id"] for r in results] == [p1["id"]]
        _, method, args = engine.adapter.calls[0]
        assert args == {"where": {"id_in": [p1["id"], "missing"]}}


class TestUnexpectedAccessResult:
    @pytest.mark.asyncio
    async def test_deny_is_not_a_lookup_result(self, engine, context):
        posts = engine.get_list_by_key("Post")

        with pytest.raises(TypeError, match="Unexpected access result for Post"):
            await posts.get_access_controlled_item("p1", DENY, context, Operation.READ)
        with pytest.raises(TypeError, match="Unexpected access result for Post"):
            await posts.get_access_controlled_items(["p1"], DENY)

        assert engine.adapter.calls == []
