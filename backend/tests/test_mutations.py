"""Tests for the create/update/delete pipeline."""

import pytest

from conftest import blog_lists, make_engine
from listforge.access.types import Operation
from listforge.errors import AccessDeniedError, StorageError, ValidationFailureError


def _with_post_fields(**field_overrides):
    lists = blog_lists()
    fields = dict(lists["Post"]["fields"])
    for path, config in field_overrides.items():
        fields[path] = {**fields.get(path, {}), **config}
    return blog_lists(Post={"fields": fields})


# =============================================================================
# Create
# =============================================================================


class TestCreate:
    @pytest.mark.asyncio
    async def test_creates_with_defaults(self, engine, context):
        post = await engine.get_list_by_key("Post").create_mutation({"title": "Hello"}, context)

        assert post["title"] == "Hello"
        assert post["status"] == "draft"
        assert post["id"]

    @pytest.mark.asyncio
    async def test_explicit_value_beats_default(self, engine, context):
        post = await engine.get_list_by_key("Post").create_mutation(
            {"title": "Hello", "status": "published"}, context
        )
        assert post["status"] == "published"

    @pytest.mark.asyncio
    async def test_callable_and_async_defaults(self):
        async def async_views():
            return 7

        engine = make_engine(
            _with_post_fields(
                views={"default": async_views},
                title={"default": lambda: "Untitled"},
            )
        )
        post = await engine.get_list_by_key("Post").create_mutation({}, engine.create_context())

        assert post["title"] == "Untitled"
        assert post["views"] == 7

    @pytest.mark.asyncio
    async def test_whole_float_coerced_to_integer(self, engine, context):
        post = await engine.get_list_by_key("Post").create_mutation(
            {"title": "x", "views": 3.0}, context
        )
        assert post["views"] == 3
        assert isinstance(post["views"], int)

    @pytest.mark.asyncio
    async def test_unknown_keys_are_dropped(self, engine, context):
        post = await engine.get_list_by_key("Post").create_mutation(
            {"title": "x", "id": "chosen", "nonsense": 1}, context
        )
        assert post["id"] != "chosen"
        assert "nonsense" not in post


# =============================================================================
# Validation
# =============================================================================


class TestValidation:
    @pytest.mark.asyncio
    async def test_missing_required_field(self, engine, context):
        posts = engine.get_list_by_key("Post")

        with pytest.raises(ValidationFailureError) as exc_info:
            await posts.create_mutation({}, context)

        assert exc_info.value.messages == ['Required field "title" is null or undefined.']
        assert exc_info.value.data["listKey"] == "Post"
        assert exc_info.value.data["operation"] == "create"
        assert "create" not in engine.adapter.methods()

    @pytest.mark.asyncio
    async def test_errors_aggregated_into_one_failure(self):
        def needs_title(ctx):
            ctx.add_validation_error("Posts need a title")

        lists = _with_post_fields(views={"hooks": {"validate_input": lambda ctx: ctx.add_validation_error("views hook")}})
        lists["Post"]["hooks"] = {"validateInput": needs_title}
        engine = make_engine(lists)

        with pytest.raises(ValidationFailureError) as exc_info:
            await engine.get_list_by_key("Post").create_mutation(
                {"views": "many", "status": "bogus"}, engine.create_context()
            )

        messages = exc_info.value.messages
        assert messages == [
            'Required field "title" is null or undefined.',
            "status must be one of: draft, published",
            "views must be an integer",
            "views hook",
            "Posts need a title",
        ]
        assert [e["field"] for e in exc_info.value.data["errors"]] == [
            "title",
            "status",
            "views",
            "views",
            None,
        ]
        assert engine.adapter.methods() == []

    @pytest.mark.asyncio
    async def test_update_only_checks_required_fields_present(self, engine, sudo):
        posts = engine.get_list_by_key("Post")
        post = await posts.create_mutation({"title": "x"}, sudo)

        updated = await posts.update_mutation(post["id"], {"views": 2}, sudo)
        assert updated["title"] == "x"

        with pytest.raises(ValidationFailureError) as exc_info:
            await posts.update_mutation(post["id"], {"title": None}, sudo)
        assert exc_info.value.data["operation"] == "update"

    @pytest.mark.asyncio
    async def test_internal_data_is_not_public(self, engine, context):
        with pytest.raises(ValidationFailureError) as exc_info:
            await engine.get_list_by_key("Post").create_mutation({"views": 1}, context)

        public = exc_info.value.to_dict()
        assert public["kind"] == "ValidationFailureError"
        assert "internal_data" not in public
        assert exc_info.value.internal_data["data"] == {"views": 1}


# =============================================================================
# Field access
# =============================================================================


class TestFieldAccess:
    @pytest.mark.asyncio
    async def test_denied_field_aborts_write(self):
        engine = make_engine(_with_post_fields(status={"access": {"create": False}}))
        posts = engine.get_list_by_key("Post")

        with pytest.raises(AccessDeniedError) as exc_info:
            await posts.create_mutation({"title": "x", "status": "published"}, engine.create_context())

        assert exc_info.value.data["restrictedFields"] == ["status"]
        assert engine.adapter.calls == []

    @pytest.mark.asyncio
    async def test_omitted_denied_field_is_fine(self):
        engine = make_engine(_with_post_fields(status={"access": {"create": False}}))

        post = await engine.get_list_by_key("Post").create_mutation(
            {"title": "x"}, engine.create_context()
        )
        assert post["status"] == "draft"

    @pytest.mark.asyncio
    async def test_update_rule_sees_existing_item(self):
        def only_drafts(args):
            return args.existing_item["status"] == "draft"

        engine = make_engine(_with_post_fields(title={"access": {"update": only_drafts}}))
        posts = engine.get_list_by_key("Post")
        context = engine.create_context()
        draft = await posts.create_mutation({"title": "a"}, context)
        published = await posts.create_mutation({"title": "b", "status": "published"}, context)

        assert (await posts.update_mutation(draft["id"], {"title": "c"}, context))["title"] == "c"
        with pytest.raises(AccessDeniedError):
            await posts.update_mutation(published["id"], {"title": "c"}, context)

    @pytest.mark.asyncio
    async def test_batch_reports_each_restricted_field_once(self):
        engine = make_engine(_with_post_fields(views={"access": {"create": False}}))

        with pytest.raises(AccessDeniedError) as exc_info:
            await engine.get_list_by_key("Post").create_many_mutation(
                [{"title": "a", "views": 1}, {"title": "b", "views": 2}],
                engine.create_context(),
            )
        assert exc_info.value.data["restrictedFields"] == ["views"]
        assert exc_info.value.data["target"] == "createPosts"


# =============================================================================
# Hooks
# =============================================================================


class TestHooks:
    @pytest.mark.asyncio
    async def test_list_resolve_input_merges(self):
        lists = blog_lists()
        lists["Post"]["hooks"] = {
            "resolve_input": lambda ctx: {"title": ctx.resolved_data["title"].strip()}
        }
        engine = make_engine(lists)

        post = await engine.get_list_by_key("Post").create_mutation(
            {"title": "  padded  "}, engine.create_context()
        )
        assert post["title"] == "padded"

    @pytest.mark.asyncio
    async def test_field_resolve_input_overrides(self):
        engine = make_engine(
            _with_post_fields(title={"hooks": {"resolve_input": lambda ctx: ctx.resolved_data["title"].upper()}})
        )
        post = await engine.get_list_by_key("Post").create_mutation(
            {"title": "loud"}, engine.create_context()
        )
        assert post["title"] == "LOUD"

    @pytest.mark.asyncio
    async def test_before_change_failure_stops_write(self):
        def boom(ctx):
            raise RuntimeError("before_change failed")

        lists = blog_lists()
        lists["Post"]["hooks"] = {"before_change": boom}
        engine = make_engine(lists)

        with pytest.raises(RuntimeError, match="before_change failed"):
            await engine.get_list_by_key("Post").create_mutation({"title": "x"}, engine.create_context())
        assert "create" not in engine.adapter.methods()

    @pytest.mark.asyncio
    async def test_after_change_receives_stored_item(self):
        seen = []

        async def record(ctx):
            seen.append((ctx.operation, ctx.existing_item, ctx.updated_item))

        lists = blog_lists()
        lists["Post"]["hooks"] = {"after_change": record}
        engine = make_engine(lists)
        posts = engine.get_list_by_key("Post")
        context = engine.create_context()

        post = await posts.create_mutation({"title": "a"}, context)
        updated = await posts.update_mutation(post["id"], {"title": "b"}, context)

        assert seen[0] == (Operation.CREATE, None, post)
        assert seen[1] == (Operation.UPDATE, post, updated)

    @pytest.mark.asyncio
    async def test_nested_after_change_runs_first(self):
        events = []

        def record(name):
            def hook(ctx):
                events.append((name, ctx.updated_item["id"]))

            return hook

        lists = blog_lists()
        lists["User"]["hooks"] = {"after_change": record("User")}
        lists["Post"]["hooks"] = {"after_change": record("Post")}
        engine = make_engine(lists)

        user = await engine.get_list_by_key("User").create_mutation(
            {"name": "Ann", "posts": {"create": [{"title": "a"}]}}, engine.create_context()
        )

        assert [name for name, _ in events] == ["Post", "User"]
        assert events[1][1] == user["id"]
        assert events[0][1] == user["posts"][0]

    @pytest.mark.asyncio
    async def test_after_change_sees_backlinks(self):
        seen = {}

        async def read_back(ctx):
            post = await ctx.actions.item("Post", ctx.updated_item["id"])
            seen["author"] = post["author"]

        lists = blog_lists()
        lists["Post"]["hooks"] = {"after_change": read_back}
        engine = make_engine(lists)

        user = await engine.get_list_by_key("User").create_mutation(
            {"name": "Ann", "posts": {"create": [{"title": "a"}]}}, engine.create_context()
        )
        assert seen["author"] == user["id"]

    @pytest.mark.asyncio
    async def test_hook_actions_count(self):
        counts = []

        async def count_drafts(ctx):
            counts.append(await ctx.actions.count("Post", {"status": "draft"}))

        lists = blog_lists()
        lists["Post"]["hooks"] = {"before_change": count_drafts}
        engine = make_engine(lists)
        posts = engine.get_list_by_key("Post")
        context = engine.create_context()

        await posts.create_mutation({"title": "a"}, context)
        await posts.create_mutation({"title": "b"}, context)

        assert counts == [0, 1]


# =============================================================================
# Update
# =============================================================================


class TestUpdate:
    @pytest.mark.asyncio
    async def test_updates_only_given_fields(self, engine, sudo):
        posts = engine.get_list_by_key("Post")
        post = await posts.create_mutation({"title": "a", "views": 1}, sudo)

        updated = await posts.update_mutation(post["id"], {"views": 5}, sudo)

        assert updated == {**post, "views": 5}
        _, method, _, data = engine.adapter.calls[-1]
        assert method == "update"
        assert data == {"views": 5}

    @pytest.mark.asyncio
    async def test_item_vanishing_mid_update_returns_none(self):
        after = []

        def remove_first(ctx):
            del engine.get_list_by_key("Post").adapter.items[ctx.existing_item["id"]]

        lists = blog_lists()
        lists["Post"]["hooks"] = {"before_change": remove_first, "after_change": after.append}
        engine = make_engine(lists)
        posts = engine.get_list_by_key("Post")
        sudo = engine.create_context(skip_access_control=True)
        post = await engine.adapter.list_adapters["Post"].create({"title": "a"})

        result = await posts.update_mutation(post["id"], {"title": "b"}, sudo)

        assert result is None
        assert after == []


# =============================================================================
# Delete
# =============================================================================


class TestDelete:
    @pytest.mark.asyncio
    async def test_deletes_and_runs_hooks(self):
        events = []
        lists = blog_lists()
        lists["Post"]["hooks"] = {
            "before_delete": lambda ctx: events.append("before"),
            "after_delete": lambda ctx: events.append(("after", ctx.existing_item["title"])),
        }
        engine = make_engine(lists)
        posts = engine.get_list_by_key("Post")
        context = engine.create_context()
        post = await posts.create_mutation({"title": "a"}, context)

        deleted = await posts.delete_mutation(post["id"], context)

        assert deleted["id"] == post["id"]
        assert events == ["before", ("after", "a")]
        assert await posts.list_query_meta({}, context) == 0

    @pytest.mark.asyncio
    async def test_validate_delete_blocks(self):
        lists = blog_lists()
        lists["Post"]["hooks"] = {
            "validate_delete": lambda ctx: ctx.add_validation_error("Published posts stay"),
        }
        engine = make_engine(lists)
        posts = engine.get_list_by_key("Post")
        context = engine.create_context()
        post = await posts.create_mutation({"title": "a"}, context)

        with pytest.raises(ValidationFailureError) as exc_info:
            await posts.delete_mutation(post["id"], context)

        assert exc_info.value.messages == ["Published posts stay"]
        assert exc_info.value.data["operation"] == "delete"
        assert await posts.list_query_meta({}, context) == 1

    @pytest.mark.asyncio
    async def test_delete_many(self, engine, sudo):
        posts = engine.get_list_by_key("Post")
        created = await posts.create_many_mutation([{"title": "a"}, {"title": "b"}], sudo)

        deleted = await posts.delete_many_mutation([p["id"] for p in created], sudo)

        assert sorted(p["title"] for p in deleted) == ["a", "b"]
        assert await posts.list_query({}, sudo) == []


# =============================================================================
# Batches
# =============================================================================


class TestBatches:
    @pytest.mark.asyncio
    async def test_create_many_keeps_input_order(self, engine, context):
        created = await engine.get_list_by_key("Post").create_many_mutation(
            [{"title": t} for t in "abc"], context
        )
        assert [p["title"] for p in created] == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_failing_member_does_not_cancel_siblings(self):
        after = []
        lists = blog_lists()
        lists["Post"]["hooks"] = {"after_change": after.append}
        engine = make_engine(lists)
        posts = engine.get_list_by_key("Post")
        context = engine.create_context()

        with pytest.raises(ValidationFailureError):
            await posts.create_many_mutation([{"title": "ok"}, {}], context)

        assert [p["title"] for p in await posts.list_query({}, context)] == ["ok"]
        assert after == []

    @pytest.mark.asyncio
    async def test_update_many(self, engine, sudo):
        posts = engine.get_list_by_key("Post")
        a, b = await posts.create_many_mutation([{"title": "a"}, {"title": "b"}], sudo)

        updated = await posts.update_many_mutation(
            [{"id": a["id"], "data": {"views": 1}}, {"id": b["id"], "data": {"views": 2}}], sudo
        )

        assert [u["views"] for u in updated] == [1, 2]

    @pytest.mark.asyncio
    async def test_storage_failure_surfaces(self, engine, context):
        posts = engine.get_list_by_key("Post")

        async def broken(data):
            raise StorageError("disk full")

        posts.adapter.create = broken

        with pytest.raises(StorageError, match="disk full"):
            await posts.create_mutation({"title": "a"}, context)
