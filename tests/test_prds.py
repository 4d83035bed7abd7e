"""Tests for planstore.pm.prds module."""

import pytest

from planstore.lib import frontmatter
from planstore.lib.errors import AlreadyExists, InvalidIdentifier, NotFound, SchemaViolation
from planstore.pm import (
    create_prd,
    delete_prd,
    init_project,
    list_prds,
    load_prd,
    set_prd_status,
    update_prd,
)


class TestInitProject:
    def test_idempotent(self, ctx):
        init_project(ctx)
        init_project(ctx)
        assert ctx.store.is_initialized()
        assert [e.operation for e in ctx.bank.entries()] == ["pm_init", "pm_init"]


class TestCreatePrd:
    """Tests for create_prd()."""

    def test_creates_draft(self, ctx):
        prd = create_prd(ctx, "Checkout Flow", body="## Goals\n", author="jo")
        assert prd.id == "checkout-flow"
        assert prd.name == "Checkout Flow"
        assert prd.status == "draft"
        assert prd.created == prd.updated

        raw = ctx.store.read("prd", "checkout-flow")
        header, body = frontmatter.decode(raw)
        assert header["author"] == "jo"
        assert "version" not in header
        assert body == "## Goals\n"

    def test_records_one_entry(self, ctx):
        create_prd(ctx, "Checkout Flow")
        entries = ctx.bank.entries()
        assert len(entries) == 1
        assert entries[0].operation == "prd_new"
        assert entries[0].details == "Created PRD checkout-flow"

    def test_duplicate(self, ctx):
        create_prd(ctx, "Checkout Flow")
        with pytest.raises(AlreadyExists):
            create_prd(ctx, "checkout flow")
        assert [e.success for e in ctx.bank.entries()] == [True, False]

    @pytest.mark.parametrize("name", ["!!", "ab", "x" * 51])
    def test_invalid_name(self, ctx, name):
        with pytest.raises(InvalidIdentifier):
            create_prd(ctx, name)
        assert ctx.store.list_ids("prd") == []


class TestReadPrds:
    def test_load_missing(self, ctx):
        with pytest.raises(NotFound):
            load_prd(ctx, "nope")

    def test_list_and_filter(self, ctx):
        create_prd(ctx, "Checkout Flow")
        create_prd(ctx, "Account Settings")
        set_prd_status(ctx, "account-settings", "approved")

        assert [p.id for p in list_prds(ctx)] == ["account-settings", "checkout-flow"]
        assert [p.id for p in list_prds(ctx, status="approved")] == ["account-settings"]

    def test_list_skips_invalid_files(self, ctx, caplog):
        create_prd(ctx, "Checkout Flow")
        (ctx.store.prds_dir / "broken.md").write_text("---\nname: broken\n---\n\nno status\n")

        assert [p.id for p in list_prds(ctx)] == ["checkout-flow"]
        assert "Skipping PRD broken" in caplog.text


class TestUpdatePrd:
    """Tests for update_prd() and set_prd_status()."""

    def test_patch_fields_and_body(self, ctx):
        create_prd(ctx, "Checkout Flow", body="old", author="jo")
        prd = update_prd(ctx, "checkout-flow", updates={"version": "2", "author": None}, body="new")

        assert prd.version == "2"
        assert prd.author is None
        assert prd.body == "new"

    def test_managed_fields_rejected(self, ctx):
        create_prd(ctx, "Checkout Flow")
        before = ctx.store.read("prd", "checkout-flow")
        with pytest.raises(SchemaViolation) as exc:
            update_prd(ctx, "checkout-flow", updates={"created": "yesterday"})
        assert exc.value.field == "created"
        assert ctx.store.read("prd", "checkout-flow") == before

    def test_invalid_status(self, ctx):
        create_prd(ctx, "Checkout Flow")
        before = ctx.store.read("prd", "checkout-flow")
        with pytest.raises(SchemaViolation):
            set_prd_status(ctx, "checkout-flow", "shipped")
        assert ctx.store.read("prd", "checkout-flow") == before

    def test_status_change_is_one_edit_entry(self, ctx):
        create_prd(ctx, "Checkout Flow")
        set_prd_status(ctx, "checkout-flow", "review")
        assert load_prd(ctx, "checkout-flow").status == "review"
        assert [e.operation for e in ctx.bank.entries()] == ["prd_new", "prd_edit"]


class TestDeletePrd:
    def test_delete(self, ctx):
        create_prd(ctx, "Checkout Flow")
        assert delete_prd(ctx, "checkout-flow") == "checkout-flow"
        assert list_prds(ctx) == []

    def test_delete_missing(self, ctx):
        with pytest.raises(NotFound):
            delete_prd(ctx, "checkout-flow")
        entry = ctx.bank.entries()[-1]
        assert entry.operation == "prd_delete"
        assert not entry.success
