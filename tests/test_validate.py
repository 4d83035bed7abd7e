"""Tests for planstore.lib.validate module."""

from pathlib import Path

import pytest

from planstore.lib.errors import SchemaViolation
from planstore.lib.validate import load_schema, validate, validate_before_write, validate_instance


def _epic(**overrides):
    header = {
        "name": "checkout-flow",
        "status": "open",
        "created": "2025-01-01T00:00:00.000Z",
        "updated": "2025-01-01T00:00:00.000Z",
        "progress": 0,
    }
    header.update(overrides)
    return header


class TestSchemas:
    """Each kind ships a draft-07 schema."""

    @pytest.mark.parametrize("kind", ["prd", "epic", "task"])
    def test_schema_loads(self, kind):
        schema = load_schema(kind)
        assert schema["type"] == "object"
        assert "name" in schema["required"]

    def test_unknown_kind(self):
        with pytest.raises(FileNotFoundError):
            load_schema("story")


class TestValidate:
    def test_valid_epic(self):
        validate(_epic(), "epic", "checkout-flow")

    def test_progress_out_of_range(self):
        with pytest.raises(SchemaViolation) as exc:
            validate(_epic(progress=101), "epic", "checkout-flow")
        assert exc.value.field == "progress"

    def test_progress_must_be_integer(self):
        with pytest.raises(SchemaViolation) as exc:
            validate(_epic(progress="50"), "epic")
        assert exc.value.field == "progress"

    def test_task_dependency_format(self):
        header = {"name": "x", "status": "open", "created": "t", "updated": "t", "depends_on": ["1"]}
        with pytest.raises(SchemaViolation) as exc:
            validate(header, "task", "checkout-flow/002")
        assert exc.value.field == "depends_on.0"

    def test_prd_status_enum(self):
        header = {"name": "x", "status": "open", "created": "t", "updated": "t"}
        with pytest.raises(SchemaViolation):
            validate(header, "prd")

    def test_message_has_kind_id_and_remedy(self):
        with pytest.raises(SchemaViolation) as exc:
            validate(_epic(status="done"), "epic", "checkout-flow")
        message = str(exc.value)
        assert "[epic checkout-flow]" in message
        assert "status" in message
        assert exc.value.remedy


class TestValidateBeforeWrite:
    def test_mentions_path(self):
        with pytest.raises(SchemaViolation) as exc:
            validate_before_write(_epic(status="done"), "epic", Path("/tmp/epic.md"), "checkout-flow")
        assert "refusing to write /tmp/epic.md" in str(exc.value)
        assert exc.value.field == "status"

    def test_passes_valid_header(self):
        validate_before_write(_epic(), "epic", Path("/tmp/epic.md"))


class TestValidateInstance:
    def test_custom_schema(self):
        schema = {"type": "object", "properties": {"epic_name": {"type": "string"}}, "required": ["epic_name"]}
        validate_instance({"epic_name": "x"}, schema, "tool", "epic_status")
        with pytest.raises(SchemaViolation) as exc:
            validate_instance({}, schema, "tool", "epic_status")
        assert exc.value.field == "epic_name"
