"""
Schema validation for planstore headers.

Enforces JSON Schema validation at the store boundary.
Fails hard with a SchemaViolation naming the offending field.
"""

import json
from pathlib import Path

import jsonschema

from planstore.lib.errors import SchemaViolation


# Cache loaded schemas
_schema_cache: dict[str, dict] = {}


def _get_schemas_dir() -> Path:
    """Get path to schemas directory."""
    return Path(__file__).parent.parent / "schemas"


def load_schema(kind: str) -> dict:
    """Load schema by entity kind, with caching."""
    if kind not in _schema_cache:
        schema_path = _get_schemas_dir() / f"{kind}.schema.json"
        if not schema_path.exists():
            raise FileNotFoundError(f"Schema file not found: {schema_path}")
        _schema_cache[kind] = json.loads(schema_path.read_text())
    return _schema_cache[kind]


def _field_of(error: jsonschema.ValidationError) -> str:
    """Name the header field a jsonschema error is about."""
    if error.absolute_path:
        return ".".join(str(p) for p in error.absolute_path)
    # Missing required / unexpected keys are reported at the root
    if error.validator == "required":
        return error.message.split("'")[1]
    if error.validator == "additionalProperties":
        unexpected = [p for p in error.instance if p not in error.schema.get("properties", {})]
        if unexpected:
            return unexpected[0]
    return "(root)"


def validate(header: dict, kind: str, ident: str = "") -> None:
    """
    Validate a header against the schema for its entity kind.

    Args:
        header: Decoded header dict
        kind: Entity kind ("prd", "epic", "task")
        ident: Entity identifier, for error messages

    Raises:
        SchemaViolation: If validation fails
    """
    validate_instance(header, load_schema(kind), kind, ident)


def validate_instance(instance: dict, schema: dict, kind: str, ident: str = "") -> None:
    """Validate any dict against a draft-07 schema, raising on the first error."""
    validator = jsonschema.Draft7Validator(schema)
    errors = sorted(validator.iter_errors(instance), key=lambda e: list(e.absolute_path))
    if errors:
        first = errors[0]
        raise SchemaViolation(kind, ident, _field_of(first), first.message)


def validate_before_write(header: dict, kind: str, filepath: Path, ident: str = "") -> None:
    """
    Validate a header before writing it. Ensures we never write invalid data.

    Raises:
        SchemaViolation: If header doesn't match schema
    """
    try:
        validate(header, kind, ident)
    except SchemaViolation as e:
        raise SchemaViolation(
            kind, ident, e.field,
            f"{e.detail} (refusing to write {filepath})",
        ) from None
