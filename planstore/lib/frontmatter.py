"""
YAML frontmatter codec for PRD, epic and task markdown files.

File layout:

    ---
    name: checkout-flow
    status: open
    ---

    Free-form markdown body...

decode() never fails on a missing header; it returns an empty dict and the
whole text as body. encode() is the left inverse of decode() for headers
whose values are strings, numbers, booleans or lists of strings.
"""

import re
from datetime import datetime, timezone

import yaml

from planstore.lib import validate as schema
from planstore.lib.errors import SchemaViolation

FENCE = "---"

_HEADER_RE = re.compile(r'\A---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)', re.DOTALL | re.MULTILINE)


class _HeaderLoader(yaml.SafeLoader):
    """SafeLoader that keeps ISO timestamps as plain strings."""


_HeaderLoader.yaml_implicit_resolvers = {
    first: [r for r in resolvers if r[0] != "tag:yaml.org,2002:timestamp"]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def now_iso() -> str:
    """Current UTC time as ISO 8601 with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def decode(raw: str, kind: str = "header", ident: str = "") -> tuple[dict, str]:
    """Split raw text into (header, body).

    Returns ({}, raw) when there is no header fence.

    Raises:
        SchemaViolation: If the fenced block is not a YAML mapping
    """
    match = _HEADER_RE.match(raw)
    if not match:
        return {}, raw

    try:
        header = yaml.load(match.group(1), Loader=_HeaderLoader)
    except yaml.YAMLError as e:
        raise SchemaViolation(kind, ident, "(header)", f"malformed YAML: {e}") from None

    if header is None:
        header = {}
    if not isinstance(header, dict):
        raise SchemaViolation(kind, ident, "(header)", "header must be a key: value mapping")

    body = raw[match.end():]
    # One blank line separates header and body
    if body.startswith("\r\n"):
        body = body[2:]
    elif body.startswith("\n"):
        body = body[1:]
    return header, body


def encode(header: dict, body: str) -> str:
    """Serialize header and body back to markdown."""
    if not header:
        # A body that itself starts with a fence needs an explicit empty header
        if _HEADER_RE.match(body):
            return f"{FENCE}\n{FENCE}\n\n{body}"
        return body

    dumped = yaml.safe_dump(
        header,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )
    return f"{FENCE}\n{dumped}{FENCE}\n\n{body}"


def has_header(raw: str) -> bool:
    """Check if markdown carries a non-empty header."""
    header, _ = decode(raw)
    return bool(header)


def validate_and_decode(raw: str, kind: str, ident: str = "") -> tuple[dict, str]:
    """Decode and validate the header against the schema for kind.

    Raises:
        SchemaViolation: Naming the first offending field
    """
    header, body = decode(raw, kind, ident)
    schema.validate(header, kind, ident)
    # Fixed-width UTC timestamps order the same as strings
    created, updated = header.get("created"), header.get("updated")
    if created is not None and updated is not None and updated < created:
        raise SchemaViolation(kind, ident, "updated", f"'{updated}' is earlier than created '{created}'")
    return header, body


def update(raw: str, patch: dict, kind: str, ident: str = "") -> str:
    """Merge patch over the current header and re-encode.

    The patch wins over existing values and a None value removes the key.
    `updated` is refreshed, the merged header is re-validated and the body
    is preserved verbatim.
    """
    header, body = validate_and_decode(raw, kind, ident)
    merged = {**header, **patch, "updated": now_iso()}
    merged = {k: v for k, v in merged.items() if v is not None}
    schema.validate(merged, kind, ident)
    return encode(merged, body)
