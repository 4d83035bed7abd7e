"""
Tool registry: catalog of operation descriptors and the gate in front of them.

A descriptor is only accepted when it carries a description, a JSON Schema
for its input, a version, a category and at least one documentation
reference of the form scheme://host/segment/segment. invoke() checks the
call parameters against the input schema before the handler runs.

The registry is process-local: populated at startup, read-only after.

Usage:
    registry = ToolRegistry()
    registry.register("epic_status", ToolDescriptor(...))
    result = registry.invoke("epic_status", {"epic_name": "checkout-flow"})
"""

import json
import logging
import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Optional, Protocol

import jsonschema

from planstore.lib.errors import DuplicateRegistration, InvalidDescriptor, NotFound
from planstore.lib.validate import validate_instance

logger = logging.getLogger(__name__)

DOC_REF_RE = re.compile(r'^(?P<scheme>[a-z][a-z0-9+.-]*)://(?P<host>[^/\s]+)(?P<path>(?:/[^/\s]+)*)/?$')
MIN_DOC_REF_SEGMENTS = 2


class ToolCategory(str, Enum):
    AGENT = "agent"
    PM = "project-management"
    DEVOPS = "devops"
    LANGUAGE = "language"
    FRAMEWORK = "framework"
    SECURITY = "security"
    PERFORMANCE = "performance"
    DOCUMENTATION = "documentation"


@dataclass
class ToolExample:
    description: str
    input: dict[str, Any]
    expected_output: str


@dataclass
class ToolDescriptor:
    """Metadata for one registered operation."""
    name: str
    category: ToolCategory
    description: str
    input_schema: dict                         # JSON Schema (draft-07)
    doc_refs: list[str]                        # e.g. mcp://context7/agile/epic-management
    examples: list[ToolExample] = field(default_factory=list)
    version: str = ""
    deprecated: bool = False
    replaced_by: Optional[str] = None
    handler: Optional[Callable[[dict], Any]] = None


@dataclass
class RegistryStats:
    total_tools: int
    by_category: dict[str, int]
    deprecated: int


class DocResolver(Protocol):
    """Fetches the content behind a documentation reference."""

    def resolve(self, ref: str) -> str:
        ...


def parse_doc_ref(ref: str) -> Optional[tuple[str, str, list[str]]]:
    """Split a reference into (scheme, host, path segments), or None if malformed."""
    match = DOC_REF_RE.match(ref or "")
    if not match:
        return None
    segments = [s for s in match.group("path").split("/") if s]
    return match.group("scheme"), match.group("host"), segments


class ToolRegistry:
    """Central catalog of tool descriptors."""

    def __init__(self, doc_ref_scheme: str = "mcp", resolver: Optional[DocResolver] = None):
        self.doc_ref_scheme = doc_ref_scheme
        self.resolver = resolver
        self._tools: dict[str, ToolDescriptor] = {}

    def __len__(self) -> int:
        return len(self._tools)

    # ─────────────────────────────────────────────────────────────────────
    # Registration
    # ─────────────────────────────────────────────────────────────────────

    def register(self, name: str, descriptor: ToolDescriptor) -> None:
        """Add a descriptor.

        Raises:
            DuplicateRegistration: If name is already registered
            InvalidDescriptor: Naming the missing or malformed field
        """
        if name in self._tools:
            raise DuplicateRegistration(name)

        descriptor = self._validate(name, descriptor)
        self._tools[name] = descriptor
        logger.info(f"Registered tool: {name} [{descriptor.category.value}]")

    def update(self, name: str, **changes) -> ToolDescriptor:
        """Replace fields of a registered descriptor, re-validating the result."""
        existing = self._require(name)
        updated = self._validate(name, replace(existing, **changes))
        self._tools[name] = updated
        logger.info(f"Updated tool: {name}")
        return updated

    def deprecate(self, name: str, replacement: Optional[str] = None) -> None:
        """Mark a tool deprecated without removing it."""
        tool = self._require(name)
        tool.deprecated = True
        if replacement:
            tool.replaced_by = replacement
        logger.warning(
            f"Tool {name} marked as deprecated" + (f", use {replacement} instead" if replacement else "")
        )

    def remove(self, name: str) -> None:
        self._require(name)
        del self._tools[name]
        logger.info(f"Removed tool: {name}")

    def clear(self) -> None:
        self._tools.clear()
        logger.info("Registry cleared")

    def _validate(self, name: str, d: ToolDescriptor) -> ToolDescriptor:
        if not name or not name.strip():
            raise InvalidDescriptor(name, "name")
        if not d.description or not d.description.strip():
            raise InvalidDescriptor(name, "description")

        if not d.input_schema:
            raise InvalidDescriptor(name, "input_schema")
        try:
            jsonschema.Draft7Validator.check_schema(d.input_schema)
        except jsonschema.SchemaError as e:
            raise InvalidDescriptor(name, "input_schema", f"input schema is not valid JSON Schema: {e.message}") from None

        if not d.version:
            raise InvalidDescriptor(name, "version")

        if not d.category:
            raise InvalidDescriptor(name, "category")
        try:
            category = ToolCategory(d.category)
        except ValueError:
            raise InvalidDescriptor(name, "category", f"unknown category '{d.category}'") from None

        if not d.doc_refs:
            raise InvalidDescriptor(name, "doc_refs", "at least one documentation reference is required")
        for ref in d.doc_refs:
            self._check_doc_ref(name, ref)

        return replace(d, name=name, category=category)

    def _check_doc_ref(self, name: str, ref: str) -> None:
        parsed = parse_doc_ref(ref)
        if parsed is None:
            raise InvalidDescriptor(
                name, "doc_refs",
                f"invalid documentation reference '{ref}', expected {self.doc_ref_scheme}://<host>/<library>/<topic>",
            )
        scheme, host, segments = parsed
        if scheme != self.doc_ref_scheme:
            raise InvalidDescriptor(
                name, "doc_refs", f"documentation reference '{ref}' must use the {self.doc_ref_scheme}:// scheme",
            )
        if len(segments) < MIN_DOC_REF_SEGMENTS:
            logger.warning(
                f"Tool {name}: reference {ref} should have format {scheme}://{host}/<library>/<topic>"
            )

    # ─────────────────────────────────────────────────────────────────────
    # Lookup
    # ─────────────────────────────────────────────────────────────────────

    def _require(self, name: str) -> ToolDescriptor:
        tool = self._tools.get(name)
        if tool is None:
            raise NotFound("tool", name, "Register the tool first")
        return tool

    def get(self, name: str) -> Optional[ToolDescriptor]:
        """Direct lookup. Deprecated tools are still returned."""
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    def all(self) -> list[ToolDescriptor]:
        return list(self._tools.values())

    def by_category(self, category: ToolCategory, include_deprecated: bool = False) -> list[ToolDescriptor]:
        category = ToolCategory(category)
        return [
            t for t in self._tools.values()
            if t.category == category and (include_deprecated or not t.deprecated)
        ]

    def stats(self) -> RegistryStats:
        by_category: dict[str, int] = {}
        for tool in self._tools.values():
            by_category[tool.category.value] = by_category.get(tool.category.value, 0) + 1
        return RegistryStats(
            total_tools=len(self._tools),
            by_category=by_category,
            deprecated=sum(1 for t in self._tools.values() if t.deprecated),
        )

    # ─────────────────────────────────────────────────────────────────────
    # Invocation
    # ─────────────────────────────────────────────────────────────────────

    def check_params(self, name: str, params: dict) -> None:
        """Validate params against the tool's input schema.

        Raises:
            SchemaViolation: Naming the first offending parameter
        """
        tool = self._require(name)
        validate_instance(params, tool.input_schema, "tool", name)

    def resolve_docs(self, name: str) -> dict[str, str]:
        """Ask the resolver for each reference. Failures become warnings."""
        tool = self._require(name)
        docs = {}
        if self.resolver is None:
            return docs
        for ref in tool.doc_refs:
            try:
                docs[ref] = self.resolver.resolve(ref)
            except Exception as e:
                logger.warning(f"Tool {name}: could not resolve {ref}: {e}")
        return docs

    def invoke(self, name: str, params: Optional[dict] = None) -> Any:
        """Gate and run a tool: schema check, doc resolution, then the handler.

        Raises:
            NotFound: If the tool isn't registered
            SchemaViolation: If params don't match the input schema
            InvalidDescriptor: If the tool has no handler
        """
        params = dict(params or {})
        tool = self._require(name)

        if tool.deprecated:
            logger.warning(
                f"Tool {name} is deprecated" + (f", use {tool.replaced_by} instead" if tool.replaced_by else "")
            )

        self.check_params(name, params)
        self.resolve_docs(name)

        if tool.handler is None:
            raise InvalidDescriptor(name, "handler", "tool has no handler to invoke")

        logger.debug(f"[TOOL] {name} {json.dumps(params, default=str)}")
        return tool.handler(params)

    # ─────────────────────────────────────────────────────────────────────
    # Documentation
    # ─────────────────────────────────────────────────────────────────────

    def generate_docs(self) -> str:
        """Markdown catalog grouped by category, tools sorted by name within each."""
        grouped: dict[ToolCategory, list[ToolDescriptor]] = {}
        for tool in self._tools.values():
            grouped.setdefault(tool.category, []).append(tool)

        lines = ["# Available Tools", ""]
        for category in ToolCategory:
            tools = grouped.get(category)
            if not tools:
                continue
            lines += [f"## {category.value}", ""]

            for tool in sorted(tools, key=lambda t: t.name):
                lines.append(f"### {tool.name}")
                if tool.deprecated:
                    note = "**⚠️ DEPRECATED**"
                    if tool.replaced_by:
                        note += f": Use `{tool.replaced_by}` instead"
                    lines += [note, ""]

                lines += [tool.description, "", f"**Version:** {tool.version}", ""]

                lines.append("**Documentation References:**")
                lines += [f"- `{ref}`" for ref in tool.doc_refs]
                lines.append("")

                if tool.examples:
                    lines += ["**Examples:**", ""]
                    for i, example in enumerate(tool.examples, 1):
                        lines.append(f"{i}. {example.description}")
                        lines.append("   ```json")
                        lines += [f"   {ln}" for ln in json.dumps(example.input, indent=2).splitlines()]
                        lines.append("   ```")
                        lines += [f"   Expected: {example.expected_output}", ""]

                lines += ["---", ""]

        return "\n".join(lines)
