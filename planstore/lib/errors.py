"""
Error taxonomy for planstore.

Every error carries the entity kind, the identifier it concerns, and a
concrete remedy, so messages can be shown to a caller as-is.
"""


class PMError(Exception):
    """Base class for all planstore errors."""

    def __init__(self, kind: str, ident: str, message: str, remedy: str = ""):
        self.kind = kind
        self.ident = ident
        self.remedy = remedy
        text = f"[{kind} {ident}] {message}" if ident else f"[{kind}] {message}"
        if remedy:
            text += f". {remedy}"
        super().__init__(text)


class NotFound(PMError):
    """Entity does not exist in the store."""

    def __init__(self, kind: str, ident: str, remedy: str = ""):
        super().__init__(
            kind, ident, "not found",
            remedy or f"Check the identifier or create the {kind} first",
        )


class AlreadyExists(PMError):
    """Creation targeted an identifier already in use."""

    def __init__(self, kind: str, ident: str, remedy: str = ""):
        super().__init__(
            kind, ident, "already exists",
            remedy or f"Choose a different name or edit the existing {kind}",
        )


class SchemaViolation(PMError):
    """Header failed validation against the per-kind schema."""

    def __init__(self, kind: str, ident: str, field: str, message: str):
        self.field = field
        self.detail = message
        super().__init__(
            kind, ident, f"invalid field '{field}': {message}",
            f"Fix '{field}' in the header and retry",
        )


class InvalidIdentifier(PMError):
    """Identifier failed slug or task-number validation."""

    def __init__(self, kind: str, ident: str, reason: str):
        self.reason = reason
        super().__init__(
            kind, ident, f"invalid identifier: {reason}",
            "Use 3-50 lowercase letters, digits and single hyphens (e.g. user-auth)",
        )


class CircularDependency(PMError):
    """Accepting a dependency set would create a cycle."""

    def __init__(self, epic_id: str, task_id: str, cycle: list[str]):
        self.epic_id = epic_id
        self.task_id = task_id
        self.cycle = cycle
        super().__init__(
            "task", f"{epic_id}/{task_id}",
            f"circular dependency: {' -> '.join(cycle)}",
            "Remove one of the edges in the cycle from depends_on",
        )


class ConflictOverlap(PMError):
    """A task lists the same id in depends_on and conflicts_with."""

    def __init__(self, epic_id: str, task_id: str, overlap: str):
        self.epic_id = epic_id
        self.task_id = task_id
        self.overlap = overlap
        super().__init__(
            "task", f"{epic_id}/{task_id}",
            f"task {overlap} cannot be both a dependency and a conflict",
            f"Remove {overlap} from either depends_on or conflicts_with",
        )


class InvalidTransition(PMError):
    """Requested status change is not allowed from the current status."""

    def __init__(self, kind: str, ident: str, from_state: str, to_state: str, reason: str = ""):
        self.from_state = from_state
        self.to_state = to_state
        message = f"cannot move from '{from_state}' to '{to_state}'"
        if reason:
            message += f" ({reason})"
        super().__init__(kind, ident, message, f"Check the {kind} status before retrying")


class ClosureNotAllowed(PMError):
    """Epic is not eligible for closure yet."""

    def __init__(self, epic_id: str, remaining: list[str]):
        self.remaining = remaining
        detail = ", ".join(remaining) if remaining else "no tasks"
        super().__init__(
            "epic", epic_id, f"not eligible for closure (open work: {detail})",
            "Complete every task before closing the epic",
        )


class DuplicateRegistration(PMError):
    """Tool name is already registered."""

    def __init__(self, name: str):
        super().__init__(
            "tool", name, "already registered",
            "Use update() to change an existing descriptor or pick a new name",
        )


class InvalidDescriptor(PMError):
    """Tool descriptor is missing a required field or has a malformed one."""

    def __init__(self, name: str, field: str, message: str = ""):
        self.field = field
        super().__init__(
            "tool", name, message or f"descriptor field '{field}' is required",
            f"Provide a valid '{field}' in the descriptor",
        )


class HasDependents(PMError):
    """Deleting a task would leave other tasks depending on a missing id."""

    def __init__(self, epic_id: str, task_id: str, dependents: list[str]):
        self.dependents = dependents
        super().__init__(
            "task", f"{epic_id}/{task_id}",
            f"required by {', '.join(dependents)}",
            f"Remove {task_id} from their depends_on first",
        )
