"""
Exceptions raised by the role registry.

Every error carries the role name and the offending field so the admin UI can
render an actionable message without another lookup. Validation errors are
always raised before anything is persisted; PersistenceError is the only error
that can occur after validation passes.
"""


class RoleError(Exception):
    """Base exception for role registry operations."""

    def __init__(self, message: str, role_name: str = "", field: str = "") -> None:
        self.role_name = role_name
        self.field = field
        super().__init__(message)


class RoleNotFoundError(RoleError):
    """Raised when an operation references a role name that does not exist."""

    def __init__(self, role_name: str, field: str = "name") -> None:
        super().__init__(f"Role not found: {role_name}", role_name, field)


class DuplicateRoleError(RoleError):
    """Raised when creating a role whose name is already taken."""

    def __init__(self, role_name: str) -> None:
        super().__init__(f"Role '{role_name}' already exists", role_name, "name")


class CircularInheritanceError(RoleError):
    """Raised when a parentRole chain revisits a role name."""

    def __init__(self, role_name: str, chain: list[str]) -> None:
        self.chain = tuple(chain)
        super().__init__(
            f"Circular inheritance for role '{role_name}': {' -> '.join(chain)}",
            role_name,
            "parentRole",
        )


class DanglingParentError(RoleError):
    """Raised when a parentRole references a role that does not exist."""

    def __init__(self, role_name: str, parent_role: str, message: str = "") -> None:
        self.parent_role = parent_role
        super().__init__(
            message or f"Role '{role_name}' references missing parent role '{parent_role}'",
            role_name,
            "parentRole",
        )


class SystemRoleProtectedError(RoleError):
    """Raised when renaming or deleting a built-in system role."""

    def __init__(self, role_name: str, operation: str) -> None:
        self.operation = operation
        super().__init__(f"Cannot {operation} system role '{role_name}'", role_name, "name")


class InvalidRoleError(RoleError):
    """Raised when a submitted role definition is malformed."""


class InvalidPermissionError(InvalidRoleError):
    """Raised when a portal, resource, action or scope is outside its domain."""

    def __init__(self, role_name: str, field: str, value: object) -> None:
        self.value = value
        super().__init__(f"Invalid {field} value {value!r} for role '{role_name}'", role_name, field)


class PersistenceError(RoleError):
    """Raised when the persistence backend fails to read or write."""

    def __init__(self, message: str, role_name: str = "", operation: str = "") -> None:
        self.operation = operation
        super().__init__(message, role_name, "")
