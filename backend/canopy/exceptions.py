"""
Canopy Backend: Custom Exception Hierarchy
===========================================

What:  Defines application-specific exceptions for every error scenario.
How:   Each exception class carries a message, an optional context dict, a
       machine-readable `code` and the HTTP `status_code` it maps to.
       One global handler (registered in main.py) turns any CanopyError into
       a structured JSON response; the bulk coordinator turns them into
       per-target error entries.
Who:   Raised by the tree engine, services and dependencies.

Exception Hierarchy:
    CanopyError (base)                      → 500
    ├── ValidationError                     → 400
    │   ├── InvalidIdentifier / MalformedPath
    │   ├── InvalidMembership / CannotDeleteOnlyAdmin
    │   └── StructuralViolation
    │       ├── HierarchyTooDeep / TooManyChildren / TooManyDescendants
    │       ├── ItemNotFolder / InvalidMoveTarget
    │       └── CannotReorderRootItem
    ├── Unauthenticated                     → 401
    ├── PermissionDenied                    → 403
    │   ├── MemberCannotAccess
    │   ├── MemberCannotWriteItem / UserCannotWriteItem
    │   └── MemberCannotAdminItem / UserCannotAdminItem
    ├── NotFoundError                       → 404
    │   └── ItemNotFound, MemberNotFound, ItemMembershipNotFound, ...
    ├── ConflictError                       → 409
    │   └── ItemLikeAlreadyExists, ItemAlreadyPublished, ...
    └── DatabaseError                       → 500
"""

from typing import Any, Dict, Optional


class CanopyError(Exception):
    """
    Base exception for all Canopy application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (returned as `details` for 4xx only)
    """

    code = "server_error"
    status_code = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Serializable form used for per-target errors of bulk operations."""
        return {"error": self.code, "message": self.message, "details": self.context}


# ══════════════════════════════════════════════════════════════════════════
# 400: Validation and structural violations
# ══════════════════════════════════════════════════════════════════════════


class ValidationError(CanopyError):
    """
    Raised when client input fails validation.

    When:    Size limits exceeded, malformed ids, business-rule violations.
    HTTP:    400 Bad Request (FastAPI keeps 422 for schema-level failures)
    """

    code = "validation_error"
    status_code = 400

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class InvalidIdentifier(ValidationError):
    code = "invalid_identifier"

    def __init__(self, identifier: Any):
        super().__init__(
            message=f"'{identifier}' cannot be used as an item identifier",
            context={"identifier": str(identifier)},
        )


class MalformedPath(ValidationError):
    code = "malformed_path"

    def __init__(self, path: Any):
        super().__init__(
            message=f"'{path}' is not a well-formed item path",
            context={"path": str(path)},
        )


class InvalidMembership(ValidationError):
    """A grant that would break membership minimality or downgrade below inheritance."""

    code = "invalid_membership"


class CannotDeleteOnlyAdmin(ValidationError):
    code = "cannot_delete_only_admin"

    def __init__(self, membership_id: Any):
        super().__init__(
            message="Cannot delete the only admin membership of an item",
            context={"membership_id": str(membership_id)},
        )


class StructuralViolation(ValidationError):
    """
    An operation would break a tree invariant. Always rejected before any write.
    """

    code = "structural_violation"


class HierarchyTooDeep(StructuralViolation):
    code = "hierarchy_too_deep"

    def __init__(self, depth: Optional[int] = None, max_depth: Optional[int] = None):
        super().__init__(
            message="Hierarchy is too deep",
            context={"depth": depth, "max_depth": max_depth},
        )


class TooManyChildren(StructuralViolation):
    code = "too_many_children"

    def __init__(self, parent_path: Optional[str] = None, max_children: Optional[int] = None):
        super().__init__(
            message="Parent item has too many children",
            context={"parent_path": parent_path, "max_children": max_children},
        )


class TooManyDescendants(StructuralViolation):
    code = "too_many_descendants"

    def __init__(self, item_id: Any = None, maximum: Optional[int] = None):
        super().__init__(
            message="Item has too many descendants for this operation",
            context={"item_id": str(item_id) if item_id else None, "maximum": maximum},
        )


class ItemNotFolder(StructuralViolation):
    code = "item_not_folder"

    def __init__(self, item_id: Any = None):
        super().__init__(
            message="Item is not a folder",
            context={"item_id": str(item_id) if item_id else None},
        )


class InvalidMoveTarget(StructuralViolation):
    code = "invalid_move_target"

    def __init__(self, target: Any = None):
        super().__init__(
            message="Invalid destination for this item",
            context={"target": str(target) if target else None},
        )


class CannotReorderRootItem(StructuralViolation):
    code = "cannot_reorder_root_item"

    def __init__(self, item_id: Any = None):
        super().__init__(
            message="Root items cannot be reordered",
            context={"item_id": str(item_id) if item_id else None},
        )


# ══════════════════════════════════════════════════════════════════════════
# 401 / 403: Identity and permissions
# ══════════════════════════════════════════════════════════════════════════


class Unauthenticated(CanopyError):
    code = "unauthenticated"
    status_code = 401

    def __init__(self, message: str = "Authentication is required for this operation"):
        super().__init__(message=message)


class PermissionDenied(CanopyError):
    """Effective permission of the actor is below the level the operation needs."""

    code = "permission_denied"
    status_code = 403

    def __init__(self, item_id: Any = None, message: Optional[str] = None):
        super().__init__(
            message=message or self.default_message,
            context={"item_id": str(item_id) if item_id else None},
        )

    default_message = "Permission denied"


class MemberCannotAccess(PermissionDenied):
    code = "member_cannot_access"
    default_message = "Member cannot access this item"


class MemberCannotWriteItem(PermissionDenied):
    code = "member_cannot_write_item"
    default_message = "Member cannot write this item"


class UserCannotWriteItem(PermissionDenied):
    code = "user_cannot_write_item"
    default_message = "User cannot write the destination item"


class MemberCannotAdminItem(PermissionDenied):
    code = "member_cannot_admin_item"
    default_message = "Member cannot administrate this item"


class UserCannotAdminItem(PermissionDenied):
    code = "user_cannot_admin_item"
    default_message = "User cannot administrate this item"


# ══════════════════════════════════════════════════════════════════════════
# 404: Missing resources
# ══════════════════════════════════════════════════════════════════════════


class NotFoundError(CanopyError):
    """
    Raised when a requested resource does not exist.

    SQLAlchemy returns None for missing records; services convert None into
    this exception so the global handler can answer 404.
    """

    code = "not_found"
    status_code = 404
    resource = "resource"

    def __init__(
        self,
        resource_id: Optional[Any] = None,
        resource: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        resource = resource or self.resource
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = str(resource_id)
        super().__init__(message=message, context=ctx)


class ItemNotFound(NotFoundError):
    code = "item_not_found"
    resource = "item"


class MemberNotFound(NotFoundError):
    code = "member_not_found"
    resource = "member"


class ItemMembershipNotFound(NotFoundError):
    code = "item_membership_not_found"
    resource = "item membership"


class ItemLikeNotFound(NotFoundError):
    code = "item_like_not_found"
    resource = "item like"


class ItemPublishedNotFound(NotFoundError):
    code = "item_published_not_found"
    resource = "published item"


class ItemTagNotFound(NotFoundError):
    code = "item_tag_not_found"
    resource = "item tag"


class OperationNotFound(NotFoundError):
    code = "operation_not_found"
    resource = "bulk operation"


# ══════════════════════════════════════════════════════════════════════════
# 409: Conflicts with existing state
# ══════════════════════════════════════════════════════════════════════════


class ConflictError(CanopyError):
    code = "conflict"
    status_code = 409


class ItemLikeAlreadyExists(ConflictError):
    code = "item_like_already_exists"

    def __init__(self, item_id: Any):
        super().__init__(
            message="Item is already liked", context={"item_id": str(item_id)}
        )


class ItemAlreadyPublished(ConflictError):
    code = "item_already_published"

    def __init__(self, item_id: Any):
        super().__init__(
            message="Item is already published", context={"item_id": str(item_id)}
        )


class ItemTagAlreadyExists(ConflictError):
    code = "item_tag_already_exists"

    def __init__(self, item_id: Any, tag_type: str):
        super().__init__(
            message=f"Item already has the '{tag_type}' tag",
            context={"item_id": str(item_id), "type": tag_type},
        )


class MemberAlreadyExists(ConflictError):
    code = "member_already_exists"

    def __init__(self, email: str):
        super().__init__(
            message="A member with this email already exists", context={"email": email}
        )


# ══════════════════════════════════════════════════════════════════════════
# 500: Persistence failures
# ══════════════════════════════════════════════════════════════════════════


class DatabaseError(CanopyError):
    """
    Raised when database operations fail unexpectedly.

    The message returned to the client is always generic; the original
    exception type is kept in `context` and logged server-side only.
    """

    code = "server_error"
    status_code = 500

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
