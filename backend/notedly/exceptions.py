"""
Notedly Backend — Custom Exception Hierarchy
==============================================

What:  Application-specific exceptions for every failure the core can report.
How:   Each exception carries a message and an optional context dict.
       Global exception handlers (registered in main.py) translate them into
       structured JSON error responses with the right HTTP status code.
Who:   Raised by services; caught by global handlers or in-process callers.

Exception Hierarchy:
    NotedlyError (base)
    ├── ValidationError               → 400 Bad Request (empty title, bad tier)
    ├── AuthenticationError           → 401 Unauthorized (no/unknown bearer token)
    ├── AccessDeniedError             → 403 Forbidden, or 404 when concealed
    │   └── NotOwnerError             → owner-only operation by a non-owner
    ├── NotFoundError                 → 404 Not Found
    ├── IdentityConflictError         → 409 Conflict (provider id ↔ email mismatch)
    ├── IdentifierConflictError       → 409 Conflict (content-derived id collision)
    ├── ConcurrentModificationError   → 409 Conflict, retryable
    ├── StorageUnavailableError       → 503 Service Unavailable, retryable
    └── DatabaseError                 → 500 Internal Server Error

Errors are raised, never returned: a create either yields the new entity or
raises IdentifierConflictError, there is no implicit upsert.
"""

from typing import Any, Dict, Optional


class NotedlyError(Exception):
    """
    Base exception for all Notedly application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(NotedlyError):
    """
    Raised when caller input fails a business rule.

    When:    Empty or blank title, malformed visibility tier, unknown identity
             provider, granting to the board owner.
    HTTP:    400 Bad Request
    """

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


class AuthenticationError(NotedlyError):
    """
    Raised when a request carries no bearer token, or one that matches no user.

    HTTP:    401 Unauthorized
    """

    def __init__(
        self,
        message: str = "A valid bearer token is required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


def _not_found_message(resource: str, resource_id: Optional[str]) -> str:
    if resource_id:
        return f"{resource} with ID '{resource_id}' was not found"
    return f"The requested {resource} was not found"


class NotFoundError(NotedlyError):
    """
    Raised when a referenced board, note or user identifier does not resolve.

    HTTP:    404 Not Found
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=_not_found_message(resource, resource_id), context=ctx)
        self.resource = resource
        self.resource_id = resource_id


class AccessDeniedError(NotedlyError):
    """
    Raised when the Access Evaluator denies (user, board, action).

    What:    Authorization failure. Always recoverable, never retried.
    HTTP:    403 Forbidden when the caller can read the board;
             404 Not Found, with the exact not-found body, when it cannot.

    A concealed denial must be indistinguishable from a missing resource,
    otherwise private board identifiers could be enumerated. The `conceal`
    flag tells the handler to render it through the not-found shape using
    `resource` and `resource_id`.
    """

    def __init__(
        self,
        resource: str = "board",
        resource_id: Optional[str] = None,
        action: Optional[str] = None,
        conceal: bool = False,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        if action:
            ctx["action"] = action
        if conceal:
            message = _not_found_message(resource, resource_id)
        elif message is None:
            message = f"You do not have permission to {action or 'access'} this {resource}"
        super().__init__(message=message, context=ctx)
        self.resource = resource
        self.resource_id = resource_id
        self.action = action
        self.conceal = conceal


class NotOwnerError(AccessDeniedError):
    """Raised when an owner-only operation (grant, revoke, update, delete) is attempted by anyone else."""

    def __init__(
        self,
        resource: str = "board",
        resource_id: Optional[str] = None,
        conceal: bool = False,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            resource=resource,
            resource_id=resource_id,
            action="administer",
            conceal=conceal,
            message=f"Only the owner of this {resource} may perform this operation",
            context=context,
        )


class IdentityConflictError(NotedlyError):
    """
    Raised when an identity assertion disagrees with what is on record.

    When:    The provider id is recorded with a different email (possible
             account takeover or provider-side email change), or the email
             already belongs to another provider identity.
    HTTP:    409 Conflict

    The caller decides: reject the login, or call resolve() again with
    accept_email_change=True.
    """

    def __init__(
        self,
        message: str = "This identity is already bound to a different email address",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class IdentifierConflictError(NotedlyError):
    """
    Raised when a content-derived identifier already exists.

    When:    The same owner creates a second board with the same title, or the
             same author a second note with the same title on one board.
    HTTP:    409 Conflict
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(
            message=f"A {resource} with this title already exists",
            context=ctx,
        )
        self.resource = resource
        self.resource_id = resource_id


class ConcurrentModificationError(NotedlyError):
    """
    Raised when the transaction lost a race with a concurrent writer.

    When:    PostgreSQL serialization failure or deadlock, or a unique-key race
             (two first logins for one identity, two grants for one user).
    HTTP:    409 Conflict with Retry-After. Nothing was written.
    """

    def __init__(
        self,
        message: str = "The resource was modified concurrently. Please retry.",
        retry_after: int = 1,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class StorageUnavailableError(NotedlyError):
    """
    Raised when the underlying data store cannot be reached.

    HTTP:    503 Service Unavailable with Retry-After.
    Retry:   By the caller, with backoff. Never swallowed.
    """

    def __init__(
        self,
        message: str = "The data store is temporarily unavailable. Please try again later.",
        retry_after: int = 5,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class DatabaseError(NotedlyError):
    """
    Raised when a database operation fails for any other reason.

    HTTP:    500 Internal Server Error. The message returned to the client is
             generic; SQL and constraint names are logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
