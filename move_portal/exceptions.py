from __future__ import annotations


class MoveWorkflowError(Exception):
    """Base class for rejected move-request commands.

    Every subclass is raised before anything is written, so the caller can
    fix the input and retry.
    """


class PreconditionFailed(MoveWorkflowError):
    """The request is not in a status that allows the command."""


class ValidationFailed(MoveWorkflowError, ValueError):
    """The command's input is incomplete or out of range."""


class NotFound(MoveWorkflowError, LookupError):
    """No move request (or receipt) with the given identifier."""


class RoleNotPermitted(PreconditionFailed, PermissionError):
    """The acting principal's role may not issue the command."""
