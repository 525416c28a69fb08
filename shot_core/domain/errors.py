"""Typed errors raised by the encounter engine.

Everything derives from ``ValueError`` so callers that only know about
``ValueError`` still see engine failures. The three branches map onto the
HTTP surface as 422 (validation), 409 (conflict) and 404 (not found).
"""

from __future__ import annotations


class EngineError(ValueError):
    """Base class for every error the engine raises on purpose."""


class ValidationError(EngineError):
    """The command is malformed; nothing was written."""


class SelfReferenceError(ValidationError):
    def __init__(self, message: str = "pursuer and evader cannot be the same shot") -> None:
        super().__init__(message)


class InvalidPositionError(ValidationError):
    def __init__(self, position: object) -> None:
        super().__init__(f"Invalid chase position {position!r}, expected 'near' or 'far'")
        self.position = position


class ScopeError(ValidationError):
    """A location (or edge) is not attached to exactly one fight or site."""


class ConflictError(EngineError):
    """The row the command would create already exists."""


class DuplicateActiveRelationshipError(ConflictError):
    def __init__(self, pursuer_id: str, evader_id: str) -> None:
        super().__init__(
            f"An active chase already exists for pursuer {pursuer_id} and evader {evader_id}"
        )
        self.pursuer_id = pursuer_id
        self.evader_id = evader_id


class DuplicateNameError(ConflictError):
    def __init__(self, name: str) -> None:
        super().__init__(f"A location named {name!r} already exists here")
        self.name = name


class NotFoundError(EngineError):
    def __init__(self, kind: str, ident: str | None) -> None:
        super().__init__(f"{kind} not found: {ident}")
        self.kind = kind
        self.ident = ident
