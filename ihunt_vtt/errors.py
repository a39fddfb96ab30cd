"""Error hierarchy shared by the store, the mutators and the HTTP layer.

Two families:

    StoreError      infrastructure: missing documents, revoked access,
                      transactions that kept losing the optimistic race.
    ConflictError   domain races that a transaction detected and aborted
                      cleanly (role already claimed, scene still active...).

Validation failures are not exceptions; see models.Validation.
"""


class StoreError(RuntimeError):
    """Raised by a DocumentStore for any remote failure."""


class DocumentNotFound(StoreError):
    def __init__(self, path: str) -> None:
        super().__init__(f"Document not found: {path}")
        self.path = path


class PermissionDenied(StoreError):
    def __init__(self, path: str) -> None:
        super().__init__(f"Permission denied: {path}")
        self.path = path


class TransactionAborted(StoreError):
    """Raised when a transaction could not commit within max_attempts tries."""


class ConflictError(RuntimeError):
    """A transaction found the shared state already taken by someone else."""

    title = "Conflict"


class GMAlreadyAssigned(ConflictError):
    title = "GM already assigned"


class CharacterInUse(ConflictError):
    title = "Character in use"


class SceneIsActive(ConflictError):
    title = "Scene is active"


class SceneArchived(ConflictError):
    title = "Scene is archived"


class EpisodeClosed(ConflictError):
    title = "Episode closed"
