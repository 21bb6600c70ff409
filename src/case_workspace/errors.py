"""Domain errors for case-workspace.

Data-shape problems never surface as errors; they are absorbed by the
normalizer or ignored by the engine. These exceptions cover lookups through
the API and host wiring mistakes.
"""


class CaseWorkspaceError(Exception):
    """Base class for case-workspace errors."""


class NotFoundError(CaseWorkspaceError):
    """Raised when an API lookup names a record that does not exist."""


class StoreNotInitializedError(CaseWorkspaceError):
    """Raised when a store is used before initialize() or after close().

    This signals a host wiring bug, not a data problem.
    """
