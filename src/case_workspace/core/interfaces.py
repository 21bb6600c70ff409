"""Abstract interfaces (Protocol classes) for case-workspace.

The store depends on this interface, not on a concrete storage, so the
snapshot backend can be swapped by configuration or replaced in tests.
"""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class ISnapshotStorage(Protocol):
    """Keeps one workspace snapshot under a fixed key.

    load() returns the decoded snapshot or None when nothing was stored.
    save() replaces the stored snapshot. Either may raise on I/O failure;
    the store catches and logs those errors.
    """

    def load(self) -> Any | None: ...

    def save(self, snapshot: dict[str, Any]) -> None: ...
