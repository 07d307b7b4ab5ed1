"""Remote adapter interface shared by the Snapshot and Entity strategies."""
from abc import ABC, abstractmethod

from tripsync.core.config import DataMode
from tripsync.models.snapshot import Snapshot


class RemoteAdapter(ABC):
    """Push/load contract for the shared backend.

    ``load`` returns whatever the remote holds as a (possibly partial)
    snapshot: collections the remote does not model are left as None.
    ``push`` sends the full local state. Both raise ``SyncError``
    subclasses on failure.
    """

    mode: DataMode
    pushes_per_mutation: bool = False

    @abstractmethod
    def load(self) -> Snapshot:
        ...

    @abstractmethod
    def push(self, snapshot: Snapshot) -> None:
        ...

    @abstractmethod
    def health(self) -> dict:
        """Report whether the remote tables are reachable for this trip."""
