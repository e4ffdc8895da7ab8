"""PINGSYNC - Abstract Manifest Store."""

from abc import ABC, abstractmethod
from typing import Dict, List

from pingsync.models.sync_models import Checkpoint, CheckpointKey, Entity, Probe

CheckpointMap = Dict[CheckpointKey, Checkpoint]


class ManifestStore(ABC):
    """Persisted catalog and checkpoints.

    The sync engine only reads entities and probes. Checkpoints are written in
    one call per sync pass, and implementations must make that call atomic: a
    crash leaves either the old or the new mapping, never a mix.
    """

    @abstractmethod
    def is_initialized(self) -> bool:
        """Whether a catalog refresh ever ran against this store."""
        ...

    @abstractmethod
    def load_entities(self) -> List[Entity]:
        """Checks and TMs known from the last catalog refresh."""
        ...

    @abstractmethod
    def load_probes(self) -> List[Probe]:
        ...

    @abstractmethod
    def load_checkpoints(self) -> CheckpointMap:
        """Every non-empty checkpoint. Unreadable state yields an empty map."""
        ...

    @abstractmethod
    def save_checkpoints(self, checkpoints: CheckpointMap) -> None:
        """Replace the stored checkpoints for the given keys."""
        ...

    @abstractmethod
    def save_catalog(self, entities: List[Entity], probes: List[Probe]) -> None:
        """Replace the catalog.

        Checkpoints of entities that are still present survive; entities that
        disappeared upstream are dropped together with their checkpoints.
        """
        ...
