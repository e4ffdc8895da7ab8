"""PINGSYNC - Checkpoint Store.

In-memory watermarks for one sync pass. Loaded once from a manifest store,
mutated only through ``commit`` after a batch was delivered, and flushed
back once at the end of the pass.
"""

from typing import Dict, Optional, Set

from pingsync.core.errors import CheckpointRegressionError
from pingsync.core.logging import get_logger
from pingsync.manifest.base import CheckpointMap, ManifestStore
from pingsync.models.sync_models import Checkpoint, CheckpointKey

logger = get_logger("engine.checkpoints")

EMPTY = Checkpoint()


class CheckpointStore:
    def __init__(self, checkpoints: Optional[CheckpointMap] = None):
        self._checkpoints: Dict[CheckpointKey, Checkpoint] = dict(checkpoints or {})
        self._dirty: Set[CheckpointKey] = set()

    @classmethod
    def load(cls, manifest: ManifestStore) -> "CheckpointStore":
        store = cls(manifest.load_checkpoints())
        logger.info(f"Loaded {len(store._checkpoints)} checkpoints")
        return store

    def get(self, key: CheckpointKey) -> Checkpoint:
        """Checkpoint for one axis; never-fetched axes get an empty one."""
        return self._checkpoints.get(key, EMPTY)

    def commit(self, key: CheckpointKey, checkpoint: Checkpoint) -> None:
        """Advance one axis. Only call this once its batch has been delivered.

        Raises:
            CheckpointRegressionError: the new band does not contain the old one.
        """
        prior = self.get(key)
        if not checkpoint.covers(prior):
            raise CheckpointRegressionError(
                f"Checkpoint {key} would narrow from "
                f"[{prior.earliest_seen}, {prior.latest_seen}] to "
                f"[{checkpoint.earliest_seen}, {checkpoint.latest_seen}]"
            )
        if checkpoint == prior:
            return
        self._checkpoints[key] = checkpoint
        self._dirty.add(key)

    def is_empty(self) -> bool:
        return not any(not cp.is_empty for cp in self._checkpoints.values())

    @property
    def dirty(self) -> bool:
        return bool(self._dirty)

    def flush(self, manifest: ManifestStore) -> int:
        """Persist every committed change in one store call.

        Returns the number of axes written; nothing is written when no commit
        changed anything.
        """
        if not self.dirty:
            logger.info("No checkpoint changed, manifest left untouched")
            return 0
        changed = {key: self._checkpoints[key] for key in self._dirty}
        manifest.save_checkpoints(changed)
        self._dirty.clear()
        return len(changed)

    def __len__(self) -> int:
        return len(self._checkpoints)
