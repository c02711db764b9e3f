"""
EditBuffer: the editable copy of one entity's fields.

Holds the live values the edit surface reads and writes, separately from the
canonical values last seen from the data source. Everything else is derived:
- dirty_fields → parameters != saved baseline
- is_dirty → bool(dirty_fields)

EditBufferSynchronizer: maps (selected id, canonical values) onto a buffer and
reports whether the selected entity changed or was merely refreshed.
"""
import copy
import logging
from enum import Enum
from typing import Any, Callable, Dict, Hashable, List, Optional, Set

from diligencestate.snapshot_model import BufferSnapshot

logger = logging.getLogger(__name__)


class EditBuffer:
    """Live values + saved baseline for one entity.

    Core Attributes:
    - key: Tier or ProfileKind the buffer belongs to
    - entity_id: Entity currently loaded (None = nothing selected)
    - parameters: Mutable working copy
    - _saved_parameters: Canonical values at last load/save
    """

    def __init__(self, key: Hashable, entity_id: Optional[str] = None, values: Optional[Dict[str, Any]] = None):
        self.key = key
        self.entity_id: Optional[str] = entity_id
        self.parameters: Dict[str, Any] = copy.deepcopy(values or {})
        self._saved_parameters: Dict[str, Any] = copy.deepcopy(self.parameters)
        self._dirty_fields: Set[str] = set()
        self._on_state_changed_callbacks: List[Callable[[], None]] = []

    def __repr__(self) -> str:
        return f"EditBuffer(key={self.key!r}, entity_id={self.entity_id!r}, dirty={sorted(self._dirty_fields)})"

    # === State Change Subscription ===

    def on_state_changed(self, callback: Callable[[], None]) -> None:
        """Subscribe to value/dirty state change notifications."""
        if callback not in self._on_state_changed_callbacks:
            self._on_state_changed_callbacks.append(callback)

    def off_state_changed(self, callback: Callable[[], None]) -> None:
        """Unsubscribe from state change notifications."""
        if callback in self._on_state_changed_callbacks:
            self._on_state_changed_callbacks.remove(callback)

    def _notify_state_changed(self) -> None:
        """Fire state change callbacks (best-effort)."""
        for callback in list(self._on_state_changed_callbacks):
            try:
                callback()
            except Exception as e:
                logger.warning(f"Error in buffer state_changed callback: {e}")

    # ==================== VALUES ====================

    @property
    def saved_parameters(self) -> Dict[str, Any]:
        return copy.deepcopy(self._saved_parameters)

    def get_current_values(self) -> Dict[str, Any]:
        return copy.deepcopy(self.parameters)

    def update_parameter(self, param_name: str, value: Any) -> None:
        """Write one field as the operator typed it."""
        self.parameters[param_name] = value
        self._sync_materialized_state()

    def reset_parameter(self, param_name: str) -> None:
        """Put one field back to its saved value."""
        if param_name in self._saved_parameters:
            self.parameters[param_name] = copy.deepcopy(self._saved_parameters[param_name])
        else:
            self.parameters.pop(param_name, None)
        self._sync_materialized_state()

    def load(self, entity_id: Optional[str], values: Dict[str, Any]) -> None:
        """Replace both live values and baseline (entity changed or refreshed)."""
        self.entity_id = entity_id
        self.parameters = copy.deepcopy(values)
        self._saved_parameters = copy.deepcopy(values)
        self._sync_materialized_state()

    def clear(self) -> None:
        self.load(None, {})

    def matches(self, entity_id: Optional[str], values: Dict[str, Any]) -> bool:
        """True if the buffer already shows exactly these persisted values."""
        return self.entity_id == entity_id and self.parameters == values and self._saved_parameters == values

    # ==================== SAVED STATE / DIRTY TRACKING ====================

    @property
    def dirty_fields(self) -> Set[str]:
        """Fields where live != saved."""
        return set(self._dirty_fields)

    @property
    def is_dirty(self) -> bool:
        return bool(self._dirty_fields)

    def _compute_dirty_fields(self) -> Set[str]:
        dirty = set()
        for k in (self.parameters.keys() | self._saved_parameters.keys()):
            if self.parameters.get(k) != self._saved_parameters.get(k):
                dirty.add(k)
        return dirty

    def _sync_materialized_state(self) -> None:
        """Single point where the dirty set is recomputed and listeners notified.

        Listeners are notified even when the dirty set is unchanged: a second
        edit of an already-dirty field still changes what the surface shows.
        """
        self._dirty_fields = self._compute_dirty_fields()
        if self._dirty_fields:
            logger.debug(f"🔴 DIRTY: buffer={self.key!r} entity={self.entity_id!r} fields={sorted(self._dirty_fields)}")
        self._notify_state_changed()

    def mark_saved(self, values: Optional[Dict[str, Any]] = None) -> None:
        """Make the current (or given) values the new saved baseline."""
        if values is not None:
            self.parameters = copy.deepcopy(values)
        self._saved_parameters = copy.deepcopy(self.parameters)
        self._sync_materialized_state()

    def rebase(self, values: Dict[str, Any]) -> None:
        """Move the saved baseline without touching live edits."""
        self._saved_parameters = copy.deepcopy(values)
        self._sync_materialized_state()

    def restore_saved(self) -> None:
        """Discard live edits."""
        self.parameters = copy.deepcopy(self._saved_parameters)
        self._sync_materialized_state()

    # ==================== SNAPSHOT SUPPORT ====================

    def to_snapshot(self) -> BufferSnapshot:
        return BufferSnapshot(
            entity_id=self.entity_id,
            parameters=copy.deepcopy(self.parameters),
            saved_parameters=copy.deepcopy(self._saved_parameters),
        )

    def baseline_snapshot(self) -> BufferSnapshot:
        """Snapshot of the saved baseline only, without live edits."""
        return BufferSnapshot(
            entity_id=self.entity_id,
            parameters=copy.deepcopy(self._saved_parameters),
            saved_parameters=copy.deepcopy(self._saved_parameters),
        )

    def apply_snapshot(self, snapshot: BufferSnapshot) -> None:
        self.entity_id = snapshot.entity_id
        self.parameters = copy.deepcopy(snapshot.parameters)
        self._saved_parameters = copy.deepcopy(snapshot.saved_parameters)
        self._sync_materialized_state()


class SyncOutcome(Enum):
    """What a sync pass did to a buffer."""
    UNCHANGED = "unchanged"
    CLEARED = "cleared"
    ENTITY_CHANGED = "entity_changed"
    REFRESHED = "refreshed"
    KEPT_DIRTY = "kept_dirty"
    SUSPENDED = "suspended"

    @property
    def commits_buffer(self) -> bool:
        """True if the buffer now shows new persisted data (snapshot must rebase)."""
        return self in (SyncOutcome.CLEARED, SyncOutcome.ENTITY_CHANGED, SyncOutcome.REFRESHED)


class EditBufferSynchronizer:
    """Keeps buffers in step with the selection and the canonical data.

    Distinguishes "entity changed" (another id is selected) from "entity
    refreshed" (same id, new canonical values). A refresh never overwrites a
    buffer the operator has dirtied for that same entity.
    """

    def __init__(self, buffers: Dict[Hashable, EditBuffer]):
        self.buffers = buffers

    def sync(
        self,
        key: Hashable,
        selected_id: Optional[str],
        canonical: Optional[Dict[str, Any]],
        is_creating: bool = False,
    ) -> SyncOutcome:
        """Reconcile one buffer.

        Args:
            key: Buffer key (Tier or ProfileKind).
            selected_id: Currently selected entity id, or None.
            canonical: Canonical buffer values of the selected entity.
            is_creating: Create mode is active for this tier; canonical data is ignored.
        """
        buffer = self.buffers[key]

        if is_creating:
            return SyncOutcome.SUSPENDED

        if selected_id is None or canonical is None:
            if buffer.entity_id is None and not buffer.parameters:
                return SyncOutcome.UNCHANGED
            buffer.clear()
            logger.debug(f"SYNC [{key}]: cleared")
            return SyncOutcome.CLEARED

        if buffer.entity_id != selected_id:
            buffer.load(selected_id, canonical)
            logger.debug(f"SYNC [{key}]: entity changed -> {selected_id!r}")
            return SyncOutcome.ENTITY_CHANGED

        if buffer.saved_parameters == canonical:
            return SyncOutcome.UNCHANGED

        if buffer.is_dirty:
            buffer.rebase(canonical)
            logger.debug(f"SYNC [{key}]: {selected_id!r} refreshed under unsaved edits, keeping them")
            return SyncOutcome.KEPT_DIRTY

        buffer.load(selected_id, canonical)
        logger.debug(f"SYNC [{key}]: {selected_id!r} refreshed")
        return SyncOutcome.REFRESHED
