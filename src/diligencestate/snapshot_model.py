"""
Snapshot dataclasses and the per-Record SnapshotStore.

A snapshot is the rollback point used by Cancel: every tier's selection and
buffer plus the UI mode flags, captured at one moment.

Design Philosophy: Correct by Construction
- Immutable snapshots (frozen dataclass)
- UUID-based identity for snapshots
- Exactly one live snapshot per active Record; capture replaces it
- Data only (no object references), so snapshots export to JSON
"""

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional
import copy
import logging
import time
import uuid

from diligencestate.collection_containers import ProfileKind, Tier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BufferSnapshot:
    """Immutable copy of one tier's edit buffer."""
    entity_id: Optional[str]
    parameters: Dict  # Live values at capture time
    saved_parameters: Dict  # Canonical baseline at capture time (for dirty detection after restore)


@dataclass(frozen=True)
class SelectionSnapshot:
    """Selection ids and the UI mode flags restored verbatim by Cancel."""
    active_tier: Tier
    selected_child_id: Optional[str]
    selected_grandchild_id: Optional[str]
    include_archived: bool
    active_profile: ProfileKind


@dataclass(frozen=True)
class EngineSnapshot:
    """Immutable snapshot of the whole editing surface of one Record."""
    id: str  # UUID string
    timestamp: float
    label: str
    record_id: str
    selection: SelectionSnapshot
    buffers: Dict[Tier, BufferSnapshot]

    @classmethod
    def create(
        cls,
        label: str,
        record_id: str,
        selection: SelectionSnapshot,
        buffers: Dict[Tier, BufferSnapshot],
    ) -> 'EngineSnapshot':
        """Create a new snapshot with auto-generated ID and timestamp."""
        return cls(
            id=str(uuid.uuid4()),
            timestamp=time.time(),
            label=label,
            record_id=record_id,
            selection=selection,
            buffers=buffers,
        )

    def to_dict(self) -> Dict:
        """Export to JSON-serializable dict."""
        return {
            'id': self.id,
            'timestamp': self.timestamp,
            'label': self.label,
            'record_id': self.record_id,
            'selection': {
                'active_tier': self.selection.active_tier.value,
                'selected_child_id': self.selection.selected_child_id,
                'selected_grandchild_id': self.selection.selected_grandchild_id,
                'include_archived': self.selection.include_archived,
                'active_profile': self.selection.active_profile.value,
            },
            'buffers': {
                tier.value: {
                    'entity_id': bs.entity_id,
                    'parameters': copy.deepcopy(bs.parameters),
                    'saved_parameters': copy.deepcopy(bs.saved_parameters),
                }
                for tier, bs in self.buffers.items()
            },
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'EngineSnapshot':
        """Import from dict (e.g., loaded from JSON)."""
        sel = data['selection']
        buffers = {
            Tier(tier_name): BufferSnapshot(
                entity_id=bs['entity_id'],
                parameters=bs['parameters'],
                saved_parameters=bs.get('saved_parameters', bs['parameters']),
            )
            for tier_name, bs in data['buffers'].items()
        }
        return cls(
            id=data['id'],
            timestamp=data['timestamp'],
            label=data['label'],
            record_id=data['record_id'],
            selection=SelectionSnapshot(
                active_tier=Tier(sel['active_tier']),
                selected_child_id=sel['selected_child_id'],
                selected_grandchild_id=sel['selected_grandchild_id'],
                include_archived=sel['include_archived'],
                active_profile=ProfileKind(sel['active_profile']),
            ),
            buffers=buffers,
        )


class SnapshotStore:
    """Holds the single live rollback point of one active Record.

    Discarded wholesale with the engine when the active Record changes.
    """

    def __init__(self, record_id: str):
        self.record_id = record_id
        self._live: Optional[EngineSnapshot] = None
        # Fired after every capture with the new snapshot
        self._on_captured_callbacks: List[Callable[[EngineSnapshot], None]] = []

    @property
    def live(self) -> Optional[EngineSnapshot]:
        return self._live

    def on_captured(self, callback: Callable[[EngineSnapshot], None]) -> None:
        """Subscribe to capture events."""
        if callback not in self._on_captured_callbacks:
            self._on_captured_callbacks.append(callback)

    def off_captured(self, callback: Callable[[EngineSnapshot], None]) -> None:
        """Unsubscribe from capture events."""
        if callback in self._on_captured_callbacks:
            self._on_captured_callbacks.remove(callback)

    def capture(
        self,
        selection: SelectionSnapshot,
        buffers: Dict[Tier, BufferSnapshot],
        label: str = "",
        tiers: Optional[Iterable[Tier]] = None,
    ) -> str:
        """Capture a new live snapshot and return its id.

        Args:
            selection: Current selection ids and UI flags (always taken as given).
            buffers: Current buffer snapshots for every tier.
            label: Human-readable reason (e.g. "load", "select child", "save grandchild").
            tiers: Tiers whose buffers are re-captured. Other tiers keep the
                   buffer recorded in the previous live snapshot. None = all tiers.
        """
        if tiers is None or self._live is None:
            captured = dict(buffers)
        else:
            rebased = set(tiers)
            captured = {
                tier: (buffers[tier] if tier in rebased or tier not in self._live.buffers else self._live.buffers[tier])
                for tier in buffers
            }

        snapshot = EngineSnapshot.create(
            label=label,
            record_id=self.record_id,
            selection=selection,
            buffers={tier: _frozen_copy(bs) for tier, bs in captured.items()},
        )
        self._live = snapshot
        logger.debug(f"⏱️ SNAPSHOT: Captured '{label}' (id={snapshot.id[:8]}, record={self.record_id})")

        for callback in list(self._on_captured_callbacks):
            try:
                callback(snapshot)
            except Exception as e:
                logger.warning(f"Error in snapshot captured callback: {e}")
        return snapshot.id

    def restore(self, snapshot_id: str) -> Optional[EngineSnapshot]:
        """Return a deep copy of the live snapshot if its id matches.

        Returns:
            The snapshot to apply, or None if snapshot_id is not the live one.
        """
        if self._live is None or self._live.id != snapshot_id:
            logger.error(f"⏱️ RESTORE: Snapshot {snapshot_id} is not the live snapshot of record {self.record_id}")
            return None
        logger.debug(f"⏱️ RESTORE: '{self._live.label}' (id={snapshot_id[:8]})")
        return copy.deepcopy(self._live)

    def discard(self) -> None:
        self._live = None


def _frozen_copy(bs: BufferSnapshot) -> BufferSnapshot:
    return BufferSnapshot(
        entity_id=bs.entity_id,
        parameters=copy.deepcopy(bs.parameters),
        saved_parameters=copy.deepcopy(bs.saved_parameters),
    )
