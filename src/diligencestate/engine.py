"""
SelectionEngine: the per-Record facade hosts talk to.

One engine instance owns everything for one active Record: the selection
controller, the edit buffers, the snapshot store, the create-mode drafts and
the mutation orchestrator. Every host event runs one named transition, then
one buffer sync pass:

    transition → EditBufferSynchronizer.sync(each tier) → snapshot rebase

Switching the active Record is a hard reset (see DataManagementSession, which
replaces the engine wholesale).
"""
import logging
from typing import Any, Callable, Dict, Hashable, List, Optional, Protocol, Sequence, Union

from diligencestate.collection_containers import Child, Grandchild, ProfileKind, Record, Tier
from diligencestate.config import EngineConfig, get_engine_config
from diligencestate.create_mode import CreateModeCoordinator
from diligencestate.default_picker import pick_default
from diligencestate.edit_buffer import EditBuffer, EditBufferSynchronizer, SyncOutcome
from diligencestate.mutation import MutationCollaborator, MutationOrchestrator, MutationResult
from diligencestate.reference_values import ReferenceValueService
from diligencestate.snapshot_model import SnapshotStore
from diligencestate.tier_selection import SelectionState, TierSelectionController, Transition

logger = logging.getLogger(__name__)

BufferKey = Union[Tier, ProfileKind]


class RecordDataSource(Protocol):
    """Read side of the persistence boundary."""

    async def fetch_record(self, record_id: str) -> Record:
        """Return the full Record tree. Every result is a complete replacement."""
        ...


class SelectionEngine:
    """Cascading selection and reconciliation engine for one active Record.

    Args:
        record: Record to activate.
        mutations: Mutation collaborator. None makes every save a guard error.
        data_source: Used by refresh() and the archive-then-refresh path.
        reference_values: Blank-buffer defaults. Falls back to hard-coded ones.
        on_data_changed: Host callback after any successful mutation.
        config: Engine configuration; defaults to the process config.
        picker: Default picker (pick_default).
    """

    def __init__(
        self,
        record: Record,
        mutations: Optional[MutationCollaborator] = None,
        data_source: Optional[RecordDataSource] = None,
        reference_values: Optional[ReferenceValueService] = None,
        on_data_changed: Optional[Callable[[], None]] = None,
        config: Optional[EngineConfig] = None,
        picker: Callable[[Sequence[Any]], Optional[Any]] = pick_default,
    ):
        self.config = config or get_engine_config()
        self.reference_values = reference_values or ReferenceValueService(language=self.config.language)
        self._data_source = data_source

        self.controller = TierSelectionController(self.config, picker)
        self.buffers: Dict[BufferKey, EditBuffer] = {tier: EditBuffer(tier) for tier in Tier}
        self.buffers.update({kind: EditBuffer(kind) for kind in ProfileKind})
        self.synchronizer = EditBufferSynchronizer(self.buffers)
        self.snapshots = SnapshotStore(record.id)

        self.mutations = MutationOrchestrator(
            mutations,
            self.controller,
            self.config,
            on_committed=self._on_committed,
            refresh=self.refresh if data_source is not None else None,
            on_data_changed=on_data_changed,
        )
        self.create_mode = CreateModeCoordinator(
            self.controller,
            self.mutations,
            self.reference_values,
            on_exit=self._on_create_exit,
        )

        self._on_changed_callbacks: List[Callable[[], None]] = []
        self._activate(record)

    def __repr__(self) -> str:
        s = self.controller.state
        return (
            f"SelectionEngine(record={self.record_id!r}, tier={s.active_tier.value}, "
            f"child={s.selected_child_id!r}, grandchild={s.selected_grandchild_id!r})"
        )

    # === Change Subscription ===

    def on_changed(self, callback: Callable[[], None]) -> None:
        """Subscribe to 'something the surface shows changed' notifications."""
        if callback not in self._on_changed_callbacks:
            self._on_changed_callbacks.append(callback)

    def off_changed(self, callback: Callable[[], None]) -> None:
        if callback in self._on_changed_callbacks:
            self._on_changed_callbacks.remove(callback)

    def _notify_changed(self) -> None:
        for callback in list(self._on_changed_callbacks):
            try:
                callback()
            except Exception as e:
                logger.warning(f"Error in engine changed callback: {e}")

    # ==================== VIEWS ====================

    @property
    def record(self) -> Record:
        return self.controller.record

    @property
    def record_id(self) -> str:
        return self.snapshots.record_id

    @property
    def state(self) -> SelectionState:
        return self.controller.state

    def visible_children(self) -> List[Child]:
        return self.controller.visible_children()

    def visible_grandchildren(self) -> List[Grandchild]:
        return self.controller.visible_grandchildren()

    def selected_child(self) -> Optional[Child]:
        return self.controller.selected_child()

    def selected_grandchild(self) -> Optional[Grandchild]:
        return self.controller.selected_grandchild()

    def buffer(self, key: BufferKey) -> EditBuffer:
        return self.buffers[key]

    def draft(self, tier: Tier) -> Optional[EditBuffer]:
        return self.create_mode.draft(tier)

    def editing_buffer(self, tier: Tier) -> EditBuffer:
        """Buffer the edit surface of a tier shows: the draft while creating."""
        draft = self.create_mode.draft(tier)
        if draft is not None and self.controller.is_creating(tier):
            return draft
        return self.buffers[tier]

    def is_creating(self, tier: Tier) -> bool:
        return self.controller.is_creating(tier)

    def is_pending(self, key: BufferKey) -> bool:
        return self.mutations.is_pending(key)

    @property
    def is_settled(self) -> bool:
        return self.mutations.is_settled

    @property
    def is_dirty(self) -> bool:
        return any(self.buffers[tier].is_dirty for tier in Tier)

    # ==================== RECORD LOAD / REFRESH ====================

    def _activate(self, record: Record) -> None:
        self.controller.record_changed(record)
        self._sync_buffers()
        self.snapshots.capture(
            self.state.to_snapshot(),
            self._baseline_buffers(),
            label="load",
        )
        logger.info(f"Record {record.id!r} active: {len(record.children)} children")

    def load(self, record: Record) -> Transition:
        """Feed a fetch result into the engine.

        Same id → RECORD_REFRESHED (selections kept, vanished ones cleared).
        Another id → RECORD_CHANGED: wholesale reset of selection, buffers,
        drafts and snapshot store.
        """
        if record.id != self.record_id:
            logger.info(f"Resetting engine: {self.record_id!r} -> {record.id!r}")
            self.create_mode.drafts.clear()
            for buffer in self.buffers.values():
                buffer.clear()
            self.snapshots.discard()
            self.snapshots = SnapshotStore(record.id)
            self._activate(record)
        else:
            self.controller.record_refreshed(record)
            self._sync_buffers(label="refresh")
        self._notify_changed()
        return self.controller.last_transition

    async def refresh(self) -> Record:
        """Re-fetch the active Record and reconcile."""
        if self._data_source is None:
            raise RuntimeError("No data source configured")
        record = await self._data_source.fetch_record(self.record_id)
        self.load(record)
        return record

    # ==================== SELECTION ====================

    def select_child(self, child_id: Optional[str]) -> bool:
        ok = self.controller.select_child(child_id)
        if ok:
            self._after_transition("select child")
        return ok

    def select_grandchild(self, grandchild_id: Optional[str]) -> bool:
        ok = self.controller.select_grandchild(grandchild_id)
        if ok:
            self._after_transition("select grandchild")
        return ok

    def navigate(self, tier: Tier) -> bool:
        selected = self.controller.navigate(tier)
        self._after_transition("navigate")
        return selected

    def auto_select(self) -> bool:
        selected = self.controller.auto_select()
        if selected:
            self._after_transition("auto select")
        return selected

    def set_include_archived(self, include_archived: bool) -> None:
        self.controller.set_include_archived(include_archived)
        self._after_transition("visibility")

    def toggle_archived(self) -> bool:
        self.set_include_archived(not self.state.include_archived)
        return self.state.include_archived

    def select_profile(self, kind: ProfileKind) -> None:
        self.controller.select_profile(kind)
        self._notify_changed()

    def _after_transition(self, label: str) -> None:
        self._sync_buffers(label=label)
        self._notify_changed()

    # ==================== EDITING ====================

    def update_field(self, tier: Tier, name: str, value: Any) -> bool:
        """Write one field of a tier (into the draft while creating).

        Returns:
            False if there is nothing selected to edit at that tier.
        """
        buffer = self.editing_buffer(tier)
        if buffer.entity_id is None and not self.controller.is_creating(tier):
            logger.warning(f"Ignoring edit of {tier.value}.{name}: nothing selected")
            return False
        buffer.update_parameter(name, value)
        self._notify_changed()
        return True

    def update_profile_field(self, kind: ProfileKind, name: str, value: Any) -> bool:
        buffer = self.buffers[kind]
        if buffer.entity_id is None:
            logger.warning(f"Ignoring edit of {kind.value}.{name}: no grandchild selected")
            return False
        buffer.update_parameter(name, value)
        self._notify_changed()
        return True

    def discard_profile_edits(self, kind: ProfileKind) -> None:
        """Profiles are not covered by cancel(); each tab discards its own edits."""
        self.buffers[kind].restore_saved()
        self._notify_changed()

    def cancel(self) -> bool:
        """Roll back to the live snapshot: every tier's selection and buffer,
        plus the recorded mode flags.

        Create-mode drafts are left alone. Returns False if there was nothing
        to restore.
        """
        live = self.snapshots.live
        if live is None:
            return False
        snapshot = self.snapshots.restore(live.id)
        if snapshot is None:
            return False

        for tier, buffer_snapshot in snapshot.buffers.items():
            self.buffers[tier].apply_snapshot(buffer_snapshot)
        self.controller.restore(snapshot.selection)
        self._sync_buffers(label="cancel")
        logger.info(f"Cancelled edits of record {self.record_id!r} (snapshot '{snapshot.label}')")
        self._notify_changed()
        return True

    # ==================== CREATE MODE ====================

    def begin_create(self, tier: Tier) -> EditBuffer:
        draft = self.create_mode.begin(tier)
        self._notify_changed()
        return draft

    async def commit_create(self, tier: Tier) -> MutationResult:
        result = await self.create_mode.commit(tier)
        self._notify_changed()
        return result

    def cancel_create(self, tier: Tier) -> None:
        self.create_mode.cancel_create(tier)
        self._notify_changed()

    def _on_create_exit(self, tier: Tier) -> None:
        # Buffer population resumes from the current selection
        self._sync_buffers(label=f"end create {tier.value}")

    # ==================== MUTATIONS ====================

    async def save(self, tier: Tier) -> MutationResult:
        """Submit the buffer of an existing entity."""
        result = await self.mutations.submit(tier, self.buffers[tier])
        self._notify_changed()
        return result

    async def save_profile(self, kind: ProfileKind) -> MutationResult:
        result = await self.mutations.save_profile(kind, self.buffers[kind])
        self._notify_changed()
        return result

    async def archive(self, tier: Tier, entity_id: str, archived: bool = True) -> MutationResult:
        """Archive (or unarchive) and wait for the refreshed data before returning."""
        result = await self.mutations.set_archived(tier, entity_id, archived)
        self._notify_changed()
        return result

    async def unarchive(self, tier: Tier, entity_id: str) -> MutationResult:
        return await self.archive(tier, entity_id, archived=False)

    def _on_committed(self, key: Hashable, entity_id: str) -> None:
        if not isinstance(key, Tier) or self.buffers[key].entity_id != entity_id:
            return
        self.snapshots.capture(
            self.state.to_snapshot(),
            self._baseline_buffers(),
            label=f"save {key.value}",
            tiers=[key],
        )

    # ==================== BUFFER SYNC ====================

    def _sync_buffers(self, label: Optional[str] = None) -> Dict[BufferKey, SyncOutcome]:
        """Reconcile every buffer with the current selection and data.

        Tiers whose buffer now shows new persisted data are re-captured in the
        snapshot when a label is given.
        """
        ctl = self.controller
        rv = self.reference_values
        record = ctl.record
        child = ctl.selected_child()
        grandchild = ctl.selected_grandchild()

        outcomes: Dict[BufferKey, SyncOutcome] = {
            Tier.RECORD: self.synchronizer.sync(
                Tier.RECORD, record.id, rv.canonical_fields(Tier.RECORD, record.fields),
                ctl.is_creating(Tier.RECORD),
            ),
            Tier.CHILD: self.synchronizer.sync(
                Tier.CHILD,
                child.id if child else None,
                rv.canonical_fields(Tier.CHILD, child.fields) if child else None,
                ctl.is_creating(Tier.CHILD),
            ),
            Tier.GRANDCHILD: self.synchronizer.sync(
                Tier.GRANDCHILD,
                grandchild.id if grandchild else None,
                rv.canonical_fields(Tier.GRANDCHILD, grandchild.fields) if grandchild else None,
                ctl.is_creating(Tier.GRANDCHILD),
            ),
        }
        for kind in ProfileKind:
            outcomes[kind] = self.synchronizer.sync(
                kind,
                grandchild.id if grandchild else None,
                rv.canonical_profile(kind, grandchild.profiles.get(kind, {})) if grandchild else None,
                ctl.is_creating(Tier.GRANDCHILD),
            )

        committed = [tier for tier in Tier if outcomes[tier].commits_buffer]
        if label is not None and committed:
            self.snapshots.capture(
                self.state.to_snapshot(),
                self._baseline_buffers(),
                label=label,
                tiers=committed,
            )
        return outcomes

    def _baseline_buffers(self):
        return {tier: self.buffers[tier].baseline_snapshot() for tier in Tier}

    def close(self) -> None:
        """Drop listeners and the snapshot. The engine is not used afterwards."""
        self._on_changed_callbacks.clear()
        self.snapshots.discard()
        logger.debug(f"Engine for record {self.record_id!r} closed")
