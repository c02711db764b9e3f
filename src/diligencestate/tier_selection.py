"""
TierSelectionController: owns the selection at each tier of one active Record.

All selection state lives on a single SelectionState, mutated only through the
named transitions below. Each transition runs to completion before the next
one starts; ordering is a property of the transition methods, not of whoever
calls them.

Transitions:
    RECORD_CHANGED    new top-level id → full reset + eager defaults
    RECORD_REFRESHED  same id, new data → keep selections, drop vanished ones
    SELECT            explicit selection (or explicit clear) at one tier
    NAVIGATE          active tier changes, then one auto-select pass
    AUTO_SELECT       pick a default once per navigation context
    VISIBILITY        archived-inclusion toggled
    CREATE            create mode entered/left for a tier
    PROFILE           sub-profile tab switched
    RESTORE           rollback to a snapshot (Cancel)
    ABSORB            one mutated entity merged into the background data
"""
import copy
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

from diligencestate.collection_containers import (
    Child, Grandchild, ProfileKind, Record, Tier,
)
from diligencestate.config import EngineConfig
from diligencestate.default_picker import pick_default
from diligencestate.errors import ReconciliationInconsistency
from diligencestate.snapshot_model import SelectionSnapshot

logger = logging.getLogger(__name__)

_IDENTITY_KEYS = ('id', 'parentId', 'createdAt', 'archived', 'children', 'grandchildren', 'profiles')


class Transition(Enum):
    RECORD_CHANGED = "record changed"
    RECORD_REFRESHED = "record refreshed"
    SELECT = "select"
    NAVIGATE = "navigate"
    AUTO_SELECT = "auto select"
    VISIBILITY = "visibility"
    CREATE = "create"
    PROFILE = "profile"
    RESTORE = "restore"
    ABSORB = "absorb"


@dataclass
class SelectionState:
    """Per-Record selection state.

    Attributes:
        active_tier: Tier the operator is looking at.
        selected_child_id / selected_grandchild_id: Always in the visible list, or None.
        include_archived: Archived entities appear in visible lists.
        child_auto_selected_once: The Child default has fired for this Record session.
        grandchild_auto_selected_for_child_id: Parent Child id for which the
            Grandchild default has fired (per-parent flag).
        active_profile: Sub-profile tab of the selected Grandchild.
        creating: Tiers currently in create mode.
    """
    active_tier: Tier
    selected_child_id: Optional[str] = None
    selected_grandchild_id: Optional[str] = None
    include_archived: bool = True
    child_auto_selected_once: bool = False
    grandchild_auto_selected_for_child_id: Optional[str] = None
    active_profile: ProfileKind = ProfileKind.HOSTING
    creating: Set[Tier] = field(default_factory=set)

    def to_snapshot(self) -> SelectionSnapshot:
        return SelectionSnapshot(
            active_tier=self.active_tier,
            selected_child_id=self.selected_child_id,
            selected_grandchild_id=self.selected_grandchild_id,
            include_archived=self.include_archived,
            active_profile=self.active_profile,
        )


class TierSelectionController:
    """Finite-state machine over SelectionState for one active Record."""

    def __init__(self, config: EngineConfig, picker: Callable[[Sequence[Any]], Optional[Any]] = pick_default):
        self.config = config
        self._picker = picker
        self.record: Optional[Record] = None
        self.state = self._initial_state()
        self.last_transition: Optional[Transition] = None
        self._eager_default_in_progress = False

    def _initial_state(self) -> SelectionState:
        return SelectionState(
            active_tier=self.config.landing_tier,
            include_archived=self.config.include_archived,
            active_profile=self.config.default_profile,
        )

    # ==================== VISIBLE LISTS ====================

    def visible_children(self) -> List[Child]:
        if self.record is None:
            return []
        return self.record.visible_children(self.state.include_archived)

    def visible_grandchildren(self) -> List[Grandchild]:
        child = self.selected_child()
        if child is None:
            return []
        return child.visible_grandchildren(self.state.include_archived)

    def selected_child(self) -> Optional[Child]:
        if self.record is None:
            return None
        return self.record.find_child(self.state.selected_child_id)

    def selected_grandchild(self) -> Optional[Grandchild]:
        child = self.selected_child()
        if child is None:
            return None
        return child.find_grandchild(self.state.selected_grandchild_id)

    def is_creating(self, tier: Tier) -> bool:
        return tier in self.state.creating

    # ==================== RECORD TRANSITIONS ====================

    def load(self, record: Record) -> Transition:
        """Route a fetch result to RECORD_CHANGED or RECORD_REFRESHED."""
        if self.record is None or self.record.id != record.id:
            self.record_changed(record)
        else:
            self.record_refreshed(record)
        return self.last_transition

    def record_changed(self, record: Record) -> None:
        """Full reset for a new active Record, then eager default resolution.

        Only this transition resolves defaults eagerly, so the first render
        already shows a Child and Grandchild instead of an empty form.
        """
        previous = self.record.id if self.record else None
        self.record = record
        self.state = self._initial_state()
        self.last_transition = Transition.RECORD_CHANGED
        logger.info(f"Record changed: {previous!r} -> {record.id!r}")

        self._eager_default_in_progress = True
        try:
            child = self._picker(self.visible_children())
            if child is not None:
                self.select_child(child.id)
                grandchild = self._picker(self.visible_grandchildren())
                if grandchild is not None:
                    self.select_grandchild(grandchild.id)
        finally:
            self._eager_default_in_progress = False
        self.last_transition = Transition.RECORD_CHANGED
        logger.debug(
            f"SELECT: eager defaults child={self.state.selected_child_id!r} "
            f"grandchild={self.state.selected_grandchild_id!r}"
        )

    def record_refreshed(self, record: Record) -> Set[Tier]:
        """Same Record, new data: keep selections that still exist.

        Returns:
            Tiers whose selection was cleared because the entity vanished.
        """
        self.record = record
        self.last_transition = Transition.RECORD_REFRESHED
        cleared = self._reconcile()
        logger.debug(f"Record refreshed: {record.id!r} cleared={sorted(t.value for t in cleared)}")
        return cleared

    # ==================== EXPLICIT SELECTION ====================

    def select_child(self, child_id: Optional[str]) -> bool:
        """Select a Child (None clears). Returns False if the id is not visible."""
        s = self.state
        if child_id is not None and child_id not in {c.id for c in self.visible_children()}:
            logger.warning(f"SELECT: child {child_id!r} is not in the visible list, ignoring")
            return False
        self.last_transition = Transition.SELECT
        if child_id == s.selected_child_id:
            return True

        s.selected_child_id = child_id
        if child_id is not None:
            s.child_auto_selected_once = True
        if not self._eager_default_in_progress:
            self._set_grandchild(None)
        # New parent: the Grandchild default may fire again for it
        s.grandchild_auto_selected_for_child_id = None
        logger.debug(f"SELECT: child={child_id!r}")
        return True

    def select_grandchild(self, grandchild_id: Optional[str]) -> bool:
        """Select a Grandchild of the selected Child (None clears)."""
        s = self.state
        if grandchild_id is not None and grandchild_id not in {g.id for g in self.visible_grandchildren()}:
            logger.warning(f"SELECT: grandchild {grandchild_id!r} is not visible under child {s.selected_child_id!r}, ignoring")
            return False
        self.last_transition = Transition.SELECT
        if grandchild_id is not None:
            s.grandchild_auto_selected_for_child_id = s.selected_child_id
        self._set_grandchild(grandchild_id)
        logger.debug(f"SELECT: grandchild={grandchild_id!r}")
        return True

    def _set_grandchild(self, grandchild_id: Optional[str]) -> None:
        # Sub-profile tab survives refreshes of the same Grandchild only
        if grandchild_id != self.state.selected_grandchild_id:
            self.state.selected_grandchild_id = grandchild_id
            self.state.active_profile = self.config.default_profile

    # ==================== NAVIGATION / AUTO-SELECT ====================

    def navigate(self, tier: Tier) -> bool:
        """Switch the active tier and run one auto-select pass.

        Returns:
            True if the pass selected something.
        """
        self.state.active_tier = tier
        self.last_transition = Transition.NAVIGATE
        logger.debug(f"NAVIGATE: tier={tier.value}")
        return self._auto_select()

    def auto_select(self) -> bool:
        """Pick defaults for the current navigation context, at most once each.

        Child: once per Record session. Grandchild: once per parent Child id.
        A selection the operator cleared on purpose is never re-filled here.
        """
        selected = self._auto_select()
        if selected:
            self.last_transition = Transition.AUTO_SELECT
        return selected

    def _auto_select(self) -> bool:
        s = self.state
        selected = False
        if s.active_tier not in (Tier.CHILD, Tier.GRANDCHILD):
            return False

        if (
            s.selected_child_id is None
            and not s.child_auto_selected_once
            and not self.is_creating(Tier.CHILD)
        ):
            child = self._picker(self.visible_children())
            if child is not None:
                self.select_child(child.id)
                selected = True
                logger.debug(f"AUTO_SELECT: child={child.id!r}")

        if (
            s.active_tier is Tier.GRANDCHILD
            and s.selected_child_id is not None
            and s.selected_grandchild_id is None
            and s.grandchild_auto_selected_for_child_id != s.selected_child_id
            and not self.is_creating(Tier.GRANDCHILD)
        ):
            grandchild = self._picker(self.visible_grandchildren())
            if grandchild is not None:
                self.select_grandchild(grandchild.id)
                selected = True
                logger.debug(f"AUTO_SELECT: grandchild={grandchild.id!r} under child={s.selected_child_id!r}")

        return selected

    # ==================== VISIBILITY ====================

    def set_include_archived(self, include_archived: bool) -> Set[Tier]:
        """Toggle archived inclusion; clear only selections that became invisible."""
        self.state.include_archived = include_archived
        self.last_transition = Transition.VISIBILITY
        cleared = self._reconcile()
        logger.debug(f"VISIBILITY: include_archived={include_archived} cleared={sorted(t.value for t in cleared)}")
        return cleared

    # ==================== CREATE MODE / PROFILE ====================

    def begin_create(self, tier: Tier) -> None:
        self.state.creating.add(tier)
        self.last_transition = Transition.CREATE

    def end_create(self, tier: Tier) -> None:
        self.state.creating.discard(tier)
        self.last_transition = Transition.CREATE

    def select_profile(self, kind: ProfileKind) -> None:
        self.state.active_profile = kind
        self.last_transition = Transition.PROFILE

    # ==================== RESTORE / ABSORB ====================

    def restore(self, selection: SelectionSnapshot) -> Set[Tier]:
        """Apply recorded selection ids and flags exactly, then reconcile."""
        s = self.state
        s.active_tier = selection.active_tier
        s.include_archived = selection.include_archived
        s.selected_child_id = selection.selected_child_id
        s.selected_grandchild_id = selection.selected_grandchild_id
        s.active_profile = selection.active_profile
        self.last_transition = Transition.RESTORE
        return self._reconcile()

    def absorb(self, tier: Tier, payload: Dict[str, Any], profile: Optional[ProfileKind] = None) -> bool:
        """Merge one entity returned by a mutation into the background data.

        Reconciled by id: if the entity is no longer selected (or no longer in
        the Record) the values are absorbed without any visible effect.

        Returns:
            True if an entity with that id was found and updated.
        """
        if self.record is None or 'id' not in payload:
            return False
        entity_id = str(payload['id'])
        if tier is Tier.RECORD:
            target = self.record if self.record.id == entity_id else None
        elif tier is Tier.CHILD:
            target = self.record.find_child(entity_id)
        else:
            target = self.record.find_grandchild(entity_id)
        if target is None:
            logger.debug(f"ABSORB: {tier.value} {entity_id!r} not in record {self.record.id!r}, dropped")
            return False

        fields = payload.get('fields')
        if fields is None:
            fields = {k: v for k, v in payload.items() if k not in _IDENTITY_KEYS}
        if profile is not None:
            target.profiles[profile] = copy.deepcopy(fields)
        else:
            target.fields = copy.deepcopy(fields)
        self.last_transition = Transition.ABSORB
        logger.debug(f"ABSORB: {tier.value} {entity_id!r} profile={profile.value if profile else None}")
        return True

    # ==================== RECONCILIATION ====================

    @staticmethod
    def _require_visible(tier: Tier, entity_id: Optional[str], visible: Sequence[Any]) -> None:
        if entity_id is not None and entity_id not in {e.id for e in visible}:
            raise ReconciliationInconsistency(tier, entity_id)

    def _reconcile(self) -> Set[Tier]:
        """Clear selections that are no longer visible, cascading downwards.

        A cleared tier gets its auto-select flag re-armed.
        """
        s = self.state
        cleared: Set[Tier] = set()
        try:
            self._require_visible(Tier.CHILD, s.selected_child_id, self.visible_children())
        except ReconciliationInconsistency as e:
            logger.debug(f"RECONCILE: {e}, clearing")
            s.selected_child_id = None
            s.child_auto_selected_once = False
            cleared.add(Tier.CHILD)
        try:
            self._require_visible(Tier.GRANDCHILD, s.selected_grandchild_id, self.visible_grandchildren())
        except ReconciliationInconsistency as e:
            logger.debug(f"RECONCILE: {e}, clearing")
            self._set_grandchild(None)
            s.grandchild_auto_selected_for_child_id = None
            cleared.add(Tier.GRANDCHILD)
        return cleared
