"""
MutationOrchestrator: the only place that talks to the mutation collaborator.

Every submission goes through the same steps:
1. guards (something to act on) - TransportError
2. local validation (pure, synchronous) - failure returns LocalValidationError
3. one collaborator call, refused while another is pending for the tier
4. success: absorb the result by id, rebase the buffer, notify the host
   failure: parse the error payload, leave the buffer exactly as typed

Errors are returned inside a MutationResult and never raised to the caller.
"""
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional, Protocol, Set

from diligencestate.collection_containers import EntityKind, ProfileKind, Record, Tier
from diligencestate.config import EngineConfig
from diligencestate.edit_buffer import EditBuffer
from diligencestate.errors import (
    LocalValidationError, MutationError, TransportError, guard_error, parse_error_payload,
)
from diligencestate.field_validation import validate_form_data
from diligencestate.tier_selection import TierSelectionController

logger = logging.getLogger(__name__)


class MutationCollaborator(Protocol):
    """Persistence boundary. Implementations raise on failure."""

    async def update(self, kind: EntityKind, entity_id: str, patch: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        ...

    async def create(self, kind: EntityKind, parent_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        ...

    async def set_archived(self, kind: EntityKind, entity_id: str, archived: bool) -> None:
        ...


@dataclass
class MutationResult:
    """Outcome of one submission: the updated entity or a structured error."""
    entity: Optional[Dict[str, Any]] = None
    error: Optional[MutationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failed(cls, error: MutationError) -> 'MutationResult':
        return cls(error=error)


class MutationOrchestrator:
    """Validates, submits and interprets mutations for one active Record.

    Args:
        collaborator: Mutation collaborator (update/create/set_archived).
        controller: Selection controller of the same engine.
        config: Engine configuration (required fields).
        on_committed: Called with (buffer key, entity id) after a successful
            save so the engine can rebase the snapshot.
        refresh: Coroutine function that fetches and loads the Record; awaited
            after archive/unarchive. None disables archiving.
        on_data_changed: Host callback fired after any successful mutation.
    """

    def __init__(
        self,
        collaborator: Optional[MutationCollaborator],
        controller: TierSelectionController,
        config: EngineConfig,
        on_committed: Callable[[Hashable, str], None],
        refresh: Optional[Callable[[], Awaitable[Record]]] = None,
        on_data_changed: Optional[Callable[[], None]] = None,
    ):
        self._collaborator = collaborator
        self._controller = controller
        self._config = config
        self._on_committed = on_committed
        self._refresh = refresh
        self._on_data_changed = on_data_changed
        self._pending: Set[Hashable] = set()
        self._unsettled = 0

    # ==================== STATE ====================

    def is_pending(self, key: Hashable) -> bool:
        return key in self._pending

    @property
    def is_settled(self) -> bool:
        """False while an archive/unarchive is waiting for its refresh."""
        return self._unsettled == 0

    def validate(self, tier: Tier, values: Dict[str, Any]) -> Optional[LocalValidationError]:
        valid, errors = validate_form_data(values, self._config.required_for(tier))
        if valid:
            return None
        return LocalValidationError(errors)

    # ==================== SUBMISSIONS ====================

    async def submit(self, tier: Tier, buffer: EditBuffer) -> MutationResult:
        """Save an existing entity from its buffer."""
        entity_id = buffer.entity_id
        if entity_id is None:
            return MutationResult.failed(guard_error(
                f"No {tier.value} selected to save",
                suggestion=f"Select a {tier.value} first",
            ))
        if tier is Tier.GRANDCHILD and self._controller.state.selected_child_id is None:
            return MutationResult.failed(guard_error(
                "No child selected for this grandchild",
                suggestion="Select a child first",
            ))

        values = buffer.get_current_values()
        error = self.validate(tier, values)
        if error is not None:
            return MutationResult.failed(error)

        result = await self._call(tier, f"update {tier.value} {entity_id!r}",
                                  "update", EntityKind.for_tier(tier), entity_id, values)
        if not result.ok:
            return result

        self._controller.absorb(tier, {'id': entity_id, 'fields': _fields_of(result.entity, values)})
        self._rebase(buffer, entity_id, values)
        self._committed(tier, entity_id)
        return result

    async def create(self, tier: Tier, buffer: EditBuffer) -> MutationResult:
        """Persist a new Child or Grandchild from a draft buffer.

        The new entity is not selected; it shows up once the host refetches.
        """
        if tier is Tier.RECORD:
            return MutationResult.failed(guard_error("Records cannot be created from the editing screen"))
        values = buffer.get_current_values()
        error = self.validate(tier, values)
        if error is not None:
            return MutationResult.failed(error)

        if tier is Tier.CHILD:
            parent_id = self._controller.record.id if self._controller.record else None
        else:
            parent_id = self._controller.state.selected_child_id
        if parent_id is None:
            return MutationResult.failed(guard_error(
                f"No parent selected for the new {tier.value}",
                suggestion="Select a child first",
            ))

        result = await self._call(tier, f"create {tier.value} under {parent_id!r}",
                                  "create", EntityKind.for_tier(tier), parent_id, values)
        if result.ok:
            self._notify_data_changed()
        return result

    async def save_profile(self, kind: ProfileKind, buffer: EditBuffer) -> MutationResult:
        """Save one sub-profile of the selected Grandchild."""
        grandchild_id = buffer.entity_id
        if grandchild_id is None:
            return MutationResult.failed(guard_error(
                "No grandchild selected for this profile",
                suggestion="Select a grandchild first",
            ))

        values = buffer.get_current_values()
        valid, errors = validate_form_data(values, ())
        if not valid:
            return MutationResult.failed(LocalValidationError(errors))

        result = await self._call(kind, f"update {kind.value} of {grandchild_id!r}",
                                  "update", EntityKind.for_profile(kind), grandchild_id, values)
        if not result.ok:
            return result

        self._controller.absorb(Tier.GRANDCHILD, {'id': grandchild_id, 'fields': _fields_of(result.entity, values)}, profile=kind)
        self._rebase(buffer, grandchild_id, values)
        self._committed(kind, grandchild_id)
        return result

    async def set_archived(self, tier: Tier, entity_id: str, archived: bool) -> MutationResult:
        """Archive/unarchive a Child or Grandchild, then await a full refresh.

        Visibility reconciliation therefore only ever sees post-archive data.
        """
        if tier is Tier.RECORD:
            return MutationResult.failed(guard_error("Records cannot be archived from the editing screen"))
        if self._refresh is None:
            return MutationResult.failed(guard_error("Archiving needs a data source to refresh from"))

        self._unsettled += 1
        try:
            verb = "archive" if archived else "unarchive"
            result = await self._call(tier, f"{verb} {tier.value} {entity_id!r}",
                                      "set_archived", EntityKind.for_tier(tier), entity_id, archived,
                                      notify=True)
            if not result.ok:
                return result
            try:
                await self._refresh()
            except Exception as e:
                parsed = parse_error_payload(e)
                logger.warning(f"Refresh after {verb} of {entity_id!r} failed: {parsed.message}")
                return MutationResult.failed(TransportError(parsed))
            return result
        finally:
            self._unsettled -= 1

    # ==================== INTERNALS ====================

    async def _call(self, key: Hashable, description: str, method_name: str, *args, notify: bool = False) -> MutationResult:
        """Run one collaborator call under the per-tier pending flag."""
        if self._collaborator is None:
            logger.warning(f"Refusing to {description}: no mutation collaborator configured")
            return MutationResult.failed(guard_error("No mutation collaborator configured"))
        if key in self._pending:
            logger.warning(f"Refusing to {description}: a submission is already pending")
            return MutationResult.failed(guard_error(
                "A submission is already in progress",
                suggestion="Wait for the current save to finish",
            ))
        self._pending.add(key)
        try:
            entity = await getattr(self._collaborator, method_name)(*args)
        except Exception as e:
            parsed = parse_error_payload(e)
            logger.warning(f"Failed to {description}: {parsed.message}")
            return MutationResult.failed(TransportError(parsed))
        finally:
            self._pending.discard(key)
        logger.info(f"Mutation ok: {description}")
        if notify:
            self._notify_data_changed()
        return MutationResult(entity=entity if isinstance(entity, dict) else None)

    def _rebase(self, buffer: EditBuffer, entity_id: str, submitted: Dict[str, Any]) -> None:
        # Response may land after the operator moved on; only touch the buffer if it still shows that entity
        if buffer.entity_id == entity_id:
            buffer.rebase(submitted)

    def _committed(self, key: Hashable, entity_id: str) -> None:
        self._on_committed(key, entity_id)
        self._notify_data_changed()

    def _notify_data_changed(self) -> None:
        if self._on_data_changed is None:
            return
        try:
            self._on_data_changed()
        except Exception as e:
            logger.warning(f"Error in on_data_changed callback: {e}")


def _fields_of(entity: Optional[Dict[str, Any]], submitted: Dict[str, Any]) -> Dict[str, Any]:
    if not entity:
        return dict(submitted)
    if 'fields' in entity:
        return dict(entity['fields'])
    return {k: v for k, v in entity.items() if k not in ('id', 'parentId', 'createdAt', 'archived')}
