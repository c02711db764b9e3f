"""
CreateModeCoordinator: composing a new Child or Grandchild.

While a tier is in create mode the selection stays where it was, but the
tier's normal buffer population is suspended and the operator edits a separate
draft buffer built from field defaults.
"""
import logging
from typing import Callable, Dict, Optional

from diligencestate.collection_containers import Tier
from diligencestate.edit_buffer import EditBuffer
from diligencestate.errors import guard_error
from diligencestate.mutation import MutationOrchestrator, MutationResult
from diligencestate.reference_values import ReferenceValueService
from diligencestate.tier_selection import TierSelectionController

logger = logging.getLogger(__name__)

CREATABLE_TIERS = (Tier.CHILD, Tier.GRANDCHILD)


class CreateModeCoordinator:
    """Owns the draft buffers of tiers in create mode.

    Args:
        controller: Selection controller holding the `creating` flags.
        orchestrator: Submits the draft on commit.
        reference_values: Source of blank-buffer defaults.
        on_exit: Called with the tier when create mode ends (commit or cancel)
            so the engine can resume buffer population from the selection.
    """

    def __init__(
        self,
        controller: TierSelectionController,
        orchestrator: MutationOrchestrator,
        reference_values: ReferenceValueService,
        on_exit: Optional[Callable[[Tier], None]] = None,
    ):
        self._controller = controller
        self._orchestrator = orchestrator
        self._reference_values = reference_values
        self._on_exit = on_exit
        self.drafts: Dict[Tier, EditBuffer] = {}

    def draft(self, tier: Tier) -> Optional[EditBuffer]:
        return self.drafts.get(tier)

    def begin(self, tier: Tier) -> EditBuffer:
        """Enter create mode with a fresh draft. Re-entering discards the old draft."""
        if tier not in CREATABLE_TIERS:
            raise ValueError(f"Cannot create a {tier.value} from the editing screen")
        draft = EditBuffer(tier, entity_id=None, values=self._reference_values.blank_fields(tier))
        self.drafts[tier] = draft
        self._controller.begin_create(tier)
        logger.info(f"Create mode entered: {tier.value}")
        return draft

    async def commit(self, tier: Tier) -> MutationResult:
        """Submit the draft.

        Success leaves create mode without selecting the new entity. Failure
        keeps create mode and the draft exactly as typed.
        """
        draft = self.drafts.get(tier)
        if draft is None or not self._controller.is_creating(tier):
            return MutationResult.failed(guard_error(
                f"Not creating a {tier.value}",
                suggestion="Start a new entry first",
            ))

        result = await self._orchestrator.create(tier, draft)
        if not result.ok:
            logger.debug(f"Create {tier.value} failed, draft kept")
            return result

        created_id = result.entity.get('id') if result.entity else None
        logger.info(f"Created {tier.value} {created_id!r}; selection unchanged")
        self._exit(tier)
        return result

    def cancel_create(self, tier: Tier) -> None:
        """Drop the draft and resume normal buffer population."""
        if tier not in self.drafts and not self._controller.is_creating(tier):
            return
        logger.info(f"Create mode cancelled: {tier.value}")
        self._exit(tier)

    def _exit(self, tier: Tier) -> None:
        self.drafts.pop(tier, None)
        self._controller.end_create(tier)
        if self._on_exit is not None:
            self._on_exit(tier)
