"""
Engine configuration.

A process-wide default EngineConfig is kept here; each SelectionEngine may be
given its own instance instead. Hosts call set_engine_config() once at startup.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from diligencestate.collection_containers import ProfileKind, Tier

logger = logging.getLogger(__name__)


# Fields that must be present before a save reaches the collaborator
DEFAULT_REQUIRED_FIELDS: Dict[Tier, Tuple[str, ...]] = {
    Tier.RECORD: ('name', 'business_criticality'),
    Tier.CHILD: ('name', 'main_use_case'),
    Tier.GRANDCHILD: ('env_type', 'redundancy'),
}


@dataclass(frozen=True)
class EngineConfig:
    """Behavioral knobs of the selection engine.

    Attributes:
        landing_tier: Tier shown when a Record becomes active.
        include_archived: Initial archived-visibility flag. The console shows
            archived items until the operator hides them.
        default_profile: Sub-profile tab shown when a Grandchild is first selected.
        required_fields: Per-tier presence checks run before any submission.
        language: Language used to pick lookup labels ("fr" or "en").
    """
    landing_tier: Tier = Tier.RECORD
    include_archived: bool = True
    default_profile: ProfileKind = ProfileKind.HOSTING
    required_fields: Dict[Tier, Tuple[str, ...]] = field(
        default_factory=lambda: dict(DEFAULT_REQUIRED_FIELDS)
    )
    language: str = "fr"

    def required_for(self, tier: Tier) -> Tuple[str, ...]:
        return tuple(self.required_fields.get(tier, ()))


_engine_config: Optional[EngineConfig] = None


def set_engine_config(config: EngineConfig) -> None:
    """Set the process default EngineConfig."""
    global _engine_config
    _engine_config = config
    logger.debug(f"Engine config set: landing_tier={config.landing_tier.value} include_archived={config.include_archived}")


def get_engine_config() -> EngineConfig:
    """Get the process default EngineConfig, creating the stock one on first use."""
    global _engine_config
    if _engine_config is None:
        _engine_config = EngineConfig()
    return _engine_config


def reset_engine_config() -> None:
    """Forget the process default. For testing."""
    global _engine_config
    _engine_config = None
