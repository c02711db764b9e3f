"""
Reference values (lookups) and blank-buffer defaults.

Lookups are enumerations maintained by administrators (solution types,
criticality levels, redundancy levels, ...). They are loaded by an external
provider; when the provider is missing, fails, or returns nothing for a key,
the hard-coded fallbacks below are used instead.
"""
import copy
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

from diligencestate.collection_containers import ProfileKind, Tier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LookupValue:
    code: str
    label: str


class ReferenceValueProvider(Protocol):
    def get_lookups(self, lang: str) -> Dict[str, List[Dict[str, Any]]]:
        """Return raw lookup entries keyed by lookup key."""
        ...


def _fallback(*codes: str) -> List[LookupValue]:
    return [LookupValue(code=code, label=code) for code in codes]


FALLBACK_LOOKUPS: Dict[str, List[LookupValue]] = {
    'businessCriticality': _fallback('Low', 'Medium', 'High', 'Critical'),
    'editorSize': _fallback('Micro', 'SME', 'Mid', 'Enterprise'),
    'solutionTypes': _fallback('SaaS', 'OnPrem', 'Hybrid', 'ClientHeavy'),
    'environmentTypes': _fallback('production', 'test', 'dev', 'backup'),
    'redundancyLevels': _fallback('none', 'minimal', 'geo-redundant', 'high'),
    'deploymentTypes': _fallback('monolith', 'microservices', 'hybrid'),
    'hostingTiers': _fallback('cloud', 'datacenter', 'on-premise'),
    'authTypes': _fallback('None', 'Passwords', 'MFA', 'SSO'),
    'patchingTypes': _fallback('ad_hoc', 'scheduled', 'automated'),
    'pentestFreq': _fallback('never', 'annual', 'quarterly'),
    'vulnMgmt': _fallback('none', 'manual', 'automated'),
    'monitoringStatus': _fallback('No', 'Partial', 'Yes'),
}

# (default value, lookup key or None) per field
_TIER_DEFAULTS: Dict[Tier, Dict[str, tuple]] = {
    Tier.RECORD: {
        'name': ('', None),
        'country': ('', None),
        'size': ('', None),
        'business_criticality': ('Medium', 'businessCriticality'),
    },
    Tier.CHILD: {
        'name': ('', None),
        'description': ('', None),
        'main_use_case': ('', None),
        'type': ('SaaS', 'solutionTypes'),
        'product_criticality': ('Medium', 'businessCriticality'),
    },
    Tier.GRANDCHILD: {
        'env_type': ('production', 'environmentTypes'),
        'deployment_type': ('', None),
        'redundancy': ('none', 'redundancyLevels'),
        'tech_stack': ([], None),
        'data_types': ([], None),
    },
}

_PROFILE_DEFAULTS: Dict[ProfileKind, Dict[str, tuple]] = {
    ProfileKind.HOSTING: {
        'provider': ('', None),
        'region': ('', None),
        'tier': ('cloud', 'hostingTiers'),
        'certifications': ([], None),
    },
    ProfileKind.SECURITY: {
        'auth': ('Passwords', 'authTypes'),
        'patching': ('ad_hoc', 'patchingTypes'),
        'pentest_freq': ('never', 'pentestFreq'),
        'vuln_mgmt': ('none', 'vulnMgmt'),
        'access_control': ('', None),
        'centralized_monitoring': (False, None),
    },
    ProfileKind.MONITORING: {
        'perf_monitoring': ('No', 'monitoringStatus'),
        'log_centralization': ('No', 'monitoringStatus'),
        'tools': ([], None),
        'alerting_strategy': ('', None),
    },
    ProfileKind.COSTS: {
        'hosting_monthly': (0, None),
        'licenses_monthly': (0, None),
        'ops_hours_monthly_equiv': (0, None),
        'comments': ('', None),
    },
}

# Legacy spellings still present in stored data
_VALUE_ALIASES: Dict[str, Dict[Any, Any]] = {
    'redundancy': {'geo_redundant': 'geo-redundant'},
}


def extract_lookup_values(entries: List[Dict[str, Any]], lang: str = "fr") -> List[LookupValue]:
    """Active entries sorted by 'order', labelled in the requested language."""
    active = [e for e in entries or [] if e.get('active') is not False]
    active.sort(key=lambda e: e.get('order') or 0)
    values = []
    for entry in active:
        label = entry.get('label') or entry['code']
        localized = entry.get(f'label_{lang}')
        if localized:
            label = localized
        values.append(LookupValue(code=entry['code'], label=label))
    return values


def normalize_values(values: Dict[str, Any]) -> Dict[str, Any]:
    """Map legacy spellings to their canonical form."""
    normalized = dict(values)
    for field_name, aliases in _VALUE_ALIASES.items():
        value = normalized.get(field_name)
        if isinstance(value, str) and value in aliases:
            normalized[field_name] = aliases[value]
    return normalized


class ReferenceValueService:
    """Lookup access with hard-coded fallbacks, and blank buffers built from it."""

    def __init__(self, provider: Optional[ReferenceValueProvider] = None, language: str = "fr"):
        self._provider = provider
        self.language = language
        self._lookups: Dict[str, List[LookupValue]] = {}
        self.loaded = False

    def load(self) -> bool:
        """Fetch lookups from the provider. Returns False if it was unavailable."""
        if self._provider is None:
            return False
        try:
            raw = self._provider.get_lookups(self.language)
        except Exception as e:
            logger.warning(f"Reference values unavailable, using fallbacks: {e}")
            return False
        self.update(raw or {})
        return True

    def update(self, raw: Dict[str, List[Dict[str, Any]]]) -> None:
        """Install raw lookup entries (e.g. pushed by the host after its own fetch)."""
        self._lookups = {key: extract_lookup_values(entries, self.language) for key, entries in raw.items()}
        self.loaded = True
        logger.debug(f"Loaded {len(self._lookups)} lookup keys ({self.language})")

    def values(self, key: str) -> List[LookupValue]:
        loaded = self._lookups.get(key)
        if loaded:
            return list(loaded)
        return list(FALLBACK_LOOKUPS.get(key, []))

    def codes(self, key: str) -> List[str]:
        return [v.code for v in self.values(key)]

    def default_for(self, key: Optional[str], fallback: Any) -> Any:
        """Hard-coded default unless loaded lookups no longer offer it."""
        if key is None or key not in self._lookups or not self._lookups[key]:
            return copy.deepcopy(fallback)
        codes = [v.code for v in self._lookups[key]]
        return fallback if fallback in codes else codes[0]

    def blank_fields(self, tier: Tier) -> Dict[str, Any]:
        return self._blank(_TIER_DEFAULTS[tier])

    def blank_profile(self, kind: ProfileKind) -> Dict[str, Any]:
        return self._blank(_PROFILE_DEFAULTS[kind])

    def _blank(self, defaults: Dict[str, tuple]) -> Dict[str, Any]:
        return {name: self.default_for(key, default) for name, (default, key) in defaults.items()}

    def canonical_fields(self, tier: Tier, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Buffer values for an entity: blank defaults overlaid with its fields.

        None or "" stored values fall back to the default, the way the edit
        forms have always pre-filled them.
        """
        return self._overlay(self.blank_fields(tier), fields)

    def canonical_profile(self, kind: ProfileKind, fields: Dict[str, Any]) -> Dict[str, Any]:
        return self._overlay(self.blank_profile(kind), fields)

    @staticmethod
    def _overlay(blank: Dict[str, Any], fields: Dict[str, Any]) -> Dict[str, Any]:
        values = dict(blank)
        for name, value in fields.items():
            if value in (None, '') and name in blank:
                continue
            values[name] = copy.deepcopy(value)
        return normalize_values(values)
