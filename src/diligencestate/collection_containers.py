"""
Collection containers for the Record → Child → Grandchild hierarchy.

These dataclasses carry only the identity/lifecycle attributes the selection
engine needs. Business fields stay an opaque dict owned by the host.

Why tagged containers:
- The engine reconciles by id, so id/parent_id/created_at/archived are required
  attributes, never looked up with getattr fallbacks
- Hosts hand us JSON-ish payloads; from_dict()/to_dict() are the only place
  that knows the payload key names
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional


class Tier(Enum):
    """One level of the hierarchy."""
    RECORD = "record"
    CHILD = "child"
    GRANDCHILD = "grandchild"


class ProfileKind(Enum):
    """Sub-profiles attached 1:1 to a Grandchild, each with its own save action."""
    HOSTING = "hosting"
    SECURITY = "security_profile"
    MONITORING = "monitoring"
    COSTS = "entity_cost"


class EntityKind(Enum):
    """Mutation target handed to the collaborator."""
    RECORD = "record"
    CHILD = "child"
    GRANDCHILD = "grandchild"
    HOSTING = "hosting"
    SECURITY = "security_profile"
    MONITORING = "monitoring"
    COSTS = "entity_cost"

    @classmethod
    def for_tier(cls, tier: Tier) -> 'EntityKind':
        return cls(tier.value)

    @classmethod
    def for_profile(cls, kind: ProfileKind) -> 'EntityKind':
        return cls(kind.value)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 createdAt value. None/"" mean "no timestamp"."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is timezone.utc:
        return value.isoformat().replace("+00:00", "Z")
    return value.isoformat()


@dataclass
class Grandchild:
    """Leaf tier (an environment). Owns the sub-profiles."""
    id: str
    parent_id: str
    created_at: Optional[datetime] = None
    archived: bool = False
    fields: Dict[str, Any] = field(default_factory=dict)
    profiles: Dict[ProfileKind, Dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], parent_id: Optional[str] = None) -> 'Grandchild':
        profiles = {
            ProfileKind(name): dict(values or {})
            for name, values in (data.get('profiles') or {}).items()
        }
        return cls(
            id=str(data['id']),
            parent_id=str(data.get('parentId') or parent_id),
            created_at=parse_timestamp(data.get('createdAt')),
            archived=bool(data.get('archived', False)),
            fields=dict(data.get('fields') or {}),
            profiles=profiles,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'parentId': self.parent_id,
            'createdAt': format_timestamp(self.created_at),
            'archived': self.archived,
            'fields': dict(self.fields),
            'profiles': {kind.value: dict(values) for kind, values in self.profiles.items()},
        }


@dataclass
class Child:
    """Mid tier (a solution). Owns an ordered list of Grandchildren."""
    id: str
    parent_id: str
    created_at: Optional[datetime] = None
    archived: bool = False
    fields: Dict[str, Any] = field(default_factory=dict)
    grandchildren: List[Grandchild] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], parent_id: Optional[str] = None) -> 'Child':
        child_id = str(data['id'])
        return cls(
            id=child_id,
            parent_id=str(data.get('parentId') or parent_id),
            created_at=parse_timestamp(data.get('createdAt')),
            archived=bool(data.get('archived', False)),
            fields=dict(data.get('fields') or {}),
            grandchildren=[Grandchild.from_dict(g, child_id) for g in data.get('grandchildren') or []],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'parentId': self.parent_id,
            'createdAt': format_timestamp(self.created_at),
            'archived': self.archived,
            'fields': dict(self.fields),
            'grandchildren': [g.to_dict() for g in self.grandchildren],
        }

    def find_grandchild(self, grandchild_id: Optional[str]) -> Optional[Grandchild]:
        for grandchild in self.grandchildren:
            if grandchild.id == grandchild_id:
                return grandchild
        return None

    def visible_grandchildren(self, include_archived: bool) -> List[Grandchild]:
        return [g for g in self.grandchildren if include_archived or not g.archived]


@dataclass
class Record:
    """Top-level record (an editor). Every fetch result is a full replacement."""
    id: str
    created_at: Optional[datetime] = None
    fields: Dict[str, Any] = field(default_factory=dict)
    children: List[Child] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Record':
        record_id = str(data['id'])
        return cls(
            id=record_id,
            created_at=parse_timestamp(data.get('createdAt')),
            fields=dict(data.get('fields') or {}),
            children=[Child.from_dict(c, record_id) for c in data.get('children') or []],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'createdAt': format_timestamp(self.created_at),
            'fields': dict(self.fields),
            'children': [c.to_dict() for c in self.children],
        }

    def find_child(self, child_id: Optional[str]) -> Optional[Child]:
        for child in self.children:
            if child.id == child_id:
                return child
        return None

    def find_grandchild(self, grandchild_id: Optional[str]) -> Optional[Grandchild]:
        for grandchild in self.iter_grandchildren():
            if grandchild.id == grandchild_id:
                return grandchild
        return None

    def iter_grandchildren(self) -> Iterator[Grandchild]:
        for child in self.children:
            yield from child.grandchildren

    def visible_children(self, include_archived: bool) -> List[Child]:
        return [c for c in self.children if include_archived or not c.archived]
