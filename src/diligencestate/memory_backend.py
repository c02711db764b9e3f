"""
In-memory data source and mutation collaborator.

Stores Record payloads (the same dict shape Record.from_dict() reads) and
serves every fetch as a fresh copy, so the engine never shares objects with
the store. Used by the tests and the example script; also a reference for
hosts writing their own collaborator.
"""
import asyncio
import copy
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from diligencestate.collection_containers import EntityKind, Record, format_timestamp
from diligencestate.errors import CollaboratorError

logger = logging.getLogger(__name__)

_PROFILE_KINDS = (EntityKind.HOSTING, EntityKind.SECURITY, EntityKind.MONITORING, EntityKind.COSTS)


class InMemoryBackend:
    """RecordDataSource + MutationCollaborator over plain dicts.

    Args:
        records: Initial Record payloads.
        latency: Seconds each call sleeps before answering. Zero still yields
            to the event loop once, so concurrent submissions interleave.
    """

    def __init__(self, records: Optional[List[Dict[str, Any]]] = None, latency: float = 0.0):
        self._records: Dict[str, Dict[str, Any]] = {}
        self.latency = latency
        self.calls: List[Tuple[str, ...]] = []
        self._failures: List[Exception] = []
        for payload in records or []:
            self.add_record(payload)

    def add_record(self, payload: Dict[str, Any]) -> None:
        record = copy.deepcopy(payload)
        for child in record.setdefault('children', []):
            child.setdefault('parentId', record['id'])
            child.setdefault('archived', False)
            for grandchild in child.setdefault('grandchildren', []):
                grandchild.setdefault('parentId', child['id'])
                grandchild.setdefault('archived', False)
                grandchild.setdefault('profiles', {})
        self._records[record['id']] = record

    def fail_next(self, error: Any = None) -> None:
        """Make the next mutation raise.

        Args:
            error: An exception, an error payload dict, or a message.
        """
        if isinstance(error, Exception):
            self._failures.append(error)
        elif isinstance(error, dict):
            self._failures.append(CollaboratorError("Mutation rejected", payload=error))
        else:
            self._failures.append(CollaboratorError(error or "Mutation rejected"))

    # ==================== READ ====================

    async def fetch_record(self, record_id: str) -> Record:
        await asyncio.sleep(self.latency)
        self.calls.append(('fetch_record', record_id))
        if record_id not in self._records:
            raise CollaboratorError(f"Record {record_id!r} not found", payload={
                'errors': [{'message': f"Record {record_id!r} not found", 'extensions': {'code': 'BAD_USER_INPUT'}}],
            })
        return Record.from_dict(copy.deepcopy(self._records[record_id]))

    def payload(self, record_id: str) -> Dict[str, Any]:
        return copy.deepcopy(self._records[record_id])

    # ==================== MUTATIONS ====================

    async def update(self, kind: EntityKind, entity_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        await self._begin('update', kind.value, entity_id)
        if kind in _PROFILE_KINDS:
            grandchild = self._find(EntityKind.GRANDCHILD, entity_id)
            profile = grandchild['profiles'].setdefault(kind.value, {})
            profile.update(copy.deepcopy(patch))
            return {'id': entity_id, 'fields': copy.deepcopy(profile)}
        entity = self._find(kind, entity_id)
        entity.setdefault('fields', {}).update(copy.deepcopy(patch))
        return {'id': entity_id, 'fields': copy.deepcopy(entity['fields'])}

    async def create(self, kind: EntityKind, parent_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        await self._begin('create', kind.value, parent_id)
        new_id = uuid.uuid4().hex[:12]
        created_at = format_timestamp(datetime.now(timezone.utc))
        if kind is EntityKind.CHILD:
            parent = self._records.get(parent_id)
            if parent is None:
                raise CollaboratorError(f"Record {parent_id!r} not found")
            entity = {'id': new_id, 'parentId': parent_id, 'createdAt': created_at,
                      'archived': False, 'fields': copy.deepcopy(fields), 'grandchildren': []}
            parent['children'].append(entity)
        elif kind is EntityKind.GRANDCHILD:
            parent = self._find(EntityKind.CHILD, parent_id)
            entity = {'id': new_id, 'parentId': parent_id, 'createdAt': created_at,
                      'archived': False, 'fields': copy.deepcopy(fields), 'profiles': {}}
            parent['grandchildren'].append(entity)
        else:
            raise CollaboratorError(f"Cannot create a {kind.value}")
        logger.debug(f"Created {kind.value} {new_id!r} under {parent_id!r}")
        return copy.deepcopy(entity)

    async def set_archived(self, kind: EntityKind, entity_id: str, archived: bool) -> None:
        await self._begin('set_archived', kind.value, entity_id, str(archived))
        self._find(kind, entity_id)['archived'] = archived

    # ==================== INTERNALS ====================

    async def _begin(self, *call: str) -> None:
        await asyncio.sleep(self.latency)
        self.calls.append(call)
        if self._failures:
            raise self._failures.pop(0)

    def _find(self, kind: EntityKind, entity_id: str) -> Dict[str, Any]:
        for record in self._records.values():
            if kind is EntityKind.RECORD and record['id'] == entity_id:
                return record
            for child in record['children']:
                if kind is EntityKind.CHILD and child['id'] == entity_id:
                    return child
                for grandchild in child['grandchildren']:
                    if kind is EntityKind.GRANDCHILD and grandchild['id'] == entity_id:
                        return grandchild
        raise CollaboratorError(f"{kind.value} {entity_id!r} not found")
