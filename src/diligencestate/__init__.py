"""
Cascading selection and reconciliation engine for due-diligence data editing.

Keeps a three-tier hierarchy (Record → Child → Grandchild) and its edit buffers
consistent across operator navigation, background refreshes triggered by the
Record's own mutations, and transient create modes, without losing unsaved
edits or re-triggering unwanted auto-selection.

Key Features:
- Explicit finite-state machine over one SelectionState per Record
- Deterministic default picking (earliest-created, id tie-break)
- Edit buffers that tell "entity changed" from "entity refreshed"
- One live rollback snapshot per Record (Cancel)
- Create mode with separate draft buffers
- Mutation orchestration: local validation, per-tier pending guard,
  structured error parsing, archive-then-refresh

Quick Start:
    >>> from diligencestate import DataManagementSession, InMemoryBackend, Tier
    >>> backend = InMemoryBackend([record_payload])
    >>> session = DataManagementSession(backend, mutations=backend)
    >>> engine = asyncio.run(session.open_record("R"))
    >>> engine.navigate(Tier.CHILD)
    >>> engine.update_field(Tier.CHILD, "name", "Billing")
    >>> result = asyncio.run(engine.save(Tier.CHILD))

Modules:
    - collection_containers: Record / Child / Grandchild containers and enums
    - default_picker: pick_default()
    - tier_selection: TierSelectionController (named transitions)
    - edit_buffer: EditBuffer and EditBufferSynchronizer
    - snapshot_model: Snapshot dataclasses and SnapshotStore
    - create_mode: CreateModeCoordinator
    - mutation: MutationOrchestrator
    - field_validation: Presence and shape checks
    - errors: Error taxonomy and collaborator error parsing
    - reference_values: Lookups and blank-buffer defaults
    - config: EngineConfig
    - engine: SelectionEngine (per-Record facade)
    - session: DataManagementSession (owns the active engine)
    - memory_backend: In-memory data source and collaborator
"""

# Containers
from diligencestate.collection_containers import (
    Tier,
    ProfileKind,
    EntityKind,
    Record,
    Child,
    Grandchild,
)

# Configuration
from diligencestate.config import (
    EngineConfig,
    set_engine_config,
    get_engine_config,
    reset_engine_config,
)

# Errors
from diligencestate.errors import (
    ParsedError,
    MutationError,
    LocalValidationError,
    TransportError,
    ReconciliationInconsistency,
    CollaboratorError,
    parse_error_payload,
)

# Selection
from diligencestate.default_picker import pick_default
from diligencestate.tier_selection import SelectionState, TierSelectionController, Transition

# Buffers and snapshots
from diligencestate.edit_buffer import EditBuffer, EditBufferSynchronizer, SyncOutcome
from diligencestate.snapshot_model import BufferSnapshot, SelectionSnapshot, EngineSnapshot, SnapshotStore

# Validation and reference values
from diligencestate.field_validation import is_empty_value, validate_form_data
from diligencestate.reference_values import LookupValue, ReferenceValueProvider, ReferenceValueService

# Mutations
from diligencestate.mutation import MutationCollaborator, MutationOrchestrator, MutationResult
from diligencestate.create_mode import CreateModeCoordinator

# Engine
from diligencestate.engine import RecordDataSource, SelectionEngine
from diligencestate.session import DataManagementSession
from diligencestate.memory_backend import InMemoryBackend

__all__ = [
    # Containers
    'Tier',
    'ProfileKind',
    'EntityKind',
    'Record',
    'Child',
    'Grandchild',
    # Configuration
    'EngineConfig',
    'set_engine_config',
    'get_engine_config',
    'reset_engine_config',
    # Errors
    'ParsedError',
    'MutationError',
    'LocalValidationError',
    'TransportError',
    'ReconciliationInconsistency',
    'CollaboratorError',
    'parse_error_payload',
    # Selection
    'pick_default',
    'SelectionState',
    'TierSelectionController',
    'Transition',
    # Buffers and snapshots
    'EditBuffer',
    'EditBufferSynchronizer',
    'SyncOutcome',
    'BufferSnapshot',
    'SelectionSnapshot',
    'EngineSnapshot',
    'SnapshotStore',
    # Validation and reference values
    'is_empty_value',
    'validate_form_data',
    'LookupValue',
    'ReferenceValueProvider',
    'ReferenceValueService',
    # Mutations
    'MutationCollaborator',
    'MutationOrchestrator',
    'MutationResult',
    'CreateModeCoordinator',
    # Engine
    'RecordDataSource',
    'SelectionEngine',
    'DataManagementSession',
    'InMemoryBackend',
]

__version__ = '1.0.0'
__description__ = 'Cascading selection and reconciliation engine for due-diligence data editing'
