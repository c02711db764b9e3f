"""
DataManagementSession: owns the engine of the active Record.

Switching the active Record never mutates an engine in place: the old engine is
closed and a new one is built, so nothing can leak from one Record's selection,
buffers or snapshot into the next.
"""
import logging
from typing import Callable, List, Optional

from diligencestate.config import EngineConfig, get_engine_config
from diligencestate.engine import RecordDataSource, SelectionEngine
from diligencestate.mutation import MutationCollaborator
from diligencestate.reference_values import ReferenceValueService

logger = logging.getLogger(__name__)


class DataManagementSession:
    """Host-side entry point of the editing screen.

    Data-changed callbacks registered here survive engine replacement; they
    fire after any successful mutation of whichever Record is active.
    """

    def __init__(
        self,
        data_source: RecordDataSource,
        mutations: Optional[MutationCollaborator] = None,
        reference_values: Optional[ReferenceValueService] = None,
        config: Optional[EngineConfig] = None,
    ):
        self._data_source = data_source
        self._mutations = mutations
        self._config = config or get_engine_config()
        self.reference_values = reference_values or ReferenceValueService(language=self._config.language)
        self._engine: Optional[SelectionEngine] = None
        self._on_data_changed_callbacks: List[Callable[[str], None]] = []

    # === Data Changed Callbacks ===

    def add_data_changed_callback(self, callback: Callable[[str], None]) -> None:
        """Subscribe to successful mutations. Callback receives the Record id."""
        if callback not in self._on_data_changed_callbacks:
            self._on_data_changed_callbacks.append(callback)

    def remove_data_changed_callback(self, callback: Callable[[str], None]) -> None:
        if callback in self._on_data_changed_callbacks:
            self._on_data_changed_callbacks.remove(callback)

    def _fire_data_changed_callbacks(self, record_id: str) -> None:
        # Bound per engine: a save finishing after a Record switch reports its own Record
        for callback in list(self._on_data_changed_callbacks):
            try:
                callback(record_id)
            except Exception as e:
                logger.warning(f"Error in data_changed callback: {e}")

    # ==================== ACTIVE RECORD ====================

    @property
    def engine(self) -> Optional[SelectionEngine]:
        return self._engine

    @property
    def active_record_id(self) -> Optional[str]:
        return self._engine.record_id if self._engine else None

    async def open_record(self, record_id: str) -> SelectionEngine:
        """Make a Record active.

        Re-opening the active Record is a refresh; any other id replaces the
        engine wholesale.
        """
        if self._engine is not None and self._engine.record_id == record_id:
            await self._engine.refresh()
            return self._engine

        record = await self._data_source.fetch_record(record_id)
        previous = self.close()
        if not self.reference_values.loaded:
            self.reference_values.load()
        self._engine = SelectionEngine(
            record,
            mutations=self._mutations,
            data_source=self._data_source,
            reference_values=self.reference_values,
            on_data_changed=lambda: self._fire_data_changed_callbacks(record_id),
            config=self._config,
        )
        logger.info(f"Session: active record {previous!r} -> {record_id!r}")
        return self._engine

    async def refresh(self) -> None:
        """Re-fetch the active Record (what hosts do after on_data_changed)."""
        if self._engine is None:
            return
        await self._engine.refresh()

    def close(self) -> Optional[str]:
        """Close the active engine. Returns the id of the Record it held."""
        if self._engine is None:
            return None
        record_id = self._engine.record_id
        self._engine.close()
        self._engine = None
        return record_id
