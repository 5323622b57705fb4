"""Owner of the active inspection: applies mutations and saves through a store."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from . import state as st
from .catalog import Catalog, default_catalog
from .metrics import Metrics, compute_metrics
from .validator import InspectionValidation, VehicleValidation, validate_inspection_data, validate_vehicle_info

logger = logging.getLogger(__name__)


class SaveRejected(Exception):
    """Raised when an inspection fails validation and cannot be saved."""

    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors) or "Inspection cannot be saved")
        self.errors = list(errors)


class InspectionSession:
    def __init__(self,
                 catalog: Optional[Catalog] = None,
                 store: Any = None,
                 on_change: Optional[Callable[[st.InspectionState], None]] = None):
        self.catalog = catalog or default_catalog()
        self.store = store
        self._on_change = on_change
        self._state = st.initialize(self.catalog)
        self.inspection_id: Optional[str] = None
        self.dirty = False

    # ------------------------------------------------------------------ helpers
    def _notify(self) -> None:
        if self._on_change:
            try:
                self._on_change(self._state)
            except Exception:
                logger.exception("Inspection change listener failed")

    def _apply(self, new_state: st.InspectionState) -> st.InspectionState:
        if new_state is not self._state:
            self._state = new_state
            self.dirty = True
            self._notify()
        return self._state

    @property
    def state(self) -> st.InspectionState:
        return self._state

    # ---------------------------------------------------------------- mutations
    def update_vehicle_info(self, field_name: str, value: Any) -> st.InspectionState:
        return self._apply(st.update_vehicle_info(self._state, field_name, value))

    def evaluate_item(self, category: str, item_name: str, score: Any,
                      repair_cost: Any = 0, notes: Any = '') -> st.InspectionState:
        return self._apply(st.evaluate_item(self._state, category, item_name, score, repair_cost, notes))

    def add_image(self, category: str, item_name: str, image: Any) -> st.InspectionState:
        return self._apply(st.add_image(self._state, category, item_name, image))

    def remove_image(self, category: str, item_name: str, index: int) -> st.InspectionState:
        return self._apply(st.remove_image(self._state, category, item_name, index))

    def reset(self) -> st.InspectionState:
        self._state = st.reset(self.catalog)
        self.inspection_id = None
        self.dirty = False
        self._notify()
        return self._state

    def load(self, persisted: Any, inspection_id: Optional[str] = None) -> st.InspectionState:
        self._state = st.load(persisted, self.catalog)
        self.inspection_id = inspection_id
        self.dirty = False
        self._notify()
        return self._state

    # ------------------------------------------------------------------ derived
    @property
    def metrics(self) -> Metrics:
        return compute_metrics(self.catalog, self._state)

    @property
    def vehicle_validation(self) -> VehicleValidation:
        return validate_vehicle_info(self._state.vehicle_info)

    @property
    def inspection_validation(self) -> InspectionValidation:
        return validate_inspection_data(self._state)

    @property
    def can_save(self) -> bool:
        return self.inspection_validation.is_valid

    # -------------------------------------------------------------- persistence
    def save(self) -> str:
        """Validate and persist the current inspection, returning its id.

        An inspection that already has an id (saved earlier or opened from
        the store) is updated in place; otherwise a new record is created.
        Nothing in the session changes when validation or the store fails.
        """
        result = self.inspection_validation
        if not result.is_valid:
            raise SaveRejected(result.errors)
        if self.store is None:
            raise SaveRejected(['No inspection store configured'])
        doc = st.to_document(self._state)
        snapshot: Dict[str, Any] = self.metrics.to_dict()
        if self.inspection_id:
            saved = self.store.update(self.inspection_id, doc['vehicle_info'], doc['items'], snapshot)
        else:
            saved = self.store.save(doc['vehicle_info'], doc['items'], snapshot)
        self.inspection_id = str(saved['id'])
        self.dirty = False
        logger.info("Inspection saved as %s", self.inspection_id)
        return self.inspection_id

    def open(self, inspection_id: str) -> st.InspectionState:
        if self.store is None:
            raise SaveRejected(['No inspection store configured'])
        persisted = self.store.load(inspection_id)
        return self.load(persisted, inspection_id)
