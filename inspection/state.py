"""In-memory inspection record and the operations that update it.

Every operation returns a new ``InspectionState``; the previous value is
never modified, so a failed save can simply keep the last state it had.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field, fields, replace
from typing import Any, Dict, Mapping, Optional, Tuple

from . import config
from .catalog import Catalog
from .costs import parse_cost

logger = logging.getLogger(__name__)

ItemKey = Tuple[str, str]


class UnknownItemError(KeyError):
    """Raised when a mutation references an item the checklist does not define."""

    def __init__(self, category: str, item_name: str):
        super().__init__(category, item_name)
        self.category = category
        self.item_name = item_name

    def __str__(self) -> str:
        return f"Unknown checklist item '{self.item_name}' in category '{self.category}'"


@dataclass(frozen=True)
class ImageRef:
    url: str
    file_name: str = ''
    original_name: str = ''
    size: int = 0
    content_type: str = ''
    width: Optional[int] = None
    height: Optional[int] = None
    uploaded_at: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: Any) -> Optional['ImageRef']:
        if isinstance(raw, ImageRef):
            return raw
        if isinstance(raw, str):
            return cls(url=raw) if raw.strip() else None
        if not isinstance(raw, Mapping):
            return None
        url = raw.get('url') or raw.get('publicUrl') or ''
        if not isinstance(url, str) or not url.strip():
            return None

        def _int(value: Any) -> Optional[int]:
            try:
                return int(value)
            except (TypeError, ValueError, OverflowError):
                return None

        return cls(
            url=url,
            file_name=str(raw.get('file_name') or raw.get('fileName') or ''),
            original_name=str(raw.get('original_name') or raw.get('originalName') or ''),
            size=_int(raw.get('size')) or 0,
            content_type=str(raw.get('content_type') or raw.get('type') or ''),
            width=_int(raw.get('width')),
            height=_int(raw.get('height')),
            uploaded_at=str(raw.get('uploaded_at') or ''),
        )


def coerce_score(value: Any) -> int:
    """Clamp any input into the 0..10 score range; unreadable input is 0."""
    if value is None or isinstance(value, bool):
        return config.MIN_SCORE
    try:
        num = float(str(value).strip().replace(',', '.')) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return config.MIN_SCORE
    except OverflowError:
        # integers too large for a float
        return config.MAX_SCORE if value > 0 else config.MIN_SCORE
    if math.isnan(num):
        return config.MIN_SCORE
    if num <= config.MIN_SCORE:
        return config.MIN_SCORE
    if num >= config.MAX_SCORE:
        return config.MAX_SCORE
    return int(round(num))


def coerce_cost(value: Any) -> float:
    cost = parse_cost(value)
    return cost if cost > 0 else 0.0


def coerce_notes(value: Any) -> str:
    if value is None:
        return ''
    return value if isinstance(value, str) else str(value)


def is_evaluated(score: int, notes: str) -> bool:
    # Whitespace-only notes count as empty; clearing both returns an item to unevaluated.
    return score > 0 or bool(notes.strip())


@dataclass(frozen=True)
class ItemEvaluation:
    score: int = 0
    repair_cost: float = 0.0
    notes: str = ''
    images: Tuple[ImageRef, ...] = ()
    evaluated: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'score': self.score,
            'repair_cost': self.repair_cost,
            'notes': self.notes,
            'images': [img.to_dict() for img in self.images],
            'evaluated': self.evaluated,
        }

    @classmethod
    def from_dict(cls, raw: Any) -> 'ItemEvaluation':
        if not isinstance(raw, Mapping):
            return cls()
        score = coerce_score(raw.get('score'))
        cost_raw = raw.get('repair_cost', raw.get('repairCost'))
        notes = coerce_notes(raw.get('notes') or raw.get('comments') or raw.get('observations'))
        images_raw = raw.get('images')
        images = []
        if isinstance(images_raw, (list, tuple)):
            for img in images_raw:
                ref = ImageRef.from_dict(img)
                if ref is not None:
                    images.append(ref)
        return cls(
            score=score,
            repair_cost=coerce_cost(cost_raw),
            notes=notes,
            images=tuple(images),
            evaluated=is_evaluated(score, notes),
        )


@dataclass(frozen=True)
class VehicleInfo:
    brand: str = ''
    model: str = ''
    plate: str = ''
    year: str = ''
    mileage: str = ''
    price: str = ''
    seller: str = ''
    phone: str = ''
    location: str = ''

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: Any) -> 'VehicleInfo':
        if isinstance(raw, VehicleInfo):
            return raw
        if not isinstance(raw, Mapping):
            return cls()
        values: Dict[str, str] = {}
        for key, value in raw.items():
            name = resolve_vehicle_field(key)
            if name is None or value is None:
                continue
            # English keys win over legacy aliases when both are present
            if name in values and key != name:
                continue
            values[name] = value if isinstance(value, str) else str(value)
        return cls(**values)


VEHICLE_FIELDS: Tuple[str, ...] = tuple(f.name for f in fields(VehicleInfo))

VEHICLE_FIELD_ALIASES: Dict[str, str] = {
    'marca': 'brand',
    'modelo': 'model',
    'placa': 'plate',
    'ano': 'year',
    'año': 'year',
    'kilometraje': 'mileage',
    'precio': 'price',
    'vendedor': 'seller',
    'telefono': 'phone',
    'teléfono': 'phone',
    'ubicacion': 'location',
    'ubicación': 'location',
}


def resolve_vehicle_field(name: Any) -> Optional[str]:
    if not isinstance(name, str):
        return None
    key = name.strip()
    if key in VEHICLE_FIELDS:
        return key
    return VEHICLE_FIELD_ALIASES.get(key.lower())


@dataclass(frozen=True)
class InspectionState:
    vehicle_info: VehicleInfo = field(default_factory=VehicleInfo)
    items: Dict[ItemKey, ItemEvaluation] = field(default_factory=dict)

    def evaluation(self, category: str, item_name: str) -> ItemEvaluation:
        return self.items.get((category, item_name)) or ItemEvaluation()

    @property
    def evaluated_count(self) -> int:
        return sum(1 for ev in self.items.values() if ev.evaluated)


def initialize(catalog: Catalog) -> InspectionState:
    items = {(category, item.name): ItemEvaluation() for category, item in catalog.iter_items()}
    return InspectionState(vehicle_info=VehicleInfo(), items=items)


def reset(catalog: Catalog) -> InspectionState:
    return initialize(catalog)


def _first(doc: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in doc and doc[key] is not None:
            return doc[key]
    return None


def load(persisted: Any, catalog: Catalog) -> InspectionState:
    """Build a state from a persisted document, tolerating stale or partial data."""
    doc = persisted if isinstance(persisted, Mapping) else {}
    vehicle = VehicleInfo.from_dict(_first(doc, 'vehicle_info', 'vehicleInfo'))
    items_raw = _first(doc, 'items', 'inspection_data', 'inspectionData')
    if not isinstance(items_raw, Mapping):
        items_raw = {}

    items: Dict[ItemKey, ItemEvaluation] = {}
    for category, item in catalog.iter_items():
        cat_raw = items_raw.get(category)
        raw = cat_raw.get(item.name) if isinstance(cat_raw, Mapping) else None
        items[(category, item.name)] = ItemEvaluation.from_dict(raw)

    dropped = 0
    for category, cat_raw in items_raw.items():
        if not isinstance(cat_raw, Mapping):
            continue
        for item_name in cat_raw:
            if not catalog.has_item(category, item_name):
                dropped += 1
    if dropped:
        logger.debug("Dropped %d persisted items not present in the checklist", dropped)
    return InspectionState(vehicle_info=vehicle, items=items)


def to_document(state: InspectionState) -> Dict[str, Any]:
    """Nested category -> item -> evaluation document used for persistence."""
    nested: Dict[str, Dict[str, Any]] = {}
    for (category, item_name), ev in state.items.items():
        nested.setdefault(category, {})[item_name] = ev.to_dict()
    return {'vehicle_info': state.vehicle_info.to_dict(), 'items': nested}


def get_evaluation(state: InspectionState, category: str, item_name: str) -> ItemEvaluation:
    return state.evaluation(category, item_name)


def _require(state: InspectionState, category: str, item_name: str) -> ItemEvaluation:
    key = (category, item_name)
    if key not in state.items:
        raise UnknownItemError(category, item_name)
    return state.items[key]


def _with_item(state: InspectionState, category: str, item_name: str, ev: ItemEvaluation) -> InspectionState:
    items = dict(state.items)
    items[(category, item_name)] = ev
    return replace(state, items=items)


def update_vehicle_info(state: InspectionState, field_name: str, value: Any) -> InspectionState:
    name = resolve_vehicle_field(field_name)
    if name is None:
        logger.warning("Ignoring unknown vehicle field %r", field_name)
        return state
    text = '' if value is None else (value if isinstance(value, str) else str(value))
    return replace(state, vehicle_info=replace(state.vehicle_info, **{name: text}))


def evaluate_item(state: InspectionState,
                  category: str,
                  item_name: str,
                  score: Any,
                  repair_cost: Any = 0,
                  notes: Any = '') -> InspectionState:
    current = _require(state, category, item_name)
    new_score = coerce_score(score)
    new_notes = coerce_notes(notes)
    ev = replace(
        current,
        score=new_score,
        repair_cost=coerce_cost(repair_cost),
        notes=new_notes,
        evaluated=is_evaluated(new_score, new_notes),
    )
    return _with_item(state, category, item_name, ev)


def add_image(state: InspectionState, category: str, item_name: str, image: Any) -> InspectionState:
    current = _require(state, category, item_name)
    ref = ImageRef.from_dict(image)
    if ref is None:
        logger.warning("Ignoring image without URL for %s / %s", category, item_name)
        return state
    if len(current.images) >= config.MAX_IMAGES_PER_ITEM:
        logger.warning("Item %s / %s already has %d images; ignoring %s",
                       category, item_name, len(current.images), ref.url)
        return state
    return _with_item(state, category, item_name, replace(current, images=current.images + (ref,)))


def remove_image(state: InspectionState, category: str, item_name: str, index: int) -> InspectionState:
    current = _require(state, category, item_name)
    if not isinstance(index, int) or index < 0 or index >= len(current.images):
        return state
    images = current.images[:index] + current.images[index + 1:]
    return _with_item(state, category, item_name, replace(current, images=images))
