from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple


class CatalogError(Exception):
    """Raised when a checklist definition is malformed."""


@dataclass(frozen=True)
class CatalogItem:
    name: str
    description: str


def _as_item(raw: Any) -> CatalogItem:
    if isinstance(raw, CatalogItem):
        return raw
    if isinstance(raw, Mapping):
        return CatalogItem(name=str(raw.get('name') or ''), description=str(raw.get('description') or ''))
    raise CatalogError(f"Unsupported checklist item: {raw!r}")


class Catalog:
    """Ordered, read-only checklist of inspection categories and their items.

    Category order and item order drive item numbering, state initialisation
    and report layout, so the structure is validated once when built.
    """

    def __init__(self, structure: Mapping[str, Sequence[Any]], validate: bool = True):
        self._categories: Dict[str, Tuple[CatalogItem, ...]] = {}
        for category, items in structure.items():
            if isinstance(items, (str, bytes)) or not isinstance(items, Sequence):
                raise CatalogError(f"Category '{category}' must be a sequence of items")
            self._categories[category] = tuple(_as_item(it) for it in items)
        self._ordinals: Dict[Tuple[str, str], int] = {}
        counter = 0
        for category, items in self._categories.items():
            for item in items:
                counter += 1
                self._ordinals.setdefault((category, item.name), counter)
        self._total = counter
        if validate:
            self.validate_structure()

    def validate_structure(self) -> None:
        if not self._categories:
            raise CatalogError("Checklist has no categories")
        for category, items in self._categories.items():
            if not isinstance(category, str) or not category.strip():
                raise CatalogError(f"Invalid category name: {category!r}")
            if not items:
                raise CatalogError(f"Category '{category}' has no items")
            seen: set[str] = set()
            for item in items:
                if not item.name.strip():
                    raise CatalogError(f"Item without a name in category '{category}'")
                if not item.description.strip():
                    raise CatalogError(f"Item '{item.name}' in '{category}' has no description")
                if item.name in seen:
                    raise CatalogError(f"Duplicate item '{item.name}' in category '{category}'")
                seen.add(item.name)

    def get_categories(self) -> List[str]:
        return list(self._categories)

    def get_category_items(self, category: str) -> List[CatalogItem]:
        return list(self._categories.get(category, ()))

    def get_item_info(self, category: str, item_name: str) -> Optional[CatalogItem]:
        for item in self._categories.get(category, ()):
            if item.name == item_name:
                return item
        return None

    def has_item(self, category: str, item_name: str) -> bool:
        return (category, item_name) in self._ordinals

    def get_total_item_count(self) -> int:
        return self._total

    def get_item_ordinal(self, category: str, item_name: str) -> Optional[int]:
        """1-based position of the item across the whole checklist."""
        return self._ordinals.get((category, item_name))

    def iter_items(self) -> Iterator[Tuple[str, CatalogItem]]:
        for category, items in self._categories.items():
            for item in items:
                yield category, item

    def __len__(self) -> int:
        return len(self._categories)

    def __contains__(self, category: object) -> bool:
        return category in self._categories


def catalog_stats(catalog: Catalog) -> Dict[str, Any]:
    by_category = {c: len(catalog.get_category_items(c)) for c in catalog.get_categories()}
    return {
        'total_categories': len(by_category),
        'total_items': catalog.get_total_item_count(),
        'items_by_category': by_category,
    }


CHECKLIST: Dict[str, List[Dict[str, str]]] = {
    'Legal Documents': [
        {'name': 'Mandatory insurance (SOAT)', 'description': 'Check the expiry date on the physical or digital document and confirm it is authentic in the national vehicle registry (RUNT).'},
        {'name': 'Technical-mechanical inspection', 'description': 'Certificate must be current with no pending observations. Confirm plate and dates match the vehicle.'},
        {'name': 'Ownership card', 'description': 'Compare plate, engine and chassis numbers with the ones stamped on the vehicle. Engine: usually on the right side of the block. Chassis: under the hood or by the driver door.'},
        {'name': 'Vehicle taxes', 'description': 'Check the local transit authority website and ask for payment receipts for the last 5 years.'},
        {'name': 'Traffic fines', 'description': 'Look up the plate in SIMIT and RUNT. Confirm there are no unpaid fines.'},
        {'name': 'RUNT history', 'description': 'Review previous owners, liens, legal limitations and theft reports in RUNT.'},
        {'name': 'Comprehensive insurance', 'description': 'If present, verify coverage, deductibles and validity. Ask whether it can be transferred to the new owner.'},
        {'name': 'Purchase invoice', 'description': 'For vehicles younger than 10 years. Check authenticity, matching data and the chain of transfers.'},
        {'name': 'Title history certificate', 'description': 'Request the complete vehicle history. Check the number of owners and how long each kept it.'},
    ],
    'Bodywork': [
        {'name': 'Even paint', 'description': 'Inspect under natural light. Tone differences between adjacent panels point to collision repaint.'},
        {'name': 'Panel gaps', 'description': 'Gaps between doors, hood and trunk must be uniform (3-5 mm). Irregular gaps indicate impacts.'},
        {'name': 'Dents or impacts', 'description': 'Check every panel from several angles and run a hand over it to feel small irregularities.'},
        {'name': 'Rust or corrosion', 'description': 'Check door bottoms, sills, wheel arches, under the trunk carpet and window frames.'},
        {'name': 'Visible welds', 'description': 'Look at panel joints, especially shock towers and chassis rails. Non-factory welds mean a serious accident.'},
        {'name': 'Glass', 'description': 'Manufacturing dates on every window should be similar. Look for cracks, chips or loose seals.'},
        {'name': 'Rubber seals', 'description': 'Doors, windows and roof seals without cracks or detachment. Poor sealing lets water in.'},
        {'name': 'Chrome and plastic trim', 'description': 'No fading, cracks or loose parts. Replacement can be expensive.'},
    ],
    'Engine': [
        {'name': 'Abnormal noises', 'description': 'At idle and under acceleration. Knocking, whistling or metallic noises mean internal problems.'},
        {'name': 'Vibrations', 'description': 'Idle must be smooth. Vibrations point to worn mounts or internal problems.'},
        {'name': 'Exhaust smoke', 'description': 'Blue burns oil, white burns coolant, black runs rich. Only water vapour is normal.'},
        {'name': 'Fluid levels', 'description': 'Engine oil, coolant, brake and steering fluid at the correct level with normal colour and consistency.'},
        {'name': 'Visible leaks', 'description': 'Under the parked vehicle: oil, coolant or fuel stains.'},
        {'name': 'Timing belt', 'description': 'If belt driven, check the replacement date. A snapped belt destroys interference engines.'},
        {'name': 'Filters', 'description': 'Air, oil and fuel filters: condition and replacement date. Dirty filters hurt performance.'},
        {'name': 'Battery', 'description': 'Correct voltage, clean terminals, no swelling or corrosion. Starts immediately.'},
        {'name': 'Cooling system', 'description': 'Radiator, hoses and electric fan without leaks or overheating.'},
        {'name': 'Starting and idle', 'description': 'Starts immediately hot and cold. Stable idle without fluctuation.'},
    ],
    'Transmission': [
        {'name': 'Gear shifting', 'description': 'Manual: engages smoothly without grinding. Automatic: imperceptible shifts without jerks.'},
        {'name': 'Transmission noise', 'description': 'No noise in neutral or while shifting. Noise means internal wear.'},
        {'name': 'Clutch (manual)', 'description': 'Correct bite point, no slipping, pedal without excessive effort.'},
        {'name': 'Oil leaks', 'description': 'Check under the gearbox. Correct level and clean oil.'},
        {'name': 'Acceleration', 'description': 'Immediate response without jerks or loss of power.'},
    ],
    'Suspension and Brakes': [
        {'name': 'Shock absorbers', 'description': 'Bounce test: must settle within 2 oscillations. No oil leaks.'},
        {'name': 'Springs', 'description': 'Even ride height without deformation. Vehicle sits level.'},
        {'name': 'Ball joints and tie rods', 'description': 'No excessive play when rocking the wheel up-down and left-right.'},
        {'name': 'Pads and discs', 'description': 'Enough pad thickness, no glazing or deep scoring on discs.'},
        {'name': 'Brake pedal', 'description': 'Firm, does not sink to the floor. Even braking without pulling to one side.'},
        {'name': 'Parking brake', 'description': 'Must hold the vehicle on a slope. Correct adjustment.'},
        {'name': 'Brake fluid', 'description': 'Correct level and light colour. No air bubbles in the system.'},
        {'name': 'Tyres', 'description': 'Even wear, at least 1.6 mm tread depth, no sidewall cracks.'},
    ],
    'Steering': [
        {'name': 'Steering wheel play', 'description': 'At most 2 cm of play before the wheels respond.'},
        {'name': 'Steering effort', 'description': 'Smooth and quiet. Must not require excessive effort.'},
        {'name': 'Steering return', 'description': 'After a turn the wheel returns to centre on its own.'},
        {'name': 'Steering wheel vibration', 'description': 'At different speeds. Vibration points to wheel balance or suspension problems.'},
        {'name': 'Noise when turning', 'description': 'Turn fully to both sides. No rack or pump noise.'},
        {'name': 'Pulling to one side', 'description': 'On a straight road loosen the grip slightly. The vehicle must hold its line.'},
        {'name': 'Alignment', 'description': 'Even tyre wear. No pulling while braking or accelerating.'},
    ],
    '4x4 System': [
        {'name': '4WD selector', 'description': 'Shift from 2H to 4H. Some require slow movement, others shift on the move. Check the owner manual.'},
        {'name': 'Dashboard indicators', 'description': 'Engaging 4WD must light the matching lamps: 4H, 4L and diff lock depending on equipment.'},
        {'name': '4H operation', 'description': 'Test on a high-grip surface. No hopping or noise. Noticeably better traction under acceleration.'},
        {'name': 'Shift to 4L', 'description': 'Vehicle stopped or below 5 km/h. Firm engagement with noticeable reduction.'},
        {'name': '4L operation', 'description': 'Top speed 40 km/h. Noticeably multiplied torque without traction hops or abnormal noise.'},
        {'name': 'Return to 2WD', 'description': 'Follow the owner manual. Usually on the move from 4H to 2H. Must not stay locked in 4WD.'},
    ],
    'Interior': [
        {'name': 'Seats', 'description': 'No tears; electric and manual adjustments work.'},
        {'name': 'Instrument cluster', 'description': 'All lamps work, no error codes, accurate speedometer.'},
        {'name': 'Air conditioning', 'description': 'Cools properly, no noise, clean filters, no odours.'},
        {'name': 'Electrical systems', 'description': 'Radio, lights, power windows and central locking work.'},
        {'name': 'Carpets and upholstery', 'description': 'No excessive wear, permanent stains or damage.'},
    ],
    'Safety Equipment': [
        {'name': 'Lights', 'description': 'Low and high beam, brake, indicators, reverse and hazard lights all work.'},
        {'name': 'Horn', 'description': 'Clear and loud sound.'},
        {'name': 'Mirrors', 'description': 'No cracks, correct adjustment, electric adjustment works if fitted.'},
        {'name': 'Wipers', 'description': 'Blades without wear, motors work, wipe evenly.'},
        {'name': 'Seat belts', 'description': 'Every seat, no fraying, locking mechanism operational.'},
        {'name': 'Airbags', 'description': 'Airbag lamp must turn off after starting. No error lamp.'},
    ],
    'Test Drive': [
        {'name': 'Cold start', 'description': 'Must start on the first attempt when cold. No metallic noise, rattling or excessive smoke.'},
        {'name': 'Stable idle', 'description': 'RPM between 750 and 900 without fluctuation or abnormal vibration. Engine must not stall.'},
        {'name': 'Acceleration under load', 'description': 'Progressive, no jerks, black smoke or loss of power. Immediate throttle response.'},
        {'name': 'Shifting on the road', 'description': 'Manual: quiet and easy engagement. Automatic: smooth shifts without knocks, delays or slipping.'},
        {'name': 'Braking', 'description': 'At 40 km/h the car stops straight. Pedal firm, not spongy.'},
        {'name': 'Steering on the road', 'description': 'Centred on a straight road and self-returning after turns. No noise or vibration.'},
        {'name': 'Cabin noise and vibration', 'description': 'No creaks or engine and suspension vibrations.'},
        {'name': 'Dashboard after driving', 'description': 'No new warning lamps or faults after the drive.'},
    ],
}


@lru_cache(maxsize=1)
def default_catalog() -> Catalog:
    return Catalog(CHECKLIST)
