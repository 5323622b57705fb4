from __future__ import annotations

import datetime
import json
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from .ascii_chart import progress_bar, score_strip
from .catalog import Catalog
from .costs import format_cost
from .metrics import Metrics, conclusions, critical_items, recommendations
from .state import InspectionState, VehicleInfo


def _icon(ok: bool) -> str:
    return '✔' if ok else '✘'


def _or_na(value: Any) -> str:
    text = str(value).strip() if value is not None else ''
    return text or 'N/A'


VEHICLE_LABELS = (
    ('brand', 'Brand'),
    ('model', 'Model'),
    ('year', 'Year'),
    ('plate', 'Plate'),
    ('mileage', 'Mileage'),
    ('price', 'Price'),
    ('seller', 'Seller'),
    ('phone', 'Phone'),
    ('location', 'Location'),
)


def _vehicle_value(info: VehicleInfo, key: str) -> str:
    value = getattr(info, key, '')
    if key == 'mileage' and value.strip():
        return f"{value.strip()} km"
    if key == 'price' and value.strip():
        return format_cost(value)
    return _or_na(value)


def build_item_rows(catalog: Catalog, state: InspectionState) -> List[Dict[str, Any]]:
    rows: List[Dict[str, Any]] = []
    for category, item in catalog.iter_items():
        ev = state.evaluation(category, item.name)
        rows.append({
            'number': catalog.get_item_ordinal(category, item.name),
            'category': category,
            'item': item.name,
            'score': ev.score,
            'repair_cost': ev.repair_cost,
            'notes': ev.notes,
            'images': len(ev.images),
            'evaluated': ev.evaluated,
        })
    return rows


def format_report_text(catalog: Catalog,
                       state: InspectionState,
                       metrics: Metrics,
                       generated_at: Optional[datetime.datetime] = None) -> str:
    lines: List[str] = []
    when = generated_at or datetime.datetime.now()
    info = state.vehicle_info
    overall = metrics.overall

    section_icons: Dict[str, str] = {
        'Vehicle': '🚗',
        'Summary': '📋',
        'Categories': '🛠',
        'Critical Items': '⚠',
        'Conclusions': '📝',
        'Recommendations': '🔧',
    }

    def push_section(title: str, *, suffix: str = '', icon: str | None = None, colon: bool = True) -> None:
        label = title.rstrip(':')
        icon_char = icon if icon is not None else section_icons.get(label)
        header = f"{icon_char} {label}" if icon_char else label
        if suffix:
            header += suffix
        if colon and not header.endswith(':'):
            header += ':'
        if lines and lines[-1] != '':
            lines.append('')
        lines.append(header)

    lines.append("Vehicle Inspection Report")
    lines.append("")
    lines.append(f"Generated: {when.strftime('%Y-%m-%d %H:%M')}")
    title_bits = [b for b in (info.brand.strip(), info.model.strip(), info.plate.strip()) if b]
    if title_bits:
        lines.append(f"Vehicle: {' '.join(title_bits)}")

    push_section("Vehicle")
    for key, label in VEHICLE_LABELS:
        lines.append(f"- {label}: {_vehicle_value(info, key)}")

    push_section("Summary")
    lines.append(f"- Completion: {overall.completion_percentage:.0f}% {progress_bar(overall.completion_percentage)}")
    if overall.scored_items:
        lines.append(f"- Average score: {overall.display_average:.1f}/10")
    else:
        lines.append("- Average score: N/A")
    lines.append(f"- Items evaluated: {overall.evaluated_items}/{overall.total_items}")
    lines.append(f"- Estimated repair cost: {format_cost(overall.total_repair_cost)}")
    lines.append(f"- Condition: {overall.condition}")
    averages = [m.average_score for m in metrics.categories.values()]
    if averages:
        lines.append(f"- Score profile: |{score_strip(averages)}|")

    push_section("Categories")
    for category in catalog.get_categories():
        cat = metrics.categories.get(category)
        if cat is None:
            continue
        avg = f"{cat.display_average:.1f}/10" if cat.scored_items else 'N/A'
        lines.append("")
        lines.append(f"{category}")
        lines.append(f"  {progress_bar(cat.completion_percentage)} {cat.completion_percentage:.0f}% | "
                     f"Score: {avg} | Items: {cat.evaluated_items}/{cat.total_items} | "
                     f"Cost: {format_cost(cat.total_repair_cost)}")
        for item in catalog.get_category_items(category):
            ev = state.evaluation(category, item.name)
            if not ev.evaluated and ev.repair_cost <= 0:
                continue
            number = catalog.get_item_ordinal(category, item.name)
            score = f"{ev.score}/10" if ev.score else '-'
            line = f"  {number:>3}. {_icon(ev.score == 0 or ev.score > 3)} {item.name}: {score}"
            if ev.repair_cost > 0:
                line += f" (repair {format_cost(ev.repair_cost)})"
            if ev.images:
                line += f" [{len(ev.images)} photo{'s' if len(ev.images) != 1 else ''}]"
            lines.append(line)
            if ev.notes.strip():
                lines.append(f"       {ev.notes.strip()}")

    critical = critical_items(catalog, state)
    if critical:
        push_section("Critical Items", suffix=f" ({len(critical)})")
        for c in critical:
            lines.append(f"- #{c['number']} {c['category']} / {c['item']}: {c['score']}/10")

    push_section("Conclusions")
    for text in conclusions(metrics):
        lines.append(f"- {text}")

    push_section("Recommendations")
    for text in recommendations(metrics):
        lines.append(f"- {text}")

    return "\n".join(lines) + "\n"


def report_payload(catalog: Catalog,
                   state: InspectionState,
                   metrics: Metrics,
                   generated_at: Optional[datetime.datetime] = None) -> Dict[str, Any]:
    when = generated_at or datetime.datetime.now()
    return {
        'generated_at': when.isoformat(timespec='seconds'),
        'vehicle_info': state.vehicle_info.to_dict(),
        'metrics': metrics.to_dict(),
        'items': build_item_rows(catalog, state),
        'critical_items': critical_items(catalog, state),
        'conclusions': conclusions(metrics),
        'recommendations': recommendations(metrics),
    }


def report_file_name(vehicle_info: VehicleInfo, on_date: Optional[datetime.date] = None) -> str:
    day = (on_date or datetime.date.today()).isoformat()
    name = 'inspection'
    if vehicle_info.brand.strip() and vehicle_info.model.strip():
        name += f"_{vehicle_info.brand.strip()}_{vehicle_info.model.strip()}"
    name += f"_{vehicle_info.plate.strip() or 'vehicle'}_{day}"
    return re.sub(r"[^a-zA-Z0-9._-]", "_", name).lower()


def save_report(catalog: Catalog,
                state: InspectionState,
                metrics: Metrics,
                out_dir: Path,
                base_name: Optional[str] = None,
                to_json: bool = False,
                generated_at: Optional[datetime.datetime] = None) -> Path:
    out_dir.mkdir(parents=True, exist_ok=True)
    when = generated_at or datetime.datetime.now()
    base = base_name or report_file_name(state.vehicle_info, when.date())
    text_path = out_dir / f"{base}.txt"
    text_path.write_text(format_report_text(catalog, state, metrics, when), encoding='utf-8')
    if to_json:
        json_path = out_dir / f"{base}.json"
        json_path.write_text(json.dumps(report_payload(catalog, state, metrics, when),
                                        indent=2, ensure_ascii=False), encoding='utf-8')
    return text_path
