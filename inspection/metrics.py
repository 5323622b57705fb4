from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List

from . import config
from .catalog import Catalog
from .costs import format_cost
from .state import InspectionState, ItemEvaluation


@dataclass
class CategoryMetrics:
    total_items: int = 0
    evaluated_items: int = 0
    scored_items: int = 0
    total_score: int = 0
    average_score: float = 0.0
    total_repair_cost: float = 0.0
    completion_percentage: float = 0.0

    @property
    def display_average(self) -> float:
        return round(self.average_score, 1)

    @property
    def condition(self) -> str:
        return condition_for_score(self.average_score)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_items': self.total_items,
            'evaluated_items': self.evaluated_items,
            'scored_items': self.scored_items,
            'total_score': self.total_score,
            'average_score': self.display_average,
            'total_repair_cost': self.total_repair_cost,
            'completion_percentage': round(self.completion_percentage, 1),
            'condition': self.condition,
        }


@dataclass
class Metrics:
    categories: Dict[str, CategoryMetrics] = field(default_factory=dict)
    overall: CategoryMetrics = field(default_factory=CategoryMetrics)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'categories': {name: m.to_dict() for name, m in self.categories.items()},
            'global': self.overall.to_dict(),
        }


def _summarise(evaluations: Iterable[ItemEvaluation], total_items: int) -> CategoryMetrics:
    evaluated = 0
    scored = 0
    score_sum = 0
    cost = 0.0
    for ev in evaluations:
        if ev.evaluated:
            evaluated += 1
        if ev.score > 0:
            scored += 1
            score_sum += ev.score
        cost += ev.repair_cost
    completion = 0.0
    if total_items > 0:
        completion = min(100.0, max(0.0, evaluated / total_items * 100.0))
    return CategoryMetrics(
        total_items=total_items,
        evaluated_items=evaluated,
        scored_items=scored,
        total_score=score_sum,
        average_score=score_sum / scored if scored else 0.0,
        total_repair_cost=cost,
        completion_percentage=completion,
    )


def compute_metrics(catalog: Catalog, state: InspectionState) -> Metrics:
    """Per-category and global statistics.

    Item counts come from the checklist, not from the state. Averages only
    include items with a score above zero, so an item evaluated through
    notes alone does not pull the average down. Global figures are computed
    over all items rather than averaging the category averages.
    """
    categories: Dict[str, CategoryMetrics] = {}
    everything: List[ItemEvaluation] = []
    for category in catalog.get_categories():
        items = catalog.get_category_items(category)
        evaluations = [state.evaluation(category, item.name) for item in items]
        categories[category] = _summarise(evaluations, len(items))
        everything.extend(evaluations)
    return Metrics(categories=categories, overall=_summarise(everything, len(everything)))


CONDITIONS = (
    (9.0, 'EXCELLENT'),
    (7.0, 'GOOD'),
    (5.0, 'FAIR'),
    (3.0, 'POOR'),
)


def condition_for_score(score: float) -> str:
    if not score or score <= 0:
        return 'NOT_EVALUATED'
    for threshold, name in CONDITIONS:
        if score >= threshold:
            return name
    return 'CRITICAL'


def critical_items(catalog: Catalog, state: InspectionState, threshold: int = config.CRITICAL_SCORE) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    for category, item in catalog.iter_items():
        ev = state.evaluation(category, item.name)
        if 0 < ev.score <= threshold:
            out.append({
                'number': catalog.get_item_ordinal(category, item.name),
                'category': category,
                'item': item.name,
                'score': ev.score,
                'repair_cost': ev.repair_cost,
                'notes': ev.notes,
            })
    return out


def conclusions(metrics: Metrics) -> List[str]:
    overall = metrics.overall
    out: List[str] = []
    if overall.scored_items == 0:
        out.append('No component has been scored yet.')
    elif overall.average_score >= 8:
        out.append('The vehicle is in excellent overall condition.')
    elif overall.average_score >= 6:
        out.append('The vehicle is in good condition and needs minor maintenance.')
    elif overall.average_score >= 4:
        out.append('The vehicle needs attention in several important areas.')
    else:
        out.append('The vehicle has significant problems that need urgent repair.')
    if overall.total_repair_cost > 0:
        out.append(f"Estimated total repair cost: {format_cost(overall.total_repair_cost)}")
    if overall.completion_percentage < config.MIN_COMPLETION_PERCENT:
        out.append('Complete the inspection for a more accurate report.')
    return out


def recommendations(metrics: Metrics) -> List[str]:
    overall = metrics.overall
    out: List[str] = []
    if overall.scored_items and overall.average_score < config.LOW_AVERAGE_SCORE:
        out.append('Carry out urgent repairs before using the vehicle')
    if overall.total_repair_cost > config.HIGH_REPAIR_COST:
        out.append('Consider whether the repairs justify the price of the vehicle')
    if overall.completion_percentage < config.MIN_COMPLETION_PERCENT:
        out.append('Complete the inspection for a more accurate assessment')
    for name, cat in metrics.categories.items():
        if cat.scored_items and cat.average_score < config.LOW_CATEGORY_SCORE:
            out.append(f"Prioritise repairs in category: {name}")
    if not out:
        out.append('The vehicle is in good overall condition')
    return out
