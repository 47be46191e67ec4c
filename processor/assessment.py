"""Go/no-go assessment of a completed import run."""
from typing import Optional

from processor.models import Assessment, RunResult

THRESHOLDS = {
    'minimum_resolution_rate': 0.90,
    'minimum_validation_rate': 0.95,
    'minimum_overall_rate': 0.85,
}

RESOLUTION_RECOMMENDATION = 'Entity resolution rate below threshold. Add missing entities and update mappings.'
VALIDATION_RECOMMENDATION = 'Validation rate below threshold. Fix data quality issues in mapping process.'
OVERALL_RECOMMENDATION = 'Overall success rate below threshold. Review failed events and address issues.'


def _rate(numerator: int, denominator: int) -> Optional[float]:
    if not denominator:
        return None
    return numerator / denominator


def _below(rate: Optional[float], threshold: float) -> bool:
    return rate is not None and rate < threshold


def assess_run(result: RunResult) -> Assessment:
    """
    Compare a run's success rates against the fixed thresholds.

    Rates with a zero denominator are reported as None and do not fail
    their threshold.

    Args:
        result: Completed run counters

    Returns:
        Assessment with metrics, thresholds and one recommendation per
        violated threshold
    """
    total = result.source_events.total
    resolution_rate = _rate(result.entity_resolution.success, total)
    validation_rate = _rate(result.validation.valid, result.entity_resolution.success)
    overall_rate = _rate(result.destination_events.created, total)

    recommendations = []
    if _below(resolution_rate, THRESHOLDS['minimum_resolution_rate']):
        recommendations.append(RESOLUTION_RECOMMENDATION)
    if _below(validation_rate, THRESHOLDS['minimum_validation_rate']):
        recommendations.append(VALIDATION_RECOMMENDATION)
    if _below(overall_rate, THRESHOLDS['minimum_overall_rate']):
        recommendations.append(OVERALL_RECOMMENDATION)

    return Assessment(
        can_proceed=not recommendations,
        metrics={
            'entity_resolution_rate': resolution_rate,
            'validation_rate': validation_rate,
            'overall_success_rate': overall_rate,
            'entity_failure_count': result.entity_resolution.failure,
            'validation_failure_count': result.validation.invalid,
            'processing_failure_count': result.destination_events.failed
        },
        thresholds=dict(THRESHOLDS),
        recommendations=recommendations
    )


def _percent(rate: Optional[float]) -> str:
    return 'n/a' if rate is None else f"{rate * 100:.1f}%"


def format_assessment(assessment: Assessment) -> str:
    """Render the assessment as a short human-readable report."""
    metrics = assessment.metrics
    thresholds = assessment.thresholds
    lines = [
        f"Go/No-Go Assessment: {'GO' if assessment.can_proceed else 'NO-GO'}",
        f"- Entity Resolution Rate: {_percent(metrics['entity_resolution_rate'])} "
        f"(Threshold: {_percent(thresholds['minimum_resolution_rate'])})",
        f"- Validation Rate: {_percent(metrics['validation_rate'])} "
        f"(Threshold: {_percent(thresholds['minimum_validation_rate'])})",
        f"- Overall Success Rate: {_percent(metrics['overall_success_rate'])} "
        f"(Threshold: {_percent(thresholds['minimum_overall_rate'])})",
    ]
    for i, recommendation in enumerate(assessment.recommendations, 1):
        lines.append(f"{i}. {recommendation}")
    return '\n'.join(lines)
