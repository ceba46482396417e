"""Rule-based insights, recommendations and risk flags.

Each rule is a pure function ``rule(context) -> str | None`` evaluated
against one immutable ``AnalysisContext``.  Rules run in list order and each
contributes at most one message, so output is deterministic and every rule
can be tested in isolation.  No ML, just pattern matching over the computed
report sections.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Sequence

from src.cycle_analytics.base import Cycle, Regularity
from src.cycle_analytics.config_loader import InsightConfig
from src.cycle_analytics.scoring import matches_any
from src.cycle_analytics.trends import MoodShare, SymptomTrend

logger = logging.getLogger("entrefases.cycle_analytics.insights")


@dataclass(frozen=True)
class AnalysisContext:
    """Everything the rules may look at, computed once per report."""

    cycles: tuple[Cycle, ...]
    symptoms: tuple[SymptomTrend, ...]
    moods: tuple[MoodShare, ...]
    regularity: Regularity
    health_score: int
    record_count: int
    config: InsightConfig = field(default_factory=InsightConfig)
    # Raw gaps between period starts, including those outside the cycle bounds
    gaps: tuple[int, ...] = ()


Rule = Callable[[AnalysisContext], str | None]


# ---------------------------------------------------------------------------
# Insight rules
# ---------------------------------------------------------------------------


def regularity_insight(ctx: AnalysisContext) -> str | None:
    if ctx.regularity is Regularity.very_regular:
        return "Your cycles are very regular. This points to a steady hormonal rhythm."
    if ctx.regularity is Regularity.very_irregular:
        return "Irregular cycles detected. Consider talking to a gynecologist."
    return None


def dominant_mood_insight(ctx: AnalysisContext) -> str | None:
    if not ctx.moods:
        return None
    dominant = ctx.moods[0].mood
    if dominant == "happy":
        return "Your mood was mostly positive during the analyzed period."
    if dominant == "irritated":
        return "Frequent irritability may be related to hormonal changes."
    return None


def top_symptom_insight(ctx: AnalysisContext) -> str | None:
    if not ctx.symptoms:
        return None
    top = ctx.symptoms[0]
    if top.frequency_percent > ctx.config.top_symptom_frequency_pct:
        return f"{top.name} appears in {top.frequency_percent}% of your records."
    return None


def data_volume_insight(ctx: AnalysisContext) -> str | None:
    if len(ctx.cycles) >= ctx.config.prediction_ready_cycles:
        return "You have enough cycles logged for more accurate predictions."
    return None


def keep_logging_insight(ctx: AnalysisContext) -> str | None:
    return "Keep logging daily for even more precise insights."


def unique_cycle_insight(ctx: AnalysisContext) -> str | None:
    return "Every cycle is unique, and your patterns are getting clearer."


INSIGHT_RULES: tuple[Rule, ...] = (
    regularity_insight,
    dominant_mood_insight,
    top_symptom_insight,
    data_volume_insight,
    keep_logging_insight,
    unique_cycle_insight,
)


# ---------------------------------------------------------------------------
# Recommendation rules
# ---------------------------------------------------------------------------


def consultation_recommendation(ctx: AnalysisContext) -> str | None:
    if ctx.health_score < ctx.config.low_health_score:
        return "Consider booking a medical appointment for a check-up."
    return None


def detailed_logging_recommendation(ctx: AnalysisContext) -> str | None:
    if ctx.regularity in (Regularity.irregular, Regularity.very_irregular):
        return "Keep more detailed records to help identify patterns."
    return None


def pain_management_recommendation(ctx: AnalysisContext) -> str | None:
    if any(
        matches_any(s.name, ctx.config.pain_symptoms)
        and s.frequency_percent > ctx.config.pain_frequency_pct
        for s in ctx.symptoms
    ):
        return "Pain-management techniques may help with your strongest symptoms."
    return None


def exercise_recommendation(ctx: AnalysisContext) -> str | None:
    return "Exercise regularly and keep a balanced diet."


def hydration_recommendation(ctx: AnalysisContext) -> str | None:
    return "Stay well hydrated throughout your cycle."


def sleep_recommendation(ctx: AnalysisContext) -> str | None:
    return "Prioritize 7-9 hours of quality sleep."


def supplements_recommendation(ctx: AnalysisContext) -> str | None:
    return "Ask about supplements such as magnesium and vitamin D."


RECOMMENDATION_RULES: tuple[Rule, ...] = (
    consultation_recommendation,
    detailed_logging_recommendation,
    pain_management_recommendation,
    exercise_recommendation,
    hydration_recommendation,
    sleep_recommendation,
    supplements_recommendation,
)


# ---------------------------------------------------------------------------
# Risk rules
# ---------------------------------------------------------------------------


def short_cycle_risk(ctx: AnalysisContext) -> str | None:
    if any(gap < ctx.config.short_cycle_days for gap in ctx.gaps):
        return "Very short cycles detected"
    return None


def long_cycle_risk(ctx: AnalysisContext) -> str | None:
    if any(gap > ctx.config.long_cycle_days for gap in ctx.gaps):
        return "Very long cycles detected"
    return None


def severe_symptom_risk(ctx: AnalysisContext) -> str | None:
    if any(
        matches_any(s.name, ctx.config.severe_symptoms)
        and s.frequency_percent > ctx.config.severe_frequency_pct
        for s in ctx.symptoms
    ):
        return "Frequent severe symptoms"
    return None


RISK_RULES: tuple[Rule, ...] = (
    short_cycle_risk,
    long_cycle_risk,
    severe_symptom_risk,
)


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


def evaluate(rules: Sequence[Rule], ctx: AnalysisContext, limit: int | None = None) -> list[str]:
    """Run rules in order, collecting each non-None message up to ``limit``."""
    messages: list[str] = []
    for rule in rules:
        message = rule(ctx)
        if message is not None:
            messages.append(message)
    if limit is not None:
        return messages[:limit]
    return messages


def generate_insights(ctx: AnalysisContext) -> list[str]:
    return evaluate(INSIGHT_RULES, ctx, ctx.config.max_insights)


def generate_recommendations(ctx: AnalysisContext) -> list[str]:
    return evaluate(RECOMMENDATION_RULES, ctx, ctx.config.max_recommendations)


def identify_risk_factors(ctx: AnalysisContext) -> list[str]:
    risks = evaluate(RISK_RULES, ctx)
    if risks:
        logger.info("Risk factors flagged: %s", ", ".join(risks))
    return risks
