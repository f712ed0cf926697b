"""Adaptation decisions — trend + overtraining analysis to bounded plan changes."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from pydantic import ValidationError

from app.engine.calculation import round_half_up
from app.engine.errors import InvalidInput
from app.engine.models import (
    AdaptationChanges,
    AdaptationTrigger,
    GoalIntensity,
    IntensityChange,
    MacroAdjustments,
    OvertrainingAnalysis,
    Recommendations,
    RiskLevel,
    Trend,
    WeightTrend,
    WorkoutAdjustments,
)

logger = logging.getLogger(__name__)

STAGNATION_CALORIE_INCREASE: dict[GoalIntensity, int] = {
    GoalIntensity.aggressive: 150,
    GoalIntensity.moderate: 125,
    GoalIntensity.conservative: 100,
}

RAPID_GAIN_CALORIE_DECREASE: dict[GoalIntensity, int] = {
    GoalIntensity.conservative: -150,
    GoalIntensity.moderate: -125,
    GoalIntensity.aggressive: -100,
}

CARB_ADJUSTMENT_SHARE = 0.05
OVERTRAINING_VOLUME_CHANGE = -20  # percent


def calculate_calorie_adjustment(trend: WeightTrend, goal_intensity: GoalIntensity | str) -> int:
    if not trend.has_data:
        return 0
    intensity = GoalIntensity(goal_intensity)
    if trend.is_stagnant:
        return STAGNATION_CALORIE_INCREASE[intensity]
    if trend.is_rapid_gain:
        return RAPID_GAIN_CALORIE_DECREASE[intensity]
    return 0


def calculate_macro_adjustments(trend: WeightTrend, current_carbs: float | None) -> MacroAdjustments:
    """Carbs move by 5% of the current carb target; protein and fat stay put.

    current_carbs is None when the user has no calculated targets yet.
    """
    if not trend.has_data or current_carbs is None:
        return MacroAdjustments()
    if current_carbs < 0:
        raise InvalidInput("Current carb target cannot be negative")

    step = round_half_up(current_carbs * CARB_ADJUSTMENT_SHARE)
    if trend.is_stagnant:
        return MacroAdjustments(carbs=step)
    if trend.is_rapid_gain:
        return MacroAdjustments(carbs=-step)
    return MacroAdjustments()


def calculate_workout_adjustments(overtraining: OvertrainingAnalysis, trend: WeightTrend) -> WorkoutAdjustments:
    if overtraining.overtraining_detected:
        return WorkoutAdjustments(
            volume_change=OVERTRAINING_VOLUME_CHANGE,
            intensity_change=IntensityChange.decrease,
            rest_days_added=2 if overtraining.risk_level == RiskLevel.high else 1,
        )
    if trend.classification == Trend.gaining:
        logger.debug("Steady gain, keeping current workout plan")
        return WorkoutAdjustments(intensity_change=IntensityChange.maintain)
    return WorkoutAdjustments()


def adaptation_needed(
    calorie_adjustment: int,
    macro_adjustments: MacroAdjustments,
    overtraining: OvertrainingAnalysis,
) -> bool:
    return calorie_adjustment != 0 or overtraining.overtraining_detected or macro_adjustments.any_nonzero()


def select_trigger(trend: WeightTrend, overtraining: OvertrainingAnalysis) -> AdaptationTrigger:
    """Priority: stagnation > rapid gain > overtraining > scheduled review."""
    if trend.is_stagnant:
        return AdaptationTrigger.weight_stagnation
    if trend.is_rapid_gain:
        return AdaptationTrigger.rapid_gain
    if overtraining.overtraining_detected:
        return AdaptationTrigger.overtraining
    return AdaptationTrigger.scheduled_review


def build_reasoning(trend: WeightTrend, overtraining: OvertrainingAnalysis, calorie_adjustment: int) -> str:
    """Human-readable explanation, one or two sentences per active condition."""
    parts: list[str] = []

    if trend.is_stagnant:
        parts.append(
            f"Weight has remained stable at {trend.latest_weight:.1f}kg over the past "
            f"{trend.days_between} days with minimal gain ({trend.weight_change:.2f}kg)."
        )
        parts.append(f"Increasing daily calories by {calorie_adjustment} to stimulate weight gain.")

    if trend.is_rapid_gain:
        parts.append(
            f"Weight is increasing rapidly at {trend.weekly_rate:.2f}kg per week, "
            "which exceeds the recommended rate."
        )
        # Stagnation already decided the calorie direction
        if calorie_adjustment < 0:
            parts.append(
                f"Reducing daily calories by {abs(calorie_adjustment)} to slow down weight gain "
                "and minimize fat accumulation."
            )

    if overtraining.overtraining_detected:
        parts.append(
            f"Overtraining indicators detected: {overtraining.total_workouts} workouts in 7 days "
            f"with {overtraining.high_intensity_workouts} high-intensity sessions."
        )
        parts.append(
            f"Recommending {overtraining.risk_level.value} risk mitigation: "
            "reduce workout volume by 20% and add rest days."
        )

    if not parts:
        parts.append("Progress is on track. Continue with current plan.")

    return " ".join(parts)


@dataclass(frozen=True, slots=True)
class Decision:
    """Outcome of one decision pass: validated changes, trigger and reasoning."""

    changes: AdaptationChanges
    trigger: AdaptationTrigger
    reasoning: str
    needed: bool

    @property
    def recommendations(self) -> Recommendations:
        return Recommendations(
            calorie_adjustment=self.changes.calorie_adjustment,
            macro_adjustments=self.changes.macro_adjustments,
            workout_adjustments=self.changes.workout_adjustments,
        )


def decide(
    trend: WeightTrend,
    overtraining: OvertrainingAnalysis,
    goal_intensity: GoalIntensity | str,
    current_carbs: float | None,
) -> Decision:
    """Run every adjustment rule and validate the combined change set.

    Raises InvalidInput when any value falls outside the persisted ranges.
    """
    calories = calculate_calorie_adjustment(trend, goal_intensity)
    macros = calculate_macro_adjustments(trend, current_carbs)
    workout = calculate_workout_adjustments(overtraining, trend)

    try:
        changes = AdaptationChanges(
            calorie_adjustment=calories,
            macro_adjustments=macros,
            workout_adjustments=workout,
        )
    except ValidationError as exc:
        raise InvalidInput(f"Adaptation changes out of range: {exc.errors()[0]['msg']}") from exc

    reasoning = build_reasoning(trend, overtraining, calories)
    if len(reasoning) > 1000:
        raise InvalidInput("Adaptation reasoning exceeds 1000 characters")

    needed = adaptation_needed(calories, macros, overtraining)
    logger.debug("Decision: calories=%s carbs=%s needed=%s", calories, macros.carbs, needed)
    return Decision(changes, select_trigger(trend, overtraining), reasoning, needed)
