"""Calculation engine — body metrics to BMR, TDEE, target calories and macros.

Pure functions. Out-of-range inputs raise InvalidInput; advisory conditions
(macro percentages outside their recommended band) are reported in the
result and logged, never raised.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime

from app.config import settings
from app.engine.calc_config import DEFAULT_CALCULATION_CONFIG, CalculationConfig, Range
from app.engine.errors import InvalidInput
from app.engine.models import (
    ActivityLevel,
    CalorieLogEntry,
    CaloriePlan,
    DailyTotals,
    GoalIntensity,
    MacroAmount,
    MacroBreakdown,
    MacroRangeFlags,
    Meal,
    PlanSafety,
    ProteinPreference,
    Sex,
    UserCalculationState,
    UserProfile,
    WorkoutSet,
)

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves toward +inf (2.5 -> 3, -2.5 -> -2)."""
    return math.floor(value + 0.5)


def _round1(value: float) -> float:
    return round_half_up(value * 10) / 10


def _check_range(name: str, value: float, bounds: Range, unit: str = "") -> None:
    if value is None or not isinstance(value, (int, float)) or isinstance(value, bool):
        raise InvalidInput(f"{name} must be a number")
    if math.isnan(value) or value <= 0:
        raise InvalidInput(f"{name} must be positive")
    if not bounds.contains(value):
        raise InvalidInput(f"{name} must be between {bounds.low:g} and {bounds.high:g}{unit}")


def _coerce(enum_cls, value, name: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise InvalidInput(f"{name} must be one of: {allowed}")


# ---------------------------------------------------------------------------
# BMR / TDEE / target
# ---------------------------------------------------------------------------


def compute_bmr(
    weight_kg: float,
    height_cm: float,
    age: int,
    sex: Sex | str,
    config: CalculationConfig = DEFAULT_CALCULATION_CONFIG,
) -> float:
    """Mifflin-St Jeor BMR in kcal/day.

    male:   10*w + 6.25*h - 5*a + 5
    female: 10*w + 6.25*h - 5*a - 161
    """
    _check_range("Weight", weight_kg, config.weight_kg, " kg")
    _check_range("Height", height_cm, config.height_cm, " cm")
    _check_range("Age", age, config.age, " years")
    sex = _coerce(Sex, sex, "Sex")

    base = 10.0 * weight_kg + 6.25 * height_cm - 5.0 * age
    bmr = base + 5.0 if sex is Sex.male else base - 161.0
    logger.debug("BMR computed: weight=%s height=%s age=%s sex=%s bmr=%s", weight_kg, height_cm, age, sex.value, bmr)
    return bmr


def compute_tdee(
    bmr: float,
    activity_level: ActivityLevel | str,
    config: CalculationConfig = DEFAULT_CALCULATION_CONFIG,
) -> float:
    """TDEE = BMR x activity factor."""
    _check_range("BMR", bmr, config.bmr, " kcal")
    level = _coerce(ActivityLevel, activity_level, "Activity level")
    return bmr * config.activity_factors[level]


def surplus_for(
    goal_intensity: GoalIntensity | str,
    weekly_weight_gain: float | None = None,
    config: CalculationConfig = DEFAULT_CALCULATION_CONFIG,
) -> int:
    """Daily calorie surplus from an intensity tier or an explicit weekly gain goal."""
    intensity = _coerce(GoalIntensity, goal_intensity, "Goal intensity")
    if weekly_weight_gain is None:
        return config.surplus_by_intensity[intensity]
    if weekly_weight_gain <= 0:
        raise InvalidInput("Weekly weight gain must be positive")
    surplus = round_half_up(weekly_weight_gain * config.kcal_per_kg / 7)
    bounds = config.weekly_gain_surplus
    return int(min(max(surplus, bounds.low), bounds.high))


def compute_target_calories(
    tdee: float,
    goal_intensity: GoalIntensity | str,
    weekly_weight_gain: float | None = None,
    config: CalculationConfig = DEFAULT_CALCULATION_CONFIG,
) -> int:
    """TDEE + surplus, clamped to [max(tdee, 1200), tdee + 1000]."""
    if tdee is None or isinstance(tdee, bool) or not isinstance(tdee, (int, float)) or not tdee > 0:
        raise InvalidInput("TDEE must be a positive number")
    lower, upper = target_bounds(tdee, config)
    if lower > upper:
        raise InvalidInput(
            f"TDEE {tdee:.0f} is too low to satisfy the {config.min_target_calories} kcal minimum "
            f"within a {config.max_surplus} kcal surplus"
        )
    surplus = surplus_for(goal_intensity, weekly_weight_gain, config)
    target = round_half_up(tdee + surplus)
    return min(max(target, lower), upper)


def target_bounds(tdee: float, config: CalculationConfig = DEFAULT_CALCULATION_CONFIG) -> tuple[int, int]:
    """Integer bounds that keep tdee <= target <= tdee + max_surplus and target >= minimum."""
    lower = max(math.ceil(tdee), config.min_target_calories)
    upper = math.floor(tdee) + config.max_surplus
    return lower, upper


# ---------------------------------------------------------------------------
# Macros
# ---------------------------------------------------------------------------


def compute_macro_targets(
    total_calories: float,
    body_weight_kg: float,
    activity_level: ActivityLevel | str = ActivityLevel.moderate,
    protein_preference: ProteinPreference | str = ProteinPreference.moderate,
    config: CalculationConfig = DEFAULT_CALCULATION_CONFIG,
) -> MacroBreakdown:
    """Split total calories into protein / carbs / fat grams.

    Protein: body weight x g/kg for the activity level x preference multiplier,
    then re-clamped so protein calories sit inside the protein range.
    Fat: fixed share of calories / 9. Carbs: remaining calories / 4.
    """
    if total_calories is None or isinstance(total_calories, bool) or not total_calories > 0:
        raise InvalidInput("Total calories must be positive")
    if total_calories > 10000:
        raise InvalidInput("Total calories cannot exceed 10,000")
    if body_weight_kg is None or isinstance(body_weight_kg, bool) or not body_weight_kg > 0:
        raise InvalidInput("Body weight must be positive")
    if body_weight_kg > 500:
        raise InvalidInput("Body weight cannot exceed 500 kg")
    level = _coerce(ActivityLevel, activity_level, "Activity level")
    preference = _coerce(ProteinPreference, protein_preference, "Protein preference")
    ranges = config.macro_ranges

    protein_g = body_weight_kg * config.protein_per_kg[level] * config.protein_preference_multiplier[preference]
    protein_share = protein_g * 4 / total_calories
    if protein_share < ranges.protein.low:
        protein_g = total_calories * ranges.protein.low / 4
    elif protein_share > ranges.protein.high:
        protein_g = total_calories * ranges.protein.high / 4

    protein_kcal = protein_g * 4
    protein_share = protein_kcal / total_calories

    fat_share = config.fat_share
    fat_kcal = total_calories * fat_share
    fat_g = fat_kcal / 9

    carb_kcal = total_calories - protein_kcal - fat_kcal
    carb_g = carb_kcal / 4
    carb_share = carb_kcal / total_calories

    flags = MacroRangeFlags(
        protein=ranges.protein.contains(protein_share),
        carbs=ranges.carbs.contains(carb_share),
        fat=ranges.fat.contains(fat_share),
    )
    if not flags.carbs:
        logger.warning(
            "Carb share %.3f outside recommended range %.2f-%.2f", carb_share, ranges.carbs.low, ranges.carbs.high
        )

    total_macro_kcal = protein_kcal + carb_kcal + fat_kcal
    return MacroBreakdown(
        total_calories=total_calories,
        body_weight_kg=body_weight_kg,
        activity_level=level,
        protein_preference=preference,
        protein=MacroAmount(grams=_round1(protein_g), calories=round_half_up(protein_kcal), percentage=_round1(protein_share * 100)),
        carbs=MacroAmount(grams=_round1(carb_g), calories=round_half_up(carb_kcal), percentage=_round1(carb_share * 100)),
        fat=MacroAmount(grams=_round1(fat_g), calories=round_half_up(fat_kcal), percentage=_round1(fat_share * 100)),
        within_ranges=flags,
        total_macro_calories=round_half_up(total_macro_kcal),
        calories_difference=round_half_up(total_calories - total_macro_kcal),
    )


# ---------------------------------------------------------------------------
# Full pipeline
# ---------------------------------------------------------------------------


def validate_calorie_plan(total_calories: float, bmr: float) -> PlanSafety:
    """Sanity checks on a target against BMR. Warnings only."""
    warnings: list[str] = []
    safe = True

    if total_calories < bmr:
        warnings.append("Calorie target is below BMR - weight loss expected")
        safe = False
    if total_calories > bmr * 4:
        warnings.append("Calorie target is very high - excessive fat gain likely")
        safe = False

    surplus = total_calories - bmr
    if surplus > 1000:
        warnings.append("Daily surplus exceeds 1000 kcal - higher fat gain risk")
        safe = False
    if surplus < 200:
        warnings.append("Daily surplus is less than 200 kcal - minimal weight gain expected")

    return PlanSafety(
        safe=safe,
        warnings=warnings,
        surplus=surplus,
        recommendation="Plan is safe and reasonable" if safe else "Review plan carefully",
    )


def compute_calorie_plan(
    profile: UserProfile,
    config: CalculationConfig = DEFAULT_CALCULATION_CONFIG,
) -> CaloriePlan:
    """BMR -> TDEE -> target calories -> macros for a user profile."""
    bmr = compute_bmr(profile.current_weight_kg, profile.height_cm, profile.age, profile.sex, config)
    tdee = compute_tdee(bmr, profile.activity_level, config)
    target = compute_target_calories(tdee, profile.goal_intensity, profile.weekly_weight_gain, config)
    macros = compute_macro_targets(
        target, profile.current_weight_kg, profile.activity_level, profile.protein_preference, config
    )
    surplus = round_half_up(target - tdee)
    safety = validate_calorie_plan(target, bmr)

    plan = CaloriePlan(
        bmr=round(bmr, 1),
        tdee=round(tdee, 1),
        activity_multiplier=config.activity_factors[profile.activity_level],
        surplus=surplus,
        target_calories=target,
        implied_weekly_gain=round(surplus * 7 / config.kcal_per_kg, 2),
        macros=macros,
        warnings=safety.warnings,
    )
    logger.debug("Calorie plan: bmr=%s tdee=%s target=%s", plan.bmr, plan.tdee, plan.target_calories)
    return plan


def calculation_state_from_plan(plan: CaloriePlan, now: datetime) -> UserCalculationState:
    return UserCalculationState(
        bmr=plan.bmr,
        tdee=plan.tdee,
        target_calories=plan.target_calories,
        macro_targets=plan.macros.as_targets(),
        last_calculated=now,
    )


# ---------------------------------------------------------------------------
# Derived log fields
# ---------------------------------------------------------------------------


def is_target_met(calories: float, target_calories: float | None, tolerance: float | None = None) -> bool:
    """A day meets target when |calories - target| <= tolerance * target."""
    if not target_calories:
        return False
    if tolerance is None:
        tolerance = settings.target_met_tolerance
    return abs(calories - target_calories) <= target_calories * tolerance


def exercise_volume(sets: list[WorkoutSet]) -> float:
    """Sum of reps x weight over completed sets."""
    return sum(s.volume for s in sets)


def sum_meals(meals: list[Meal]) -> DailyTotals:
    return DailyTotals(
        calories=sum(m.total_calories for m in meals),
        protein=sum(m.total_protein for m in meals),
        carbs=sum(m.total_carbs for m in meals),
        fat=sum(m.total_fat for m in meals),
    )


def evaluate_calorie_log(
    entry: CalorieLogEntry,
    target_calories: float | None,
    tolerance: float | None = None,
) -> CalorieLogEntry:
    """Fill the write-time fields of a calorie log.

    Daily totals are summed from meals when any are logged; otherwise the
    submitted totals stand. `target_met` is always recomputed against the
    current target and is False for a user without calculated targets.
    """
    totals = sum_meals(entry.meals) if entry.meals else entry.daily_totals
    return entry.model_copy(
        update={
            "daily_totals": totals,
            "target_met": is_target_met(totals.calories, target_calories, tolerance),
        }
    )
