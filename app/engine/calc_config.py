"""Static calculation and threshold tables — no DB, config only.

CalculationConfig carries every constant used by the calculation engine
(activity factors, surplus tiers, macro ranges, input ranges). Functions in
`calculation` take it as an optional `config=` argument so tables can be
swapped in tests or tuned without touching the formulas.

TrendThresholds does the same for the trend analyzer and the progress scorer.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from app.engine.models import ActivityLevel, GoalIntensity, ProteinPreference


@dataclass(frozen=True, slots=True)
class Range:
    low: float
    high: float

    def contains(self, value: float) -> bool:
        return self.low <= value <= self.high


@dataclass(frozen=True, slots=True)
class MacroRanges:
    protein: Range = Range(0.25, 0.30)
    carbs: Range = Range(0.45, 0.55)
    fat: Range = Range(0.20, 0.30)


@dataclass(frozen=True, slots=True)
class CalculationConfig:
    activity_factors: dict[ActivityLevel, float] = field(
        default_factory=lambda: {
            ActivityLevel.sedentary: 1.2,
            ActivityLevel.light: 1.375,
            ActivityLevel.moderate: 1.55,
            ActivityLevel.very: 1.725,
            ActivityLevel.extreme: 1.9,
        }
    )
    surplus_by_intensity: dict[GoalIntensity, int] = field(
        default_factory=lambda: {
            GoalIntensity.conservative: 300,
            GoalIntensity.moderate: 400,
            GoalIntensity.aggressive: 500,
        }
    )
    # Weekly-gain goal path: daily surplus = gain * kcal_per_kg / 7, clamped
    kcal_per_kg: float = 7700.0
    weekly_gain_surplus: Range = Range(250, 750)

    max_surplus: int = 1000  # Hard ceiling above TDEE
    min_target_calories: int = 1200

    protein_per_kg: dict[ActivityLevel, float] = field(
        default_factory=lambda: {
            ActivityLevel.sedentary: 1.6,
            ActivityLevel.light: 1.8,
            ActivityLevel.moderate: 2.0,
            ActivityLevel.very: 2.2,
            ActivityLevel.extreme: 2.4,
        }
    )
    protein_preference_multiplier: dict[ProteinPreference, float] = field(
        default_factory=lambda: {
            ProteinPreference.minimum: 0.9,
            ProteinPreference.moderate: 1.0,
            ProteinPreference.high: 1.1,
        }
    )
    macro_ranges: MacroRanges = MacroRanges()
    fat_share: float = 0.25

    # Accepted input ranges
    age: Range = Range(13, 120)
    weight_kg: Range = Range(30, 300)
    height_cm: Range = Range(100, 250)
    bmr: Range = Range(500, 5000)


@dataclass(frozen=True, slots=True)
class TrendThresholds:
    stagnation_min_window_days: int = 14
    stagnation_max_change_kg: float = 0.2
    rapid_gain_weekly_kg: float = 1.0
    gaining_change_kg: float = 0.5
    losing_change_kg: float = -0.2

    # Overtraining (per analysis window)
    max_workouts: int = 6
    max_high_intensity: int = 5
    max_average_duration_min: float = 120.0
    max_consecutive_high: int = 3

    # Progress-report period summary
    period_stable_kg: float = 0.2
    period_rapid_weekly_kg: float = 1.0


DEFAULT_CALCULATION_CONFIG = CalculationConfig()
DEFAULT_TREND_THRESHOLDS = TrendThresholds()
