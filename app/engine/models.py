"""Engine contract — Pydantic v2 models."""

from __future__ import annotations

import uuid
from datetime import date as DateType, datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator


class Sex(str, Enum):
    male = "male"
    female = "female"


class ActivityLevel(str, Enum):
    sedentary = "sedentary"
    light = "light"
    moderate = "moderate"
    very = "very"
    extreme = "extreme"


class GoalIntensity(str, Enum):
    conservative = "conservative"
    moderate = "moderate"
    aggressive = "aggressive"


class ProteinPreference(str, Enum):
    minimum = "minimum"
    moderate = "moderate"
    high = "high"


class WorkoutIntensity(str, Enum):
    light = "light"
    moderate = "moderate"
    high = "high"


class WorkoutPlan(str, Enum):
    full_body = "full-body"
    upper_lower = "upper-lower"
    push_pull_legs = "push-pull-legs"


class TrendDirection(str, Enum):
    gaining = "gaining"
    losing = "losing"
    stable = "stable"


class Trend(str, Enum):
    stagnant = "stagnant"
    rapid_gain = "rapid_gain"
    gaining = "gaining"
    losing = "losing"
    stable = "stable"


class PeriodTrend(str, Enum):
    insufficient_data = "insufficient_data"
    stable = "stable"
    gaining = "gaining"
    rapid_gain = "rapid_gain"
    losing = "losing"
    rapid_loss = "rapid_loss"


class RiskLevel(str, Enum):
    low = "low"
    moderate = "moderate"
    high = "high"


class AdaptationTrigger(str, Enum):
    weight_stagnation = "weight_stagnation"
    rapid_gain = "rapid_gain"
    overtraining = "overtraining"
    plateau = "plateau"
    user_request = "user_request"
    scheduled_review = "scheduled_review"


class IntensityChange(str, Enum):
    increase = "increase"
    decrease = "decrease"
    maintain = "maintain"


class Severity(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class ReportPeriod(str, Enum):
    weekly = "weekly"
    monthly = "monthly"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# User & calculation state
# ---------------------------------------------------------------------------


class MacroTargets(BaseModel):
    protein: float = Field(default=0.0, ge=0)
    carbs: float = Field(default=0.0, ge=0)
    fat: float = Field(default=0.0, ge=0)


class UserCalculationState(BaseModel):
    bmr: float
    tdee: float
    target_calories: int = Field(ge=1200)
    macro_targets: MacroTargets = Field(default_factory=MacroTargets)
    last_calculated: datetime | None = None


class UserProfile(BaseModel):
    age: int = Field(ge=13, le=120)
    sex: Sex
    height_cm: float = Field(ge=100, le=250)
    current_weight_kg: float = Field(ge=30, le=300)
    activity_level: ActivityLevel = ActivityLevel.moderate
    goal_intensity: GoalIntensity = GoalIntensity.moderate
    protein_preference: ProteinPreference = ProteinPreference.moderate
    weekly_weight_gain: float | None = Field(default=None, ge=0.1, le=2.0)


class UserRecord(BaseModel):
    id: str
    profile: UserProfile
    calculations: UserCalculationState | None = None


# ---------------------------------------------------------------------------
# Logs
# ---------------------------------------------------------------------------


class Measurements(BaseModel):
    chest: float | None = Field(default=None, ge=50, le=200)
    waist: float | None = Field(default=None, ge=40, le=200)
    arms: float | None = Field(default=None, ge=15, le=80)
    thighs: float | None = Field(default=None, ge=30, le=100)


class BodyStatsEntry(BaseModel):
    user_id: str = ""
    date: DateType
    weight: float = Field(ge=30, le=300)
    body_fat: float | None = Field(default=None, ge=3, le=50)
    measurements: Measurements | None = None


class DailyTotals(BaseModel):
    calories: float = Field(default=0.0, ge=0)
    protein: float = Field(default=0.0, ge=0)
    carbs: float = Field(default=0.0, ge=0)
    fat: float = Field(default=0.0, ge=0)


class Meal(BaseModel):
    name: str  # "breakfast" | "lunch" | "dinner" | "snack"
    total_calories: float = Field(default=0.0, ge=0)
    total_protein: float = Field(default=0.0, ge=0)
    total_carbs: float = Field(default=0.0, ge=0)
    total_fat: float = Field(default=0.0, ge=0)


class CalorieLogEntry(BaseModel):
    user_id: str = ""
    date: DateType
    meals: list[Meal] = Field(default_factory=list)
    daily_totals: DailyTotals = Field(default_factory=DailyTotals)
    target_met: bool = False


class WorkoutSet(BaseModel):
    reps: int = Field(ge=1, le=100)
    weight: float = Field(ge=0, le=500)
    completed: bool = True

    @property
    def volume(self) -> float:
        return self.reps * self.weight if self.completed else 0.0


class Exercise(BaseModel):
    name: str
    sets: list[WorkoutSet] = Field(default_factory=list)
    total_volume: float = Field(default=0.0, ge=0)
    personal_record: bool = False

    @model_validator(mode="after")
    def _derive_total_volume(self) -> Exercise:
        # Logged sets are authoritative; a bare total is kept for set-less rows
        if self.sets:
            self.total_volume = sum(s.volume for s in self.sets)
        return self


class WorkoutLogEntry(BaseModel):
    user_id: str = ""
    date: DateType
    plan: WorkoutPlan = WorkoutPlan.full_body
    exercises: list[Exercise] = Field(default_factory=list)
    duration: float = Field(ge=5, le=300)  # minutes
    intensity: WorkoutIntensity


# ---------------------------------------------------------------------------
# Adaptation records
# ---------------------------------------------------------------------------


class MacroAdjustments(BaseModel):
    protein: int = 0
    carbs: int = 0
    fat: int = 0

    def any_nonzero(self) -> bool:
        return any(v != 0 for v in (self.protein, self.carbs, self.fat))


class WorkoutAdjustments(BaseModel):
    volume_change: int = Field(default=0, ge=-50, le=50)  # percent
    intensity_change: IntensityChange = IntensityChange.maintain
    rest_days_added: int = Field(default=0, ge=0, le=7)


class AdaptationChanges(BaseModel):
    calorie_adjustment: int = Field(ge=-500, le=500)
    macro_adjustments: MacroAdjustments = Field(default_factory=MacroAdjustments)
    workout_adjustments: WorkoutAdjustments = Field(default_factory=WorkoutAdjustments)


class AdaptationResults(BaseModel):
    weight_change_after: float | None = None
    performance_change_after: float | None = None
    user_satisfaction: int | None = Field(default=None, ge=1, le=5)
    evaluation_date: datetime | None = None


class AdaptationRecord(BaseModel):
    """Immutable adaptation value. Application happens in the ledger."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    date: datetime = Field(default_factory=_utcnow)
    trigger: AdaptationTrigger
    changes: AdaptationChanges
    reasoning: str = Field(min_length=1, max_length=1000)
    effective_date: datetime
    applied: bool = False
    applied_at: datetime | None = None
    results: AdaptationResults | None = None

    @model_validator(mode="after")
    def _effective_not_before_date(self) -> AdaptationRecord:
        if self.effective_date < self.date:
            raise ValueError("effective_date cannot be before the adaptation date")
        return self

    def summary(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date,
            "trigger": self.trigger,
            "calorie_change": self.changes.calorie_adjustment,
            "macro_changes": self.changes.macro_adjustments,
            "workout_changes": self.changes.workout_adjustments,
            "reasoning": self.reasoning,
            "applied": self.applied,
            "effective_date": self.effective_date,
            "has_results": bool(self.results and self.results.evaluation_date),
        }


# ---------------------------------------------------------------------------
# Trend analysis
# ---------------------------------------------------------------------------


class WeightTrend(BaseModel):
    has_data: bool
    data_points: int = 0
    message: str = ""
    window_days: int = 14
    oldest_weight: float | None = None
    latest_weight: float | None = None
    weight_change: float | None = None
    days_between: int | None = None
    weekly_rate: float | None = None
    is_stagnant: bool = False
    is_rapid_gain: bool = False
    direction: TrendDirection | None = None

    @computed_field
    @property
    def classification(self) -> Trend | None:
        if not self.has_data:
            return None
        if self.is_stagnant:
            return Trend.stagnant
        if self.is_rapid_gain:
            return Trend.rapid_gain
        return Trend(self.direction.value) if self.direction else Trend.stable


class OvertrainingIndicators(BaseModel):
    high_frequency: bool = False
    excessive_high_intensity: bool = False
    long_average_duration: bool = False
    consecutive_high_intensity: bool = False

    def count(self) -> int:
        return sum(
            (
                self.high_frequency,
                self.excessive_high_intensity,
                self.long_average_duration,
                self.consecutive_high_intensity,
            )
        )


class OvertrainingAnalysis(BaseModel):
    has_data: bool
    message: str = ""
    total_workouts: int = 0
    high_intensity_workouts: int = 0
    average_duration: float = 0.0
    max_consecutive_high_intensity: int = 0
    indicators: OvertrainingIndicators = Field(default_factory=OvertrainingIndicators)
    overtraining_score: int = 0
    overtraining_detected: bool = False
    risk_level: RiskLevel = RiskLevel.low
    recommendation: str = ""


class WeightProgress(BaseModel):
    timeframe: ReportPeriod
    days: int
    data_points: int = 0
    trend: PeriodTrend = PeriodTrend.insufficient_data
    average_weight: float | None = None
    weight_change: float | None = None
    change_per_week: float | None = None
    start_weight: float | None = None
    end_weight: float | None = None
    consistency: int = 0  # percent of days with a weigh-in


# ---------------------------------------------------------------------------
# Decisions & analysis envelope
# ---------------------------------------------------------------------------


class Recommendations(BaseModel):
    calorie_adjustment: int = 0
    macro_adjustments: MacroAdjustments = Field(default_factory=MacroAdjustments)
    workout_adjustments: WorkoutAdjustments = Field(default_factory=WorkoutAdjustments)


class AdaptiveAnalysis(BaseModel):
    user_id: str
    timestamp: datetime = Field(default_factory=_utcnow)
    trend: WeightTrend
    overtraining: OvertrainingAnalysis
    recommendations: Recommendations
    adaptation_needed: bool
    trigger: AdaptationTrigger
    summary: str


# ---------------------------------------------------------------------------
# Calculation outputs
# ---------------------------------------------------------------------------


class MacroAmount(BaseModel):
    grams: float
    calories: int
    percentage: float  # percent of total calories, 1 dp


class MacroRangeFlags(BaseModel):
    protein: bool
    carbs: bool
    fat: bool


class MacroBreakdown(BaseModel):
    total_calories: float
    body_weight_kg: float
    activity_level: ActivityLevel
    protein_preference: ProteinPreference
    protein: MacroAmount
    carbs: MacroAmount
    fat: MacroAmount
    within_ranges: MacroRangeFlags
    total_macro_calories: int
    calories_difference: int

    def as_targets(self) -> MacroTargets:
        return MacroTargets(protein=self.protein.grams, carbs=self.carbs.grams, fat=self.fat.grams)


class CaloriePlan(BaseModel):
    bmr: float
    tdee: float
    activity_multiplier: float
    surplus: int
    target_calories: int
    implied_weekly_gain: float
    macros: MacroBreakdown
    warnings: list[str] = Field(default_factory=list)


class PlanSafety(BaseModel):
    safe: bool
    warnings: list[str] = Field(default_factory=list)
    surplus: float
    recommendation: str


# ---------------------------------------------------------------------------
# Progress report
# ---------------------------------------------------------------------------


class AverageMacros(BaseModel):
    protein: int = 0
    carbs: int = 0
    fat: int = 0


class CalorieMetrics(BaseModel):
    current_streak: int = 0
    longest_streak: int = 0
    days_logged: int = 0
    consistency_percentage: int = 0
    target_met_percentage: int = 0
    average_daily_calories: int = 0
    average_macros: AverageMacros = Field(default_factory=AverageMacros)
    period: str = "30 days"


class WorkoutFrequency(BaseModel):
    total_workouts: int = 0
    average_per_week: float = 0.0
    days: int = 30


class Milestone(BaseModel):
    type: str
    value: float
    unit: str
    description: str
    achieved_date: DateType
    category: str  # "progress" | "consistency" | "achievement"


class Concern(BaseModel):
    type: str
    severity: Severity
    description: str
    recommendation: str
    detected_date: DateType
    data: dict[str, Any] = Field(default_factory=dict)


class ProgressReport(BaseModel):
    period: ReportPeriod
    generated_at: datetime = Field(default_factory=_utcnow)
    progress_score: int = Field(ge=0, le=100)
    weight_progress: WeightProgress
    nutrition_metrics: CalorieMetrics
    workout_metrics: WorkoutFrequency
    milestones: list[Milestone] = Field(default_factory=list)
    concerns: list[Concern] = Field(default_factory=list)
    adaptations: list[dict[str, Any]] = Field(default_factory=list)
    summary: str = ""


class EffectivenessScore(BaseModel):
    effectiveness_score: int
    max_score: int = 5
    effectiveness: str  # "high" | "moderate" | "low"


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class WeightTrendRequest(BaseModel):
    entries: list[BodyStatsEntry]
    window_days: int = Field(default=14, ge=1, le=365)
    as_of: DateType | None = None


class OvertrainingRequest(BaseModel):
    entries: list[WorkoutLogEntry]
    window_days: int = Field(default=7, ge=1, le=365)
    as_of: DateType | None = None


class CalorieAdjustmentRequest(BaseModel):
    trend: WeightTrend
    goal_intensity: GoalIntensity = GoalIntensity.moderate


class MacroAdjustmentRequest(BaseModel):
    trend: WeightTrend
    current_carbs: float | None = None


class WorkoutAdjustmentRequest(BaseModel):
    overtraining: OvertrainingAnalysis
    trend: WeightTrend


class AdaptationResponse(BaseModel):
    analysis: AdaptiveAnalysis
    adaptation: AdaptationRecord | None = None


class AnalysisDue(BaseModel):
    user_id: str
    due: bool
