"""Progress scoring — calorie metrics, milestones, concerns, 0–100 score, report.

Everything here works on already-loaded entries and an explicit `today`,
so a report is reproducible for the same inputs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable

from app.engine.calculation import round_half_up
from app.engine.models import (
    AdaptationRecord,
    AdaptationResults,
    AdaptationTrigger,
    AverageMacros,
    BodyStatsEntry,
    CalorieLogEntry,
    CalorieMetrics,
    Concern,
    EffectivenessScore,
    Milestone,
    PeriodTrend,
    ProgressReport,
    ReportPeriod,
    Severity,
    WeightProgress,
    WorkoutFrequency,
    WorkoutIntensity,
    WorkoutLogEntry,
)
from app.engine.trends import PERIOD_DAYS, summarize_weight_period

WEIGHT_GAIN_MILESTONES_KG = (2.5, 5, 7.5, 10, 12.5, 15, 20, 25)
CALORIE_STREAK_MILESTONES = (7, 14, 21, 30, 60, 90, 100)
TOTAL_WORKOUT_MILESTONES = (10, 25, 50, 100, 200, 500)
DAYS_TRACKED_MILESTONES = (7, 14, 30, 60, 90, 180, 365)
WORKOUT_CONSISTENCY_MIN = 12  # workouts in 30 days
MAX_REPORT_MILESTONES = 10

_SEVERITY_RANK = {Severity.high: 3, Severity.medium: 2, Severity.low: 1}


def _since(entries: Iterable, today: date, days: int) -> list:
    start = today - timedelta(days=days)
    return [e for e in entries if start <= e.date <= today]


# ---------------------------------------------------------------------------
# Calorie metrics
# ---------------------------------------------------------------------------


def calorie_streak(target_met_dates: Iterable[date], today: date) -> int:
    """Consecutive days ending today on which the calorie target was met."""
    streak = 0
    cursor = today
    for d in sorted(set(target_met_dates), reverse=True):
        if (cursor - d).days != streak:
            break
        streak += 1
    return streak


def calculate_calorie_metrics(
    logs: Iterable[CalorieLogEntry],
    current_streak: int,
    window_days: int = 30,
) -> CalorieMetrics:
    """Consistency and target-met stats over logs already limited to the window."""
    logs = sorted(logs, key=lambda log: log.date)
    days_logged = len(logs)
    if days_logged == 0:
        return CalorieMetrics(current_streak=current_streak, period=f"{window_days} days")

    met = sum(1 for log in logs if log.target_met)

    longest = run = 0
    for log in logs:
        if log.target_met:
            run += 1
            longest = max(longest, run)
        else:
            run = 0

    totals = [log.daily_totals for log in logs]
    return CalorieMetrics(
        current_streak=current_streak,
        longest_streak=longest,
        days_logged=days_logged,
        consistency_percentage=round_half_up(days_logged / window_days * 100),
        target_met_percentage=round_half_up(met / days_logged * 100),
        average_daily_calories=round_half_up(sum(t.calories for t in totals) / days_logged),
        average_macros=AverageMacros(
            protein=round_half_up(sum(t.protein for t in totals) / days_logged),
            carbs=round_half_up(sum(t.carbs for t in totals) / days_logged),
            fat=round_half_up(sum(t.fat for t in totals) / days_logged),
        ),
        period=f"{window_days} days",
    )


def workout_frequency(workouts: Iterable[WorkoutLogEntry], days: int) -> WorkoutFrequency:
    total = len(list(workouts))
    return WorkoutFrequency(
        total_workouts=total,
        average_per_week=round_half_up(total / days * 7 * 10) / 10,
        days=days,
    )


# ---------------------------------------------------------------------------
# Milestones
# ---------------------------------------------------------------------------


def detect_milestones(
    body_stats: Iterable[BodyStatsEntry],
    workouts: Iterable[WorkoutLogEntry],
    current_streak: int,
    today: date,
) -> list[Milestone]:
    """Milestones from the full history; newest/largest first, unique per (type, value)."""
    stats = sorted(body_stats, key=lambda s: s.date)
    workouts = list(workouts)
    found: list[Milestone] = []

    if len(stats) >= 2:
        total_gain = stats[-1].weight - stats[0].weight
        for kg in WEIGHT_GAIN_MILESTONES_KG:
            if total_gain >= kg:
                found.append(
                    Milestone(
                        type="weight_gain",
                        value=kg,
                        unit="kg",
                        description=f"Gained {kg:g}kg from starting weight",
                        achieved_date=stats[-1].date,
                        category="progress",
                    )
                )

    for days in CALORIE_STREAK_MILESTONES:
        if current_streak >= days:
            found.append(
                Milestone(
                    type="calorie_streak",
                    value=days,
                    unit="days",
                    description=f"{days}-day calorie target streak",
                    achieved_date=today,
                    category="consistency",
                )
            )

    recent = len(_since(workouts, today, 30))
    if recent >= WORKOUT_CONSISTENCY_MIN:
        found.append(
            Milestone(
                type="workout_consistency",
                value=recent,
                unit="workouts",
                description=f"Completed {recent} workouts in 30 days",
                achieved_date=today,
                category="consistency",
            )
        )

    for count in TOTAL_WORKOUT_MILESTONES:
        if len(workouts) >= count:
            found.append(
                Milestone(
                    type="total_workouts",
                    value=count,
                    unit="workouts",
                    description=f"Completed {count} total workouts",
                    achieved_date=today,
                    category="achievement",
                )
            )

    prs = sum(1 for w in workouts for ex in w.exercises if ex.personal_record)
    if prs > 0:
        found.append(
            Milestone(
                type="personal_records",
                value=prs,
                unit="PRs",
                description=f"Set {prs} personal record{'s' if prs > 1 else ''}",
                achieved_date=today,
                category="achievement",
            )
        )

    tracked = len({s.date for s in stats} | {w.date for w in workouts})
    for days in DAYS_TRACKED_MILESTONES:
        if tracked >= days:
            found.append(
                Milestone(
                    type="days_tracked",
                    value=days,
                    unit="days",
                    description=f"Tracked progress for {days} days",
                    achieved_date=today,
                    category="consistency",
                )
            )

    unique: dict[tuple[str, float], Milestone] = {}
    for m in found:
        unique[(m.type, m.value)] = m
    return sorted(unique.values(), key=lambda m: m.value, reverse=True)


# ---------------------------------------------------------------------------
# Concerns
# ---------------------------------------------------------------------------


def detect_concerning_patterns(
    body_stats: Iterable[BodyStatsEntry],
    workouts: Iterable[WorkoutLogEntry],
    calorie_metrics: CalorieMetrics,
    today: date,
) -> list[Concern]:
    """Independent checks; result ordered high > medium > low severity."""
    stats = list(body_stats)
    workouts = list(workouts)
    concerns: list[Concern] = []

    weekly = summarize_weight_period(stats, ReportPeriod.weekly, as_of=today)
    if weekly.trend == PeriodTrend.rapid_loss:
        concerns.append(
            Concern(
                type="rapid_weight_loss",
                severity=Severity.high,
                description=f"Losing weight rapidly ({abs(weekly.change_per_week)}kg/week)",
                recommendation="Increase calorie intake and consult with a healthcare professional",
                detected_date=today,
                data={"change_per_week": weekly.change_per_week, "current_weight": weekly.end_weight},
            )
        )

    two_weeks = sorted(_since(stats, today, 14), key=lambda s: s.date)
    if len(two_weeks) >= 3:
        change = two_weeks[-1].weight - two_weeks[0].weight
        if abs(change) < 0.2:
            concerns.append(
                Concern(
                    type="weight_stagnation",
                    severity=Severity.medium,
                    description="No weight gain in the last 14 days",
                    recommendation="Consider increasing daily calorie intake by 100-150 calories",
                    detected_date=today,
                    data={"days": 14, "weight_change": round(change, 1)},
                )
            )

    if calorie_metrics.target_met_percentage < 50 and calorie_metrics.days_logged >= 7:
        concerns.append(
            Concern(
                type="missed_calorie_targets",
                severity=Severity.medium,
                description=f"Only meeting calorie targets {calorie_metrics.target_met_percentage}% of the time",
                recommendation="Focus on meal planning and preparation to hit daily calorie goals",
                detected_date=today,
                data={
                    "target_met_percentage": calorie_metrics.target_met_percentage,
                    "days_logged": calorie_metrics.days_logged,
                },
            )
        )

    if calorie_metrics.consistency_percentage < 60 and calorie_metrics.days_logged >= 5:
        concerns.append(
            Concern(
                type="low_tracking_consistency",
                severity=Severity.low,
                description=f"Only logging {calorie_metrics.consistency_percentage}% of days",
                recommendation="Set daily reminders to log meals and track progress consistently",
                detected_date=today,
                data={"consistency_percentage": calorie_metrics.consistency_percentage},
            )
        )

    # Most recent first; stable sort keeps same-day order
    last_week = sorted(_since(workouts, today, 7), key=lambda w: w.date, reverse=True)
    if len(last_week) > 6:
        concerns.append(
            Concern(
                type="potential_overtraining",
                severity=Severity.high,
                description=f"{len(last_week)} workouts in the last 7 days",
                recommendation="Consider adding rest days to allow for proper recovery",
                detected_date=today,
                data={"workouts_last_week": len(last_week)},
            )
        )

    if len(last_week) >= 3 and all(w.intensity == WorkoutIntensity.high for w in last_week[:3]):
        concerns.append(
            Concern(
                type="consecutive_high_intensity",
                severity=Severity.medium,
                description="Three consecutive high-intensity workouts detected",
                recommendation="Include moderate or light intensity sessions for recovery",
                detected_date=today,
                data={"consecutive_days": 3},
            )
        )

    last_ten = sorted(workouts, key=lambda w: w.date, reverse=True)[:10]
    if len(last_ten) >= 10:
        plans = {w.plan for w in last_ten}
        if len(plans) == 1:
            concerns.append(
                Concern(
                    type="lack_of_variety",
                    severity=Severity.low,
                    description="Using the same workout plan for all recent sessions",
                    recommendation="Consider varying your workout routine for better overall development",
                    detected_date=today,
                    data={"workout_plan": next(iter(plans)).value},
                )
            )

    return sorted(concerns, key=lambda c: _SEVERITY_RANK[c.severity], reverse=True)


# ---------------------------------------------------------------------------
# Score & narrative
# ---------------------------------------------------------------------------


def compute_progress_score(
    weight: WeightProgress,
    calories: CalorieMetrics,
    frequency: WorkoutFrequency,
    concerns: list[Concern],
) -> int:
    score = 0

    if weight.trend == PeriodTrend.gaining:
        score += 30
    elif weight.trend == PeriodTrend.stable:
        score += 15

    score += round_half_up(calories.consistency_percentage * 0.25)
    score += round_half_up(calories.target_met_percentage * 0.25)

    if frequency.average_per_week >= 4:
        score += 20
    elif frequency.average_per_week >= 3:
        score += 15
    elif frequency.average_per_week >= 2:
        score += 10

    score -= 10 * sum(1 for c in concerns if c.severity == Severity.high)
    return max(0, min(100, score))


def summary_text(
    score: int,
    weight: WeightProgress,
    calories: CalorieMetrics,
    concerns: list[Concern],
) -> str:
    parts: list[str] = []

    if score >= 80:
        parts.append("Excellent progress! You are on track with your weight gain goals.")
    elif score >= 60:
        parts.append("Good progress overall with some areas for improvement.")
    elif score >= 40:
        parts.append("Moderate progress. Focus on consistency to see better results.")
    else:
        parts.append("Progress needs attention. Review your plan and make necessary adjustments.")

    if weight.trend == PeriodTrend.gaining:
        parts.append(f"You've gained {weight.weight_change}kg over the {weight.timeframe.value} period.")
    elif weight.trend == PeriodTrend.stable:
        parts.append("Your weight has remained stable. Consider increasing calorie intake.")
    elif weight.trend == PeriodTrend.losing:
        parts.append("You are losing weight. Increase your daily calories immediately.")

    if calories.target_met_percentage >= 80:
        parts.append("Great job hitting your calorie targets consistently!")
    elif calories.target_met_percentage >= 60:
        parts.append("You are meeting your calorie targets most days. Keep it up!")
    else:
        parts.append("Focus on meeting your daily calorie targets more consistently.")

    high = sum(1 for c in concerns if c.severity == Severity.high)
    if high:
        parts.append(f"Important: Address {high} high-priority concern{'s' if high > 1 else ''}.")

    return " ".join(parts)


@dataclass(slots=True)
class ProgressInputs:
    """Everything a report needs, loaded up front by the caller.

    body_stats and workouts are the full history; calorie_logs cover the
    consistency window; adaptations cover the report period.
    """

    body_stats: list[BodyStatsEntry] = field(default_factory=list)
    workouts: list[WorkoutLogEntry] = field(default_factory=list)
    calorie_logs: list[CalorieLogEntry] = field(default_factory=list)
    current_streak: int = 0
    adaptations: list[AdaptationRecord] = field(default_factory=list)
    consistency_window_days: int = 30


def generate_progress_report(inputs: ProgressInputs, period: ReportPeriod, now: datetime) -> ProgressReport:
    today = now.date()
    days = PERIOD_DAYS[period]

    weight = summarize_weight_period(inputs.body_stats, period, as_of=today)
    window = inputs.consistency_window_days
    calories = calculate_calorie_metrics(_since(inputs.calorie_logs, today, window), inputs.current_streak, window)
    frequency = workout_frequency(_since(inputs.workouts, today, days), days)
    milestones = detect_milestones(inputs.body_stats, inputs.workouts, inputs.current_streak, today)
    concerns = detect_concerning_patterns(inputs.body_stats, inputs.workouts, calories, today)
    score = compute_progress_score(weight, calories, frequency, concerns)

    return ProgressReport(
        period=period,
        generated_at=now,
        progress_score=score,
        weight_progress=weight,
        nutrition_metrics=calories,
        workout_metrics=frequency,
        milestones=milestones[:MAX_REPORT_MILESTONES],
        concerns=concerns,
        adaptations=[a.summary() for a in inputs.adaptations],
        summary=summary_text(score, weight, calories, concerns),
    )


# ---------------------------------------------------------------------------
# Adaptation effectiveness
# ---------------------------------------------------------------------------


def score_effectiveness(trigger: AdaptationTrigger, results: AdaptationResults) -> EffectivenessScore:
    """0–5 score from the observed outcome of an applied adaptation."""
    score = 0
    weight_change = results.weight_change_after
    if weight_change is not None:
        if trigger == AdaptationTrigger.weight_stagnation and weight_change > 0:
            score += 2
        elif trigger == AdaptationTrigger.rapid_gain and weight_change < 0.5:
            score += 2

    if results.performance_change_after is not None and results.performance_change_after > 0:
        score += 1

    satisfaction = results.user_satisfaction
    if satisfaction is not None:
        if satisfaction >= 4:
            score += 2
        elif satisfaction >= 3:
            score += 1

    if score >= 4:
        label = "high"
    elif score >= 2:
        label = "moderate"
    else:
        label = "low"
    return EffectivenessScore(effectiveness_score=score, effectiveness=label)
