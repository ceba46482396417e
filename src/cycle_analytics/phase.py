"""Map a date and the user's CycleConfig to a cycle phase.

The day of cycle always wraps modulo the average cycle length, so the phase
never goes stale however long the user goes without logging a new period:

    day_of_cycle = ((today - last_period_date).days mod L) + 1

Phases in order:
    menstrual → postMenstrual → fertile → ovulation → fertile → preMenstrual

``ovulation_day = L - luteal_days`` (14 by default).  Fertile days are
``ovulation_day - 2 .. ovulation_day + 1`` except the ovulation day itself.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

from src.cycle_analytics.base import CycleConfig, CyclePhase

logger = logging.getLogger("entrefases.cycle_analytics.phase")

LUTEAL_DAYS = 14

# Fertile window used for ``in_fertile_window``: 5 days before ovulation + 1 after
_FERTILE_DAYS_BEFORE = 5
_FERTILE_DAYS_AFTER = 1


@dataclass(frozen=True)
class PhaseInfo:
    """Where the user is in the current cycle.

    Attributes:
        phase:                  Current phase.
        day_of_cycle:           1-indexed day within the cycle.
        intensity:              0.3–1.0, peaking at a phase-specific day.
        days_until_next_period: Days until the next expected period start.
        days_until_ovulation:   Days until the next expected ovulation.
        in_fertile_window:      True from 5 days before ovulation to 1 day after.
        pregnancy_chance:       Estimated chance of conception today, 1–40 %.
    """

    phase: CyclePhase
    day_of_cycle: int
    intensity: float
    days_until_next_period: int
    days_until_ovulation: int
    in_fertile_window: bool
    pregnancy_chance: int


def day_of_cycle(today: date, config: CycleConfig) -> int:
    """1-indexed day within the (wrapped) current cycle."""
    days_since = (today - config.last_period_date).days
    return days_since % config.average_cycle_length + 1


def phase_for_day(day: int, config: CycleConfig, luteal_days: int = LUTEAL_DAYS) -> CyclePhase:
    """Return the phase for a 1-indexed day of cycle."""
    ovulation_day = config.average_cycle_length - luteal_days

    if day <= config.average_period_length:
        return CyclePhase.menstrual
    if day < ovulation_day - 2:
        return CyclePhase.post_menstrual
    if ovulation_day - 2 <= day <= ovulation_day + 1:
        if day == ovulation_day:
            return CyclePhase.ovulation
        return CyclePhase.fertile
    return CyclePhase.pre_menstrual


def phase_intensity(day: int, phase: CyclePhase, cycle_length: int) -> float:
    """Triangular intensity of a phase, 1.0 at its peak day and at least 0.3."""
    if phase is CyclePhase.menstrual:
        start, end, peak = 1, 5, 3
    elif phase is CyclePhase.post_menstrual:
        start, end = 6, cycle_length // 2 - 3
        peak = (start + end) // 2
    elif phase in (CyclePhase.fertile, CyclePhase.ovulation):
        start, end, peak = cycle_length - 16, cycle_length - 12, cycle_length - 14
    else:
        start, end, peak = cycle_length - 11, cycle_length, cycle_length - 5

    max_distance = max(peak - start, end - peak)
    if max_distance <= 0:
        return 1.0
    intensity = max(0.3, 1 - (abs(day - peak) / max_distance) * 0.7)
    return round(intensity, 2)


def pregnancy_chance(
    day: int,
    config: CycleConfig,
    target: date,
    luteal_days: int = LUTEAL_DAYS,
) -> int:
    """Estimated chance of conception (percent) for one day of the cycle.

    Base values by position in the cycle:
        ovulation day                     35
        ovulation - 5 .. ovulation - 1    15, 19, 23, 27, 31
        ovulation + 1                     15
        menstruation                       2
        up to 5 days after menstruation    5
        last 8 days of the cycle           8
        anything else                     12

    A date-derived offset in -3..+3 is added so neighbouring days differ,
    then the result is clamped to 1..40.  Same inputs, same answer.
    """
    ovulation_day = config.average_cycle_length - luteal_days

    if day == ovulation_day:
        chance = 35
    elif ovulation_day - _FERTILE_DAYS_BEFORE <= day < ovulation_day:
        chance = 15 + (_FERTILE_DAYS_BEFORE - (ovulation_day - day)) * 4
    elif ovulation_day < day <= ovulation_day + _FERTILE_DAYS_AFTER:
        chance = 25 - (day - ovulation_day) * 10
    elif 1 <= day <= config.average_period_length:
        chance = 2
    elif day <= config.average_period_length + 5:
        chance = 5
    elif day >= config.average_cycle_length - 7:
        chance = 8
    else:
        chance = 12

    offset = target.timetuple().tm_yday % 7 - 3
    return max(1, min(40, chance + offset))


def current_phase(
    today: date,
    config: CycleConfig,
    luteal_days: int = LUTEAL_DAYS,
) -> PhaseInfo:
    """Compute the phase and related counters for ``today``.

    Pure function of ``(today, config)``; nothing is retained between calls.
    """
    length = config.average_cycle_length
    day = day_of_cycle(today, config)
    phase = phase_for_day(day, config, luteal_days)
    ovulation_day = length - luteal_days

    days_until_next_period = length - day + 1
    if day <= ovulation_day:
        days_until_ovulation = ovulation_day - day
    else:
        days_until_ovulation = length - day + ovulation_day

    return PhaseInfo(
        phase=phase,
        day_of_cycle=day,
        intensity=phase_intensity(day, phase, length),
        days_until_next_period=days_until_next_period,
        days_until_ovulation=days_until_ovulation,
        in_fertile_window=(
            ovulation_day - _FERTILE_DAYS_BEFORE <= day <= ovulation_day + _FERTILE_DAYS_AFTER
        ),
        pregnancy_chance=pregnancy_chance(day, config, today, luteal_days),
    )
