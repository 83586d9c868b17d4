"""
Simulation Clock

Owns the day -> month -> year rollover and the run-state machine. One call to
advance() is one simulated day; the server only varies how often it calls it.
"""

import calendar
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, NamedTuple, Optional

from config import CONFIG, SimulationConfig

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    PAUSED = "paused"
    RUNNING = "running"
    FAST = "fast"
    ENDED = "ended"


class Rollover(NamedTuple):
    """What a single advance() crossed."""
    month_changed: bool
    year_changed: bool
    ended: bool


NO_ROLLOVER = Rollover(month_changed=False, year_changed=False, ended=False)


def days_in_month(month: int, year: int) -> int:
    """Calendar day count for a zero-based month."""
    return calendar.monthrange(year, month + 1)[1]


def absolute_tick(day: int, month: int, year: int) -> int:
    """Linearised day counter (30-day months, 365-day years) used for expiry."""
    return (
        day
        + month * CONFIG.time.days_per_month_linear
        + year * CONFIG.time.days_per_year_linear
    )


@dataclass(slots=True)
class SimClock:
    """
    Game calendar plus the player's age.

    Rollover is computed internally; run-state changes come from outside via
    set_run_state(). ENDED is terminal.
    """

    day: int = 1
    month: int = 0
    year: int = 2005
    age: int = 25
    end_age: int = 45
    run_state: RunState = RunState.PAUSED

    @classmethod
    def from_config(cls, config: Optional[SimulationConfig] = None) -> "SimClock":
        config = config or CONFIG
        return cls(
            day=config.time.start_day,
            month=config.time.start_month,
            year=config.time.start_year,
            age=config.time.start_age,
            end_age=config.time.end_age,
        )

    def __post_init__(self):
        self.month = min(max(self.month, 0), 11)
        self.day = min(max(self.day, 1), days_in_month(self.month, self.year))
        if self.age >= self.end_age:
            self.run_state = RunState.ENDED

    @property
    def ended(self) -> bool:
        return self.run_state == RunState.ENDED

    @property
    def days_in_current_month(self) -> int:
        return days_in_month(self.month, self.year)

    @property
    def tick(self) -> int:
        return absolute_tick(self.day, self.month, self.year)

    def advance(self) -> Rollover:
        """
        Move forward one day.

        Returns:
            Rollover flags for the boundaries crossed. Advancing an ended
            clock changes nothing and reports no rollover.
        """
        if self.ended:
            return NO_ROLLOVER

        month_changed = False
        year_changed = False

        self.day += 1
        if self.day > days_in_month(self.month, self.year):
            self.day = 1
            self.month += 1
            month_changed = True
            if self.month > 11:
                self.month = 0
                self.year += 1
                self.age += 1
                year_changed = True

        ended = False
        if self.age >= self.end_age:
            self.run_state = RunState.ENDED
            ended = True
            logger.info(f"Clock reached end age {self.end_age} on {self.year}-{self.month + 1:02d}-{self.day:02d}")

        return Rollover(month_changed=month_changed, year_changed=year_changed, ended=ended)

    def set_run_state(self, state: RunState) -> bool:
        """Apply an external transition. Returns False when the clock has ended."""
        state = RunState(state)
        if self.ended:
            return False
        if state == RunState.ENDED:
            # Ending is only reached through the age condition
            return False
        self.run_state = state
        return True

    def to_dict(self) -> Dict[str, object]:
        return {
            "day": self.day,
            "month": self.month,
            "year": self.year,
            "age": self.age,
            "end_age": self.end_age,
            "run_state": self.run_state.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "SimClock":
        return cls(
            day=int(data["day"]),
            month=int(data["month"]),
            year=int(data["year"]),
            age=int(data["age"]),
            end_age=int(data["end_age"]),
            run_state=RunState(data.get("run_state", RunState.PAUSED.value)),
        )
