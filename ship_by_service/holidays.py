"""
holidays.py - Shop Holiday Calculations
"""

import logging
from datetime import date, timedelta
from typing import Optional, Union

from .models import ErrorCode, Err, HolidayConfig, Ok

logger = logging.getLogger(__name__)

WEEKDAY_CODES = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


class HolidayCalculator:
    """Handles shop holidays: single dates and recurring weekdays"""

    # Maximum iterations to prevent infinite loops
    MAX_WALK_ITERATIONS = 366

    @staticmethod
    def weekday_code(day: date) -> str:
        """Weekday code (sun..sat) of a date"""
        return WEEKDAY_CODES[day.weekday()]

    @classmethod
    def is_holiday(cls, day: date, config: HolidayConfig) -> bool:
        """Check if a date is listed as a single-date holiday"""
        return day.isoformat() in config.holidays

    @classmethod
    def is_weekly_holiday(cls, day: date, config: HolidayConfig) -> bool:
        """Check if a date falls on a recurring weekly holiday"""
        return cls.weekday_code(day) in config.weekly_holidays

    @classmethod
    def is_working_day(cls, day: date, config: HolidayConfig) -> bool:
        return not cls.is_holiday(day, config) and not cls.is_weekly_holiday(day, config)

    @classmethod
    def adjust_for_holidays(
        cls,
        candidate: date,
        config: Optional[HolidayConfig],
        max_iterations: Optional[int] = None
    ) -> Union[Ok[date], Err]:
        """
        Get the nearest working day on or before a date

        Args:
            candidate: Date to start from
            config: Holiday configuration (None means no holidays)
            max_iterations: Maximum days to walk back

        Returns:
            Ok with the working day, or Err(holiday_never_resolves)
        """
        if config is None:
            config = HolidayConfig()
        if max_iterations is None:
            max_iterations = cls.MAX_WALK_ITERATIONS

        cursor = candidate
        for _ in range(max_iterations):
            if cls.is_working_day(cursor, config):
                if cursor != candidate:
                    logger.debug(f"Moved {candidate} back to working day {cursor}")
                return Ok(cursor)
            if cursor == date.min:
                break
            cursor -= timedelta(days=1)

        logger.error(
            f"Max iterations ({max_iterations}) reached walking back from {candidate}. "
            f"Weekly holidays: {sorted(config.weekly_holidays)}"
        )
        return Err(ErrorCode.HOLIDAY_NEVER_RESOLVES, "could not find a working day within 1 year")
