#!/usr/bin/env python3
"""
US stock market day checker

Weekends are always closed. NYSE holidays are closed too when requested.
Returns exit code 0 if today is a market day, 1 otherwise.
"""
import sys
import logging
from datetime import date

import holidays

logger = logging.getLogger(__name__)


def is_market_day(check_date: date = None, skip_holidays: bool = False) -> bool:
    """
    Check if the given date is a US stock market trading day.

    Args:
        check_date: Date to check (defaults to today)
        skip_holidays: Also treat NYSE holidays as closed

    Returns:
        bool: True if it's a market day, False otherwise
    """
    check_date = check_date or date.today()

    # Weekend check (5: Saturday, 6: Sunday)
    if check_date.weekday() >= 5:
        logger.debug(f"{check_date} is a weekend.")
        return False

    if skip_holidays:
        nyse_holidays = holidays.NYSE(years=check_date.year)
        if check_date in nyse_holidays:
            logger.debug(f"{check_date} is a US market holiday ({nyse_holidays.get(check_date)}).")
            return False

    return True


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
    if is_market_day(skip_holidays=True):
        logger.info("Today is a market day.")
        sys.exit(0)
    logger.info("Today is not a market day.")
    sys.exit(1)
