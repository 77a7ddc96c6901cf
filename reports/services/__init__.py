"""Reporting services built on top of the lifecycle data."""

from .daily_report import DailyReport, build_daily_report, parse_report_date

__all__ = ["DailyReport", "build_daily_report", "parse_report_date"]
