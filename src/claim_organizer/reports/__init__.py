"""Structured per-claim reports."""

from claim_organizer.reports.base import REPORT_HEADER, ReportError, ReportInfo, ReportStore
from claim_organizer.reports.excel import ExcelReportStore

__all__ = [
    "REPORT_HEADER",
    "ExcelReportStore",
    "ReportError",
    "ReportInfo",
    "ReportStore",
]
