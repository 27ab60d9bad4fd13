"""Excel workbook claim reports using openpyxl."""

import asyncio
import logging
from pathlib import Path
from typing import Any

import openpyxl
from openpyxl.styles import Font
from openpyxl.utils.exceptions import InvalidFileException

from claim_organizer.reports.base import ReportError, ReportInfo, ReportStore
from claim_organizer.storage.base import GroupingInfo
from claim_organizer.storage.local import path_to_uri, uri_to_path

logger = logging.getLogger(__name__)


class ExcelReportStore(ReportStore):
    """One .xlsx workbook per local grouping directory.

    The first sheet holds a bold header row followed by one row per
    organized document.
    """

    SHEET_TITLE = "Documents"

    def __init__(self, filename: str = "claim_report.xlsx"):
        """Initialize Excel report store.

        Args:
            filename: Fixed report name inside each grouping.
        """
        self.filename = filename

    def _report_path(self, grouping: GroupingInfo) -> Path:
        return uri_to_path(grouping.location) / self.filename

    def _info(self, grouping: GroupingInfo, path: Path) -> ReportInfo:
        return ReportInfo(name=self.filename, location=path_to_uri(path), grouping=grouping.name)

    async def find_report(self, grouping: GroupingInfo) -> ReportInfo | None:
        """Find the workbook in a grouping directory."""
        path = self._report_path(grouping)
        if not path.is_file():
            return None
        return self._info(grouping, path)

    async def create_report(self, grouping: GroupingInfo, header: list[str]) -> ReportInfo:
        """Create the workbook with a header row."""
        path = self._report_path(grouping)
        if path.is_file():
            return self._info(grouping, path)

        def create() -> None:
            workbook = openpyxl.Workbook()
            sheet = workbook.active
            sheet.title = self.SHEET_TITLE
            sheet.append(header)
            for cell in sheet[1]:
                cell.font = Font(bold=True)
            workbook.save(path)

        try:
            await asyncio.to_thread(create)
        except OSError as e:
            raise ReportError(f"Failed to create report in {grouping.name}: {e}") from e

        logger.info(f"Created report {self.filename} in {grouping.name}")
        return self._info(grouping, path)

    async def append_row(self, report: ReportInfo, row: list[Any]) -> None:
        """Append a data row to the workbook."""
        path = uri_to_path(report.location)

        def append() -> None:
            workbook = openpyxl.load_workbook(path)
            workbook.active.append(row)
            workbook.save(path)

        try:
            await asyncio.to_thread(append)
        except (OSError, InvalidFileException, KeyError) as e:
            raise ReportError(f"Failed to append to report in {report.grouping}: {e}") from e

    async def read_rows(self, report: ReportInfo) -> list[list[Any]]:
        """Read all rows of the workbook."""
        path = uri_to_path(report.location)

        def read() -> list[list[Any]]:
            workbook = openpyxl.load_workbook(path, read_only=True, data_only=True)
            try:
                return [list(r) for r in workbook.active.iter_rows(values_only=True)]
            finally:
                workbook.close()

        try:
            return await asyncio.to_thread(read)
        except (OSError, InvalidFileException, KeyError) as e:
            raise ReportError(f"Failed to read report in {report.grouping}: {e}") from e
