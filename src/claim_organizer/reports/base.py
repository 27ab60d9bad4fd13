"""Abstract base class for structured claim reports."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from claim_organizer.storage.base import GroupingInfo

REPORT_HEADER = [
    "Source File",
    "Stored As",
    "Category",
    "Patient Name",
    "Identity",
    "Clinic",
    "Bill Number",
    "Amount",
    "Event Date",
    "Processed At",
]


@dataclass
class ReportInfo:
    """A report artifact inside a grouping."""

    name: str
    location: str
    grouping: str


class ReportStore(ABC):
    """Store for one tabular report per claim grouping.

    The report has a fixed name inside its grouping; ensuring it twice
    yields one report.
    """

    @abstractmethod
    async def find_report(self, grouping: GroupingInfo) -> ReportInfo | None:
        """Find the grouping's report, None if absent."""
        ...

    @abstractmethod
    async def create_report(self, grouping: GroupingInfo, header: list[str]) -> ReportInfo:
        """Create the report with a header row (no-op if it exists).

        Raises:
            ReportError: If the report cannot be written.
        """
        ...

    @abstractmethod
    async def append_row(self, report: ReportInfo, row: list[Any]) -> None:
        """Append one data row.

        Raises:
            ReportError: If the row cannot be written.
        """
        ...

    @abstractmethod
    async def read_rows(self, report: ReportInfo) -> list[list[Any]]:
        """Read all rows, header included."""
        ...

    async def ensure_report(
        self,
        grouping: GroupingInfo,
        header: list[str] = REPORT_HEADER,
    ) -> tuple[ReportInfo, bool]:
        """Find the grouping's report or create it.

        Returns:
            Tuple of (report, created).
        """
        existing = await self.find_report(grouping)
        if existing is not None:
            return existing, False
        return await self.create_report(grouping, header), True


class ReportError(Exception):
    """Error while reading or writing a report."""

    pass
