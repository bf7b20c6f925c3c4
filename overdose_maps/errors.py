"""Exceptions raised by the report pipeline.

Every error is fatal to a run. ``stage`` names the pipeline step that raised
it so the entry point can report where the run stopped.
"""


class ReportError(Exception):
    stage = "Report"

    def __init__(self, message: str, stage: str | None = None):
        super().__init__(message)
        if stage is not None:
            self.stage = stage


class FormatError(ReportError, ValueError):
    """Input table does not have the expected header or value types."""
    stage = "Load"


class UnmappedCategoryError(ReportError, ValueError):
    """Indicator label absent from the cause codebook."""
    stage = "Normalize causes"


class DivisionError(ReportError, ZeroDivisionError):
    """Zero total-deaths denominator for a state/year."""
    stage = "Proportions"


class MissingCauseError(ReportError, LookupError):
    """Drug-related rows exist for a state/year with no total-deaths row."""
    stage = "Proportions"


class DownloadError(ReportError, OSError):
    """HTTP or connection failure while pulling an input file."""
    stage = "Pull"
