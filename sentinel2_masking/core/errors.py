"""
Exception hierarchy for Sentinel-2 cloud masking.

Per-input errors (metadata parsing, missing classification rasters, failing
raster utilities) are caught by the batch orchestrator and turned into
warnings; call-wide errors (unknown policy, unknown output format) abort
the whole call before any processing starts.

All exceptions can be pickled so they can be returned from worker processes.

Author: Diego Bengochea
"""

from typing import Optional, Sequence


class MaskingError(Exception):
    """Base class for all masking errors."""


class MetadataParseError(MaskingError):
    """Raised when a filename does not follow the product naming convention."""


class MissingAncillaryError(MaskingError):
    """Raised when no classification raster matches an input product."""


class UnsupportedPolicyError(MaskingError):
    """Raised for unknown or not yet implemented masking policies."""


class UnsupportedFormatError(MaskingError):
    """Raised when the requested output format is not available in GDAL."""


class ExternalToolError(MaskingError):
    """
    Raised when an external raster utility fails.

    Attributes:
        command: Argument vector of the failing invocation
        returncode: Exit status (None if the process could not be started)
        stderr: Captured standard error
    """

    def __init__(self, command: Sequence[str], returncode: Optional[int] = None, stderr: str = ""):
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr or ""
        message = f"Command {' '.join(self.command)} failed"
        if returncode is not None:
            message += f" with exit status {returncode}"
        if self.stderr.strip():
            message += f": {self.stderr.strip()}"
        super().__init__(message)

    def __reduce__(self):
        return (self.__class__, (self.command, self.returncode, self.stderr))
