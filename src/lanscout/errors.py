"""Exception hierarchy for lanscout."""


class LanscoutError(Exception):
    """Base class for all scan orchestration errors."""


class InvalidInput(LanscoutError, ValueError):
    """Target range or address rejected before any queue interaction."""


class QueueFull(LanscoutError):
    """Too many scan jobs outstanding; the request was not queued."""


class ProcessError(LanscoutError):
    """The scanner process could not be spawned, exited non-zero, or was killed."""

    def __init__(self, message: str, returncode: int | None = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class ParseError(LanscoutError):
    """Scanner output could not be decoded at all."""


class PartialRecordSkipped(LanscoutError):
    """A single host entry was unusable. Raised and caught inside the parser."""
