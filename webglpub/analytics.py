from enum import Enum

from .utils import get_logger


class UploadResult(str, Enum):
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    CANCELLED = "Cancelled"


class Analytics:
    """Telemetry sink; events only go to the log."""

    def __init__(self) -> None:
        self.logger = get_logger("webglpub.analytics")

    def upload_started(self) -> None:
        self.logger.info("event=upload_started")

    def upload_completed(self, result: UploadResult) -> None:
        self.logger.info("event=upload_completed result=%s", result.value)
