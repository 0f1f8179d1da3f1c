"""AutoBone error types."""


class AutoBoneError(Exception):
    """Base class for calibration failures."""


class NotReadyError(AutoBoneError):
    """The recorder has no trackers to capture from."""


class EmptyRecordingError(AutoBoneError):
    """A recording has no trackers or no frames."""


class NoRecordingFoundError(AutoBoneError):
    """Nothing was recorded or saved that could be used."""


class CaptureFailureError(AutoBoneError):
    """Capturing or persisting a recording failed."""


class OptimizationFailureError(AutoBoneError):
    """The optimizer failed while processing a recording."""
