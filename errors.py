"""
Error taxonomy for the capture-preprocess-recognize pipeline.

None of these are fatal to the process: the frame scheduler turns each one into
a tick outcome and keeps looping.
"""


class OCRPipelineError(Exception):
    """Base class for all pipeline errors."""


class CaptureUnavailable(OCRPipelineError):
    """No frame was ready when the tick fired."""


class GeometryInvalid(OCRPipelineError):
    """The ROI could not be resolved to a non-empty rectangle inside the frame."""


class PreprocessingStageError(OCRPipelineError):
    """A preprocessing stage received an image in a format it cannot handle."""


class RecognitionFailure(OCRPipelineError):
    """The OCR engine failed, timed out or was unavailable."""
