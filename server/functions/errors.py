# --- Error Types ---


class ConverterError(Exception):
    """Base class for conversion failures."""


class ExtractionError(ConverterError):
    """Source content could not be turned into plain text."""


class InvalidSourceUrl(ExtractionError):
    """The Google Docs reference has no /d/{id} segment."""


class SourceUnreachable(ExtractionError):
    """The export endpoint did not return the document."""


class ModelServiceError(ConverterError):
    """The completion call failed, either outright or mid-stream."""
