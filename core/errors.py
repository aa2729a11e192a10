class PubTrackerError(Exception):
    """Base class for pipeline failures that abort a run"""


class InvalidInput(PubTrackerError):
    """The location history could not be read or is not valid JSON"""


class UnrecognizedSchema(PubTrackerError):
    """The document parsed but matches none of the known location history layouts"""


class CatalogUnavailable(PubTrackerError):
    """The pub catalog could not be fetched or parsed"""


class PipelineCancelled(PubTrackerError):
    """Processing was stopped at a chunk boundary"""
