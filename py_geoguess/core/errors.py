"""Error taxonomy for round generation."""


class GeoGuessError(Exception):
    """Base class for every error raised by py_geoguess."""


class GenerationCancelled(GeoGuessError):
    """The session observed a cancellation request at a checkpoint."""

    def __init__(self):
        super().__init__("The operation was cancelled.")


class GenerationFailed(GeoGuessError):
    """Base class for fatal, non-recoverable generation outcomes."""


class LocatorError(GenerationFailed):
    """The panorama service answered with an unexpected status."""

    def __init__(self, status: str):
        super().__init__(f"Panorama lookup failed with status {status}")
        self.status = status


class InsufficientPoints(GenerationFailed):
    """Retries or route points ran out before every round had a position."""

    def __init__(self):
        super().__init__(
            "Could not find enough valid points within the selected "
            "locations. Try different location settings."
        )


class MissingShapeData(GenerationFailed):
    """A shape with resolved options could not be fetched."""

    def __init__(self, shape_name: str):
        super().__init__(f"Shape {shape_name} has incorrect data online.")
        self.shape_name = shape_name


class StoreWriteFailure(GenerationFailed):
    """The final write of the round set failed."""

    def __init__(self):
        super().__init__("Cannot connect to the round store.")


class RegionSelectionError(GeoGuessError, RuntimeError):
    """Weighted region selection was asked to work on an invalid region set."""


class SessionStateError(GeoGuessError, RuntimeError):
    """A generation session was used outside its lifecycle."""
