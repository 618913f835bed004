# plot_archiver/core/exceptions.py

class ArchiverError(Exception):
    """Base exception for archiving failures."""
    pass


class CapacityProbeError(ArchiverError):
    """Raised when free space for a location cannot be determined."""
    def __init__(self, location: str, reason: str):
        self.location = location
        self.reason = reason
        super().__init__(f"Cannot determine free space for {location}: {reason}")


class TransferError(ArchiverError):
    """Raised for I/O errors while streaming a plot to its destination."""
    pass


class InsufficientSpaceError(ArchiverError):
    """Raised when a destination still cannot fit a plot after claiming space."""
    def __init__(self, plot_name: str, location: str, free_space_bytes: int, required_bytes: int):
        self.plot_name = plot_name
        self.location = location
        self.free_space_bytes = free_space_bytes
        self.required_bytes = required_bytes
        super().__init__(
            f"{location} cannot fit {plot_name} after claiming space: "
            f"{free_space_bytes} bytes free, {required_bytes} bytes required"
        )


class SpaceClaimError(ArchiverError):
    """Raised when deleting an eviction candidate fails while claiming space."""
    def __init__(self, plot_name: str, location: str, reason: str):
        self.plot_name = plot_name
        self.location = location
        self.reason = reason
        super().__init__(f"Claiming space on {location} for {plot_name} failed: {reason}")
