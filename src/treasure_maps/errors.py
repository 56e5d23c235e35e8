"""Exception types raised inside the map rendering engine."""


class TreasureMapError(RuntimeError):
    """Base class for engine failures."""


class InvalidCacheRecordError(TreasureMapError):
    """Raised when a persisted cache record cannot be turned back into a map."""


class PoiSourceError(TreasureMapError):
    """Raised when a structure location file cannot be read."""
