"""Exception types raised by repograph."""


class RepographError(Exception):
    """Base class for all repograph errors."""


class ScanError(RepographError):
    """Fatal scan failure (missing root, unreadable tree)."""


class ConfigError(RepographError):
    """Invalid project configuration."""


class GraphFormatError(RepographError):
    """Persisted graph data could not be deserialized."""


class IncompatibleGraphVersionError(GraphFormatError):
    """Persisted graph was written by an incompatible schema version."""

    def __init__(self, found: str, expected: str):
        super().__init__(
            f"Graph version {found} is not compatible with {expected}. Run a new scan."
        )
        self.found = found
        self.expected = expected


class GraphIntegrityError(RepographError):
    """A graph violates a node/edge invariant."""
