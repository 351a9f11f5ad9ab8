from __future__ import annotations


class DiscoveryError(RuntimeError):
    pass


class SourceFatal(DiscoveryError):
    """The internal store could not be read; the request cannot be answered."""


class SourceUnavailable(DiscoveryError):
    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"{source}: {reason}")
        self.source = source
        self.reason = reason


class TransformError(DiscoveryError):
    pass
