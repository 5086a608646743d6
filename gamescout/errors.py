class DetectionError(Exception):
    """Base class for detection failures that stay inside one platform."""


class ManifestParseError(DetectionError):
    def __init__(self, source: str, reason: str):
        super().__init__(f"{source}: {reason}")
        self.source = source
        self.reason = reason


class ConcurrentScanInProgress(DetectionError):
    def __init__(self, platform):
        super().__init__(f"a {platform.value} scan is already in progress")
        self.platform = platform


def describe(exc: BaseException) -> str:
    """Flatten an exception into the per-platform error string."""
    msg = str(exc)
    if isinstance(exc, OSError) and not isinstance(exc, DetectionError):
        return f"IOError: {msg}" if msg else "IOError"
    return f"{type(exc).__name__}: {msg}" if msg else type(exc).__name__
