class EmuShimError(Exception):
    """Base class for errors raised by the shim installer and patcher."""


class ArchiveError(EmuShimError):
    """Raised when an archive cannot be read or would extract outside its destination."""


class DownloadCancelledError(EmuShimError):
    """Raised when the caller cancels an in-flight download."""
