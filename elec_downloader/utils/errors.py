"""Custom exception classes for Elec Downloader."""


class ElecDownloaderError(Exception):
    """Base exception for all application errors."""

    pass


class DownloaderError(ElecDownloaderError):
    """Errors from running the external downloader."""

    pass


class DownloaderLaunchError(DownloaderError):
    """The downloader process could not be started."""

    pass


class DownloaderExitError(DownloaderError):
    """The downloader exited with a failure status."""

    def __init__(self, returncode: int) -> None:
        self.returncode = returncode
        if returncode < 0:
            super().__init__(f"downloader terminated by signal {-returncode}")
        else:
            super().__init__(f"downloader exited with status {returncode}")


class DownloaderTimeoutError(DownloaderError):
    """The downloader ran past its deadline and was killed."""

    def __init__(self, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(f"downloader timed out after {timeout_seconds:g}s and was killed")
