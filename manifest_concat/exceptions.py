from typing import Optional


class ConcatenationError(Exception):
    """Base exception for every failure surfaced by a concatenation attempt."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class SourceValidationError(ConcatenationError):
    """The caller supplied an unusable list of sources. Raised before any I/O."""

    pass


class FetchError(ConcatenationError):
    """A manifest or playlist request failed. Fatal to the whole batch."""

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None):
        self.url = url
        self.status_code = status_code
        super().__init__(message)


class IncompatibilityError(ConcatenationError):
    """The sources cannot be combined into a single rendition."""

    pass


class NoSupportedPlaylistError(IncompatibilityError):
    pass


class MismatchedCountError(IncompatibilityError):
    pass


class IncompleteAudioSetError(IncompatibilityError):
    pass


class ManifestParseError(ConcatenationError):
    """Manifest text could not be turned into a manifest object."""

    pass
