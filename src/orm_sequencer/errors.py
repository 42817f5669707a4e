class SequencerError(Exception):
    """Base class for all identifier allocation failures."""


class ConfigurationError(SequencerError, ValueError):
    """
    Raised while building a generator or allocator from invalid settings.
    Never raised at allocation time.
    """


class InvalidSegmentKey(SequencerError, ValueError):
    """Raised for a null, empty or over-long segment key, before any SQL is issued."""


class StorageFailure(SequencerError, RuntimeError):
    """
    Raised when the backing store is unreachable or a statement fails for
    any reason other than a lost compare-and-swap. The original driver
    error is chained as ``__cause__``.
    """

    def __init__(self, message: str, *, segment_key: str | None = None):
        super().__init__(message)
        self.segment_key = segment_key


class ContentionExhausted(SequencerError, RuntimeError):
    """Raised when a segment kept losing the compare-and-swap race past the retry cap."""

    def __init__(self, segment_key: str, attempts: int):
        super().__init__(
            f"Gave up allocating for segment '{segment_key}' after {attempts} contended attempts"
        )
        self.segment_key = segment_key
        self.attempts = attempts
