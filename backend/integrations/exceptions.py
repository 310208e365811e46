"""Typed exception hierarchy for aggregation API errors.

Provides structured exceptions for differentiated error handling
(configuration vs transient network vs malformed upstream responses).
"""


class AggregationError(Exception):
    """Base exception for all aggregation-API errors.

    Carries the provider name so callers can identify which provider failed.
    """

    def __init__(self, message: str, provider_name: str = ""):
        self.provider_name = provider_name
        super().__init__(message)


class AggregationConfigError(AggregationError):
    """Client ID / consumer key missing from configuration."""

    pass


class AggregationConnectionError(AggregationError):
    """Network failures that survived the retry budget.

    Retriable by default.
    """

    def __init__(self, message: str, provider_name: str = "", retriable: bool = True):
        self.retriable = retriable
        super().__init__(message, provider_name)


class AggregationAPIError(AggregationError):
    """HTTP 4xx/5xx responses from the provider API (or its relay)."""

    def __init__(
        self,
        message: str,
        provider_name: str = "",
        status_code: int | None = None,
    ):
        self.status_code = status_code
        super().__init__(message, provider_name)

    @property
    def retriable(self) -> bool:
        """429 (rate limit) and 5xx errors are generally retriable."""
        if self.status_code is None:
            return False
        return self.status_code == 429 or self.status_code >= 500


class AggregationMalformedResponseError(AggregationError):
    """The provider answered with an HTML page instead of JSON.

    Usually means the service is down or sitting behind an error page.
    """

    def __init__(self, message: str, provider_name: str = "", preview: str = ""):
        self.preview = preview
        super().__init__(message, provider_name)


class AggregationDataError(AggregationError):
    """Unparseable body, or a response missing a required field."""

    pass
