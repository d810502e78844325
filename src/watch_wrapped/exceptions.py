class TmdbRequestError(RuntimeError):
    """Raised when a TMDB request fails with an HTTP error status."""
    pass


class TmdbAuthenticationError(TmdbRequestError):
    """Raised when TMDB rejects the configured API key or bearer token."""
    pass


class ImdbRequestError(RuntimeError):
    """Raised when an IMDb rating lookup fails."""
    pass
