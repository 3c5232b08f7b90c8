"""
Errors raised at the provider boundary.

Adapters translate SDK-specific exceptions and malformed payloads into
these types so the pipeline never inspects vendor error classes.
"""


class ProviderError(Exception):
    """Base class for external provider failures."""
    pass


class MalformedResponseError(ProviderError):
    """An external payload did not match its expected shape."""
    pass


class RateLimitError(ProviderError):
    """Provider rejected the call because of rate limiting."""
    pass


class AuthenticationError(ProviderError):
    """Provider rejected the credential."""
    pass
