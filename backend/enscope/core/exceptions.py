"""
Enscope - Exceptions
====================

Errors raised by the readiness services. Routers translate them into
`{error, status}` responses; batch scoring records them per step instead.
"""


class EnscopeError(Exception):
    """Base class for application errors."""


class LLMError(EnscopeError):
    """The LLM call failed or returned something unusable."""


class ScoreParseError(LLMError):
    """A score response did not contain a valid score payload."""
