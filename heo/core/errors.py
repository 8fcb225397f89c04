"""Error taxonomy for the hypothesis pipeline.

- ConfigurationError: credentials or model identifiers missing/invalid. Fatal.
- UpstreamServiceError: a remote generation, embedding, triple-store or storage
  call failed. The orchestrator degrades instead of raising.
- SerializationError: a provenance graph could not be built. Fatal to that
  hypothesis only.
- ParseYieldedNothing: the generated text held no usable statement. A degraded
  condition with an explicit fallback policy, not a hard failure.
"""


class HeoError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(HeoError):
    """Raised when a credential or model identifier cannot be resolved."""


class UpstreamServiceError(HeoError):
    """Raised when a remote service call fails or returns a malformed payload."""

    def __init__(self, service: str, message: str, status_code: int | None = None):
        self.service = service
        self.status_code = status_code
        super().__init__(f"{service}: {message}")


class SerializationError(HeoError):
    """Raised when a provenance graph cannot be serialized."""


class ParseYieldedNothing(HeoError):
    """Raised by the strict parser when no hypothesis statement was found."""
