"""Domain-specific errors for stctl."""


class StctlError(Exception):
    """Base error for stctl."""


class ConfigError(StctlError):
    """Raised when environment configuration cannot be parsed."""


class ValidationError(StctlError):
    """Base error for rejected schema files and setting values."""


class SchemaValidationError(ValidationError):
    """Raised when a device file does not conform to schema or semantics."""


class UnsupportedValueTypeError(ValidationError):
    """Raised when a value has a shape the encoder cannot put on the wire."""


class ValueValidationError(ValidationError):
    """Raised when a value is outside the declared type, choices or range."""


class SchemaLoadError(StctlError):
    """Raised when reading device files fails."""


class SchemaResolutionError(StctlError):
    """Raised when a model or setting cannot be found in the registry."""


class TransportError(StctlError):
    """Base transport error."""


class TransportSocketError(TransportError):
    """Raised on bind/send failures and OS-level network errors."""


class TransportTimeoutError(TransportError):
    """Raised when no reply arrives within the transaction window."""

    def __init__(self, model: str, address: str, timeout_s: float) -> None:
        super().__init__(
            f"Timeout waiting for ACK from {model or '<unknown-model>'} at {address} after {timeout_s:g}s"
        )
        self.model = model
        self.address = address
        self.timeout_s = timeout_s
