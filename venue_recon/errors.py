"""Error kinds raised by the reconciliation engine.

Every error is request-fatal: the orchestrator aborts and surfaces exactly
one of these to the caller. Mapping an error kind to a transport status is
left to the caller (see ``web/app.py``).
"""


class ReconError(ValueError):
    """Base class for all reconciliation errors."""


class EmptyPayloadError(ReconError):
    """Raised when the reference table or the candidate list is empty."""


class UnknownVendorError(ReconError):
    """Raised when a vendor id has no registered field map."""

    def __init__(self, vendor_id: str, supported: tuple[str, ...] = ()):
        self.vendor_id = vendor_id
        self.supported = supported
        msg = f"Unsupported vendor: {vendor_id!r}"
        if supported:
            msg += f" (supported: {', '.join(supported)})"
        super().__init__(msg)


class ParseError(ReconError):
    """Raised when delimited text or raw input records cannot be parsed."""


class EncodeError(ReconError):
    """Raised when a record value cannot be written as a delimited cell."""


class ConfigError(ReconError):
    """Raised when startup configuration (env, field maps) is invalid."""
