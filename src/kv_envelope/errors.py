"""Error taxonomy for envelope encoding, decoding, signing and verification.

Every error derives from ``KVEnvelopeError``, which is itself a
``ValueError`` so callers that only guard against malformed input keep
working unchanged.
"""


class KVEnvelopeError(ValueError):
    """Base class for all envelope errors."""


class DecodeError(KVEnvelopeError):
    """Bytes could not be decoded into an envelope, header field or body."""


class TypeTagError(DecodeError):
    """Buffer too short to hold a tag, or tag byte not in the table."""


class EncodeError(KVEnvelopeError):
    """Envelope cannot be serialized in its current state."""


class VerificationError(KVEnvelopeError):
    """Signature missing or does not authenticate the body bytes."""


class SigningError(KVEnvelopeError):
    """The signing operation failed."""


class KeyIndexError(KVEnvelopeError):
    """Attribute key is not a field of the body."""


class ValueValidationError(KVEnvelopeError):
    """Attribute value has the wrong width for its field."""


class ConfigError(KVEnvelopeError):
    """Configuration could not be loaded."""
