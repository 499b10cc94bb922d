"""Signed, tamper-evident message envelopes."""

__version__ = "0.1.0"

# Envelope encoding/decoding
from kv_envelope.envelope import (
    HEADER_LEN,
    WIRE_VERSION,
    Envelope,
    MsgType,
    decode_envelope,
    peek_msg_type,
    sign_envelope,
)

# Bodies
from kv_envelope.bodies import Body, Point, RawBody

# Keys
from kv_envelope.keys import Certificate, KeyPair, Signature

# Errors
from kv_envelope.errors import (
    ConfigError,
    DecodeError,
    EncodeError,
    KeyIndexError,
    KVEnvelopeError,
    SigningError,
    TypeTagError,
    ValueValidationError,
    VerificationError,
)

# Configuration
from kv_envelope.config import Config, LogFormat, load_config

__all__ = [
    # Version
    "__version__",
    # Envelope
    "HEADER_LEN",
    "WIRE_VERSION",
    "Envelope",
    "MsgType",
    "decode_envelope",
    "peek_msg_type",
    "sign_envelope",
    # Bodies
    "Body",
    "Point",
    "RawBody",
    # Keys
    "Certificate",
    "KeyPair",
    "Signature",
    # Errors
    "ConfigError",
    "DecodeError",
    "EncodeError",
    "KeyIndexError",
    "KVEnvelopeError",
    "SigningError",
    "TypeTagError",
    "ValueValidationError",
    "VerificationError",
    # Config
    "Config",
    "LogFormat",
    "load_config",
]
