"""Signed envelope encoding, decoding, signing and verification.

The envelope format (wire version 1):
- Type (1 byte): Message type tag
- Certificate (33 bytes): Signer's compressed public key
- Signature (64 bytes): Signature over the body bytes
- Body (variable, at least 1 byte): Body-defined encoding

Only the body bytes are signed. The body has no length prefix; it runs to
the end of the buffer.
"""

import json
from dataclasses import dataclass
from enum import IntEnum
from typing import Generic, Optional, Type, TypeVar

import structlog

from kv_envelope.bodies.base import Body
from kv_envelope.errors import (
    DecodeError,
    EncodeError,
    TypeTagError,
    VerificationError,
)
from kv_envelope.keys import (
    CERT_LEN,
    SIGNATURE_LEN,
    Certificate,
    KeyPair,
    RandomSource,
    Signature,
)

logger = structlog.get_logger("kv_envelope.envelope")

WIRE_VERSION = 1

MSG_TYPE_LEN = 1
MSG_TYPE_OFFSET = 0
MSG_TYPE_END = MSG_TYPE_OFFSET + MSG_TYPE_LEN

CERT_OFFSET = MSG_TYPE_END
CERT_END = CERT_OFFSET + CERT_LEN

SIGNATURE_OFFSET = CERT_END
SIGNATURE_END = SIGNATURE_OFFSET + SIGNATURE_LEN

HEADER_LEN = MSG_TYPE_LEN + CERT_LEN + SIGNATURE_LEN  # 98


class MsgType(IntEnum):
    """Message type tags."""

    ISSUE_REQUEST = 0x01    # Quota issuance request
    QUOTA = 0x02            # Issued quota field
    CURRENCY = 0x03         # Currency record
    RECYCLE_RECEIPT = 0x04  # Recycle receipt
    CONVERT_REQUEST = 0x05  # Conversion request
    TRANSACTION = 0x06      # Transaction
    # 0x00 and 0x07-0xFF are invalid

    @classmethod
    def from_bytes(cls, data: bytes) -> "MsgType":
        """Decode the tag held in the first byte of ``data``.

        Raises:
            TypeTagError: If ``data`` is empty or the byte is not a known tag
        """
        if len(data) < MSG_TYPE_LEN:
            raise TypeTagError("Message type data too short (minimum 1 byte)")
        try:
            return cls(data[MSG_TYPE_OFFSET])
        except ValueError:
            raise TypeTagError(f"Unknown message type: {data[MSG_TYPE_OFFSET]:#x}") from None

    def to_bytes(self) -> bytes:
        return bytes([self.value])


def peek_msg_type(data: bytes) -> MsgType:
    """Read the message type of an encoded envelope without decoding the rest.

    Args:
        data: Encoded envelope (only the first byte is inspected)

    Returns:
        The envelope's message type

    Raises:
        TypeTagError: If the buffer is empty or the tag is unknown
    """
    return MsgType.from_bytes(data[MSG_TYPE_OFFSET:MSG_TYPE_END])


@dataclass(frozen=True)
class SignedHeader:
    """Certificate and signature, always attached to an envelope together."""

    cert: Certificate
    signature: Signature


BodyT = TypeVar("BodyT", bound=Body)


class Envelope(Generic[BodyT]):
    """A message type tag and body, optionally signed.

    A new envelope is unsigned. ``sign`` (or ``fill_header``) attaches the
    certificate and signature in one step; there is no way back to the
    unsigned state.
    """

    def __init__(self, msg_type: MsgType, body: BodyT):
        try:
            self.msg_type = MsgType(msg_type)
        except ValueError:
            raise TypeTagError(f"Unknown message type: {msg_type!r}") from None
        self.body = body
        self._header: Optional[SignedHeader] = None

    @property
    def cert(self) -> Optional[Certificate]:
        return self._header.cert if self._header else None

    @property
    def signature(self) -> Optional[Signature]:
        return self._header.signature if self._header else None

    @property
    def is_signed(self) -> bool:
        return self._header is not None

    def fill_header(self, keypair: KeyPair, rng: RandomSource) -> None:
        """Sign the current body bytes and attach certificate and signature.

        Raises:
            EncodeError: If the body encodes to zero bytes
            SigningError: If signing fails; the existing header is kept
        """
        body = self.body.to_bytes()
        if not body:
            raise EncodeError("Envelope body encodes to zero bytes")
        signature = keypair.sign(body, rng)
        self._header = SignedHeader(cert=keypair.get_certificate(), signature=signature)

    def to_bytes(self) -> bytes:
        """Serialize a signed envelope without re-signing.

        Raises:
            EncodeError: If the envelope has not been signed
        """
        if self._header is None:
            raise EncodeError("Envelope is not signed")
        body = self.body.to_bytes()
        if not body:
            raise EncodeError("Envelope body encodes to zero bytes")
        return (
            self.msg_type.to_bytes()
            + self._header.cert.to_bytes()
            + self._header.signature.to_bytes()
            + body
        )

    def sign(self, keypair: KeyPair, rng: RandomSource) -> bytes:
        """Sign the body and return the serialized envelope.

        Args:
            keypair: Signer's key pair
            rng: Randomness source, drawn from once per call

        Returns:
            Encoded envelope bytes

        Raises:
            SigningError: If signing fails
        """
        self.fill_header(keypair, rng)
        data = self.to_bytes()
        logger.debug(
            "envelope_signed",
            msg_type=self.msg_type.name,
            body_len=len(data) - HEADER_LEN,
        )
        return data

    def verify(self) -> None:
        """Check that the signature authenticates the current body.

        Raises:
            VerificationError: If the header is missing or does not match
        """
        if self._header is None:
            raise VerificationError("Envelope header is not filled")
        if not self._header.cert.verify(self.body.to_bytes(), self._header.signature):
            logger.debug("envelope_verification_failed", msg_type=self.msg_type.name)
            raise VerificationError("Envelope signature verification failed")

    def is_valid(self) -> bool:
        try:
            self.verify()
        except VerificationError:
            return False
        return True

    def get_key(self, key: str) -> bytes:
        """Read a body field as raw bytes."""
        return self.body.get_key(key)

    def set_key(self, key: str, value: bytes) -> None:
        """Overwrite a body field. Re-sign before serializing."""
        self.body.set_key(key, value)

    @classmethod
    def from_bytes(cls, data: bytes, body_type: Type[BodyT]) -> "Envelope[BodyT]":
        """Decode and authenticate an encoded envelope.

        The signature is checked against the body bytes before the body is
        decoded.

        Args:
            data: Encoded envelope bytes
            body_type: Body class used to decode the payload

        Returns:
            Signed Envelope

        Raises:
            DecodeError: If the buffer is malformed
            TypeTagError: If the tag byte is unknown
            VerificationError: If the signature does not match the body
        """
        data = bytes(data)
        if len(data) < HEADER_LEN:
            raise DecodeError(
                f"Envelope data too short (minimum {HEADER_LEN + 1} bytes)"
            )

        msg_type = MsgType.from_bytes(data[MSG_TYPE_OFFSET:MSG_TYPE_END])
        cert = Certificate.from_bytes(data[CERT_OFFSET:CERT_END])
        signature = Signature.from_bytes(data[SIGNATURE_OFFSET:SIGNATURE_END])

        if len(data) == HEADER_LEN:
            raise DecodeError("Envelope has no body")

        # Chain-of-trust validation of the certificate is not performed.
        payload = data[HEADER_LEN:]
        if not cert.verify(payload, signature):
            logger.debug("envelope_verification_failed", msg_type=msg_type.name)
            raise VerificationError("Envelope signature verification failed")

        envelope = cls(msg_type, body_type.from_bytes(payload))
        envelope._header = SignedHeader(cert=cert, signature=signature)
        logger.debug("envelope_decoded", msg_type=msg_type.name, body_len=len(payload))
        return envelope

    def to_dict(self) -> dict:
        """Convert to a JSON-compatible dict.

        Certificate and signature appear as upper-case hex, or None while
        the envelope is unsigned.
        """
        return {
            "msg_type": self.msg_type.name,
            "cert": self._header.cert.to_hex() if self._header else None,
            "signature": self._header.signature.to_hex() if self._header else None,
            "body": self.body.to_dict(),
        }

    def to_json(self) -> str:
        """Convert to compact JSON."""
        return json.dumps(self.to_dict(), separators=(',', ':'))

    @classmethod
    def from_dict(cls, data: dict, body_type: Type[BodyT]) -> "Envelope[BodyT]":
        """Build from a dict produced by ``to_dict``.

        A signed envelope is verified before it is returned, as with
        ``from_bytes``.

        Raises:
            DecodeError: If fields are missing or malformed
            TypeTagError: If the message type name is unknown
            VerificationError: If the signature does not match the body
        """
        name = data.get("msg_type")
        if not isinstance(name, str) or name not in MsgType.__members__:
            raise TypeTagError(f"Unknown message type: {name!r}")
        cert_hex = data.get("cert")
        signature_hex = data.get("signature")
        if (cert_hex is None) != (signature_hex is None):
            raise DecodeError("Envelope JSON must carry both cert and signature, or neither")
        body = data.get("body")
        if not isinstance(body, dict):
            raise DecodeError("Envelope JSON body must be an object")

        envelope = cls(MsgType[name], body_type.from_dict(body))
        if cert_hex is not None:
            envelope._header = SignedHeader(
                cert=Certificate.from_hex(cert_hex),
                signature=Signature.from_hex(signature_hex),
            )
            envelope.verify()
        return envelope

    @classmethod
    def from_json(cls, json_str: str, body_type: Type[BodyT]) -> "Envelope[BodyT]":
        """Parse JSON produced by ``to_json``. See ``from_dict``."""
        try:
            data = json.loads(json_str)
        except ValueError as e:
            raise DecodeError(f"Invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise DecodeError("Envelope JSON must be an object")
        return cls.from_dict(data, body_type)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Envelope):
            return NotImplemented
        return (
            self.msg_type == other.msg_type
            and self._header == other._header
            and self.body == other.body
        )

    def __repr__(self) -> str:
        return (
            f"Envelope(msg_type={self.msg_type.name}, "
            f"signed={self.is_signed}, body={self.body!r})"
        )


def sign_envelope(envelope: Envelope, keypair: KeyPair, rng: RandomSource) -> bytes:
    """Sign ``envelope`` in place and return its encoding."""
    return envelope.sign(keypair, rng)


def decode_envelope(data: bytes, body_type: Type[BodyT]) -> Envelope[BodyT]:
    """Decode and authenticate an encoded envelope.

    See ``Envelope.from_bytes``.
    """
    return Envelope.from_bytes(data, body_type)
