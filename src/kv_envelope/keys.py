"""secp256k1 key pairs, certificates and signatures.

Thin adapter over the ``cryptography`` package. Signing goes through
``ecdsa`` because it accepts a caller-chosen nonce. Each type has a
fixed-width binary form and an upper-case hex text form:

- Certificate (33 bytes): SEC1 compressed public point
- Signature (64 bytes): r || s, big-endian
- KeyPair (129 bytes): seed (32) || secret (32) || public (33) || code (32)
"""

import hashlib
from dataclasses import dataclass
from typing import Callable

import ecdsa
from ecdsa.util import sigencode_string
import structlog
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import encode_dss_signature

from kv_envelope.errors import DecodeError, SigningError

logger = structlog.get_logger("kv_envelope.keys")

# Randomness source: called with a byte count, returns that many bytes.
# secrets.token_bytes and os.urandom both fit.
RandomSource = Callable[[int], bytes]

CURVE = ec.SECP256K1()
CURVE_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

SEED_LEN = 32
SCALAR_LEN = 32
CODE_LEN = 32
CERT_LEN = 33
SIGNATURE_LEN = 64
KEYPAIR_LEN = SEED_LEN + SCALAR_LEN + CERT_LEN + CODE_LEN  # 129


def _unhex(text: str, what: str) -> bytes:
    try:
        return bytes.fromhex(text)
    except (TypeError, ValueError) as e:
        raise DecodeError(f"Invalid hex string for {what}") from e


def _draw(rng: RandomSource, length: int) -> bytes:
    try:
        data = rng(length)
    except Exception as e:
        raise SigningError(f"Randomness source failed: {e}") from e
    if not isinstance(data, (bytes, bytearray)) or len(data) != length:
        raise SigningError(f"Randomness source returned a short read (wanted {length} bytes)")
    return bytes(data)


def _signing_algorithm() -> ec.ECDSA:
    return ec.ECDSA(hashes.SHA256())


@dataclass(frozen=True)
class Signature:
    """ECDSA signature as a pair of scalars."""

    r: int
    s: int

    @classmethod
    def from_bytes(cls, data: bytes) -> "Signature":
        if len(data) != SIGNATURE_LEN:
            raise DecodeError(
                f"Signature must be {SIGNATURE_LEN} bytes, got {len(data)}"
            )
        r = int.from_bytes(data[:SCALAR_LEN], "big")
        s = int.from_bytes(data[SCALAR_LEN:], "big")
        if not (0 < r < CURVE_ORDER and 0 < s < CURVE_ORDER):
            raise DecodeError("Signature scalar out of range")
        return cls(r=r, s=s)

    def to_bytes(self) -> bytes:
        return self.r.to_bytes(SCALAR_LEN, "big") + self.s.to_bytes(SCALAR_LEN, "big")

    @classmethod
    def from_hex(cls, text: str) -> "Signature":
        return cls.from_bytes(_unhex(text, "signature"))

    def to_hex(self) -> str:
        return self.to_bytes().hex().upper()


@dataclass(frozen=True)
class Certificate:
    """Public identity of a signer: a compressed secp256k1 point."""

    data: bytes

    @classmethod
    def from_bytes(cls, data: bytes) -> "Certificate":
        if len(data) != CERT_LEN:
            raise DecodeError(
                f"Certificate must be {CERT_LEN} bytes, got {len(data)}"
            )
        data = bytes(data)
        try:
            ec.EllipticCurvePublicKey.from_encoded_point(CURVE, data)
        except ValueError as e:
            raise DecodeError("Certificate is not a valid curve point") from e
        return cls(data)

    @classmethod
    def from_public_key(cls, public_key: ec.EllipticCurvePublicKey) -> "Certificate":
        return cls(
            public_key.public_bytes(
                serialization.Encoding.X962,
                serialization.PublicFormat.CompressedPoint,
            )
        )

    def to_bytes(self) -> bytes:
        return self.data

    @classmethod
    def from_hex(cls, text: str) -> "Certificate":
        return cls.from_bytes(_unhex(text, "certificate"))

    def to_hex(self) -> str:
        return self.data.hex().upper()

    def verify(self, message: bytes, signature: Signature) -> bool:
        """Check that ``signature`` was produced over ``message`` by this identity."""
        public_key = ec.EllipticCurvePublicKey.from_encoded_point(CURVE, self.data)
        der = encode_dss_signature(signature.r, signature.s)
        try:
            public_key.verify(der, bytes(message), _signing_algorithm())
        except InvalidSignature:
            return False
        return True


class KeyPair:
    """A signing key pair derived from a 32-byte seed.

    The secret scalar is derived from the seed with SHA3-256, retrying with a
    counter until it falls inside the curve order. ``code`` is a 32-byte chain
    code carried alongside the key in its binary form.
    """

    def __init__(self, seed: bytes, private_key: ec.EllipticCurvePrivateKey, code: bytes):
        self._seed = bytes(seed)
        self._private_key = private_key
        self._signing_key = ecdsa.SigningKey.from_secret_exponent(
            private_key.private_numbers().private_value,
            curve=ecdsa.SECP256k1,
            hashfunc=hashlib.sha256,
        )
        self._code = bytes(code)

    @staticmethod
    def _derive_secret(seed: bytes) -> int:
        counter = 0
        while True:
            digest = hashlib.sha3_256(seed + counter.to_bytes(4, "big")).digest()
            secret = int.from_bytes(digest, "big")
            if 0 < secret < CURVE_ORDER:
                return secret
            counter += 1

    @classmethod
    def from_seed(cls, seed: bytes) -> "KeyPair":
        if len(seed) != SEED_LEN:
            raise DecodeError(f"Seed must be {SEED_LEN} bytes, got {len(seed)}")
        seed = bytes(seed)
        private_key = ec.derive_private_key(cls._derive_secret(seed), CURVE)
        code = hashlib.sha3_256(b"chain-code" + seed).digest()
        return cls(seed, private_key, code)

    @classmethod
    def generate(cls, rng: RandomSource) -> "KeyPair":
        """Create a fresh key pair from a seed drawn from ``rng``."""
        keypair = cls.from_seed(_draw(rng, SEED_LEN))
        logger.info("keypair_generated", certificate=keypair.get_certificate().to_hex())
        return keypair

    @property
    def seed(self) -> bytes:
        return self._seed

    @property
    def code(self) -> bytes:
        return self._code

    def get_certificate(self) -> Certificate:
        return Certificate.from_public_key(self._private_key.public_key())

    def sign(self, message: bytes, rng: RandomSource) -> Signature:
        """Sign ``message`` with a nonce taken from one draw of ``rng``.

        The 32-byte draw is the ECDSA nonce, so the same draw and message
        always give the same signature. Reusing a draw across different
        messages exposes the secret key.

        Raises:
            SigningError: If the randomness source or the provider fails
        """
        nonce = int.from_bytes(_draw(rng, SCALAR_LEN), "big")
        if not 0 < nonce < CURVE_ORDER:
            raise SigningError("Randomness source produced a nonce outside the curve order")
        digest = hashlib.sha256(bytes(message)).digest()
        try:
            data = self._signing_key.sign_digest(
                digest, sigencode=sigencode_string, k=nonce
            )
        except RuntimeError as e:
            raise SigningError(f"Signature generation failed: {e}") from e
        return Signature.from_bytes(data)

    def to_bytes(self) -> bytes:
        secret = self._private_key.private_numbers().private_value
        return (
            self._seed
            + secret.to_bytes(SCALAR_LEN, "big")
            + self.get_certificate().to_bytes()
            + self._code
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "KeyPair":
        if len(data) != KEYPAIR_LEN:
            raise DecodeError(f"Key pair must be {KEYPAIR_LEN} bytes, got {len(data)}")
        data = bytes(data)
        seed = data[:SEED_LEN]
        secret = int.from_bytes(data[SEED_LEN:SEED_LEN + SCALAR_LEN], "big")
        public = data[SEED_LEN + SCALAR_LEN:SEED_LEN + SCALAR_LEN + CERT_LEN]
        code = data[SEED_LEN + SCALAR_LEN + CERT_LEN:]

        if not 0 < secret < CURVE_ORDER:
            raise DecodeError("Key pair secret scalar out of range")
        private_key = ec.derive_private_key(secret, CURVE)
        keypair = cls(seed, private_key, code)
        if keypair.get_certificate().to_bytes() != public:
            raise DecodeError("Key pair public key does not match its secret")
        return keypair

    @classmethod
    def from_hex(cls, text: str) -> "KeyPair":
        return cls.from_bytes(_unhex(text, "key pair"))

    def to_hex(self) -> str:
        return self.to_bytes().hex().upper()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, KeyPair):
            return NotImplemented
        return self.to_bytes() == other.to_bytes()

    def __hash__(self) -> int:
        return hash(self.get_certificate())

    def __repr__(self) -> str:
        return f"KeyPair(certificate={self.get_certificate().to_hex()})"
