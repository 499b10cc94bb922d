"""Tests for key pairs, certificates and signatures."""

import secrets

import pytest
from kv_envelope.errors import DecodeError, SigningError
from kv_envelope.keys import (
    CERT_LEN,
    CURVE_ORDER,
    KEYPAIR_LEN,
    SIGNATURE_LEN,
    Certificate,
    KeyPair,
    Signature,
)

MESSAGE = bytes([
    34, 65, 213, 57, 9, 244, 187, 83, 43, 5, 198, 33, 107, 223, 3, 114,
    255, 255, 255, 255, 255, 255, 255, 255, 255, 255, 255, 255, 254, 255, 255, 255,
])


@pytest.fixture(scope="module")
def keypair():
    return KeyPair.generate(secrets.token_bytes)


class TestKeyPair:
    """Test key pair generation and binary form."""

    def test_generate_draws_seed_from_rng(self):
        """The seed comes from the supplied randomness source."""
        seed = bytes(range(32))
        keypair = KeyPair.generate(lambda n: seed[:n])

        assert keypair.seed == seed
        assert keypair == KeyPair.from_seed(seed)

    def test_from_seed_is_deterministic(self):
        """The same seed always yields the same key."""
        seed = b"\x11" * 32
        a = KeyPair.from_seed(seed)
        b = KeyPair.from_seed(seed)

        assert a.get_certificate() == b.get_certificate()
        assert a.to_bytes() == b.to_bytes()

    def test_from_seed_wrong_length(self):
        """Seeds must be 32 bytes."""
        with pytest.raises(DecodeError, match="Seed must be 32 bytes"):
            KeyPair.from_seed(b"\x00" * 31)

    def test_binary_layout(self, keypair):
        """Binary form is seed, secret, public key, chain code."""
        data = keypair.to_bytes()

        assert len(data) == KEYPAIR_LEN == 129
        assert data[:32] == keypair.seed
        assert data[64:97] == keypair.get_certificate().to_bytes()
        assert data[97:] == keypair.code

    def test_binary_roundtrip(self, keypair):
        """A key pair decodes from its own binary form."""
        restored = KeyPair.from_bytes(keypair.to_bytes())

        assert restored == keypair
        assert restored.get_certificate() == keypair.get_certificate()

    def test_from_bytes_wrong_length(self, keypair):
        """Binary form must be exactly 129 bytes."""
        with pytest.raises(DecodeError, match="129 bytes"):
            KeyPair.from_bytes(keypair.to_bytes()[:-1])

    def test_from_bytes_mismatched_public_key(self, keypair):
        """A public key that does not match the secret is rejected."""
        other = KeyPair.generate(secrets.token_bytes)
        data = keypair.to_bytes()
        spliced = data[:64] + other.get_certificate().to_bytes() + data[97:]

        with pytest.raises(DecodeError, match="does not match"):
            KeyPair.from_bytes(spliced)

    def test_from_bytes_zero_secret(self, keypair):
        """A zero secret scalar is rejected."""
        data = keypair.to_bytes()
        with pytest.raises(DecodeError, match="out of range"):
            KeyPair.from_bytes(data[:32] + b"\x00" * 32 + data[64:])

    def test_hex_is_upper_case(self, keypair):
        """Text form is upper-case hex."""
        text = keypair.to_hex()

        assert text == text.upper()
        assert len(text) == KEYPAIR_LEN * 2
        assert KeyPair.from_hex(text) == keypair

    def test_from_hex_invalid(self):
        """Malformed hex is a decode error."""
        with pytest.raises(DecodeError, match="Invalid hex string"):
            KeyPair.from_hex("not hex at all")

    def test_repr_hides_secret(self, keypair):
        """repr shows the certificate only."""
        text = repr(keypair)

        assert keypair.get_certificate().to_hex() in text
        assert keypair.to_hex() not in text


class TestSigning:
    """Test sign and verify."""

    def test_sign_and_verify(self, keypair):
        """A signature verifies under the signer's certificate."""
        signature = keypair.sign(MESSAGE, secrets.token_bytes)

        assert keypair.get_certificate().verify(MESSAGE, signature) is True

    def test_verify_other_message(self, keypair):
        """A signature does not verify another message."""
        signature = keypair.sign(MESSAGE, secrets.token_bytes)

        assert keypair.get_certificate().verify(MESSAGE[:-1], signature) is False

    def test_verify_other_certificate(self, keypair):
        """A signature does not verify under another certificate."""
        signature = keypair.sign(MESSAGE, secrets.token_bytes)
        other = KeyPair.generate(secrets.token_bytes).get_certificate()

        assert other.verify(MESSAGE, signature) is False

    def test_sign_draws_once_from_rng(self, keypair):
        """Each signature consumes one draw."""
        calls = []

        def rng(n):
            calls.append(n)
            return secrets.token_bytes(n)

        keypair.sign(MESSAGE, rng)
        keypair.sign(MESSAGE, rng)

        assert calls == [32, 32]

    def test_same_draw_same_signature(self, keypair):
        """The draw is the nonce: same draw and message, same signature."""
        a = keypair.sign(MESSAGE, lambda n: b"\x42" * n)
        b = keypair.sign(MESSAGE, lambda n: b"\x42" * n)

        assert a == b
        assert keypair.get_certificate().verify(MESSAGE, a)

    def test_different_draw_different_signature(self, keypair):
        """Different draws give different signatures over the same message."""
        a = keypair.sign(MESSAGE, lambda n: b"\x42" * n)
        b = keypair.sign(MESSAGE, lambda n: b"\x43" * n)

        assert a != b
        assert a.r != b.r
        assert keypair.get_certificate().verify(MESSAGE, b)

    def test_zero_draw_rejected(self, keypair):
        """An all-zero draw is not a usable nonce."""
        with pytest.raises(SigningError, match="nonce"):
            keypair.sign(MESSAGE, lambda n: b"\x00" * n)

    def test_failing_rng(self, keypair):
        """A raising randomness source is a signing error."""
        def rng(n):
            raise OSError("no entropy")

        with pytest.raises(SigningError, match="Randomness source failed"):
            keypair.sign(MESSAGE, rng)

    def test_short_rng(self, keypair):
        """A short read from the randomness source is a signing error."""
        with pytest.raises(SigningError, match="short read"):
            keypair.sign(MESSAGE, lambda n: b"\x00" * (n - 1))


class TestCertificate:
    """Test certificate encoding."""

    def test_binary_roundtrip(self, keypair):
        """A certificate decodes from its own bytes."""
        cert = keypair.get_certificate()
        data = cert.to_bytes()

        assert len(data) == CERT_LEN
        assert data[0] in (0x02, 0x03)
        assert Certificate.from_bytes(data) == cert

    def test_hex_roundtrip(self, keypair):
        """Text form is upper-case hex of the binary form."""
        cert = keypair.get_certificate()

        assert cert.to_hex() == cert.to_bytes().hex().upper()
        assert Certificate.from_hex(cert.to_hex()) == cert
        assert Certificate.from_hex(cert.to_hex().lower()) == cert

    @pytest.mark.parametrize("length", [0, 32, 34, 65])
    def test_wrong_length(self, length):
        """Only 33-byte encodings are accepted."""
        with pytest.raises(DecodeError, match="33 bytes"):
            Certificate.from_bytes(b"\x02" * length)

    def test_not_a_point(self):
        """Bytes that are not a compressed point are rejected."""
        with pytest.raises(DecodeError, match="not a valid curve point"):
            Certificate.from_bytes(b"\x07" + b"\x01" * 32)

    def test_hex_wrong_length(self, keypair):
        """Valid hex of the wrong width is rejected."""
        with pytest.raises(DecodeError):
            Certificate.from_hex(keypair.get_certificate().to_hex()[:-2])


class TestSignature:
    """Test signature encoding."""

    def test_binary_roundtrip(self, keypair):
        """A signature decodes from its own bytes."""
        signature = keypair.sign(MESSAGE, secrets.token_bytes)
        data = signature.to_bytes()

        assert len(data) == SIGNATURE_LEN
        assert Signature.from_bytes(data) == signature

    def test_hex_roundtrip(self, keypair):
        """Text form is upper-case hex of the binary form."""
        signature = keypair.sign(MESSAGE, secrets.token_bytes)

        assert signature.to_hex() == signature.to_hex().upper()
        assert Signature.from_hex(signature.to_hex()) == signature

    def test_wrong_length(self):
        """Only 64-byte encodings are accepted."""
        with pytest.raises(DecodeError, match="64 bytes"):
            Signature.from_bytes(b"\x01" * 63)

    def test_scalar_out_of_range(self):
        """Scalars must be in [1, n-1]."""
        too_big = CURVE_ORDER.to_bytes(32, "big")
        with pytest.raises(DecodeError, match="out of range"):
            Signature.from_bytes(too_big + b"\x00" * 31 + b"\x01")
        with pytest.raises(DecodeError, match="out of range"):
            Signature.from_bytes(b"\x00" * 32 + b"\x00" * 31 + b"\x01")

    def test_from_hex_invalid(self):
        """Malformed hex is a decode error."""
        with pytest.raises(DecodeError, match="Invalid hex string"):
            Signature.from_hex("zz" * 64)
