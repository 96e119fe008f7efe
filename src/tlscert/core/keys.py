"""
RSA key pair generation and raw (DER) key serialization.

Every certificate gets its own freshly generated 4096-bit RSA key. The
generator is backed by the OpenSSL CSPRNG that ships with `cryptography`,
which is safe to call from several threads at once.
"""

from __future__ import annotations

from dataclasses import dataclass

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from .errors import KeyGenerationError, ParseError

KEY_SIZE = 4096
PUBLIC_EXPONENT = 65537


@dataclass(frozen=True)
class KeyPair:
    """An RSA private key and its matching public key."""
    private_key: rsa.RSAPrivateKey
    public_key: rsa.RSAPublicKey


def generate_key_pair() -> KeyPair:
    """Generate a fresh RSA key pair.

    Returns:
        KeyPair: A 4096-bit RSA key pair with public exponent 65537.

    Raises:
        KeyGenerationError: If the underlying generator fails.
    """
    try:
        private_key = rsa.generate_private_key(
            public_exponent=PUBLIC_EXPONENT,
            key_size=KEY_SIZE,
        )
    except Exception as e:
        raise KeyGenerationError(f"failed to create private key: {e}") from e
    return KeyPair(private_key=private_key, public_key=private_key.public_key())


def private_key_to_der(private_key: rsa.RSAPrivateKey) -> bytes:
    """Serialize a private key to unencrypted PKCS#1 DER."""
    return private_key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )


def load_private_key_der(der: bytes) -> rsa.RSAPrivateKey:
    """Load an unencrypted DER private key and require it to be RSA.

    Raises:
        ParseError: If the bytes are not a DER private key, or not an RSA one.
    """
    try:
        key = serialization.load_der_private_key(der, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise ParseError(f"failed to parse private key: {e}") from e
    if not isinstance(key, rsa.RSAPrivateKey):
        raise ParseError(f"expected an RSA private key, got {type(key).__name__}")
    return key
