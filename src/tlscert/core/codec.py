"""
PEM transport encoding for certificates and private keys.

A PEM block is a label line, a base64 body and a matching end line:

    -----BEGIN CERTIFICATE-----
    MIIF...
    -----END CERTIFICATE-----

Encoding and parsing go through `cryptography`. This module only splits
input into blocks: text between blocks is ignored, a BEGIN line without a
matching END is dropped, and when several blocks carry the wanted label
only the first one is used.
"""

from __future__ import annotations

from typing import Iterator, List, Tuple

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from .errors import ParseError
from .keys import load_private_key_der, private_key_to_der

CERTIFICATE_LABEL = "CERTIFICATE"
RSA_PRIVATE_KEY_LABEL = "RSA PRIVATE KEY"

_BEGIN = b"-----BEGIN "
_END = b"-----END "
_TAIL = b"-----"


# ---------- block scanning ----------

def _label(marker: bytes, line: bytes) -> bytes:
    return line[len(marker):-len(_TAIL)] if line.endswith(_TAIL) else b""


def split_pem_bundle(data: bytes) -> List[bytes]:
    """
    Split concatenated PEM input into individual PEM blocks.

    Every BEGIN line starts a new block, so a truncated block never swallows
    the one after it. A block is kept only when its END label matches its
    BEGIN label.

    Args:
        data (bytes): Raw PEM contents, possibly with text between blocks.

    Returns:
        list[bytes]: The well-delimited blocks in order, each ending with a newline.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    parts: List[bytes] = []
    chunk: List[bytes] = []
    for line in data.splitlines():
        line = line.strip()     # CRLF and trailing blanks
        if line.startswith(_BEGIN):
            chunk = [line]
        elif line.startswith(_END):
            if chunk and _label(_END, line) == _label(_BEGIN, chunk[0]):
                chunk.append(line)
                parts.append(b"\n".join(chunk) + b"\n")
            chunk = []
        elif chunk:
            chunk.append(line)
    return parts


def iter_blocks(data: bytes) -> Iterator[Tuple[str, bytes]]:
    """Yield (label, pem_block) for every well-delimited block of data, in order."""
    for block in split_pem_bundle(data):
        first_line = block.split(b"\n", 1)[0]
        yield _label(_BEGIN, first_line).decode("ascii", "replace"), block


def first_block(data: bytes, label: str) -> bytes:
    """
    Return the first PEM block of data carrying label.

    Raises:
        ParseError: "no block found" when there is none.
    """
    for block_label, block in iter_blocks(data):
        if block_label == label:
            return block
    raise ParseError("no block found")


# ---------- certificates ----------

def load_certificate_der(der: bytes) -> x509.Certificate:
    """Parse DER bytes into a certificate, raising ParseError on failure."""
    try:
        return x509.load_der_x509_certificate(der)
    except ValueError as e:
        raise ParseError(f"failed to parse certificate: {e}") from e


def load_certificate_pem(block: bytes) -> x509.Certificate:
    """Parse a single PEM block into a certificate, raising ParseError on failure."""
    try:
        return x509.load_pem_x509_certificate(block)
    except ValueError as e:
        raise ParseError(f"failed to parse certificate: {e}") from e


def load_certificate(data: bytes) -> x509.Certificate:
    """Parse the first CERTIFICATE block of data."""
    return load_certificate_pem(first_block(data, CERTIFICATE_LABEL))


def encode_certificate(der: bytes) -> bytes:
    """DER certificate -> PEM."""
    return load_certificate_der(der).public_bytes(serialization.Encoding.PEM)


def decode_certificate(data: bytes) -> bytes:
    """First PEM certificate of data -> DER."""
    return load_certificate(data).public_bytes(serialization.Encoding.DER)


# ---------- private keys ----------

def load_private_key(data: bytes) -> rsa.RSAPrivateKey:
    """
    Parse the first RSA PRIVATE KEY block of data.

    Raises:
        ParseError: If there is no such block, it does not parse, or the key
            is not an RSA key.
    """
    block = first_block(data, RSA_PRIVATE_KEY_LABEL)
    try:
        key = serialization.load_pem_private_key(block, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise ParseError(f"failed to parse private key: {e}") from e
    if not isinstance(key, rsa.RSAPrivateKey):
        raise ParseError(f"expected an RSA private key, got {type(key).__name__}")
    return key


def encode_private_key(der: bytes) -> bytes:
    """PKCS#1 DER private key -> unencrypted PEM."""
    return load_private_key_der(der).private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )


def decode_private_key(data: bytes) -> bytes:
    """First PEM RSA private key of data -> PKCS#1 DER."""
    return private_key_to_der(load_private_key(data))
