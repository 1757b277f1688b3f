"""Certificate utility functions for key generation and PEM serialization."""

import uuid

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey


def generate_private_key(key_size: int = 2048) -> RSAPrivateKey:
    """Generate RSA private key with specified size."""
    return rsa.generate_private_key(
        public_exponent=65537,
        key_size=key_size,
    )


def serialize_private_key(key: RSAPrivateKey) -> str:
    """Serialize private key to PEM text (PKCS1 'RSA PRIVATE KEY', no encryption)."""
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")


def deserialize_private_key(pem_data: str) -> RSAPrivateKey:
    """Deserialize private key from PEM text."""
    key = serialization.load_pem_private_key(pem_data.encode("ascii"), password=None)
    if not isinstance(key, RSAPrivateKey):
        raise ValueError("expected RSA private key")
    return key


def serialize_certificate(cert: x509.Certificate) -> str:
    """Serialize certificate to PEM text."""
    return cert.public_bytes(serialization.Encoding.PEM).decode("ascii")


def deserialize_certificate(pem_data: str) -> x509.Certificate:
    """Deserialize certificate from PEM text."""
    return x509.load_pem_x509_certificate(pem_data.encode("ascii"))


def generate_serial_number() -> int:
    """Generate certificate serial number from UUID4 (128-bit, ~122 bits of entropy)."""
    return uuid.uuid4().int
