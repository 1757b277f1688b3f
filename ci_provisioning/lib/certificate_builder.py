"""Certificate builder for the self-signed CI certificate."""

from datetime import datetime, timedelta, timezone

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from .cert_utils import generate_serial_number
from .config import DistinguishedName


class CertificateBuilder:
    """Builds X.509 certificates for connected app authentication."""

    @staticmethod
    def build_self_signed(
        subject_dn: DistinguishedName,
        private_key: RSAPrivateKey,
        validity_days: int,
    ) -> x509.Certificate:
        """Build self-signed leaf certificate over the given key.

        Subject and issuer are identical. No extensions are added; the
        platform only uses the certificate to verify JWT bearer signatures.

        Args:
            subject_dn: Distinguished name for subject and issuer
            private_key: RSA private key whose public half is certified and which signs
            validity_days: Certificate validity period in days

        Returns:
            Self-signed X.509 certificate signed with SHA-256
        """
        subject = subject_dn.to_x509_name()
        not_before = datetime.now(timezone.utc)
        not_after = not_before + timedelta(days=validity_days)

        builder = (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(subject)
            .public_key(private_key.public_key())
            .serial_number(generate_serial_number())
            .not_valid_before(not_before)
            .not_valid_after(not_after)
        )

        return builder.sign(private_key, hashes.SHA256())
