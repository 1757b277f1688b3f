"""Key pair and self-signed certificate generation with progress hooks."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from .cert_utils import generate_private_key, serialize_certificate, serialize_private_key
from .certificate_builder import CertificateBuilder
from .config import ProvisioningConfig
from .models import CertificateMaterial

logger = logging.getLogger(__name__)


@dataclass
class GenerationHooks:
    """Optional progress callbacks, invoked in declaration order.

    Callers use them to persist the PEM artifacts and report progress; the
    generator itself never touches the file system.
    """

    before_generate_key_pair: Callable[[], None] | None = None
    on_generate_key_pair: Callable[[str], None] | None = None
    before_generate_certificate: Callable[[], None] | None = None
    on_generate_certificate: Callable[[str], None] | None = None


class CertificateGenerator:
    """Generates an RSA key pair and a self-signed certificate over it."""

    def __init__(self, config: ProvisioningConfig) -> None:
        """Initialize generator with configuration.

        Args:
            config: Provisioning configuration with key size, validity and subject
        """
        self.config = config

    def generate(self, hooks: GenerationHooks | None = None) -> CertificateMaterial:
        """Generate private key and certificate in PEM format.

        Failures from the cryptography backend propagate unchanged.

        Args:
            hooks: Optional progress callbacks

        Returns:
            CertificateMaterial with both certificate and private key
        """
        hooks = hooks or GenerationHooks()

        if hooks.before_generate_key_pair is not None:
            hooks.before_generate_key_pair()
        private_key = generate_private_key(self.config.key_size)
        private_key_pem = serialize_private_key(private_key)
        logger.debug("Generated %d-bit RSA key pair", self.config.key_size)
        if hooks.on_generate_key_pair is not None:
            hooks.on_generate_key_pair(private_key_pem)

        if hooks.before_generate_certificate is not None:
            hooks.before_generate_certificate()
        certificate = CertificateBuilder.build_self_signed(
            subject_dn=self.config.subject,
            private_key=private_key,
            validity_days=self.config.validity_days,
        )
        certificate_pem = serialize_certificate(certificate)
        logger.debug("Generated self-signed certificate")
        if hooks.on_generate_certificate is not None:
            hooks.on_generate_certificate(certificate_pem)

        return CertificateMaterial(
            certificate_pem=certificate_pem,
            private_key_pem=private_key_pem,
        )

    @staticmethod
    def load_certificate_file(path: Path) -> CertificateMaterial:
        """Read a caller-supplied PEM certificate verbatim.

        Raises:
            FileNotFoundError: If the certificate file does not exist
        """
        if not path.exists():
            raise FileNotFoundError(f"certificate file not found: {path}")
        return CertificateMaterial(certificate_pem=path.read_text())
