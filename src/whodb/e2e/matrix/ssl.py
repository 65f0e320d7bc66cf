# src/whodb/e2e/matrix/ssl.py
"""SSL mode matrix: which modes to exercise and how each login is built."""
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from cryptography import x509

from .config import DatabaseFixture, SSLMode
from .errors import CertificateError

logger = logging.getLogger(__name__)

CONTAINER_CERT_PREFIX = "/app/certs/"
HOST_CERT_PREFIX = "../dev/certs/"

DISABLED_MODE = "disabled"


def container_path_to_host_path(container_path: Optional[str],
                                container_prefix: str = CONTAINER_CERT_PREFIX,
                                host_prefix: str = HOST_CERT_PREFIX) -> Optional[str]:
    """Map a certificate path inside the service container to the test host."""
    if not container_path:
        return None
    return container_path.replace(container_prefix, host_prefix, 1)


def load_ca_certificate(path: str) -> str:
    """Read a PEM CA certificate and check that it parses.

    Returns the PEM text as sent to the login form.
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            content = f.read()
    except OSError as e:
        logger.error(f"Cannot read CA certificate {path}: {e}")
        raise CertificateError(f"Cannot read CA certificate {path}: {e}") from e
    try:
        certificate = x509.load_pem_x509_certificate(content.encode('utf-8'))
    except ValueError as e:
        logger.error(f"CA certificate {path} is not a valid PEM certificate: {e}")
        raise CertificateError(f"CA certificate {path} is not a valid PEM certificate: {e}") from e
    logger.debug(f"Loaded CA certificate {path} for {certificate.subject.rfc4514_string()}")
    return content


def expects_secure_indicator(mode: str) -> bool:
    """Post-condition of a successful login: the secure badge shows for every mode but ``disabled``."""
    return mode != DISABLED_MODE


@dataclass
class SSLAttempt:
    """Everything needed for one login in the SSL mode matrix."""
    fixture_id: str
    mode: SSLMode
    user: Optional[str] = None
    password: Optional[str] = None
    port: Optional[int] = None
    cert_path: Optional[str] = None

    @property
    def name(self) -> str:
        return f"{self.mode.mode}: {self.mode.description}" if self.mode.description else self.mode.mode

    @property
    def expects_secure_indicator(self) -> bool:
        return expects_secure_indicator(self.mode.mode)

    def advanced(self) -> Dict[str, Any]:
        """Advanced login options; loads the CA certificate when the mode needs one."""
        ssl_options: Dict[str, Any] = {'mode': self.mode.mode}
        if self.mode.needs_cert and self.cert_path:
            ssl_options['caCertContent'] = load_ca_certificate(self.cert_path)
        options: Dict[str, Any] = {'ssl': ssl_options}
        if self.port is not None:
            options['Port'] = str(self.port)
        return options


def plan_ssl_attempts(fixture: DatabaseFixture, container_prefix: str = CONTAINER_CERT_PREFIX,
                      host_prefix: str = HOST_CERT_PREFIX, base_dir: Optional[str] = None) -> List[SSLAttempt]:
    """Attempts for every mode expected to succeed, in declaration order.

    SSL credentials fall back to the fixture's connection credentials.
    """
    ssl = fixture.ssl
    if ssl is None:
        return []
    cert_path = container_path_to_host_path(ssl.ca_cert_path, container_prefix, host_prefix)
    if cert_path and base_dir and not os.path.isabs(cert_path):
        cert_path = os.path.normpath(os.path.join(base_dir, cert_path))
    user = ssl.user if ssl.user is not None else fixture.connection.user
    password = ssl.password if ssl.password is not None else fixture.connection.password
    return [
        SSLAttempt(
            fixture_id=fixture.id,
            mode=mode,
            user=user,
            password=password,
            port=ssl.port,
            cert_path=cert_path,
        )
        for mode in ssl.succeeding_modes()
    ]
