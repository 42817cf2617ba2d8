"""Client certificate loading for direct repository connections."""

from __future__ import annotations

import logging
import ssl
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

CLIENT_CERT_FILE = "client.pem"
CLIENT_KEY_FILE = "client_key.pem"


@dataclass(slots=True)
class CertificateError(Exception):
    """Trust material could not be loaded."""

    message: str
    kind: str = "load"

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True, slots=True)
class CertificateBundle:
    """Resolved certificate file locations."""

    client_cert: Path
    client_key: Path


def locate_certificates(directory: Path) -> CertificateBundle:
    """Find the exported client certificate pair in ``directory``."""

    if not directory.is_dir():
        raise CertificateError(message=str(directory), kind="directory")
    client_cert = directory / CLIENT_CERT_FILE
    client_key = directory / CLIENT_KEY_FILE
    for required in (client_cert, client_key):
        if not required.is_file():
            raise CertificateError(message=str(required), kind="file")
    return CertificateBundle(client_cert=client_cert, client_key=client_key)


def load_ssl_context(directory: Path) -> ssl.SSLContext:
    """Build a client-authenticating SSL context from an exported certificate directory.

    Only the PEM export (client.pem, client_key.pem) is read. Server certificates
    are not validated, so an exported root.pem is ignored.
    """

    bundle = locate_certificates(directory)
    context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH)
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    try:
        context.load_cert_chain(certfile=str(bundle.client_cert), keyfile=str(bundle.client_key))
    except (ssl.SSLError, OSError) as error:
        raise CertificateError(message=str(error), kind="load") from error
    logger.debug("Loaded client certificate %s", bundle.client_cert)
    return context
