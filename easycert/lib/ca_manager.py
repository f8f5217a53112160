"""CA manager for certificate authority operations."""

import os
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from .ca_database import CADatabase
from .cert_utils import (
    deserialize_certificate,
    deserialize_csr,
    deserialize_private_key,
    format_serial,
    generate_private_key,
    get_common_name,
    get_subject_alt_name,
    serialize_certificate,
    serialize_csr,
    serialize_private_key,
)
from .certificate_builder import CertificateBuilder
from .config import CAConfig, validate_rsa_size, validate_years
from .hosts import HostList, hosts_from_extension
from .layout import DirLayout
from .logging_config import LOGGER
from .models import CAResult, RequestResult, SetupResult, SignResult
from .openssl_config import (
    get_host_name,
    host_name_from_config,
    hosts_from_config,
    load_config,
    subject_from_config,
    write_config_files,
    write_server_config,
)

DIR_MODE = 0o755
PRIVATE_DIR_MODE = 0o710
KEY_MODE = 0o400


def _write_private_key(path: Path, key: RSAPrivateKey) -> None:
    """Create the key file with its final mode, failing if it exists."""
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, KEY_MODE)
    with os.fdopen(fd, "wb") as f:
        f.write(serialize_private_key(key))


class CAManager:
    """Certificate Authority manager for CA operations."""

    def __init__(self, layout: DirLayout, config: CAConfig | None = None) -> None:
        """Initialize CA manager.

        Args:
            layout: Directory structure of the certification authority
            config: CA configuration with key size and validity defaults
        """
        self.layout = layout
        self.config = config if config is not None else CAConfig()
        self.database = CADatabase(layout)

    def setup(self, host_name: str | None = None) -> SetupResult:
        """Create the directory structure, CA database and configuration files.

        Args:
            host_name: Host name rendered into the configuration, defaults to
                the local host name

        Raises:
            FileExistsError: If the root directory already exists
        """
        root = self.layout.root
        if root.exists():
            raise FileExistsError(f"the certification authority's structure exists: {root}")

        root.mkdir(mode=DIR_MODE, parents=True)
        for directory in self.layout.directories[1:]:
            directory.mkdir(mode=DIR_MODE)
        os.chmod(self.layout.private, PRIVATE_DIR_MODE)

        self.database.initialize()

        if host_name is None:
            host_name = get_host_name()
        config_path, template_path = write_config_files(self.layout, self.config, host_name)

        LOGGER.info("Directory structure created in %s", root)
        return SetupResult(root=root, config_path=config_path, config_template_path=template_path)

    def create_ca(self, rsa_size: int | None = None, years: int | None = None) -> CAResult:
        """Generate the CA key and its self-signed certificate.

        Args:
            rsa_size: RSA key size in bits, defaults to config.key_size
            years: Validity in years, defaults to config.ca_validity_years

        Raises:
            FileNotFoundError: If the directory structure does not exist
            FileExistsError: If the CA certificate or key already exist
        """
        key_size = validate_rsa_size(rsa_size if rsa_size is not None else self.config.key_size)
        validity_years = validate_years(years if years is not None else self.config.ca_validity_years)

        self.layout.require_initialized()
        paths = self.layout.ca
        if paths.cert.exists():
            raise FileExistsError(f"the certification authority's certificate exists: {paths.cert}")
        if paths.key.exists():
            raise FileExistsError(f"the certification authority's key exists: {paths.key}")

        settings = load_config(self.layout.config)
        subject = subject_from_config(settings, self.config.ca_common_name)

        LOGGER.info("Building certification authority (RSA %d bits)", key_size)
        key = generate_private_key(key_size)
        cert = CertificateBuilder.build_root_ca(
            subject_dn=subject,
            private_key=key,
            validity_years=validity_years,
            serial_number=self.database.next_serial(),
        )

        _write_private_key(paths.key, key)
        paths.cert.write_bytes(serialize_certificate(cert))
        self.database.record(cert)

        LOGGER.info("Generated certificate: %s", paths.cert)
        LOGGER.info("Generated private key: %s", paths.key)
        return CAResult(
            key_path=paths.key,
            cert_path=paths.cert,
            serial_number=format_serial(cert.serial_number),
        )

    def load_ca(self) -> tuple[x509.Certificate, RSAPrivateKey]:
        """Load the CA certificate and private key.

        Raises:
            FileNotFoundError: If the CA key or cert not found
        """
        paths = self.layout.ca
        if not paths.cert.exists():
            raise FileNotFoundError(f"CA cert not found: {paths.cert} (run 'easycert ca' first)")
        if not paths.key.exists():
            raise FileNotFoundError(f"CA key not found: {paths.key}")

        ca_cert = deserialize_certificate(paths.cert.read_bytes())
        ca_key = deserialize_private_key(paths.key.read_bytes())
        return ca_cert, ca_key

    def create_request(
        self,
        name: str,
        rsa_size: int | None = None,
        hosts: HostList | None = None,
        common_name: str | None = None,
    ) -> RequestResult:
        """Generate a private key and a certificate signing request.

        With hosts, a per-server configuration holding the subjectAltName is
        rendered from the configuration template and the request carries the
        extension.

        Args:
            name: Certificate name the file paths derive from
            rsa_size: RSA key size in bits, defaults to config.key_size
            hosts: IPs and DNS names the server certificate is valid for
            common_name: Subject CN; defaults to the configured host name for
                servers and to name otherwise

        Raises:
            FileNotFoundError: If the directory structure does not exist
            FileExistsError: If the request already exists
        """
        key_size = validate_rsa_size(rsa_size if rsa_size is not None else self.config.key_size)

        self.layout.require_initialized()
        paths = self.layout.paths_for(name)
        if paths.request.exists():
            raise FileExistsError(f"certificate request already exists: {paths.request}")

        server_config_path = None
        if hosts:
            server_config_path = write_server_config(
                self.layout, paths.server_config, hosts, get_host_name()
            )
            settings = load_config(server_config_path)
            default_cn = host_name_from_config(settings) or name
        else:
            settings = load_config(self.layout.config)
            default_cn = name
        subject = subject_from_config(settings, common_name or default_cn)

        key = generate_private_key(key_size)
        csr = CertificateBuilder.build_request(subject, key, hosts)

        if paths.key.exists():
            # Renewal: the key of the previous certificate is replaced
            paths.key.unlink()
            LOGGER.info("Replacing private key: %s", paths.key)
        _write_private_key(paths.key, key)
        paths.request.write_bytes(serialize_csr(csr))

        LOGGER.info("Generated request: %s", paths.request)
        LOGGER.info("Generated private key: %s", paths.key)
        return RequestResult(
            key_path=paths.key,
            request_path=paths.request,
            server_config_path=server_config_path,
        )

    def sign_request(self, name: str, years: int | None = None) -> SignResult:
        """Sign a pending request with the CA, generating a new certificate.

        The subjectAltName comes from the per-server configuration when there
        is one, otherwise it is copied from the request. The request and the
        per-server configuration are removed afterwards.

        Args:
            name: Certificate name the file paths derive from
            years: Validity in years, defaults to config.validity_years

        Raises:
            FileNotFoundError: If the CA or the request do not exist
            FileExistsError: If the certificate already exists
            ValueError: If the request signature is invalid
        """
        validity_years = validate_years(years if years is not None else self.config.validity_years)

        self.layout.require_initialized()
        paths = self.layout.paths_for(name)
        if paths.cert.exists():
            raise FileExistsError(f"certificate already exists: {paths.cert}")
        if not paths.request.exists():
            raise FileNotFoundError(f"certificate request not found: {paths.request}")

        ca_cert, ca_key = self.load_ca()
        csr = deserialize_csr(paths.request.read_bytes())

        is_server = paths.server_config.is_file()
        if is_server:
            hosts: HostList | None = hosts_from_config(load_config(paths.server_config))
        else:
            san = get_subject_alt_name(csr.extensions)
            hosts = hosts_from_extension(san) if san is not None else None

        cert = CertificateBuilder.sign_request(
            csr=csr,
            ca_cert=ca_cert,
            ca_key=ca_key,
            validity_years=validity_years,
            serial_number=self.database.next_serial(),
            hosts=hosts,
        )

        paths.cert.write_bytes(serialize_certificate(cert))
        self.database.record(cert)

        removed = [paths.request]
        if is_server:
            removed.append(paths.server_config)
        for path in removed:
            path.unlink()
            LOGGER.info("Removed %s", path)

        LOGGER.info("Generated certificate: %s (CN=%s)", paths.cert, get_common_name(cert.subject))
        return SignResult(
            cert_path=paths.cert,
            serial_number=format_serial(cert.serial_number),
            removed_paths=removed,
        )
