"""Result models for CA operations."""

from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class SetupResult:
    """Result from creating the directory structure."""

    root: Path
    config_path: Path
    config_template_path: Path


@dataclass
class CAResult:
    """Result from CA creation.

    Contains file paths and serial number for the self-signed CA certificate.
    """

    key_path: Path
    cert_path: Path
    serial_number: str


@dataclass
class RequestResult:
    """Result from certificate request creation."""

    key_path: Path
    request_path: Path
    server_config_path: Path | None = None


@dataclass
class SignResult:
    """Result from signing a certificate request.

    removed_paths lists the request and, for servers, the per-server config.
    """

    cert_path: Path
    serial_number: str
    removed_paths: list[Path] = field(default_factory=list)


@dataclass
class CertificateInfo:
    """Metadata of a certificate, rendered in OpenSSL style."""

    subject: str
    issuer: str
    not_before: str
    not_after: str
    hash: str
    serial_number: str


@dataclass
class IndexEntry:
    """One line of the CA index ledger."""

    status: str
    expiry: str
    revocation: str
    serial_number: str
    filename: str
    subject: str


@dataclass
class GeneratedFile:
    """A source file produced by the code emitter."""

    path: Path
    language: str
    role: str
