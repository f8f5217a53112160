"""Generation of source files embedding the CA and server certificates.

The files set up a TLS configuration for a program without reading any
certificate from disk: the PEM blocks are embedded as byte-array literals.
"""

import platform
from datetime import datetime
from pathlib import Path
from string import Template

from cryptography.hazmat.backends.openssl import backend

from .cert_utils import deserialize_certificate, format_date
from .layout import DirLayout
from .logging_config import LOGGER
from .models import GeneratedFile

LANG_GO = "go"
LANG_PYTHON = "python"
LANGUAGES = (LANG_GO, LANG_PYTHON)

ROLE_SERVER = "server"
ROLE_CLIENT = "client"

FILE_NAMES = {
    LANG_GO: {ROLE_SERVER: "server_tls.go", ROLE_CLIENT: "client_tls.go"},
    LANG_PYTHON: {ROLE_SERVER: "server_tls.py", ROLE_CLIENT: "client_tls.py"},
}

GO_BYTES_PER_LINE = 18

GO_SERVER_TEMPLATE = """\
// MACHINE GENERATED BY easycert
// From ${system} (${arch}) with "${version}", on ${date}
// Server valid for: ${valid_until}

package main

import (
	"crypto/tls"
	"crypto/x509"
	"log"
)

var ServerTLSConfig *tls.Config

func init() {
	CA_CERT_BLOCK := ${ca_cert}

	CERT_BLOCK := ${cert}

	KEY_BLOCK := ${key}

	cert, err := tls.X509KeyPair(CERT_BLOCK, KEY_BLOCK)
	if err != nil {
		log.Fatal("server: load keys: ", err)
	}

	certPool := x509.NewCertPool()
	if ok := certPool.AppendCertsFromPEM(CA_CERT_BLOCK); !ok {
		log.Fatal("server: CertPool: CA certificate not valid")
	}

	ServerTLSConfig = &tls.Config{
		Certificates: []tls.Certificate{cert},
		ClientCAs:    certPool,
	}
}
"""

GO_CLIENT_TEMPLATE = """\
// MACHINE GENERATED BY easycert
// From ${system} (${arch}) with "${version}", on ${date}

// CertFile and KeyFile MUST be set to the client certificate and key.

package main

import (
	"crypto/tls"
	"crypto/x509"
	"log"
)

var ClientTLSConfig *tls.Config

func init() {
	CA_CERT_BLOCK := ${ca_cert}

	cert, err := tls.LoadX509KeyPair(CertFile, KeyFile)
	if err != nil {
		log.Fatal("client: load keys: ", err)
	}

	certPool := x509.NewCertPool()
	if ok := certPool.AppendCertsFromPEM(CA_CERT_BLOCK); !ok {
		log.Fatal("client: CertPool: CA certificate not valid")
	}

	ClientTLSConfig = &tls.Config{
		Certificates: []tls.Certificate{cert},
		RootCAs:      certPool,
	}
}
"""

PYTHON_SERVER_TEMPLATE = '''\
# MACHINE GENERATED BY easycert
# From ${system} (${arch}) with "${version}", on ${date}
# Server valid for: ${valid_until}

import os
import ssl
import tempfile

CA_CERT_BLOCK = ${ca_cert}

CERT_BLOCK = ${cert}

KEY_BLOCK = ${key}


def server_tls_context() -> ssl.SSLContext:
    """Return a server context using the embedded certificate and key."""
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.load_verify_locations(cadata=CA_CERT_BLOCK.decode("ascii"))

    # ssl only loads a key pair from a file.
    fd, path = tempfile.mkstemp(suffix=".pem")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(CERT_BLOCK + KEY_BLOCK)
        context.load_cert_chain(path)
    finally:
        os.remove(path)
    return context
'''

PYTHON_CLIENT_TEMPLATE = '''\
# MACHINE GENERATED BY easycert
# From ${system} (${arch}) with "${version}", on ${date}

import ssl

CA_CERT_BLOCK = ${ca_cert}


def client_tls_context(cert_file: str, key_file: str) -> ssl.SSLContext:
    """Return a client context trusting the embedded CA certificate."""
    context = ssl.create_default_context(cadata=CA_CERT_BLOCK.decode("ascii"))
    context.load_cert_chain(cert_file, key_file)
    return context
'''

TEMPLATES = {
    LANG_GO: {ROLE_SERVER: GO_SERVER_TEMPLATE, ROLE_CLIENT: GO_CLIENT_TEMPLATE},
    LANG_PYTHON: {ROLE_SERVER: PYTHON_SERVER_TEMPLATE, ROLE_CLIENT: PYTHON_CLIENT_TEMPLATE},
}


def go_block(data: bytes) -> str:
    """Render bytes as a Go '[]byte' literal, 18 decimal values per line."""
    lines = [
        ", ".join(str(b) for b in data[i : i + GO_BYTES_PER_LINE]) + ","
        for i in range(0, len(data), GO_BYTES_PER_LINE)
    ]
    return "[]byte{\n\t\t" + "\n\t\t".join(lines) + "\n\t}"


def python_block(data: bytes) -> str:
    """Render bytes as a parenthesized bytes literal, one line per text line."""
    lines = [f"    {line!r}\n" for line in data.splitlines(keepends=True)]
    return "(\n" + "".join(lines) + ")"


BLOCK_FORMATTERS = {LANG_GO: go_block, LANG_PYTHON: python_block}


def _header_values() -> dict[str, str]:
    return {
        "system": platform.system().lower(),
        "arch": platform.machine(),
        "version": backend.openssl_version_text(),
        "date": f"{datetime.now().astimezone():%d %b %y %H:%M %Z}",
        "valid_until": "",
    }


def _read(path: Path, what: str) -> bytes:
    if not path.is_file():
        raise FileNotFoundError(f"{what} not found: {path}")
    return path.read_bytes()


def emit(
    layout: DirLayout,
    ca_cert_path: Path,
    server: str | None = None,
    client: bool = False,
    language: str = LANG_GO,
    output_dir: Path = Path("."),
) -> list[GeneratedFile]:
    """Write the server and/or client TLS source files.

    Args:
        layout: Directory structure the server certificate and key are read from
        ca_cert_path: CA certificate embedded in every file
        server: Name of the server certificate, enables the server file
        client: Enables the client file
        language: Target language, one of LANGUAGES
        output_dir: Directory the files are written into

    Returns:
        The files generated, server first

    Raises:
        ValueError: If the language is unknown or no file is selected
        FileExistsError: If a target file already exists
        FileNotFoundError: If a certificate or key does not exist
    """
    if language not in LANGUAGES:
        raise ValueError(f"unsupported language: {language!r}")
    roles = ([ROLE_SERVER] if server else []) + ([ROLE_CLIENT] if client else [])
    if not roles:
        raise ValueError("at least one of server or client is required")

    targets = {role: output_dir / FILE_NAMES[language][role] for role in roles}
    for path in targets.values():
        if path.exists():
            raise FileExistsError(f"file already exists: {path}")

    to_block = BLOCK_FORMATTERS[language]
    values = _header_values()
    values["ca_cert"] = to_block(_read(ca_cert_path, "CA certificate"))

    if server:
        paths = layout.paths_for(server)
        cert_data = _read(paths.cert, "server certificate")
        values["cert"] = to_block(cert_data)
        values["key"] = to_block(_read(paths.key, "server key"))
        values["valid_until"] = format_date(deserialize_certificate(cert_data).not_valid_after_utc)

    generated = []
    for role, path in targets.items():
        path.write_text(Template(TEMPLATES[language][role]).substitute(values))
        LOGGER.info("Generated %s file: %s", role, path)
        generated.append(GeneratedFile(path=path, language=language, role=role))
    return generated
