"""Configuration template rendered into the CA directory.

``setup`` renders ``openssl.cfg`` once, together with ``openssl.cfg.tmpl``
which keeps the host name and subjectAltName placeholders so that ``req`` can
render a per-server configuration later on. The rendered files stay in the
OpenSSL configuration format, so they remain usable with the ``openssl``
binary, and are read back with configparser to pick up the subject defaults.
"""

import configparser
import os
import socket
from pathlib import Path
from string import Template

from .config import CAConfig, DistinguishedName
from .hosts import HostList, parse_subject_alt_name
from .layout import CA_NAME, EXT_CERT, EXT_KEY, DirLayout

CONFIG_MODE = 0o600

SECTION_DN = "req_distinguished_name"
SECTION_SERVER = "server_ext"

# Subject fields in the order they appear in a certificate subject.
DN_FIELDS = {
    "countryName": "country",
    "stateOrProvinceName": "state",
    "localityName": "locality",
    "organizationName": "organization",
    "organizationalUnitName": "organizational_unit",
}

CONFIG_TEMPLATE = """\
# Configuration for the certification authority in ${root_dir}

[ca]
default_ca = CA_default

[CA_default]
dir = ${root_dir}
certs = $$dir/certs
crl_dir = $$dir/crl
new_certs_dir = $$dir/newcerts
database = $$dir/index.txt
serial = $$dir/serial
certificate = $$certs/${ca_name}${ext_cert}
private_key = $$dir/private/${ca_name}${ext_key}
default_days = 365
default_md = sha256
policy = policy_anything

[policy_anything]
countryName = optional
stateOrProvinceName = optional
localityName = optional
organizationName = optional
organizationalUnitName = optional
commonName = supplied
emailAddress = optional

[req]
default_bits = 2048
default_md = sha256
prompt = no
distinguished_name = req_distinguished_name

[req_distinguished_name]
countryName = ${country}
stateOrProvinceName = ${state}
localityName = ${locality}
organizationName = ${organization}
organizationalUnitName = ${organizational_unit}
commonName = ${host_name}

[v3_ca]
basicConstraints = critical, CA:true
keyUsage = critical, keyCertSign, cRLSign
subjectKeyIdentifier = hash
authorityKeyIdentifier = keyid:always, issuer

[server_ext]
basicConstraints = CA:FALSE
keyUsage = digitalSignature, keyEncipherment
extendedKeyUsage = serverAuth, clientAuth
${subject_alt_name}
"""


def get_host_name() -> str:
    """Return the local host name.

    Raises:
        OSError: If the host name cannot be determined
    """
    host = socket.gethostname()
    if not host:
        raise OSError(
            "could not get hostname; you may want to fix your '/etc/hosts' and/or DNS setup"
        )
    return host


def render_config(template: str, **values: str) -> str:
    """Substitute the given placeholders, leaving any other one in place."""
    return Template(template).safe_substitute(**values)


def _write_private(path: Path, content: str) -> None:
    path.write_text(content)
    os.chmod(path, CONFIG_MODE)


def write_config_files(layout: DirLayout, config: CAConfig, host_name: str) -> tuple[Path, Path]:
    """Render openssl.cfg and the per-server template into the CA root.

    Returns:
        Tuple of (config path, server template path)
    """
    values = {
        "root_dir": str(layout.root),
        "ca_name": CA_NAME,
        "ext_cert": EXT_CERT,
        "ext_key": EXT_KEY,
        "country": config.country,
        "state": config.state,
        "locality": config.locality,
        "organization": config.organization,
        "organizational_unit": config.organizational_unit,
    }
    server_template = render_config(CONFIG_TEMPLATE, **values)
    _write_private(
        layout.config,
        render_config(server_template, host_name=host_name, subject_alt_name=""),
    )
    _write_private(layout.config_template, server_template)
    return layout.config, layout.config_template


def write_server_config(layout: DirLayout, path: Path, hosts: HostList, host_name: str) -> Path:
    """Render the per-server configuration holding the subjectAltName line."""
    if not layout.config_template.is_file():
        raise FileNotFoundError(f"configuration template not found: {layout.config_template}")
    template = layout.config_template.read_text()
    content = render_config(
        template,
        host_name=host_name,
        subject_alt_name=f"subjectAltName = {hosts}",
    )
    _write_private(path, content)
    return path


def load_config(path: Path) -> configparser.ConfigParser:
    """Parse a rendered configuration file.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file cannot be parsed
    """
    if not path.is_file():
        raise FileNotFoundError(f"configuration file not found: {path}")
    parser = configparser.ConfigParser(interpolation=None)
    parser.optionxform = str  # type: ignore[assignment,method-assign]
    try:
        parser.read_string(path.read_text(), source=str(path))
    except configparser.Error as e:
        raise ValueError(f"parsing error in configuration {path}: {e}") from e
    return parser


def subject_from_config(parser: configparser.ConfigParser, common_name: str) -> DistinguishedName:
    """Build the subject from the configured defaults and a common name."""
    fields = {}
    if parser.has_section(SECTION_DN):
        section = parser[SECTION_DN]
        fields = {attr: section.get(key, "").strip() for key, attr in DN_FIELDS.items()}
    return DistinguishedName(common_name=common_name, **fields)


def host_name_from_config(parser: configparser.ConfigParser) -> str:
    """Return the host name rendered as commonName, empty if unset."""
    if not parser.has_section(SECTION_DN):
        return ""
    return parser[SECTION_DN].get("commonName", "").strip()


def hosts_from_config(parser: configparser.ConfigParser) -> HostList:
    """Return the subjectAltName hosts of a server configuration."""
    if not parser.has_section(SECTION_SERVER):
        return HostList()
    value = parser[SECTION_SERVER].get("subjectAltName", "")
    return parse_subject_alt_name(value)
