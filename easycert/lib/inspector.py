"""Inspection of certificates, requests and keys: cat, info, chk and ls."""

from collections.abc import Iterable
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey, RSAPublicKey
from cryptography.x509.oid import ExtendedKeyUsageOID
from OpenSSL import crypto

from .cert_utils import (
    deserialize_certificate,
    deserialize_csr,
    deserialize_private_key,
    extract_certificate_info,
    format_date,
    format_name,
    get_certificate_serial_hex,
    validate_csr_signature,
)
from .layout import (
    EXT_CERT,
    EXT_KEY,
    EXT_REQUEST,
    KIND_CERT,
    KIND_KEY,
    KIND_REQUEST,
    KINDS,
    DirLayout,
)

HEX_BYTES_PER_LINE = 15

EXTENSION_NAMES = {
    x509.BasicConstraints: "X509v3 Basic Constraints",
    x509.KeyUsage: "X509v3 Key Usage",
    x509.ExtendedKeyUsage: "X509v3 Extended Key Usage",
    x509.SubjectAlternativeName: "X509v3 Subject Alternative Name",
    x509.SubjectKeyIdentifier: "X509v3 Subject Key Identifier",
    x509.AuthorityKeyIdentifier: "X509v3 Authority Key Identifier",
}

EXTENDED_KEY_USAGE_NAMES = {
    ExtendedKeyUsageOID.SERVER_AUTH: "TLS Web Server Authentication",
    ExtendedKeyUsageOID.CLIENT_AUTH: "TLS Web Client Authentication",
    ExtendedKeyUsageOID.CODE_SIGNING: "Code Signing",
    ExtendedKeyUsageOID.EMAIL_PROTECTION: "E-mail Protection",
    ExtendedKeyUsageOID.TIME_STAMPING: "Time Stamping",
    ExtendedKeyUsageOID.OCSP_SIGNING: "OCSP Signing",
}


def _read(path: Path) -> bytes:
    if not path.is_file():
        raise FileNotFoundError(f"file not found: {path}")
    return path.read_bytes()


def load_certificate(path: Path) -> x509.Certificate:
    return deserialize_certificate(_read(path))


def load_request(path: Path) -> x509.CertificateSigningRequest:
    return deserialize_csr(_read(path))


def load_private_key(path: Path) -> RSAPrivateKey:
    return deserialize_private_key(_read(path))


# == Text rendering


def _hex_block(data: bytes, indent: str) -> list[str]:
    octets = [f"{b:02x}" for b in data]
    lines = []
    for i in range(0, len(octets), HEX_BYTES_PER_LINE):
        chunk = ":".join(octets[i : i + HEX_BYTES_PER_LINE])
        last = i + HEX_BYTES_PER_LINE >= len(octets)
        lines.append(indent + chunk + ("" if last else ":"))
    return lines


def _int_bytes(value: int) -> bytes:
    # A leading zero octet keeps the value positive, as in DER.
    return value.to_bytes(value.bit_length() // 8 + 1, "big")


def _key_id(value: bytes | None) -> str:
    if value is None:
        return ""
    return ":".join(f"{b:02X}" for b in value)


def _describe_public_key(public_key: object, indent: str) -> list[str]:
    if not isinstance(public_key, RSAPublicKey):
        return [f"{indent}Public Key Algorithm: {type(public_key).__name__}"]
    numbers = public_key.public_numbers()
    lines = [
        f"{indent}Public Key Algorithm: rsaEncryption",
        f"{indent}    Public-Key: ({public_key.key_size} bit)",
        f"{indent}    Modulus:",
    ]
    lines.extend(_hex_block(_int_bytes(numbers.n), indent + "        "))
    lines.append(f"{indent}    Exponent: {numbers.e} (0x{numbers.e:x})")
    return lines


def _describe_key_usage(usage: x509.KeyUsage) -> str:
    flags = [
        ("Digital Signature", usage.digital_signature),
        ("Non Repudiation", usage.content_commitment),
        ("Key Encipherment", usage.key_encipherment),
        ("Data Encipherment", usage.data_encipherment),
        ("Key Agreement", usage.key_agreement),
        ("Certificate Sign", usage.key_cert_sign),
        ("CRL Sign", usage.crl_sign),
    ]
    if usage.key_agreement:
        flags.append(("Encipher Only", usage.encipher_only))
        flags.append(("Decipher Only", usage.decipher_only))
    return ", ".join(name for name, enabled in flags if enabled)


def _describe_general_name(name: x509.GeneralName) -> str:
    if isinstance(name, x509.IPAddress):
        return f"IP Address:{name.value}"
    if isinstance(name, x509.DNSName):
        return f"DNS:{name.value}"
    if isinstance(name, x509.RFC822Name):
        return f"email:{name.value}"
    if isinstance(name, x509.UniformResourceIdentifier):
        return f"URI:{name.value}"
    return str(name.value)


def _describe_extension_value(value: x509.ExtensionType) -> str:
    if isinstance(value, x509.BasicConstraints):
        text = "CA:TRUE" if value.ca else "CA:FALSE"
        if value.path_length is not None:
            text += f", pathlen:{value.path_length}"
        return text
    if isinstance(value, x509.KeyUsage):
        return _describe_key_usage(value)
    if isinstance(value, x509.ExtendedKeyUsage):
        return ", ".join(
            EXTENDED_KEY_USAGE_NAMES.get(usage, usage.dotted_string) for usage in value
        )
    if isinstance(value, x509.SubjectAlternativeName):
        return ", ".join(_describe_general_name(name) for name in value)
    if isinstance(value, x509.SubjectKeyIdentifier):
        return _key_id(value.digest)
    if isinstance(value, x509.AuthorityKeyIdentifier):
        return _key_id(value.key_identifier)
    return repr(value)


def _describe_extensions(extensions: x509.Extensions, indent: str) -> list[str]:
    if not len(extensions):
        return []
    lines = [f"{indent}X509v3 extensions:"]
    for ext in extensions:
        name = EXTENSION_NAMES.get(type(ext.value), ext.oid.dotted_string)
        critical = " critical" if ext.critical else ""
        lines.append(f"{indent}    {name}:{critical}")
        lines.append(f"{indent}        {_describe_extension_value(ext.value)}")
    return lines


def _signature_algorithm(obj: x509.Certificate | x509.CertificateSigningRequest) -> str:
    algorithm = obj.signature_hash_algorithm
    name = algorithm.name if algorithm is not None else "none"
    return f"{name}WithRSAEncryption"


def describe_certificate(cert: x509.Certificate) -> list[str]:
    """Render a certificate as text, in the layout of 'openssl x509 -text'."""
    lines = [
        "Certificate:",
        "    Data:",
        f"        Version: {cert.version.value + 1} (0x{cert.version.value:x})",
        "        Serial Number:",
        f"            {get_certificate_serial_hex(cert).lower()}",
        f"        Signature Algorithm: {_signature_algorithm(cert)}",
        f"        Issuer: {format_name(cert.issuer)}",
        "        Validity",
        f"            Not Before: {format_date(cert.not_valid_before_utc)}",
        f"            Not After : {format_date(cert.not_valid_after_utc)}",
        f"        Subject: {format_name(cert.subject)}",
        "        Subject Public Key Info:",
    ]
    lines.extend(_describe_public_key(cert.public_key(), "            "))
    lines.extend(_describe_extensions(cert.extensions, "        "))
    lines.append(f"    Signature Algorithm: {_signature_algorithm(cert)}")
    lines.extend(_hex_block(cert.signature, "         "))
    return lines


def describe_request(csr: x509.CertificateSigningRequest) -> list[str]:
    """Render a certificate request as text, in the layout of 'openssl req -text'."""
    lines = [
        "Certificate Request:",
        "    Data:",
        "        Version: 1 (0x0)",
        f"        Subject: {format_name(csr.subject)}",
        "        Subject Public Key Info:",
    ]
    lines.extend(_describe_public_key(csr.public_key(), "            "))
    extensions = _describe_extensions(csr.extensions, "            ")
    lines.append("        Attributes:")
    if extensions:
        lines.append("            Requested Extensions:")
        lines.extend(extensions[1:])
    else:
        lines.append("            (none)")
    lines.append(f"    Signature Algorithm: {_signature_algorithm(csr)}")
    lines.extend(_hex_block(csr.signature, "         "))
    return lines


def describe_private_key(key: RSAPrivateKey) -> list[str]:
    """Render an RSA private key as text, in the layout of 'openssl rsa -text'."""
    numbers = key.private_numbers()
    public = numbers.public_numbers
    lines = [f"Private-Key: ({key.key_size} bit, 2 primes)", "modulus:"]
    lines.extend(_hex_block(_int_bytes(public.n), "    "))
    lines.append(f"publicExponent: {public.e} (0x{public.e:x})")
    for label, value in (
        ("privateExponent", numbers.d),
        ("prime1", numbers.p),
        ("prime2", numbers.q),
        ("exponent1", numbers.dmp1),
        ("exponent2", numbers.dmq1),
        ("coefficient", numbers.iqmp),
    ):
        lines.append(f"{label}:")
        lines.extend(_hex_block(_int_bytes(value), "    "))
    return lines


def cat(path: Path, kind: str) -> list[str]:
    """Return the decoded contents of a certificate, request or key."""
    if kind == KIND_CERT:
        return describe_certificate(load_certificate(path))
    if kind == KIND_REQUEST:
        return describe_request(load_request(path))
    if kind == KIND_KEY:
        return describe_private_key(load_private_key(path))
    raise ValueError(f"unknown file kind: {kind!r}")


# == Information


def info(
    path: Path,
    end_date: bool = False,
    name_hash: bool = False,
    issuer: bool = False,
    name: bool = False,
) -> list[str]:
    """Return selected metadata of a certificate.

    When no field is selected, subject, issuer and end date are returned.
    """
    cert_info = extract_certificate_info(load_certificate(path))
    if not (end_date or name_hash or issuer or name):
        return [
            f"subject={cert_info.subject}",
            f"issuer={cert_info.issuer}",
            f"notAfter={cert_info.not_after}",
        ]

    lines = []
    if end_date:
        lines.append(f"notAfter={cert_info.not_after}")
    if name_hash:
        lines.append(cert_info.hash)
    if issuer:
        lines.append(f"issuer={cert_info.issuer}")
    if name:
        lines.append(f"subject={cert_info.subject}")
    return lines


# == Checking


def check_certificate(path: Path, ca_cert_path: Path) -> str:
    """Verify a certificate against the CA certificate.

    Raises:
        FileNotFoundError: If either file does not exist
        ValueError: If the certificate does not verify
    """
    ca_cert = load_certificate(ca_cert_path)
    cert = load_certificate(path)

    store = crypto.X509Store()
    store.add_cert(crypto.X509.from_cryptography(ca_cert))
    context = crypto.X509StoreContext(store, crypto.X509.from_cryptography(cert))
    try:
        context.verify_certificate()
    except crypto.X509StoreContextError as e:
        raise ValueError(f"{path}: verification failed: {e}") from e
    return f"{path}: OK"


def check_request(path: Path) -> str:
    """Verify the self-signature of a certificate request."""
    csr = load_request(path)
    if not validate_csr_signature(csr):
        raise ValueError(f"{path}: certificate request self-signature verify failure")
    return "verify OK"


def check_private_key(path: Path) -> str:
    """Check the consistency of an RSA private key."""
    key = load_private_key(path)
    numbers = key.private_numbers()
    if numbers.p * numbers.q != numbers.public_numbers.n:
        raise ValueError(f"{path}: RSA key error: n does not equal p q")
    return "RSA key ok"


def check(path: Path, kind: str, ca_cert_path: Path) -> str:
    if kind == KIND_CERT:
        return check_certificate(path, ca_cert_path)
    if kind == KIND_REQUEST:
        return check_request(path)
    if kind == KIND_KEY:
        return check_private_key(path)
    raise ValueError(f"unknown file kind: {kind!r}")


# == Listing


def list_files(layout: DirLayout, kinds: Iterable[str] = ()) -> dict[str, list[str]]:
    """Return the base names of the certificates, requests and keys present.

    No kind given means all of them.
    """
    selected = set(kinds) or set(KINDS)
    unknown = selected - set(KINDS)
    if unknown:
        raise ValueError(f"unknown file kind: {sorted(unknown)}")

    patterns = {
        KIND_CERT: (layout.certs, f"*{EXT_CERT}"),
        KIND_REQUEST: (layout.root, f"*{EXT_REQUEST}"),
        KIND_KEY: (layout.private, f"*{EXT_KEY}"),
    }
    listing = {}
    for kind in KINDS:
        if kind not in selected:
            continue
        directory, pattern = patterns[kind]
        listing[kind] = sorted(path.name for path in directory.glob(pattern))
    return listing
