"""Certificate utility functions for key generation, serialization, and metadata extraction."""

from datetime import datetime

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from OpenSSL import crypto

from .models import CertificateInfo

PUBLIC_EXPONENT = 65537


def generate_private_key(key_size: int = 2048) -> RSAPrivateKey:
    """Generate RSA private key with specified size."""
    return rsa.generate_private_key(
        public_exponent=PUBLIC_EXPONENT,
        key_size=key_size,
    )


def serialize_private_key(key: RSAPrivateKey) -> bytes:
    """Serialize private key to PEM format (PKCS8, no encryption)."""
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def deserialize_private_key(pem_data: bytes) -> RSAPrivateKey:
    """Deserialize private key from PEM bytes.

    Loading runs the RSA consistency checks of the crypto backend.

    Raises:
        ValueError: If the key is malformed, encrypted or not RSA
    """
    try:
        key = serialization.load_pem_private_key(pem_data, password=None)
    except TypeError as e:
        raise ValueError("encrypted private keys are not supported") from e
    if not isinstance(key, RSAPrivateKey):
        raise ValueError("expected RSA private key")
    return key


def serialize_certificate(cert: x509.Certificate) -> bytes:
    """Serialize certificate to PEM format."""
    return cert.public_bytes(serialization.Encoding.PEM)


def deserialize_certificate(pem_data: bytes) -> x509.Certificate:
    """Deserialize certificate from PEM bytes."""
    return x509.load_pem_x509_certificate(pem_data)


def serialize_csr(csr: x509.CertificateSigningRequest) -> bytes:
    """Serialize CSR to PEM format."""
    return csr.public_bytes(serialization.Encoding.PEM)


def deserialize_csr(pem_data: bytes) -> x509.CertificateSigningRequest:
    """Deserialize CSR from PEM bytes."""
    return x509.load_pem_x509_csr(pem_data)


def format_serial(serial_number: int) -> str:
    """Return a serial number as uppercase hex with an even number of digits."""
    serial_hex = f"{serial_number:X}"
    if len(serial_hex) % 2 != 0:
        serial_hex = "0" + serial_hex
    return serial_hex


def get_certificate_serial_hex(cert: x509.Certificate) -> str:
    """Return certificate serial number as hex with colons (e.g., 3A:F2:B1:...)."""
    serial_hex = format_serial(cert.serial_number)
    return ":".join(serial_hex[i : i + 2] for i in range(0, len(serial_hex), 2))


def format_name(name: x509.Name) -> str:
    """Render a name in OpenSSL one-line style, e.g. 'C = ES, O = Foo, CN = bar'."""
    return ", ".join(f"{attr.rfc4514_attribute_name} = {attr.value!s}" for attr in name)


def format_name_slashed(name: x509.Name) -> str:
    """Render a name in the slash style used by the index ledger, e.g. '/C=ES/CN=bar'."""
    return "".join(f"/{attr.rfc4514_attribute_name}={attr.value!s}" for attr in name)


def format_date(value: datetime) -> str:
    """Render a date the way OpenSSL prints validity, e.g. 'Oct  8 10:00:00 2027 GMT'."""
    return f"{value:%b} {value.day:2d} {value:%H:%M:%S %Y} GMT"


def subject_name_hash(cert: x509.Certificate) -> str:
    """Return the OpenSSL subject name hash as 8 lowercase hex digits.

    It is the name OpenSSL expects for the certificate in a hashed CA
    directory (``<hash>.0``).
    """
    return f"{crypto.X509.from_cryptography(cert).subject_name_hash():08x}"


def get_common_name(name: x509.Name) -> str:
    """Return the CN of a name, empty if there is none."""
    attrs = name.get_attributes_for_oid(x509.NameOID.COMMON_NAME)
    if not attrs:
        return ""
    value = attrs[0].value
    if not isinstance(value, str):
        raise ValueError("CN must be string")
    return value


def extract_certificate_info(cert: x509.Certificate) -> CertificateInfo:
    """Extract the metadata printed by the info command."""
    return CertificateInfo(
        subject=format_name(cert.subject),
        issuer=format_name(cert.issuer),
        not_before=format_date(cert.not_valid_before_utc),
        not_after=format_date(cert.not_valid_after_utc),
        hash=subject_name_hash(cert),
        serial_number=format_serial(cert.serial_number),
    )


def extract_csr_public_key(
    csr: x509.CertificateSigningRequest,
) -> rsa.RSAPublicKey:
    """Extract public key from CSR.

    Raises:
        ValueError: If public key is not RSA type
    """
    public_key = csr.public_key()
    if not isinstance(public_key, rsa.RSAPublicKey):
        raise ValueError("CSR public key must be RSA type")
    return public_key


def validate_csr_signature(csr: x509.CertificateSigningRequest) -> bool:
    """Verify CSR self-signature to prove private key possession."""
    try:
        return csr.is_signature_valid
    except Exception:
        return False


def get_subject_alt_name(
    extensions: x509.Extensions,
) -> x509.SubjectAlternativeName | None:
    """Return the SubjectAlternativeName extension value, if present."""
    try:
        return extensions.get_extension_for_class(x509.SubjectAlternativeName).value
    except x509.ExtensionNotFound:
        return None
