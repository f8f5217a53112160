"""CA configuration dataclasses and flag validators."""

from dataclasses import dataclass

from cryptography import x509
from cryptography.x509 import oid

MIN_RSA_SIZE = 2048
RSA_SIZE_STEP = 1024


@dataclass
class CAConfig:
    """Defaults for keys, validity periods and certificate subjects."""

    country: str = "ES"
    state: str = "Madrid"
    locality: str = "Madrid"
    organization: str = "EasyCert"
    organizational_unit: str = "Certification Authority"
    ca_common_name: str = "EasyCert Root CA"
    key_size: int = MIN_RSA_SIZE
    validity_years: int = 1
    ca_validity_years: int = 10


@dataclass
class DistinguishedName:
    """X.509 Subject Distinguished Name.

    Empty fields are left out of the generated name, so a subject may carry
    only a common name.
    """

    common_name: str
    country: str = ""
    state: str = ""
    locality: str = ""
    organization: str = ""
    organizational_unit: str = ""

    def to_x509_name(self) -> x509.Name:
        """Convert to cryptography x509.Name for certificate generation."""
        pairs = [
            (oid.NameOID.COUNTRY_NAME, self.country),
            (oid.NameOID.STATE_OR_PROVINCE_NAME, self.state),
            (oid.NameOID.LOCALITY_NAME, self.locality),
            (oid.NameOID.ORGANIZATION_NAME, self.organization),
            (oid.NameOID.ORGANIZATIONAL_UNIT_NAME, self.organizational_unit),
            (oid.NameOID.COMMON_NAME, self.common_name),
        ]
        return x509.Name([x509.NameAttribute(name_oid, value) for name_oid, value in pairs if value])


def validate_rsa_size(value: int | str) -> int:
    """Validate an RSA key size in bits.

    Raises:
        ValueError: If the size is not an integer, is below 2048 or is not a
            multiple of 1024
    """
    size = int(value)
    if size < MIN_RSA_SIZE:
        raise ValueError(f"key size must be at least of {MIN_RSA_SIZE}")
    if size % RSA_SIZE_STEP != 0:
        raise ValueError(f"key size must be multiple of {RSA_SIZE_STEP}")
    return size


def validate_years(value: int | str) -> int:
    """Validate a validity period in years."""
    years = int(value)
    if years < 1:
        raise ValueError("number of years must be at least 1")
    return years
