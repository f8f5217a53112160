"""Certificate builder for X.509 certificate construction."""

from datetime import datetime, timedelta, timezone

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from cryptography.x509.oid import ExtendedKeyUsageOID

from .cert_utils import extract_csr_public_key, validate_csr_signature
from .config import DistinguishedName
from .hosts import HostList

DAYS_PER_YEAR = 365


def _validity(validity_years: int) -> tuple[datetime, datetime]:
    not_before = datetime.now(timezone.utc)
    return not_before, not_before + timedelta(days=validity_years * DAYS_PER_YEAR)


class CertificateBuilder:
    """Builds the CA certificate, certificate requests and issued certificates."""

    @staticmethod
    def build_root_ca(
        subject_dn: DistinguishedName,
        private_key: RSAPrivateKey,
        validity_years: int,
        serial_number: int,
    ) -> x509.Certificate:
        """Build self-signed Root CA certificate.

        Args:
            subject_dn: Distinguished name for certificate subject
            private_key: RSA private key for signing
            validity_years: Certificate validity period in years
            serial_number: Serial taken from the CA serial counter

        Returns:
            Self-signed X.509 certificate with CA extensions
        """
        subject = subject_dn.to_x509_name()
        not_before, not_after = _validity(validity_years)
        public_key = private_key.public_key()

        builder = (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(subject)
            .public_key(public_key)
            .serial_number(serial_number)
            .not_valid_before(not_before)
            .not_valid_after(not_after)
            .add_extension(
                x509.BasicConstraints(ca=True, path_length=None),
                critical=True,
            )
            .add_extension(
                x509.KeyUsage(
                    digital_signature=False,
                    content_commitment=False,
                    key_encipherment=False,
                    data_encipherment=False,
                    key_agreement=False,
                    key_cert_sign=True,
                    crl_sign=True,
                    encipher_only=False,
                    decipher_only=False,
                ),
                critical=True,
            )
            .add_extension(
                x509.SubjectKeyIdentifier.from_public_key(public_key),
                critical=False,
            )
            .add_extension(
                x509.AuthorityKeyIdentifier.from_issuer_public_key(public_key),
                critical=False,
            )
        )

        return builder.sign(private_key, hashes.SHA256())

    @staticmethod
    def build_request(
        subject_dn: DistinguishedName,
        private_key: RSAPrivateKey,
        hosts: HostList | None = None,
    ) -> x509.CertificateSigningRequest:
        """Build a certificate signing request.

        Args:
            subject_dn: Distinguished name for the request subject
            private_key: RSA private key the request proves possession of
            hosts: Optional IPs and DNS names for the subjectAltName extension

        Returns:
            Self-signed certificate signing request
        """
        builder = x509.CertificateSigningRequestBuilder().subject_name(subject_dn.to_x509_name())
        if hosts:
            builder = builder.add_extension(hosts.to_extension(), critical=False)
        return builder.sign(private_key, hashes.SHA256())

    @staticmethod
    def sign_request(
        csr: x509.CertificateSigningRequest,
        ca_cert: x509.Certificate,
        ca_key: RSAPrivateKey,
        validity_years: int,
        serial_number: int,
        hosts: HostList | None = None,
    ) -> x509.Certificate:
        """Build a certificate from a CSR, signed by the CA.

        The subject is copied from the request as is, any subject is accepted.

        Args:
            csr: Certificate signing request
            ca_cert: CA certificate (issuer)
            ca_key: CA private key for signing
            validity_years: Certificate validity period in years
            serial_number: Serial taken from the CA serial counter
            hosts: IPs and DNS names for the subjectAltName extension

        Returns:
            X.509 end-entity certificate signed by the CA

        Raises:
            ValueError: If CSR signature is invalid
        """
        if not validate_csr_signature(csr):
            raise ValueError("CSR signature validation failed")

        public_key = extract_csr_public_key(csr)
        not_before, not_after = _validity(validity_years)

        builder = (
            x509.CertificateBuilder()
            .subject_name(csr.subject)
            .issuer_name(ca_cert.subject)
            .public_key(public_key)
            .serial_number(serial_number)
            .not_valid_before(not_before)
            .not_valid_after(not_after)
            .add_extension(
                x509.BasicConstraints(ca=False, path_length=None),
                critical=True,
            )
            .add_extension(
                x509.KeyUsage(
                    digital_signature=True,
                    content_commitment=False,
                    key_encipherment=True,
                    data_encipherment=False,
                    key_agreement=False,
                    key_cert_sign=False,
                    crl_sign=False,
                    encipher_only=False,
                    decipher_only=False,
                ),
                critical=False,
            )
            .add_extension(
                x509.ExtendedKeyUsage(
                    [ExtendedKeyUsageOID.SERVER_AUTH, ExtendedKeyUsageOID.CLIENT_AUTH]
                ),
                critical=False,
            )
            .add_extension(
                x509.SubjectKeyIdentifier.from_public_key(public_key),
                critical=False,
            )
            .add_extension(
                x509.AuthorityKeyIdentifier.from_issuer_public_key(ca_key.public_key()),
                critical=False,
            )
        )
        if hosts:
            builder = builder.add_extension(hosts.to_extension(), critical=False)

        return builder.sign(ca_key, hashes.SHA256())
