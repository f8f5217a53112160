"""Test fixtures for easycert tests."""

from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from easycert.lib.ca_manager import CAManager
from easycert.lib.cert_utils import generate_private_key
from easycert.lib.certificate_builder import CertificateBuilder
from easycert.lib.config import CAConfig, DistinguishedName
from easycert.lib.hosts import HostList
from easycert.lib.layout import DirLayout

TEST_HOST_NAME = "ca.example.test"


@pytest.fixture(autouse=True)
def fake_host_name(monkeypatch: pytest.MonkeyPatch) -> str:
    """Pin the local host name so subjects do not depend on the machine."""
    monkeypatch.setattr("easycert.lib.ca_manager.get_host_name", lambda: TEST_HOST_NAME)
    return TEST_HOST_NAME


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the caller's environment out of root and log level resolution."""
    monkeypatch.delenv("EASYCERT_HOME", raising=False)
    monkeypatch.delenv("EASYCERT_LOG_LEVEL", raising=False)


@pytest.fixture
def ca_config() -> CAConfig:
    """Return test CA configuration with shorter validity periods."""
    return CAConfig(
        country="GB",
        state="London",
        locality="London",
        organization="Test Org",
        organizational_unit="Test Unit",
        ca_common_name="Test Root CA",
        key_size=2048,  # Faster for tests
        validity_years=1,
        ca_validity_years=2,
    )


@pytest.fixture
def layout(tmp_path: Path) -> DirLayout:
    """Return a layout rooted in a directory that does not exist yet."""
    return DirLayout(tmp_path / "cert")


@pytest.fixture
def manager(layout: DirLayout, ca_config: CAConfig) -> CAManager:
    """Return a manager over a fresh, not yet created, layout."""
    return CAManager(layout, ca_config)


@pytest.fixture
def initialized_manager(manager: CAManager) -> CAManager:
    """Return a manager whose directory structure is set up."""
    manager.setup(host_name=TEST_HOST_NAME)
    return manager


@pytest.fixture
def ca_manager(initialized_manager: CAManager) -> CAManager:
    """Return a manager with the certification authority created."""
    initialized_manager.create_ca()
    return initialized_manager


@pytest.fixture
def signed_manager(ca_manager: CAManager) -> CAManager:
    """Return a manager holding a signed 'example' certificate."""
    ca_manager.create_request("example")
    ca_manager.sign_request("example")
    return ca_manager


@pytest.fixture
def root_key() -> RSAPrivateKey:
    """Generate RSA private key for the Root CA."""
    return generate_private_key(key_size=2048)


@pytest.fixture
def root_dn() -> DistinguishedName:
    """Return test Root CA distinguished name."""
    return DistinguishedName(
        country="GB",
        state="London",
        locality="London",
        organization="Test Org",
        organizational_unit="Test Unit",
        common_name="Test Root CA",
    )


@pytest.fixture
def root_cert(root_key: RSAPrivateKey, root_dn: DistinguishedName) -> x509.Certificate:
    """Generate self-signed Root CA certificate."""
    return CertificateBuilder.build_root_ca(
        subject_dn=root_dn,
        private_key=root_key,
        validity_years=1,
        serial_number=1,
    )


@pytest.fixture
def server_key() -> RSAPrivateKey:
    """Generate RSA private key for a server certificate."""
    return generate_private_key(key_size=2048)


@pytest.fixture
def server_hosts() -> HostList:
    """Return the hosts a test server certificate is valid for."""
    return HostList(ip=["10.0.0.1"], dns=["example.com"])


@pytest.fixture
def server_csr(server_key: RSAPrivateKey, server_hosts: HostList) -> x509.CertificateSigningRequest:
    """Generate a server certificate request carrying a subjectAltName."""
    dn = DistinguishedName(country="GB", organization="Test Org", common_name="example.com")
    return CertificateBuilder.build_request(dn, server_key, server_hosts)
