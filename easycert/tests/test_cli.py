"""Tests for the easycert command line."""

import logging
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import patch

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from easycert.lib.logging_config import LOGGER
from easycert.scripts.cli import main


@pytest.fixture
def home(tmp_path: Path) -> Path:
    """Return a CA root that does not exist yet."""
    return tmp_path / "cert"


@pytest.fixture
def propagating_logger() -> Iterator[None]:
    """Let caplog see the records of the package logger."""
    LOGGER.propagate = True
    try:
        yield
    finally:
        LOGGER.propagate = False


def run(home: Path, *args: str) -> int:
    with patch("sys.argv", ["easycert", "--home", str(home), *args]):
        return main()


@pytest.fixture
def ca_home(home: Path) -> Path:
    """Return a CA root with the certification authority created."""
    assert run(home, "setup") == 0
    assert run(home, "ca") == 0
    return home


class TestSetupAndCA:
    """Tests for the setup and ca commands."""

    def test_creates_ca_files(self, ca_home: Path) -> None:
        assert (ca_home / "certs" / "ca.crt").is_file()
        assert (ca_home / "private" / "ca.key").is_file()

    def test_setup_twice_fails(self, ca_home: Path) -> None:
        assert run(ca_home, "setup") == 1

    def test_ca_twice_fails(self, ca_home: Path) -> None:
        assert run(ca_home, "ca") == 1

    def test_ca_before_setup_fails(
        self, home: Path, propagating_logger: None, caplog: pytest.LogCaptureFixture
    ) -> None:
        assert run(home, "ca") == 1
        assert any("easycert setup" in r.getMessage() for r in caplog.records)

    def test_home_from_environment(self, home: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("EASYCERT_HOME", str(home))

        with patch("sys.argv", ["easycert", "setup"]):
            assert main() == 0
        assert (home / "openssl.cfg").is_file()

    @pytest.mark.parametrize("size", ["1024", "3000", "big"])
    def test_invalid_rsa_size_is_usage_error(self, home: Path, size: str) -> None:
        with pytest.raises(SystemExit) as exc_info:
            run(home, "ca", "--rsa-size", size)

        assert exc_info.value.code == 2

    def test_rsa_size_4096(self, home: Path) -> None:
        assert run(home, "setup") == 0
        assert run(home, "ca", "--rsa-size", "4096", "--years", "1") == 0


class TestReqAndSign:
    """Tests for the req and sign commands."""

    def test_sign_removes_request(self, ca_home: Path) -> None:
        assert run(ca_home, "req", "example") == 0
        assert (ca_home / "example.csr").is_file()

        assert run(ca_home, "sign", "example") == 0
        assert (ca_home / "certs" / "example.crt").is_file()
        assert not (ca_home / "example.csr").exists()

    def test_sign_twice_fails(self, ca_home: Path) -> None:
        assert run(ca_home, "req", "--sign", "example") == 0

        assert run(ca_home, "sign", "example") == 1

    def test_server_request(self, ca_home: Path) -> None:
        assert run(ca_home, "req", "--host", "10.0.0.1,example.com", "www") == 0

        assert "IP:10.0.0.1, DNS:example.com" in (ca_home / "www.cfg").read_text()

    def test_invalid_host_is_usage_error(self, ca_home: Path) -> None:
        with pytest.raises(SystemExit) as exc_info:
            run(ca_home, "req", "--host", "localhost", "www")

        assert exc_info.value.code == 2

    def test_sign_without_request_fails(self, ca_home: Path) -> None:
        assert run(ca_home, "sign", "missing") == 1

    def test_renew_after_removing_certificate(self, ca_home: Path) -> None:
        assert run(ca_home, "req", "--sign", "www") == 0
        (ca_home / "certs" / "www.crt").unlink()

        assert run(ca_home, "req", "www") == 0
        assert run(ca_home, "sign", "www") == 0
        assert (ca_home / "certs" / "www.crt").is_file()

    def test_years_without_sign_is_usage_error(self, ca_home: Path) -> None:
        with pytest.raises(SystemExit) as exc_info:
            run(ca_home, "req", "--years", "2", "www")

        assert exc_info.value.code == 2
        assert not (ca_home / "www.csr").exists()


class TestInspection:
    """Tests for the cat, info, chk and ls commands."""

    @pytest.fixture
    def signed_home(self, ca_home: Path) -> Path:
        assert run(ca_home, "req", "--sign", "example") == 0
        assert run(ca_home, "req", "pending") == 0
        return ca_home

    def test_ls_all(self, signed_home: Path, capsys: pytest.CaptureFixture[str]) -> None:
        capsys.readouterr()
        assert run(signed_home, "ls") == 0

        assert capsys.readouterr().out.splitlines() == [
            "ca.crt\texample.crt",
            "pending.csr",
            "ca.key\texample.key\tpending.key",
        ]

    def test_ls_certificates(self, signed_home: Path, capsys: pytest.CaptureFixture[str]) -> None:
        capsys.readouterr()
        assert run(signed_home, "ls", "--cert") == 0

        assert capsys.readouterr().out == "ca.crt\texample.crt\n"

    def test_info_end_date(self, signed_home: Path, capsys: pytest.CaptureFixture[str]) -> None:
        capsys.readouterr()
        assert run(signed_home, "info", "--end-date", "example") == 0

        assert capsys.readouterr().out.startswith("notAfter=")

    def test_info_literal_path(self, signed_home: Path, capsys: pytest.CaptureFixture[str]) -> None:
        capsys.readouterr()
        path = signed_home / "certs" / "example.crt"
        assert run(signed_home, "info", "--name", str(path)) == 0

        assert capsys.readouterr().out.startswith("subject=")

    def test_chk_certificate(self, signed_home: Path, capsys: pytest.CaptureFixture[str]) -> None:
        capsys.readouterr()
        assert run(signed_home, "chk", "--cert", "example") == 0

        assert capsys.readouterr().out.endswith("example.crt: OK\n")

    def test_chk_request_and_key(
        self, signed_home: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        capsys.readouterr()
        assert run(signed_home, "chk", "--req", "pending") == 0
        assert run(signed_home, "chk", "--key", "pending") == 0

        assert capsys.readouterr().out == "verify OK\nRSA key ok\n"

    def test_chk_missing_file(self, signed_home: Path) -> None:
        assert run(signed_home, "chk", "--cert", "missing") == 1

    @pytest.mark.parametrize("command", ["chk", "cat"])
    def test_encrypted_key_fails(
        self,
        signed_home: Path,
        tmp_path: Path,
        server_key: RSAPrivateKey,
        command: str,
        propagating_logger: None,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        path = tmp_path / "enc.key"
        path.write_bytes(
            server_key.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.PKCS8,
                encryption_algorithm=serialization.BestAvailableEncryption(b"secret"),
            )
        )

        assert run(signed_home, command, "--key", str(path)) == 1
        assert any("encrypted private keys" in r.getMessage() for r in caplog.records)

    def test_cat_key(self, signed_home: Path, capsys: pytest.CaptureFixture[str]) -> None:
        capsys.readouterr()
        assert run(signed_home, "cat", "--key", "example") == 0

        assert capsys.readouterr().out.startswith("Private-Key: (2048 bit, 2 primes)")

    def test_kind_flags_are_exclusive(self, signed_home: Path) -> None:
        with pytest.raises(SystemExit) as exc_info:
            run(signed_home, "cat", "--cert", "--key", "example")

        assert exc_info.value.code == 2


class TestLang:
    """Tests for the lang command."""

    def test_requires_server_or_client(self, ca_home: Path) -> None:
        with pytest.raises(SystemExit) as exc_info:
            run(ca_home, "lang")

        assert exc_info.value.code == 2

    def test_generates_go_files(
        self, ca_home: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        out = tmp_path / "out"
        out.mkdir()
        assert run(ca_home, "req", "--host", "example.com", "--sign", "www") == 0
        capsys.readouterr()

        args = ["lang", "--server", "www", "--client", "--output-dir", str(out)]
        assert run(ca_home, *args) == 0

        assert (out / "server_tls.go").is_file()
        assert (out / "client_tls.go").is_file()
        assert capsys.readouterr().out.splitlines() == [
            str(out / "server_tls.go"),
            str(out / "client_tls.go"),
        ]
        # Targets exist now.
        assert run(ca_home, *args) == 1

    def test_python_client(self, ca_home: Path, tmp_path: Path) -> None:
        args = ["lang", "--client", "--lang", "python", "--output-dir", str(tmp_path)]
        assert run(ca_home, *args) == 0

        assert (tmp_path / "client_tls.py").is_file()


class TestVerbosity:
    """Tests for the log level switches."""

    def test_verbose_enables_debug(self, home: Path) -> None:
        with patch("sys.argv", ["easycert", "-v", "--home", str(home), "setup"]):
            assert main() == 0

        assert LOGGER.level == logging.DEBUG

    def test_invalid_log_level_env(self, home: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("EASYCERT_LOG_LEVEL", "chatty")

        assert run(home, "setup") == 1
        assert not home.exists()
