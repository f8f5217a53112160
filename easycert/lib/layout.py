"""On-disk layout of the certification authority."""

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

HOME_ENV_VAR = "EASYCERT_HOME"
DEFAULT_DIR_NAME = ".cert"

CA_NAME = "ca"

EXT_CERT = ".crt"
EXT_KEY = ".key"
EXT_REQUEST = ".csr"
EXT_CERT_AND_KEY = ".pem"
EXT_SERVER_CONFIG = ".cfg"

FILE_CONFIG = "openssl.cfg"
FILE_CONFIG_TEMPLATE = "openssl.cfg.tmpl"

KIND_CERT = "cert"
KIND_REQUEST = "req"
KIND_KEY = "key"
KINDS = (KIND_CERT, KIND_REQUEST, KIND_KEY)


def resolve_root(home: str | os.PathLike[str] | None = None, env: Mapping[str, str] | None = None) -> Path:
    """Return the CA root directory, prefer argument > env-variable > ~/.cert."""
    if env is None:
        env = os.environ
    if home:
        return Path(home).expanduser()
    env_home = env.get(HOME_ENV_VAR)
    if env_home:
        return Path(env_home).expanduser()
    return Path.home() / DEFAULT_DIR_NAME


@dataclass(frozen=True)
class CertPaths:
    """Conventional files derived from a certificate name."""

    name: str
    cert: Path
    key: Path
    request: Path
    server_config: Path


@dataclass(frozen=True)
class DirLayout:
    """Directory and file structure of the certification authority."""

    root: Path

    @property
    def certs(self) -> Path:
        return self.root / "certs"

    @property
    def private(self) -> Path:
        return self.root / "private"

    @property
    def new_certs(self) -> Path:
        """Copies of every issued certificate, named after its serial."""
        return self.root / "newcerts"

    @property
    def revocation(self) -> Path:
        return self.root / "crl"

    @property
    def index(self) -> Path:
        return self.root / "index.txt"

    @property
    def serial(self) -> Path:
        return self.root / "serial"

    @property
    def config(self) -> Path:
        return self.root / FILE_CONFIG

    @property
    def config_template(self) -> Path:
        return self.root / FILE_CONFIG_TEMPLATE

    @property
    def directories(self) -> tuple[Path, ...]:
        """Directories in creation order, root first."""
        return (self.root, self.certs, self.new_certs, self.private, self.revocation)

    def paths_for(self, name: str) -> CertPaths:
        """Return the conventional paths for certificate ``name``."""
        if not name or os.sep in name or name.startswith("."):
            raise ValueError(f"invalid certificate name: {name!r}")
        return CertPaths(
            name=name,
            cert=self.certs / f"{name}{EXT_CERT}",
            key=self.private / f"{name}{EXT_KEY}",
            request=self.root / f"{name}{EXT_REQUEST}",
            server_config=self.root / f"{name}{EXT_SERVER_CONFIG}",
        )

    @property
    def ca(self) -> CertPaths:
        return self.paths_for(CA_NAME)

    def resolve_file(self, file: str, kind: str) -> Path:
        """Resolve a FILE argument for the given kind.

        A value starting with '.' or the path separator is used as a literal
        path; anything else is a name looked up in the directory where files of
        that kind live.
        """
        if kind not in KINDS:
            raise ValueError(f"unknown file kind: {kind!r}")
        if not file:
            raise ValueError("missing file or name")
        if file.startswith((".", os.sep)):
            return Path(file)

        paths = self.paths_for(file)
        if kind == KIND_CERT:
            return paths.cert
        if kind == KIND_REQUEST:
            return paths.request
        return paths.key

    def require_initialized(self) -> None:
        """Raise FileNotFoundError if the directory structure is missing."""
        for directory in self.directories:
            if not directory.is_dir():
                raise FileNotFoundError(
                    f"directory structure not found: {directory} (run 'easycert setup' first)"
                )
        for path in (self.index, self.serial, self.config):
            if not path.is_file():
                raise FileNotFoundError(f"CA file not found: {path} (run 'easycert setup' first)")
