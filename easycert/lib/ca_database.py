"""Serial counter and index ledger of issued certificates.

The files keep the format of the ``openssl ca`` database so the directory can
still be handled with the ``openssl`` binary:

    serial     next serial number in hex, e.g. ``01``
    index.txt  ``V<TAB>YYMMDDHHMMSSZ<TAB><TAB>SERIAL<TAB>unknown<TAB>/C=../CN=..``
    newcerts/  a copy of every issued certificate as ``<SERIAL>.pem``
"""

from pathlib import Path

from cryptography import x509

from .cert_utils import format_name_slashed, format_serial, serialize_certificate
from .layout import EXT_CERT_AND_KEY, DirLayout
from .logging_config import LOGGER
from .models import IndexEntry

INITIAL_SERIAL = 1
STATUS_VALID = "V"
UNKNOWN_FILENAME = "unknown"


class CADatabase:
    """Bookkeeping of the certificates issued by the CA."""

    def __init__(self, layout: DirLayout) -> None:
        self.layout = layout

    def initialize(self) -> None:
        """Create an empty index and a serial counter starting at 01."""
        self.layout.index.touch(exist_ok=False)
        self._write_serial(INITIAL_SERIAL)

    def next_serial(self) -> int:
        """Return the serial number for the next certificate.

        Raises:
            FileNotFoundError: If the serial file does not exist
            ValueError: If the serial file is malformed
        """
        text = self.layout.serial.read_text().strip()
        try:
            serial = int(text, 16)
        except ValueError as e:
            raise ValueError(f"malformed serial file {self.layout.serial}: {text!r}") from e
        if serial < INITIAL_SERIAL:
            raise ValueError(f"malformed serial file {self.layout.serial}: {text!r}")
        return serial

    def record(self, cert: x509.Certificate) -> Path:
        """Register an issued certificate and advance the serial counter.

        Returns:
            Path to the copy written into the new certificates directory
        """
        serial = format_serial(cert.serial_number)
        entry = IndexEntry(
            status=STATUS_VALID,
            expiry=f"{cert.not_valid_after_utc:%y%m%d%H%M%S}Z",
            revocation="",
            serial_number=serial,
            filename=UNKNOWN_FILENAME,
            subject=format_name_slashed(cert.subject),
        )
        with self.layout.index.open("a") as f:
            f.write(_format_entry(entry) + "\n")

        copy_path = self.layout.new_certs / f"{serial}{EXT_CERT_AND_KEY}"
        copy_path.write_bytes(serialize_certificate(cert))

        self._write_serial(cert.serial_number + 1)
        LOGGER.debug("Recorded certificate %s in %s", serial, self.layout.index)
        return copy_path

    def _write_serial(self, serial: int) -> None:
        self.layout.serial.write_text(format_serial(serial) + "\n")


def _format_entry(entry: IndexEntry) -> str:
    return "\t".join(
        (
            entry.status,
            entry.expiry,
            entry.revocation,
            entry.serial_number,
            entry.filename,
            entry.subject,
        )
    )
