"""Parsing of host lists for the Subject Alternative Name extension."""

import ipaddress
from dataclasses import dataclass, field

from cryptography import x509

IP_PREFIX = "IP:"
DNS_PREFIX = "DNS:"


@dataclass
class HostList:
    """IP addresses and DNS names a server certificate is valid for."""

    ip: list[str] = field(default_factory=list)
    dns: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.ip or self.dns)

    def __str__(self) -> str:
        """Render as the value of a subjectAltName configuration line."""
        entries = [IP_PREFIX + ip for ip in self.ip] + [DNS_PREFIX + dns for dns in self.dns]
        return ", ".join(entries)

    def add(self, value: str) -> None:
        """Classify a single host as IP or DNS and append it.

        Raises:
            ValueError: If the value is neither an IP literal nor a dotted name
        """
        value = value.strip()
        try:
            self.ip.append(str(ipaddress.ip_address(value)))
            return
        except ValueError:
            pass
        if "." in value and not value.startswith(".") and not value.endswith("."):
            self.dns.append(value)
            return
        raise ValueError(f"{value!r} must be an IP or DNS")

    def to_general_names(self) -> list[x509.GeneralName]:
        """Convert to GeneralName entries for x509.SubjectAlternativeName."""
        names: list[x509.GeneralName] = [x509.IPAddress(ipaddress.ip_address(ip)) for ip in self.ip]
        names.extend(x509.DNSName(dns) for dns in self.dns)
        return names

    def to_extension(self) -> x509.SubjectAlternativeName:
        return x509.SubjectAlternativeName(self.to_general_names())


def parse_hosts(value: str) -> HostList:
    """Parse a comma-separated list of IP addresses and DNS names."""
    hosts = HostList()
    for token in value.split(","):
        hosts.add(token)
    return hosts


def parse_subject_alt_name(value: str) -> HostList:
    """Parse a rendered subjectAltName value such as 'IP:10.0.0.1, DNS:example.com'."""
    hosts = HostList()
    for entry in value.split(","):
        entry = entry.strip()
        if not entry:
            continue
        kind, sep, host = entry.partition(":")
        if not sep:
            raise ValueError(f"invalid subjectAltName entry: {entry!r}")
        kind = kind.strip().upper()
        if kind == "IP":
            hosts.ip.append(str(ipaddress.ip_address(host.strip())))
        elif kind == "DNS":
            hosts.dns.append(host.strip())
        else:
            raise ValueError(f"unsupported subjectAltName entry: {entry!r}")
    return hosts


def hosts_from_extension(san: x509.SubjectAlternativeName) -> HostList:
    """Collect the IP and DNS entries of a SubjectAlternativeName extension."""
    return HostList(
        ip=[str(ip) for ip in san.get_values_for_type(x509.IPAddress)],
        dns=list(san.get_values_for_type(x509.DNSName)),
    )
