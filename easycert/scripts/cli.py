#!/usr/bin/env python3
"""Command line interface of the easycert certification authority."""

import argparse
import sys
from collections.abc import Callable
from pathlib import Path

from easycert.lib import code_emitter, inspector
from easycert.lib.ca_manager import CAManager
from easycert.lib.config import CAConfig, validate_rsa_size, validate_years
from easycert.lib.hosts import HostList, parse_hosts
from easycert.lib.layout import KIND_CERT, KIND_KEY, KIND_REQUEST, KINDS, DirLayout, resolve_root
from easycert.lib.logging_config import LOGGER, configure_log_level


def _argument_type(validate: Callable[[str], object]) -> Callable[[str], object]:
    """Wrap a validator so argparse reports its message as a usage error."""

    def convert(value: str) -> object:
        try:
            return validate(value)
        except ValueError as e:
            raise argparse.ArgumentTypeError(str(e)) from e

    convert.__name__ = validate.__name__
    return convert


rsa_size_type = _argument_type(validate_rsa_size)
years_type = _argument_type(validate_years)
hosts_type = _argument_type(parse_hosts)


def _add_kind_flags(parser: argparse.ArgumentParser) -> None:
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "--cert",
        dest="kind",
        action="store_const",
        const=KIND_CERT,
        help="FILE is a certificate (default)",
    )
    group.add_argument(
        "--req",
        dest="kind",
        action="store_const",
        const=KIND_REQUEST,
        help="FILE is a certificate request",
    )
    group.add_argument(
        "--key",
        dest="kind",
        action="store_const",
        const=KIND_KEY,
        help="FILE is a private key",
    )
    parser.set_defaults(kind=KIND_CERT)
    parser.add_argument(
        "file",
        metavar="FILE",
        help="name in the CA directories, or a path when it starts with '.' or '/'",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="easycert",
        description="Handle a local certification authority and its certificates",
    )
    parser.add_argument(
        "--home",
        help="CA root directory (default: $EASYCERT_HOME or ~/.cert)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="increase log verbosity",
    )
    subparsers = parser.add_subparsers(dest="command", required=True, metavar="COMMAND")

    subparsers.add_parser("setup", help="create the directory structure and configuration")

    ca = subparsers.add_parser("ca", help="create the certification authority")
    ca.add_argument("--rsa-size", type=rsa_size_type, help="RSA key size in bits (default: 2048)")
    ca.add_argument("--years", type=years_type, help="validity in years (default: 10)")

    req = subparsers.add_parser("req", help="create a certificate request and its key")
    req.add_argument("--rsa-size", type=rsa_size_type, help="RSA key size in bits (default: 2048)")
    req.add_argument(
        "--host",
        type=hosts_type,
        help="comma-separated IPs and DNS names of a server certificate",
    )
    req.add_argument("--cn", help="subject common name")
    req.add_argument("--sign", action="store_true", help="sign the request right away")
    req.add_argument(
        "--years",
        type=years_type,
        help="validity in years, only with --sign (default: 1)",
    )
    req.add_argument("name", metavar="NAME", help="certificate name")

    sign = subparsers.add_parser("sign", help="sign a certificate request")
    sign.add_argument("--years", type=years_type, help="validity in years (default: 1)")
    sign.add_argument("name", metavar="NAME", help="certificate name")

    cat = subparsers.add_parser("cat", help="show the contents of a certificate, request or key")
    _add_kind_flags(cat)

    info = subparsers.add_parser("info", help="print certificate information")
    info.add_argument("--end-date", action="store_true", help="print the notAfter date")
    info.add_argument("--hash", action="store_true", help="print the subject name hash")
    info.add_argument("--issuer", action="store_true", help="print the issuer name")
    info.add_argument("--name", action="store_true", help="print the subject name")
    info.add_argument("file", metavar="FILE", help="certificate name or path")

    chk = subparsers.add_parser("chk", help="check a certificate, request or key")
    _add_kind_flags(chk)

    ls = subparsers.add_parser("ls", help="list certificates, requests and keys")
    ls.add_argument("--cert", action="store_true", help="list certificates")
    ls.add_argument("--req", action="store_true", help="list certificate requests")
    ls.add_argument("--key", action="store_true", help="list private keys")

    lang = subparsers.add_parser("lang", help="generate source files embedding the certificates")
    lang.add_argument("--ca", default="ca", help="name or file of the CA certificate (default: ca)")
    lang.add_argument("--server", help="name of the server certificate")
    lang.add_argument("--client", action="store_true", help="generate the client file")
    lang.add_argument(
        "--lang",
        choices=code_emitter.LANGUAGES,
        default=code_emitter.LANG_GO,
        help="target language (default: go)",
    )
    lang.add_argument(
        "--output-dir",
        type=Path,
        default=Path("."),
        help="directory for the generated files (default: current directory)",
    )

    return parser


# == Commands


def run_setup(args: argparse.Namespace, manager: CAManager) -> int:
    result = manager.setup()
    LOGGER.info("Configuration: %s", result.config_path)
    LOGGER.info("Next: run 'easycert ca' to create the certification authority")
    return 0


def run_ca(args: argparse.Namespace, manager: CAManager) -> int:
    result = manager.create_ca(rsa_size=args.rsa_size, years=args.years)
    LOGGER.info("CA serial: %s", result.serial_number)
    return 0


def run_req(args: argparse.Namespace, manager: CAManager) -> int:
    hosts: HostList | None = args.host
    manager.create_request(args.name, rsa_size=args.rsa_size, hosts=hosts, common_name=args.cn)
    if args.sign:
        result = manager.sign_request(args.name, years=args.years)
        LOGGER.info("Serial: %s", result.serial_number)
    return 0


def run_sign(args: argparse.Namespace, manager: CAManager) -> int:
    result = manager.sign_request(args.name, years=args.years)
    LOGGER.info("Serial: %s", result.serial_number)
    return 0


def run_cat(args: argparse.Namespace, manager: CAManager) -> int:
    path = manager.layout.resolve_file(args.file, args.kind)
    print("\n".join(inspector.cat(path, args.kind)))
    return 0


def run_info(args: argparse.Namespace, manager: CAManager) -> int:
    path = manager.layout.resolve_file(args.file, KIND_CERT)
    lines = inspector.info(
        path,
        end_date=args.end_date,
        name_hash=args.hash,
        issuer=args.issuer,
        name=args.name,
    )
    print("\n".join(lines))
    return 0


def run_chk(args: argparse.Namespace, manager: CAManager) -> int:
    path = manager.layout.resolve_file(args.file, args.kind)
    print(inspector.check(path, args.kind, manager.layout.ca.cert))
    return 0


def run_ls(args: argparse.Namespace, manager: CAManager) -> int:
    flags = {KIND_CERT: args.cert, KIND_REQUEST: args.req, KIND_KEY: args.key}
    kinds = [kind for kind in KINDS if flags[kind]]
    manager.layout.require_initialized()
    for names in inspector.list_files(manager.layout, kinds).values():
        print("\t".join(names))
    return 0


def run_lang(args: argparse.Namespace, manager: CAManager) -> int:
    generated = code_emitter.emit(
        manager.layout,
        manager.layout.resolve_file(args.ca, KIND_CERT),
        server=args.server,
        client=args.client,
        language=args.lang,
        output_dir=args.output_dir,
    )
    for item in generated:
        print(item.path)
    return 0


COMMANDS = {
    "setup": run_setup,
    "ca": run_ca,
    "req": run_req,
    "sign": run_sign,
    "cat": run_cat,
    "info": run_info,
    "chk": run_chk,
    "ls": run_ls,
    "lang": run_lang,
}


def main(argv: list[str] | None = None) -> int:
    """Run an easycert command.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == "lang" and not (args.server or args.client):
        parser.error("lang: at least one of --server or --client is required")
    if args.command == "req" and args.years is not None and not args.sign:
        parser.error("req: --years requires --sign")

    try:
        configure_log_level(args.verbose)
        layout = DirLayout(resolve_root(args.home))
        manager = CAManager(layout, CAConfig())
        return COMMANDS[args.command](args, manager)

    except FileExistsError as e:
        LOGGER.error("File already exists: %s", e)
        return 1
    except FileNotFoundError as e:
        LOGGER.error("File not found: %s", e)
        return 1
    except ValueError as e:
        LOGGER.error("%s failed: %s", args.command, e)
        return 1
    except OSError as e:
        LOGGER.error("%s failed: %s", args.command, e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
