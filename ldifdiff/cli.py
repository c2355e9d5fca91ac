"""
The ``ldifdiff`` command.

Reads two LDIF snapshots and writes the LDIF change records that turn the
original into the target to standard output (or ``--output``).  Swap
``--orig`` and ``--target`` to get the rollback change set.
"""

import argparse
import bz2
import dbm
import gzip
import logging
import lzma
import os
import sys
import zlib
from contextlib import nullcontext
from typing import TextIO

from django.core.exceptions import ImproperlyConfigured
from ldap_filter import Filter

from . import __version__
from .codec import ChangeWriter, EncodeError, SnapshotReader
from .conf import STORE_BACKENDS, get_encoding, validate_settings
from .engine import SnapshotDiffer
from .store import get_store

logger = logging.getLogger(__name__)

#: Exit status for usage errors; argparse uses the same
EXIT_USAGE = 2
#: Exit status for fatal I/O, store, encoding or configuration errors
EXIT_FATAL = 1

#: Fatal errors from reading, decompressing, decoding, writing or the keyed
#: store.  ``EOFError`` is a truncated compressed snapshot.
IO_ERRORS = (OSError, EOFError, UnicodeDecodeError, lzma.LZMAError, zlib.error, *dbm.error)

_OPENERS = {
    ".gz": gzip.open,
    ".bz2": bz2.open,
    ".xz": lzma.open,
}


class _HelpAction(argparse.Action):
    """Print the help and exit non-zero, like any other usage problem."""

    def __init__(self, option_strings, dest=argparse.SUPPRESS, default=argparse.SUPPRESS, help=None):  # noqa: A002
        super().__init__(option_strings, dest=dest, default=default, nargs=0, help=help)

    def __call__(self, parser, namespace, values, option_string=None):
        parser.print_help(sys.stderr)
        parser.exit(EXIT_USAGE)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ldifdiff",
        description=(
            "Compute the LDIF change records that turn the --orig snapshot into "
            "the --target snapshot, matching entries by their stable identifier."
        ),
        add_help=False,
    )
    parser.add_argument("-h", "--help", action=_HelpAction, help="show this help and exit")
    parser.add_argument("--orig", required=True, metavar="PATH", help="the original LDIF snapshot")
    parser.add_argument("--target", required=True, metavar="PATH", help="the target LDIF snapshot")
    parser.add_argument(
        "--system",
        action="store_true",
        default=False,
        help="compare and add system attributes (entryUUID, timestamps, ...) too",
    )
    parser.add_argument(
        "-d",
        "--debug",
        action="count",
        default=0,
        help="more diagnostic output; repeat for even more",
    )
    parser.add_argument("-o", "--output", metavar="PATH", help="write change records here instead of stdout")
    parser.add_argument("--id-attribute", metavar="NAME", help="the stable identifier attribute")
    parser.add_argument("--filter", metavar="FILTER", help="only compare entries matching this LDAP filter")
    parser.add_argument("--store", choices=STORE_BACKENDS, help="where to keep the original snapshot")
    parser.add_argument("--settings", metavar="MODULE", help="Django settings module to read LDIFDIFF_* settings from")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def configure_logging(verbosity: int) -> None:
    if verbosity >= 2:  # noqa: PLR2004
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        stream=sys.stderr,
        level=level,
        format="%(levelname)s %(name)s %(message)s",
    )


def open_snapshot(path: str, encoding: str) -> TextIO:
    """
    Open an LDIF snapshot for reading, decompressing ``.gz``, ``.bz2`` and
    ``.xz`` files transparently.
    """
    opener = _OPENERS.get(os.path.splitext(path)[1].lower())
    if opener is None:
        return open(path, encoding=encoding)  # noqa: SIM115
    return opener(path, "rt", encoding=encoding)


def log_progress(state: str, count: int) -> None:
    logger.info("ldifdiff.progress state=%s records=%d", state, count)


def write_changes(differ: SnapshotDiffer, args: argparse.Namespace, encoding: str) -> None:
    """
    Diff the snapshots named in ``args`` and write the change records.

    Args:
        differ: The differ to run.
        args: The parsed command line.
        encoding: The text encoding of the snapshots and the output.

    Raises:
        OSError: A snapshot or the output could not be opened, read or written.
        UnicodeDecodeError: A snapshot is not valid text in ``encoding``.
        EOFError: A compressed snapshot is truncated.
        EncodeError: A change record could not be written as LDIF.

    """
    if args.output:
        output = open(args.output, "w", encoding=encoding)  # noqa: SIM115
    else:
        output = nullcontext(sys.stdout)
    with output as stream:
        writer = ChangeWriter(stream)
        with open_snapshot(args.orig, encoding) as orig, open_snapshot(args.target, encoding) as target:
            original = SnapshotReader(orig, differ.id_attribute, name=args.orig)
            targets = SnapshotReader(target, differ.id_attribute, name=args.target)
            for record in differ.diff(original, targets):
                writer.write(record)
        stream.flush()


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.settings:
        os.environ["DJANGO_SETTINGS_MODULE"] = args.settings
    configure_logging(args.debug)

    entry_filter = None
    if args.filter:
        try:
            entry_filter = Filter.parse(args.filter)
        except Exception as exc:  # noqa: BLE001
            parser.print_usage(sys.stderr)
            sys.stderr.write(f"ldifdiff: error: invalid --filter {args.filter!r}: {exc}\n")
            return EXIT_USAGE

    status = 0
    differ: SnapshotDiffer | None = None
    try:
        validate_settings()
        with get_store(args.store) as store:
            differ = SnapshotDiffer(
                store,
                include_system=args.system,
                id_attribute=args.id_attribute,
                entry_filter=entry_filter,
                progress=log_progress,
            )
            write_changes(differ, args, get_encoding())
    except (ImproperlyConfigured, ImportError) as exc:
        logger.error("ldifdiff.config-error %s", exc)  # noqa: TRY400
        status = EXIT_FATAL
    except EncodeError as exc:
        logger.error("ldifdiff.encode-error %s", exc)  # noqa: TRY400
        status = EXIT_FATAL
    except IO_ERRORS as exc:
        logger.error("ldifdiff.io-error %s", exc)  # noqa: TRY400
        status = EXIT_FATAL
    if differ is not None:
        sys.stderr.write(f"{differ.summary}\n")
    return status
