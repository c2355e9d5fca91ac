"""
Reading LDIF snapshots and writing LDIF change records.

Both directions use python-ldap's ``ldif`` module.  Snapshots are split into
record blocks before decoding so that one malformed record can be skipped
without losing the rest of the stream.
"""

import io
import logging
from collections.abc import Iterator
from typing import TextIO

import ldif

from .changes import AddRecord, ChangeRecord, DeleteRecord, ModifyRecord
from .entry import Entry

logger = logging.getLogger(__name__)


class DecodeError(ValueError):
    """Raised when an LDIF record cannot be turned into a usable entry."""

    def __init__(self, msg: str, line: int = 0, dn: str | None = None) -> None:
        super().__init__(msg)
        self.line = line
        self.dn = dn


class EncodeError(Exception):
    """Raised when a change record cannot be written as LDIF."""


class SnapshotReader:
    """
    Iterate over the entries of an LDIF snapshot.

    Records that cannot be decoded, or that have no identifier, are logged
    and skipped; iteration continues with the next record.  Errors from the
    underlying stream, including text it cannot decode, propagate.

    Args:
        stream: The text stream to read the LDIF from.
        id_attribute: The name of the identifier attribute.
        name: A name for the stream, used in log messages.

    """

    def __init__(self, stream: TextIO, id_attribute: str, name: str = "<stream>") -> None:
        self.stream = stream
        self.id_attribute = id_attribute
        self.name = name
        #: Records skipped because they could not be decoded
        self.records_skipped: int = 0

    def blocks(self) -> Iterator[tuple[int, str]]:
        """
        Split the stream into record blocks on blank lines.

        Yields:
            ``(line_number, text)`` for each block, where ``line_number`` is
            the line the block starts on.

        """
        lines: list[str] = []
        start = 0
        for number, line in enumerate(self.stream, start=1):
            if line.strip("\r\n"):
                if not lines:
                    start = number
                lines.append(line)
            elif lines:
                yield start, "".join(lines)
                lines = []
        if lines:
            yield start, "".join(lines)

    def decode(self, block: str, line: int = 0) -> Entry | None:
        """
        Decode one record block.

        Args:
            block: The LDIF text of a single record.
            line: The line number the block starts on.

        Raises:
            DecodeError: The block is not valid LDIF, or the entry has no
                identifier.

        Returns:
            The entry, or ``None`` if the block holds no record (a ``version:``
            line or only comments).

        """
        try:
            parser = ldif.LDIFRecordList(io.StringIO(block))
            parser.parse()
        except (ValueError, EOFError) as exc:
            msg = f"{self.name}:{line}: {exc}"
            raise DecodeError(msg, line=line) from exc
        if not parser.all_records:
            return None
        entry = Entry.from_ldap_data(parser.all_records[0], self.id_attribute)
        if entry.identifier is None:
            msg = f"{self.name}:{line}: entry {entry.dn!r} has no {self.id_attribute}"
            raise DecodeError(msg, line=line, dn=entry.dn)
        return entry

    def __iter__(self) -> Iterator[Entry]:
        for line, block in self.blocks():
            try:
                entry = self.decode(block, line)
            except DecodeError as exc:
                self.records_skipped += 1
                logger.warning("ldifdiff.decode.skipped %s", exc)
                continue
            if entry is not None:
                yield entry


class ChangeWriter(ldif.LDIFWriter):
    """
    Write :py:class:`~ldifdiff.changes.ChangeRecord` objects as LDIF change
    records.

    ``ldif.LDIFWriter`` writes add and modify records from modlists; delete
    records have no modlist form, so they are written here.

    Args:
        output_file: The text stream to write to.
        cols: Fold lines longer than this.

    """

    def __init__(self, output_file: TextIO, cols: int = 76) -> None:
        super().__init__(output_file, cols=cols)

    def unparse_delete(self, dn: str) -> None:
        """Write a ``changetype: delete`` record for ``dn``."""
        self._unparseAttrTypeandValue("dn", dn.encode("utf-8"))
        self._unparseAttrTypeandValue("changetype", b"delete")
        self._output_file.write(self._line_sep)
        self.records_written = self.records_written + 1

    def write(self, record: ChangeRecord) -> None:
        """
        Write one change record.

        Args:
            record: The record to write.

        Raises:
            EncodeError: The record cannot be represented as LDIF.

        """
        try:
            if isinstance(record, DeleteRecord):
                self.unparse_delete(record.dn)
            elif isinstance(record, (AddRecord, ModifyRecord)):
                if not record.modlist:
                    msg = f"{record.changetype} record for {record.dn!r} has no attributes"
                    raise EncodeError(msg)
                self.unparse(record.dn, record.modlist)
            else:
                msg = f"Unknown change record {record!r}"
                raise EncodeError(msg)
        except (ValueError, TypeError, UnicodeError) as exc:
            msg = f"Could not write {record.changetype} record for {record.dn!r}: {exc}"
            raise EncodeError(msg) from exc
