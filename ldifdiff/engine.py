"""
Matching of entries across two snapshots.

:py:class:`SnapshotDiffer` loads the original snapshot into a keyed store,
streams the target snapshot past it, and yields the change records that turn
the original into the target.
"""

import logging
from collections.abc import Iterable, Iterator
from enum import Enum
from typing import TYPE_CHECKING

from .changes import ChangeRecord, build_add, build_change, build_delete
from .conf import get_id_attribute, get_progress_interval, get_system_attributes
from .entry import Entry
from .store import KeyedStore
from .typing import ProgressCallback

if TYPE_CHECKING:
    from ldap_filter.filter import Filter

logger = logging.getLogger(__name__)


class DiffState(Enum):
    """The phases of a diff run, in order."""

    LOADING = "loading"
    MATCHING = "matching"
    DRAINING = "draining"
    DONE = "done"


_STATE_ORDER = list(DiffState)


class DiffSummary:
    """Counts of what a diff run read and produced."""

    def __init__(self) -> None:
        #: Records read from the original snapshot
        self.orig_read: int = 0
        #: Records read from the target snapshot
        self.target_read: int = 0
        #: Records from either snapshot that were skipped as malformed
        self.skipped: int = 0
        #: Records from either snapshot that did not match the entry filter
        self.filtered: int = 0
        #: Duplicate identifiers seen in the original snapshot
        self.duplicates: int = 0
        self.modified: int = 0
        self.added: int = 0
        self.deleted: int = 0

    @property
    def changes(self) -> int:
        return self.modified + self.added + self.deleted

    def __str__(self) -> str:
        return (
            f"orig={self.orig_read} target={self.target_read} "
            f"modify={self.modified} add={self.added} delete={self.deleted} "
            f"skipped={self.skipped}"
        )


class SnapshotDiffer:
    """
    Compute the change records that turn an original snapshot into a target
    snapshot.

    Entries are matched by their identifier, never by DN, so a renamed entry
    yields a modify at its new DN rather than a delete and an add.

    The run goes through the :py:class:`DiffState` phases strictly in order:
    the whole original snapshot is loaded into ``store``, then the target
    snapshot is streamed one entry at a time, then whatever is left in the
    store is deleted.  :py:meth:`diff` drives all three.

    Args:
        store: The keyed store to hold the original snapshot.  The caller
            owns it and is responsible for closing it.

    Keyword Args:
        include_system: Compare and add system attributes too.
        id_attribute: The identifier attribute; defaults to the
            ``LDIFDIFF_ID_ATTRIBUTE`` setting.
        system_attributes: The system attribute names; defaults to the
            ``LDIFDIFF_SYSTEM_ATTRIBUTES`` setting.
        entry_filter: Only entries matching this ``ldap_filter.Filter`` in
            the original or the target snapshot are compared.
        progress: Called as ``progress(state, count)`` every
            ``progress_interval`` records.
        progress_interval: Defaults to the ``LDIFDIFF_PROGRESS_INTERVAL``
            setting.

    """

    class StateError(Exception):
        """Raised when a phase is run out of order."""

    def __init__(
        self,
        store: KeyedStore,
        include_system: bool = False,
        id_attribute: str | None = None,
        system_attributes: Iterable[str] | None = None,
        entry_filter: "Filter | None" = None,
        progress: ProgressCallback | None = None,
        progress_interval: int | None = None,
    ) -> None:
        self.store = store
        self.include_system = include_system
        self.id_attribute = id_attribute or get_id_attribute()
        if system_attributes is None:
            system_attributes = get_system_attributes()
        self.system_attributes = tuple(system_attributes)
        if self.id_attribute.lower() not in {n.lower() for n in self.system_attributes}:
            self.system_attributes += (self.id_attribute,)
        self.entry_filter = entry_filter
        self.progress = progress
        self.progress_interval = progress_interval or get_progress_interval()
        self.summary = DiffSummary()
        self.state: DiffState | None = None

    def _enter(self, state: DiffState) -> None:
        index = 0 if self.state is None else _STATE_ORDER.index(self.state) + 1
        if index >= len(_STATE_ORDER) or state is not _STATE_ORDER[index]:
            current = self.state.value if self.state else "new"
            msg = f"Cannot enter {state.value} from {current}"
            raise SnapshotDiffer.StateError(msg)
        logger.debug("ldifdiff.state %s", state.value)
        self.state = state

    def _tick(self, count: int) -> None:
        if self.progress is not None and count % self.progress_interval == 0:
            self.progress(self.state.value, count)  # type: ignore[union-attr]

    def _identified(self, entry: Entry) -> bool:
        if entry.identifier is None:
            self.summary.skipped += 1
            logger.warning(
                "ldifdiff.%s.no-identifier dn=%s attribute=%s",
                self.state.value,  # type: ignore[union-attr]
                entry.dn,
                self.id_attribute,
            )
            return False
        return True

    def _in_scope(self, *entries: Entry) -> bool:
        """
        An identifier is in scope if the entry filter matches it in either
        snapshot.  Out of scope entries are counted and produce no records.
        """
        if self.entry_filter is None:
            return True
        if any(entry.matches(self.entry_filter) for entry in entries):
            return True
        self.summary.filtered += len(entries)
        return False

    def _to_entry(self, data) -> Entry:
        return Entry.from_ldap_data(data, self.id_attribute)

    def load(self, original: Iterable[Entry]) -> int:
        """
        Load the original snapshot into the store.

        Every entry with an identifier is stored, in scope of the entry
        filter or not: whether a pair is in scope is only known once the
        target entry is seen.

        Args:
            original: The entries of the original snapshot.

        Returns:
            The number of records read.

        """
        self._enter(DiffState.LOADING)
        for entry in original:
            self.summary.orig_read += 1
            self._tick(self.summary.orig_read)
            if not self._identified(entry):
                continue
            identifier = entry.identifier
            existing = self.store.get(identifier)  # type: ignore[arg-type]
            if existing is not None:
                self.summary.duplicates += 1
                logger.warning(
                    "ldifdiff.load.duplicate id=%s dn=%s previous=%s",
                    identifier,
                    entry.dn,
                    existing[0],
                )
            self.store.put(identifier, entry.to_ldap_data())  # type: ignore[arg-type]
        self._count_skipped(original)
        logger.info("ldifdiff.load.done records=%d stored=%d", self.summary.orig_read, len(self.store))
        return self.summary.orig_read

    def match(self, target: Iterable[Entry]) -> Iterator[ChangeRecord]:
        """
        Stream the target snapshot against the store.

        An entry whose identifier is in the store yields a modify record if
        anything changed, and is removed from the store either way.  An entry
        whose identifier is not in the store yields an add record.  With an
        entry filter, a pair where neither side matches is removed from the
        store without yielding anything.

        Args:
            target: The entries of the target snapshot.

        Yields:
            Modify and add records.

        """
        self._enter(DiffState.MATCHING)
        for entry in target:
            self.summary.target_read += 1
            self._tick(self.summary.target_read)
            if not self._identified(entry):
                continue
            identifier = entry.identifier
            data = self.store.get(identifier)  # type: ignore[arg-type]
            if data is None:
                if self._in_scope(entry):
                    yield build_add(entry, self.include_system, self.system_attributes)
                    self.summary.added += 1
                continue
            self.store.delete(identifier)  # type: ignore[arg-type]
            old = self._to_entry(data)
            if not self._in_scope(old, entry):
                continue
            record = build_change(old, entry, self.include_system, self.system_attributes)
            if record is not None:
                yield record
                self.summary.modified += 1
        self._count_skipped(target)

    def drain(self) -> Iterator[ChangeRecord]:
        """
        Delete every original entry that the target snapshot did not match.

        Yields:
            Delete records, addressed to the entries' original DNs.

        """
        self._enter(DiffState.DRAINING)
        for count, (_, data) in enumerate(self.store.items(), start=1):
            self._tick(count)
            if not self._in_scope(self._to_entry(data)):
                continue
            yield build_delete(data[0])
            self.summary.deleted += 1
        self.store.clear()

    def diff(self, original: Iterable[Entry], target: Iterable[Entry]) -> Iterator[ChangeRecord]:
        """
        Run a complete diff: load, match, drain.

        Args:
            original: The entries of the original snapshot.
            target: The entries of the target snapshot.

        Yields:
            Modify and add records while the target is streamed, then delete
            records.

        """
        self.load(original)
        yield from self.match(target)
        yield from self.drain()
        self._enter(DiffState.DONE)
        logger.info("ldifdiff.summary %s", self.summary)

    def _count_skipped(self, source: Iterable[Entry]) -> None:
        # readers count the records they could not decode themselves
        skipped = getattr(source, "records_skipped", 0)
        self.summary.skipped += skipped
        if self.state is DiffState.LOADING:
            self.summary.orig_read += skipped
        else:
            self.summary.target_read += skipped
