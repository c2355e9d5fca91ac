"""
Change records and the builders that produce them from entries.
"""

import logging
from collections.abc import Iterable

from ldap import modlist

from .conf import get_system_attributes
from .differ import AttributeChanges, SystemAttributes, diff_attributes
from .entry import Entry
from .typing import AddModlist, ModifyModList

logger = logging.getLogger(__name__)


class ChangeRecord:
    """
    Base class for one unit of output: an add, delete or modify of one entry.

    Args:
        dn: The DN the change is addressed to.

    """

    #: The LDIF ``changetype`` of this record
    changetype: str = ""

    def __init__(self, dn: str) -> None:
        self.dn = dn

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} dn={self.dn!r}>"

    def _compare_key(self) -> tuple:
        return (self.changetype, self.dn)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ChangeRecord):
            return NotImplemented
        return self._compare_key() == other._compare_key()

    __hash__ = None  # type: ignore[assignment]


class AddRecord(ChangeRecord):
    """
    Add a new entry.

    Args:
        dn: The DN of the new entry.
        modlist: The python-ldap add modlist, ``[(attribute, values), ...]``.

    """

    changetype = "add"

    def __init__(self, dn: str, modlist: AddModlist) -> None:
        super().__init__(dn)
        self.modlist = modlist

    @property
    def attributes(self) -> dict[str, list[bytes]]:
        return {name: list(values) for name, values in self.modlist}

    def _compare_key(self) -> tuple:
        return (*super()._compare_key(), self.modlist)


class DeleteRecord(ChangeRecord):
    """Delete the entry at ``dn``."""

    changetype = "delete"


class ModifyRecord(ChangeRecord):
    """
    Modify the attributes of the entry at ``dn``.

    Args:
        dn: The current (post-rename) DN of the entry.
        changes: The attribute operations.

    """

    changetype = "modify"

    def __init__(self, dn: str, changes: AttributeChanges) -> None:
        super().__init__(dn)
        self.changes = changes

    @property
    def modlist(self) -> ModifyModList:
        return self.changes.to_modlist()

    def _compare_key(self) -> tuple:
        return (*super()._compare_key(), self.modlist)


def _system_attributes(names: Iterable[str] | None, include_system: bool) -> SystemAttributes:
    if names is None:
        names = get_system_attributes()
    return SystemAttributes(names, include=include_system)


def build_change(
    old: Entry,
    new: Entry,
    include_system: bool = False,
    system_attributes: Iterable[str] | None = None,
) -> ModifyRecord | None:
    """
    Build the modify record that turns ``old`` into ``new``.

    Args:
        old: The entry from the original snapshot.
        new: The entry with the same identifier from the target snapshot.
        include_system: Whether to compare system attributes too.
        system_attributes: The system attribute names; defaults to the
            ``LDIFDIFF_SYSTEM_ATTRIBUTES`` setting.

    Returns:
        A :py:class:`ModifyRecord` addressed to ``new.dn``, or ``None`` if
        the entries are the same.

    """
    is_excluded = _system_attributes(system_attributes, include_system)
    changes = diff_attributes(old.attributes, new.attributes, is_excluded)
    if not changes:
        logger.debug("ldifdiff.change.no-changes dn=%s", new.dn)
        return None
    if old.dn != new.dn:
        logger.debug("ldifdiff.change.renamed old=%s new=%s", old.dn, new.dn)
    return ModifyRecord(new.dn, changes)


def build_add(
    entry: Entry,
    include_system: bool = False,
    system_attributes: Iterable[str] | None = None,
) -> AddRecord:
    """
    Build the add record for an entry only present in the target snapshot.

    Args:
        entry: The new entry.
        include_system: Whether to keep system attributes on the new entry.
        system_attributes: The system attribute names; defaults to the
            ``LDIFDIFF_SYSTEM_ATTRIBUTES`` setting.

    Returns:
        The add record.

    """
    is_excluded = _system_attributes(system_attributes, include_system)
    ignored = [name for name in entry.attributes if is_excluded(name)]
    return AddRecord(entry.dn, modlist.addModlist(entry.attributes, ignore_attr_types=ignored))


def build_delete(dn: str) -> DeleteRecord:
    """Build the delete record for the entry at ``dn``."""
    return DeleteRecord(dn)
