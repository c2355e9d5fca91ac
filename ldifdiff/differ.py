"""
Attribute level diffing of two directory entries.

The functions here are pure: they take two attribute maps and return the
operations that turn the first into the second.  No I/O, no state.
"""

from collections.abc import Iterable, Sequence

from ldap import MOD_ADD, MOD_DELETE, MOD_REPLACE
from ldap.cidict import cidict

from .typing import AttributeMap, ExclusionPredicate, ModifyModList


class SystemAttributes:
    """
    Exclusion predicate for server maintained attributes.

    The names are case-normalized once; calling the instance with an attribute
    name answers whether that attribute is excluded.

    Args:
        names: The system attribute names.
        include: If ``True``, nothing is excluded.

    """

    def __init__(self, names: Iterable[str], include: bool = False) -> None:
        self.names: frozenset[str] = frozenset(name.lower() for name in names)
        self.include = include

    def __call__(self, name: str) -> bool:
        if self.include:
            return False
        return name.lower() in self.names

    def __contains__(self, name: str) -> bool:
        return name.lower() in self.names


def unique(values: Iterable[bytes]) -> list[bytes]:
    """Return ``values`` with duplicates removed, keeping first-seen order."""
    return list(dict.fromkeys(values))


class AttributeChanges:
    """
    The add, delete and replace operations for one entry.

    Each of :py:attr:`adds`, :py:attr:`deletes` and :py:attr:`replaces` maps
    an attribute name to a list of values.  An empty list in
    :py:attr:`deletes` means "remove the attribute entirely".
    """

    def __init__(self) -> None:
        self.adds: dict[str, list[bytes]] = {}
        self.deletes: dict[str, list[bytes]] = {}
        self.replaces: dict[str, list[bytes]] = {}

    def __bool__(self) -> bool:
        return bool(self.adds or self.deletes or self.replaces)

    def __repr__(self) -> str:
        return (
            f"<AttributeChanges adds={self.adds!r} deletes={self.deletes!r} "
            f"replaces={self.replaces!r}>"
        )

    @property
    def attributes(self) -> set[str]:
        """Every attribute name touched by an operation."""
        return {*self.adds, *self.deletes, *self.replaces}

    def to_modlist(self) -> ModifyModList:
        """
        Build a python-ldap modify modlist.

        Operations are ordered adds, then deletes, then replaces; consumers
        of the LDIF output rely on that order.

        Returns:
            A list of ``(mod_op, attribute, values)`` tuples.  Deleting an
            attribute entirely uses ``None`` for its values.

        """
        _modlist: ModifyModList = []
        for name, values in self.adds.items():
            _modlist.append((MOD_ADD, name, values))
        for name, values in self.deletes.items():
            _modlist.append((MOD_DELETE, name, values or None))
        for name, values in self.replaces.items():
            _modlist.append((MOD_REPLACE, name, values))
        return _modlist

    def apply(self, attributes: AttributeMap) -> cidict:
        """
        Apply these operations to ``attributes``: deletes, then adds, then
        replaces.

        Args:
            attributes: The attribute map to start from.  It is not modified.

        Returns:
            A new case-insensitive attribute map.

        """
        result = cidict({name: list(values) for name, values in attributes.items()})
        for name, values in self.deletes.items():
            if not values:
                result.pop(name, None)
                continue
            removed = set(values)
            remaining = [v for v in result.get(name, []) if v not in removed]
            if remaining:
                result[name] = remaining
            else:
                result.pop(name, None)
        for name, values in self.adds.items():
            result[name] = unique([*result.get(name, []), *values])
        for name, values in self.replaces.items():
            result[name] = list(values)
        return result


def _diff_values(
    name: str,
    old_values: Sequence[bytes],
    new_values: Sequence[bytes],
    changes: AttributeChanges,
) -> None:
    old_set = set(old_values)
    new_set = set(new_values)
    if old_set == new_set:
        return
    if not old_set & new_set:
        changes.replaces[name] = unique(new_values)
        return
    only_old = [v for v in unique(old_values) if v not in new_set]
    only_new = [v for v in unique(new_values) if v not in old_set]
    if only_old:
        changes.deletes[name] = only_old
    if only_new:
        changes.adds[name] = only_new


def diff_attributes(
    old: AttributeMap,
    new: AttributeMap,
    is_excluded: ExclusionPredicate,
) -> AttributeChanges:
    """
    Compute the operations that turn ``old`` into ``new``.

    Values are compared as sets: duplicates collapse and order does not
    matter.  For an attribute present on both sides whose value sets differ,
    a single replace is emitted when the two sets have nothing in common;
    otherwise the removed values are deleted and the new values added.
    Attributes missing (or empty) in ``new`` are deleted entirely, attributes
    only in ``new`` are added with all their values.

    Args:
        old: The original attribute map.
        new: The target attribute map.
        is_excluded: Predicate answering whether an attribute is skipped.

    Returns:
        The operations, in an :py:class:`AttributeChanges`.

    """
    changes = AttributeChanges()
    old_map = old if isinstance(old, cidict) else cidict(dict(old))
    new_map = new if isinstance(new, cidict) else cidict(dict(new))
    for name, old_values in old_map.items():
        if is_excluded(name):
            continue
        new_values = new_map.get(name)
        if not new_values:
            changes.deletes[name] = []
            continue
        _diff_values(name, old_values, new_values, changes)
    for name, new_values in new_map.items():
        if is_excluded(name) or name in old_map:
            continue
        if new_values:
            changes.adds[name] = unique(new_values)
    return changes
