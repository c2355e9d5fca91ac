"""
Directory entries as read from an LDIF snapshot.
"""

from typing import TYPE_CHECKING

from ldap.cidict import cidict

from .typing import AttributeMap, LDAPData

if TYPE_CHECKING:
    from ldap_filter.filter import Filter


class Entry:
    """
    One directory entry: its DN, its stable identifier and its attributes.

    Attribute names are case-insensitive and every attribute holds a list of
    ``bytes`` values, even when it is single valued.  The DN is the mutable
    name of the entry and is never used to match entries across snapshots;
    :py:attr:`identifier` is.

    Args:
        dn: The distinguished name of the entry.
        attributes: Mapping of attribute name to values.
        id_attribute: The name of the attribute holding the stable identifier.

    """

    def __init__(self, dn: str, attributes: AttributeMap, id_attribute: str) -> None:
        #: The distinguished name of the entry
        self.dn: str = dn
        #: The name of the identifier attribute
        self.id_attribute: str = id_attribute
        #: Case-insensitive map of attribute name to list of values
        self.attributes: cidict = cidict(
            {name: list(values) for name, values in attributes.items()}
        )

    @classmethod
    def from_ldap_data(cls, data: LDAPData, id_attribute: str) -> "Entry":
        """
        Build an :py:class:`Entry` from a python-ldap ``(dn, entry)`` tuple.

        Args:
            data: The ``(dn, attributes)`` tuple.
            id_attribute: The name of the identifier attribute.

        Returns:
            The new entry.

        """
        dn, attributes = data
        return cls(dn, attributes, id_attribute)

    def to_ldap_data(self) -> LDAPData:
        """
        Return this entry as a plain python-ldap ``(dn, entry)`` tuple, the
        form kept in the keyed store.
        """
        return (self.dn, {name: list(values) for name, values in self.attributes.items()})

    @property
    def identifier(self) -> str | None:
        """
        The stable identifier of this entry, or ``None`` if the identifier
        attribute is missing or empty.
        """
        values = self.attributes.get(self.id_attribute)
        if not values:
            return None
        value = values[0].decode("utf-8", errors="replace").strip()
        return value or None

    def matches(self, entry_filter: "Filter") -> bool:
        """
        Test this entry against an LDAP search filter.

        Args:
            entry_filter: A parsed ``ldap_filter.Filter``.

        Returns:
            ``True`` if the entry matches.

        """
        data: dict[str, list[str]] = {}
        for name, values in self.attributes.items():
            decoded = [value.decode("utf-8", errors="replace") for value in values]
            data[name] = decoded
            # filters may spell attribute names in any case
            data.setdefault(name.lower(), decoded)
        return bool(entry_filter.match(data))

    def __repr__(self) -> str:
        return f"<Entry dn={self.dn!r} id={self.identifier!r}>"
