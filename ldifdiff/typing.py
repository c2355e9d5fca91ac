"""
LDIF diff type definitions.

This module provides type aliases for LDAP data structures and modlists,
using Python 3.10+ type hinting conventions.
"""

from collections.abc import Callable, Mapping, Sequence

AttributeMap = Mapping[str, Sequence[bytes]]
LDAPData = tuple[str, dict[str, list[bytes]]]
AddModlist = list[tuple[str, list[bytes]]]
ModifyModListEntry = tuple[int, str, list[bytes] | None]
ModifyModList = list[ModifyModListEntry]
ExclusionPredicate = Callable[[str], bool]
ProgressCallback = Callable[[str, int], None]
