"""
Tests for the entry change builders.
"""

import unittest

import ldap
from django.conf import settings
from django.test import override_settings

from ldifdiff.changes import (
    AddRecord,
    DeleteRecord,
    ModifyRecord,
    build_add,
    build_change,
    build_delete,
)

from ._util import make_entry

if not settings.configured:
    settings.configure()


class TestBuildChange(unittest.TestCase):
    """Test build_change()."""

    def test_identical_entries_yield_none(self):
        old = make_entry("uid=alice,ou=people,dc=example,dc=com", "U1", cn="alice", sn="Smith")
        new = make_entry("uid=alice,ou=people,dc=example,dc=com", "U1", cn="alice", sn="Smith")
        self.assertIsNone(build_change(old, new))

    def test_member_added(self):
        old = make_entry("cn=staff,ou=groups,dc=example,dc=com", "U1", memberUid="alice")
        new = make_entry("cn=staff,ou=groups,dc=example,dc=com", "U1", memberUid=["alice", "bob"])
        record = build_change(old, new)
        self.assertIsInstance(record, ModifyRecord)
        self.assertEqual(record.changetype, "modify")
        self.assertEqual(record.modlist, [(ldap.MOD_ADD, "memberUid", [b"bob"])])

    def test_rename_without_changes_yields_none(self):
        old = make_entry("uid=alice,ou=people,dc=example,dc=com", "U1", cn="alice")
        new = make_entry("uid=alice,ou=staff,dc=example,dc=com", "U1", cn="alice")
        self.assertIsNone(build_change(old, new))

    def test_rename_is_addressed_at_new_dn(self):
        old = make_entry("uid=alice,ou=people,dc=example,dc=com", "U1", cn="alice", title="Engineer")
        new = make_entry("uid=alice,ou=staff,dc=example,dc=com", "U1", cn="alice", title="Manager")
        record = build_change(old, new)
        self.assertEqual(record.dn, "uid=alice,ou=staff,dc=example,dc=com")
        self.assertEqual(record.modlist, [(ldap.MOD_REPLACE, "title", [b"Manager"])])

    def test_operations_are_ordered(self):
        old = make_entry("cn=x", "U1", a=["1", "2"], b="old", c="gone")
        new = make_entry("cn=x", "U1", a=["2", "3"], b="new")
        ops = [op for op, _, _ in build_change(old, new).modlist]
        self.assertEqual(ops, [ldap.MOD_ADD, ldap.MOD_DELETE, ldap.MOD_DELETE, ldap.MOD_REPLACE])

    def test_system_attributes_ignored_by_default(self):
        old = make_entry("cn=x", "U1", cn="x", modifyTimestamp="20240101000000Z", entryCSN="a")
        new = make_entry("cn=x", "U1", cn="x", modifyTimestamp="20240202000000Z", entryCSN="b")
        self.assertIsNone(build_change(old, new))

    def test_system_attributes_included(self):
        old = make_entry("cn=x", "U1", cn="x", modifyTimestamp="20240101000000Z")
        new = make_entry("cn=x", "U1", cn="x", modifyTimestamp="20240202000000Z")
        record = build_change(old, new, include_system=True)
        self.assertEqual(record.modlist, [(ldap.MOD_REPLACE, "modifyTimestamp", [b"20240202000000Z"])])

    @override_settings(LDIFDIFF_SYSTEM_ATTRIBUTES=["entryUUID", "description"])
    def test_system_attributes_from_settings(self):
        old = make_entry("cn=x", "U1", cn="x", description="a", modifyTimestamp="1")
        new = make_entry("cn=x", "U1", cn="x", description="b", modifyTimestamp="2")
        record = build_change(old, new)
        self.assertEqual(record.modlist, [(ldap.MOD_REPLACE, "modifyTimestamp", [b"2"])])

    def test_explicit_system_attributes(self):
        old = make_entry("cn=x", "U1", cn="x", title="a")
        new = make_entry("cn=x", "U1", cn="y", title="b")
        record = build_change(old, new, system_attributes=["title"])
        self.assertEqual(record.modlist, [(ldap.MOD_REPLACE, "cn", [b"y"])])


class TestBuildAdd(unittest.TestCase):
    """Test build_add()."""

    def test_system_attributes_are_stripped(self):
        entry = make_entry(
            "uid=carol,ou=people,dc=example,dc=com",
            "U3",
            objectClass=["top", "inetOrgPerson"],
            cn="carol",
            createTimestamp="20240101000000Z",
            structuralObjectClass="inetOrgPerson",
        )
        record = build_add(entry)
        self.assertIsInstance(record, AddRecord)
        self.assertEqual(record.dn, "uid=carol,ou=people,dc=example,dc=com")
        self.assertEqual(
            record.attributes,
            {"objectClass": [b"top", b"inetOrgPerson"], "cn": [b"carol"]},
        )

    def test_system_attributes_are_kept_when_included(self):
        entry = make_entry("uid=carol,ou=people,dc=example,dc=com", "U3", cn="carol", createTimestamp="1")
        record = build_add(entry, include_system=True)
        self.assertEqual(
            record.attributes,
            {"cn": [b"carol"], "createTimestamp": [b"1"], "entryUUID": [b"U3"]},
        )


class TestBuildDelete(unittest.TestCase):
    """Test build_delete()."""

    def test_delete_is_addressed_by_dn(self):
        record = build_delete("uid=bob,ou=people,dc=example,dc=com")
        self.assertIsInstance(record, DeleteRecord)
        self.assertEqual(record.changetype, "delete")
        self.assertEqual(record.dn, "uid=bob,ou=people,dc=example,dc=com")

    def test_records_compare_by_content(self):
        self.assertEqual(build_delete("cn=a"), build_delete("cn=a"))
        self.assertNotEqual(build_delete("cn=a"), build_delete("cn=b"))
