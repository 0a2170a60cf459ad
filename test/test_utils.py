"""
Tests for the shared utilities.

This module verifies:
- Unset sentinel identity, falsiness, representation and finality.
- coalesce() keeps falsey values and only replaces Unset.
- rename() in both call forms.
- mirror() read-only snapshots of private containers.
- quote() double-quoted escaping.
"""
import unittest
from types import MappingProxyType
from unittest import TestCase

from subcommander.utils import *


class UnsetTest(TestCase):

    def testSingleton(self):
        self.assertIs(UnsetType(), Unset)

    def testFalsyAndRepr(self):
        self.assertFalse(Unset)
        self.assertIsNot(Unset, None)
        self.assertEqual(repr(Unset), "Unset")

    def testUnionIsinstance(self):
        self.assertTrue(isinstance(Unset, str | Unset))
        self.assertTrue(isinstance("x", str | Unset))
        self.assertFalse(isinstance(1, str | Unset))

    def testFinal(self):
        with self.assertRaises(TypeError):
            type("Derived", (UnsetType,), {})


class CoalesceTest(TestCase):

    def testReplacesUnsetOnly(self):
        self.assertEqual(coalesce(Unset, "fallback"), "fallback")
        self.assertIsNone(coalesce(Unset))
        for value in (None, 0, "", []):
            self.assertIs(coalesce(value, "fallback"), value)


class RenameTest(TestCase):

    def testDirectForm(self):
        def original():
            pass

        self.assertIs(rename(original, "renamed"), original)
        self.assertEqual((original.__name__, original.__qualname__), ("renamed", "renamed"))

    def testDecoratorForm(self):
        @rename("renamed")
        def original():
            pass

        self.assertEqual(original.__name__, "renamed")

    def testBadArguments(self):
        with self.assertRaises(TypeError):
            rename()
        with self.assertRaises(TypeError):
            rename("not callable", "name")
        with self.assertRaises(TypeError):
            rename(1)


class MirrorTest(TestCase):

    class Holder:
        items = mirror("items")
        table = mirror("table")
        tags = mirror("tags")
        title = mirror("title")

        def __init__(self):
            self._items = [1, 2]
            self._table = {"a": 1}
            self._tags = {"x"}
            self._title = "name"

    def testSnapshots(self):
        holder = self.Holder()
        self.assertEqual(holder.items, (1, 2))
        self.assertIsInstance(holder.table, MappingProxyType)
        self.assertEqual(holder.tags, frozenset({"x"}))
        self.assertEqual(holder.title, "name")

    def testSnapshotIsDetached(self):
        holder = self.Holder()
        items = holder.items
        holder._items.append(3)
        self.assertEqual(items, (1, 2))

    def testReadOnly(self):
        with self.assertRaises(AttributeError):
            self.Holder().items = ()


class QuoteTest(TestCase):

    def testPlain(self):
        self.assertEqual(quote("test"), '"test"')
        self.assertEqual(quote(""), '""')

    def testEscapes(self):
        self.assertEqual(quote('say "hi"'), '"say \\"hi\\""')
        self.assertEqual(quote("a\\b"), '"a\\\\b"')
        self.assertEqual(quote("tab\tnew\n"), '"tab\\tnew\\n"')
        self.assertEqual(quote("\x00"), '"\\x00"')
        self.assertEqual(quote("\u200b"), '"\\u200b"')

    def testPrintableUnicodeIsKept(self):
        self.assertEqual(quote("héllo µs"), '"héllo µs"')

    def testNonString(self):
        with self.assertRaises(TypeError):
            quote(1)


if __name__ == "__main__":
    unittest.main()
