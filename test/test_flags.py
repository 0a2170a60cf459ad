"""
Flags module behavioral tests (values, flag records, parsing grammar, listings).

Scope
- Validate the token grammar: dash forms, inline and spaced values, stop rules.
- Validate parse faults: exact messages, usage callback, exception types.
- Validate the defaults listing layout (metavars, wrapping, default suffixes).
- Validate value conversions, bindings and duration text.

Conventions
- Test method names follow CamelCase per project convention.
- Flag sets write to io.StringIO so messages can be compared exactly.
"""

from __future__ import annotations

import datetime
import io
import unittest
from types import SimpleNamespace
from unittest import TestCase

from subcommander import (
    Flag,
    FlagSet,
    BoolValue,
    IntValue,
    FloatValue,
    StringValue,
    parse_duration,
    format_duration,
    HelpRequested,
    FaultCode,
    MalformedFlagError,
    UnknownFlagError,
    FlagValueRequiredError,
    InvalidFlagValueError,
)


class TestParsing(TestCase):
    """Token grammar accepted by FlagSet.parse."""

    def setUp(self) -> None:
        self.output = io.StringIO()
        self.fset = FlagSet("tool", output=self.output)
        self.verbose = self.fset.bool("v", False, "verbose")
        self.name = self.fset.string("name", "", "a name")
        self.count = self.fset.int("n", 0, "a count")

    def testDashForms(self):
        self.fset.parse(["-v", "--name", "x", "-n=3"])
        self.assertTrue(self.verbose.value)
        self.assertEqual(self.name.value, "x")
        self.assertEqual(self.count.value, 3)
        self.assertEqual(self.fset.args, ())
        self.assertTrue(self.fset.parsed)

    def testInlineValueWithEquals(self):
        self.fset.parse(["--name=a=b"])
        self.assertEqual(self.name.value, "a=b")

    def testInlineEmptyValue(self):
        self.fset.parse(["-name="])
        self.assertEqual(self.name.value, "")
        self.assertEqual(self.fset.nflags, 1)

    def testBoolDoesNotConsumeNextToken(self):
        self.fset.parse(["-v", "false"])
        self.assertTrue(self.verbose.value)
        self.assertEqual(self.fset.args, ("false",))

    def testBoolInlineValue(self):
        self.fset.parse(["-v=false"])
        self.assertFalse(self.verbose.value)

    def testStopsAtFirstNonFlag(self):
        self.fset.parse(["-v", "build", "-n", "3"])
        self.assertEqual(self.fset.args, ("build", "-n", "3"))
        self.assertEqual(self.count.value, 0)

    def testSingleDashIsArgument(self):
        self.fset.parse(["-", "-v"])
        self.assertEqual(self.fset.args, ("-", "-v"))

    def testTerminatorIsConsumed(self):
        self.fset.parse(["-v", "--", "-n", "3"])
        self.assertEqual(self.fset.args, ("-n", "3"))

    def testValueMayLookLikeFlag(self):
        self.fset.parse(["-name", "-v"])
        self.assertEqual(self.name.value, "-v")
        self.assertFalse(self.verbose.value)

    def testNargsAndArg(self):
        self.fset.parse(["a", "b"])
        self.assertEqual(self.fset.nargs, 2)
        self.assertEqual(self.fset.arg(1), "b")
        self.assertEqual(self.fset.arg(2), "")
        self.assertEqual(self.fset.arg(-1), "")

    def testParseRejectsNonStrings(self):
        with self.assertRaises(TypeError):
            self.fset.parse(["-v", 1])


class TestParseFaults(TestCase):
    """Exact messages and usage behavior for malformed input."""

    LISTING = (
        "  -n int\n"
        "    \ta count\n"
        "  -name string\n"
        "    \ta name\n"
        "  -v\tverbose\n"
    )

    def setUp(self) -> None:
        self.output = io.StringIO()
        self.fset = FlagSet("tool", output=self.output)
        self.fset.bool("v", False, "verbose")
        self.fset.string("name", "", "a name")
        self.fset.int("n", 0, "a count")

    def assertFault(self, arguments, kind, message, code):
        with self.assertRaises(kind) as context:
            self.fset.parse(arguments)
        self.assertEqual(str(context.exception), message)
        self.assertEqual(context.exception.code, code)
        self.assertEqual(self.output.getvalue(), message + "\nUsage of tool:\n" + self.LISTING)

    def testUnknownFlag(self):
        self.assertFault(["-x"], UnknownFlagError, "flag provided but not defined: -x", FaultCode.UNKNOWN_SWITCH)

    def testMissingValue(self):
        self.assertFault(["-n"], FlagValueRequiredError, "flag needs an argument: -n", FaultCode.OPTION_VALUE_REQUIRED)

    def testInvalidValue(self):
        self.assertFault(
            ["-n", "x"],
            InvalidFlagValueError,
            'invalid value "x" for flag -n: parse error',
            FaultCode.INVALID_VALUE,
        )

    def testIntegerOutOfRange(self):
        self.assertFault(
            ["-n=9223372036854775808"],
            InvalidFlagValueError,
            'invalid value "9223372036854775808" for flag -n: value out of range',
            FaultCode.INVALID_VALUE,
        )

    def testInvalidBooleanValue(self):
        self.assertFault(
            ["-v=maybe"],
            InvalidFlagValueError,
            'invalid boolean value "maybe" for -v: parse error',
            FaultCode.INVALID_VALUE,
        )

    def testTripleDash(self):
        self.assertFault(["---v"], MalformedFlagError, "bad flag syntax: ---v", FaultCode.MALFORMED_TOKEN)

    def testDashEquals(self):
        self.assertFault(["-=v"], MalformedFlagError, "bad flag syntax: -=v", FaultCode.MALFORMED_TOKEN)

    def testHelpFlags(self):
        for token in ("-h", "-help", "--h", "--help"):
            with self.subTest(token=token):
                self.output.seek(0)
                self.output.truncate()
                with self.assertRaises(HelpRequested) as context:
                    self.fset.parse([token])
                self.assertEqual(context.exception.code, FaultCode.HELP_REQUESTED)
                self.assertEqual(self.output.getvalue(), "Usage of tool:\n" + self.LISTING)

    def testDeclaredHelpIsOrdinaryFlag(self):
        wanted = self.fset.bool("help", False, "show help")
        self.fset.parse(["-help"])
        self.assertTrue(wanted.value)

    def testCustomUsageCallback(self):
        calls = []
        fset = FlagSet("tool", output=self.output, usage=lambda: calls.append("usage"))
        with self.assertRaises(UnknownFlagError):
            fset.parse(["-x"])
        self.assertEqual(calls, ["usage"])
        self.assertEqual(self.output.getvalue(), "flag provided but not defined: -x\n")

    def testUnnamedDefaultUsage(self):
        fset = FlagSet(output=self.output)
        with self.assertRaises(HelpRequested):
            fset.parse(["-h"])
        self.assertEqual(self.output.getvalue(), "Usage:\n")


class TestDefaultsListing(TestCase):
    """Layout of FlagSet.defaults()."""

    def setUp(self) -> None:
        self.fset = FlagSet("tool")

    def testShortBoolUsesTab(self):
        self.fset.bool("v", False, "verbose")
        self.assertEqual(self.fset.defaults(), "  -v\tverbose\n")

    def testLongNameWraps(self):
        self.fset.bool("verbose", False, "be chatty")
        self.assertEqual(self.fset.defaults(), "  -verbose\n    \tbe chatty\n")

    def testStringDefaultIsQuoted(self):
        self.fset.string("flag", "test", "a flag test")
        self.assertEqual(self.fset.defaults(), '  -flag string\n    \ta flag test (default "test")\n')

    def testZeroDefaultsAreOmitted(self):
        self.fset.string("s", "", "text")
        self.fset.int("i", 0, "number")
        self.fset.float("f", 0.0, "ratio")
        self.fset.duration("d", datetime.timedelta(), "wait")
        self.fset.bool("b", False, "switch")
        self.assertNotIn("default", self.fset.defaults())

    def testNonZeroDefaults(self):
        self.fset.int("i", 3, "number")
        self.fset.float("f", 1.5, "ratio")
        self.fset.float("g", 1e6, "big")
        self.fset.duration("d", datetime.timedelta(seconds=90), "wait")
        self.fset.bool("b", True, "switch")
        self.assertEqual(
            self.fset.defaults(),
            "  -b\tswitch (default true)\n"
            "  -d duration\n    \twait (default 1m30s)\n"
            "  -f float\n    \tratio (default 1.5)\n"
            "  -g float\n    \tbig (default 1e+06)\n"
            "  -i int\n    \tnumber (default 3)\n",
        )

    def testBackQuotedMetavar(self):
        self.fset.string("config", "", "load `file` settings")
        self.assertEqual(self.fset.defaults(), "  -config file\n    \tload file settings\n")

    def testMultilineUsage(self):
        self.fset.bool("x", False, "line one\nline two")
        self.assertEqual(self.fset.defaults(), "  -x\tline one\n    \tline two\n")

    def testSortedByName(self):
        for name in ("zeta", "alpha", "mid"):
            self.fset.bool(name, False, "")
        names = [line.split()[0] for line in self.fset.defaults().splitlines() if line.startswith("  -")]
        self.assertEqual(names, ["-alpha", "-mid", "-zeta"])

    def testPrintDefaultsWritesToOutput(self):
        output = io.StringIO()
        fset = FlagSet("tool", output=output)
        fset.bool("v", False, "verbose")
        fset.print_defaults()
        self.assertEqual(output.getvalue(), fset.defaults())


class TestDeclarations(TestCase):
    """Flag and FlagSet declaration rules."""

    def testRedefinitionRaises(self):
        fset = FlagSet("tool")
        fset.bool("v", False, "")
        with self.assertRaises(ValueError) as context:
            fset.int("v", 0, "")
        self.assertEqual(str(context.exception), "tool flag redefined: v")

    def testInvalidNames(self):
        for name in ("", "-v", "a=b"):
            with self.subTest(name=name):
                with self.assertRaises(ValueError):
                    FlagSet().bool(name, False, "")

    def testFlagIsReadOnly(self):
        flag = Flag("v", "verbose", BoolValue(True))
        self.assertEqual(flag.default, "true")
        with self.assertRaises(AttributeError):
            flag.name = "w"

    def testLookupAndFlagsMapping(self):
        fset = FlagSet()
        fset.int("n", 0, "count")
        self.assertEqual(fset.lookup("n").usage, "count")
        self.assertIsNone(fset.lookup("m"))
        self.assertEqual(list(fset.flags), ["n"])
        with self.assertRaises(TypeError):
            fset.flags["m"] = None

    def testSetAndVisit(self):
        fset = FlagSet()
        fset.int("b", 0, "")
        fset.int("a", 0, "")
        fset.int("c", 0, "")
        fset.set("c", "3")
        fset.parse(["-b", "2"])
        seen, every = [], []
        fset.visit(lambda flag: seen.append(flag.name))
        fset.visit_all(lambda flag: every.append(flag.name))
        self.assertEqual(seen, ["b", "c"])
        self.assertEqual(every, ["a", "b", "c"])
        with self.assertRaises(KeyError):
            fset.set("z", "1")

    def testBindMirrorsValues(self):
        state = SimpleNamespace()
        fset = FlagSet()
        fset.int("n", 5, "", bind=(state, "n"))
        self.assertEqual(state.n, 5)
        fset.parse(["-n", "0x10"])
        self.assertEqual(state.n, 16)

    def testBadBindRaises(self):
        with self.assertRaises(TypeError):
            StringValue("", bind="attribute")

    def testCustomValue(self):
        class Choice:
            metavar = "level"

            def __init__(self):
                self.level = "low"

            def set(self, text):
                if text not in ("low", "high"):
                    raise ValueError("must be low or high")
                self.level = text

            def __str__(self):
                return self.level

        output = io.StringIO()
        fset = FlagSet("tool", output=output)
        choice = Choice()
        fset.var(choice, "level", "how much")
        fset.parse(["-level", "high"])
        self.assertEqual(choice.level, "high")
        with self.assertRaises(InvalidFlagValueError) as context:
            fset.parse(["-level", "mid"])
        self.assertEqual(str(context.exception), 'invalid value "mid" for flag -level: must be low or high')

    def testFuncFlag(self):
        seen = []
        fset = FlagSet(output=io.StringIO())
        fset.func("I", "include `dir`", seen.append)
        fset.parse(["-I", "a", "-I=b"])
        self.assertEqual(seen, ["a", "b"])
        self.assertEqual(fset.defaults(), "  -I dir\n    \tinclude dir\n")

    def testFuncFlagErrors(self):
        def reject(text):
            raise ValueError("not allowed")

        fset = FlagSet(output=io.StringIO())
        fset.func("x", "", reject)
        with self.assertRaises(InvalidFlagValueError) as context:
            fset.parse(["-x", "y"])
        self.assertEqual(str(context.exception), 'invalid value "y" for flag -x: not allowed')

    def testBoolFuncFlag(self):
        seen = []
        fset = FlagSet()
        fset.bool_func("trace", "trace calls", seen.append)
        fset.parse(["-trace"])
        self.assertEqual(seen, ["true"])
        self.assertEqual(fset.defaults(), "  -trace\n    \ttrace calls\n")


class TestValues(TestCase):
    """Conversions and text forms of built-in values."""

    def testBoolSpellings(self):
        value = BoolValue()
        for text in ("1", "t", "T", "TRUE", "true", "True"):
            value.set(text)
            self.assertIs(value.value, True)
        for text in ("0", "f", "F", "FALSE", "false", "False"):
            value.set(text)
            self.assertIs(value.value, False)
        with self.assertRaises(ValueError):
            value.set("yes")

    def testIntBases(self):
        value = IntValue()
        for text, expected in (("10", 10), ("0x1f", 31), ("0o17", 15), ("0b11", 3), ("-5", -5), ("1_000", 1000)):
            value.set(text)
            self.assertEqual(value.value, expected)

    def testFloatText(self):
        for number, text in ((0.0, "0"), (2.0, "2"), (0.25, "0.25"), (123456.0, "123456"),
                             (1234567.0, "1.234567e+06"), (0.0001, "0.0001"), (0.00001, "1e-05"),
                             (-1.5, "-1.5"), (float("inf"), "+Inf"), (float("nan"), "NaN")):
            with self.subTest(number=number):
                self.assertEqual(str(FloatValue(number)), text)

    def testStringValueRepr(self):
        self.assertEqual(repr(StringValue("x")), "string-value(value='x')")


class TestDurations(TestCase):
    """parse_duration and format_duration."""

    def testParse(self):
        cases = {
            "0": datetime.timedelta(),
            "5s": datetime.timedelta(seconds=5),
            "+5s": datetime.timedelta(seconds=5),
            "-2ms": datetime.timedelta(milliseconds=-2),
            "1.5h": datetime.timedelta(hours=1, minutes=30),
            "2h45m": datetime.timedelta(hours=2, minutes=45),
            "300us": datetime.timedelta(microseconds=300),
            "300µs": datetime.timedelta(microseconds=300),
            "1500ns": datetime.timedelta(microseconds=2),
            ".5s": datetime.timedelta(milliseconds=500),
        }
        for text, expected in cases.items():
            with self.subTest(text=text):
                self.assertEqual(parse_duration(text), expected)

    def testParseErrors(self):
        for text in ("", "-", "1", "s", "1.s.", "5 s"):
            with self.subTest(text=text):
                with self.assertRaises(ValueError):
                    parse_duration(text)

    def testUnknownUnit(self):
        with self.assertRaises(ValueError) as context:
            parse_duration("3d")
        self.assertEqual(str(context.exception), 'unknown unit "d" in duration "3d"')

    def testFormat(self):
        cases = (
            (datetime.timedelta(), "0s"),
            (datetime.timedelta(microseconds=250), "250µs"),
            (datetime.timedelta(microseconds=1500), "1.5ms"),
            (datetime.timedelta(seconds=1.5), "1.5s"),
            (datetime.timedelta(seconds=90), "1m30s"),
            (datetime.timedelta(hours=1), "1h0m0s"),
            (datetime.timedelta(milliseconds=-2), "-2ms"),
        )
        for delta, text in cases:
            with self.subTest(text=text):
                self.assertEqual(format_duration(delta), text)

    def testDurationFlag(self):
        fset = FlagSet(output=io.StringIO())
        timeout = fset.duration("timeout", datetime.timedelta(seconds=30), "wait")
        fset.parse(["-timeout", "1m30s"])
        self.assertEqual(timeout.value, datetime.timedelta(seconds=90))
        with self.assertRaises(InvalidFlagValueError) as context:
            fset.parse(["-timeout", "soon"])
        self.assertEqual(str(context.exception), 'invalid value "soon" for flag -timeout: parse error')


if __name__ == "__main__":
    unittest.main()
