r"""
Subcommander flag parsing: values, flag records and flag sets.

Overview
- Values
  • StringValue, BoolValue, IntValue, FloatValue, DurationValue: typed storage
    with a text round-trip (set(text) / str(value)). Each accepts an optional
    bind=(object, "attribute") so every stored value is mirrored onto caller
    storage, starting with the default at declaration time.
  • FuncValue / BoolFuncValue: call a function with every occurrence of the flag.
  • Any object with set(text) and __str__ works too; is_bool_flag marks
    presence-only values and metavar names the type in listings.

- Flag
  • Immutable record of one declaration: name, usage, value and default text.

- FlagSet
  • Declares flags, parses a token sequence up to the first non-flag token,
    and renders the defaults listing used by help output.

Token grammar (parse)
- "-name", "--name", "-name=value", "--name=value"; non-boolean flags also
  take the next token as their value ("-name value").
- A token shorter than two characters or without a leading '-' stops parsing;
  "--" is consumed and stops parsing.
- Unknown "-h"/"-help" (with one or two dashes) requests help.

Faults
- Every parse error writes its message to the output, runs the usage callback,
  then raises a FlagError subclass; help requests run the usage callback and
  raise HelpRequested.

Quick example:
    >>> fset = FlagSet("tool")
    >>> verbose = fset.bool("v", False, "verbose output")
    >>> fset.parse(["-v", "build", "--fast"])
    >>> verbose.value, fset.args
    (True, ('build', '--fast'))
"""
import datetime
import decimal
import io
import re
import sys

from .faults import *
from .internals import IntrospectiveType
from .utils import *


class Value(metaclass=IntrospectiveType):
    """
    Base for built-in flag values.

    Subclasses define
    - zero: the python zero value, also used when no default is given.
    - metavar: type name shown in the defaults listing ("" hides it).
    - convert(text): parse text into a python value (raise ValueError on failure).
    - format(value): canonical text of a python value.
    """
    __introspectable__ = ("value",)

    zero = None
    metavar = "value"
    is_bool_flag = False

    def __init__(self, default=Unset, /, *, bind=Unset):
        if bind is not Unset:
            if not isinstance(bind, tuple) or len(bind) != 2 or not isinstance(bind[1], str):
                raise TypeError(f"{type(self).__typename__} 'bind' must be an (object, attribute) pair")
        self._bind = bind
        self._store(coalesce(default, self.zero))

    @property
    def value(self):
        return self._value

    def _store(self, value):
        self._value = value
        if self._bind is not Unset:
            setattr(*self._bind, value)

    def convert(self, text, /):
        raise NotImplementedError

    def format(self, value, /):
        return str(value)

    def set(self, text, /):
        self._store(self.convert(text))

    def __str__(self):
        return self.format(self._value)


class StringValue(Value):
    zero = ""
    metavar = "string"

    def convert(self, text, /):
        return text


class BoolValue(Value):
    zero = False
    metavar = ""
    is_bool_flag = True

    _truthy = frozenset({"1", "t", "T", "TRUE", "true", "True"})
    _falsy = frozenset({"0", "f", "F", "FALSE", "false", "False"})

    def convert(self, text, /):
        if text in self._truthy:
            return True
        if text in self._falsy:
            return False
        raise ValueError("parse error")

    def format(self, value, /):
        return "true" if value else "false"


class IntValue(Value):
    zero = 0
    metavar = "int"

    def convert(self, text, /):
        try:
            # base 0 accepts 0x/0o/0b prefixes and '_' separators
            number = int(text, 0)
        except ValueError:
            raise ValueError("parse error") from None
        if not -(1 << 63) <= number < (1 << 63):
            raise ValueError("value out of range")
        return number


class FloatValue(Value):
    zero = 0.0
    metavar = "float"

    def convert(self, text, /):
        try:
            return float(text)
        except ValueError:
            raise ValueError("parse error") from None

    def format(self, value, /):
        return _format_float(value)


def _format_float(value, /):
    """
    Shortest round-trip text of a float in %g style.

    Exponent form is used below 1e-4 or from 1e6 up ("1e+06", "1e-05");
    otherwise plain decimals without a trailing ".0" ("0", "1.5", "123456").
    """
    if value != value:
        return "NaN"
    if value in (float("inf"), float("-inf")):
        return "+Inf" if value > 0 else "-Inf"
    if value == 0:
        return "-0" if str(value).startswith("-") else "0"

    sign, digits, exponent = decimal.Decimal(repr(value)).normalize().as_tuple()
    digits = "".join(map(str, digits))
    point = len(digits) + exponent  # position of the decimal point
    sign = "-" if sign else ""

    if point - 1 < -4 or point - 1 >= 6:
        mantissa = digits[0] + ("." + digits[1:] if len(digits) > 1 else "")
        return "%s%se%+03d" % (sign, mantissa, point - 1)
    if point <= 0:
        return "%s0.%s%s" % (sign, "0" * -point, digits)
    if point >= len(digits):
        return sign + digits + "0" * (point - len(digits))
    return "%s%s.%s" % (sign, digits[:point], digits[point:])


# microseconds per unit
_UNITS = {
    "ns": 1e-3,
    "us": 1.0,
    "µs": 1.0,  # U+00B5 micro sign
    "μs": 1.0,  # U+03BC greek mu
    "ms": 1e3,
    "s": 1e6,
    "m": 6e7,
    "h": 3.6e9,
}

_DURATION = re.compile(r"(\d*(?:\.\d*)?)([^\d.]+)")


def parse_duration(text, /):
    """
    Parse a duration such as "300ms", "-1.5h" or "2h45m" into a timedelta.

    Grammar: an optional sign, then one or more decimal numbers each followed
    by a unit (ns, us, µs, ms, s, m, h). "0" is accepted without a unit.
    Precision is limited to microseconds.
    """
    if not isinstance(text, str):
        raise TypeError("parse_duration() argument must be a string")

    body = text
    negative = body[:1] == "-"
    if body[:1] in ("-", "+"):
        body = body[1:]
    if body == "0":
        return datetime.timedelta()
    if not body:
        raise ValueError("invalid duration %s" % quote(text))

    micros = 0.0
    position = 0
    while position < len(body):
        match = _DURATION.match(body, position)
        if not match or match[1] in ("", "."):
            raise ValueError("invalid duration %s" % quote(text))
        number, unit = match.groups()
        try:
            scale = _UNITS[unit]
        except KeyError:
            raise ValueError("unknown unit %s in duration %s" % (quote(unit), quote(text))) from None
        micros += float(number) * scale
        position = match.end()

    total = datetime.timedelta(microseconds=micros)
    return -total if negative else total


def _trim(whole, fraction, digits, /):
    """Render whole.fraction with `digits` fractional digits, trailing zeros removed."""
    fraction = str(fraction).rjust(digits, "0").rstrip("0")
    return f"{whole}.{fraction}" if fraction else str(whole)


def format_duration(delta, /):
    """
    Render a timedelta the way durations are written on the command line.

    Examples
    - timedelta(0)                 -> "0s"
    - timedelta(microseconds=250)  -> "250µs"
    - timedelta(microseconds=1500) -> "1.5ms"
    - timedelta(seconds=90)        -> "1m30s"
    - timedelta(hours=1)           -> "1h0m0s"
    """
    micros = delta // datetime.timedelta(microseconds=1)
    if micros == 0:
        return "0s"

    sign = "-" if micros < 0 else ""
    micros = abs(micros)

    if micros < 1000:
        return f"{sign}{micros}µs"
    if micros < 1_000_000:
        return f"{sign}{_trim(micros // 1000, micros % 1000, 3)}ms"

    hours, micros = divmod(micros, 3_600_000_000)
    minutes, micros = divmod(micros, 60_000_000)
    seconds = _trim(micros // 1_000_000, micros % 1_000_000, 6) + "s"

    if hours:
        return f"{sign}{hours}h{minutes}m{seconds}"
    if minutes:
        return f"{sign}{minutes}m{seconds}"
    return f"{sign}{seconds}"


class DurationValue(Value):
    zero = datetime.timedelta()
    metavar = "duration"

    def convert(self, text, /):
        try:
            return parse_duration(text)
        except ValueError:
            raise ValueError("parse error") from None

    def format(self, value, /):
        return format_duration(value)


class FuncValue(Value):
    """
    Calls a function with the text of every occurrence of the flag.

    Exceptions raised by the function become parse errors, using the
    exception's message as the reason.
    """
    __introspectable__ = ("callback",)

    zero = ""

    def __init__(self, callback, /):
        if not callable(callback):
            raise TypeError(f"{type(self).__typename__} callback must be callable")
        self.callback = callback
        super().__init__()

    def convert(self, text, /):
        try:
            self.callback(text)
        except Exception as exception:
            raise ValueError(str(exception) or type(exception).__name__) from exception
        return self._value

    def format(self, value, /):
        return ""


class BoolFuncValue(FuncValue):
    metavar = ""
    is_bool_flag = True


class Flag(metaclass=IntrospectiveType):
    """
    One declared flag: its name, usage text, value and default text.

    Names must be non-empty strings that neither start with '-' nor contain '='.
    """
    __introspectable__ = ("name", "usage", "value", "default")
    __slots__ = ("name", "usage", "value", "default")

    def __init__(self, name, usage, value, /):
        if not isinstance(name, str):
            raise TypeError(f"{type(self).__typename__} name must be a string")
        elif not name:
            raise ValueError(f"{type(self).__typename__} name cannot be empty")
        elif name.startswith("-"):
            raise ValueError(f"{type(self).__typename__} {quote(name)} begins with -")
        elif "=" in name:
            raise ValueError(f"{type(self).__typename__} {quote(name)} contains =")
        if not isinstance(usage, str):
            raise TypeError(f"{type(self).__typename__} usage must be a string")
        if not callable(getattr(value, "set", None)):
            raise TypeError(f"{type(self).__typename__} value must provide a set() method")

        object.__setattr__(self, "name", name)
        object.__setattr__(self, "usage", usage)
        object.__setattr__(self, "value", value)
        object.__setattr__(self, "default", str(value))

    def __setattr__(self, name, value, /):
        raise AttributeError(f"{type(self).__typename__} is read-only")

    @property
    def is_bool_flag(self):
        return bool(getattr(self.value, "is_bool_flag", False))

    def unquote_usage(self):
        """
        Return (metavar, usage) for the defaults listing.

        A back-quoted word in the usage text becomes the metavar and loses its
        quotes ("a `file` to read" → ("file", "a file to read")). Otherwise the
        value's metavar is used ("value" for values that do not declare one).
        """
        if (start := self.usage.find("`")) >= 0:
            if (end := self.usage.find("`", start + 1)) >= 0:
                name = self.usage[start + 1:end]
                return name, self.usage[:start] + name + self.usage[end + 1:]
        return getattr(self.value, "metavar", "value"), self.usage

    def is_zero_default(self):
        """True when the default text equals the zero text of the value's type."""
        if isinstance(self.value, Value):
            return self.default == self.value.format(self.value.zero)
        try:
            return self.default == str(type(self.value)())
        except TypeError:
            return self.default == ""


class FlagSet(metaclass=IntrospectiveType):
    """
    A named set of flags plus the result of parsing a token sequence.

    Parameters
    - name: used by the default usage message ("Usage of <name>:").
    - output: text sink for messages and listings (sys.stderr when Unset/None,
      resolved at use time).
    - usage: zero-argument callable run on help requests and parse errors
      (the default prints the usage header and the defaults listing).
    """
    __introspectable__ = ("name", "flags", "args", "parsed")

    flags = mirror("formal")
    args = mirror("args")

    def __init__(self, name="", /, *, output=Unset, usage=Unset):
        if not isinstance(name, str):
            raise TypeError(f"{type(self).__typename__} name must be a string")
        if usage is not Unset and not callable(usage):
            raise TypeError(f"{type(self).__typename__} usage must be callable")
        self.name = name
        self.output = output
        self.usage = coalesce(usage, self.default_usage)
        self.parsed = False
        self._formal = {}
        self._actual = {}
        self._args = []

    @property
    def output(self):
        return self._output if self._output is not None else sys.stderr

    @output.setter
    def output(self, output):
        self._output = coalesce(output)

    # ── declaration ────────────────────────────────────────────────────────

    def var(self, value, name, usage="", /):
        """
        Declare a flag backed by an arbitrary value object and return its Flag.
        """
        flag = Flag(name, usage, value)
        if name in self._formal:
            if self.name:
                raise ValueError(f"{self.name} flag redefined: {name}")
            raise ValueError(f"flag redefined: {name}")
        self._formal[name] = flag
        return flag

    def string(self, name, default="", usage="", /, *, bind=Unset):
        self.var(value := StringValue(default, bind=bind), name, usage)
        return value

    def bool(self, name, default=False, usage="", /, *, bind=Unset):
        self.var(value := BoolValue(default, bind=bind), name, usage)
        return value

    def int(self, name, default=0, usage="", /, *, bind=Unset):
        self.var(value := IntValue(default, bind=bind), name, usage)
        return value

    def float(self, name, default=0.0, usage="", /, *, bind=Unset):
        self.var(value := FloatValue(default, bind=bind), name, usage)
        return value

    def duration(self, name, default=Unset, usage="", /, *, bind=Unset):
        self.var(value := DurationValue(default, bind=bind), name, usage)
        return value

    def func(self, name, usage, callback, /):
        self.var(value := FuncValue(callback), name, usage)
        return value

    def bool_func(self, name, usage, callback, /):
        self.var(value := BoolFuncValue(callback), name, usage)
        return value

    # ── inspection ─────────────────────────────────────────────────────────

    def lookup(self, name, /):
        """Return the Flag declared under name, or None."""
        return self._formal.get(name)

    def set(self, name, value, /):
        """
        Set a declared flag from text as if it appeared on the command line.

        Raises KeyError for unknown names and ValueError for invalid text.
        """
        try:
            flag = self._formal[name]
        except KeyError:
            raise KeyError(f"no such flag -{name}") from None
        flag.value.set(value)
        self._actual[name] = flag

    def visit(self, function, /):
        """Call function for every flag set on the command line, sorted by name."""
        for name in sorted(self._actual):
            function(self._actual[name])

    def visit_all(self, function, /):
        """Call function for every declared flag, sorted by name."""
        for name in sorted(self._formal):
            function(self._formal[name])

    @property
    def nflags(self):
        return len(self._actual)

    @property
    def nargs(self):
        return len(self._args)

    def arg(self, index, /):
        """Return the index-th remaining argument, or "" when out of range."""
        if 0 <= index < len(self._args):
            return self._args[index]
        return ""

    # ── rendering ──────────────────────────────────────────────────────────

    def defaults(self):
        """
        Return the defaults listing: one entry per declared flag, sorted by name.

        Layout per flag
        - "  -name" plus " metavar" when there is one;
        - a tab when that prefix is at most four characters, otherwise a newline
          and an indented tab;
        - the usage text (continuation lines indented the same way);
        - ' (default "...")' for strings or ' (default ...)' otherwise, unless
          the default is the zero value of its type.
        """
        buffer = io.StringIO()
        for name in sorted(self._formal):
            flag = self._formal[name]
            line = "  -" + name
            metavar, usage = flag.unquote_usage()
            if metavar:
                line += " " + metavar
            # "  -x" fits before the first tab stop; anything longer wraps
            line += "\t" if len(line) <= 4 else "\n    \t"
            line += usage.replace("\n", "\n    \t")
            if not flag.is_zero_default():
                if isinstance(flag.value, StringValue):
                    line += " (default %s)" % quote(flag.default)
                else:
                    line += " (default %s)" % flag.default
            buffer.write(line + "\n")
        return buffer.getvalue()

    def print_defaults(self):
        self.output.write(self.defaults())

    def default_usage(self):
        if self.name:
            self.output.write("Usage of %s:\n" % self.name)
        else:
            self.output.write("Usage:\n")
        self.print_defaults()

    # ── parsing ────────────────────────────────────────────────────────────

    def _fail(self, exception):
        self.output.write(str(exception) + "\n")
        self.usage()
        raise exception

    def _parse_one(self):
        """
        Consume one flag from the remaining arguments.

        Returns True when a flag was consumed and False when parsing should stop.
        """
        if not self._args:
            return False
        token = self._args[0]
        if len(token) < 2 or token[0] != "-":
            return False

        dashes = 1
        if token[1] == "-":
            dashes += 1
            if len(token) == 2:
                # "--" terminates the flags
                del self._args[0]
                return False

        name = token[dashes:]
        if not name or name[0] in "-=":
            self._fail(MalformedFlagError(
                "bad flag syntax: %s" % token,
                code=FaultCode.MALFORMED_TOKEN,
                title="malformed flag",
                hint="flags are written -name, -name=value or -name value",
                token=token,
            ))

        del self._args[0]
        name, separator, value = name.partition("=")
        inline = bool(separator)

        if (flag := self._formal.get(name)) is None:
            if name in ("help", "h"):
                self.usage()
                raise HelpRequested(
                    "help requested",
                    code=FaultCode.HELP_REQUESTED,
                    title="help requested",
                )
            self._fail(UnknownFlagError(
                "flag provided but not defined: -%s" % name,
                code=FaultCode.UNKNOWN_SWITCH,
                title="unknown flag",
                hint="run with -help to see the available flags",
                name=name,
            ))

        if flag.is_bool_flag:
            try:
                flag.value.set(value if inline else "true")
            except ValueError as exception:
                if inline:
                    message = "invalid boolean value %s for -%s: %s" % (quote(value), name, exception)
                else:
                    message = "invalid boolean flag %s: %s" % (name, exception)
                self._fail(InvalidFlagValueError(
                    message,
                    code=FaultCode.INVALID_VALUE,
                    title="invalid flag value",
                    name=name,
                    value=value,
                ))
        else:
            if not inline and self._args:
                value = self._args.pop(0)
                inline = True
            if not inline:
                self._fail(FlagValueRequiredError(
                    "flag needs an argument: -%s" % name,
                    code=FaultCode.OPTION_VALUE_REQUIRED,
                    title="flag value required",
                    hint="pass a value with -%s=value or -%s value" % (name, name),
                    name=name,
                ))
            try:
                flag.value.set(value)
            except ValueError as exception:
                self._fail(InvalidFlagValueError(
                    "invalid value %s for flag -%s: %s" % (quote(value), name, exception),
                    code=FaultCode.INVALID_VALUE,
                    title="invalid flag value",
                    name=name,
                    value=value,
                ))

        self._actual[name] = flag
        return True

    def parse(self, arguments, /):
        """
        Parse flags from arguments; the rest is available through args.

        Raises HelpRequested for unknown -h/-help and a FlagError subclass for
        malformed input, after running the usage callback.
        """
        arguments = list(arguments)
        if not all(isinstance(argument, str) for argument in arguments):
            raise TypeError("parse() argument must be an iterable of strings")
        self.parsed = True
        self._args = arguments
        while self._parse_one():
            pass


__all__ = (
    "Value",
    "StringValue",
    "BoolValue",
    "IntValue",
    "FloatValue",
    "DurationValue",
    "FuncValue",
    "BoolFuncValue",
    "Flag",
    "FlagSet",
    "parse_duration",
    "format_duration",
)
