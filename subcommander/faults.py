"""
Subcommander faults (errors) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for every user-facing issue.
  Codes are grouped by domain to keep copy consistent and make logs/searches
  predictable.
- CommanderException: base type that carries message + options and knows how
  to render itself with rich.
- HelpRequested: the help-requested sentinel. Raised for explicit help flags,
  missing commands and unknown commands alike; help text is always written to
  the commander's output before it is raised.
- FlagError and subclasses: the flag parser's own parse errors (malformed
  syntax, unknown flag, missing or invalid value).
- DelegatedCommandError: wraps a command's own failure for rendering only; the
  commander never raises it.
- trigger(): surface a fault on stderr and exit with the matching status code.

Exit codes
- EXIT_USAGE (2): help requested or malformed flags; help is already visible.
- EXIT_FAILURE (1): a command failed while running.

Integration
- The host application can expose, in __main__:
  • __codes__:  mapping FaultCode → label, to rename codes in rendered headers.
  • __styles__: mapping style-name → rich style, to override the palette.
  • __prog__:   program name shown in rendered headers.
"""
import sys
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset

console = Console(stderr=True)

EXIT_FAILURE = 1
EXIT_USAGE = 2


class FaultCode(IntEnum):
    """
    canonical fault codes used across the library (stable identifiers).

    grouping (by high-level domain)
    - routing (1110x)
      • MISSING_COMMAND, UNKNOWN_COMMAND
    - help (1111x)
      • HELP_REQUESTED
    - switches (flags) (1112x)
      • MALFORMED_TOKEN, UNKNOWN_SWITCH, OPTION_VALUE_REQUIRED, INVALID_VALUE
    - delegated errors (1113x)
      • DELEGATED_ERROR

    spacing leaves room for future additions without reshuffling existing codes.
    """
    # --- routing errors ---
    MISSING_COMMAND        = 11100
    UNKNOWN_COMMAND        = 11101

    # --- help ---
    HELP_REQUESTED         = 11110

    # --- flag errors ---
    MALFORMED_TOKEN        = 11121
    UNKNOWN_SWITCH         = 11122
    OPTION_VALUE_REQUIRED  = 11123
    INVALID_VALUE          = 11124

    # --- delegated errors ---
    DELEGATED_ERROR        = 11131

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__
        to override numeric ids with friendlier labels. when no mapping
        is present, the numeric value is returned as a string.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


class CommanderException(Exception):
    """
    base fault: a message plus read-only options.

    common options
    - code: FaultCode identifying the fault.
    - title: short headline used when rendering.
    - hint: one actionable sentence used when rendering.
    - prog: program name used when rendering.
    any other context (flag name, offending value, command name...) may be attached.
    """

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(*(() if message is Unset else (message,)))
        self.message = message
        self.options = MappingProxyType(options)

    @property
    def code(self):
        return self.options.get("code")

    def __str__(self):
        return "" if self.message is Unset else self.message

    def __rich__(self):
        main = __import__("__main__")

        styles = defaultdict(str, {
            # header parts
            "prog-name": "bold #E6E6F0",  # near-white program name
            "code": "bold #00E5FF",  # neon cyan fault code
            "error-title": "bold #FF4DA6",  # friendly pinky title

            # body
            "error-message": "#C8C8D0",  # soft light gray message
            "hint-arrow": "#9CE19C dim",  # gentle green arrow
            "hint": "italic #9CE19C",  # gentle green hint text
        } | getattr(main, "__styles__", {}))

        colorful = self.options.get("colorful", True)

        def text(fragment, style=""):
            if not fragment:
                return Text("")
            if not colorful:
                return Text(str(fragment))
            return Text(str(fragment), styles[style])

        prog = text(getattr(main, "__prog__", self.options.get("prog", "")), "prog-name")
        code = self.code.normalize() if isinstance(self.code, FaultCode) else ""

        header = Text.assemble(
            "[ ",
            prog,
            " — ",
            text(code, "code"),
            " | ",
            text(self.options.get("title", type(self).__name__).title(), "error-title"),
            " ]"
        )
        message = text(str(self), "error-message")
        renders = [message]
        if hint := self.options.get("hint"):
            renders.append(Text.assemble(text(" → ", "hint-arrow"), text(hint, "hint")))

        if self.options.get("fancy", False):
            return Panel(Group(*renders), title=header, title_align="left")

        return Group(header, *renders)

    def __replace__(self, *unused, **overrides):
        assert not unused, "unused arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class HelpRequested(CommanderException): ...


class FlagError(CommanderException): ...
class MalformedFlagError(FlagError): ...
class UnknownFlagError(FlagError): ...
class FlagValueRequiredError(FlagError): ...
class InvalidFlagValueError(FlagError): ...


class DelegatedCommandError(CommanderException): ...


def trigger(fault, /, **options):
    """
    surface a fault and exit with the matching status.

    contract
    - HelpRequested and FlagError: the help text (and, for flag errors, the
      parser's message) is already on the output sink, so nothing else is
      printed; exit with EXIT_USAGE.
    - any other CommanderException: merged with options, rendered on stderr
      via rich, then exit with EXIT_FAILURE.
    - anything else is a programming error and raises TypeError.
    """
    if not isinstance(fault, CommanderException):
        raise TypeError("trigger() argument must be a commander exception")
    if isinstance(fault, HelpRequested | FlagError):
        sys.exit(EXIT_USAGE)
    console.print(fault.__replace__(**options))
    sys.exit(EXIT_FAILURE)


__all__ = (
    "EXIT_FAILURE",
    "EXIT_USAGE",
    "FaultCode",
    "CommanderException",
    "HelpRequested",
    "FlagError",
    "MalformedFlagError",
    "UnknownFlagError",
    "FlagValueRequiredError",
    "InvalidFlagValueError",
    "DelegatedCommandError",
    "trigger",
)
