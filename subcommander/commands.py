"""
Subcommander command layer: register, dispatch and document subcommands.

What this module provides
- Command: the capability set of a subcommand (name, descr, help, flags, run).
- FunctionCommand / command(...): wrap a plain callable into a Command whose
  keyword-only parameters become flags.
- Commander: an ordered, duplicate-free registry of commands plus the two-phase
  dispatcher (global flags → command lookup → command flags → run).
- HelpCommand: the built-in "help" command rendering summary and detail help.
- invoke(commander, prompt): convenience runner reading sys.argv or a string.
- launch(commander, prompt): invoke and translate faults into exit statuses.

Quick start
    from subcommander import Commander, launch

    commander = Commander(help="tool does things.", flags=lambda fset: fset.bool("v", False, "verbose"))
    commander.register(commander.help_command())

    @commander.command
    def greet(args, /, *, loud=False):
        '''say hello'''
        print("HELLO" if loud else "hello", *args)

    if __name__ == "__main__":
        launch(commander)

Dispatch contract
- Help text is always written to the commander's output before HelpRequested
  or a FlagError is raised, so callers only need to pick an exit status.
- Whatever a command's run() returns is returned by Commander.run(); whatever it
  raises propagates unchanged.
"""
import bisect
import datetime
import inspect
import operator
import os.path
import shlex
import sys
import weakref
from abc import abstractmethod
from collections.abc import Iterable
from inspect import Parameter

from .faults import *
from .flags import FlagSet
from .internals import IntrospectiveType
from .utils import *


class Command(metaclass=IntrospectiveType):
    """
    A named, independently flag-configured unit of work.

    Subclasses provide these as class attributes or properties
    - name: unique key in a Commander and the token users type.
    - descr: one-line summary shown in the command listing.
    - help: longer text shown by "help <name>"; it should ideally start with a
      usage line and needs no particular whitespace around it.

    and these methods
    - flags(fset): declare the command's flags into the given FlagSet. Bind
      values to attributes (bind=(self, "attr")) or keep the returned value
      objects to read them in run().
    - run(args): do the work with the arguments left after flag parsing.
    """
    __introspectable__ = ("name", "descr")

    @property
    @abstractmethod
    def name(self): ...

    descr = ""
    help = ""

    def flags(self, fset, /):
        pass

    @abstractmethod
    def run(self, args, /): ...


# flag declarators by default type (exact type match keeps bool apart from int)
_DECLARATORS = {
    str: FlagSet.string,
    bool: FlagSet.bool,
    int: FlagSet.int,
    float: FlagSet.float,
    datetime.timedelta: FlagSet.duration,
}


class FunctionCommand(Command):
    """
    Command backed by a plain callable.

    The callable receives the remaining arguments as its first positional
    parameter and one keyword argument per flag:

        def build(args, /, *, jobs=1, dry_run=False): ...

    Every keyword-only parameter must default to a str, bool, int, float or
    datetime.timedelta; it becomes a flag of that type named after the
    parameter with underscores turned into dashes ("dry_run" → -dry-run).

    Metadata defaults
    - name: callback.__name__ (underscores → dashes, surrounding ones dropped).
    - help: the callback's docstring.
    - descr: the first line of the docstring.
    - usages: mapping parameter name → usage text for the defaults listing.
    """
    __introspectable__ = ("name", "descr", "callback")

    name = mirror("name")
    descr = mirror("descr")
    help = mirror("help")
    callback = mirror("callback")

    def __init__(self, callback, /, *, name=Unset, descr=Unset, help=Unset, usages=()):
        if not callable(callback):
            raise TypeError(f"{type(self).__typename__} callback must be callable")

        doc = inspect.getdoc(callback) or ""
        for field, value in (("name", name), ("descr", descr), ("help", help)):
            if not isinstance(value, str | Unset):
                raise TypeError(f"{type(self).__typename__} '{field}' must be a string")

        self._callback = callback
        self._name = coalesce(name, getattr(callback, "__name__", "").strip("_").replace("_", "-"))
        self._help = coalesce(help, doc)
        self._descr = coalesce(descr, self._help.strip().partition("\n")[0])
        if not self._name:
            raise ValueError(f"{type(self).__typename__} name cannot be empty")

        parameters = inspect.signature(callback).parameters.values()
        if not any(parameter.kind in (Parameter.POSITIONAL_ONLY, Parameter.POSITIONAL_OR_KEYWORD, Parameter.VAR_POSITIONAL)
                   for parameter in parameters):
            raise TypeError(f"{type(self).__typename__} callback must accept the remaining arguments positionally")

        self._parameters = []
        for parameter in filter(lambda x: x.kind is Parameter.KEYWORD_ONLY, parameters):
            if type(parameter.default) not in _DECLARATORS:
                raise TypeError(
                    f"{type(self).__typename__} parameter {parameter.name!r} must default to "
                    "a str, bool, int, float or timedelta"
                )
            self._parameters.append(parameter)

        usages = dict(usages)
        if unknown := set(usages) - {parameter.name for parameter in self._parameters}:
            raise ValueError(f"{type(self).__typename__} usages name unknown parameters: {', '.join(sorted(unknown))}")
        self._usages = usages
        self._values = {}

    def flags(self, fset, /):
        self._values = {}
        for parameter in self._parameters:
            declare = _DECLARATORS[type(parameter.default)]
            self._values[parameter.name] = declare(
                fset,
                parameter.name.strip("_").replace("_", "-"),
                parameter.default,
                self._usages.get(parameter.name, ""),
            )

    def run(self, args, /):
        return self._callback(list(args), **{name: value.value for name, value in self._values.items()})


def command(source=Unset, /, **options):
    """
    Create a FunctionCommand or return a decorator to build it later.

    Invocation modes
    - Direct:    cmd = command(func, name="x")
    - Decorator: @command or @command(name="x", usages={...})

    Options are forwarded to FunctionCommand (name, descr, help, usages).
    """
    @rename("command")
    def wrapper(source, /):
        if not callable(source):
            raise TypeError("@command() must be applied to a callable")
        return FunctionCommand(source, **options)

    return wrapper(source) if source is not Unset else wrapper


class HelpCommand(Command):
    """
    Built-in "help" command for a Commander.

    The commander is held through a weak reference: the help command reads the
    live registry, help text and global-flag declarator every time it runs, and
    raises ReferenceError once its commander is gone.

    Modes
    - run([]): summary (usage line, program help, global options, command list).
    - run([name]): detail for one command (its help and its flag defaults).
    """
    name = "help"
    descr = "show help for commands"
    help = (
        "Usage: help [command]\n"
        "\n"
        "help displays a help summary for the entire set of commands or it\n"
        "shows more detailed help for a specific named subcommand."
    )

    def __init__(self, commander, /):
        if not isinstance(commander, Commander):
            raise TypeError(f"{type(self).__typename__} argument must be a commander")
        self._commander = weakref.ref(commander)

    @property
    def commander(self):
        if (commander := self._commander()) is None:
            raise ReferenceError(f"{type(self).__typename__} used after its commander was released")
        return commander

    def _summary(self, commander):
        output = commander.output
        name = commander.prog
        options = " [global options]" if commander.flags is not None else ""

        output.write("Usage: %s%s <subcommand> [subcommand arguments]\n" % (name, options))
        if commander.help:
            output.write("\n%s\n" % commander.help.strip())
        if commander.flags is not None:
            output.write("\nGlobal Options:\n")
            fset = FlagSet(name, output=output)
            commander.flags(fset)
            fset.print_defaults()
        output.write("\nCommands:\n")
        for command in commander.commands:
            output.write("\t%s\t\t%s\n" % (command.name, command.descr))

    def run(self, args, /):
        commander = self.commander
        output = commander.output

        if not args:
            self._summary(commander)
            return None

        if (command := commander.lookup(name := args[0])) is None:
            output.write("Error: No such command: %s\n\n" % quote(name))
            self._summary(commander)
            raise HelpRequested(
                "no such command: %s" % quote(name),
                code=FaultCode.UNKNOWN_COMMAND,
                title="unknown command",
                hint="run '%s help' to see the available commands" % commander.prog,
                prog=commander.prog,
                command=name,
            )

        if command.help:
            output.write("%s\n" % command.help.strip())

        # declare into a throwaway set: the command itself never runs here
        fset = FlagSet(command.name)
        command.flags(fset)
        if defaults := fset.defaults():
            output.write("\nOptions:\n")
            output.write(defaults)
        return None


class Commander(metaclass=IntrospectiveType):
    """
    Controls a set of subcommands.

    Configuration
    - output: text sink for help and parse messages; sys.stderr when Unset or
      None (resolved each time it is used).
    - help: program description shown by summary help (stripped when shown).
    - flags: callable filling the global FlagSet; when set, summary help shows
      "[global options]" and a "Global Options:" block.

    Registry
    - commands are kept sorted by name; registering a name again replaces the
      previous command in place (last registration wins).

    Lifecycle
    - configure and register, then run() once. run() records the invocation
      name on the instance, so one Commander must not serve overlapping runs.
    """
    __introspectable__ = ("name", "help", "flags", "commands")

    name = mirror("name")
    commands = mirror("commands")

    def __init__(self, *, output=Unset, help="", flags=None):
        if not isinstance(help, str):
            raise TypeError(f"{type(self).__typename__} 'help' must be a string")
        if flags is not None and not callable(flags):
            raise TypeError(f"{type(self).__typename__} 'flags' must be callable")
        self.output = output
        self.help = help
        self.flags = flags
        self._name = ""
        self._commands = []

    @property
    def output(self):
        return self._output if self._output is not None else sys.stderr

    @output.setter
    def output(self, output):
        self._output = coalesce(output)

    @property
    def prog(self):
        """
        Program name used in rendered usage.

        The invocation name captured by the last run(); before any run, the
        host's __main__.__prog__, then the basename of sys.argv[0].
        """
        if self._name:
            return self._name
        return getattr(__import__("__main__"), "__prog__", os.path.basename(sys.argv[0]))

    def register(self, command, /):
        """
        Register command, replacing any command registered under the same name.

        Returns the command, so registration can be chained or used inline.
        """
        if not isinstance(command, Command):
            raise TypeError("register() argument must be a command")
        if not isinstance(name := command.name, str) or not name:
            raise ValueError("register() command name must be a non-empty string")

        index = bisect.bisect_left(self._commands, name, key=operator.attrgetter("name"))
        if index < len(self._commands) and self._commands[index].name == name:
            self._commands[index] = command
        else:
            self._commands.insert(index, command)
        return command

    def lookup(self, name, /):
        """Return the command registered under name, or None."""
        index = bisect.bisect_left(self._commands, name, key=operator.attrgetter("name"))
        if index < len(self._commands) and self._commands[index].name == name:
            return self._commands[index]
        return None

    def command(self, source=Unset, /, **options):
        """
        Wrap a callable with command(...) and register the result.

        Works directly (commander.command(func)) and as a decorator
        (@commander.command or @commander.command(name="x")).
        """
        @rename("command")
        def wrapper(source, /):
            return self.register(command(source, **options))

        return wrapper(source) if source is not Unset else wrapper

    def help_command(self):
        """
        Return a "help" command for this commander.

        It is not registered automatically; register it to offer "prog help".
        """
        return HelpCommand(self)

    def run(self, arguments, /):
        """
        Run the commander against the given arguments.

        The first argument is the invocation name (often the basename of
        sys.argv[0]); the rest are the user's arguments.

        Returns whatever the selected command's run() returns.

        Raises
        - HelpRequested: help was asked for, no command was given, or the
          command is unknown (help is already written to output).
        - FlagError: malformed global or command flags (message and help are
          already written to output).
        - anything the selected command raises, unchanged.
        """
        if isinstance(arguments, str) or not isinstance(arguments, Iterable):
            raise TypeError("run() argument must be an iterable of strings")
        if not (arguments := list(arguments)):
            raise ValueError("run() argument must start with the program name")

        self._name = arguments[0]
        helper = self.help_command()

        fset = FlagSet(self._name, output=self._output, usage=lambda: helper.run(()))
        if self.flags is not None:
            self.flags(fset)
        fset.parse(arguments[1:])

        if not fset.nargs:
            fset.usage()
            raise HelpRequested(
                "no command given",
                code=FaultCode.MISSING_COMMAND,
                title="missing command",
                hint="name one of the listed commands",
                prog=self._name,
            )

        if (command := self.lookup(name := fset.arg(0))) is None:
            self.output.write("Error: No such command: %s\n\n" % quote(name))
            fset.usage()
            raise HelpRequested(
                "no such command: %s" % quote(name),
                code=FaultCode.UNKNOWN_COMMAND,
                title="unknown command",
                hint="name one of the listed commands",
                prog=self._name,
                command=name,
            )

        sub = FlagSet(command.name, output=self._output, usage=lambda: helper.run((command.name,)))
        command.flags(sub)
        sub.parse(fset.args[1:])

        return command.run(sub.args)


def invoke(commander, prompt=Unset, /):
    """
    Convenience runner for a Commander.

    Parameters
    - prompt:
      • Unset: the process arguments ([basename(sys.argv[0])] + sys.argv[1:]).
      • str: split with shlex.split and prefixed with basename(sys.argv[0]).
      • Iterable[str]: the full argument list, program name first.

    Returns whatever commander.run() returns and lets its exceptions through.
    """
    if not isinstance(commander, Commander):
        raise TypeError("invoke() first argument must be a commander")

    prog = os.path.basename(sys.argv[0])
    if prompt is Unset:
        arguments = [prog, *sys.argv[1:]]
    elif isinstance(prompt, str):
        arguments = [prog, *shlex.split(prompt)]
    elif isinstance(prompt, Iterable):
        arguments = list(prompt)
        if not all(isinstance(argument, str) for argument in arguments):
            raise TypeError("invoke() argument must be a string or an iterable of strings")
    else:
        raise TypeError("invoke() argument must be a string or an iterable of strings")

    return commander.run(arguments)


def launch(commander, prompt=Unset, /):
    """
    Invoke a Commander as a program entry point.

    Outcomes
    - success: returns the command's result.
    - HelpRequested / FlagError: exits with EXIT_USAGE (help already shown).
    - any other exception from the command: rendered on stderr and exits with
      EXIT_FAILURE.
    """
    try:
        return invoke(commander, prompt)
    except CommanderException as fault:
        trigger(fault, prog=commander.prog)
    except Exception as exception:
        trigger(DelegatedCommandError(
            str(exception) or type(exception).__name__,
            code=FaultCode.DELEGATED_ERROR,
            title="command failed",
            hint="run '%s help' for usage" % commander.prog,
            prog=commander.prog,
            exception=exception,
        ))


__all__ = (
    "Command",
    "FunctionCommand",
    "HelpCommand",
    "Commander",
    "command",
    "invoke",
    "launch",
)
