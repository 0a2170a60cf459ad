import datetime
import time

from rich.pretty import pprint

from subcommander import *

settings = __import__("types").SimpleNamespace()

commander = Commander(
    help="""
demo exercises subcommander: global flags come before the subcommand name,
subcommand flags after it.
""",
    flags=lambda fset: fset.bool("debug", False, "print the commander before running", bind=(settings, "debug")),
)
commander.register(commander.help_command())


@commander.command(usages={"times": "repeat the greeting `n` times", "loud": "shout"})
def greet(args, /, *, times=1, loud=False):
    """
    print a greeting

    Usage: greet [options] [names]
    """
    for _ in range(times):
        message = "hello, %s" % (", ".join(args) or "world")
        print(message.upper() if loud else message)


@commander.command(usages={"delay": "time to wait between ticks", "ticks": "number of ticks"})
def tick(args, /, *, delay=datetime.timedelta(milliseconds=250), ticks=3):
    """count down with a delay"""
    for remaining in range(ticks, 0, -1):
        print(remaining)
        time.sleep(delay.total_seconds())


@commander.command
def fail(args, /):
    """fail on purpose"""
    raise RuntimeError(" ".join(args) or "something went wrong")


if __name__ == '__main__':
    __prog__ = "demo"
    try:
        launch(commander)
    finally:
        if getattr(settings, "debug", False):
            pprint(commander)
