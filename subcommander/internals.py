"""
Internal metaclass giving flags, flag sets and commands a stable, introspectable shape.

IntrospectiveType
- derives __typename__ from the class name (camel-case split with hyphens), used
  in messages such as "flag-set name must be a string".
- provides __repr__ and __rich_repr__ built from __introspectable__ unless the
  class defines its own, so rich.pretty renders flags, flag sets, commands and
  commanders consistently.
- derives from ABCMeta so abstract capability sets (Command) can use it.
"""
import functools
import operator
import re
from abc import ABCMeta

from .utils import rename


def _defines(cls, name, /):
    """True when any class in the MRO, other than object, provides name."""
    return any(name in vars(base) for base in cls.__mro__[:-1])


class IntrospectiveType(ABCMeta):
    __introspectable__ = ()

    def __new__(cls, name, bases, namespace, **options):
        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": re.sub(r"(?<!^)(?=[A-Z])", r"-", name).lower(),
            },
            **options
        )

        if not _defines(self, "__rich_repr__"):
            @rename("__rich_repr__")
            def __rich_repr__(self):
                """
                Yield (name, object) pairs for pretty printers, driven by __introspectable__.
                """
                for name in type(self).__introspectable__:
                    yield name, getattr(self, name)
            self.__rich_repr__ = __rich_repr__

        if not _defines(self, "__repr__"):
            @rename("__repr__")
            def __repr__(self):
                """
                Return a concise, stable representation with key metadata.

                Example
                - flag(name='verbose', usage='be chatty', ...)
                """
                fields = ", ".join(map(functools.partial(operator.mod, "%s=%r"), self.__rich_repr__()))
                return "%s(%s)" % (type(self).__typename__, fields)
            self.__repr__ = __repr__

        return self


__all__ = ("IntrospectiveType",)
