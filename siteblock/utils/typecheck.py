"""
Runtime type checks for option values.

Only the handful of type specifications used by siteblock's options are
understood: plain scalar types, `Optional[...]` and `Sequence[str]`.
"""

import typing
from collections import abc
from types import UnionType

_NAMES = {str: "str", int: "int", float: "float", bool: "bool"}


def _matches(value: typing.Any, typeinfo: typing.Any) -> bool:
    origin = typing.get_origin(typeinfo)
    if origin in (typing.Union, UnionType):
        return any(_matches(value, t) for t in typing.get_args(typeinfo))
    if origin is abc.Sequence:
        (item_type,) = typing.get_args(typeinfo)
        return isinstance(value, (list, tuple)) and all(
            _matches(v, item_type) for v in value
        )
    if typeinfo is typing.Any:
        return True
    if typeinfo in (int, float) and isinstance(value, bool):
        # "listen_port: true" in a config file is a mistake, not port 1.
        return False
    if typeinfo is float:
        return isinstance(value, (int, float))
    return isinstance(value, typeinfo)


def check_option_type(name: str, value: typing.Any, typeinfo: typing.Any) -> None:
    """
    *Raises:*
     - TypeError, if value does not match typeinfo.
    """
    if not _matches(value, typeinfo):
        raise TypeError(f"Expected {typeinfo} for {name}, but got {type(value)}.")


def typespec_to_str(typespec: typing.Any) -> str:
    if typespec in _NAMES:
        return _NAMES[typespec]
    if typing.get_origin(typespec) is abc.Sequence:
        return "sequence of " + typespec_to_str(typing.get_args(typespec)[0])
    args = typing.get_args(typespec)
    if typing.get_origin(typespec) in (typing.Union, UnionType) and type(None) in args:
        (inner,) = (a for a in args if a is not type(None))
        return "optional " + typespec_to_str(inner)
    raise NotImplementedError
