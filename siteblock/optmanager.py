"""
Typed option storage with change notification.

Options are declared once with a type, a default and a help text. Every
update is type checked, announced through the `changed` signal and rolled
back if a subscriber rejects it by raising an OptionsError.
"""

from __future__ import annotations

import contextlib
import copy
import textwrap
from collections.abc import Callable
from collections.abc import Iterable
from collections.abc import Sequence
from pathlib import Path
from typing import Any
from typing import Optional
from typing import TextIO

import ruamel.yaml

from siteblock import exceptions
from siteblock.utils import signals
from siteblock.utils import typecheck

unset = object()

# Scalar option types as (converter, required) by typespec.
_SCALARS: dict[Any, tuple[type, bool]] = {
    str: (str, True),
    Optional[str]: (str, False),
    int: (int, True),
    Optional[int]: (int, False),
    float: (float, True),
    Optional[float]: (float, False),
}


class _Option:
    __slots__ = ("name", "typespec", "value", "_default", "choices", "help")

    def __init__(
        self,
        name: str,
        typespec: type | object,  # object for Optional[x], which is not a type.
        default: Any,
        help: str,
        choices: Sequence[str] | None,
    ) -> None:
        typecheck.check_option_type(name, default, typespec)
        self.name = name
        self.typespec = typespec
        self._default = default
        self.value = unset
        self.help = " ".join(textwrap.dedent(help).split())
        self.choices = choices

    def __repr__(self):
        return f"{self.current()} [{typecheck.typespec_to_str(self.typespec)}]"

    def __eq__(self, other) -> bool:
        return all(getattr(self, i) == getattr(other, i) for i in self.__slots__)

    def __deepcopy__(self, _):
        o = _Option(self.name, self.typespec, self._default, self.help, self.choices)
        o.value = copy.deepcopy(self.value)
        return o

    @property
    def default(self):
        return copy.deepcopy(self._default)

    def current(self) -> Any:
        if self.value is unset:
            return self.default
        return copy.deepcopy(self.value)

    def set(self, value: Any) -> None:
        try:
            typecheck.check_option_type(self.name, value, self.typespec)
        except TypeError as e:
            raise exceptions.OptionsError(str(e)) from e
        if self.choices is not None and value not in self.choices:
            valid = ", ".join(repr(c) for c in self.choices)
            raise exceptions.OptionsError(
                f"Invalid value for {self.name}: {value!r}. Valid values are {valid}."
            )
        self.value = value

    def reset(self) -> None:
        self.value = unset

    def has_changed(self) -> bool:
        return self.current() != self.default


class OptManager:
    """
    Base class for Options.

    `.changed` fires with the set of updated names whenever options change.
    Values are returned as deep copies, so mutating them has no effect on the
    stored options.
    """

    def __init__(self) -> None:
        self.deferred: dict[str, Any] = {}
        self.changed = signals.SyncSignal()
        self.changed.connect(self._notify_subscribers)
        self._subscriptions: list[tuple[Callable, set[str]]] = []
        # Assigned last: from here on, attribute assignment updates options.
        self._options: dict[str, _Option] = {}

    def add_option(
        self,
        name: str,
        typespec: type | object,
        default: Any,
        help: str,
        choices: Sequence[str] | None = None,
    ) -> None:
        self._options[name] = _Option(name, typespec, default, help, choices)
        if name in self.deferred:
            self.update(**{name: self.deferred.pop(name)})
        self.changed.send(updated={name})

    @contextlib.contextmanager
    def rollback(self, updated: set[str]):
        """Restore all options if the block raises an OptionsError."""
        saved = copy.deepcopy(self._options)
        try:
            yield
        except exceptions.OptionsError:
            self.__dict__["_options"] = saved
            self.changed.send(updated=updated)
            raise

    def subscribe(self, func: Callable, opts: Iterable[str]) -> None:
        """
        Call `func(options, updated)` whenever one of `opts` changes.
        The callable may raise an OptionsError to reject the update.

        Bound methods are held weakly and unsubscribed once their object is gone.
        """
        opts = set(opts)
        if unknown := opts - self.keys():
            raise exceptions.OptionsError(f"No such option: {', '.join(sorted(unknown))}")
        self._subscriptions.append((signals.make_weak_ref(func), opts))

    def _notify_subscribers(self, updated: set[str]) -> None:
        self.__dict__["_subscriptions"] = [
            (ref, opts) for ref, opts in self._subscriptions if ref() is not None
        ]
        for ref, opts in self._subscriptions:
            if opts & updated and (func := ref()) is not None:
                func(self, updated)

    def __eq__(self, other):
        return isinstance(other, OptManager) and self._options == other._options

    def __getattr__(self, attr):
        if attr in self._options:
            return self._options[attr].current()
        raise AttributeError(f"No such option: {attr}")

    def __setattr__(self, attr, value):
        if self.__dict__.get("_options"):
            self.update(**{attr: value})
        else:
            super().__setattr__(attr, value)

    def __contains__(self, k) -> bool:
        return k in self._options

    def keys(self) -> set[str]:
        return set(self._options)

    def default(self, option: str) -> Any:
        return self._options[option].default

    def has_changed(self, option: str) -> bool:
        """Does the option differ from its default?"""
        return self._options[option].has_changed()

    def reset(self) -> None:
        """Restore the defaults of all options."""
        for o in self._options.values():
            o.reset()
        self.changed.send(updated=self.keys())

    def update_known(self, **kwargs) -> dict[str, Any]:
        """
        Update the known options in one step and return the unknown ones.

        *Raises:*
         - OptionsError, if a value is invalid or a subscriber rejects the update.
           No option is changed in this case.
        """
        known = {k: v for k, v in kwargs.items() if k in self._options}
        if known:
            with self.rollback(set(known)):
                for k, v in known.items():
                    self._options[k].set(v)
                self.changed.send(updated=set(known))
        return {k: v for k, v in kwargs.items() if k not in self._options}

    def update_defer(self, **kwargs) -> None:
        """Like update, but keep unknown options until they are added."""
        self.deferred.update(self.update_known(**kwargs))

    def update(self, **kwargs) -> None:
        if unknown := self.update_known(**kwargs):
            raise KeyError(f"Unknown options: {', '.join(unknown)}")

    def set(self, *specs: str) -> None:
        """
        Set options from specifications of the form `name=value`.
        Sequence options may be given multiple times to set several values.

        *Raises:*
         - OptionsError, if a value is malformed or an option is unknown.
        """
        values: dict[str, list[str]] = {}
        for spec in specs:
            name, sep, value = spec.partition("=")
            values.setdefault(name, [])
            if sep:
                values[name].append(value)

        if unknown := [name for name in values if name not in self._options]:
            raise exceptions.OptionsError(f"Unknown option(s): {', '.join(unknown)}")

        self.update(
            **{
                name: self._parse_setval(self._options[name], v)
                for name, v in values.items()
            }
        )

    def _parse_setval(self, o: _Option, values: list[str]) -> Any:
        """Convert the command line strings for an option to a value of its type."""
        if o.typespec == Sequence[str]:
            return values
        if len(values) > 1:
            raise exceptions.OptionsError(
                f"Received multiple values for {o.name}: {values}"
            )
        text = values[0] if values else None

        if o.typespec == bool:
            if text == "toggle":
                return not o.current()
            if text in (None, "", "true"):
                return True
            if text == "false":
                return False
            raise exceptions.OptionsError(
                'Boolean must be "true", "false", or have the value omitted (a synonym for "true").'
            )

        try:
            conv, required = _SCALARS[o.typespec]
        except (KeyError, TypeError):
            raise NotImplementedError(f"Unsupported option type: {o.typespec}")
        if not text and conv is not str:
            text = None
        if text is None:
            if required:
                raise exceptions.OptionsError(f"Option is required: {o.name}")
            return None
        try:
            return conv(text)
        except ValueError:
            raise exceptions.OptionsError(f"Not a number for {o.name}: {text}")

    def make_parser(self, parser, optname, metavar=None, short=None):
        """
        Add a command line flag for a named option to an argparse parser.
        Unknown options are ignored.
        """
        o = self._options.get(optname)
        if o is None:
            return
        flag = "--" + optname.replace("_", "-")

        if o.typespec == bool:
            # The short flag goes to whatever is not the default.
            on, off = [flag], ["--no-" + optname.replace("_", "-")]
            if short:
                (off if o.default else on).append("-" + short)
            group = parser.add_mutually_exclusive_group(required=False)
            group.add_argument(*off, action="store_false", dest=optname)
            group.add_argument(*on, action="store_true", dest=optname, help=o.help)
            parser.set_defaults(**{optname: None})
            return

        flags = [flag] + (["-" + short] if short else [])
        if o.typespec == Sequence[str]:
            parser.add_argument(
                *flags,
                action="append",
                dest=optname,
                metavar=metavar,
                help=o.help + " May be passed multiple times.",
            )
        elif o.typespec in _SCALARS:
            parser.add_argument(
                *flags,
                type=_SCALARS[o.typespec][0],
                dest=optname,
                metavar=metavar,
                choices=o.choices,
                help=o.help,
            )
        else:
            raise ValueError(f"Unsupported option type: {o.typespec}")


def dump_defaults(opts: OptManager, out: TextIO) -> None:
    """
    Write a YAML document with all options at their defaults, each preceded
    by its help text as a comment.
    """
    doc = ruamel.yaml.comments.CommentedMap()
    for name in sorted(opts.keys()):
        o = opts._options[name]
        doc[name] = o.default
        if o.choices:
            extra = "Valid values are %s." % ", ".join(repr(c) for c in o.choices)
        else:
            extra = f"Type {typecheck.typespec_to_str(o.typespec)}."
        comment = "\n".join(textwrap.wrap(f"{o.help} {extra}"))
        doc.yaml_set_comment_before_after_key(name, before="\n" + comment)
    ruamel.yaml.YAML().dump(doc, out)


def dump_dicts(opts: OptManager, keys: Iterable[str] | None = None) -> dict:
    """
    Describe options as plain dicts, e.g.
    `{"blocking": {"type": "bool", "default": True, "value": False, "help": "...", "choices": None}}`
    """
    return {
        name: {
            "type": typecheck.typespec_to_str(o.typespec),
            "default": o.default,
            "value": o.current(),
            "help": o.help,
            "choices": o.choices,
        }
        for name in sorted(opts.keys() if keys is None else keys)
        for o in [opts._options[name]]
    }


def parse(text: str) -> dict:
    """
    Parse a YAML options document into a dict.

    *Raises:*
     - OptionsError, if the text is not valid YAML or not a mapping.
    """
    if not text:
        return {}
    try:
        data = ruamel.yaml.YAML(typ="safe", pure=True).load(text)
    except ruamel.yaml.error.MarkedYAMLError as e:
        mark = e.problem_mark
        raise exceptions.OptionsError(
            f"Config error at line {mark.line + 1}:\n{mark.get_snippet()}\n{e.problem}"
        )
    except ruamel.yaml.error.YAMLError:
        raise exceptions.OptionsError("Could not parse options.")
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise exceptions.OptionsError("Config error - no keys found.")
    return data


def load(opts: OptManager, text: str) -> None:
    """
    Load options from YAML text. Options the manager does not know yet are
    deferred until they are added.

    *Raises:*
     - OptionsError, if the text is invalid.
    """
    opts.update_defer(**parse(text))


def load_paths(opts: OptManager, *paths: Path | str) -> None:
    """
    Load config files in order, later files take precedence.
    Missing files are skipped, invalid ones raise an OptionsError.
    """
    for p in paths:
        path = Path(p).expanduser()
        if not path.is_file():
            continue
        try:
            load(opts, path.read_text(encoding="utf8"))
        except (UnicodeDecodeError, exceptions.OptionsError) as e:
            raise exceptions.OptionsError(f"Error reading {path}: {e}")
