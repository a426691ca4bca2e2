"""Host type introspection.

Queries can name an existing Python type their rows should be mapped into,
and columns can expose enums or custom converter types. This module
describes such types in terms the matcher understands: scalars, enums,
lists, positional records (``tuple[...]``) and classes with a constructor.
"""

from __future__ import annotations

import collections.abc
import datetime
import decimal
import enum
import inspect
import re
import types
import typing
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any, Generic, TypeVar

from rowshape.schema import SqlType

D = TypeVar("D")
S = TypeVar("S")


class TypeConverter(ABC, Generic[D, S]):
    """Base class for converters applied to a column with ``MAPPED BY``.

    ``D`` is the type exposed to callers and ``S`` the type stored in the
    database.
    """

    @abstractmethod
    def to_sql(self, value: D) -> S: ...

    @abstractmethod
    def from_sql(self, value: S) -> D: ...


class HostTypeKind(enum.Enum):
    SCALAR = "scalar"
    ENUM = "enum"
    LIST = "list"
    RECORD = "record"
    CLASS = "class"
    UNRESOLVED = "unresolved"


@dataclass(frozen=True)
class Parameter:
    """A constructor parameter or record field of a host type."""

    name: str | None
    type: HostType
    index: int
    keyword: bool = True
    has_default: bool = False

    @property
    def label(self) -> str:
        return self.name if self.name is not None else str(self.index)


@dataclass(frozen=True)
class HostType:
    """Description of a Python type as far as row mapping is concerned.

    ``parameters`` is set eagerly for records and for hand-built class
    descriptions; constructors of real classes are introspected on demand
    through :meth:`HostTypes.constructor`.
    """

    name: str
    kind: HostTypeKind
    nullable: bool = False
    python_type: Any = field(default=None, compare=False, repr=False)
    element: HostType | None = None
    parameters: tuple[Parameter, ...] | None = field(default=None, compare=False)

    def optional(self, nullable: bool = True) -> HostType:
        return replace(self, nullable=nullable)

    @property
    def is_any(self) -> bool:
        return self.python_type is Any or self.python_type is object

    def display(self) -> str:
        return f"{self.name} | None" if self.nullable else self.name

    def __str__(self) -> str:
        return self.display()


ANY_TYPE = HostType("Any", HostTypeKind.SCALAR, python_type=Any)

_SQL_HOST_TYPES: dict[SqlType, Any] = {
    SqlType.INTEGER: int,
    SqlType.BIGINT: int,
    SqlType.REAL: float,
    SqlType.TEXT: str,
    SqlType.BLOB: bytes,
    SqlType.BOOLEAN: bool,
    SqlType.DATETIME: datetime.datetime,
    SqlType.ANY: Any,
}

_SCALAR_TYPES = (
    int,
    float,
    str,
    bytes,
    bool,
    datetime.datetime,
    datetime.date,
    datetime.time,
    decimal.Decimal,
)

_BUILTIN_NAMESPACE: dict[str, Any] = {
    "int": int,
    "float": float,
    "str": str,
    "bytes": bytes,
    "bool": bool,
    "datetime": datetime.datetime,
    "date": datetime.date,
    "time": datetime.time,
    "Decimal": decimal.Decimal,
    "object": object,
    "Any": Any,
}

_LIST_ORIGINS = (list, collections.abc.Sequence, collections.abc.MutableSequence)

_LIST_STRING_RE = re.compile(
    r"^(?:typing\.|collections\.abc\.)?(?:list|List|Sequence|MutableSequence)\[(.*)\]$"
)
_OPTIONAL_STRING_RE = re.compile(r"^(?:typing\.)?Optional\[(.*)\]$")


def host_type_for(sql_type: SqlType, nullable: bool = False) -> HostType:
    """Return the host type a column of ``sql_type`` is read as."""
    python_type = _SQL_HOST_TYPES[sql_type]
    return HostType(
        _type_name(python_type),
        HostTypeKind.SCALAR,
        nullable=nullable,
        python_type=python_type,
    )


def is_assignable(source: HostType, target: HostType) -> bool:
    """Whether a value of ``source`` can be passed where ``target`` is declared."""
    if target.is_any:
        return True
    if source.nullable and not target.nullable:
        return False
    if source.python_type is Any:
        return True
    if source.kind is HostTypeKind.UNRESOLVED or target.kind is HostTypeKind.UNRESOLVED:
        return source.name == target.name
    src, dst = source.python_type, target.python_type
    if isinstance(src, type) and isinstance(dst, type):
        # int is acceptable where float is declared (PEP 484 numeric tower).
        if dst is float and src is int:
            return True
        return issubclass(src, dst)
    return source.name == target.name


def _type_name(tp: Any) -> str:
    if tp is Any:
        return "Any"
    if tp is Ellipsis:
        return "..."
    if tp is None or tp is type(None):
        return "None"
    if isinstance(tp, str):
        return tp
    origin = typing.get_origin(tp)
    if origin is None:
        return getattr(tp, "__name__", repr(tp))
    args = typing.get_args(tp)
    if origin in (typing.Union, types.UnionType):
        return " | ".join(_type_name(a) for a in args)
    return f"{_type_name(origin)}[{', '.join(_type_name(a) for a in args)}]"


class HostTypes:
    """Registry of the Python types queries and columns may refer to by name.

    Builtin scalars (``int``, ``str``, ``float``, ``bool``, ``bytes``,
    ``datetime``, ...) are always available.
    """

    def __init__(self, types: Mapping[str, Any] | None = None) -> None:
        self._namespace: dict[str, Any] = dict(_BUILTIN_NAMESPACE)
        self._namespace.update(types or {})
        self._constructors: dict[Any, tuple[Parameter, ...] | None] = {}

    @classmethod
    def from_module(cls, module: types.ModuleType) -> HostTypes:
        """Build a registry from the public names of ``module``."""
        names = getattr(module, "__all__", None) or [
            n for n in vars(module) if not n.startswith("_")
        ]
        return cls({n: getattr(module, n) for n in names if hasattr(module, n)})

    @property
    def namespace(self) -> dict[str, Any]:
        return dict(self._namespace)

    def get(self, name: str) -> Any:
        """Return the raw Python object registered as ``name``, if any."""
        return self._namespace.get(name)

    def lookup(self, name: str) -> HostType | None:
        """Describe the type spelled ``name``, or None when it is unknown.

        A registered alias of an unresolved name, such as ``{"MyRow": "UserData"}``
        for a generated row type, describes as that unresolved name.
        """
        described = self._describe_string(name)
        if described.kind is HostTypeKind.UNRESOLVED and described.name == name.strip():
            return None
        return described

    def describe(self, tp: Any) -> HostType:
        if isinstance(tp, str):
            return self._describe_string(tp)
        if tp is None or tp is type(None):
            return HostType("None", HostTypeKind.SCALAR, nullable=True, python_type=type(None))
        if tp is Any or tp is object:
            return HostType(_type_name(tp), HostTypeKind.SCALAR, python_type=tp)
        alias_value = getattr(tp, "__value__", None)
        if type(tp).__name__ == "TypeAliasType" and alias_value is not None:
            return self.describe(alias_value)

        origin = typing.get_origin(tp)
        args = typing.get_args(tp)
        if origin in (typing.Union, types.UnionType):
            members = [a for a in args if a is not type(None)]
            nullable = len(members) != len(args)
            if len(members) == 1:
                return self.describe(members[0]).optional(nullable)
            return HostType(_type_name(tp), HostTypeKind.SCALAR, nullable, python_type=Any)
        if origin in _LIST_ORIGINS or tp in _LIST_ORIGINS:
            element = self.describe(args[0]) if args else ANY_TYPE
            return HostType(_type_name(tp), HostTypeKind.LIST, python_type=tp, element=element)
        if origin is tuple:
            if len(args) == 2 and args[1] is Ellipsis:
                return HostType(
                    _type_name(tp),
                    HostTypeKind.LIST,
                    python_type=tp,
                    element=self.describe(args[0]),
                )
            parameters = tuple(
                Parameter(None, self.describe(arg), index, keyword=False)
                for index, arg in enumerate(args)
            )
            return HostType(
                _type_name(tp), HostTypeKind.RECORD, python_type=tp, parameters=parameters
            )
        if isinstance(tp, type):
            if issubclass(tp, enum.Enum):
                return HostType(tp.__name__, HostTypeKind.ENUM, python_type=tp)
            if tp in _SCALAR_TYPES:
                return HostType(tp.__name__, HostTypeKind.SCALAR, python_type=tp)
            return HostType(tp.__name__, HostTypeKind.CLASS, python_type=tp)
        return HostType(_type_name(tp), HostTypeKind.SCALAR, python_type=Any)

    def _describe_string(self, text: str) -> HostType:
        """Describe a type written as source text, e.g. an unevaluated annotation."""
        text = text.strip()
        optional = _OPTIONAL_STRING_RE.match(text)
        if optional:
            return self._describe_string(optional.group(1)).optional()
        parts = _split_union(text)
        if len(parts) > 1:
            members = [p for p in parts if p != "None"]
            nullable = len(members) != len(parts)
            if len(members) == 1:
                return self._describe_string(members[0]).optional(nullable)
            return HostType(text, HostTypeKind.SCALAR, nullable, python_type=Any)
        listed = _LIST_STRING_RE.match(text)
        if listed:
            element = self._describe_string(listed.group(1))
            return HostType(f"list[{element.display()}]", HostTypeKind.LIST, element=element)
        if text in self._namespace:
            return self.describe(self._namespace[text])
        return HostType(text, HostTypeKind.UNRESOLVED)

    def enum_type(self, name: str) -> tuple[HostType | None, bool]:
        """Look up an enum by name.

        Returns the described type (None when the name is unknown) and
        whether it really is an ``enum.Enum`` subclass.
        """
        tp = self._namespace.get(name)
        if tp is None:
            return None, False
        described = self.describe(tp)
        return described, described.kind is HostTypeKind.ENUM

    def converter_type(self, name: str) -> HostType | None:
        """Return the host type exposed by the converter class ``name``.

        Unknown names return None. Classes that do not declare their types
        through :class:`TypeConverter` expose ``Any``.
        """
        cls = self._namespace.get(name)
        if cls is None:
            return None
        if not isinstance(cls, type):
            cls = type(cls)
        for klass in inspect.getmro(cls):
            for base in getattr(klass, "__orig_bases__", ()):
                if typing.get_origin(base) is TypeConverter:
                    args = typing.get_args(base)
                    if args and not isinstance(args[0], TypeVar):
                        return self.describe(args[0])
        return ANY_TYPE

    def constructor(self, host_type: HostType) -> tuple[Parameter, ...] | None:
        """Return the parameters of the unnamed constructor of ``host_type``.

        None means the type cannot be constructed from columns: abstract
        classes, protocols, constructors taking only ``*args``/``**kwargs``
        and classes whose signature cannot be inspected.
        """
        if host_type.parameters is not None:
            return host_type.parameters
        cls = host_type.python_type
        if host_type.kind is not HostTypeKind.CLASS or not isinstance(cls, type):
            return None
        if cls not in self._constructors:
            self._constructors[cls] = self._introspect_constructor(cls)
        return self._constructors[cls]

    def _introspect_constructor(self, cls: type) -> tuple[Parameter, ...] | None:
        if inspect.isabstract(cls) or getattr(cls, "_is_protocol", False):
            return None
        try:
            signature = inspect.signature(cls)
        except (TypeError, ValueError):
            return None

        hints = self._type_hints(cls)
        parameters: list[Parameter] = []
        variadic = False
        for param in signature.parameters.values():
            if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
                variadic = True
                continue
            annotation = hints.get(param.name, param.annotation)
            parameters.append(
                Parameter(
                    param.name,
                    ANY_TYPE if annotation is param.empty else self.describe(annotation),
                    len(parameters),
                    keyword=param.kind is not param.POSITIONAL_ONLY,
                    has_default=param.default is not param.empty,
                )
            )
        if variadic and not parameters:
            return None
        return tuple(parameters)

    def _type_hints(self, cls: type) -> dict[str, Any]:
        hints: dict[str, Any] = {}
        for target in (cls, cls.__init__):
            try:
                hints.update(typing.get_type_hints(target, localns=self._namespace))
            except (NameError, TypeError, AttributeError):
                # Unresolvable forward references fall back to the raw annotation
                # strings, described through the registry.
                continue
        return hints


def _split_union(text: str) -> list[str]:
    parts: list[str] = []
    depth = 0
    current = ""
    for char in text:
        if char == "[":
            depth += 1
        elif char == "]":
            depth -= 1
        if char == "|" and depth == 0:
            parts.append(current.strip())
            current = ""
        else:
            current += char
    parts.append(current.strip())
    return parts
