# Copyright 2026 Firefly Software Solutions Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Leaf value assignment rules and the global type-pair converter registry."""

from __future__ import annotations

import enum
import threading
from collections.abc import Callable
from decimal import Decimal
from fractions import Fraction
from typing import Any, Generic, TypeVar

from flymap.kernel.exceptions import (
    ConverterException,
    IncompatibleTypesException,
    InvalidConverterSourceException,
    MappingException,
)

S = TypeVar("S")
D = TypeVar("D")

_NUMERIC_TARGETS: tuple[type, ...] = (int, float, complex, Decimal, Fraction)
_REAL_SOURCES: tuple[type, ...] = (int, float, Decimal, Fraction)

#: Scalar kinds eligible for the optimized copy paths.
PRIMITIVE_TYPES: frozenset[type] = frozenset({bool, int, float, complex, str, bytes})


class _Unconvertible(Exception):
    """No conversion rule applies."""


def is_assignable(value: Any, dest: Any) -> bool:
    """True when *value* can be stored as-is in a slot declared as *dest*."""
    if dest is Any or not isinstance(dest, type):
        return True
    if isinstance(value, bool) and dest in _NUMERIC_TARGETS:
        return False
    return isinstance(value, dest)


def convert_scalar(value: Any, dest: type) -> Any:
    """Convert a leaf value along the built-in conversion paths.

    Numeric values convert between ``int``, ``float``, ``complex``, ``Decimal``
    and ``Fraction``; raw values become members of an ``Enum`` destination and
    enum members become their value; ``str`` and ``bytes`` convert via UTF-8.

    Raises:
        IncompatibleTypesException: when no path applies or the conversion fails.
    """
    try:
        return _convert(value, dest)
    except _Unconvertible:
        raise IncompatibleTypesException(
            "incompatible types", source_type=type(value), dest_type=dest
        ) from None
    except (ValueError, TypeError, ArithmeticError) as exc:
        raise IncompatibleTypesException(
            f"conversion failed: {exc}", source_type=type(value), dest_type=dest, cause=exc
        ) from exc


def _convert(value: Any, dest: type) -> Any:
    if isinstance(value, enum.Enum) and not issubclass(dest, enum.Enum):
        if isinstance(value.value, dest):
            return value.value
        return _convert(value.value, dest)
    if issubclass(dest, enum.Enum):
        return dest(value)
    if dest in _NUMERIC_TARGETS and not isinstance(value, bool):
        if isinstance(value, complex) and dest is not complex:
            raise _Unconvertible
        if isinstance(value, _REAL_SOURCES + (complex,)):
            if dest is Fraction and isinstance(value, float):
                return Fraction(value)
            return dest(value)
    if dest is bytes and isinstance(value, str):
        return value.encode("utf-8")
    if dest is str and isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8")
    raise _Unconvertible


def assign_scalar(value: Any, dest: Any) -> Any:
    """Assign as-is when assignable, else convert, else fail with incompatible-types."""
    if is_assignable(value, dest):
        return value
    return convert_scalar(value, dest)


class TypeConverter(Generic[S, D]):
    """A registered whole-value converter for one exact (source, destination) pair.

    Calling it with a value that is not an instance of ``source_type`` raises
    :class:`InvalidConverterSourceException`; a failure inside the wrapped
    function is reported as :class:`ConverterException` with the original
    error as its cause.
    """

    __slots__ = ("source_type", "dest_type", "fn")

    def __init__(self, source_type: type[S], dest_type: Any, fn: Callable[[S], D]) -> None:
        self.source_type = source_type
        self.dest_type = dest_type
        self.fn = fn

    def __call__(self, value: Any) -> D:
        if not isinstance(value, self.source_type):
            raise InvalidConverterSourceException(
                "invalid source type for converter",
                source_type=type(value),
                dest_type=self.dest_type,
            )
        try:
            return self.fn(value)
        except MappingException:
            raise
        except Exception as exc:
            raise ConverterException(
                "converter error",
                source_type=self.source_type,
                dest_type=self.dest_type,
                cause=exc,
            ) from exc

    def __repr__(self) -> str:
        return f"TypeConverter({self.source_type!r} -> {self.dest_type!r})"


class ConverterRegistry:
    """Global converters keyed by exact type pair.

    ``version`` increases on every registration so compiled strategies can
    tell whether converters were added after they were built.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._converters: dict[tuple[Any, Any], TypeConverter[Any, Any]] = {}
        self._version = 0

    @property
    def version(self) -> int:
        return self._version

    def register(self, converter: TypeConverter[Any, Any]) -> None:
        with self._lock:
            self._converters[(converter.source_type, converter.dest_type)] = converter
            self._version += 1

    def find(self, source_type: Any, dest_type: Any) -> TypeConverter[Any, Any] | None:
        if not self._converters:
            return None
        try:
            return self._converters.get((source_type, dest_type))
        except TypeError:
            return None

    def clear(self) -> None:
        with self._lock:
            self._converters.clear()
            self._version += 1

    def __len__(self) -> int:
        return len(self._converters)
