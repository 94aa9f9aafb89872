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
"""Unified exception hierarchy for flymap.

All library exceptions inherit from FlymapException, enabling unified
error handling. Mapping failures carry the source/destination types and
the location inside the destination structure where they happened.

Categories:
- ConfigurationException: invalid configuration calls or property values
- MappingException: failures while executing a mapping
"""

from __future__ import annotations

from typing import Any

# =============================================================================
# Base Exception
# =============================================================================


class FlymapException(Exception):
    """Base exception for all flymap errors.

    Carries an optional error code and context dict for structured error data.

    Args:
        message: Human-readable error description.
        code: Machine-readable error code (e.g. "INCOMPATIBLE_TYPES").
        context: Arbitrary key-value pairs for error context and debugging.
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.context: dict = context if context is not None else {}


class ConfigurationException(FlymapException):
    """A configuration call referenced something that does not exist or is invalid."""


# =============================================================================
# Mapping Exceptions
# =============================================================================


def _type_name(tp: Any) -> str:
    if tp is None:
        return "?"
    return getattr(tp, "__qualname__", None) or repr(tp)


class MappingException(FlymapException):
    """Base class for failures raised while a mapping call executes.

    ``path`` lists the destination field names and element indices from the
    outermost value down to the failing one. Each enclosing level prepends
    its own segment as the error propagates, so the top-level caller sees
    the full location (``orders[2].amount``).
    """

    default_code: str | None = None

    def __init__(
        self,
        message: str,
        *,
        source_type: Any = None,
        dest_type: Any = None,
        field_name: str | None = None,
        cause: BaseException | None = None,
        code: str | None = None,
        context: dict | None = None,
    ) -> None:
        super().__init__(message, code=code or self.default_code, context=context)
        self.source_type = source_type
        self.dest_type = dest_type
        self.cause = cause
        self.path: list[str | int] = [field_name] if field_name else []

    @property
    def field_name(self) -> str | None:
        """The innermost destination field name on the error path, if any."""
        for segment in reversed(self.path):
            if isinstance(segment, str):
                return segment
        return None

    def prepend(self, segment: str | int) -> None:
        """Record an enclosing field name or element index."""
        self.path.insert(0, segment)

    @property
    def location(self) -> str:
        """Render the path as ``field[index].field``."""
        rendered = ""
        for segment in self.path:
            if isinstance(segment, int):
                rendered += f"[{segment}]"
            elif rendered:
                rendered += f".{segment}"
            else:
                rendered = segment
        return rendered

    def __str__(self) -> str:
        parts = ["mapping error"]
        if self.path:
            parts.append(f" at '{self.location}'")
        if self.source_type is not None or self.dest_type is not None:
            parts.append(f" ({_type_name(self.source_type)} -> {_type_name(self.dest_type)})")
        parts.append(f": {self.message}")
        if self.cause is not None and not isinstance(self.cause, MappingException):
            parts.append(f" ({type(self.cause).__name__}: {self.cause})")
        return "".join(parts)


class IncompatibleTypesException(MappingException):
    """No assignment or conversion path exists between a leaf source and destination type."""

    default_code = "INCOMPATIBLE_TYPES"


class IncompatibleMapKeyException(MappingException):
    """A container key cannot be assigned or converted to the destination key type."""

    default_code = "INCOMPATIBLE_MAP_KEY"


class ResolverException(MappingException):
    """A member resolver function raised."""

    default_code = "RESOLVER_FAILURE"


class ConverterException(MappingException):
    """A global or member-level converter raised."""

    default_code = "CONVERTER_FAILURE"


class InvalidConverterSourceException(MappingException):
    """A registered converter was invoked with a value of the wrong source type."""

    default_code = "INVALID_CONVERTER_SOURCE"


class HookException(MappingException):
    """A before/after hook or a whole-type custom transform raised."""

    default_code = "HOOK_FAILURE"


class ElementMappingException(MappingException):
    """Mapping a sequence element failed.

    The index is stored on the exception and becomes a path segment; the
    inner failure's own path is appended after it.
    """

    default_code = "ELEMENT_FAILURE"

    def __init__(self, index: int, cause: BaseException, **kwargs: Any) -> None:
        super().__init__(f"error mapping element at index {index}", cause=cause, **kwargs)
        self.index = index
        self.path = [index]
        if isinstance(cause, MappingException):
            self.path.extend(cause.path)
