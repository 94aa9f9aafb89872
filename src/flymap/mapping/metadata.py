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
"""Type metadata: flattened, ordered field descriptors built once per record type.

A *record type* is a dataclass, a pydantic model, or a plain class whose
public attributes are declared with type annotations. Introspecting one
yields a :class:`TypeInfo` holding a :class:`FieldDescriptor` per
externally visible field, in declaration order. Fields marked with
:data:`Embedded` are not listed themselves; their own fields are promoted
into the owner with the accessor path prefixed::

    @dataclass
    class Audit:
        created_by: str = ""

    @dataclass
    class Order:
        id: int
        audit: Annotated[Audit, Embedded]

    # TypeInfo(Order).fields -> id (path ("id",)), created_by (path ("audit", "created_by"))
"""

from __future__ import annotations

import copy
import dataclasses
import enum
import inspect
import re
import threading
import types
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Annotated, Any, ClassVar, Union, get_args, get_origin, get_type_hints

from pydantic import BaseModel

from flymap.logging import get_logger

logger = get_logger("flymap.mapping.metadata")


class _EmbeddedMarker:
    """Annotation marker promoting a sub-record's fields into its owner."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "Embedded"


Embedded = _EmbeddedMarker()


class RecordKind(enum.Enum):
    """How a type stores and exposes its fields."""

    DATACLASS = "dataclass"
    PYDANTIC = "pydantic"
    PLAIN = "plain"
    NONE = "none"


# ---------------------------------------------------------------------------
# Annotation helpers
# ---------------------------------------------------------------------------

_NONE_TYPE = type(None)


def _strip_annotated(tp: Any) -> Any:
    while get_origin(tp) is Annotated:
        tp = get_args(tp)[0]
    return tp


def is_union(tp: Any) -> bool:
    return get_origin(tp) in (Union, types.UnionType)


def unwrap_optional(tp: Any) -> Any:
    """Strip ``Annotated`` and the ``None`` member of an optional union.

    ``Optional[Address]`` -> ``Address``; ``int | str | None`` -> ``int | str``.
    """
    tp = _strip_annotated(tp)
    if not is_union(tp):
        return tp
    members = [m for m in get_args(tp) if m is not _NONE_TYPE]
    if len(members) == len(get_args(tp)):
        return tp
    if len(members) == 1:
        return unwrap_optional(members[0])
    return Union[tuple(members)]  # noqa: UP007


def _is_embedded(tp: Any) -> bool:
    return get_origin(tp) is Annotated and any(m is Embedded for m in tp.__metadata__)


def record_kind(tp: Any) -> RecordKind:
    """Classify *tp*; anything that is not a record type is ``RecordKind.NONE``."""
    if not isinstance(tp, type) or get_origin(tp) is not None:
        return RecordKind.NONE
    if dataclasses.is_dataclass(tp):
        return RecordKind.DATACLASS
    if issubclass(tp, BaseModel):
        return RecordKind.PYDANTIC
    if (
        tp.__module__ == "builtins"
        or issubclass(tp, (enum.Enum, tuple, Mapping, str, bytes))
        or getattr(tp, "_is_protocol", False)
    ):
        return RecordKind.NONE
    if any(_public(name) for name in _class_annotation_names(tp)):
        return RecordKind.PLAIN
    return RecordKind.NONE


def is_record_type(tp: Any) -> bool:
    return record_kind(unwrap_optional(tp)) is not RecordKind.NONE


def _public(name: str) -> bool:
    return not name.startswith("_")


def _class_annotation_names(tp: type) -> list[str]:
    names: list[str] = []
    for klass in reversed(tp.__mro__):
        for name in inspect.get_annotations(klass):
            if name not in names:
                names.append(name)
    return names


def is_frozen_type(tp: type) -> bool:
    params = getattr(tp, "__dataclass_params__", None)
    if params is not None:
        return bool(params.frozen)
    if isinstance(tp, type) and issubclass(tp, BaseModel):
        return bool(tp.model_config.get("frozen"))
    return False


def assign_attribute(obj: Any, name: str, value: Any) -> None:
    """Set an attribute, writing through ``object.__setattr__`` on frozen records."""
    if is_frozen_type(type(obj)):
        object.__setattr__(obj, name, value)
    else:
        setattr(obj, name, value)


def _fresh_default(default: Any) -> Any:
    """Copy a class-level default that would otherwise be shared between instances."""
    if isinstance(default, (list, dict, set)):
        return copy.copy(default)
    if record_kind(type(default)) is not RecordKind.NONE:
        return copy.deepcopy(default)
    return default


def new_record(tp: type) -> Any:
    """Allocate a blank instance of a record type without running ``__init__``.

    Declared defaults and default factories are applied; fields without a
    default start as ``None``.
    """
    kind = record_kind(tp)
    if kind is RecordKind.PYDANTIC:
        required = {name: None for name, info in tp.model_fields.items() if info.is_required()}
        return tp.model_construct(**required)

    obj = tp.__new__(tp)
    if kind is RecordKind.DATACLASS:
        for f in dataclasses.fields(tp):
            if f.default is not dataclasses.MISSING:
                value = _fresh_default(f.default)
            elif f.default_factory is not dataclasses.MISSING:
                value = f.default_factory()
            else:
                value = None
            object.__setattr__(obj, f.name, value)
    elif kind is RecordKind.PLAIN:
        for name in _class_annotation_names(tp):
            if not _public(name):
                continue
            setattr(obj, name, _fresh_default(getattr(tp, name, None)))
    return obj


# ---------------------------------------------------------------------------
# Descriptors
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FieldDescriptor:
    """An accessible field of a record type, possibly promoted from an embedded record.

    Attributes:
        name: Field name, unique within the owning type's flattened list.
        path: Attribute names from the owning record down to the field.
        declared_type: The resolved annotation (``Optional`` included).
        mutable: False when the field's immediate owner is frozen.
        carriers: Declared types of the embedded records along ``path``.
    """

    name: str
    path: tuple[str, ...]
    declared_type: Any = Any
    mutable: bool = True
    carriers: tuple[Any, ...] = ()

    @property
    def value_type(self) -> Any:
        """Declared type with ``Optional`` stripped."""
        return unwrap_optional(self.declared_type)

    @property
    def depth(self) -> int:
        return len(self.path)

    def get(self, obj: Any) -> Any:
        """Read the field; an unset embedded record along the path reads as ``None``."""
        for name in self.path:
            if obj is None:
                return None
            obj = getattr(obj, name, None)
        return obj

    def set(self, obj: Any, value: Any) -> None:
        """Write the field, allocating unset embedded records along the path."""
        for index, name in enumerate(self.path[:-1]):
            child = getattr(obj, name, None)
            if child is None:
                child = new_record(unwrap_optional(self.carriers[index]))
                assign_attribute(obj, name, child)
            obj = child
        if self.mutable:
            setattr(obj, self.path[-1], value)
        else:
            object.__setattr__(obj, self.path[-1], value)


@dataclass(frozen=True)
class TypeInfo:
    """Cached field metadata for one type."""

    type: Any
    kind: RecordKind
    fields: tuple[FieldDescriptor, ...] = ()
    fields_by_name: dict[str, FieldDescriptor] = field(default_factory=dict)

    @property
    def is_record(self) -> bool:
        return self.kind is not RecordKind.NONE

    def get_field(self, name: str) -> FieldDescriptor | None:
        return self.fields_by_name.get(name)

    def new_instance(self) -> Any:
        return new_record(self.type)


# ---------------------------------------------------------------------------
# Field collection
# ---------------------------------------------------------------------------


def _resolved_hints(tp: type) -> dict[str, Any]:
    try:
        return get_type_hints(tp, include_extras=True)
    except (NameError, TypeError) as exc:
        # Unresolvable forward references degrade to untyped fields.
        logger.warning("type_hints_unresolved", type=tp.__qualname__, error=str(exc))
        return {}


def _declared_members(tp: type, kind: RecordKind) -> list[tuple[str, Any, bool]]:
    """(name, annotation, mutable) for each declared member in declaration order."""
    if kind is RecordKind.PYDANTIC:
        frozen = bool(tp.model_config.get("frozen"))
        members = []
        for name, info in tp.model_fields.items():
            annotation: Any = info.annotation if info.annotation is not None else Any
            if any(m is Embedded for m in info.metadata):
                annotation = Annotated[annotation, Embedded]
            members.append((name, annotation, not (frozen or info.frozen)))
        return members

    hints = _resolved_hints(tp)
    if kind is RecordKind.DATACLASS:
        frozen = is_frozen_type(tp)
        return [
            (f.name, hints.get(f.name, Any if isinstance(f.type, str) else f.type), not frozen)
            for f in dataclasses.fields(tp)
        ]

    members = []
    for name in _class_annotation_names(tp):
        annotation = hints.get(name, Any)
        if get_origin(annotation) is ClassVar or annotation is ClassVar:
            continue
        members.append((name, annotation, True))
    return members


def _collect(
    tp: type,
    prefix: tuple[str, ...],
    carriers: tuple[Any, ...],
    out: list[FieldDescriptor],
    seen: set[type],
) -> None:
    kind = record_kind(tp)
    for name, annotation, mutable in _declared_members(tp, kind):
        if _is_embedded(annotation):
            embedded_type = unwrap_optional(annotation)
            if record_kind(embedded_type) is not RecordKind.NONE and embedded_type not in seen:
                _collect(
                    embedded_type,
                    prefix + (name,),
                    carriers + (embedded_type,),
                    out,
                    seen | {embedded_type},
                )
                continue
        if not _public(name):
            continue
        out.append(
            FieldDescriptor(
                name=name,
                path=prefix + (name,),
                declared_type=_strip_annotated(annotation),
                mutable=mutable,
                carriers=carriers,
            )
        )


def build_type_info(tp: Any) -> TypeInfo:
    """Introspect *tp* into a TypeInfo; non-record types yield zero fields."""
    tp = unwrap_optional(tp)
    kind = record_kind(tp)
    if kind is RecordKind.NONE:
        return TypeInfo(type=tp, kind=kind)

    candidates: list[FieldDescriptor] = []
    _collect(tp, (), (), candidates, {tp})

    # A shallower field shadows a promoted field of the same name.
    winners: dict[str, FieldDescriptor] = {}
    for fd in candidates:
        current = winners.get(fd.name)
        if current is None or fd.depth < current.depth:
            winners[fd.name] = fd
    ordered = tuple(fd for fd in candidates if winners[fd.name] is fd)

    return TypeInfo(
        type=tp,
        kind=kind,
        fields=ordered,
        fields_by_name={fd.name: fd for fd in ordered},
    )


class TypeCache:
    """Per-mapper memo of TypeInfo, safe for concurrent first use.

    Readers never block once a type is cached; the first caller for an
    unseen type builds it under the lock and later callers observe the
    completed result.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._cache: dict[Any, TypeInfo] = {}

    def get_type_info(self, tp: Any) -> TypeInfo:
        tp = unwrap_optional(tp)
        info = self._cache.get(tp)
        if info is not None:
            return info

        with self._lock:
            info = self._cache.get(tp)
            if info is None:
                info = build_type_info(tp)
                self._cache[tp] = info
                logger.debug("type_info_built", type=getattr(tp, "__qualname__", repr(tp)), fields=len(info.fields))
        return info

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, tp: Any) -> bool:
        return unwrap_optional(tp) in self._cache


# ---------------------------------------------------------------------------
# Name splitting (flattening)
# ---------------------------------------------------------------------------

_CAPITAL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def split_name_parts(name: str) -> list[str]:
    """Split a field name into the parts used for flattening.

    ``snake_case`` names split on underscores; other names split before
    every capital letter except the first character::

        split_name_parts("customer_name")  # ["customer", "name"]
        split_name_parts("CustomerName")   # ["Customer", "Name"]
    """
    if not name:
        return []
    if "_" in name:
        return [part for part in name.split("_") if part]
    return _CAPITAL_RE.split(name)


def join_name_parts(parts: Sequence[str], template: str) -> str:
    """Re-join parts produced by :func:`split_name_parts` for *template*'s convention."""
    return "_".join(parts) if "_" in template else "".join(parts)
