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
"""Optimization compiler: cached execution strategies per TypeMapping.

A :class:`CompiledStrategy` is derived once from a TypeMapping and never
mutates it. Depending on the :class:`OptimizationLevel` it carries a
prebuilt ``field_copy`` function that replaces the engine's generic
per-member loop:

- ``UNSAFE``: members whose source and destination declare the same
  primitive type and whose destination value lives in the instance
  ``__dict__`` are written straight into that dict, bypassing attribute
  dispatch. All other members go through the generic member mapping.
- ``SPECIALIZED``: when every rule is a single-hop primitive rule and the
  mapping has no custom logic, every member is copied by a precomputed
  accessor pair with no per-call type matching.

Every fast copy first checks that the runtime value has exactly the
declared source type; any other value is handed back to the generic path,
so results are identical to an unoptimized mapper.
"""

from __future__ import annotations

import enum
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from flymap.kernel.exceptions import MappingException
from flymap.logging import get_logger
from flymap.mapping.converters import PRIMITIVE_TYPES, ConverterRegistry, assign_scalar
from flymap.mapping.metadata import RecordKind, is_frozen_type, record_kind
from flymap.mapping.type_map import MemberRule, TypeMapping

logger = get_logger("flymap.mapping.optimization")

MemberFallback = Callable[[Any, Any, MemberRule], None]
FieldCopy = Callable[[Any, Any, MemberFallback], None]


class OptimizationLevel(enum.IntEnum):
    """How aggressively compiled strategies shortcut the generic engine."""

    NONE = 0
    POOLED = 1  # reserved; behaves like NONE
    UNSAFE = 2
    SPECIALIZED = 3

    @classmethod
    def parse(cls, value: Any) -> OptimizationLevel:
        """Accept a level, its integer value, or its name in any case."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise ValueError(
                    f"unknown optimization level '{value}' (expected one of {', '.join(m.name.lower() for m in cls)})"
                ) from None
        return cls(value)


@dataclass(frozen=True)
class CompiledMember:
    """Optimization metadata for one member rule.

    ``source_attr``/``dest_attr`` are set only for single-hop rules.
    ``direct_assign`` means both sides declare the same primitive type;
    ``raw_copy`` additionally means the destination stores the value in
    its instance ``__dict__``.
    """

    rule: MemberRule
    source_attr: str | None = None
    dest_attr: str | None = None
    source_type: Any = None
    dest_type: Any = None
    is_primitive: bool = False
    direct_assign: bool = False
    raw_copy: bool = False

    @property
    def fast(self) -> bool:
        return self.is_primitive and not self.rule.has_custom_logic and not self.rule.ignore


@dataclass(frozen=True)
class CompiledStrategy:
    """Cached execution plan for one TypeMapping at one optimization level."""

    level: OptimizationLevel
    revision: int
    converter_version: int
    members: tuple[CompiledMember, ...]
    all_primitive: bool
    has_custom_logic: bool
    field_copy: FieldCopy | None = None

    def is_current(self, mapping: TypeMapping, converters: ConverterRegistry) -> bool:
        """False once rules or converters changed after compilation."""
        return self.revision == mapping.revision and self.converter_version == converters.version

    def usable_for(self, mapping: TypeMapping) -> bool:
        """Whether the shortcut may run for this call.

        Hooks and custom transforms can be attached after compilation, so
        the live mapping is checked on every invocation.
        """
        return self.field_copy is not None and not mapping.has_hooks


def _stores_in_dict(tp: type, attr: str) -> bool:
    if record_kind(tp) not in (RecordKind.DATACLASS, RecordKind.PLAIN):
        return False
    if getattr(tp, "__dictoffset__", 0) == 0:
        return False
    if tp.__setattr__ is not object.__setattr__ and not is_frozen_type(tp):
        return False
    for klass in tp.__mro__:
        if attr in klass.__dict__:
            return not hasattr(type(klass.__dict__[attr]), "__set__")
    return True


def _compile_member(rule: MemberRule, mapping: TypeMapping, converters: ConverterRegistry) -> CompiledMember:
    if not rule.is_single_hop:
        return CompiledMember(rule=rule)

    source_field = rule.source_path[0]
    source_type = source_field.value_type
    dest_type = rule.dest.value_type
    is_primitive = (
        source_type in PRIMITIVE_TYPES
        and dest_type in PRIMITIVE_TYPES
        and converters.find(source_type, dest_type) is None
    )
    direct_assign = is_primitive and source_type is dest_type
    return CompiledMember(
        rule=rule,
        source_attr=source_field.name,
        dest_attr=rule.dest.name,
        source_type=source_type,
        dest_type=dest_type,
        is_primitive=is_primitive,
        direct_assign=direct_assign,
        raw_copy=direct_assign and _stores_in_dict(mapping.dest_type, rule.dest.name),
    )


def _reader(attr: str | None) -> Callable[[Any], Any]:
    return lambda source: getattr(source, attr, None)


def _writer(member: CompiledMember) -> Callable[[Any, Any], None]:
    attr = member.dest_attr
    if member.raw_copy:

        def write_raw(dest: Any, value: Any) -> None:
            dest.__dict__[attr] = value

        return write_raw
    if member.rule.dest.mutable:
        return lambda dest, value: setattr(dest, attr, value)
    return lambda dest, value: object.__setattr__(dest, attr, value)


def _build_field_copy(members: tuple[CompiledMember, ...], level: OptimizationLevel) -> FieldCopy:
    steps: list[tuple[Callable[[Any], Any] | None, Any, Callable[[Any, Any], None] | None, Any, MemberRule]] = []
    for member in members:
        if member.rule.ignore:
            continue
        shortcut = member.fast and (level >= OptimizationLevel.SPECIALIZED or member.raw_copy)
        if not shortcut:
            steps.append((None, None, None, None, member.rule))
            continue
        convert = None if member.direct_assign else member.dest_type
        steps.append(
            (_reader(member.source_attr), member.source_type, _writer(member), convert, member.rule)
        )

    def field_copy(source: Any, dest: Any, fallback: MemberFallback) -> None:
        for read, source_type, write, convert, rule in steps:
            if read is None:
                fallback(source, dest, rule)
                continue
            value = read(source)
            if value is None:
                continue
            if type(value) is not source_type:
                fallback(source, dest, rule)
                continue
            if convert is not None:
                try:
                    value = assign_scalar(value, convert)
                except MappingException as exc:
                    exc.prepend(rule.dest_name)
                    raise
            write(dest, value)

    return field_copy


def compile_strategy(
    mapping: TypeMapping,
    level: OptimizationLevel,
    converters: ConverterRegistry,
) -> CompiledStrategy:
    """Analyze *mapping* and build its strategy for *level*."""
    revision = mapping.revision
    converter_version = converters.version
    members = tuple(_compile_member(rule, mapping, converters) for rule in mapping.rules)

    all_primitive = all(m.is_primitive for m in members)
    has_custom_logic = mapping.has_hooks or any(m.rule.has_custom_logic for m in members)

    field_copy: FieldCopy | None = None
    if level >= OptimizationLevel.SPECIALIZED and all_primitive and not has_custom_logic:
        field_copy = _build_field_copy(members, OptimizationLevel.SPECIALIZED)
    elif level >= OptimizationLevel.UNSAFE and any(m.fast and m.raw_copy for m in members):
        field_copy = _build_field_copy(members, OptimizationLevel.UNSAFE)

    logger.debug(
        "strategy_compiled",
        source=mapping.source_type.__qualname__,
        dest=mapping.dest_type.__qualname__,
        level=level.name,
        all_primitive=all_primitive,
        has_custom_logic=has_custom_logic,
        shortcut=field_copy is not None,
    )
    return CompiledStrategy(
        level=level,
        revision=revision,
        converter_version=converter_version,
        members=members,
        all_primitive=all_primitive,
        has_custom_logic=has_custom_logic,
        field_copy=field_copy,
    )
