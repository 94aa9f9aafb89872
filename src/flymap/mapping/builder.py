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
"""Fluent builder for refining a TypeMapping.

Usage::

    mapper.create_map(Order, OrderDTO) \\
        .for_member("buyer", map_from("customer.name")) \\
        .for_member("total", map_from_func(lambda o: o.quantity * o.unit_price)) \\
        .for_member("internal_notes", ignore()) \\
        .after_map(lambda order, dto: dto.tags.sort())
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from flymap.mapping.type_map import (
    Condition,
    Converter,
    CustomTransform,
    MemberRule,
    Resolver,
    TypeMapping,
    resolve_source_name,
    rule_for_destination,
)

if TYPE_CHECKING:
    from flymap.mapping.mapper import Mapper

S = TypeVar("S")
D = TypeVar("D")

MemberOption = Callable[[MemberRule, "TypeMapBuilder[Any, Any]"], MemberRule]


# ---------------------------------------------------------------------------
# Member options
# ---------------------------------------------------------------------------


def map_from(source_member: str) -> MemberOption:
    """Take the value from a named source field; dotted names walk nested records."""

    def option(rule: MemberRule, builder: TypeMapBuilder[Any, Any]) -> MemberRule:
        path = resolve_source_name(source_member, builder.source_type, builder.mapper.type_cache)
        return replace(
            rule,
            source_path=path,
            source_name=source_member,
            resolver=None,
            flatten_path=(),
            ignore=False,
        )

    return option


def map_from_func(resolver: Resolver) -> MemberOption:
    """Compute the value from the whole source record."""

    def option(rule: MemberRule, builder: TypeMapBuilder[Any, Any]) -> MemberRule:
        return replace(rule, resolver=resolver, ignore=False)

    return option


def ignore() -> MemberOption:
    """Never populate the destination field."""

    def option(rule: MemberRule, builder: TypeMapBuilder[Any, Any]) -> MemberRule:
        return replace(rule, ignore=True)

    return option


def condition(predicate: Condition) -> MemberOption:
    """Populate the field only when ``predicate(source)`` is true."""

    def option(rule: MemberRule, builder: TypeMapBuilder[Any, Any]) -> MemberRule:
        return replace(rule, condition=predicate)

    return option


def use_converter(converter: Converter) -> MemberOption:
    """Transform the field value before it is assigned."""

    def option(rule: MemberRule, builder: TypeMapBuilder[Any, Any]) -> MemberRule:
        return replace(rule, converter=converter)

    return option


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


class TypeMapBuilder(Generic[S, D]):
    """Configuration handle returned by :meth:`Mapper.create_map`."""

    def __init__(self, mapper: Mapper, type_map: TypeMapping) -> None:
        self._mapper = mapper
        self._type_map = type_map

    @property
    def mapper(self) -> Mapper:
        return self._mapper

    @property
    def type_map(self) -> TypeMapping:
        return self._type_map

    @property
    def source_type(self) -> type[S]:
        return self._type_map.source_type

    @property
    def dest_type(self) -> type[D]:
        return self._type_map.dest_type

    def for_member(self, dest_member: str, *options: MemberOption) -> TypeMapBuilder[S, D]:
        """Configure one destination field by name.

        Raises:
            ConfigurationException: when the destination type has no such field.
        """
        rule = rule_for_destination(self._type_map, dest_member, self._mapper.type_cache)
        for option in options:
            rule = option(rule, self)
        self._type_map.put_rule(rule)
        return self

    def ignore_members(self, *dest_members: str) -> TypeMapBuilder[S, D]:
        for name in dest_members:
            self.for_member(name, ignore())
        return self

    def before_map(self, hook: Callable[[S, D], None]) -> TypeMapBuilder[S, D]:
        """Run ``hook(source, dest)`` before any field is populated."""
        self._type_map.add_before_hook(hook)
        return self

    def after_map(self, hook: Callable[[S, D], None]) -> TypeMapBuilder[S, D]:
        """Run ``hook(source, dest)`` after every field is populated."""
        self._type_map.add_after_hook(hook)
        return self

    def custom_map(self, transform: Callable[[S, D], None]) -> TypeMapBuilder[S, D]:
        """Replace the member rules with ``transform(source, dest)``.

        Before-hooks still run first; member rules and after-hooks are skipped.
        """
        fn: CustomTransform = transform
        self._type_map.set_custom_transform(fn)
        return self

    def reverse_map(self) -> TypeMapBuilder[D, S]:
        """Create (or return) the auto-configured mapping for the opposite direction."""
        return self._mapper.create_map(self.dest_type, self.source_type)

    def __repr__(self) -> str:
        return f"TypeMapBuilder({self._type_map!r})"
