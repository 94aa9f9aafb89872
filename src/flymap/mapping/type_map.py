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
"""TypeMapping and MemberRule, plus the automatic field matcher.

Auto-configuration walks the destination fields in order and, for each,
looks for a source field:

1. an exact name match, which always wins;
2. a flattening match: the destination name is split into parts
   (``customer_name`` -> ``customer``, ``name``) and the parts are resolved
   as a chain of nested source records.

Destination fields with no match get no rule and are skipped at mapping time.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from flymap.kernel.exceptions import ConfigurationException
from flymap.mapping.metadata import (
    FieldDescriptor,
    TypeCache,
    TypeInfo,
    join_name_parts,
    split_name_parts,
    unwrap_optional,
)

Resolver = Callable[[Any], Any]
Converter = Callable[[Any], Any]
Condition = Callable[[Any], bool]
Hook = Callable[[Any, Any], None]
CustomTransform = Callable[[Any, Any], None]


@dataclass(frozen=True)
class MemberRule:
    """How one destination field gets its value.

    Exactly one value source applies, checked in this order at mapping time:
    ``resolver``, ``source_path``, then ``source_name`` (looked up on the
    source instance by attribute name, dotted names walking nested values).

    Rules are immutable; configuration calls publish a replacement rule.
    """

    dest: FieldDescriptor
    source_path: tuple[FieldDescriptor, ...] = ()
    source_name: str | None = None
    resolver: Resolver | None = None
    converter: Converter | None = None
    condition: Condition | None = None
    ignore: bool = False
    flatten_path: tuple[str, ...] = ()

    @property
    def dest_name(self) -> str:
        return self.dest.name

    @property
    def uses_flattening(self) -> bool:
        return bool(self.flatten_path)

    @property
    def is_single_hop(self) -> bool:
        """True for a plain field-to-field rule of depth one on both sides."""
        return (
            not self.flatten_path
            and self.resolver is None
            and len(self.source_path) == 1
            and self.source_path[0].depth == 1
            and self.dest.depth == 1
        )

    @property
    def has_custom_logic(self) -> bool:
        return self.resolver is not None or self.converter is not None or self.condition is not None

    @property
    def source_type(self) -> Any:
        """Declared type of the source value, ``Any`` when not statically known."""
        if self.source_path:
            return self.source_path[-1].declared_type
        return Any

    def read(self, source: Any) -> Any:
        """Read the source value through the resolved path or the name fallback."""
        if self.source_path:
            value = source
            for fd in self.source_path:
                value = fd.get(value)
                if value is None:
                    return None
            return value
        if self.source_name:
            value = source
            for part in self.source_name.split("."):
                value = getattr(value, part, None)
                if value is None:
                    return None
            return value
        return None


class TypeMapping:
    """Configuration for one (source type, destination type) pair.

    Holds the member rules in destination-field order, the before/after
    hooks, and an optional whole-type custom transform. When a custom
    transform is set it replaces the member rules entirely.

    ``revision`` increases whenever a member rule is added or replaced.
    """

    def __init__(self, source_type: type, dest_type: type) -> None:
        self.source_type = source_type
        self.dest_type = dest_type
        self._lock = threading.Lock()
        self._rules: tuple[MemberRule, ...] = ()
        self._before: tuple[Hook, ...] = ()
        self._after: tuple[Hook, ...] = ()
        self._custom: CustomTransform | None = None
        self.revision = 0

    @property
    def key(self) -> tuple[type, type]:
        return (self.source_type, self.dest_type)

    @property
    def rules(self) -> tuple[MemberRule, ...]:
        return self._rules

    @property
    def before_hooks(self) -> tuple[Hook, ...]:
        return self._before

    @property
    def after_hooks(self) -> tuple[Hook, ...]:
        return self._after

    @property
    def custom_transform(self) -> CustomTransform | None:
        return self._custom

    @property
    def has_hooks(self) -> bool:
        return bool(self._before or self._after or self._custom is not None)

    def rule_for(self, dest_name: str) -> MemberRule | None:
        for rule in self._rules:
            if rule.dest_name == dest_name:
                return rule
        return None

    def put_rule(self, rule: MemberRule) -> None:
        """Add *rule*, replacing an existing rule for the same destination field."""
        with self._lock:
            rules = list(self._rules)
            for index, existing in enumerate(rules):
                if existing.dest_name == rule.dest_name:
                    rules[index] = rule
                    break
            else:
                rules.append(rule)
            self._rules = tuple(rules)
            self.revision += 1

    def add_before_hook(self, hook: Hook) -> None:
        with self._lock:
            self._before = self._before + (hook,)

    def add_after_hook(self, hook: Hook) -> None:
        with self._lock:
            self._after = self._after + (hook,)

    def set_custom_transform(self, transform: CustomTransform) -> None:
        with self._lock:
            self._custom = transform

    def __repr__(self) -> str:
        return (
            f"TypeMapping({self.source_type.__qualname__} -> {self.dest_type.__qualname__}, "
            f"rules={len(self._rules)})"
        )


# ---------------------------------------------------------------------------
# Auto-configuration
# ---------------------------------------------------------------------------


def auto_configure(mapping: TypeMapping, cache: TypeCache) -> None:
    """Populate *mapping* with a rule for every destination field that matches a source field."""
    dest_info = cache.get_type_info(mapping.dest_type)
    source_info = cache.get_type_info(mapping.source_type)
    rules = []
    for dest_field in dest_info.fields:
        rule = find_source_member(dest_field, source_info, cache)
        if rule is not None:
            rules.append(rule)
    mapping._rules = tuple(rules)


def find_source_member(dest_field: FieldDescriptor, source_info: TypeInfo, cache: TypeCache) -> MemberRule | None:
    exact = source_info.get_field(dest_field.name)
    if exact is not None:
        return MemberRule(dest=dest_field, source_path=(exact,))

    parts = split_name_parts(dest_field.name)
    if len(parts) > 1:
        chain = _resolve_chain(parts, dest_field.name, source_info, cache)
        if chain is not None:
            return MemberRule(
                dest=dest_field,
                source_path=tuple(chain),
                flatten_path=tuple(fd.name for fd in chain),
            )
    return None


def _resolve_chain(
    parts: list[str],
    template: str,
    info: TypeInfo,
    cache: TypeCache,
) -> list[FieldDescriptor] | None:
    """Resolve *parts* as a chain of nested fields starting at *info*.

    One part per field is tried first; when a part does not name a field,
    it is joined with the following parts (shortest join first) so that
    multi-word field names along the chain still resolve.
    """
    for take in range(1, len(parts) + 1):
        fd = info.get_field(join_name_parts(parts[:take], template))
        if fd is None:
            continue
        rest = parts[take:]
        if not rest:
            return [fd]
        nested = cache.get_type_info(unwrap_optional(fd.declared_type))
        if not nested.is_record:
            continue
        tail = _resolve_chain(rest, template, nested, cache)
        if tail is not None:
            return [fd, *tail]
    return None


def resolve_source_name(name: str, source_type: type, cache: TypeCache) -> tuple[FieldDescriptor, ...]:
    """Resolve an explicit (optionally dotted) source name to a field chain.

    Returns an empty tuple when some segment is not a declared field, in
    which case the rule falls back to attribute lookup by name.
    """
    info = cache.get_type_info(source_type)
    chain: list[FieldDescriptor] = []
    segments = name.split(".")
    for index, segment in enumerate(segments):
        fd = info.get_field(segment)
        if fd is None:
            return ()
        chain.append(fd)
        if index < len(segments) - 1:
            info = cache.get_type_info(unwrap_optional(fd.declared_type))
            if not info.is_record:
                return ()
    return tuple(chain)


def rule_for_destination(mapping: TypeMapping, dest_name: str, cache: TypeCache) -> MemberRule:
    """The current rule for *dest_name*, or a fresh unbound rule for that field."""
    existing = mapping.rule_for(dest_name)
    if existing is not None:
        return existing
    dest_field = cache.get_type_info(mapping.dest_type).get_field(dest_name)
    if dest_field is None:
        raise ConfigurationException(
            f"{mapping.dest_type.__qualname__} has no field '{dest_name}'",
            code="UNKNOWN_MEMBER",
            context={"dest_type": mapping.dest_type.__qualname__, "member": dest_name},
        )
    return MemberRule(dest=dest_field)

