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
"""Generic type-to-type mapper inspired by AutoMapper and MapStruct.

Automatically maps between record types (dataclasses, pydantic models and
annotated plain classes) by matching field names, flattening nested source
records into prefixed destination names, and recursing through nested
records, sequences and mappings.

Example::

    mapper = Mapper()
    dto = mapper.map(order, OrderDTO)

    # Refine the automatic matching
    mapper.create_map(Order, OrderDTO) \\
        .for_member("buyer", map_from("customer.name")) \\
        .for_member("internal_notes", ignore())

    # Global converter, applied at any depth
    mapper.convert_using(datetime, str, lambda d: d.isoformat())
"""

from __future__ import annotations

import collections
import collections.abc
import itertools
import threading
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any, Literal, TypeVar, get_args, get_origin

from flymap.kernel.exceptions import (
    ConverterException,
    ElementMappingException,
    HookException,
    IncompatibleMapKeyException,
    IncompatibleTypesException,
    MappingException,
    ResolverException,
)
from flymap.logging import get_logger
from flymap.mapping.builder import (
    TypeMapBuilder,
    ignore,
    map_from,
    map_from_func,
    use_converter,
)
from flymap.mapping.converters import ConverterRegistry, TypeConverter, assign_scalar, is_assignable
from flymap.mapping.metadata import (
    RecordKind,
    TypeCache,
    is_union,
    record_kind,
    unwrap_optional,
)
from flymap.mapping.optimization import CompiledStrategy, OptimizationLevel, compile_strategy
from flymap.mapping.properties import MapperProperties
from flymap.mapping.type_map import Hook, MemberRule, TypeMapping, auto_configure

if TYPE_CHECKING:
    from flymap.core.config import Config
    from flymap.mapping.profile import MappingProfile

logger = get_logger("flymap.mapping.mapper")

S = TypeVar("S")
D = TypeVar("D")

_SEQUENCE_ORIGINS: tuple[Any, ...] = (
    list,
    tuple,
    set,
    frozenset,
    collections.abc.Sequence,
    collections.abc.MutableSequence,
    collections.abc.Set,
    collections.abc.MutableSet,
    collections.abc.Collection,
    collections.abc.Iterable,
)
_SET_ORIGINS: tuple[Any, ...] = (set, collections.abc.Set, collections.abc.MutableSet)
_MAPPING_ORIGINS: tuple[Any, ...] = (
    dict,
    collections.OrderedDict,
    collections.abc.Mapping,
    collections.abc.MutableMapping,
)
_TEXT_TYPES = (str, bytes, bytearray)


def _origin(tp: Any) -> Any:
    return get_origin(tp) or tp


def _is_sequence_type(tp: Any) -> bool:
    return _origin(tp) in _SEQUENCE_ORIGINS


def _is_mapping_type(tp: Any) -> bool:
    return _origin(tp) in _MAPPING_ORIGINS


def _is_sequence_value(value: Any) -> bool:
    return isinstance(value, (collections.abc.Sequence, collections.abc.Set)) and not isinstance(
        value, _TEXT_TYPES
    )


def _leaf_class(tp: Any) -> Any:
    """The class a leaf value must be an instance of, ``Any`` when not checkable."""
    origin = get_origin(tp)
    if origin is Literal:
        return Any
    if origin is not None:
        return origin if isinstance(origin, type) else Any
    return tp if isinstance(tp, type) else Any


def _is_plain_leaf(tp: Any) -> bool:
    """A bare class that values are stored in as-is (no records, no collections)."""
    return (
        isinstance(tp, type)
        and tp is not Any
        and get_origin(tp) is None
        and record_kind(tp) is RecordKind.NONE
        and not _is_sequence_type(tp)
        and not _is_mapping_type(tp)
    )


def _empty_container(tp: Any) -> Any:
    origin = _origin(tp)
    if origin is tuple:
        return ()
    if origin is frozenset:
        return frozenset()
    if origin in _SET_ORIGINS:
        return set()
    if origin is collections.OrderedDict:
        return collections.OrderedDict()
    if origin in _MAPPING_ORIGINS:
        return {}
    return []


def _element_hints(tp: Any, length: int) -> Iterable[Any]:
    args = get_args(tp)
    if _origin(tp) is tuple:
        if len(args) == 2 and args[1] is Ellipsis:
            return itertools.repeat(args[0])
        if args and args != ((),):
            if len(args) != length:
                raise IncompatibleTypesException(
                    f"cannot map {length} elements into a {len(args)}-tuple", dest_type=tp
                )
            return args
        return itertools.repeat(Any)
    return itertools.repeat(args[0] if args else Any)


def _describe(tp: Any) -> str:
    return getattr(tp, "__qualname__", repr(tp))


class Mapper:
    """Maps values between record types by matching field names.

    Each instance owns its own type-metadata cache, type-mapping registry,
    converter registry and compiled strategies; instances never share state.

    Usage::

        mapper = Mapper(MapperProperties(optimization="specialized"))
        dto = mapper.map(user_entity, UserDTO)

        # In place
        mapper.map_to(user_entity, existing_dto)

        # Element-wise
        dtos = mapper.map_list(users, UserDTO)
    """

    def __init__(self, properties: MapperProperties | None = None) -> None:
        self._properties = properties or MapperProperties()
        self._cache = TypeCache()
        self._converters = ConverterRegistry()
        self._lock = threading.RLock()
        self._mappings: dict[tuple[type, type], TypeMapping] = {}
        self._strategies: dict[tuple[type, type], CompiledStrategy] = {}

    @classmethod
    def from_config(cls, config: Config) -> Mapper:
        """Create a mapper bound to the ``flymap.mapper.*`` section of *config*."""
        return cls(config.bind(MapperProperties))

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def properties(self) -> MapperProperties:
        return self._properties

    @property
    def optimization(self) -> OptimizationLevel:
        return self._properties.optimization

    @property
    def allow_null_collections(self) -> bool:
        return self._properties.allow_null_collections

    @property
    def type_cache(self) -> TypeCache:
        return self._cache

    @property
    def converters(self) -> ConverterRegistry:
        return self._converters

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def create_map(self, source_type: type[S], dest_type: type[D]) -> TypeMapBuilder[S, D]:
        """Create (or return) the auto-configured mapping for a type pair and a builder for it."""
        return TypeMapBuilder(self, self._type_map(source_type, dest_type))

    def get_type_map(self, source_type: type, dest_type: type) -> TypeMapping | None:
        return self._mappings.get((unwrap_optional(source_type), unwrap_optional(dest_type)))

    def add_mapping(
        self,
        source_type: type[S],
        dest_type: type[D],
        *,
        field_map: dict[str, str] | None = None,
        transformers: dict[str, Callable[[Any], Any]] | None = None,
        exclude: set[str] | None = None,
        resolvers: dict[str, Callable[[S], Any]] | None = None,
    ) -> TypeMapBuilder[S, D]:
        """Register a mapping between source and destination types in one call.

        Args:
            source_type: The source type to map from.
            dest_type: The destination type to map to.
            field_map: Maps source field names (dotted paths allowed) to
                destination field names.
            transformers: Functions to transform field values, keyed by dest
                field name.
            exclude: Destination fields to exclude from mapping.
            resolvers: Functions computing a dest field from the whole source.

        Returns:
            The builder for further refinement.
        """
        builder = self.create_map(source_type, dest_type)
        for source_name, dest_name in (field_map or {}).items():
            builder.for_member(dest_name, map_from(source_name))
        for dest_name, resolver in (resolvers or {}).items():
            builder.for_member(dest_name, map_from_func(resolver))
        for dest_name, transformer in (transformers or {}).items():
            builder.for_member(dest_name, use_converter(transformer))
        for dest_name in exclude or ():
            builder.for_member(dest_name, ignore())
        return builder

    def register_projection(
        self,
        source_type: type[S],
        projection_type: type[D],
        *,
        transforms: dict[str, Callable[[S], Any]] | None = None,
    ) -> TypeMapBuilder[S, D]:
        """Register a projection whose computed fields receive the *entire source object*.

        Usage::

            mapper.register_projection(Order, OrderSummary, transforms={
                "total": lambda o: o.quantity * o.unit_price,
            })
        """
        return self.add_mapping(source_type, projection_type, resolvers=transforms)

    def convert_using(
        self,
        source_type: type[S],
        dest_type: Any,
        fn: Callable[[S], D],
    ) -> TypeConverter[S, D]:
        """Register a global converter for the exact (source type, dest type) pair.

        The converter takes precedence over structural mapping wherever a
        value of ``source_type`` is assigned to a ``dest_type`` slot.
        """
        converter: TypeConverter[S, D] = TypeConverter(
            unwrap_optional(source_type), unwrap_optional(dest_type), fn
        )
        self._converters.register(converter)
        logger.debug(
            "converter_registered",
            source=_describe(converter.source_type),
            dest=_describe(converter.dest_type),
        )
        return converter

    def add_profile(self, profile: MappingProfile) -> Mapper:
        """Apply a reusable bundle of configuration calls."""
        profile.configure(self)
        logger.debug("profile_applied", profile=type(profile).__qualname__)
        return self

    def _type_map(self, source_type: type, dest_type: type) -> TypeMapping:
        key = (unwrap_optional(source_type), unwrap_optional(dest_type))
        mapping = self._mappings.get(key)
        if mapping is not None:
            return mapping

        with self._lock:
            mapping = self._mappings.get(key)
            if mapping is None:
                mapping = TypeMapping(*key)
                auto_configure(mapping, self._cache)
                self._mappings[key] = mapping
                logger.debug(
                    "type_map_created",
                    source=_describe(key[0]),
                    dest=_describe(key[1]),
                    members=len(mapping.rules),
                )
                if self.optimization > OptimizationLevel.NONE:
                    self._strategies[key] = compile_strategy(mapping, self.optimization, self._converters)
        return mapping

    def _strategy(self, mapping: TypeMapping) -> CompiledStrategy | None:
        if self.optimization <= OptimizationLevel.POOLED:
            return None
        strategy = self._strategies.get(mapping.key)
        if strategy is not None and strategy.is_current(mapping, self._converters):
            return strategy

        with self._lock:
            strategy = self._strategies.get(mapping.key)
            if strategy is None or not strategy.is_current(mapping, self._converters):
                strategy = compile_strategy(mapping, self.optimization, self._converters)
                self._strategies[mapping.key] = strategy
        return strategy

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------

    def map(self, source: Any, dest_type: type[D]) -> D:
        """Map *source* to a new value of *dest_type*.

        ``dest_type`` may be a record type or a collection annotation such
        as ``list[UserDTO]``. A ``None`` source maps to ``None`` (or to an
        empty container for collection annotations, unless
        ``allow_null_collections`` is set).

        Raises:
            MappingException: when some value cannot be mapped; ``path``
                locates the failing field or element.
        """
        return self._map_value(source, dest_type, None)

    def map_to(self, source: Any, dest: D) -> D:
        """Map *source* into the existing *dest* in place and return it.

        Destination fields without a matching source field keep their values.
        """
        if source is None:
            return dest
        result = self._map_value(source, type(dest), dest)
        if result is dest:
            return dest
        if record_kind(type(dest)) is not RecordKind.NONE:
            # A converter produced a new instance; copy it over the target.
            for fd in self._cache.get_type_info(type(dest)).fields:
                fd.set(dest, fd.get(result))
        elif isinstance(dest, collections.abc.MutableMapping):
            dest.clear()
            dest.update(result)
        elif isinstance(dest, collections.abc.MutableSequence):
            dest[:] = result
        elif isinstance(dest, collections.abc.MutableSet):
            dest.clear()
            dest |= result
        else:
            raise IncompatibleTypesException(
                "destination cannot be updated in place", source_type=type(source), dest_type=type(dest)
            )
        return dest

    def map_list(self, sources: Iterable[Any] | None, dest_type: type[D]) -> list[D] | None:
        """Map each source to a new *dest_type* value, preserving order."""
        if sources is None:
            return None if self.allow_null_collections else []
        results: list[D] = []
        for index, source in enumerate(sources):
            try:
                results.append(self._map_value(source, dest_type, None))
            except MappingException as exc:
                raise ElementMappingException(
                    index, exc, source_type=type(source), dest_type=dest_type
                ) from exc
        return results

    def close(self) -> None:
        """Drop every cached type, mapping, converter and strategy."""
        with self._lock:
            self._mappings.clear()
            self._strategies.clear()
            self._converters.clear()
            self._cache.clear()

    def __enter__(self) -> Mapper:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Engine
    # ------------------------------------------------------------------

    def _map_value(self, value: Any, dest_hint: Any, current: Any) -> Any:
        """Return the value for a slot declared as *dest_hint* currently holding *current*."""
        dest_type = unwrap_optional(dest_hint)
        if value is None:
            if _is_sequence_type(dest_type) or _is_mapping_type(dest_type):
                return None if self.allow_null_collections else _empty_container(dest_type)
            return current

        converter = self._converters.find(type(value), dest_type)
        if converter is not None:
            return converter(value)

        if is_union(dest_type):
            return self._map_union(value, dest_type, current)

        if self._cache.get_type_info(type(value)).is_record:
            if record_kind(dest_type) is not RecordKind.NONE:
                return self._map_record(value, dest_type, current)
        elif _is_sequence_value(value):
            if _is_sequence_type(dest_type):
                return self._map_sequence(value, dest_type)
        elif isinstance(value, collections.abc.Mapping):
            if _is_mapping_type(dest_type):
                return self._map_mapping(value, dest_type)

        return assign_scalar(value, _leaf_class(dest_type))

    def _map_union(self, value: Any, dest_type: Any, current: Any) -> Any:
        members = get_args(dest_type)
        for member in members:
            if _is_plain_leaf(member) and is_assignable(value, member):
                return value
        errors: list[MappingException] = []
        for member in members:
            try:
                return self._map_value(value, member, current)
            except MappingException as exc:
                errors.append(exc)
        raise IncompatibleTypesException(
            "no member of the union accepts the value",
            source_type=type(value),
            dest_type=dest_type,
            cause=errors[-1] if errors else None,
        )

    def _map_record(self, source: Any, dest_type: type, current: Any) -> Any:
        mapping = self._type_map(type(source), dest_type)
        dest = current if isinstance(current, dest_type) else self._cache.get_type_info(dest_type).new_instance()

        strategy = self._strategy(mapping)
        if strategy is not None and strategy.usable_for(mapping):
            strategy.field_copy(source, dest, self._map_member)
            return dest

        for hook in mapping.before_hooks:
            self._run_hook(hook, "before_map", mapping, source, dest)

        custom = mapping.custom_transform
        if custom is not None:
            self._run_hook(custom, "custom_map", mapping, source, dest)
            return dest

        for rule in mapping.rules:
            self._map_member(source, dest, rule)

        for hook in mapping.after_hooks:
            self._run_hook(hook, "after_map", mapping, source, dest)
        return dest

    def _map_member(self, source: Any, dest: Any, rule: MemberRule) -> None:
        if rule.ignore:
            return
        if rule.condition is not None and not self._check_condition(source, rule):
            return

        if rule.resolver is not None:
            try:
                value = rule.resolver(source)
            except Exception as exc:
                raise ResolverException(
                    f"resolver error: {exc}",
                    source_type=type(source),
                    dest_type=rule.dest.declared_type,
                    field_name=rule.dest_name,
                    cause=exc,
                ) from exc
        elif rule.source_path or rule.source_name:
            value = rule.read(source)
        else:
            return

        if rule.converter is not None and value is not None:
            try:
                value = rule.converter(value)
            except MappingException as exc:
                exc.prepend(rule.dest_name)
                raise
            except Exception as exc:
                raise ConverterException(
                    f"converter error: {exc}",
                    source_type=type(value),
                    dest_type=rule.dest.declared_type,
                    field_name=rule.dest_name,
                    cause=exc,
                ) from exc

        current = rule.dest.get(dest)
        try:
            result = self._map_value(value, rule.dest.declared_type, current)
        except MappingException as exc:
            exc.prepend(rule.dest_name)
            raise
        if result is not current:
            rule.dest.set(dest, result)

    def _check_condition(self, source: Any, rule: MemberRule) -> bool:
        try:
            return bool(rule.condition(source))
        except Exception as exc:
            raise ResolverException(
                f"condition error: {exc}",
                source_type=type(source),
                dest_type=rule.dest.declared_type,
                field_name=rule.dest_name,
                cause=exc,
                code="CONDITION_FAILURE",
            ) from exc

    @staticmethod
    def _run_hook(hook: Hook, stage: str, mapping: TypeMapping, source: Any, dest: Any) -> None:
        try:
            hook(source, dest)
        except MappingException:
            raise
        except Exception as exc:
            raise HookException(
                f"{stage} hook error: {exc}",
                source_type=mapping.source_type,
                dest_type=mapping.dest_type,
                cause=exc,
                context={"stage": stage},
            ) from exc

    def _map_sequence(self, values: Any, dest_type: Any) -> Any:
        items = list(values)
        hints = _element_hints(dest_type, len(items))
        results: list[Any] = []
        for index, (item, hint) in enumerate(zip(items, hints)):
            try:
                results.append(self._map_value(item, hint, None))
            except MappingException as exc:
                raise ElementMappingException(
                    index, exc, source_type=type(values), dest_type=dest_type
                ) from exc

        origin = _origin(dest_type)
        if origin is tuple:
            return tuple(results)
        if origin is frozenset or origin in _SET_ORIGINS:
            factory = frozenset if origin is frozenset else set
            try:
                return factory(results)
            except TypeError as exc:
                raise IncompatibleTypesException(
                    f"set elements must be hashable: {exc}",
                    source_type=type(values),
                    dest_type=dest_type,
                    cause=exc,
                ) from exc
        return results

    def _map_mapping(self, values: collections.abc.Mapping[Any, Any], dest_type: Any) -> Any:
        args = get_args(dest_type)
        key_hint, value_hint = args if len(args) == 2 else (Any, Any)
        key_class = _leaf_class(unwrap_optional(key_hint))

        result = _empty_container(dest_type)
        for key, value in values.items():
            try:
                dest_key = assign_scalar(key, key_class)
            except IncompatibleTypesException as exc:
                raise IncompatibleMapKeyException(
                    f"cannot assign map key {key!r}",
                    source_type=type(key),
                    dest_type=key_hint,
                    cause=exc,
                ) from exc
            try:
                result[dest_key] = self._map_value(value, value_hint, None)
            except MappingException as exc:
                exc.prepend(str(dest_key))
                raise
        return result

    def __repr__(self) -> str:
        return (
            f"Mapper(optimization={self.optimization.name}, "
            f"allow_null_collections={self.allow_null_collections}, mappings={len(self._mappings)})"
        )
