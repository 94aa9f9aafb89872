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
"""Mapping profiles: reusable bundles of configuration calls.

A profile records ``create_map`` chains and replays them against any
mapper it is added to::

    class OrderProfile(MappingProfile):
        def __init__(self) -> None:
            super().__init__()
            self.create_map(Order, OrderDTO).for_member("buyer", map_from("customer.name"))
            self.scan(dtos)  # classes decorated with @mapped_from / @mapped_to

    mapper.add_profile(OrderProfile())
"""

from __future__ import annotations

import inspect
import types
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, TypeVar

if TYPE_CHECKING:
    from flymap.mapping.builder import MemberOption, TypeMapBuilder
    from flymap.mapping.mapper import Mapper

T = TypeVar("T", bound=type)

_MAP_FROM_ATTR = "__flymap_map_from__"
_MAP_TO_ATTR = "__flymap_map_to__"


def mapped_from(source_type: type) -> Callable[[T], T]:
    """Class decorator: the decorated type is mapped from *source_type* when scanned."""

    def decorator(cls: T) -> T:
        setattr(cls, _MAP_FROM_ATTR, source_type)
        return cls

    return decorator


def mapped_to(dest_type: type) -> Callable[[T], T]:
    """Class decorator: the decorated type is mapped to *dest_type* when scanned."""

    def decorator(cls: T) -> T:
        setattr(cls, _MAP_TO_ATTR, dest_type)
        return cls

    return decorator


class ProfileMap:
    """A recorded ``create_map`` chain, replayed on :meth:`apply`."""

    def __init__(self, source_type: type, dest_type: type) -> None:
        self.source_type = source_type
        self.dest_type = dest_type
        self._calls: list[tuple[str, tuple[Any, ...]]] = []

    def _record(self, method: str, *args: Any) -> ProfileMap:
        self._calls.append((method, args))
        return self

    def for_member(self, dest_member: str, *options: MemberOption) -> ProfileMap:
        return self._record("for_member", dest_member, *options)

    def ignore_members(self, *dest_members: str) -> ProfileMap:
        return self._record("ignore_members", *dest_members)

    def before_map(self, hook: Callable[[Any, Any], None]) -> ProfileMap:
        return self._record("before_map", hook)

    def after_map(self, hook: Callable[[Any, Any], None]) -> ProfileMap:
        return self._record("after_map", hook)

    def custom_map(self, transform: Callable[[Any, Any], None]) -> ProfileMap:
        return self._record("custom_map", transform)

    def reverse_map(self) -> ProfileMap:
        """Subsequent calls configure the reverse mapping."""
        return self._record("reverse_map")

    def apply(self, mapper: Mapper) -> TypeMapBuilder[Any, Any]:
        builder = mapper.create_map(self.source_type, self.dest_type)
        for method, args in self._calls:
            builder = getattr(builder, method)(*args)
        return builder


class MappingProfile:
    """Base class for reusable mapping configuration.

    Subclasses record maps in ``__init__`` via :meth:`create_map` and
    :meth:`scan`, or override :meth:`configure` to call the mapper directly.
    """

    def __init__(self) -> None:
        self._maps: list[ProfileMap] = []

    @property
    def maps(self) -> list[ProfileMap]:
        return list(self._maps)

    def create_map(self, source_type: type, dest_type: type) -> ProfileMap:
        profile_map = ProfileMap(source_type, dest_type)
        self._maps.append(profile_map)
        return profile_map

    def scan(self, *targets: types.ModuleType | type) -> MappingProfile:
        """Record maps for classes decorated with :func:`mapped_from` / :func:`mapped_to`.

        Targets are modules (every class defined in them is inspected) or
        classes.
        """
        for target in targets:
            if isinstance(target, types.ModuleType):
                candidates = [
                    cls for _, cls in inspect.getmembers(target, inspect.isclass)
                    if cls.__module__ == target.__name__
                ]
            else:
                candidates = [target]
            for cls in candidates:
                source_type = cls.__dict__.get(_MAP_FROM_ATTR)
                if source_type is not None:
                    self.create_map(source_type, cls)
                dest_type = cls.__dict__.get(_MAP_TO_ATTR)
                if dest_type is not None:
                    self.create_map(cls, dest_type)
        return self

    def configure(self, mapper: Mapper) -> None:
        """Apply every recorded map to *mapper*."""
        for profile_map in self._maps:
            profile_map.apply(mapper)
