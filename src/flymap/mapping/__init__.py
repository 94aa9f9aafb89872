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
"""flymap mapping — reflective object-to-object mapping engine.

Maps values between independently defined record types (dataclasses,
pydantic models, annotated plain classes) by matching field names,
flattening nested source records, and recursing through sequences and
mappings. Type mappings are derived automatically and refined through
the fluent builder returned by :meth:`Mapper.create_map`.
"""

from flymap.mapping.builder import (
    MemberOption,
    TypeMapBuilder,
    condition,
    ignore,
    map_from,
    map_from_func,
    use_converter,
)
from flymap.mapping.converters import ConverterRegistry, TypeConverter
from flymap.mapping.mapper import Mapper
from flymap.mapping.metadata import Embedded, FieldDescriptor, RecordKind, TypeCache, TypeInfo
from flymap.mapping.optimization import CompiledStrategy, OptimizationLevel
from flymap.mapping.profile import MappingProfile, ProfileMap, mapped_from, mapped_to
from flymap.mapping.properties import MapperProperties
from flymap.mapping.type_map import MemberRule, TypeMapping

__all__ = [
    "CompiledStrategy",
    "ConverterRegistry",
    "Embedded",
    "FieldDescriptor",
    "Mapper",
    "MapperProperties",
    "MappingProfile",
    "MemberOption",
    "MemberRule",
    "OptimizationLevel",
    "ProfileMap",
    "RecordKind",
    "TypeCache",
    "TypeConverter",
    "TypeInfo",
    "TypeMapBuilder",
    "TypeMapping",
    "condition",
    "ignore",
    "map_from",
    "map_from_func",
    "mapped_from",
    "mapped_to",
    "use_converter",
]
