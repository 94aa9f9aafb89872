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
"""flymap — convention-based object-to-object mapping.

Usage::

    from flymap import Mapper, map_from

    mapper = Mapper()
    mapper.create_map(Order, OrderDTO).for_member("buyer", map_from("customer.name"))
    dto = mapper.map(order, OrderDTO)
"""

from flymap.core import Config, config_properties
from flymap.kernel import (
    ConfigurationException,
    FlymapException,
    MappingException,
)
from flymap.mapping import (
    Embedded,
    Mapper,
    MapperProperties,
    MappingProfile,
    OptimizationLevel,
    condition,
    ignore,
    map_from,
    map_from_func,
    mapped_from,
    mapped_to,
    use_converter,
)

__version__ = "0.1.0"

__all__ = [
    "Config",
    "ConfigurationException",
    "Embedded",
    "FlymapException",
    "Mapper",
    "MapperProperties",
    "MappingException",
    "MappingProfile",
    "OptimizationLevel",
    "condition",
    "config_properties",
    "ignore",
    "map_from",
    "map_from_func",
    "mapped_from",
    "mapped_to",
    "use_converter",
]
