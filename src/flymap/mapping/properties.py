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
"""Mapper configuration properties."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from flymap.core.config import config_properties
from flymap.mapping.optimization import OptimizationLevel


@config_properties(prefix="flymap.mapper")
class MapperProperties(BaseModel):
    """Configuration for a Mapper instance (flymap.mapper.*).

    Attributes:
        allow_null_collections: Map an absent source sequence/mapping to an
            absent destination instead of an empty container.
        optimization: Optimization tier used to compile type mappings.
    """

    model_config = ConfigDict(frozen=True)

    allow_null_collections: bool = False
    optimization: OptimizationLevel = OptimizationLevel.NONE

    @field_validator("optimization", mode="before")
    @classmethod
    def _parse_optimization(cls, value: Any) -> OptimizationLevel:
        return OptimizationLevel.parse(value)
