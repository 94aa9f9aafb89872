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
"""Tests for type metadata — field descriptors, embedding and the type cache."""

import threading
import time
from dataclasses import dataclass, field
from typing import Annotated, ClassVar, Optional

import pytest
from pydantic import BaseModel, ConfigDict

from flymap.mapping.metadata import (
    Embedded,
    RecordKind,
    TypeCache,
    build_type_info,
    new_record,
    record_kind,
    split_name_parts,
    unwrap_optional,
)

# ---------------------------------------------------------------------------
# Test types
# ---------------------------------------------------------------------------


@dataclass
class Audit:
    created_by: str = ""
    version: int = 0


@dataclass
class Order:
    id: int
    audit: Annotated[Audit, Embedded]
    note: Optional[str] = None
    tags: list[str] = field(default_factory=list)


@dataclass
class VersionedOrder:
    version: str
    audit: Annotated[Audit, Embedded]


@dataclass
class BaseEntity:
    id: int = 0


@dataclass
class Customer(BaseEntity):
    name: str = ""


@dataclass(frozen=True)
class Money:
    amount: float = 0.0
    currency: str = "EUR"


class CustomerModel(BaseModel):
    name: str
    email: str = "unknown@example.com"


class FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str


class PlainAddress:
    registry: ClassVar[dict] = {}

    street: str
    city: str = "Lisbon"
    _internal: int = 0


class Depot:
    city: str = "Porto"


class Branch:
    address: Depot = Depot()


@dataclass(frozen=True)
class Stamp:
    created_by: str = ""


@dataclass
class Site:
    stamp: Stamp = Stamp(created_by="ops")


@dataclass
class Initialized:
    value: int = 1
    seen: bool = False

    def __post_init__(self) -> None:
        self.seen = True


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestRecordKind:
    def test_dataclass(self) -> None:
        assert record_kind(Order) is RecordKind.DATACLASS

    def test_pydantic_model(self) -> None:
        assert record_kind(CustomerModel) is RecordKind.PYDANTIC

    def test_annotated_plain_class(self) -> None:
        assert record_kind(PlainAddress) is RecordKind.PLAIN

    def test_builtins_and_generics_are_not_records(self) -> None:
        for tp in (int, str, list, dict, list[int], dict[str, int]):
            assert record_kind(tp) is RecordKind.NONE

    def test_unwrap_optional(self) -> None:
        assert unwrap_optional(Optional[Money]) is Money
        assert unwrap_optional(Money | None) is Money
        assert unwrap_optional(int) is int


class TestFieldCollection:
    def test_fields_in_declaration_order_with_embedded_promotion(self) -> None:
        info = build_type_info(Order)
        assert [fd.name for fd in info.fields] == ["id", "created_by", "version", "note", "tags"]

    def test_promoted_field_has_prefixed_path(self) -> None:
        info = build_type_info(Order)
        created_by = info.get_field("created_by")
        assert created_by is not None
        assert created_by.path == ("audit", "created_by")
        assert created_by.depth == 2
        assert info.get_field("audit") is None

    def test_shallower_field_shadows_promoted_field(self) -> None:
        info = build_type_info(VersionedOrder)
        version = info.get_field("version")
        assert version is not None
        assert version.path == ("version",)
        assert version.declared_type is str

    def test_optional_is_kept_in_declared_type(self) -> None:
        note = build_type_info(Order).get_field("note")
        assert note is not None
        assert note.declared_type == Optional[str]
        assert note.value_type is str

    def test_inherited_fields_come_first(self) -> None:
        info = build_type_info(Customer)
        assert [fd.name for fd in info.fields] == ["id", "name"]

    def test_frozen_dataclass_fields_are_immutable(self) -> None:
        info = build_type_info(Money)
        assert all(not fd.mutable for fd in info.fields)

    def test_pydantic_fields(self) -> None:
        info = build_type_info(CustomerModel)
        assert info.kind is RecordKind.PYDANTIC
        assert [fd.name for fd in info.fields] == ["name", "email"]
        assert all(fd.mutable for fd in info.fields)

    def test_frozen_pydantic_fields_are_immutable(self) -> None:
        code = build_type_info(FrozenModel).get_field("code")
        assert code is not None
        assert code.mutable is False

    def test_plain_class_skips_classvars_and_private_names(self) -> None:
        info = build_type_info(PlainAddress)
        assert [fd.name for fd in info.fields] == ["street", "city"]

    def test_non_record_type_yields_empty_info(self) -> None:
        info = build_type_info(int)
        assert info.is_record is False
        assert info.fields == ()


class TestFieldAccess:
    def test_get_through_embedded_path(self) -> None:
        order = Order(id=1, audit=Audit(created_by="alice"))
        created_by = build_type_info(Order).get_field("created_by")
        assert created_by is not None
        assert created_by.get(order) == "alice"

    def test_get_through_unset_embedded_record_is_none(self) -> None:
        order = Order(id=1, audit=None)  # type: ignore[arg-type]
        created_by = build_type_info(Order).get_field("created_by")
        assert created_by is not None
        assert created_by.get(order) is None

    def test_set_allocates_unset_embedded_record(self) -> None:
        order = Order(id=1, audit=None)  # type: ignore[arg-type]
        created_by = build_type_info(Order).get_field("created_by")
        assert created_by is not None
        created_by.set(order, "bob")
        assert isinstance(order.audit, Audit)
        assert order.audit.created_by == "bob"
        assert order.audit.version == 0

    def test_set_on_frozen_dataclass(self) -> None:
        money = Money(amount=1.0)
        amount = build_type_info(Money).get_field("amount")
        assert amount is not None
        amount.set(money, 2.5)
        assert money.amount == 2.5


class TestNewRecord:
    def test_dataclass_defaults_and_factories(self) -> None:
        order = new_record(Order)
        assert order.id is None
        assert order.note is None
        assert order.tags == []
        assert new_record(Order).tags is not order.tags

    def test_post_init_is_not_run(self) -> None:
        blank = new_record(Initialized)
        assert blank.value == 1
        assert blank.seen is False

    def test_pydantic_blank_instance_skips_validation(self) -> None:
        blank = new_record(CustomerModel)
        assert isinstance(blank, CustomerModel)
        assert blank.name is None
        assert blank.email == "unknown@example.com"

    def test_plain_class_defaults(self) -> None:
        blank = new_record(PlainAddress)
        assert blank.street is None
        assert blank.city == "Lisbon"

    def test_record_defaults_are_copied_per_instance(self) -> None:
        first = new_record(Branch)
        second = new_record(Branch)

        assert first.address is not second.address
        assert first.address is not Branch.address
        assert first.address.city == "Porto"

        site = new_record(Site)
        assert site.stamp == Stamp(created_by="ops")
        assert site.stamp is not Site.__dataclass_fields__["stamp"].default


class TestTypeCache:
    def test_info_is_built_once(self) -> None:
        cache = TypeCache()
        first = cache.get_type_info(Order)
        assert cache.get_type_info(Order) is first
        assert Order in cache
        assert len(cache) == 1

    def test_optional_shares_entry_with_inner_type(self) -> None:
        cache = TypeCache()
        assert cache.get_type_info(Optional[Money]) is cache.get_type_info(Money)

    def test_field_descriptors_are_shared(self) -> None:
        cache = TypeCache()
        first = cache.get_type_info(Customer).get_field("name")
        assert cache.get_type_info(Customer).get_field("name") is first

    def test_clear(self) -> None:
        cache = TypeCache()
        cache.get_type_info(Order)
        cache.clear()
        assert len(cache) == 0

    def test_concurrent_first_use_builds_once(self, monkeypatch: pytest.MonkeyPatch) -> None:
        from flymap.mapping import metadata

        built: list[type] = []
        original = metadata.build_type_info

        def counting_build(tp):
            built.append(tp)
            time.sleep(0.01)
            return original(tp)

        monkeypatch.setattr(metadata, "build_type_info", counting_build)

        cache = TypeCache()
        barrier = threading.Barrier(8)
        infos: list[object] = []

        def worker() -> None:
            barrier.wait()
            infos.append(cache.get_type_info(Customer))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert built == [Customer]
        assert len(infos) == 8
        assert all(info is infos[0] for info in infos)


class TestNameParts:
    def test_snake_case(self) -> None:
        assert split_name_parts("customer_name") == ["customer", "name"]

    def test_pascal_case(self) -> None:
        assert split_name_parts("CustomerName") == ["Customer", "Name"]

    def test_camel_case(self) -> None:
        assert split_name_parts("customerName") == ["customer", "Name"]

    def test_single_word(self) -> None:
        assert split_name_parts("total") == ["total"]
