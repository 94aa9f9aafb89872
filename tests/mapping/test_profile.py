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
"""Tests for MappingProfile — reusable, replayable mapping configuration."""

import sys
from dataclasses import dataclass

from flymap.mapping import Mapper, MappingProfile, ignore, map_from, mapped_from, mapped_to

# ---------------------------------------------------------------------------
# Test types
# ---------------------------------------------------------------------------


@dataclass
class Account:
    owner: str = ""
    iban: str = ""
    balance: float = 0.0


@dataclass
class AccountDTO:
    holder: str = ""
    iban: str = ""
    balance: float = 0.0


@mapped_from(Account)
@dataclass
class AccountView:
    owner: str = ""
    balance: float = 0.0


@dataclass
class AccountRow:
    owner: str = ""


@mapped_to(AccountRow)
@dataclass
class AccountCommand:
    owner: str = ""


class AccountProfile(MappingProfile):
    def __init__(self) -> None:
        super().__init__()
        self.create_map(Account, AccountDTO) \
            .for_member("holder", map_from("owner")) \
            .for_member("iban", ignore()) \
            .reverse_map() \
            .for_member("owner", map_from("holder"))


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestMappingProfile:
    def test_profile_configuration_is_applied(self):
        mapper = Mapper().add_profile(AccountProfile())

        dto = mapper.map(Account(owner="ana", iban="PT50", balance=10.0), AccountDTO)

        assert dto == AccountDTO(holder="ana", iban="", balance=10.0)

    def test_reverse_map_calls_configure_reverse_direction(self):
        mapper = Mapper().add_profile(AccountProfile())

        account = mapper.map(AccountDTO(holder="rui", iban="PT50"), Account)

        assert account.owner == "rui"
        assert account.iban == "PT50"

    def test_profile_is_reusable_across_mappers(self):
        profile = AccountProfile()
        first, second = Mapper().add_profile(profile), Mapper().add_profile(profile)

        assert first.get_type_map(Account, AccountDTO) is not second.get_type_map(Account, AccountDTO)
        assert second.map(Account(owner="x"), AccountDTO).holder == "x"

    def test_configure_can_be_overridden(self):
        class DirectProfile(MappingProfile):
            def configure(self, mapper: Mapper) -> None:
                mapper.create_map(Account, AccountDTO).for_member("holder", map_from("iban"))

        mapper = Mapper().add_profile(DirectProfile())

        assert mapper.map(Account(iban="PT50"), AccountDTO).holder == "PT50"


class TestProfileScanning:
    def test_scan_classes(self):
        profile = MappingProfile().scan(AccountView, AccountCommand)

        pairs = [(m.source_type, m.dest_type) for m in profile.maps]

        assert pairs == [(Account, AccountView), (AccountCommand, AccountRow)]

    def test_scan_module(self):
        profile = MappingProfile().scan(sys.modules[__name__])
        mapper = Mapper().add_profile(profile)

        assert mapper.get_type_map(Account, AccountView) is not None
        assert mapper.get_type_map(AccountCommand, AccountRow) is not None
        assert mapper.map(Account(owner="ana", balance=2.0), AccountView) == AccountView(owner="ana", balance=2.0)
