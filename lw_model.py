#!/usr/bin/env python3
"""
Logic World Save Model
======================

In-memory model of a `data.logicworld` world save.

Model Overview:
--------------
| Type       | Contents                                                   |
|------------|------------------------------------------------------------|
| Version    | 4 x int32 (game and mod versions)                          |
| Vec3       | 3 x int32 grid position                                    |
| Quat       | 4 x float32 rotation, stored verbatim (NaN bits kept)      |
| CompMap    | uint16 type id <-> type name, kept bijective               |
| Component  | address, parent, type name, transform, pegs, custom data   |
| PegAddress | input/output tag, component address, peg index             |
| Wire       | start peg, end peg, state id, rotation                     |
| SaveFile   | all of the above + packed state bits + allocator marks     |

Components refer to their type by name. The numeric id only exists on the
wire and is resolved through the CompMap by the parser and serializer.

Custom Data:
-----------
Component payloads form a closed set of variants keyed by type name:

| Type name                      | Variant     | Layout                      |
|--------------------------------|-------------|-----------------------------|
| MHG.Switch, MHG.Button         | SwitchData  | R, G, B, on (nonzero=true)  |
| MHG.StandingDisplay            | DisplayData | uint32 LE color mode        |
| anything else                  | UnknownData | raw bytes, passed through   |
"""

import struct
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple, Union

from lw_errors import InvalidCustomData, MissingTypeMapping, TypeIdsExhausted

MAX_TYPE_ID = 0xFFFF


# =============================================================================
# Value Types
# =============================================================================

@dataclass
class Version:
    major: int = 0
    minor: int = 0
    patch: int = 0
    build: int = 0

    def __iter__(self):
        return iter((self.major, self.minor, self.patch, self.build))

    def __str__(self):
        return f"{self.major}.{self.minor}.{self.patch}.{self.build}"


@dataclass
class Vec3:
    x: int = 0
    y: int = 0
    z: int = 0

    def __iter__(self):
        return iter((self.x, self.y, self.z))


@dataclass
class Quat:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    w: float = 0.0

    def __iter__(self):
        return iter((self.x, self.y, self.z, self.w))


class NanF32(float):
    """A NaN read from a float32 field. `bits` is the exact stored pattern."""

    def __new__(cls, bits: int):
        self = super().__new__(cls, 'nan')
        self.bits = bits
        return self

    def __getnewargs__(self):
        return (self.bits,)

    def __repr__(self):
        return f"NanF32(0x{self.bits:08X})"


# =============================================================================
# Type Dictionary
# =============================================================================

class CompMap:
    """
    Bidirectional component type dictionary.

    Both directions are updated together so that every id maps to exactly one
    name and back. Ids are never reused or compacted: `ensure` always hands out
    one more than the highest id present.
    """

    def __init__(self, pairs=None):
        self._by_id: Dict[int, str] = {}
        self._by_name: Dict[str, int] = {}
        for type_id, name in pairs or ():
            self.insert(type_id, name)

    def insert(self, type_id: int, name: str):
        old_name = self._by_id.pop(type_id, None)
        if old_name is not None:
            del self._by_name[old_name]
        old_id = self._by_name.pop(name, None)
        if old_id is not None:
            del self._by_id[old_id]
        self._by_id[type_id] = name
        self._by_name[name] = type_id

    def get_name(self, type_id: int) -> str:
        try:
            return self._by_id[type_id]
        except KeyError:
            raise MissingTypeMapping(type_id) from None

    def get_id(self, name: str) -> int:
        try:
            return self._by_name[name]
        except KeyError:
            raise MissingTypeMapping(name) from None

    def ensure(self, name: str) -> int:
        """Return the id for `name`, assigning max(ids) + 1 if it is new."""
        if name in self._by_name:
            return self._by_name[name]
        new_id = max(self._by_id, default=0) + 1
        if new_id > MAX_TYPE_ID:
            raise TypeIdsExhausted(f"no type id above {MAX_TYPE_ID} left for {name!r}")
        self.insert(new_id, name)
        return new_id

    def clear(self):
        self._by_id.clear()
        self._by_name.clear()

    def items(self) -> Iterator[Tuple[int, str]]:
        return iter(list(self._by_id.items()))

    def __len__(self):
        return len(self._by_id)

    def __contains__(self, name):
        return name in self._by_name

    def __eq__(self, other):
        if not isinstance(other, CompMap):
            return NotImplemented
        return self._by_id == other._by_id

    def __repr__(self):
        return f"CompMap({dict(self._by_id)!r})"


# =============================================================================
# Custom Data Variants
# =============================================================================

@dataclass
class SwitchData:
    """Payload of MHG.Switch and MHG.Button."""
    color: Tuple[int, int, int] = (0, 0, 0)
    on: bool = False
    extra: bytes = b''  # trailing bytes beyond the 4 understood ones

    @classmethod
    def parse(cls, data: bytes) -> 'SwitchData':
        if len(data) < 4:
            raise InvalidCustomData(f"switch payload is {len(data)} bytes, need 4")
        return cls(color=(data[0], data[1], data[2]), on=data[3] != 0,
                   extra=bytes(data[4:]))

    def to_bytes(self) -> bytes:
        try:
            r, g, b = self.color
            return bytes([r, g, b, 1 if self.on else 0]) + self.extra
        except (TypeError, ValueError):
            raise InvalidCustomData(f"switch color {self.color!r} is not 3 bytes") from None


@dataclass
class DisplayData:
    """Payload of MHG.StandingDisplay."""
    color_mode: int = 0
    extra: bytes = b''

    @classmethod
    def parse(cls, data: bytes) -> 'DisplayData':
        if len(data) < 4:
            raise InvalidCustomData(f"display payload is {len(data)} bytes, need 4")
        return cls(color_mode=struct.unpack('<I', data[0:4])[0], extra=bytes(data[4:]))

    def to_bytes(self) -> bytes:
        try:
            return struct.pack('<I', self.color_mode) + self.extra
        except struct.error:
            raise InvalidCustomData(f"display color mode {self.color_mode} is not a uint32") from None


@dataclass
class UnknownData:
    """Payload of a type this codec does not understand, kept byte for byte."""
    raw: bytes = b''

    @classmethod
    def parse(cls, data: bytes) -> 'UnknownData':
        return cls(raw=bytes(data))

    def to_bytes(self) -> bytes:
        return self.raw


CustomData = Union[SwitchData, DisplayData, UnknownData]

CUSTOM_DATA_TYPES = {
    "MHG.Switch": SwitchData,
    "MHG.Button": SwitchData,
    "MHG.StandingDisplay": DisplayData,
}


def parse_custom_data(type_name: str, data: bytes) -> CustomData:
    """Decode a raw payload into the variant registered for `type_name`."""
    variant = CUSTOM_DATA_TYPES.get(type_name, UnknownData)
    return variant.parse(data)


def custom_data_to_bytes(data: CustomData, type_name: Optional[str] = None) -> bytes:
    """
    Encode a payload. With `type_name`, the payload must be the variant the
    decoder will pick for that type, or InvalidCustomData is raised.
    """
    if type_name is not None:
        variant = CUSTOM_DATA_TYPES.get(type_name, UnknownData)
        if type(data) is not variant:
            raise InvalidCustomData(
                f"{type_name} needs {variant.__name__} custom data, got {type(data).__name__}")
    return data.to_bytes()


# =============================================================================
# Records
# =============================================================================

class PegType(Enum):
    INPUT = 1
    OUTPUT = 2


@dataclass
class PegAddress:
    type: PegType
    component: int
    index: int


@dataclass
class Wire:
    start: PegAddress
    end: PegAddress
    state_id: int
    rotation: float = 0.0


@dataclass
class Component:
    address: int
    parent: int
    id: str                       # type name, resolved through CompMap on the wire
    position: Vec3 = field(default_factory=Vec3)
    rotation: Quat = field(default_factory=Quat)
    inputs: List[int] = field(default_factory=list)
    outputs: List[int] = field(default_factory=list)
    custom_data: CustomData = field(default_factory=UnknownData)


# =============================================================================
# Save File
# =============================================================================

@dataclass
class SaveFile:
    """
    A complete world save.

    `highest_state_id` and `highest_address` are allocator high-water marks,
    not file contents; they take no part in equality.
    """
    game_version: Version = field(default_factory=Version)
    mod_versions: Dict[str, Version] = field(default_factory=dict)
    comp_map: CompMap = field(default_factory=CompMap)
    components: List[Component] = field(default_factory=list)
    wires: List[Wire] = field(default_factory=list)
    states: bytearray = field(default_factory=bytearray)
    highest_state_id: int = field(default=0, compare=False)
    highest_address: int = field(default=1, compare=False)

    def __post_init__(self):
        self.states = bytearray(self.states)

    def reset(self):
        """Drop components, wires, types and states; keep version metadata."""
        self.comp_map.clear()
        self.components.clear()
        self.wires.clear()
        self.states = bytearray()
        self.highest_state_id = 0
        self.highest_address = 1

    def next_state_id(self) -> int:
        self.highest_state_id += 1
        while self.highest_state_id // 8 >= len(self.states):
            self.states.append(0)
        return self.highest_state_id

    def next_address(self) -> int:
        self.highest_address += 1
        return self.highest_address

    def get_state(self, state_id: int) -> bool:
        byte_index, bit = divmod(state_id, 8)
        if state_id < 0 or byte_index >= len(self.states):
            raise IndexError(f"state id {state_id} outside {len(self.states)}-byte state buffer")
        return bool(self.states[byte_index] >> bit & 1)

    def set_state(self, state_id: int, value: bool):
        byte_index, bit = divmod(state_id, 8)
        if state_id < 0 or byte_index >= len(self.states):
            raise IndexError(f"state id {state_id} outside {len(self.states)}-byte state buffer")
        if value:
            self.states[byte_index] |= 1 << bit
        else:
            self.states[byte_index] &= ~(1 << bit) & 0xFF

    def component_by_address(self, address: int) -> Optional[Component]:
        for comp in self.components:
            if comp.address == address:
                return comp
        return None
