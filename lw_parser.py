#!/usr/bin/env python3
"""
Logic World Save Parser
=======================

Parser for Logic World `data.logicworld` world saves.

File Structure:
--------------
| Section          | Layout                                                  |
|------------------|---------------------------------------------------------|
| Header           | 16 bytes ASCII "Logic World save"                       |
| Format version   | u8, must be 7                                           |
| Game version     | 4 x i32                                                 |
| Save type        | u8, must be 1 (world)                                   |
| Component count  | i32                                                     |
| Wire count       | i32                                                     |
| Mod table        | i32 count, then (text name, 4 x i32 version) x count    |
| Type dictionary  | i32 count, then (u16 id, text name) x count             |
| Components       | component record x component count                      |
| Wires            | wire record x wire count                                |
| States           | i32 byte count, then raw bytes                          |
| Footer           | 16 bytes ASCII "redstone sux lol"                       |

Component record:
----------------
| Field          | Type                                                      |
|----------------|-----------------------------------------------------------|
| address        | u32                                                       |
| parent         | u32 (0 = root)                                            |
| type id        | u16, resolved through the type dictionary                 |
| position       | 3 x i32                                                   |
| rotation       | 4 x f32                                                   |
| inputs         | i32 count, then i32 state id x count                      |
| outputs        | i32 count, then i32 state id x count                      |
| custom data    | i32 byte count (negative = 0), then raw payload           |

Wire record:
-----------
    [peg type u8] [component u32] [index i32]   start peg (1 = input, 2 = output)
    [peg type u8] [component u32] [index i32]   end peg
    [state id i32] [rotation f32]

The type dictionary must be read before any component, and the state id
high-water mark accumulates over every component and wire, so the file can
only be parsed front to back.

Usage:
------
    python lw_parser.py data.logicworld
    python lw_parser.py data.logicworld --components 20
    python lw_parser.py data.logicworld --verify -v
"""

import sys
import os
import io
import argparse

from lw_errors import (FooterMismatch, HeaderMismatch, SaveFormatError,
                       UnknownPegType, UnsupportedFormatVersion,
                       UnsupportedSaveType, context)
from lw_model import (CompMap, Component, PegAddress, PegType, SaveFile, Wire,
                      UnknownData, parse_custom_data)
from lw_stream import (FOOTER_MAGIC, FORMAT_VERSION, HEADER_MAGIC,
                       SAVE_TYPE_WORLD, SaveReader)


class SaveParser:
    """Decoder for Logic World world saves"""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self.reader = None
        self.comp_map = CompMap()
        self.highest_state_id = 0

    def _log(self, message: str):
        if self.verbose:
            print(f"  0x{self.reader.offset:06X}: {message}")

    def parse(self, stream) -> SaveFile:
        """
        Parse a complete save from a binary stream.

        Args:
            stream: Binary stream positioned at the start of the save

        Returns:
            Fully populated SaveFile

        Raises:
            SaveFormatError: on any structural problem; no partial model is returned
        """
        self.reader = SaveReader(stream)
        self.comp_map = CompMap()
        self.highest_state_id = 0

        with context("validating header"):
            self.reader.expect_magic(HEADER_MAGIC, HeaderMismatch)
        with context("validating format version"):
            self._expect_tag(FORMAT_VERSION, UnsupportedFormatVersion)
        with context("reading game version"):
            game_version = self.reader.read_version()
        with context("validating save type"):
            self._expect_tag(SAVE_TYPE_WORLD, UnsupportedSaveType)
        self._log(f"game version {game_version}")

        with context("reading component count"):
            num_components = self.reader.read_i32()
        with context("reading wire count"):
            num_wires = self.reader.read_i32()
        self._log(f"{num_components} components, {num_wires} wires")

        with context("reading mod versions"):
            mod_versions = self.read_mod_versions()
        with context("reading component type dictionary"):
            self.read_comp_map()

        components = []
        for i in range(num_components):
            with context(f"reading component #{i}"):
                components.append(self.read_component())

        wires = []
        for i in range(num_wires):
            with context(f"reading wire #{i}"):
                wires.append(self.read_wire())

        with context("reading states"):
            num_states = self.reader.read_i32()
            states = bytearray(self.reader.read_bytes(num_states))
        self._log(f"{len(states)} state bytes")

        with context("validating footer"):
            self.reader.expect_magic(FOOTER_MAGIC, FooterMismatch)

        highest_address = max((comp.address for comp in components), default=1)

        return SaveFile(
            game_version=game_version,
            mod_versions=mod_versions,
            comp_map=self.comp_map,
            components=components,
            wires=wires,
            states=states,
            highest_state_id=self.highest_state_id,
            highest_address=highest_address,
        )

    def _expect_tag(self, expected: int, error_cls):
        offset = self.reader.offset
        observed = self.reader.read_u8()
        if observed != expected:
            raise error_cls(expected, observed, offset)

    def read_mod_versions(self) -> dict:
        count = self.reader.read_i32()
        mods = {}
        for i in range(count):
            with context(f"reading mod #{i}"):
                name = self.reader.read_text()
                version = self.reader.read_version()
            if self.verbose and name in mods:
                self._log(f"duplicate mod {name!r}, keeping last version {version}")
            mods[name] = version
        return mods

    def read_comp_map(self):
        count = self.reader.read_i32()
        for i in range(count):
            with context(f"reading type entry #{i}"):
                type_id = self.reader.read_u16()
                name = self.reader.read_text()
            self.comp_map.insert(type_id, name)
        self._log(f"{len(self.comp_map)} component types")

    def read_state_id(self) -> int:
        state_id = self.reader.read_i32()
        self.highest_state_id = max(self.highest_state_id, state_id)
        return state_id

    def read_component(self) -> Component:
        reader = self.reader
        address = reader.read_u32()
        parent = reader.read_u32()
        with context("resolving component type"):
            type_name = self.comp_map.get_name(reader.read_u16())
        position = reader.read_vec3()
        rotation = reader.read_quat()

        with context("reading inputs"):
            inputs = [self.read_state_id() for _ in range(reader.read_i32())]
        with context("reading outputs"):
            outputs = [self.read_state_id() for _ in range(reader.read_i32())]

        with context("reading custom data"):
            payload = reader.read_bytes(reader.read_i32())
            custom_data = parse_custom_data(type_name, payload)

        return Component(
            address=address,
            parent=parent,
            id=type_name,
            position=position,
            rotation=rotation,
            inputs=inputs,
            outputs=outputs,
            custom_data=custom_data,
        )

    def read_peg_address(self) -> PegAddress:
        offset = self.reader.offset
        tag = self.reader.read_u8()
        try:
            peg_type = PegType(tag)
        except ValueError:
            raise UnknownPegType(tag, offset) from None
        return PegAddress(peg_type, self.reader.read_u32(), self.reader.read_i32())

    def read_wire(self) -> Wire:
        with context("reading start peg"):
            start = self.read_peg_address()
        with context("reading end peg"):
            end = self.read_peg_address()
        state_id = self.read_state_id()
        rotation = self.reader.read_f32()
        return Wire(start=start, end=end, state_id=state_id, rotation=rotation)


def parse_save(source, verbose: bool = False) -> SaveFile:
    """Parse a save from bytes or a binary stream."""
    if isinstance(source, (bytes, bytearray, memoryview)):
        source = io.BytesIO(bytes(source))
    return SaveParser(verbose=verbose).parse(source)


def load_save(filepath: str, verbose: bool = False) -> SaveFile:
    """Open, parse and close a save file."""
    with open(filepath, 'rb') as f:
        return SaveParser(verbose=verbose).parse(f)


# =============================================================================
# Command Line
# =============================================================================

def describe_custom_data(data) -> str:
    if isinstance(data, UnknownData):
        return f"{len(data.raw)} raw bytes"
    return repr(data)


def print_summary(save: SaveFile, max_components: int = 10):
    print(f"Game version: {save.game_version}")
    print()

    print(f"Mods ({len(save.mod_versions)}):")
    print("-" * 70)
    for name, version in save.mod_versions.items():
        print(f"  {name:40s} {version}")
    print()

    print(f"Component types ({len(save.comp_map)}):")
    print("-" * 70)
    for type_id, name in save.comp_map.items():
        count = sum(1 for comp in save.components if comp.id == name)
        print(f"  0x{type_id:04X}  {name:40s} x{count}")
    print()

    print(f"Components: {len(save.components):,}")
    print(f"Wires:      {len(save.wires):,}")
    print(f"States:     {len(save.states):,} bytes (highest state id {save.highest_state_id})")
    print(f"Highest address: {save.highest_address}")

    if max_components and save.components:
        print()
        print(f"First {min(max_components, len(save.components))} components:")
        print("-" * 70)
        for comp in save.components[:max_components]:
            print(f"  #{comp.address:<8d} {comp.id:24s} parent={comp.parent} "
                  f"pos=({comp.position.x}, {comp.position.y}, {comp.position.z}) "
                  f"in={len(comp.inputs)} out={len(comp.outputs)} "
                  f"data={describe_custom_data(comp.custom_data)}")


def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(
        description='Logic World Save Parser',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python lw_parser.py data.logicworld
  python lw_parser.py data.logicworld --components 0
  python lw_parser.py data.logicworld --verify
"""
    )
    parser.add_argument('savefile', help='Path to data.logicworld')
    parser.add_argument('--components', '-c', type=int, default=10,
                        help='Number of components to list (default: 10)')
    parser.add_argument('--verify', action='store_true',
                        help='Re-encode the save and check it is byte-identical')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Print per-section offsets while parsing')

    args = parser.parse_args()

    if not os.path.exists(args.savefile):
        print(f"ERROR: File not found: {args.savefile}")
        return 1

    print("=" * 70)
    print("Logic World Save Parser")
    print("=" * 70)
    print(f"\nFile: {args.savefile}")
    print(f"Total size: {os.path.getsize(args.savefile):,} bytes")
    print()

    try:
        save = load_save(args.savefile, verbose=args.verbose)
    except (SaveFormatError, OSError) as e:
        print(f"ERROR: {e}")
        return 1
    except Exception as e:
        print(f"ERROR: {e}")
        import traceback
        traceback.print_exc()
        return 1

    print_summary(save, args.components)

    if args.verify:
        from lw_serializer import compare_files, serialize_save

        with open(args.savefile, 'rb') as f:
            original = f.read()
        try:
            rebuilt = serialize_save(save)
        except SaveFormatError as e:
            print(f"ERROR: {e}")
            return 1
        if not compare_files(rebuilt, original, "Re-encoded", "Original"):
            return 1

    print("\n" + "=" * 70)
    print("SUCCESS: Save parsed")
    print("=" * 70)
    return 0


if __name__ == "__main__":
    sys.exit(main())
