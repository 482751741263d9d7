#!/usr/bin/env python3
"""
Logic World Save Serializer
===========================

Rebuilds a `data.logicworld` file from a SaveFile, mirroring the parser's
read order section for section (see lw_parser.py for the layout).

The whole file is assembled in memory first. `write_save()` then commits it
by writing a temporary file next to the target and renaming it over the
original, so a failed encode or an interrupted write never leaves a
half-written save behind.

Wire Encoding:
-------------
Saves written by earlier versions of the editing tool carry the start peg twice in
every wire record (the end peg was never written). `wire_start_twice=True`
reproduces that output for byte comparison against such files; the default
writes start then end.

Usage:
------
    python lw_serializer.py data.logicworld -o rebuilt.logicworld
    python lw_serializer.py data.logicworld -o rebuilt.logicworld --compare
"""

import sys
import os
import argparse
import tempfile

from lw_errors import SaveFormatError, context
from lw_model import Component, PegAddress, SaveFile, Wire, custom_data_to_bytes
from lw_stream import (FOOTER_MAGIC, FORMAT_VERSION, HEADER_MAGIC,
                       SAVE_TYPE_WORLD, SaveWriter)

MAX_REPORTED_DIFFS = 10


class SaveSerializer:
    """Encoder for Logic World world saves."""

    def __init__(self, wire_start_twice: bool = False, verbose: bool = False):
        self.wire_start_twice = wire_start_twice
        self.verbose = verbose
        self.writer = None

    def _log(self, message: str):
        if self.verbose:
            print(f"  0x{len(self.writer):06X}: {message}")

    def serialize(self, save: SaveFile) -> bytes:
        """Serialize a SaveFile into a complete save file image."""
        self.writer = SaveWriter()
        writer = self.writer

        writer.write_raw(HEADER_MAGIC)
        writer.write_u8(FORMAT_VERSION)
        with context("writing game version"):
            writer.write_version(save.game_version)
        writer.write_u8(SAVE_TYPE_WORLD)

        writer.write_i32(len(save.components))
        writer.write_i32(len(save.wires))

        with context("writing mod versions"):
            self._log(f"{len(save.mod_versions)} mods")
            writer.write_i32(len(save.mod_versions))
            for name, version in save.mod_versions.items():
                with context(f"writing mod {name!r}"):
                    writer.write_text(name)
                    writer.write_version(version)

        with context("writing component type dictionary"):
            self._log(f"{len(save.comp_map)} component types")
            writer.write_i32(len(save.comp_map))
            for type_id, name in save.comp_map.items():
                with context(f"writing type {name!r}"):
                    writer.write_u16(type_id)
                    writer.write_text(name)

        self._log(f"{len(save.components)} components")
        for i, comp in enumerate(save.components):
            with context(f"writing component #{i} (address {comp.address})"):
                self.write_component(comp, save)

        self._log(f"{len(save.wires)} wires")
        for i, wire in enumerate(save.wires):
            with context(f"writing wire #{i}"):
                self.write_wire(wire)

        self._log(f"{len(save.states)} state bytes")
        writer.write_i32(len(save.states))
        writer.write_raw(save.states)

        writer.write_raw(FOOTER_MAGIC)
        return writer.getvalue()

    def write_component(self, comp: Component, save: SaveFile):
        writer = self.writer
        writer.write_u32(comp.address)
        writer.write_u32(comp.parent)
        with context("resolving component type"):
            writer.write_u16(save.comp_map.get_id(comp.id))
        writer.write_vec3(comp.position)
        writer.write_quat(comp.rotation)

        with context("writing inputs"):
            writer.write_i32(len(comp.inputs))
            for state_id in comp.inputs:
                writer.write_i32(state_id)
        with context("writing outputs"):
            writer.write_i32(len(comp.outputs))
            for state_id in comp.outputs:
                writer.write_i32(state_id)

        with context("writing custom data"):
            payload = custom_data_to_bytes(comp.custom_data, comp.id)
            writer.write_i32(len(payload))
            writer.write_raw(payload)

    def write_peg_address(self, peg: PegAddress):
        self.writer.write_u8(peg.type.value)
        self.writer.write_u32(peg.component)
        self.writer.write_i32(peg.index)

    def write_wire(self, wire: Wire):
        with context("writing start peg"):
            self.write_peg_address(wire.start)
        with context("writing end peg"):
            self.write_peg_address(wire.start if self.wire_start_twice else wire.end)
        self.writer.write_i32(wire.state_id)
        self.writer.write_f32(wire.rotation)


def serialize_save(save: SaveFile, wire_start_twice: bool = False,
                   verbose: bool = False) -> bytes:
    return SaveSerializer(wire_start_twice=wire_start_twice, verbose=verbose).serialize(save)


def write_save(filepath: str, data: bytes):
    """
    Atomically replace `filepath` with `data`.

    The bytes go to a temporary file in the same directory, are flushed to
    disk, and the temporary file is renamed over the target.
    """
    directory = os.path.dirname(os.path.abspath(filepath))
    fd, tmp_path = tempfile.mkstemp(prefix='.lw-', suffix='.tmp', dir=directory)
    try:
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, filepath)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def compare_files(file1: bytes, file2: bytes, label1: str = "File 1", label2: str = "File 2") -> bool:
    """Print where two save images differ. Returns True when they are identical."""
    print(f"\n{label1} ({len(file1):,} bytes) vs {label2} ({len(file2):,} bytes)")
    if file1 == file2:
        print("  PERFECT MATCH!")
        return True

    if len(file1) != len(file2):
        print(f"  Lengths differ by {len(file1) - len(file2):+d} bytes")

    mismatches = [offset for offset, (a, b) in enumerate(zip(file1, file2)) if a != b]
    if mismatches:
        print(f"  {len(mismatches)} differing bytes in the common prefix")
        for offset in mismatches[:MAX_REPORTED_DIFFS]:
            print(f"    0x{offset:06X}: {file1[offset]:02X} vs {file2[offset]:02X}")
        hidden = len(mismatches) - MAX_REPORTED_DIFFS
        if hidden > 0:
            print(f"    ({hidden} not shown)")

    return False


def main():
    from lw_parser import load_save

    parser = argparse.ArgumentParser(description='Logic World Save Serializer')
    parser.add_argument('input', help='Input save file')
    parser.add_argument('--output', '-o', required=True, help='Output save file')
    parser.add_argument('--compare', '-c', action='store_true',
                        help='Compare the rebuilt file against the input')
    parser.add_argument('--wire-start-twice', action='store_true',
                        help='Write the start peg in place of the end peg, like older versions of this tool')
    parser.add_argument('--verbose', '-v', action='store_true', help='Verbose output')

    args = parser.parse_args()

    if not os.path.exists(args.input):
        print(f"ERROR: File not found: {args.input}")
        return 1

    try:
        save = load_save(args.input)
        print(f"Parsed {len(save.components):,} components, {len(save.wires):,} wires")
        output_data = serialize_save(save, wire_start_twice=args.wire_start_twice,
                                     verbose=args.verbose)
    except (SaveFormatError, OSError) as e:
        print(f"ERROR: {e}")
        return 1
    except Exception as e:
        print(f"ERROR: {e}")
        import traceback
        traceback.print_exc()
        return 1

    try:
        write_save(args.output, output_data)
    except OSError as e:
        print(f"ERROR: {e}")
        return 1
    print(f"\nWrote: {args.output} ({len(output_data):,} bytes)")

    if args.compare:
        with open(args.input, 'rb') as f:
            original = f.read()
        compare_files(output_data, original, "Generated", "Original")

    return 0


if __name__ == "__main__":
    sys.exit(main())
