#!/usr/bin/env python3
"""
Logic World Save JSON Converter
===============================

Converts Logic World save files to JSON and back.

The JSON form is lossless: byte payloads (unknown custom data, trailing
payload bytes, the state buffer) are stored as hex strings and rotations as
plain floats (NaNs as their hex bit pattern), so `--to-binary` rebuilds the same bytes that were read.

Usage:
    # Convert a save to JSON
    python lw_json.py data.logicworld -o world.json --pretty

    # Convert JSON back to a save
    python lw_json.py world.json -o data.logicworld --to-binary
"""

import sys
import os
import json
import argparse

from lw_errors import SaveFormatError
from lw_model import (CompMap, Component, DisplayData, NanF32, PegAddress,
                      PegType, Quat, SaveFile, SwitchData, UnknownData, Vec3, Version,
                      Wire)

JSON_FORMAT = "logicworld-save"
JSON_FORMAT_VERSION = 1


# =============================================================================
# SaveFile -> dict
# =============================================================================

def custom_data_to_dict(data) -> dict:
    if isinstance(data, SwitchData):
        return {'kind': 'switch', 'color': list(data.color), 'on': data.on,
                'extra': data.extra.hex()}
    if isinstance(data, DisplayData):
        return {'kind': 'display', 'color_mode': data.color_mode,
                'extra': data.extra.hex()}
    return {'kind': 'unknown', 'raw': data.raw.hex()}


def peg_to_dict(peg: PegAddress) -> dict:
    return {'type': peg.type.name.lower(), 'component': peg.component, 'index': peg.index}


def f32_to_json(value: float):
    # NaN payloads have no JSON number form
    if isinstance(value, NanF32):
        return {'nan_bits': f"{value.bits:08x}"}
    return value


def save_to_dict(save: SaveFile) -> dict:
    return {
        'format': JSON_FORMAT,
        'format_version': JSON_FORMAT_VERSION,
        'game_version': list(save.game_version),
        'mods': {name: list(version) for name, version in save.mod_versions.items()},
        'component_types': [{'id': type_id, 'name': name} for type_id, name in save.comp_map.items()],
        'components': [
            {
                'address': comp.address,
                'parent': comp.parent,
                'type': comp.id,
                'position': list(comp.position),
                'rotation': [f32_to_json(v) for v in comp.rotation],
                'inputs': list(comp.inputs),
                'outputs': list(comp.outputs),
                'custom_data': custom_data_to_dict(comp.custom_data),
            }
            for comp in save.components
        ],
        'wires': [
            {
                'start': peg_to_dict(wire.start),
                'end': peg_to_dict(wire.end),
                'state_id': wire.state_id,
                'rotation': f32_to_json(wire.rotation),
            }
            for wire in save.wires
        ],
        'states': bytes(save.states).hex(),
    }


# =============================================================================
# dict -> SaveFile
# =============================================================================

def custom_data_from_dict(d: dict):
    kind = d.get('kind')
    if kind == 'switch':
        return SwitchData(color=tuple(d['color']), on=bool(d['on']),
                          extra=bytes.fromhex(d.get('extra', '')))
    if kind == 'display':
        return DisplayData(color_mode=d['color_mode'], extra=bytes.fromhex(d.get('extra', '')))
    if kind == 'unknown':
        return UnknownData(raw=bytes.fromhex(d['raw']))
    raise ValueError(f"Unknown custom data kind: {kind!r}")


def peg_from_dict(d: dict) -> PegAddress:
    return PegAddress(PegType[d['type'].upper()], d['component'], d['index'])


def f32_from_json(value) -> float:
    if isinstance(value, dict):
        return NanF32(int(value['nan_bits'], 16))
    return float(value)


def save_from_dict(d: dict) -> SaveFile:
    """
    Build a SaveFile from its JSON form.

    Allocator marks are recomputed from the contents, the same way the
    parser seeds them.
    """
    if d.get('format') != JSON_FORMAT:
        raise ValueError(f"Not a {JSON_FORMAT} document (format={d.get('format')!r})")

    comp_map = CompMap((entry['id'], entry['name']) for entry in d['component_types'])

    components = [
        Component(
            address=c['address'],
            parent=c['parent'],
            id=c['type'],
            position=Vec3(*c['position']),
            rotation=Quat(*(f32_from_json(v) for v in c['rotation'])),
            inputs=list(c['inputs']),
            outputs=list(c['outputs']),
            custom_data=custom_data_from_dict(c['custom_data']),
        )
        for c in d['components']
    ]
    wires = [
        Wire(start=peg_from_dict(w['start']), end=peg_from_dict(w['end']),
             state_id=w['state_id'], rotation=f32_from_json(w['rotation']))
        for w in d['wires']
    ]

    state_ids = [s for comp in components for s in comp.inputs + comp.outputs]
    state_ids.extend(wire.state_id for wire in wires)

    return SaveFile(
        game_version=Version(*d['game_version']),
        mod_versions={name: Version(*v) for name, v in d['mods'].items()},
        comp_map=comp_map,
        components=components,
        wires=wires,
        states=bytearray.fromhex(d['states']),
        highest_state_id=max(state_ids + [0]),
        highest_address=max((comp.address for comp in components), default=1),
    )


def main():
    from lw_parser import load_save
    from lw_serializer import serialize_save, write_save

    parser = argparse.ArgumentParser(
        description='Convert Logic World saves to JSON and back',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s data.logicworld -o world.json --pretty
  %(prog)s world.json -o data.logicworld --to-binary
        """)
    parser.add_argument('input', help='Input save file (or JSON with --to-binary)')
    parser.add_argument('-o', '--output', required=True, help='Output file')
    parser.add_argument('--to-binary', action='store_true', help='Convert JSON back to a save file')
    parser.add_argument('--pretty', action='store_true', help='Indent JSON output')

    args = parser.parse_args()

    if not os.path.exists(args.input):
        print(f"ERROR: File not found: {args.input}")
        return 1

    try:
        if args.to_binary:
            with open(args.input, 'r', encoding='utf-8') as f:
                save = save_from_dict(json.load(f))
            data = serialize_save(save)
            write_save(args.output, data)
            print(f"Wrote: {args.output} ({len(data):,} bytes)")
        else:
            save = load_save(args.input)
            text = json.dumps(save_to_dict(save), indent=2 if args.pretty else None)
            write_save(args.output, text.encode('utf-8'))
            print(f"Wrote: {args.output} ({len(save.components):,} components, "
                  f"{len(save.wires):,} wires)")
    except (SaveFormatError, ValueError, KeyError, TypeError, OSError) as e:
        print(f"ERROR: {e}")
        return 1
    except Exception as e:
        print(f"ERROR: {e}")
        import traceback
        traceback.print_exc()
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
