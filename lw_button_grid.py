#!/usr/bin/env python3
"""
Button Grid Generator for Logic World saves
===========================================

Replaces the contents of a world with a grid of buttons while keeping the
game and mod version metadata.

Each button gets:
  - a fresh address and parent 0 (placed at the world root)
  - one fresh output state id, no inputs
  - color (x * 10, y * 10, 0), released
  - position (offset + x * spacing, (x + y) * height_step, offset + y * spacing)

Only the public model API is used (reset, CompMap.ensure, next_address,
next_state_id), so the result is a valid save for any parsed input.
"""

import sys
import os
import argparse

from lw_errors import SaveFormatError
from lw_model import Component, Quat, SaveFile, SwitchData, Vec3

BUTTON_TYPE = "MHG.Button"
DEFAULT_ROWS = 10
DEFAULT_COLS = 10
GRID_OFFSET = 150
GRID_SPACING = 300
HEIGHT_STEP = 100


def build_button_grid(save: SaveFile, rows: int = DEFAULT_ROWS, cols: int = DEFAULT_COLS,
                      offset: int = GRID_OFFSET, spacing: int = GRID_SPACING,
                      height_step: int = HEIGHT_STEP) -> SaveFile:
    """Reset `save` and fill it with a rows x cols grid of buttons."""
    save.reset()
    save.comp_map.ensure(BUTTON_TYPE)

    for x in range(rows):
        for y in range(cols):
            save.components.append(Component(
                address=save.next_address(),
                parent=0,
                id=BUTTON_TYPE,
                position=Vec3(offset + x * spacing, (x + y) * height_step, offset + y * spacing),
                rotation=Quat(0.0, 0.0, 0.0, 0.0),
                inputs=[],
                outputs=[save.next_state_id()],
                custom_data=SwitchData(color=((x * 10) & 0xFF, (y * 10) & 0xFF, 0), on=False),
            ))
    return save


def main():
    from lw_parser import load_save
    from lw_serializer import serialize_save, write_save

    parser = argparse.ArgumentParser(
        description='Replace a Logic World save with a grid of buttons',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s data.logicworld                  # Overwrite in place
  %(prog)s data.logicworld -o grid.logicworld --rows 4 --cols 8
        """)
    parser.add_argument('input', help='Input save file')
    parser.add_argument('-o', '--output', help='Output save file (default: overwrite input)')
    parser.add_argument('--rows', type=int, default=DEFAULT_ROWS, help='Grid rows (default: 10)')
    parser.add_argument('--cols', type=int, default=DEFAULT_COLS, help='Grid columns (default: 10)')
    parser.add_argument('--offset', type=int, default=GRID_OFFSET, help='Grid origin offset')
    parser.add_argument('--spacing', type=int, default=GRID_SPACING, help='Distance between buttons')

    args = parser.parse_args()
    output = args.output or args.input

    if not os.path.exists(args.input):
        print(f"ERROR: File not found: {args.input}")
        return 1

    try:
        print("Reading save")
        save = load_save(args.input)

        print("Modifying save")
        build_button_grid(save, rows=args.rows, cols=args.cols,
                          offset=args.offset, spacing=args.spacing)

        print("Generating binary")
        data = serialize_save(save)

        print("Writing save")
        write_save(output, data)
    except (SaveFormatError, OSError) as e:
        print(f"ERROR: {e}")
        return 1
    except Exception as e:
        print(f"ERROR: {e}")
        import traceback
        traceback.print_exc()
        return 1

    print(f"Output: {output} ({len(save.components)} buttons, {len(data):,} bytes)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
