#!/usr/bin/env python3
"""xps_tool.py - run the meshforge CLI from a source checkout.

Usage:
    python xps_tool.py info <model.mesh>
    python xps_tool.py validate <model.mesh> [--strict]
    python xps_tool.py convert <in.mesh> <out.mesh> [--version 3.15] [--author NAME]
    python xps_tool.py obj <in.mesh> <out.obj>
"""

import sys
from pathlib import Path

# Add meshforge src to path
_src_dir = Path(__file__).parent / "src"
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

from meshforge.cli import main


if __name__ == "__main__":
    sys.exit(main())
