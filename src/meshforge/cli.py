"""
Command line interface for inspecting and converting XNALara models.

Usage:
    python -m meshforge info <model.mesh> [--format json]
    python -m meshforge validate <model.mesh> [--strict]
    python -m meshforge convert <in.mesh> <out.mesh> [--version 3.15] [--author NAME]
    python -m meshforge obj <in.mesh> <out.obj>
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from .formats.xps import (
    ExportOptions, FormatVersion, MeshFlags, Model, ParseOptions, XPSError, XPSReader,
    XPSWriter, export_obj,
)

logger = logging.getLogger(__name__)


def load_model(path: str, strict: bool = False) -> Model:
    """Parse a model file; errors propagate to main()."""
    return XPSReader(ParseOptions(strict=strict)).read_file(path)


def model_summary(model: Model) -> dict:
    """Plain-data summary used by the info command."""
    box = model.bounding_box()
    return {
        "version": str(model.version),
        "author": model.header.author,
        "device": model.header.device,
        "bones": [
            {"name": b.name, "parent": b.parent_index} for b in model.skeleton.bones
        ],
        "meshes": [
            {
                "name": m.name,
                "flags": f"0x{int(m.flags):04X}",
                "uv_layers": MeshFlags(m.flags).uv_layer_count,
                "textures": [t.path for t in m.textures],
                "vertices": m.vertex_count,
                "triangles": m.triangle_count,
            }
            for m in model.meshes
        ],
        "bounds": None if box.is_empty else {
            "min": list(box.minimum.as_tuple()),
            "max": list(box.maximum.as_tuple()),
        },
    }


def format_summary_table(path: str, summary: dict) -> str:
    lines = [f"Model: {path}",
             f"Version {summary['version']}  |  Author: {summary['author'] or '(none)'}"]

    lines.append(f"\nBONES ({len(summary['bones'])})")
    lines.append("─" * 50)
    for index, bone in enumerate(summary["bones"]):
        parent = "root" if bone["parent"] < 0 else str(bone["parent"])
        lines.append(f"  [{index:>3}] {bone['name']:<30} parent={parent}")

    lines.append(f"\nMESHES ({len(summary['meshes'])})")
    lines.append("─" * 50)
    for index, mesh in enumerate(summary["meshes"]):
        lines.append(f"  [{index:>3}] {mesh['name']:<30} {mesh['vertices']:>7} verts  "
                     f"{mesh['triangles']:>7} tris  flags={mesh['flags']}")
        for texture in mesh["textures"]:
            lines.append(f"          texture: {texture}")

    bounds = summary["bounds"]
    if bounds:
        lo = ", ".join(f"{c:.3f}" for c in bounds["min"])
        hi = ", ".join(f"{c:.3f}" for c in bounds["max"])
        lines.append(f"\nBounds: ({lo}) .. ({hi})")
    return "\n".join(lines)


def cmd_info(args) -> int:
    """Show model header, bones and meshes."""
    model = load_model(args.file)
    summary = model_summary(model)
    if args.format == "json":
        print(json.dumps(summary, indent=2))
    else:
        print(format_summary_table(args.file, summary))
    return 0


def cmd_validate(args) -> int:
    """Parse a model and report whether it is valid."""
    model = load_model(args.file, strict=args.strict)
    print(f"OK: {args.file} ({len(model.skeleton)} bones, {len(model.meshes)} meshes, "
          f"{model.vertex_count} vertices)")
    return 0


def cmd_convert(args) -> int:
    """Re-serialize a model, optionally with another version or author."""
    model = load_model(args.input)
    options = ExportOptions(
        version=FormatVersion.parse(args.version) if args.version else None,
        author=args.author,
        device=args.device,
    )
    XPSWriter(options).write_file(model, args.output)
    logger.info("Converted %s -> %s", args.input, args.output)
    print(f"Wrote {args.output}")
    return 0


def cmd_obj(args) -> int:
    """Export a model to Wavefront OBJ."""
    model = load_model(args.input)
    export_obj(model, args.output, include_normals=not args.no_normals)
    print(f"Exported to {args.output}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="meshforge",
        description="Inspect, validate and convert XNALara XPS (.mesh) models.",
    )
    parser.add_argument("--format", choices=["table", "json"],
                        default="table", help="Output format (default: table)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command", help="Command to run")

    # info
    p = sub.add_parser("info", help="Show bones, meshes and header metadata")
    p.add_argument("file", help="Path to .mesh file")

    # validate
    p = sub.add_parser("validate", help="Parse and check a model")
    p.add_argument("file", help="Path to .mesh file")
    p.add_argument("--strict", action="store_true",
                   help="Reject extra influences and bad weight sums instead of fixing them")

    # convert
    p = sub.add_parser("convert", help="Re-serialize a model")
    p.add_argument("input", help="Source .mesh file")
    p.add_argument("output", help="Destination .mesh file")
    p.add_argument("--version", help="Target format version, e.g. 3.15")
    p.add_argument("--author", help="Author name stored in the header")
    p.add_argument("--device", help="Device name stored in the header")

    # obj
    p = sub.add_parser("obj", help="Export to Wavefront OBJ")
    p.add_argument("input", help="Source .mesh file")
    p.add_argument("output", help="Destination .obj file")
    p.add_argument("--no-normals", action="store_true", help="Omit vertex normals")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        return 0

    commands = {
        "info": cmd_info,
        "validate": cmd_validate,
        "convert": cmd_convert,
        "obj": cmd_obj,
    }

    try:
        return commands[args.command](args)
    except XPSError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    except (OSError, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
