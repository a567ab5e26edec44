"""Wavefront OBJ export for parsed XPS models (geometry and first UV layer only)."""

from pathlib import Path
from typing import List, Tuple

from .model import Mesh, Model


def material_name(mesh: Mesh, index: int) -> str:
    return f"{index:02d}_{mesh.name or 'mesh'}".replace(" ", "_")


def build_obj(model: Model, mtl_name: str, include_normals: bool = True) -> Tuple[List[str], List[str]]:
    """Return (obj_lines, mtl_lines) for a model."""
    lines = []
    lines.append("# Exported from XNALara XPS")
    lines.append(f"# Version: {model.version}")
    if model.header.author:
        lines.append(f"# Author: {model.header.author}")
    lines.append(f"# Bones: {len(model.skeleton)}")
    lines.append("")
    lines.append(f"mtllib {mtl_name}.mtl")
    lines.append("")

    mtl_lines = []
    base = 0
    for mesh_index, mesh in enumerate(model.meshes):
        material = material_name(mesh, mesh_index)
        lines.append(f"g {material}")
        lines.append(f"usemtl {material}")

        for v in mesh.vertices:
            lines.append(f"v {v.position.x:.6f} {v.position.y:.6f} {v.position.z:.6f}")
        # Flip V for OBJ convention
        for v in mesh.vertices:
            uv = v.uvs[0]
            lines.append(f"vt {uv.x:.6f} {1.0 - uv.y:.6f}")
        if include_normals:
            for v in mesh.vertices:
                lines.append(f"vn {v.normal.x:.6f} {v.normal.y:.6f} {v.normal.z:.6f}")

        # Faces (OBJ is 1-indexed, numbering runs on across meshes)
        for triangle in mesh.triangles:
            i0, i1, i2 = (base + i + 1 for i in triangle)
            if include_normals:
                lines.append(f"f {i0}/{i0}/{i0} {i1}/{i1}/{i1} {i2}/{i2}/{i2}")
            else:
                lines.append(f"f {i0}/{i0} {i1}/{i1} {i2}/{i2}")
        lines.append("")
        base += len(mesh.vertices)

        mtl_lines.extend([
            f"newmtl {material}",
            "Ka 1.0 1.0 1.0",
            "Kd 1.0 1.0 1.0",
            "Ks 0.0 0.0 0.0",
            "d 1.0",
        ])
        diffuse = next((t.path for t in mesh.textures if t.uv_layer == 0), None)
        if diffuse:
            mtl_lines.append(f"map_Kd {diffuse}")
        mtl_lines.append("")

    return lines, mtl_lines


def export_obj(model: Model, output_path: str, include_normals: bool = True):
    """
    Export an XPS model to Wavefront OBJ plus a sibling .mtl file.

    Args:
        model: Parsed XPS model
        output_path: Path for .obj file
        include_normals: Include vertex normals
    """
    mtl_name = Path(output_path).stem
    lines, mtl_lines = build_obj(model, mtl_name, include_normals)

    with open(output_path, 'w', encoding='utf-8') as f:
        f.write('\n'.join(lines))

    mtl_path = Path(output_path).with_suffix('.mtl')
    with open(mtl_path, 'w', encoding='utf-8') as f:
        f.write('\n'.join(mtl_lines))
