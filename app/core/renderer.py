"""
Headless Blender render surface for order capture.

Implements ``RenderSurface`` on top of ``blender -b``. ``load()`` resolves the
record into decal layers (same resolver every preview uses) and prepares the
textures; each ``snapshot()`` is one Blender run rendering the garment at the
current turntable rotation.

Scene built per snapshot:
  - Garment GLB imported as-is, all materials replaced by one tinted cloth
    material (garment colour, sRGB hex converted to linear).
  - One decal per layer: a subdivided plane textured with the layer image,
    shrink-wrapped onto the garment along its local Z. Planes are parented
    under a ``ModelSpace`` empty rotated +90 deg about X, which maps the
    glTF Y-up coordinates the resolver produces onto the Z-up space the
    importer converted the mesh into. Euler order ``ZYX`` in Blender equals
    the resolver's ``XYZ`` convention.
  - Garment and decals sit under a ``Turntable`` empty; the view rotation is
    applied about the vertical axis and the camera stays fixed in front.
  - Soft three-light studio rig, neutral light background.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path

from shared.asset_fetcher import fetch_asset
from shared.blender_exec import run_blender_script_sync
from shared.files import ensure_dir

from .customization import CustomizationRecord, ImageRef, TextSpec
from .errors import CaptureError
from .geometry import DecalLayer, ModelBounds, resolve_layers
from .text_raster import FontRegistry, render_text_png

logger = logging.getLogger(__name__)

DEFAULT_GARMENT_COLOR = "#ffffff"


def hex_to_linear_rgba(value: str | None) -> tuple[float, float, float, float]:
    """``#rrggbb`` (sRGB) to the linear RGBA tuple Principled BSDF expects."""
    text = (value or DEFAULT_GARMENT_COLOR).strip().lstrip("#")
    if len(text) == 3:
        text = "".join(ch * 2 for ch in text)
    try:
        channels = [int(text[i:i + 2], 16) / 255.0 for i in (0, 2, 4)]
    except ValueError:
        logger.warning("Unrecognised garment color %r, using white", value)
        channels = [1.0, 1.0, 1.0]

    def _linear(c: float) -> float:
        return c / 12.92 if c <= 0.04045 else ((c + 0.055) / 1.055) ** 2.4

    r, g, b = (round(_linear(c), 4) for c in channels)
    return (r, g, b, 1.0)


def build_capture_script(
    model_path: str,
    decals: list[dict],
    garment_rgba: tuple[float, float, float, float],
    rotation: float,
    output_path: str,
    resolution: int = 1024,
) -> str:
    return f'''
import bpy
import math
import os
import sys
from mathutils import Vector

MODEL_PATH = r"{model_path}"
OUTPUT_PATH = r"{output_path}"
RESOLUTION = {resolution}
ROTATION = {rotation!r}
GARMENT_RGBA = {garment_rgba!r}
DECALS = {decals!r}

# ─── Clean scene ───
bpy.ops.object.select_all(action='SELECT')
bpy.ops.object.delete(use_global=False)
for m in list(bpy.data.meshes):
    bpy.data.meshes.remove(m)
for mat in list(bpy.data.materials):
    bpy.data.materials.remove(mat)
for img in list(bpy.data.images):
    bpy.data.images.remove(img)

# ─── Import garment ───
print(f"[CAPTURE] Importing model: {{MODEL_PATH}}")
bpy.ops.import_scene.gltf(filepath=MODEL_PATH)
imported_roots = [obj for obj in bpy.data.objects if obj.parent is None]
garment_meshes = [obj for obj in bpy.data.objects if obj.type == 'MESH']
if not garment_meshes:
    print("[CAPTURE] ERROR: No mesh objects found in model")
    sys.exit(1)

turntable = bpy.data.objects.new("Turntable", None)
bpy.context.collection.objects.link(turntable)

model_space = bpy.data.objects.new("ModelSpace", None)
bpy.context.collection.objects.link(model_space)
model_space.rotation_euler = (math.pi / 2, 0.0, 0.0)
model_space.parent = turntable

cloth = bpy.data.materials.new(name="Cloth")
cloth.use_nodes = True
bsdf = cloth.node_tree.nodes.get("Principled BSDF")
bsdf.inputs['Base Color'].default_value = GARMENT_RGBA
bsdf.inputs['Roughness'].default_value = 0.85

for obj in imported_roots:
    obj.parent = turntable
for obj in garment_meshes:
    obj.data.materials.clear()
    obj.data.materials.append(cloth)

target_mesh = garment_meshes[0]
if len(garment_meshes) > 1:
    bpy.ops.object.select_all(action='DESELECT')
    for obj in garment_meshes:
        obj.select_set(True)
    bpy.context.view_layer.objects.active = garment_meshes[0]
    bpy.ops.object.join()
    target_mesh = bpy.context.view_layer.objects.active

bpy.context.view_layer.update()

# ─── Decals ───
for index, decal in enumerate(DECALS):
    bpy.ops.mesh.primitive_plane_add(size=1.0)
    plane = bpy.context.active_object
    plane.name = f"Decal_{{index}}_{{decal['zone']}}"
    plane.parent = model_space
    plane.rotation_mode = 'ZYX'
    plane.location = decal['position']
    plane.rotation_euler = decal['rotation']
    plane.scale = decal['scale']

    subdiv = plane.modifiers.new(name="Subdivide", type='SUBSURF')
    subdiv.subdivision_type = 'SIMPLE'
    subdiv.levels = 5
    subdiv.render_levels = 5
    wrap = plane.modifiers.new(name="Project", type='SHRINKWRAP')
    wrap.target = target_mesh
    wrap.wrap_method = 'PROJECT'
    wrap.use_project_z = True
    wrap.use_negative_direction = True
    wrap.use_positive_direction = True
    wrap.offset = 0.05 + 0.05 * index

    mat = bpy.data.materials.new(name=f"DecalMat_{{index}}")
    mat.use_nodes = True
    mat.blend_method = 'BLEND'
    nodes = mat.node_tree.nodes
    links = mat.node_tree.links
    principled = nodes.get("Principled BSDF")
    tex = nodes.new(type='ShaderNodeTexImage')
    tex.image = bpy.data.images.load(decal['texture'])
    tex.extension = 'CLIP'
    links.new(tex.outputs['Color'], principled.inputs['Base Color'])
    links.new(tex.outputs['Alpha'], principled.inputs['Alpha'])
    plane.data.materials.append(mat)
    print(f"[CAPTURE] Decal {{index}}: {{decal['zone']}} ({{decal['kind']}})")

# ─── View rotation ───
turntable.rotation_euler = (0.0, 0.0, ROTATION)
bpy.context.view_layer.update()

all_min = Vector((float('inf'),) * 3)
all_max = Vector((float('-inf'),) * 3)
for corner in target_mesh.bound_box:
    world_corner = target_mesh.matrix_world @ Vector(corner)
    all_min.x = min(all_min.x, world_corner.x)
    all_min.y = min(all_min.y, world_corner.y)
    all_min.z = min(all_min.z, world_corner.z)
    all_max.x = max(all_max.x, world_corner.x)
    all_max.y = max(all_max.y, world_corner.y)
    all_max.z = max(all_max.z, world_corner.z)
center = (all_min + all_max) / 2
max_dim = max((all_max - all_min).x, (all_max - all_min).y, (all_max - all_min).z)

# ─── Lights ───
def add_sun(name, energy, direction):
    light_data = bpy.data.lights.new(name=name, type='SUN')
    light_data.energy = energy
    light_obj = bpy.data.objects.new(name=name, object_data=light_data)
    bpy.context.collection.objects.link(light_obj)
    light_obj.rotation_euler = Vector(direction).to_track_quat('-Z', 'Y').to_euler()
    return light_obj

add_sun("Key", 3.0, (-0.5, 1.0, -0.8))
add_sun("Fill", 1.2, (0.8, 0.6, -0.3))
add_sun("Rim", 1.5, (0.0, -1.0, -0.4))

world = bpy.data.worlds.new("CaptureWorld")
bpy.context.scene.world = world
world.use_nodes = True
world.node_tree.nodes["Background"].inputs['Color'].default_value = (0.8, 0.8, 0.8, 1.0)
world.node_tree.nodes["Background"].inputs['Strength'].default_value = 0.6

# ─── Camera (fixed, in front of the garment) ───
cam_data = bpy.data.cameras.new(name="CaptureCam")
cam_data.lens_unit = 'FOV'
cam_data.angle = math.radians(45)
cam_data.clip_start = max_dim * 0.01
cam_data.clip_end = max_dim * 20
cam_obj = bpy.data.objects.new(name="CaptureCam", object_data=cam_data)
bpy.context.collection.objects.link(cam_obj)
bpy.context.scene.camera = cam_obj
distance = (max_dim / 2) / math.tan(cam_data.angle / 2) * 1.15
cam_obj.location = center + Vector((0.0, -distance, 0.0))
cam_obj.rotation_euler = (center - cam_obj.location).to_track_quat('-Z', 'Y').to_euler()

# ─── Render settings ───
scene = bpy.context.scene
engines = [e.identifier for e in bpy.types.RenderSettings.bl_rna.properties['engine'].enum_items]
if 'BLENDER_EEVEE_NEXT' in engines:
    scene.render.engine = 'BLENDER_EEVEE_NEXT'
elif 'BLENDER_EEVEE' in engines:
    scene.render.engine = 'BLENDER_EEVEE'
scene.render.resolution_x = RESOLUTION
scene.render.resolution_y = RESOLUTION
scene.render.resolution_percentage = 100
scene.render.image_settings.file_format = 'PNG'
scene.render.image_settings.color_mode = 'RGBA'
scene.render.film_transparent = False
scene.view_settings.view_transform = 'Standard'

os.makedirs(os.path.dirname(OUTPUT_PATH), exist_ok=True)
scene.render.filepath = OUTPUT_PATH
print(f"[CAPTURE] Rendering rotation={{ROTATION:.4f}} -> {{OUTPUT_PATH}}")
bpy.ops.render.render(write_still=True)

if os.path.isfile(OUTPUT_PATH):
    print(f"[CAPTURE] OK ({{os.path.getsize(OUTPUT_PATH)}} bytes)")
else:
    print("[CAPTURE] FAILED: output not written")
    sys.exit(1)
'''


@dataclass
class _LoadedScene:
    work_dir: Path
    decals: list[dict] = field(default_factory=list)
    garment_rgba: tuple[float, float, float, float] = (1.0, 1.0, 1.0, 1.0)
    snapshots: int = 0


class BlenderRenderSurface:
    def __init__(
        self,
        model_path: Path,
        blender_executable: Path,
        render_dir: Path,
        asset_cache_dir: Path,
        fonts: FontRegistry,
        resolution: int = 1024,
        timeout: int = 120,
        http_timeout: float = 60.0,
        font_wait_timeout: float = 3.0,
        font_poll_interval: float = 0.05,
    ):
        self.model_path = Path(model_path)
        self.blender_executable = str(blender_executable)
        self.render_dir = ensure_dir(render_dir)
        self.asset_cache_dir = asset_cache_dir
        self.fonts = fonts
        self.resolution = resolution
        self.timeout = timeout
        self.http_timeout = http_timeout
        self.font_wait_timeout = font_wait_timeout
        self.font_poll_interval = font_poll_interval

        self._scene: _LoadedScene | None = None
        self._rotation = 0.0

    # -- RenderSurface -------------------------------------------------------

    def load(self, record: CustomizationRecord, garment_color: str | None) -> None:
        if not self.model_path.is_file():
            raise CaptureError(f"Garment model not found: {self.model_path}")

        bounds = ModelBounds.from_mesh(self.model_path)
        work_dir = ensure_dir(self.render_dir / f"capture_{uuid.uuid4().hex[:10]}_{int(time.time())}")
        layers = resolve_layers(record, bounds)
        decals = [self._prepare_decal(layer, index, work_dir) for index, layer in enumerate(layers)]

        self._scene = _LoadedScene(
            work_dir=work_dir,
            decals=decals,
            garment_rgba=hex_to_linear_rgba(garment_color),
        )
        self._rotation = 0.0
        logger.info("[CAPTURE] Scene loaded: %d decal layers, work_dir=%s", len(decals), work_dir.name)

    def set_rotation(self, radians: float) -> None:
        self._rotation = float(radians)

    def snapshot(self) -> bytes:
        scene = self._scene
        if scene is None:
            raise CaptureError("snapshot() called before load()")

        scene.snapshots += 1
        output_path = scene.work_dir / f"view_{scene.snapshots}.png"
        script_path = scene.work_dir / f"capture_{scene.snapshots}.py"
        script_path.write_text(
            build_capture_script(
                model_path=str(self.model_path),
                decals=scene.decals,
                garment_rgba=scene.garment_rgba,
                rotation=self._rotation,
                output_path=str(output_path),
                resolution=self.resolution,
            )
        )

        result = run_blender_script_sync(
            script_path=str(script_path),
            blender_executable=self.blender_executable,
            timeout=self.timeout,
        )
        if not result.success or not output_path.is_file():
            reason = "timed out" if result.timed_out else f"code={result.returncode}"
            raise CaptureError(f"Blender render failed ({reason}, {result.elapsed:.1f}s): {result.tail()}")

        return output_path.read_bytes()

    # -- helpers -------------------------------------------------------------

    def _prepare_decal(self, layer: DecalLayer, index: int, work_dir: Path) -> dict:
        if isinstance(layer.source, TextSpec):
            texture = work_dir / f"text_{index}_{layer.zone.value}.png"
            texture.write_bytes(
                render_text_png(
                    layer.source,
                    self.fonts,
                    timeout=self.font_wait_timeout,
                    poll_interval=self.font_poll_interval,
                )
            )
        elif isinstance(layer.source, ImageRef):
            texture = fetch_asset(layer.source.url, self.asset_cache_dir, http_timeout=self.http_timeout)
        else:
            raise CaptureError(f"Unsupported {layer.kind} layer in zone {layer.zone.value}")

        transform = layer.transform
        return {
            "zone": layer.zone.value,
            "kind": layer.kind,
            "texture": str(Path(texture).resolve()),
            "position": list(transform.position),
            "rotation": list(transform.rotation),
            "scale": list(transform.scale),
        }
