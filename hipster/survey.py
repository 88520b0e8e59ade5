"""Generation of HiPS image surveys: tiles, lower orders, allsky and properties."""

from __future__ import annotations

import enum
import logging
import math
import os
import re
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

import numpy as np

from hipster import healpix
from hipster.image import Image, ImageError, load_image

__all__ = [
    "Format",
    "Frame",
    "SurveyOptions",
    "normalize_angle",
    "get_tile_path",
    "create_tile",
    "create_tile_from_parents",
    "create_allsky",
    "create_properties_file",
    "post_process",
    "compute_max_order",
    "create_image_survey",
]

log = logging.getLogger(__name__)

_TWO_PI = 2 * math.pi
_PROPERTY_RE = re.compile(r"^ *([^ ]+) *= *(.*) *$")


class Format(enum.IntFlag):
    """Output tile formats; several may be combined."""

    PNG = 1
    JPEG = 2
    WEBP = 4

    @property
    def ext(self) -> str:
        """File extension of a single format."""
        try:
            return _EXTENSIONS[self]
        except KeyError:
            raise ValueError(f"{self!r} is not a single format") from None


_EXTENSIONS = {Format.PNG: "png", Format.JPEG: "jpg", Format.WEBP: "webp"}


class Frame(enum.IntEnum):
    """Celestial reference frame of a survey."""

    NONE = 0
    EQUATORIAL = 1
    GALACTIC = 2
    ECLIPTIC = 3


@dataclass
class SurveyOptions:
    """Everything needed to build a survey from a source image."""

    inputs: list[str]
    output: str
    format: Format = Format.JPEG
    frame: Frame = Frame.NONE
    pngquant: bool = False
    theta: float = 0.0
    phi: float = 0.0
    bump_to_normal: bool = False
    props: list[str] = field(default_factory=list)
    tile_size: int = 512
    allsky_size: int = 64


def _single_formats(fmt: Format) -> list[Format]:
    return [f for f in Format if f & fmt]


def _is_single(fmt: Format) -> bool:
    return fmt in _EXTENSIONS


def _nb_pixels(lev: int) -> int:
    return 12 * (1 << (2 * lev))


def normalize_angle(a: float) -> float:
    """Normalise an angle into ``0 <= a < 2 pi``."""
    a = math.fmod(a, _TWO_PI)
    if a < 0:
        a += _TWO_PI
    return a


def get_tile_path(lev: int, pix: int, base, fmt: Format) -> Path:
    """Return the path of a tile, creating its directories."""
    fmt = Format(fmt)
    if not _is_single(fmt):
        raise ValueError(f"a tile path needs a single format, got {fmt!r}")
    directory = (pix // 10000) * 10000
    folder = Path(base) / f"Norder{lev}" / f"Dir{directory}"
    os.makedirs(folder, exist_ok=True)
    return folder / f"Npix{pix}.{fmt.ext}"


def create_tile(lev: int, pix: int, src: Image, size: int,
                delta_theta: float, delta_phi: float, flip_phi: bool,
                base_dir, fmt: Format) -> list[Path]:
    """Render one tile of order ``lev`` from the source image.

    Returns the paths written; nothing is written for a fully transparent tile.
    """
    nside = 1 << lev
    ix, iy, face = healpix.nest2xyf(nside, pix)
    positions = np.zeros((size, size, 2), dtype=np.float64)
    for x in range(size):
        for y in range(size):
            theta, phi = healpix.xyf2ang(nside * size, ix * size + x,
                                         iy * size + y, face)
            theta += delta_theta
            phi += delta_phi
            if flip_phi:
                phi = _TWO_PI - phi
            theta = normalize_angle(theta)
            phi = normalize_angle(phi)
            if theta > math.pi:
                raise ValueError(f"theta {theta} out of range for tile {pix}")
            # HiPS tiles have their axes swapped relative to healpix xy.
            positions[x, y] = (phi / _TWO_PI, theta / math.pi)

    out = src.map(positions.reshape(-1, 2), size, size)
    if out.is_empty():
        return []
    written = []
    for f in _single_formats(fmt):
        path = get_tile_path(lev, pix, base_dir, f)
        out.write(path)
        written.append(path)
    return written


def create_tile_from_parents(lev: int, pix: int, size: int, base_dir,
                             fmt: Format) -> list[Path]:
    """Build a tile of order ``lev`` from its four tiles of order ``lev + 1``.

    Returns the paths written.
    """
    written = []
    for f in _single_formats(fmt):
        out = None
        half = size // 2
        for dy in range(2):
            for dx in range(2):
                ppix = pix * 4 + dx * 2 + dy
                path = get_tile_path(lev + 1, ppix, base_dir, f)
                try:
                    src = load_image(path)
                except ImageError:
                    continue
                if out is None:
                    out = Image.blank(size, size, src.bpp)
                out.blit(src.downsample(half, half), dx * half, dy * half)
        path = get_tile_path(lev, pix, base_dir, f)
        if out is not None and not out.is_empty():
            out.write(path)
            written.append(path)
    return written


def create_allsky(lev: int, size: int, base_dir, fmt: Format) -> Path | None:
    """Assemble all the tiles of one order into an Allsky image.

    With several formats one Allsky is made per format and the last path is
    returned; ``None`` is returned when no tile could be read.
    """
    fmt = Format(fmt)
    if not _is_single(fmt):
        result = None
        for f in _single_formats(fmt):
            result = create_allsky(lev, size, base_dir, f) or result
        return result

    out_path = Path(base_dir) / f"Norder{lev}" / f"Allsky.{fmt.ext}"
    nb = _nb_pixels(lev)
    nbw = int(math.sqrt(nb))
    nbh = math.ceil(nb / nbw)
    log.debug("Create allsky %s %d %d", out_path, nbw, nbh)

    tiles = []
    for pix in range(nb):
        try:
            tiles.append((pix, load_image(get_tile_path(lev, pix, base_dir, fmt))))
        except ImageError:
            continue
    if not tiles:
        log.error("no tile found to build %s", out_path)
        return None

    bpp = tiles[0][1].bpp
    out = Image.blank(size * nbw, size * nbh, bpp)
    for pix, src in tiles:
        if src.bpp != bpp:
            raise ValueError(f"tile {pix} has {src.bpp} bpp, expected {bpp}")
        out.blit(src.downsample(size, size), size * (pix % nbw),
                 size * (pix // nbw))
    out.write(out_path)
    return out_path


def create_properties_file(base_dir, lev: int, lev_min: int, size: int,
                           fmt: Format, frame: Frame,
                           props: Sequence[str]) -> Path:
    """Write the survey ``properties`` file and return its path."""
    fmt = Format(fmt)
    frame = Frame(frame)
    names = [name for flag, name in ((Format.WEBP, "webp"),
                                     (Format.JPEG, "jpeg"),
                                     (Format.PNG, "png")) if flag & fmt]
    if not names:
        raise ValueError("at least one tile format is required")

    custom = []
    for prop in props:
        match = _PROPERTY_RE.match(prop)
        if match is None:
            raise ValueError(f"invalid property line: {prop!r}")
        custom.append(match.groups())

    entries: list[tuple[str, object]] = [
        ("hips_order", lev),
        ("hips_order_min", lev_min),
    ]
    if size:
        entries.append(("hips_tile_width", size))
    entries.append(("hips_tile_format", " ".join(names)))
    entries.append(("dataproduct_type", "image"))
    if frame is not Frame.NONE:
        entries.append(("hips_frame", frame.name.lower()))
    entries.extend(custom)

    path = Path(base_dir) / "properties"
    with open(path, "w", encoding="utf-8") as file:
        for name, value in entries:
            file.write(f"{name:<21} = {value}\n")
    return path


def post_process(lev: int, pix: int, options: SurveyOptions) -> bool:
    """Compress an existing png tile with pngquant if requested.

    Returns True when the external command was run.
    """
    if not (options.format == Format.PNG and options.pngquant):
        return False
    path = get_tile_path(lev, pix, options.output, options.format)
    if not path.exists():
        return False
    cmd = ["pngquant", "--ext", ".png", "-f", str(path)]
    log.debug("run: %s", " ".join(cmd))
    subprocess.run(cmd, check=False)
    return True


def compute_max_order(width: int, tile_size: int) -> int:
    """Return the deepest order needed to keep the resolution of a source image."""
    if width <= 0 or tile_size <= 0:
        raise ValueError("width and tile size must be positive")
    lev = math.ceil(math.log2(width / (4.0 * math.sqrt(2.0) * tile_size)))
    return max(lev, 0)


def _progress(pix: int, total: int) -> None:
    print(f"\r{pix}/{total}    ", end="", flush=True)


def create_image_survey(options: SurveyOptions) -> None:
    """Build a complete survey from ``options.inputs[0]`` into ``options.output``."""
    tile_size = options.tile_size
    log.debug("load %s", options.inputs[0])
    src = load_image(options.inputs[0], 3 if options.format & Format.JPEG else 0)
    log.debug("image size: %dx%d bpp:%d", src.w, src.h, src.bpp)
    if options.bump_to_normal:
        src = src.bump_to_normal()

    lev = compute_max_order(src.w, tile_size)
    lev_min = min(lev, 0)
    flip_phi = options.frame != Frame.NONE
    log.debug("creating tiles from level %d to %d", lev_min, lev)

    total = _nb_pixels(lev)
    for pix in range(total):
        create_tile(lev, pix, src, tile_size, options.theta, options.phi,
                    flip_phi, options.output, options.format)
        _progress(pix, total)
    print()

    for lev_cur in range(lev - 1, lev_min - 1, -1):
        log.debug("create tiles at level %d", lev_cur)
        total = _nb_pixels(lev_cur)
        for pix in range(total):
            create_tile_from_parents(lev_cur, pix, tile_size, options.output,
                                     options.format)
            _progress(pix, total)
        print()

    create_allsky(lev_min, options.allsky_size, options.output, options.format)

    for lev_cur in range(lev_min, lev + 1):
        for pix in range(_nb_pixels(lev_cur)):
            post_process(lev_cur, pix, options)

    create_properties_file(options.output, lev, lev_min, tile_size,
                           options.format, options.frame, options.props)