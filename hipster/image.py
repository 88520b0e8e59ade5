"""In-memory 8-bit images with the loading, writing and resampling used by surveys."""

from __future__ import annotations

import os
from typing import Sequence

import numpy as np
from PIL import Image as _PILImage
from PIL import UnidentifiedImageError

__all__ = ["ImageError", "Image", "load_image"]

_WEBP_QUALITY = 75
_JPEG_QUALITY = 75
_MODE_FOR_BPP = {1: "L", 2: "LA", 3: "RGB", 4: "RGBA"}
_BPP_FOR_MODE = {mode: bpp for bpp, mode in _MODE_FOR_BPP.items()}


class ImageError(Exception):
    """Raised when an image cannot be read or written."""


class Image:
    """An 8-bit image stored as a ``(height, width, bpp)`` numpy array."""

    __slots__ = ("data",)

    def __init__(self, data) -> None:
        arr = np.asarray(data)
        if arr.ndim == 2:
            arr = arr[:, :, np.newaxis]
        if arr.ndim != 3:
            raise ValueError("image data must have shape (height, width, bpp)")
        self.data = np.ascontiguousarray(arr, dtype=np.uint8)

    def __repr__(self) -> str:
        return f"Image(w={self.w}, h={self.h}, bpp={self.bpp})"

    @property
    def w(self) -> int:
        return self.data.shape[1]

    @property
    def h(self) -> int:
        return self.data.shape[0]

    @property
    def bpp(self) -> int:
        return self.data.shape[2]

    @classmethod
    def blank(cls, w: int, h: int, bpp: int) -> "Image":
        """Return a new image filled with zeros."""
        if w < 0 or h < 0 or bpp < 1:
            raise ValueError(f"invalid image geometry {w}x{h}x{bpp}")
        return cls(np.zeros((h, w, bpp), dtype=np.uint8))

    def pixel(self, x: int, y: int) -> tuple[int, ...]:
        """Return the channel values of the pixel at ``(x, y)``."""
        if not (0 <= x < self.w and 0 <= y < self.h):
            raise IndexError(f"pixel ({x}, {y}) outside a {self.w}x{self.h} image")
        return tuple(int(v) for v in self.data[y, x])

    def write(self, path) -> None:
        """Write the image; the format comes from the file extension."""
        path = os.fspath(path)
        _, dot, ext = path.rpartition(".")
        ext = ext if dot else ""
        if ext == "png":
            if self.bpp not in (3, 4):
                raise ImageError(f"cannot write a {self.bpp} bpp image as png")
            self._save(path, "RGB" if self.bpp == 3 else "RGBA", "PNG")
        elif ext in ("jpeg", "jpg"):
            if self.bpp != 3:
                raise ImageError(f"cannot write a {self.bpp} bpp image as jpeg")
            self._save(path, "RGB", "JPEG", quality=_JPEG_QUALITY)
        elif ext == "webp":
            if self.bpp not in (3, 4):
                raise ImageError(f"cannot write a {self.bpp} bpp image as webp")
            self._save(path, "RGB" if self.bpp == 3 else "RGBA", "WEBP",
                       quality=_WEBP_QUALITY)
        else:
            raise ImageError(f"unsupported output format for {path}")

    def _save(self, path: str, mode: str, fmt: str, **params) -> None:
        pil = _PILImage.fromarray(self.data, mode)
        try:
            pil.save(path, format=fmt, **params)
        except OSError as exc:
            raise ImageError(f"cannot write {path}: {exc}") from exc

    def map(self, positions: Sequence[Sequence[float]], width: int,
            height: int) -> "Image":
        """Resample into a new ``width`` x ``height`` image.

        ``positions`` holds one normalised ``(u, v)`` source coordinate per
        output pixel, row by row.  Values are bilinearly interpolated.
        """
        pos = np.asarray(positions, dtype=np.float64).reshape(-1, 2)
        if pos.shape[0] != width * height:
            raise ValueError(
                f"expected {width * height} positions, got {pos.shape[0]}")
        x = pos[:, 0] * self.w
        y = pos[:, 1] * self.h
        if np.any(x < 0) or np.any(x > self.w) or np.any(y < 0) or np.any(y > self.h):
            raise ValueError("mapping positions must lie within [0, 1]")

        x1 = np.floor(x - 0.5) + 0.5
        y1 = np.floor(y - 0.5) + 0.5
        x2 = x1 + 1
        y2 = y1 + 1
        xi1 = np.clip(x1, 0, self.w - 1).astype(np.intp)
        xi2 = np.clip(x2, 0, self.w - 1).astype(np.intp)
        yi1 = np.clip(y1, 0, self.h - 1).astype(np.intp)
        yi2 = np.clip(y2, 0, self.h - 1).astype(np.intp)

        src = self.data.astype(np.float64)
        q11 = src[yi1, xi1]
        q12 = src[yi2, xi1]
        q21 = src[yi1, xi2]
        q22 = src[yi2, xi2]
        wx1 = (x2 - x)[:, None]
        wx2 = (x - x1)[:, None]
        wy1 = (y2 - y)[:, None]
        wy2 = (y - y1)[:, None]
        values = q11 * wx1 * wy1 + q21 * wx2 * wy1 + q12 * wx1 * wy2 + q22 * wx2 * wy2
        values = np.clip(values, 0, 255).astype(np.uint8)
        return Image(values.reshape(height, width, self.bpp))

    def downsample(self, width: int, height: int) -> "Image":
        """Return a ``width`` x ``height`` reduction of the image.

        Each output pixel averages four source samples; the result is exact
        when the target is half the size of the source.
        """
        if width <= 0 or height <= 0:
            raise ValueError("target size must be positive")
        f = self.w // width
        if f == 0:
            raise ValueError("target is larger than the source image")
        d = f // 2
        xs = f * np.arange(width)
        ys = f * np.arange(height)
        if xs[-1] + d >= self.w or ys[-1] + d >= self.h:
            raise ValueError("target size does not fit the source image")
        src = self.data.astype(np.int32)
        total = (src[np.ix_(ys, xs)] + src[np.ix_(ys, xs + d)]
                 + src[np.ix_(ys + d, xs)] + src[np.ix_(ys + d, xs + d)])
        return Image((total // 4).astype(np.uint8))

    def blit(self, other: "Image", x: int, y: int) -> None:
        """Copy ``other`` into this image with its top-left corner at ``(x, y)``."""
        if other.bpp != self.bpp:
            raise ValueError(f"bpp mismatch: {other.bpp} != {self.bpp}")
        if x < 0 or y < 0 or x + other.w > self.w or y + other.h > self.h:
            raise ValueError("blitted image does not fit in the destination")
        self.data[y:y + other.h, x:x + other.w] = other.data

    def is_empty(self) -> bool:
        """True if the image has an alpha channel that is zero everywhere."""
        if self.bpp != 4:
            return False
        return not self.data[:, :, 3].any()

    def bump_to_normal(self) -> "Image":
        """Return an RGB normal map computed from the first channel as a bump map."""
        height = self.data[:, :, 0].astype(np.float64)
        nx = height - np.roll(height, -1, axis=1)
        ny = height - np.roll(height, -1, axis=0)
        nz = np.full_like(height, 16.0)
        norm = np.sqrt(nx * nx + ny * ny + nz * nz)
        normal = np.stack((nx / norm, ny / norm, nz / norm), axis=-1)
        return Image(((normal + 1.0) * 127).astype(np.uint8))


def _open(path: str) -> _PILImage.Image:
    try:
        with _PILImage.open(path) as pil:
            pil.load()
            return pil
    except (OSError, UnidentifiedImageError) as exc:
        raise ImageError(f"error reading {path}: {exc}") from exc


def _strip_16(pil: _PILImage.Image) -> _PILImage.Image:
    if pil.mode.startswith("I"):
        arr = np.asarray(pil).astype(np.uint32) >> 8
        return _PILImage.fromarray(arr.astype(np.uint8), "L")
    if pil.mode == "1":
        return pil.convert("L")
    return pil


def _load_webp(path: str, bpp: int) -> Image:
    pil = _open(path)
    return Image(np.asarray(pil.convert("RGB" if bpp == 3 else "RGBA")))


def _load_tiff(path: str, bpp: int) -> Image:
    if bpp not in (0, 4):
        raise ValueError("tiff images can only be loaded with bpp 0 or 4")
    pil = _open(path)
    spp = len(pil.getbands())
    rgba = np.asarray(pil.convert("RGBA"))
    # The RGBA raster is read with its origin at the lower-left corner.
    return Image(np.flipud(rgba)[:, :, :spp])


def _load_png(path: str, bpp: int) -> Image:
    pil = _strip_16(_open(path))
    if bpp == 0:
        if pil.mode not in ("L", "RGB", "RGBA"):
            raise ImageError(f"error reading png file {path}")
        return Image(np.asarray(pil))
    if bpp not in (1, 3, 4):
        raise ValueError(f"unsupported bpp {bpp} for png")
    return Image(np.asarray(pil.convert(_MODE_FOR_BPP[bpp])))


def _load_generic(path: str, bpp: int) -> Image:
    pil = _strip_16(_open(path))
    if bpp:
        if bpp not in _MODE_FOR_BPP:
            raise ValueError(f"unsupported bpp {bpp}")
        return Image(np.asarray(pil.convert(_MODE_FOR_BPP[bpp])))
    if pil.mode in _BPP_FOR_MODE:
        return Image(np.asarray(pil))
    if pil.mode in ("P", "PA"):
        has_alpha = pil.mode == "PA" or "transparency" in pil.info
        return Image(np.asarray(pil.convert("RGBA" if has_alpha else "RGB")))
    return Image(np.asarray(pil.convert("RGB")))


def load_image(path, bpp: int = 0) -> Image:
    """Load an image file.

    ``bpp`` forces the number of channels; 0 keeps the file's own.
    """
    path = os.fspath(path)
    _, dot, ext = path.rpartition(".")
    ext = ext if dot else ""
    if ext == "webp":
        return _load_webp(path, bpp)
    if ext.lower() == "tiff":
        return _load_tiff(path, bpp)
    if ext.lower() == "png":
        return _load_png(path, bpp)
    return _load_generic(path, bpp)