"""HEALPix pixelisation helpers in the NESTED scheme.

Pixels are addressed either by a nested index or by ``(ix, iy, face)``
coordinates inside one of the twelve base faces.  The "xy" coordinates
used here are the HEALPix projection plane coordinates in radians.
"""

from __future__ import annotations

import math

__all__ = [
    "xyf2nest",
    "nest2xyf",
    "get_mat3",
    "xy2ang",
    "xy2vec",
    "pix2vec",
    "xyf2ang",
    "pix2ang",
    "ang2pix",
]

# Position of the base faces in the projection plane, in units of pi/4.
_FACES = (
    (1, 0), (3, 0), (5, 0), (7, 0),
    (0, -1), (2, -1), (4, -1), (6, -1),
    (1, -2), (3, -2), (5, -2), (7, -2),
)

_QUARTER_PI = math.pi / 4


def _spread_bits(value: int) -> int:
    """Move bit ``k`` of *value* to bit ``2k``."""
    result = 0
    shift = 0
    while value:
        result |= (value & 1) << shift
        value >>= 1
        shift += 2
    return result


def _compact_bits(value: int) -> int:
    """Collect the even bits of *value* into a contiguous integer."""
    result = 0
    shift = 0
    while value:
        result |= (value & 1) << shift
        value >>= 2
        shift += 1
    return result


def _check_nside(nside: int) -> None:
    if nside < 1 or nside & (nside - 1):
        raise ValueError(f"nside must be a positive power of two, got {nside}")


def _check_face(face: int) -> None:
    if not 0 <= face < len(_FACES):
        raise ValueError(f"face must be in [0, 11], got {face}")


def _fmodulo(v1: float, v2: float) -> float:
    """Non-negative remainder of ``v1 / v2`` (``v2`` must be positive)."""
    if v1 >= 0:
        return v1 if v1 < v2 else math.fmod(v1, v2)
    tmp = math.fmod(v1, v2) + v2
    return 0.0 if tmp == v2 else tmp


def _xyf2xy(nside: int, ix: int, iy: int, face: int,
            offset: float) -> tuple[float, float]:
    fx, fy = _FACES[face]
    return (
        (fx + (ix - iy) / nside) * _QUARTER_PI,
        (fy + (ix + iy + offset) / nside) * _QUARTER_PI,
    )


def xyf2nest(nside: int, ix: int, iy: int, face: int) -> int:
    """Return the nested index of the pixel ``(ix, iy)`` of a base face."""
    _check_nside(nside)
    _check_face(face)
    if not (0 <= ix < nside and 0 <= iy < nside):
        raise ValueError(f"pixel ({ix}, {iy}) outside a face of nside {nside}")
    return face * nside * nside + (_spread_bits(ix) | (_spread_bits(iy) << 1))


def nest2xyf(nside: int, pix: int) -> tuple[int, int, int]:
    """Return ``(ix, iy, face)`` for a nested pixel index."""
    _check_nside(nside)
    npface = nside * nside
    if not 0 <= pix < 12 * npface:
        raise ValueError(f"pixel {pix} out of range for nside {nside}")
    face, local = divmod(pix, npface)
    return _compact_bits(local), _compact_bits(local >> 1), face


def get_mat3(nside: int, pix: int) -> tuple[tuple[float, float, float], ...]:
    """Return the 3x3 matrix mapping uv coordinates of a pixel to xy.

    The matrix is given as three columns: ``xy = u * m[0] + v * m[1] + m[2]``
    (taking the first two components of each column).
    """
    ix, iy, face = nest2xyf(nside, pix)
    step = _QUARTER_PI / nside
    x0, y0 = _xyf2xy(nside, ix, iy, face, 0.0)
    return (
        (step, step, 0.0),
        (-step, step, 0.0),
        (x0, y0, 1.0),
    )


def _xy2z_phi(xy) -> tuple[float, float]:
    x, y = xy
    if abs(y) > _QUARTER_PI:
        # Polar caps.
        sigma = 2 - abs(y * 4) / math.pi
        z = (1 if y > 0 else -1) * (1 - sigma * sigma / 3)
        xc = -math.pi + (2 * math.floor((x + math.pi) * 4 / (2 * math.pi)) + 1) * _QUARTER_PI
        phi = xc + (x - xc) / sigma if sigma else x
        return z, phi
    # Equatorial belt.
    return y * 8 / (math.pi * 3), x


def xy2ang(xy) -> tuple[float, float]:
    """Convert projection-plane coordinates to ``(theta, phi)``."""
    z, phi = _xy2z_phi(xy)
    return math.acos(z), phi


def xy2vec(xy) -> tuple[float, float, float]:
    """Convert projection-plane coordinates to a unit 3d vector."""
    z, phi = _xy2z_phi(xy)
    stheta = math.sqrt((1 - z) * (1 + z))
    return stheta * math.cos(phi), stheta * math.sin(phi), z


def pix2vec(nside: int, pix: int) -> tuple[float, float, float]:
    """Return the unit vector of the centre of a nested pixel."""
    ix, iy, face = nest2xyf(nside, pix)
    return xy2vec(_xyf2xy(nside, ix, iy, face, 1.0))


def xyf2ang(nside: int, ix: int, iy: int, face: int) -> tuple[float, float]:
    """Return ``(theta, phi)`` of the centre of pixel ``(ix, iy)`` of a face."""
    _check_face(face)
    return xy2ang(_xyf2xy(nside, ix, iy, face, 1.0))


def pix2ang(nside: int, pix: int) -> tuple[float, float]:
    """Return ``(theta, phi)`` of the centre of a nested pixel."""
    ix, iy, face = nest2xyf(nside, pix)
    return xyf2ang(nside, ix, iy, face)


def _ang2pix_z_phi(nside: int, z: float, phi: float) -> int:
    za = abs(z)
    tt = _fmodulo(phi, 2 * math.pi) * (2 / math.pi)  # in [0, 4)

    if za <= 2.0 / 3.0:
        temp1 = nside * (0.5 + tt)
        temp2 = nside * (z * 0.75)
        jp = int(temp1 - temp2)  # ascending edge line
        jm = int(temp1 + temp2)  # descending edge line
        ifp = jp // nside
        ifm = jm // nside
        if ifp == ifm:
            face = ifp | 4
        elif ifp < ifm:
            face = ifp
        else:
            face = ifm + 8
        ix = jm & (nside - 1)
        iy = nside - (jp & (nside - 1)) - 1
    else:
        ntt = min(int(tt), 3)
        tp = tt - ntt
        tmp = nside * math.sqrt(3 * (1 - za))
        jp = min(int(tp * tmp), nside - 1)
        jm = min(int((1.0 - tp) * tmp), nside - 1)
        if z >= 0:
            face = ntt
            ix = nside - jm - 1
            iy = nside - jp - 1
        else:
            face = ntt + 8
            ix = jp
            iy = jm

    return xyf2nest(nside, ix, iy, face)


def ang2pix(nside: int, theta: float, phi: float) -> int:
    """Return the nested index of the pixel containing ``(theta, phi)``."""
    _check_nside(nside)
    return _ang2pix_z_phi(nside, math.cos(theta), phi)