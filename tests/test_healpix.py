import math

import pytest

from hipster import healpix

NSIDES = [1, 2, 4, 16]


@pytest.mark.parametrize("nside", NSIDES)
def test_nest_xyf_round_trip(nside):
    for pix in range(12 * nside * nside):
        ix, iy, face = healpix.nest2xyf(nside, pix)
        assert 0 <= ix < nside and 0 <= iy < nside and 0 <= face < 12
        assert healpix.xyf2nest(nside, ix, iy, face) == pix


def test_xyf2nest_interleaves_bits():
    assert healpix.xyf2nest(4, 0, 0, 0) == 0
    assert healpix.xyf2nest(4, 1, 0, 0) == 1
    assert healpix.xyf2nest(4, 0, 1, 0) == 2
    assert healpix.xyf2nest(4, 1, 1, 0) == 3


def test_xyf2nest_face_offset():
    assert healpix.xyf2nest(2, 0, 0, 3) == 3 * 2 * 2


def test_pix2ang_first_base_pixel():
    theta, phi = healpix.pix2ang(1, 0)
    assert theta == pytest.approx(math.acos(2 / 3))
    assert phi == pytest.approx(math.pi / 4)


@pytest.mark.parametrize("nside", NSIDES)
def test_ang2pix_of_centre_is_identity(nside):
    for pix in range(12 * nside * nside):
        theta, phi = healpix.pix2ang(nside, pix)
        assert healpix.ang2pix(nside, theta, phi) == pix


@pytest.mark.parametrize("nside", [1, 4])
def test_pix2vec_matches_pix2ang(nside):
    for pix in range(12 * nside * nside):
        vec = healpix.pix2vec(nside, pix)
        theta, phi = healpix.pix2ang(nside, pix)
        assert math.hypot(*vec) == pytest.approx(1.0)
        assert vec[2] == pytest.approx(math.cos(theta))
        assert vec[0] == pytest.approx(math.sin(theta) * math.cos(phi), abs=1e-12)
        assert vec[1] == pytest.approx(math.sin(theta) * math.sin(phi), abs=1e-12)


@pytest.mark.parametrize("nside", [1, 2, 8])
def test_get_mat3_centre_maps_to_pixel_centre(nside):
    for pix in range(12 * nside * nside):
        m = healpix.get_mat3(nside, pix)
        u = v = 0.5
        xy = (
            m[0][0] * u + m[1][0] * v + m[2][0],
            m[0][1] * u + m[1][1] * v + m[2][1],
        )
        assert healpix.xy2vec(xy) == pytest.approx(healpix.pix2vec(nside, pix))
        assert m[2][2] == 1.0


def test_xyf2ang_agrees_with_pix2ang():
    nside = 8
    for pix in range(0, 12 * nside * nside, 7):
        ix, iy, face = healpix.nest2xyf(nside, pix)
        assert healpix.xyf2ang(nside, ix, iy, face) == healpix.pix2ang(nside, pix)


def test_xy2ang_north_pole():
    theta, phi = healpix.xy2ang((0.3, math.pi / 2))
    assert theta == 0.0
    assert phi == 0.3


def test_xy2ang_equator():
    theta, _ = healpix.xy2ang((1.0, 0.0))
    assert theta == pytest.approx(math.pi / 2)


def test_ang2pix_wraps_negative_phi():
    nside = 16
    for phi in (0.1, 1.3, 2.9, 4.4, 6.0):
        for theta in (0.05, 0.8, 1.6, 2.5, 3.1):
            assert healpix.ang2pix(nside, theta, phi - 2 * math.pi) == \
                healpix.ang2pix(nside, theta, phi)


def test_ang2pix_polar_faces():
    nside = 4
    north = healpix.ang2pix(nside, 0.01, 1.0)
    south = healpix.ang2pix(nside, math.pi - 0.01, 1.0)
    assert healpix.nest2xyf(nside, north)[2] in range(0, 4)
    assert healpix.nest2xyf(nside, south)[2] in range(8, 12)


@pytest.mark.parametrize("nside", [0, 3, -2])
def test_invalid_nside(nside):
    with pytest.raises(ValueError):
        healpix.nest2xyf(nside, 0)


def test_pixel_out_of_range():
    with pytest.raises(ValueError):
        healpix.nest2xyf(2, 48)


def test_xyf2nest_rejects_bad_face():
    with pytest.raises(ValueError):
        healpix.xyf2nest(2, 0, 0, 12)


def test_xyf2nest_rejects_outside_face():
    with pytest.raises(ValueError):
        healpix.xyf2nest(2, 2, 0, 0)