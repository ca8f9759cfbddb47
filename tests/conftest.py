import importlib.util
from pathlib import Path

import numpy as np
import pytest

from fdkct import ProjectionStack, ThreeDCircularProjectionGeometry, VolumeGeometry, circular_geometry


def _load_ellipsoids():
    path = Path(__file__).resolve().parents[1] / "examples" / "ellipsoids.py"
    module_spec = importlib.util.spec_from_file_location("ellipsoids", path)
    module = importlib.util.module_from_spec(module_spec)
    module_spec.loader.exec_module(module)
    return module


ellipsoids = _load_ellipsoids()


def _shepp_logan_scan(geometry):
    shapes = ellipsoids.ellipsoids(ellipsoids.SHEPP_LOGAN, scale=100.0)
    projections = ellipsoids.project_ellipsoids(geometry, 128, 128, (4.0, 4.0), shapes)
    volume = VolumeGeometry((-127.0, -127.0, -127.0), (2.0, 2.0, 2.0), (128, 128, 128))
    return projections, geometry, volume, ellipsoids.draw_ellipsoids(volume, shapes)


def _sphere_scan(geometry):
    shapes = ellipsoids.sphere(20.0)
    projections = ellipsoids.project_ellipsoids(geometry, 64, 64, (1.5, 1.5), shapes)
    volume = VolumeGeometry.centered((40, 40, 40), (1.25, 1.25, 1.25))
    return projections, geometry, volume, ellipsoids.draw_ellipsoids(volume, shapes)


@pytest.fixture
def small_setup():
    """Few views, small detector and volume, random smooth projections."""
    geometry = circular_geometry(12, sid=200.0, sdd=400.0)
    rng = np.random.default_rng(1234)
    projections = ProjectionStack(rng.random((12, 24, 32)), spacing=(1.0, 1.0))
    volume = VolumeGeometry.centered((20, 18, 16), (0.5, 0.5, 0.5))
    return projections, geometry, volume


@pytest.fixture(scope="module")
def sphere_scan():
    """Uniform sphere of radius 20 mm, density 1, scanned over 90 views."""
    return _sphere_scan(circular_geometry(90, sid=300.0, sdd=600.0))


@pytest.fixture(scope="module")
def irregular_sphere_scan():
    """The same sphere, 90 views with jittered, unevenly spaced gantry angles."""
    rng = np.random.default_rng(42)
    angles = np.arange(90) * 4.0 + rng.uniform(-1.5, 1.5, 90)
    geometry = ThreeDCircularProjectionGeometry()
    for angle in rng.permutation(angles):
        geometry.add_projection(300.0, 600.0, angle)
    return _sphere_scan(geometry)


@pytest.fixture(scope="module")
def shepp_logan_scan():
    """180 views over 360 degrees, sid 600 mm, sdd 1200 mm, 128x128 detector
    at 4 mm and a 128^3 volume at 2 mm centred on the isocentre."""
    return _shepp_logan_scan(circular_geometry(180, sid=600.0, sdd=1200.0))


@pytest.fixture(scope="module")
def offset_shepp_logan_scan():
    """As ``shepp_logan_scan`` with the source shifted by (20, 15) mm."""
    return _shepp_logan_scan(circular_geometry(180, sid=600.0, sdd=1200.0,
                                               source_offset_x=20.0, source_offset_y=15.0))
