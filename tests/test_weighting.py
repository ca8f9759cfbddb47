import numpy as np
import pytest

from fdkct import ProjectionStack, ShapeMismatchError, ThreeDCircularProjectionGeometry, circular_geometry
from fdkct.weighting import weight_image, weight_projections


def test_central_pixel_weight_is_distance_ratio():
    geometry = circular_geometry(3, sid=600.0, sdd=1200.0)
    stack = ProjectionStack(np.ones((3, 5, 5)), spacing=(2.0, 2.0))
    weighted = weight_projections(stack, geometry)
    assert weighted.data[:, 2, 2] == pytest.approx(0.5)


def test_weights_follow_cone_beam_formula():
    geometry = circular_geometry(2, sid=600.0, sdd=1200.0)
    stack = ProjectionStack(np.full((2, 4, 6), 3.0), spacing=(4.0, 2.0))
    weighted = weight_projections(stack, geometry)

    u = (np.arange(6) - 2.5) * 4.0
    v = (np.arange(4) - 1.5) * 2.0
    expected = 3.0 * 600.0 / np.sqrt(1200.0 ** 2 + u[None, :] ** 2 + v[:, None] ** 2)
    np.testing.assert_allclose(weighted.data[0], expected, rtol=1e-6)
    np.testing.assert_allclose(weighted.data[1], expected, rtol=1e-6)


def test_weights_are_centred_on_the_piercing_point():
    geometry = ThreeDCircularProjectionGeometry()
    geometry.add_projection(600.0, 1200.0, 0.0, 4.0, 0.0)
    stack = ProjectionStack(np.ones((1, 3, 5)), spacing=(4.0, 4.0))
    weights = weight_image(stack, geometry.record(0))
    # Detector shifted by +4 mm: the piercing point falls on column 1
    assert np.argmax(weights[1]) == 1
    assert weights[1, 1] == pytest.approx(0.5)


def test_weighting_returns_a_new_stack():
    geometry = circular_geometry(2, sid=100.0, sdd=300.0)
    raw = np.ones((2, 3, 3), dtype=np.float32)
    stack = ProjectionStack(raw)
    weighted = weight_projections(stack, geometry)
    assert weighted is not stack
    np.testing.assert_array_equal(stack.data, 1.0)
    assert weighted.spacing == stack.spacing
    assert weighted.origin == stack.origin


def test_view_count_mismatch():
    geometry = circular_geometry(4, sid=100.0, sdd=300.0)
    with pytest.raises(ShapeMismatchError):
        weight_projections(ProjectionStack(np.ones((3, 4, 4))), geometry)
