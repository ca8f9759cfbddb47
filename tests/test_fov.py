import numpy as np

from fdkct import (
    ProjectionStack,
    VolumeGeometry,
    apply_field_of_view,
    backproject,
    circular_geometry,
    field_of_view_mask,
)


def _scan():
    geometry = circular_geometry(36, sid=200.0, sdd=400.0)
    projections = ProjectionStack(np.ones((36, 20, 20)), spacing=(2.0, 2.0))
    volume = VolumeGeometry.centered((24, 24, 24), (1.0, 1.0, 1.0))
    return geometry, projections, volume


def test_mask_covers_centre_but_not_corners():
    geometry, projections, volume = _scan()
    mask = field_of_view_mask(geometry, projections, volume)
    assert mask.shape == (24, 24, 24)
    assert mask.dtype == np.bool_
    assert mask[11:13, 11:13, 11:13].all()
    for corner in [(0, 0, 0), (0, 0, -1), (0, -1, 0), (-1, -1, -1)]:
        assert not mask[corner]


def test_region_mask_is_a_slice_of_the_full_mask():
    geometry, projections, volume = _scan()
    full = field_of_view_mask(geometry, projections, volume)
    region = volume.region((4, 2, 7), (10, 15, 6))
    part = field_of_view_mask(geometry, projections, volume, region)
    assert np.array_equal(part, full[region.slices])


def test_masked_voxels_saw_every_view():
    geometry, projections, volume = _scan()
    recon = backproject(projections, geometry, volume)
    masked = apply_field_of_view(recon, geometry, projections, volume)
    mask = field_of_view_mask(geometry, projections, volume)

    np.testing.assert_array_equal(masked.data[~mask], 0.0)
    np.testing.assert_array_equal(masked.data[mask], recon.data[mask])
    assert masked.index == recon.index
