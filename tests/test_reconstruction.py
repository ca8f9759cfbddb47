import numpy as np
import pytest

from fdkct import (
    NumericConfigError,
    RampFilterConfig,
    ShapeMismatchError,
    VolumeRegion,
    circular_geometry,
    image_quality,
    paste_regions,
    reconstruct,
    reconstruct_streamed,
    split_region,
)


def test_reconstruction_is_deterministic(small_setup):
    projections, geometry, volume = small_setup
    first = reconstruct(projections, geometry, volume)
    second = reconstruct(projections, geometry, volume)
    assert np.array_equal(first.data, second.data)


def test_reconstructed_regions_match_full_volume(small_setup):
    projections, geometry, volume = small_setup
    config = RampFilterConfig(window="hann", cutoff=0.8)
    full = reconstruct(projections, geometry, volume, filter_config=config,
                       mask_field_of_view=True)

    regions = [volume.region((0, 0, 0), (20, 18, 7)),
               volume.region((0, 0, 7), (20, 9, 9)),
               volume.region((0, 9, 7), (20, 9, 9))]
    parts = [reconstruct(projections, geometry, volume, region, filter_config=config,
                         mask_field_of_view=True)
             for region in regions]
    assert [p.index for p in parts] == [r.index for r in regions]
    assert np.array_equal(paste_regions(volume, parts).data, full.data)


def test_streamed_equals_one_shot(small_setup):
    projections, geometry, volume = small_setup
    full = reconstruct(projections, geometry, volume, mask_field_of_view=True)
    streamed = reconstruct_streamed(projections, geometry, volume, n_divisions=5,
                                    mask_field_of_view=True)
    assert streamed.index == (0, 0, 0)
    assert np.array_equal(streamed.data, full.data)


def test_split_region_along_z():
    parts = split_region(VolumeRegion((0, 0, 0), (128, 128, 128)), 8)
    assert [p.size for p in parts] == [(128, 128, 16)] * 8
    assert [p.index[2] for p in parts] == list(range(0, 128, 16))


def test_split_region_uneven_and_capped():
    parts = split_region(VolumeRegion((2, 3, 4), (5, 6, 3)), 8)
    assert [p.index for p in parts] == [(2, 3, 4), (2, 3, 5), (2, 3, 6)]
    assert all(p.size == (5, 6, 1) for p in parts)

    parts = split_region(VolumeRegion((0, 0, 0), (4, 4, 10)), 4)
    assert [p.size[2] for p in parts] == [3, 3, 2, 2]


def test_split_single_slice_along_y():
    parts = split_region(VolumeRegion((0, 0, 5), (10, 6, 1)), 3)
    assert [p.index for p in parts] == [(0, 0, 5), (0, 2, 5), (0, 4, 5)]
    assert all(p.size == (10, 2, 1) for p in parts)


@pytest.mark.parametrize("n_divisions", [0, -3])
def test_split_region_rejects_bad_division_count(n_divisions):
    with pytest.raises(ShapeMismatchError):
        split_region(VolumeRegion((0, 0, 0), (4, 4, 4)), n_divisions)


def test_bad_filter_config_is_rejected_before_computing(small_setup):
    projections, geometry, volume = small_setup
    with pytest.raises(NumericConfigError):
        reconstruct(projections, geometry, volume, filter_config={"window": "hann"})
    with pytest.raises(NumericConfigError):
        reconstruct(projections, geometry, volume, filter_config=RampFilterConfig(cutoff=2.0))


def test_geometry_mismatch_is_rejected(small_setup):
    projections, _, volume = small_setup
    with pytest.raises(ShapeMismatchError):
        reconstruct(projections, circular_geometry(13, sid=200.0, sdd=400.0), volume)
    with pytest.raises(ShapeMismatchError):
        reconstruct_streamed(projections, circular_geometry(13, sid=200.0, sdd=400.0), volume)


def _inner_mean(recon, volume, radius_mm):
    axes_coords = [o + np.arange(n) * s for o, s, n in zip(volume.origin, volume.spacing, volume.size)]
    zz, yy, xx = np.meshgrid(axes_coords[2], axes_coords[1], axes_coords[0], indexing="ij")
    radius = np.sqrt(xx ** 2 + yy ** 2 + zz ** 2)
    return np.mean(recon.data[radius < radius_mm])


def test_uniform_sphere_density(sphere_scan):
    projections, geometry, volume, _ = sphere_scan
    recon = reconstruct(projections, geometry, volume)
    assert _inner_mean(recon, volume, 12.0) == pytest.approx(1.0, rel=0.02)


def test_short_padding_reconstructs_low(sphere_scan):
    projections, geometry, volume, _ = sphere_scan
    short = reconstruct(projections, geometry, volume,
                        filter_config=RampFilterConfig(padding_factor=2.0))
    default = reconstruct(projections, geometry, volume)
    assert _inner_mean(short, volume, 12.0) < _inner_mean(default, volume, 12.0)


def test_uneven_angular_sampling(irregular_sphere_scan):
    projections, geometry, volume, _ = irregular_sphere_scan
    weights = geometry.angular_gap_weights()
    assert weights.min() < 0.9 * weights.max()

    recon = reconstruct(projections, geometry, volume)
    assert _inner_mean(recon, volume, 12.0) == pytest.approx(1.0, rel=0.03)


def test_shepp_logan_reconstruction_quality(shepp_logan_scan):
    projections, geometry, volume, reference = shepp_logan_scan
    recon = reconstruct(projections, geometry, volume, mask_field_of_view=True)
    assert recon.shape == (128, 128, 128)

    quality = image_quality(recon, reference)
    assert quality.error_per_pixel <= 0.03
    assert quality.psnr >= 26.0

    streamed = reconstruct_streamed(projections, geometry, volume, n_divisions=8,
                                    mask_field_of_view=True)
    assert np.array_equal(streamed.data, recon.data)


def test_shepp_logan_with_source_offset(offset_shepp_logan_scan):
    projections, geometry, volume, reference = offset_shepp_logan_scan
    assert geometry.record(0).source_offset_x == 20.0
    assert geometry.record(0).source_offset_y == 15.0

    recon = reconstruct(projections, geometry, volume, mask_field_of_view=True)
    quality = image_quality(recon, reference)
    assert quality.error_per_pixel <= 0.03
    assert quality.psnr >= 26.0
