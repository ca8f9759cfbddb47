import numpy as np
import pytest

from fdkct import NumericConfigError, ProjectionStack, RampFilterConfig, padded_length, ramp_filter, ramp_kernel

WINDOWS = ["none", "ram-lak", "shepp-logan", "cosine", "hamming", "hann"]


@pytest.mark.parametrize(
    "kwargs",
    [
        {"cutoff": 0.0},
        {"cutoff": -0.2},
        {"cutoff": 1.01},
        {"cutoff": "high"},
        {"window": "gaussian"},
        {"window": None},
        {"padding_factor": 0.5},
    ],
)
def test_invalid_config(kwargs):
    with pytest.raises(NumericConfigError):
        RampFilterConfig(**kwargs)


@pytest.mark.parametrize("name, expected", [("Hann", "hann"), ("Shepp_Logan", "shepp-logan"), ("RamLak", "ram-lak")])
def test_window_names_are_normalized(name, expected):
    assert RampFilterConfig(window=name).window == expected


@pytest.mark.parametrize("n, factor, expected", [(128, 2.0, 256), (100, 2.0, 256), (100, 1.0, 128), (64, 1.0, 64), (1, 2.0, 2)])
def test_padded_length(n, factor, expected):
    assert padded_length(n, factor) == expected


def test_default_padding_is_long():
    assert RampFilterConfig().padding_factor == 8.0
    assert padded_length(64) == 512


@pytest.mark.parametrize("factor", [1.0, 1.5])
def test_short_padding_is_allowed_for_inspection(factor):
    config = RampFilterConfig(padding_factor=factor)
    assert padded_length(64, config.padding_factor) == (64 if factor == 1.0 else 128)


def test_longer_padding_keeps_more_of_the_mean():
    # Periodic copies of the row add the negative tail of the ramp kernel
    # back in; the shorter the padding, the lower the plateau.
    row = np.zeros((1, 1, 64))
    row[0, 0, 16:48] = 1.0
    short = ramp_filter(ProjectionStack(row), RampFilterConfig(padding_factor=2.0)).data[0, 0]
    long = ramp_filter(ProjectionStack(row)).data[0, 0]
    assert np.all(long[20:44] > short[20:44])


@pytest.mark.parametrize("window", WINDOWS)
@pytest.mark.parametrize("cutoff", [1.0, 0.5])
def test_kernel_has_zero_response_at_zero_frequency(window, cutoff):
    kernel = ramp_kernel(256, RampFilterConfig(cutoff=cutoff, window=window))
    assert kernel[0] == 0.0
    assert np.all(kernel >= -1e-12)


@pytest.mark.parametrize("window", WINDOWS)
def test_kernel_is_zero_beyond_cutoff(window):
    kernel = ramp_kernel(256, RampFilterConfig(cutoff=0.5, window=window))
    norm_freq = np.fft.rfftfreq(256) / 0.5
    assert np.all(kernel[norm_freq > 0.5] == 0.0)
    assert np.any(kernel[norm_freq <= 0.5] > 0.0)


def test_ram_lak_kernel_is_the_ramp():
    kernel = ramp_kernel(64, RampFilterConfig())
    np.testing.assert_allclose(kernel, np.fft.rfftfreq(64))


@pytest.mark.parametrize("window", ["shepp-logan", "cosine", "hamming", "hann"])
def test_apodization_attenuates_the_ramp(window):
    ramp = ramp_kernel(128, RampFilterConfig())
    apodized = ramp_kernel(128, RampFilterConfig(window=window))
    assert np.all(apodized <= ramp + 1e-12)
    assert apodized[-1] < ramp[-1]


def test_zero_row_stays_zero():
    stack = ProjectionStack(np.zeros((3, 4, 50)))
    filtered = ramp_filter(stack)
    np.testing.assert_array_equal(filtered.data, 0.0)


def test_constant_row_without_padding_is_removed():
    stack = ProjectionStack(np.full((2, 3, 64), 5.0))
    filtered = ramp_filter(stack, RampFilterConfig(padding_factor=1.0))
    np.testing.assert_allclose(filtered.data, 0.0, atol=1e-5)


def test_impulse_response_is_the_spatial_ramp_kernel():
    row = np.zeros((1, 1, 64))
    row[0, 0, 32] = 1.0
    filtered = ramp_filter(ProjectionStack(row)).data[0, 0]

    n_padded = padded_length(64, RampFilterConfig().padding_factor)
    expected = np.roll(np.fft.irfft(ramp_kernel(n_padded), n_padded), 32)[:64]
    np.testing.assert_allclose(filtered, expected, atol=1e-6)

    # Band-limited ramp sampled at unit spacing: 1/4 at 0, -1/(pi n)^2 at odd n, 0 at even n
    assert filtered[32] == pytest.approx(0.25, abs=1e-6)
    for n in (1, 3, 5):
        assert filtered[32 + n] == pytest.approx(-1.0 / (np.pi * n) ** 2, abs=1e-3)
        assert filtered[32 - n] == pytest.approx(-1.0 / (np.pi * n) ** 2, abs=1e-3)
    for n in (2, 4):
        assert filtered[32 + n] == pytest.approx(0.0, abs=1e-3)


def test_filter_scales_with_detector_spacing():
    rng = np.random.default_rng(0)
    data = rng.random((2, 3, 40))
    unit = ramp_filter(ProjectionStack(data, spacing=(1.0, 1.0))).data
    double = ramp_filter(ProjectionStack(data, spacing=(2.0, 1.0))).data
    np.testing.assert_allclose(double, unit / 2.0, rtol=1e-5, atol=1e-6)


def test_rows_are_filtered_independently():
    rng = np.random.default_rng(1)
    data = rng.random((3, 5, 32))
    full = ramp_filter(ProjectionStack(data)).data
    single = ramp_filter(ProjectionStack(data[1:2, 3:4])).data
    np.testing.assert_allclose(full[1, 3], single[0, 0], rtol=1e-5, atol=1e-6)


def test_filter_keeps_detector_layout():
    stack = ProjectionStack(np.ones((2, 3, 8)), spacing=(2.0, 3.0), origin=(1.0, -1.0))
    filtered = ramp_filter(stack, RampFilterConfig(window="hann", cutoff=0.8))
    assert filtered.data.shape == stack.data.shape
    assert filtered.data.dtype == np.float32
    assert filtered.spacing == (2.0, 3.0)
    assert filtered.origin == (1.0, -1.0)


def test_filter_rejects_foreign_config():
    with pytest.raises(NumericConfigError):
        ramp_filter(ProjectionStack(np.ones((1, 2, 4))), {"cutoff": 0.5})
