import cv2
import numpy as np
import pytest

from skin_score import (
    AnalysisError,
    InputError,
    SkinAnalyzer,
    analyze,
    channel_statistics,
    clamp_score,
    color_planes,
    load_raster,
    round_half_up,
    validate_raster,
)

SKIN_TONE = (200, 150, 120)


def solid(color, height=48, width=64) -> np.ndarray:
    raster = np.zeros((height, width, len(color)), dtype=np.uint8)
    raster[:, :] = color
    return raster


def noisy(seed=0, height=64, width=64) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)


def test_solid_color_scores_perfect() -> None:
    result = analyze(solid(SKIN_TONE))

    assert result.smoothness == 100
    assert result.evenness == 100
    assert result.clarity == 100
    assert result.overall == 100
    assert result.label == "Excellent"


def test_rgba_raster_matches_rgb() -> None:
    rgb = noisy(seed=3)
    alpha = np.full(rgb.shape[:2] + (1,), 255, dtype=np.uint8)
    rgba = np.concatenate([rgb, alpha], axis=2)

    assert analyze(rgba) == analyze(rgb)


def test_unsaturated_solid_color_loses_clarity() -> None:
    result = analyze(solid((128, 128, 128)))

    assert result.smoothness == 100
    assert result.evenness == 100
    assert result.clarity == 0
    assert result.overall == 67
    assert result.label == "Good"


def test_noisy_raster_scores_stay_in_range() -> None:
    for seed in range(5):
        result = analyze(noisy(seed))
        for score in (result.overall, result.smoothness, result.evenness, result.clarity):
            assert 0 <= score <= 100
        assert result.overall == round((result.smoothness + result.evenness + result.clarity) / 3)


def test_noise_lowers_smoothness() -> None:
    assert analyze(noisy()).smoothness < 90


def test_analyze_is_repeatable() -> None:
    raster = noisy(seed=7)
    analyzer = SkinAnalyzer()

    assert analyzer.analyze(raster) == analyzer.analyze(raster)


def test_evenness_drops_to_zero_for_split_lightness() -> None:
    raster = np.zeros((20, 20, 3), dtype=np.uint8)
    raster[:, 10:] = 255

    assert analyze(raster).evenness == 0


def test_clarity_follows_low_saturation_share() -> None:
    analyzer = SkinAnalyzer()
    hsv = np.zeros((10, 10, 3), dtype=np.uint8)
    hsv[:, :, 1] = 200

    assert analyzer.analyze_clarity(hsv) == 100

    hsv[0, :, 1] = 10
    assert analyzer.blemish_ratio(hsv) == pytest.approx(0.1)
    assert analyzer.analyze_clarity(hsv) == 50

    hsv[1, :, 1] = 10
    assert analyzer.analyze_clarity(hsv) == 0

    hsv[:5, :, 1] = 10
    assert analyzer.analyze_clarity(hsv) == 0


@pytest.mark.parametrize(
    "score, label",
    [
        (100, "Excellent"),
        (80, "Excellent"),
        (79, "Good"),
        (60, "Good"),
        (59, "Fair"),
        (40, "Fair"),
        (39, "Needs Attention"),
        (0, "Needs Attention"),
    ],
)
def test_categorize_score(score, label) -> None:
    assert SkinAnalyzer().categorize_score(score) == label


def test_color_planes_keep_dimensions_and_are_released() -> None:
    raster = noisy(height=30, width=40)

    with color_planes(raster) as planes:
        assert planes['gray'].shape == (30, 40)
        assert planes['hsv'].shape == (30, 40, 3)
        assert planes['lab'].shape == (30, 40, 3)

    assert planes == {}


def test_color_planes_released_on_error() -> None:
    with pytest.raises(ZeroDivisionError):
        with color_planes(noisy()) as planes:
            1 / 0

    assert planes == {}


@pytest.mark.parametrize(
    "raster",
    [
        np.zeros((0, 10, 3), dtype=np.uint8),
        np.zeros((10, 0, 3), dtype=np.uint8),
        np.zeros((10, 10, 2), dtype=np.uint8),
        np.zeros((10, 10, 5), dtype=np.uint8),
        np.zeros((10, 10), dtype=np.uint8),
        np.zeros((10, 10, 3), dtype=np.float32),
        [[[0, 0, 0]]],
    ],
)
def test_malformed_raster_rejected(raster) -> None:
    with pytest.raises(InputError):
        validate_raster(raster)

    with pytest.raises(AnalysisError):
        analyze(raster)


def test_load_raster_returns_rgb(tmp_path) -> None:
    path = tmp_path / "face.png"
    bgr = np.zeros((8, 8, 3), dtype=np.uint8)
    bgr[:, :] = (120, 150, 200)
    assert cv2.imwrite(str(path), bgr)

    raster = load_raster(str(path))

    assert raster.shape == (8, 8, 3)
    assert tuple(raster[0, 0]) == SKIN_TONE


def test_load_raster_missing_file(tmp_path) -> None:
    with pytest.raises(InputError):
        load_raster(str(tmp_path / "missing.png"))


def test_analyze_image(tmp_path) -> None:
    path = tmp_path / "face.png"
    assert cv2.imwrite(str(path), solid((120, 150, 200)))

    assert SkinAnalyzer().analyze_image(str(path)).overall == 100


def striped_gray(stripe_width=6, size=48, low=60, high=160) -> np.ndarray:
    columns = np.where((np.arange(size) // stripe_width) % 2 == 0, low, high)
    return np.tile(columns, (size, 1)).astype(np.uint8)


def residual_stddev(gray, kernel) -> float:
    blurred = cv2.GaussianBlur(gray, kernel, 0)
    return channel_statistics(cv2.absdiff(gray, blurred)).stddev


def test_smoothness_uses_wide_blur_and_double_residual_spread() -> None:
    gray = striped_gray()
    stddev = residual_stddev(gray, (15, 15))
    expected = round_half_up(clamp_score(100 - stddev * 2))

    # the stripes separate the kernel size and the multiplier
    assert expected != round_half_up(clamp_score(100 - stddev * 3))
    assert expected != round_half_up(clamp_score(100 - residual_stddev(gray, (5, 5)) * 2))

    assert SkinAnalyzer().analyze_smoothness(gray) == expected


def test_evenness_is_triple_lightness_spread() -> None:
    lab = np.zeros((10, 10, 3), dtype=np.uint8)
    lab[:5, :, 0] = 100
    lab[5:, :, 0] = 120

    assert SkinAnalyzer().analyze_evenness(lab) == 70

    lab[5:, :, 0] = 110
    assert SkinAnalyzer().analyze_evenness(lab) == 85


def test_saturation_at_threshold_is_flagged() -> None:
    analyzer = SkinAnalyzer()
    hsv = np.zeros((10, 10, 3), dtype=np.uint8)
    hsv[:, :, 1] = 31

    assert analyzer.blemish_ratio(hsv) == 0

    hsv[0, :, 1] = 30
    assert analyzer.blemish_ratio(hsv) == pytest.approx(0.1)
