"""Tests for colour maths, palette derivation, matching and grid building."""

from __future__ import annotations

import math

import numpy as np
import pytest

from mystery_mosaic.color_utils import (
    DEFAULT_PALETTE,
    hex_to_rgb,
    palette_to_hex,
    parse_palette,
    rgb_to_hex,
    rgb_to_lab,
)
from mystery_mosaic.config import (
    ColorMatching,
    MosaicConfigError,
    MosaicSettings,
    Sampling,
    TileShape,
)
from mystery_mosaic.grid import (
    MosaicResult,
    build_mosaic,
    compute_grid_dimensions,
    sample_cells,
)
from mystery_mosaic.matching import closest_index, compute_cost_matrix, match_colors
from mystery_mosaic.palette import extract_palette, median_cut

METRICS = list(ColorMatching)

RED, GREEN, BLUE = (255, 0, 0), (0, 255, 0), (0, 0, 255)

# -- Fixtures ----------------------------------------------------------


@pytest.fixture
def palette() -> np.ndarray:
    return parse_palette(DEFAULT_PALETTE)


@pytest.fixture
def photo() -> np.ndarray:
    """Synthetic non-square 'photo'."""
    rng = np.random.default_rng(456)
    return rng.integers(0, 256, size=(90, 120, 3), dtype=np.uint8)


@pytest.fixture
def small_settings() -> MosaicSettings:
    # 25.4 / 12.7 == 2 tiles per inch exactly -> 8 x 4 grid
    return MosaicSettings(canvas_width=4, canvas_height=2, tile_size=12.7)


# -- Settings ----------------------------------------------------------

class TestSettings:
    def test_defaults(self) -> None:
        s = MosaicSettings()
        assert (s.canvas_width, s.canvas_height, s.tile_size) == (8.5, 11.0, 4.0)
        assert s.tile_shape is TileShape.SQUARE
        assert s.color_matching is ColorMatching.NEAREST
        assert s.sampling is Sampling.POINT

    def test_strings_coerced_to_enums(self) -> None:
        s = MosaicSettings(tile_shape="hexagon", color_matching="lab")
        assert s.tile_shape is TileShape.HEXAGON
        assert s.color_matching is ColorMatching.LAB

    def test_unknown_shape(self) -> None:
        with pytest.raises(ValueError):
            MosaicSettings(tile_shape="octagon")

    def test_frozen(self) -> None:
        s = MosaicSettings()
        with pytest.raises(AttributeError):
            s.tile_size = 2  # type: ignore[misc]

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"canvas_width": 0.5},
            {"canvas_height": 21},
            {"tile_size": 0},
            {"tile_size": float("nan")},
            {"canvas_width": float("inf")},
        ],
    )
    def test_validate_rejects(self, kwargs: dict) -> None:
        with pytest.raises(MosaicConfigError):
            MosaicSettings(**kwargs).validate()

    def test_validate_returns_self(self) -> None:
        s = MosaicSettings(canvas_width=20, canvas_height=1, tile_size=1)
        assert s.validate() is s

    def test_dict_roundtrip(self) -> None:
        s = MosaicSettings(tile_shape="triangle", color_matching="perceptual", dithering=True)
        d = s.to_dict()
        assert d["tileShape"] == "triangle"
        assert d["colorMatching"] == "perceptual"
        assert MosaicSettings.from_dict(d) == s


# -- Colour space ------------------------------------------------------

class TestColorSpace:
    def test_hex_parse(self) -> None:
        assert hex_to_rgb("#FF6B6B") == (255, 107, 107)
        assert hex_to_rgb("4ecdc4") == (78, 205, 196)

    @pytest.mark.parametrize("bad", ["", "#FFF", "#GG0000", "#1234567", "12345", "##123456"])
    def test_malformed_hex_is_black(self, bad: str) -> None:
        assert hex_to_rgb(bad) == (0, 0, 0)

    def test_non_string_is_black(self) -> None:
        assert hex_to_rgb(None) == (0, 0, 0)  # type: ignore[arg-type]

    def test_hex_roundtrip(self) -> None:
        for rgb in [(0, 0, 0), (255, 255, 255), (1, 128, 254), (16, 15, 170)]:
            assert hex_to_rgb(rgb_to_hex(*rgb)) == rgb

    def test_rgb_to_hex_format(self) -> None:
        assert rgb_to_hex(255, 107, 10) == "#FF6B0A"

    def test_white_lab(self) -> None:
        L, a, b = rgb_to_lab(255, 255, 255)
        assert L == pytest.approx(100.0, abs=1e-6)
        assert a == pytest.approx(0.0, abs=1e-6)
        assert b == pytest.approx(0.0, abs=1e-6)

    def test_black_lab(self) -> None:
        np.testing.assert_allclose(rgb_to_lab(0, 0, 0), [0.0, 0.0, 0.0], atol=1e-9)

    def test_vectorised_shape(self) -> None:
        lab = rgb_to_lab(np.array([[255, 0, 0], [0, 255, 0], [0, 0, 255]]))
        assert lab.shape == (3, 3)
        # red pushes a positive, blue pushes b negative
        assert lab[0, 1] > 0
        assert lab[2, 2] < 0

    def test_lightness_monotonic_in_gray(self) -> None:
        grays = np.repeat(np.arange(0, 256, 15)[:, np.newaxis], 3, axis=1)
        L = rgb_to_lab(grays)[:, 0]
        assert np.all(np.diff(L) > 0)

    def test_deterministic(self) -> None:
        a = rgb_to_lab(12, 200, 77)
        b = rgb_to_lab(12, 200, 77)
        np.testing.assert_array_equal(a, b)


# -- Palette parsing ---------------------------------------------------

class TestPaletteParsing:
    def test_default_palette(self, palette: np.ndarray) -> None:
        assert palette.shape == (24, 3)
        assert palette.dtype == np.uint8
        assert tuple(palette[0]) == (255, 107, 107)

    def test_read_only(self, palette: np.ndarray) -> None:
        with pytest.raises(ValueError):
            palette[0, 0] = 1

    def test_bad_entries_become_black(self) -> None:
        p = parse_palette(["#FFFFFF", "oops"])
        assert tuple(p[1]) == (0, 0, 0)

    @pytest.mark.parametrize("n", [0, 65])
    def test_size_bounds(self, n: int) -> None:
        with pytest.raises(MosaicConfigError):
            parse_palette(["#000000"] * n)

    def test_to_hex(self) -> None:
        assert palette_to_hex(parse_palette(["#ff0000", "00ff00"])) == ["#FF0000", "#00FF00"]


# -- Median cut --------------------------------------------------------

class TestMedianCut:
    @pytest.mark.parametrize("k", [1, 2, 3, 5, 7, 24, 64])
    def test_exact_length(self, photo: np.ndarray, k: int) -> None:
        p = median_cut(photo.reshape(-1, 3), k)
        assert p.shape == (k, 3)
        assert p.dtype == np.uint8

    def test_uniform_colour(self) -> None:
        pixels = np.tile([100, 150, 200], (50, 1))
        p = median_cut(pixels, 4)
        np.testing.assert_array_equal(p, np.tile([100, 150, 200], (4, 1)))

    def test_single_pixel_repeats(self) -> None:
        p = median_cut(np.array([[100, 150, 200]]), 4)
        np.testing.assert_array_equal(p, np.tile([100, 150, 200], (4, 1)))

    def test_empty_is_black(self) -> None:
        p = median_cut(np.empty((0, 3), dtype=np.uint8), 3)
        np.testing.assert_array_equal(p, np.zeros((3, 3)))

    def test_single_colour_average_rounds_half_up(self) -> None:
        p = median_cut(np.array([[0, 0, 0], [1, 1, 1]]), 1)
        np.testing.assert_array_equal(p, [[1, 1, 1]])

    def test_two_clusters_low_first(self) -> None:
        pixels = np.array([[255, 255, 255]] * 10 + [[0, 0, 0]] * 10)
        p = median_cut(pixels, 2)
        np.testing.assert_array_equal(p, [[0, 0, 0], [255, 255, 255]])

    def test_splits_widest_channel(self) -> None:
        # green varies most; red/blue barely move
        pixels = np.array([[10, 0, 10], [11, 50, 10], [10, 200, 11], [11, 250, 11]])
        p = median_cut(pixels, 2)
        assert p[0, 1] == 25
        assert p[1, 1] == 225

    def test_rejects_zero(self) -> None:
        with pytest.raises(MosaicConfigError):
            median_cut(np.zeros((4, 3)), 0)

    def test_extract_ignores_alpha(self) -> None:
        rgba = np.zeros((20, 30, 4), dtype=np.uint8)
        rgba[..., 0] = 200
        rgba[..., 3] = 17
        p = extract_palette(rgba, 5)
        np.testing.assert_array_equal(p, np.tile([200, 0, 0], (5, 1)))

    def test_extract_subsamples(self, photo: np.ndarray) -> None:
        p = extract_palette(photo, 8, max_samples=500)
        assert p.shape == (8, 3)
        np.testing.assert_array_equal(p, extract_palette(photo, 8, max_samples=500))


# -- Matching ----------------------------------------------------------

class TestMatching:
    @pytest.mark.parametrize("metric", METRICS)
    def test_dark_gray_matches_black(self, metric: ColorMatching) -> None:
        bw = np.array([[0, 0, 0], [255, 255, 255]], dtype=np.uint8)
        assert closest_index((10, 10, 10), bw, metric) == 0

    @pytest.mark.parametrize("metric", METRICS)
    def test_exact_entry(self, palette: np.ndarray, metric: ColorMatching) -> None:
        assert closest_index(palette[7], palette, metric) == 7

    @pytest.mark.parametrize("metric", METRICS)
    def test_duplicate_entries_lowest_index(self, metric: ColorMatching) -> None:
        dup = np.array([[9, 9, 9], [5, 5, 5], [5, 5, 5]], dtype=np.uint8)
        assert closest_index((5, 5, 5), dup, metric) == 1

    @pytest.mark.parametrize("metric", ["nearest", "perceptual"])
    def test_equidistant_tie(self, metric: str) -> None:
        p = np.array([[20, 20, 20], [0, 0, 0]], dtype=np.uint8)
        assert closest_index((10, 10, 10), p, metric) == 0

    def test_perceptual_value(self) -> None:
        cost = compute_cost_matrix(
            np.array([[0, 0, 0]]), np.array([[255, 255, 255]]), "perceptual",
        )
        assert cost[0, 0] == pytest.approx(255 * math.sqrt(8 + 255 / 256))

    def test_nearest_value(self) -> None:
        cost = compute_cost_matrix(np.array([[0, 0, 0]]), np.array([[3, 4, 12]]), "nearest")
        assert cost[0, 0] == pytest.approx(13.0)

    def test_lab_value(self) -> None:
        cost = compute_cost_matrix(np.array([[0, 0, 0]]), np.array([[255, 255, 255]]), "lab")
        assert cost[0, 0] == pytest.approx(100.0, abs=1e-6)

    @pytest.mark.parametrize("metric", METRICS)
    def test_vectorised_matches_scalar(
        self, photo: np.ndarray, palette: np.ndarray, metric: ColorMatching,
    ) -> None:
        colors = photo.reshape(-1, 3)[:200]
        batch = match_colors(colors, palette, metric)
        single = [closest_index(c, palette, metric) for c in colors]
        assert batch.tolist() == single

    def test_idempotent(self, palette: np.ndarray) -> None:
        first = closest_index((77, 12, 200), palette, "lab")
        assert all(closest_index((77, 12, 200), palette, "lab") == first for _ in range(5))

    def test_cost_matrix_chunks(self, photo: np.ndarray, palette: np.ndarray) -> None:
        colors = photo.reshape(-1, 3)[:1000]
        whole = compute_cost_matrix(colors, palette, "perceptual", chunk_size=10_000)
        chunked = compute_cost_matrix(colors, palette, "perceptual", chunk_size=7)
        np.testing.assert_allclose(whole, chunked)
        assert whole.shape == (1000, 24)

    def test_unknown_metric(self, palette: np.ndarray) -> None:
        with pytest.raises(ValueError):
            closest_index((0, 0, 0), palette, "manhattan")


# -- Grid dimensions ---------------------------------------------------

class TestGridDimensions:
    def test_letter_page(self) -> None:
        s = MosaicSettings(canvas_width=8.5, canvas_height=11, tile_size=4)
        assert compute_grid_dimensions(s) == (53, 69)

    @pytest.mark.parametrize(
        ("w", "h", "tile"),
        [(1, 1, 20), (20, 20, 1), (8.5, 11, 4), (5, 7, 3.3), (12, 9, 17.5)],
    )
    def test_floor_formula(self, w: float, h: float, tile: float) -> None:
        s = MosaicSettings(canvas_width=w, canvas_height=h, tile_size=tile)
        tiles_per_inch = 25.4 / tile
        assert compute_grid_dimensions(s) == (
            math.floor(w * tiles_per_inch), math.floor(h * tiles_per_inch),
        )

    def test_degenerate_raises(self) -> None:
        s = MosaicSettings(canvas_width=1, canvas_height=1, tile_size=30)
        with pytest.raises(MosaicConfigError):
            compute_grid_dimensions(s)


# -- Grid building -----------------------------------------------------

class TestBuildMosaic:
    def test_letter_page_totals(self, photo: np.ndarray, palette: np.ndarray) -> None:
        result = build_mosaic(photo, MosaicSettings(), palette)
        assert result.grid_dimensions == (53, 69)
        assert result.grid.shape == (69, 53)
        assert result.total_tiles == 3657

    def test_split_image(self, small_settings: MosaicSettings) -> None:
        img = np.zeros((40, 80, 3), dtype=np.uint8)
        img[:, :40] = RED
        img[:, 40:] = BLUE
        p = np.array([RED, GREEN, BLUE], dtype=np.uint8)

        result = build_mosaic(img, small_settings, p)
        assert result.grid.shape == (4, 8)
        assert (result.grid[:, :4] == 0).all()
        assert (result.grid[:, 4:] == 2).all()
        assert result.used_colors == 2
        assert result.used_indices() == [0, 2]

    @pytest.mark.parametrize("metric", METRICS)
    def test_used_colours_counts_grid(
        self, photo: np.ndarray, palette: np.ndarray, metric: ColorMatching,
    ) -> None:
        s = MosaicSettings(canvas_width=3, canvas_height=2, tile_size=5, color_matching=metric)
        result = build_mosaic(photo, s, palette)
        assert result.used_colors == len(np.unique(result.grid))
        assert result.used_colors <= len(palette)
        assert result.grid.min() >= 0
        assert result.grid.max() < len(palette)

    def test_deterministic(self, photo: np.ndarray, palette: np.ndarray) -> None:
        s = MosaicSettings(color_matching="lab", tile_shape="hexagon")
        a = build_mosaic(photo, s, palette)
        b = build_mosaic(photo, s, palette)
        np.testing.assert_array_equal(a.grid, b.grid)
        assert (a.used_colors, a.total_tiles) == (b.used_colors, b.total_tiles)

    def test_alpha_ignored(self, small_settings: MosaicSettings) -> None:
        rgba = np.zeros((10, 10, 4), dtype=np.uint8)
        rgba[..., 1] = 255
        p = np.array([RED, GREEN], dtype=np.uint8)
        result = build_mosaic(rgba, small_settings, p)
        assert (result.grid == 1).all()

    def test_grid_read_only(self, photo: np.ndarray, palette: np.ndarray) -> None:
        result = build_mosaic(photo, MosaicSettings(tile_size=10), palette)
        with pytest.raises(ValueError):
            result.grid[0, 0] = 1

    def test_noop_flags(self, photo: np.ndarray, palette: np.ndarray) -> None:
        plain = build_mosaic(photo, MosaicSettings(), palette)
        flagged = build_mosaic(
            photo, MosaicSettings(anti_aliasing=False, dithering=True), palette,
        )
        np.testing.assert_array_equal(plain.grid, flagged.grid)

    def test_oversized_palette(self, photo: np.ndarray) -> None:
        with pytest.raises(MosaicConfigError):
            build_mosaic(photo, MosaicSettings(), np.zeros((65, 3), dtype=np.uint8))


# -- Sampling ----------------------------------------------------------

class TestSampling:
    @pytest.fixture
    def stripes(self) -> np.ndarray:
        """Alternating black / white columns, two per grid cell."""
        img = np.zeros((8, 16, 3), dtype=np.uint8)
        img[:, 1::2] = 255
        return img

    def test_shape(self, photo: np.ndarray) -> None:
        assert sample_cells(photo, 7, 5).shape == (5, 7, 3)

    def test_point_picks_source_pixels(self, stripes: np.ndarray) -> None:
        cells = sample_cells(stripes, 8, 4, "point")
        assert set(np.unique(cells)) <= {0, 255}

    def test_area_averages(self, stripes: np.ndarray) -> None:
        cells = sample_cells(stripes, 8, 4, "area")
        assert np.all(np.abs(cells.astype(int) - 128) <= 1)

    def test_area_setting_changes_match(self, stripes: np.ndarray) -> None:
        p = np.array([[0, 0, 0], [255, 255, 255], [128, 128, 128]], dtype=np.uint8)
        s = MosaicSettings(canvas_width=4, canvas_height=2, tile_size=12.7, sampling="area")
        assert (build_mosaic(stripes, s, p).grid == 2).all()


# -- Result serialisation ----------------------------------------------

class TestMosaicResult:
    def test_to_dict_shape(self, small_settings: MosaicSettings) -> None:
        img = np.full((20, 20, 3), 255, dtype=np.uint8)
        p = np.array([[0, 0, 0], [255, 255, 255]], dtype=np.uint8)
        d = build_mosaic(img, small_settings, p).to_dict()
        assert d["gridDimensions"] == {"width": 8, "height": 4}
        assert d["totalTiles"] == 32
        assert d["usedColors"] == 1
        assert d["grid"] == [[1] * 8] * 4

    def test_from_dict(self) -> None:
        r = MosaicResult.from_dict({
            "grid": [[0, 1, 1], [2, 2, 2]],
            "gridDimensions": {"width": 3, "height": 2},
        })
        assert r.used_colors == 3
        assert r.total_tiles == 6
        assert r.grid_dimensions == (3, 2)

    def test_from_dict_mismatch(self) -> None:
        with pytest.raises(MosaicConfigError):
            MosaicResult.from_dict({
                "grid": [[0, 1, 1]],
                "gridDimensions": {"width": 2, "height": 2},
            })

    @pytest.mark.parametrize("grid", [[], [[]], [0, 1, 2], [[[0]]]])
    def test_from_dict_rejects_non_grid(self, grid: list) -> None:
        with pytest.raises(MosaicConfigError):
            MosaicResult.from_dict({"grid": grid})
