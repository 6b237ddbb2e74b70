"""Tests for quads, homography solving and perspective rectification."""

import numpy as np
import pytest

from tankscan.geometry.homography import (
    GeometryError,
    ProjectiveTransform,
    invert,
    solve_projective,
)
from tankscan.geometry.quad import Point, Quad, edge_lengths, order_points
from tankscan.geometry.warp import output_size, rectify


def _tilted_quad() -> Quad:
    return Quad(Point(12.0, 8.0), Point(190.0, 20.0), Point(205.0, 310.0), Point(5.0, 295.0))


class TestOrderPoints:
    """Tests for canonical corner ordering."""

    def test_shuffled_input(self) -> None:
        quad = order_points([(100, 200), (0, 0), (0, 200), (100, 0)])
        assert quad.top_left == Point(0.0, 0.0)
        assert quad.top_right == Point(100.0, 0.0)
        assert quad.bottom_right == Point(100.0, 200.0)
        assert quad.bottom_left == Point(0.0, 200.0)

    def test_ordering_is_idempotent(self) -> None:
        quad = _tilted_quad()
        assert order_points(quad.points) == quad

    def test_wrong_count_raises(self) -> None:
        with pytest.raises(ValueError, match="exactly 4"):
            order_points([(0, 0), (1, 1), (2, 2)])

    def test_duplicate_points_fall_back_to_bounds(self) -> None:
        quad = order_points([(10, 10), (10, 10), (50, 80), (50, 80)])
        assert quad == Quad.from_bounds(10.0, 10.0, 50.0, 80.0)


class TestQuad:
    """Tests for the immutable Quad type."""

    def test_move_corner_returns_new_quad(self) -> None:
        quad = Quad.from_bounds(0.0, 0.0, 100.0, 200.0)
        moved = quad.move_corner(1, Point(110.0, 5.0))
        assert moved.top_right == Point(110.0, 5.0)
        assert quad.top_right == Point(100.0, 0.0)

    def test_move_corner_reorders(self) -> None:
        quad = Quad.from_bounds(0.0, 0.0, 100.0, 200.0)
        # Dragging the top-left corner past the bottom-right one.
        moved = quad.move_corner(0, Point(150.0, 250.0))
        assert moved.bottom_right == Point(150.0, 250.0)

    def test_move_corner_bad_index(self) -> None:
        with pytest.raises(IndexError):
            Quad.from_bounds(0.0, 0.0, 1.0, 1.0).move_corner(4, Point(0.0, 0.0))

    def test_scaled_and_to_list(self) -> None:
        quad = Quad.from_bounds(1.0, 2.0, 3.0, 4.0).scaled(2.0)
        assert quad.to_list() == [[2.0, 4.0], [6.0, 4.0], [6.0, 8.0], [2.0, 8.0]]

    def test_edge_lengths(self) -> None:
        top, right, bottom, left = edge_lengths(Quad.from_bounds(0.0, 0.0, 30.0, 40.0))
        assert (top, right, bottom, left) == (30.0, 40.0, 30.0, 40.0)


class TestHomography:
    """Tests for solving and inverting projective transforms."""

    def test_maps_corners_onto_destination(self) -> None:
        src = _tilted_quad()
        dst = Quad.from_bounds(0.0, 0.0, 200.0, 300.0)
        transform = solve_projective(src, dst)
        for s, d in zip(src.points, dst.points):
            mapped = transform.apply(s.x, s.y)
            assert mapped.x == pytest.approx(d.x, abs=1e-6)
            assert mapped.y == pytest.approx(d.y, abs=1e-6)

    def test_inverse_maps_back(self) -> None:
        src = _tilted_quad()
        dst = Quad.from_bounds(0.0, 0.0, 200.0, 300.0)
        backward = solve_projective(src, dst).inverse()
        assert backward.coefficients[8] == pytest.approx(1.0)
        for s, d in zip(src.points, dst.points):
            mapped = backward.apply(d.x, d.y)
            assert mapped.x == pytest.approx(s.x, abs=1e-6)
            assert mapped.y == pytest.approx(s.y, abs=1e-6)

    def test_identity(self) -> None:
        quad = Quad.from_bounds(0.0, 0.0, 50.0, 80.0)
        transform = solve_projective(quad, quad)
        np.testing.assert_allclose(transform.matrix, np.eye(3), atol=1e-9)

    def test_collapsed_quad_raises(self) -> None:
        flat = Quad.from_bounds(10.0, 10.0, 50.0, 10.0)
        with pytest.raises(GeometryError) as exc_info:
            solve_projective(flat, Quad.from_bounds(0.0, 0.0, 40.0, 40.0))
        assert exc_info.value.kind == "degenerate"

    def test_singular_inverse_raises(self) -> None:
        singular = ProjectiveTransform((1.0, 2.0, 3.0, 2.0, 4.0, 6.0, 0.0, 0.0, 1.0))
        with pytest.raises(GeometryError):
            invert(singular)

    def test_coefficient_count_checked(self) -> None:
        with pytest.raises(ValueError):
            ProjectiveTransform((1.0, 0.0, 0.0))


class TestRectify:
    """Tests for rectification output size and sampling."""

    def test_output_size_uses_longer_edges(self) -> None:
        quad = Quad(Point(0.0, 0.0), Point(100.0, 0.0), Point(120.0, 200.0), Point(0.0, 210.0))
        width, height = output_size(quad, min_side=0)
        assert width == 120
        assert height == 210

    def test_output_size_upscales_small_regions(self) -> None:
        width, height = output_size(Quad.from_bounds(0.0, 0.0, 100.0, 300.0), min_side=900)
        assert (width, height) == (300, 900)

    def test_identity_rectify_copies_pixels(self) -> None:
        rng = np.random.default_rng(7)
        image = rng.integers(0, 256, size=(40, 60), dtype=np.uint8)
        result = rectify(image, Quad.from_bounds(0.0, 0.0, 59.0, 39.0), min_side=0)
        assert result.shape == (39, 59)
        np.testing.assert_array_equal(result, image[:39, :59])

    def test_keeps_channels(self) -> None:
        image = np.zeros((50, 40, 3), dtype=np.uint8)
        result = rectify(image, _tilted_quad().scaled(0.15), min_side=0)
        assert result.ndim == 3
        assert result.shape[2] == 3

    def test_out_of_bounds_painted_white(self) -> None:
        image = np.zeros((40, 40), dtype=np.uint8)
        result = rectify(image, Quad.from_bounds(-20.0, 0.0, 39.0, 39.0), min_side=0)
        assert result.shape == (39, 59)
        assert result[:, :19].min() == 255
        assert result[:, 25:].max() == 0

    def test_degenerate_quad_raises(self) -> None:
        image = np.zeros((40, 40), dtype=np.uint8)
        with pytest.raises(GeometryError):
            rectify(image, Quad.from_bounds(5.0, 5.0, 5.0, 30.0))
