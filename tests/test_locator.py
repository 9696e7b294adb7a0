"""Tests for point location and evaluation with a Locator."""

import itertools
import unittest

import numpy as np
import torch

from curvigrid import (
    CurvilinearGrid,
    DegenerateJacobianError,
    GridNotFinalizedError,
    Locator,
    LocatorConfig,
    LocatorState,
    LocatorStateError,
    NonConvergenceError,
    OutOfDomainError,
)
from tests.test_utils import (
    TestCaseWithFullStackTrace,
    regular_positions,
    warped_positions_2d,
    warped_positions_3d,
)


def unit_square_grid():
    """2x2 vertices at the unit square corners with values 0, 1, 2, 3."""
    positions = regular_positions((2, 2))
    values = np.zeros((2, 2))
    values[1, 0] = 1.0  # vertex at (1, 0)
    values[0, 1] = 2.0  # vertex at (0, 1)
    values[1, 1] = 3.0  # vertex at (1, 1)
    return CurvilinearGrid((2, 2), positions=positions, values=values)


class TestConcreteScenarios(TestCaseWithFullStackTrace):

    def test_unit_square(self):
        grid = unit_square_grid()
        locator = grid.new_locator()
        self.assertTrue(locator.locate((0.5, 0.5), False))
        np.testing.assert_allclose(locator.local_coord, [0.5, 0.5])
        self.assertAlmostEqual(locator.evaluate(), 1.5)

    def test_one_dimensional(self):
        grid = CurvilinearGrid((3,), positions=[0.0, 1.0, 3.0], values=[10.0, 20.0, 40.0])
        locator = grid.new_locator()
        self.assertTrue(locator.locate(2.0, False))
        self.assertEqual(locator.cell_index, (1,))
        np.testing.assert_allclose(locator.local_coord, [0.5])
        self.assertAlmostEqual(locator.evaluate(), 30.0)


class TestLocatorStates(TestCaseWithFullStackTrace):

    def test_lifecycle(self):
        grid = unit_square_grid()
        locator = Locator()
        self.assertEqual(locator.state, LocatorState.UNBOUND)
        self.assertIsNone(locator.cell_index)
        self.assertIsNone(locator.local_coord)
        self.assertFalse(locator.inside)
        with self.assertRaises(LocatorStateError):
            locator.locate((0.5, 0.5))
        with self.assertRaises(LocatorStateError):
            locator.locate_many([(0.5, 0.5)])

        locator.bind(grid)
        self.assertEqual(locator.state, LocatorState.INVALID)
        with self.assertRaises(LocatorStateError):
            locator.evaluate()
        with self.assertRaises(LocatorStateError):
            locator.base_address

        locator.locate((0.25, 0.75))
        self.assertEqual(locator.state, LocatorState.TRACKING)
        self.assertEqual(locator.base_address, 0)
        self.assertIn("cell=(0, 0)", repr(locator))

        locator.reset()
        self.assertEqual(locator.state, LocatorState.INVALID)
        self.assertIn("INVALID", repr(locator))

    def test_warm_start_without_cell_is_cold(self):
        """A warm-start request on a fresh locator falls back to the cell-center index."""
        grid = CurvilinearGrid((5, 5), positions=warped_positions_2d(5, 5))
        locator = grid.new_locator(tolerance=1e-9)
        target = grid.map_to_world((3, 2), [0.4, 0.6])
        self.assertTrue(locator.locate(target, True))
        self.assertEqual(locator.cell_index, (3, 2))

    def test_wrong_dimension(self):
        locator = unit_square_grid().new_locator()
        with self.assertRaises(ValueError):
            locator.locate((0.5, 0.5, 0.5))


class TestRoundTrip(TestCaseWithFullStackTrace):
    """Locating the image of a local coordinate recovers that coordinate."""

    def check_round_trip(self, grid, samples_per_cell=3, seed=0):
        rng = np.random.default_rng(seed)
        locator = grid.new_locator(tolerance=1e-10)
        for cell in np.ndindex(*grid.cell_size):
            for _ in range(samples_per_cell):
                local = rng.uniform(0.05, 0.95, size=grid.dimension)
                point = grid.map_to_world(cell, local)
                self.assertTrue(locator.locate(point, False))
                self.assertEqual(locator.cell_index, cell)
                np.testing.assert_allclose(locator.local_coord, local, atol=1e-7)

    def test_round_trip_1d(self):
        positions = np.array([0.0, 0.5, 2.0, 2.2, 5.0])
        self.check_round_trip(CurvilinearGrid((5,), positions=positions))

    def test_round_trip_2d(self):
        self.check_round_trip(CurvilinearGrid((6, 5), positions=warped_positions_2d(6, 5)))

    def test_round_trip_3d(self):
        self.check_round_trip(CurvilinearGrid((4, 3, 3), positions=warped_positions_3d(4, 3, 3)), 2)

    def test_vector_values_reproduce_positions(self):
        """Interpolating the positions as values returns the query point."""
        positions = warped_positions_3d(3, 3, 3)
        grid = CurvilinearGrid((3, 3, 3), positions=positions, values=positions)
        locator = grid.new_locator(tolerance=1e-10)
        point = grid.map_to_world((1, 0, 1), [0.3, 0.8, 0.5])
        np.testing.assert_allclose(locator.evaluate(point, False), point, atol=1e-9)

    def test_tensor_values(self):
        """An affine tensor field is reproduced exactly on an affine grid."""
        positions = regular_positions((3, 4), spacing=[1.0, 2.0])
        x, y = positions[..., 0], positions[..., 1]
        values = np.stack([np.stack([x, y], -1), np.stack([x + y, np.ones_like(x)], -1)], -2)
        grid = CurvilinearGrid((3, 4), positions=positions, values=values)

        result = grid.new_locator().evaluate_at((1.3, 4.5))
        np.testing.assert_allclose(result, [[1.3, 4.5], [5.8, 1.0]], atol=1e-9)

    def test_torch_values(self):
        positions = warped_positions_2d(4, 4)
        grid = CurvilinearGrid((4, 4), positions=positions, values=torch.from_numpy(positions))
        locator = grid.new_locator(tolerance=1e-10)
        point = grid.map_to_world((2, 1), [0.5, 0.25])
        result = locator.evaluate_at(point, False)
        self.assertTrue(torch.is_tensor(result))
        np.testing.assert_allclose(result.numpy(), point, atol=1e-9)


class TestClosedCellRoundTrip(TestCaseWithFullStackTrace):
    """Vertices, edges and faces on the domain hull count as inside."""

    def check_lattice_points(self, grid, tolerance=None):
        locator = grid.new_locator(tolerance=tolerance)
        for cell in np.ndindex(*grid.cell_size):
            for local in itertools.product((0.0, 0.5, 1.0), repeat=grid.dimension):
                point = grid.map_to_world(cell, local)
                self.assertTrue(locator.locate(point, False), f"cell={cell}, local={local}")
                coord = locator.local_coord
                self.assertTrue(np.all((coord >= 0.0) & (coord <= 1.0)))
                # A shared vertex may resolve to any cell that contains it
                np.testing.assert_allclose(
                    grid.map_to_world(locator.cell_index, coord), point, atol=10 * locator.tolerance
                )

    def test_closed_cell_2d(self):
        self.check_lattice_points(CurvilinearGrid((5, 4), positions=warped_positions_2d(5, 4)))

    def test_closed_cell_3d(self):
        self.check_lattice_points(CurvilinearGrid((3, 3, 3), positions=warped_positions_3d(3, 3, 3)))

    def test_closed_cell_tight_tolerance(self):
        self.check_lattice_points(CurvilinearGrid((4, 3), positions=warped_positions_2d(4, 3)), 1e-10)

    def test_boundary_face_is_clamped(self):
        grid = CurvilinearGrid((5, 4), positions=warped_positions_2d(5, 4))
        locator = grid.new_locator()
        point = grid.map_to_world((0, 2), [0.0, 0.4])
        self.assertTrue(locator.locate(point, False))
        self.assertEqual(locator.cell_index, (0, 2))
        self.assertAlmostEqual(locator.local_coord[0], 0.0, places=6)
        np.testing.assert_allclose(locator.local_coord[1], 0.4, atol=1e-3)

    def test_fused_evaluate_on_boundary(self):
        positions = warped_positions_2d(5, 4)
        grid = CurvilinearGrid((5, 4), positions=positions, values=positions[..., 0] + 2.0 * positions[..., 1])
        locator = grid.new_locator()
        for cell, local in (((4 - 1, 3 - 1), (1.0, 1.0)), ((0, 0), (0.0, 0.0)), ((2, 2), (0.3, 1.0))):
            point = grid.map_to_world(cell, local)
            expected = grid.interpolate_value(cell, local)
            self.assertAlmostEqual(locator.evaluate_at(point, False), expected, places=3)

    def test_slightly_outside_is_still_outside(self):
        grid = CurvilinearGrid((3, 3), positions=regular_positions((3, 3)))
        locator = grid.new_locator()
        self.assertFalse(locator.locate((-0.01, 1.0), False))
        self.assertFalse(locator.locate((2.0, 2.01), False))


class TestStepLogging(TestCaseWithFullStackTrace):

    def test_cell_steps_are_logged(self):
        grid = CurvilinearGrid((6,), positions=np.arange(6.0))
        locator = grid.new_locator()
        locator.locate(0.5, False)
        with self.assertLogs('curvigrid.locator', level='DEBUG') as captured:
            locator.locate(4.5, True)
        self.assertTrue(any("Stepped from cell (0,) to (4,)" in line for line in captured.output))


class TestWarmStart(TestCaseWithFullStackTrace):

    def test_warm_start_equivalence(self):
        grid = CurvilinearGrid((6, 5), positions=warped_positions_2d(6, 5))
        p1 = grid.map_to_world((2, 3), [0.3, 0.4])
        p2 = grid.map_to_world((2, 3), [0.35, 0.45])

        warm = grid.new_locator(tolerance=1e-10)
        warm.locate(p1, False)
        self.assertTrue(warm.locate(p2, True))

        cold = grid.new_locator(tolerance=1e-10)
        self.assertTrue(cold.locate(p2, False))

        self.assertEqual(warm.cell_index, cold.cell_index)
        np.testing.assert_allclose(warm.local_coord, cold.local_coord, atol=1e-8)

    def test_stepping_across_cells(self):
        """A warm start from a distant cell walks to the right one."""
        grid = CurvilinearGrid((11,), positions=np.arange(11.0), values=np.arange(11.0) * 2.0)
        locator = grid.new_locator()
        locator.locate(0.5, False)
        self.assertEqual(locator.cell_index, (0,))

        self.assertTrue(locator.locate(9.5, True))
        self.assertEqual(locator.cell_index, (9,))
        np.testing.assert_allclose(locator.local_coord, [0.5])
        self.assertLessEqual(locator.iterations, 2)
        self.assertAlmostEqual(locator.evaluate(), 19.0)

    def test_stepping_2d(self):
        grid = CurvilinearGrid((8, 8), positions=warped_positions_2d(8, 8))
        locator = grid.new_locator(tolerance=1e-10)
        locator.locate(grid.map_to_world((0, 0), [0.5, 0.5]), False)

        target = grid.map_to_world((6, 5), [0.2, 0.7])
        self.assertTrue(locator.locate(target, True))
        self.assertEqual(locator.cell_index, (6, 5))
        np.testing.assert_allclose(locator.local_coord, [0.2, 0.7], atol=1e-7)

    def test_locate_many(self):
        grid = CurvilinearGrid((6, 5), positions=warped_positions_2d(6, 5))
        locator = grid.new_locator(tolerance=1e-10)

        # A path through the grid that ends outside the domain
        box = grid.domain_bounding_box()
        points = np.linspace(box.center(), box.high + 0.5, 8)
        cells, local, inside = locator.locate_many(points)

        self.assertEqual(cells.shape, (8, 2))
        self.assertEqual(local.shape, (8, 2))
        self.assertTrue(inside[0])
        self.assertFalse(inside[-1])
        for cell, coord, point in zip(cells, local, points):
            np.testing.assert_allclose(grid.map_to_world(cell, coord), point, atol=1e-8)

    def test_locate_many_1d(self):
        grid = CurvilinearGrid((3,), positions=[0.0, 1.0, 3.0])
        cells, local, inside = grid.new_locator().locate_many([0.5, 2.0, 2.5], warm_start=False)
        self.assertEqual(cells[:, 0].tolist(), [0, 1, 1])
        np.testing.assert_allclose(local[:, 0], [0.5, 0.5, 0.75])
        self.assertTrue(inside.all())


class TestDomainBoundary(TestCaseWithFullStackTrace):

    def test_points_outside_bounding_box(self):
        grid = CurvilinearGrid((6, 5), positions=warped_positions_2d(6, 5))
        box = grid.domain_bounding_box()
        locator = grid.new_locator()
        outside = [
            box.low - 0.25,
            box.high + 0.25,
            [box.center()[0], box.high[1] + 0.3],
            [box.low[0] - 0.3, box.center()[1]],
        ]
        for point in outside:
            self.assertFalse(locator.locate(point, False))
            self.assertEqual(locator.state, LocatorState.TRACKING)
            self.assertTrue(locator.converged)

    def test_extrapolation_at_boundary_cell(self):
        """Outside points leave the locator at the boundary cell with an unclamped coordinate."""
        grid = CurvilinearGrid((3, 3), positions=regular_positions((3, 3)),
                               values=regular_positions((3, 3))[..., 0])
        locator = grid.new_locator()
        self.assertFalse(locator.locate((2.5, 1.5), False))
        self.assertEqual(locator.cell_index, (1, 1))
        np.testing.assert_allclose(locator.local_coord, [1.5, 0.5])
        # Unchecked evaluation extrapolates
        self.assertAlmostEqual(locator.evaluate(), 2.5)

        # A warm start from the boundary cell resumes inside the domain
        self.assertTrue(locator.locate((1.9, 1.5), True))
        self.assertEqual(locator.cell_index, (1, 1))

    def test_fused_evaluate_out_of_domain(self):
        grid = unit_square_grid()
        locator = grid.new_locator()
        with self.assertRaises(OutOfDomainError) as ctx:
            locator.evaluate((2.0, 0.5), False)
        self.assertEqual(ctx.exception.cell_index, (0, 0))
        np.testing.assert_allclose(ctx.exception.local_coord, [2.0, 0.5])

        # The locator keeps the converged boundary state
        self.assertEqual(locator.state, LocatorState.TRACKING)
        self.assertAlmostEqual(locator.evaluate(), 3.0)

    def test_fused_evaluate_inside(self):
        locator = unit_square_grid().new_locator()
        self.assertAlmostEqual(locator.evaluate((0.5, 0.5), False), 1.5)
        self.assertAlmostEqual(locator.evaluate_at((0.25, 0.0)), 0.25)


class TestFailureModes(TestCaseWithFullStackTrace):

    def test_not_finalized(self):
        grid = CurvilinearGrid((3, 3))
        with self.assertRaises(GridNotFinalizedError):
            grid.new_locator().locate((0.5, 0.5))

    def test_stale_index(self):
        grid = CurvilinearGrid((3, 3), positions=regular_positions((3, 3)))
        grid.set_vertex_position((2, 2), [2.5, 2.5])
        locator = grid.new_locator()
        with self.assertRaises(GridNotFinalizedError):
            locator.locate((0.5, 0.5), False)

        grid.finalize_grid()
        self.assertTrue(locator.locate((0.5, 0.5), False))

    def test_degenerate_jacobian(self):
        """A cell collapsed onto a line has a singular Jacobian."""
        positions = np.zeros((2, 2, 2))
        positions[1, 0] = [1.0, 0.0]
        positions[0, 1] = [1.0, 0.0]
        positions[1, 1] = [2.0, 0.0]
        grid = CurvilinearGrid((2, 2), positions=positions)
        locator = grid.new_locator()
        with self.assertRaises(DegenerateJacobianError) as ctx:
            locator.locate((0.5, 0.5), False)
        self.assertEqual(ctx.exception.cell_index, (0, 0))
        self.assertEqual(locator.state, LocatorState.TRACKING)

    def test_non_convergence(self):
        """A non-affine cell needs more than one Newton step."""
        positions = regular_positions((2, 2))
        positions[1, 1] = [2.0, 2.0]
        grid = CurvilinearGrid((2, 2), positions=positions)
        target = grid.map_to_world((0, 0), [0.9, 0.9])

        locator = grid.new_locator(config=LocatorConfig(tolerance=1e-10, max_iterations=1))
        with self.assertRaises(NonConvergenceError) as ctx:
            locator.locate(target, False)
        self.assertEqual(ctx.exception.iterations, 1)
        self.assertGreater(ctx.exception.residual, 1e-10)
        self.assertFalse(locator.converged)

        # With the default cap the same query converges
        locator = grid.new_locator(tolerance=1e-10)
        self.assertTrue(locator.locate(target, False))
        np.testing.assert_allclose(locator.local_coord, [0.9, 0.9], atol=1e-8)


if __name__ == '__main__':
    unittest.main()
