"""test_headmodel.py"""
import unittest
import dataclasses
import numpy as np

from leadfield import HeadModel, CONCENTRIC_SPHERES
from utils.exceptions import ModelInvariantError


class TestCanonicalHeadModel(unittest.TestCase):

    def test_values(self):
        """Brain / skull / scalp shells with the REST radii and conductivities."""
        self.assertEqual(CONCENTRIC_SPHERES.radii, (0.87, 0.92, 1.0))
        self.assertEqual(CONCENTRIC_SPHERES.conductivities, (1.0, 0.0125, 1.0))
        self.assertEqual(CONCENTRIC_SPHERES.tissues, ('brain', 'skull', 'scalp'))
        self.assertEqual(CONCENTRIC_SPHERES.origin, (0.0, 0.0, 0.0))
        self.assertEqual(CONCENTRIC_SPHERES.n_shells, 3)
        self.assertEqual(CONCENTRIC_SPHERES.outer_radius, 1.0)
        self.assertEqual(CONCENTRIC_SPHERES.inner_radius, 0.87)

    def test_frozen_and_hashable(self):
        with self.assertRaises(dataclasses.FrozenInstanceError):
            CONCENTRIC_SPHERES.radii = (1.0,)

        same = HeadModel(radii=[0.87, 0.92, 1.0], conductivities=np.array([1.0, 0.0125, 1.0]),
                         tissues=['brain', 'skull', 'scalp'])
        self.assertEqual(same, CONCENTRIC_SPHERES)
        self.assertEqual(hash(same), hash(CONCENTRIC_SPHERES))

    def test_to_dict(self):
        d = CONCENTRIC_SPHERES.to_dict()
        self.assertEqual(d['type'], 'concentricspheres')
        np.testing.assert_array_equal(d['r'], [0.87, 0.92, 1.0])
        np.testing.assert_array_equal(d['cond'], [1.0, 0.0125, 1.0])
        np.testing.assert_array_equal(d['o'], [0.0, 0.0, 0.0])
        self.assertEqual(d['tissue'], ['brain', 'skull', 'scalp'])


class TestHeadModelValidation(unittest.TestCase):

    def test_single_shell(self):
        hm = HeadModel(radii=(1.0,), conductivities=(0.33,))
        self.assertEqual(hm.n_shells, 1)
        self.assertEqual(hm.inner_radius, hm.outer_radius)

    def test_no_shells(self):
        with self.assertRaisesRegex(ModelInvariantError, "at least one shell"):
            HeadModel(radii=(), conductivities=())

    def test_length_mismatch(self):
        with self.assertRaisesRegex(ModelInvariantError, "doesn't match"):
            HeadModel(radii=(0.9, 1.0), conductivities=(1.0,))
        with self.assertRaisesRegex(ModelInvariantError, "tissue labels"):
            HeadModel(radii=(0.9, 1.0), conductivities=(1.0, 1.0), tissues=('brain',))

    def test_radii_not_increasing(self):
        with self.assertRaisesRegex(ModelInvariantError, "strictly increasing"):
            HeadModel(radii=(0.92, 0.87, 1.0), conductivities=(1.0, 0.0125, 1.0))
        with self.assertRaisesRegex(ModelInvariantError, "strictly increasing"):
            HeadModel(radii=(0.9, 0.9, 1.0), conductivities=(1.0, 0.0125, 1.0))

    def test_non_positive_radius(self):
        with self.assertRaisesRegex(ModelInvariantError, "positive"):
            HeadModel(radii=(0.0, 1.0), conductivities=(1.0, 1.0))
        with self.assertRaises(ModelInvariantError):
            HeadModel(radii=(0.5, np.inf), conductivities=(1.0, 1.0))

    def test_non_positive_conductivity(self):
        for cond in [(1.0, 0.0, 1.0), (1.0, -0.0125, 1.0), (1.0, np.nan, 1.0)]:
            with self.subTest(cond=cond):
                with self.assertRaisesRegex(ModelInvariantError, "conductivities"):
                    HeadModel(radii=(0.87, 0.92, 1.0), conductivities=cond)

    def test_bad_origin(self):
        with self.assertRaisesRegex(ModelInvariantError, "Origin"):
            HeadModel(radii=(1.0,), conductivities=(1.0,), origin=(0.0, 0.0))

    def test_error_is_value_error(self):
        """Callers catching ValueError also catch model errors."""
        with self.assertRaises(ValueError):
            HeadModel(radii=(1.0, 0.5), conductivities=(1.0, 1.0))


if __name__ == '__main__':
    unittest.main([__file__, '-v'])
