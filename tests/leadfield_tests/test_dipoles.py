"""test_dipoles.py"""
import os
import unittest
import warnings
import tempfile
from pathlib import Path
from unittest import mock
import numpy as np

from leadfield import (
    DipoleSource,
    load_dipoles,
    radial_orientations,
    apply_orientation_convention,
    get_default_dipoles,
    release_default_dipoles,
    CONCENTRIC_SPHERES,
    DIPOLE_FILE_PATH,
    N_DIPOLES,
    N_RADIAL_DIPOLES
)
from utils import fibonacci_sphere
from utils.exceptions import InputShapeError, ModelInvariantError, SyntheticDipoleWarning


class TestBundledDipoles(unittest.TestCase):
    """Synthetic 3000-dipole set shipped with the package."""

    @classmethod
    def setUpClass(cls):
        cls.dipoles = load_dipoles()

    def test_file_exists(self):
        self.assertTrue(DIPOLE_FILE_PATH.is_file())

    def test_count(self):
        self.assertEqual(self.dipoles.n_dipoles, N_DIPOLES)
        self.assertEqual(self.dipoles.pos.shape, (3000, 3))
        self.assertEqual(self.dipoles.orientation.shape, (3000, 3))

    def test_inside_innermost_shell(self):
        radii = self.dipoles.radii
        self.assertTrue(np.all(radii > 0))
        self.assertTrue(np.all(radii < CONCENTRIC_SPHERES.inner_radius))

    def test_radial_orientations(self):
        """The first 2600 dipoles point away from the origin."""
        pos = self.dipoles.pos[:N_RADIAL_DIPOLES]
        expected = pos / np.linalg.norm(pos, axis=1, keepdims=True)
        np.testing.assert_allclose(self.dipoles.orientation[:N_RADIAL_DIPOLES], expected, atol=1e-12)

    def test_vertical_orientations(self):
        """The last 400 dipoles point exactly along +Z."""
        tail = self.dipoles.orientation[N_RADIAL_DIPOLES:]
        self.assertEqual(tail.shape, (400, 3))
        np.testing.assert_array_equal(tail, np.tile([0.0, 0.0, 1.0], (400, 1)))

    def test_unit_norm(self):
        np.testing.assert_allclose(np.linalg.norm(self.dipoles.orientation, axis=1), 1.0, atol=1e-12)

    def test_read_only(self):
        with self.assertRaises(ValueError):
            self.dipoles.pos[0, 0] = 0.0
        with self.assertRaises(ValueError):
            self.dipoles.orientation[0, 0] = 0.0

    def test_repr(self):
        self.assertIn('n_dipoles=3000', repr(self.dipoles))


class TestOrientationHelpers(unittest.TestCase):

    def test_radial_orientations(self):
        pos = np.array([[0.5, 0.0, 0.0], [0.0, -0.2, 0.0], [0.3, 0.4, 0.0]])
        ori = radial_orientations(pos)
        np.testing.assert_allclose(ori, [[1, 0, 0], [0, -1, 0], [0.6, 0.8, 0]])

    def test_radial_orientations_centre(self):
        with self.assertRaises(ModelInvariantError):
            radial_orientations(np.zeros((2, 3)))

    def test_convention_does_not_mutate(self):
        ori = radial_orientations(fibonacci_sphere(10, 0.5))
        original = ori.copy()

        oriented = apply_orientation_convention(ori, n_radial=6)

        np.testing.assert_array_equal(ori, original)
        np.testing.assert_array_equal(oriented[:6], original[:6])
        np.testing.assert_array_equal(oriented[6:], np.tile([0.0, 0.0, 1.0], (4, 1)))


class TestDipoleSource(unittest.TestCase):

    def test_creation_copies_input(self):
        pos = fibonacci_sphere(5, 0.5)
        src = DipoleSource(pos=pos, orientation=radial_orientations(pos))
        pos[0] = 0.0
        self.assertFalse(np.allclose(src.pos[0], 0.0))
        self.assertEqual(src.source, 'custom')

    def test_non_unit_orientation(self):
        pos = fibonacci_sphere(5, 0.5)
        with self.assertRaisesRegex(ModelInvariantError, "unit vectors"):
            DipoleSource(pos=pos, orientation=2 * radial_orientations(pos))

    def test_shape_errors(self):
        with self.assertRaises(InputShapeError):
            DipoleSource(pos=np.zeros((4, 2)), orientation=np.zeros((4, 2)))
        pos = fibonacci_sphere(5, 0.5)
        with self.assertRaisesRegex(InputShapeError, "doesn't match"):
            DipoleSource(pos=pos, orientation=radial_orientations(pos)[:4])


class TestLoadDipoles(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = Path(self.tmp.name) / 'dipoles.dat'
        np.savetxt(self.path, fibonacci_sphere(10, 0.6))

    def tearDown(self):
        self.tmp.cleanup()

    def test_canonical_requires_3000(self):
        with self.assertRaisesRegex(ModelInvariantError, "3000"):
            load_dipoles(self.path)

    def test_non_canonical_all_radial(self):
        src = load_dipoles(self.path, canonical=False)
        self.assertEqual(src.n_dipoles, 10)
        self.assertEqual(src.source, str(self.path))
        np.testing.assert_allclose(src.orientation, src.pos / 0.6, atol=1e-12)

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            load_dipoles(Path(self.tmp.name) / 'missing.dat')

    def test_wrong_columns(self):
        np.savetxt(self.path, np.ones((10, 2)))
        with self.assertRaisesRegex(InputShapeError, "3 columns"):
            load_dipoles(self.path, canonical=False)

    def test_environment_override(self):
        with mock.patch.dict(os.environ, {'REST_DIPOLE_FILE': str(self.path)}):
            src = load_dipoles(canonical=False)
        self.assertEqual(src.n_dipoles, 10)


class TestSyntheticTableWarning(unittest.TestCase):
    """The shipped table is a stand-in and must say so when it is used."""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = Path(self.tmp.name) / 'cortex.dat'
        np.savetxt(self.path, fibonacci_sphere(10, 0.6))

    def tearDown(self):
        self.tmp.cleanup()

    def test_file_name_marks_synthetic(self):
        self.assertIn('synthetic', DIPOLE_FILE_PATH.name)

    def test_default_path_warns(self):
        with mock.patch.dict(os.environ):
            os.environ.pop('REST_DIPOLE_FILE', None)
            with self.assertWarnsRegex(SyntheticDipoleWarning, "REST_DIPOLE_FILE"):
                load_dipoles()

    def test_explicit_bundled_path_warns(self):
        with self.assertWarns(SyntheticDipoleWarning):
            load_dipoles(DIPOLE_FILE_PATH)

    def _synthetic_warnings(self, **kwargs):
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter('always')
            load_dipoles(canonical=False, **kwargs)
        return [w for w in caught if issubclass(w.category, SyntheticDipoleWarning)]

    def test_explicit_path_is_silent(self):
        self.assertEqual(self._synthetic_warnings(path=self.path), [])

    def test_environment_override_is_silent(self):
        with mock.patch.dict(os.environ, {'REST_DIPOLE_FILE': str(self.path)}):
            self.assertEqual(self._synthetic_warnings(), [])


class TestDefaultDipoles(unittest.TestCase):

    def tearDown(self):
        release_default_dipoles()

    def test_shared_instance(self):
        first = get_default_dipoles()
        self.assertIs(get_default_dipoles(), first)
        self.assertEqual(first.n_dipoles, N_DIPOLES)

    def test_release_reloads(self):
        first = get_default_dipoles()
        release_default_dipoles()
        second = get_default_dipoles()
        self.assertIsNot(first, second)
        np.testing.assert_array_equal(first.pos, second.pos)

    def test_missing_override_file(self):
        release_default_dipoles()
        with mock.patch.dict(os.environ, {'REST_DIPOLE_FILE': '/nonexistent/dipoles.dat'}):
            with self.assertRaises(FileNotFoundError):
                get_default_dipoles()


if __name__ == '__main__':
    unittest.main([__file__, '-v'])
