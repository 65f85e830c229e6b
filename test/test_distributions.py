import unittest
import numpy as np
from scipy import integrate

from incubation.distributions import MAX_ERLANG_SHAPE, PARAM_BOUNDS, Distribution, Family

EXAMPLES = {
    Family.LOGNORMAL: (1.6, 0.6),
    Family.GAMMA: (3.2, 1.8),
    Family.WEIBULL: (2.3, 6.0),
    Family.ERLANG: (3, 2.0),
}


class TestFamily(unittest.TestCase):
    def test_parse_aliases(self):
        self.assertIs(Family.parse("log-normal"), Family.LOGNORMAL)
        self.assertIs(Family.parse("LogNormal"), Family.LOGNORMAL)
        self.assertIs(Family.parse(" weibull "), Family.WEIBULL)
        self.assertIs(Family.parse(Family.ERLANG), Family.ERLANG)

    def test_parse_unknown(self):
        with self.assertRaises(ValueError):
            Family.parse("cauchy")

    def test_param_names(self):
        self.assertEqual(Family.LOGNORMAL.param_names, ("meanlog", "sdlog"))
        for fam in (Family.GAMMA, Family.WEIBULL, Family.ERLANG):
            self.assertEqual(fam.param_names, ("shape", "scale"))

    def test_every_family_has_a_box(self):
        for fam in Family:
            self.assertIn(fam, PARAM_BOUNDS)
            (a_lo, a_hi), (b_lo, b_hi) = fam.bounds
            self.assertLess(a_lo, a_hi)
            self.assertLess(b_lo, b_hi)
        self.assertEqual(Family.ERLANG.bounds[0], (1.0, float(MAX_ERLANG_SHAPE)))


class TestDistribution(unittest.TestCase):
    def test_invalid_parameters(self):
        with self.assertRaises(ValueError):
            Distribution("lognormal", (1.0, 0.0))
        with self.assertRaises(ValueError):
            Distribution("gamma", (-1.0, 2.0))
        with self.assertRaises(ValueError):
            Distribution("weibull", (np.nan, 2.0))

    def test_erlang_shape_must_be_integer(self):
        with self.assertRaises(ValueError):
            Distribution("erlang", (2.5, 1.0))
        with self.assertRaises(ValueError):
            Distribution("erlang", (0, 1.0))
        self.assertEqual(Distribution("erlang", (4.0, 1.0)).params, (4.0, 1.0))

    def test_closed_form_mean_matches_scipy(self):
        for fam, params in EXAMPLES.items():
            d = Distribution(fam, params)
            self.assertAlmostEqual(d.mean(), float(d.frozen.mean()), places=10, msg=fam.value)

    def test_from_moments(self):
        for fam in (Family.LOGNORMAL, Family.GAMMA):
            d = Distribution.from_moments(fam, 5.0, 2.0)
            self.assertAlmostEqual(d.mean(), 5.0, places=8)
            self.assertAlmostEqual(d.sd(), 2.0, places=8)
        w = Distribution.from_moments(Family.WEIBULL, 5.0, 2.0)
        self.assertAlmostEqual(w.mean(), 5.0, places=8)
        self.assertAlmostEqual(w.sd(), 2.0, delta=0.1)

    def test_from_moments_erlang_clamps_shape(self):
        d = Distribution.from_moments(Family.ERLANG, 5.0, 0.01, max_shape=10)
        self.assertEqual(d.params[0], 10)
        d = Distribution.from_moments(Family.ERLANG, 5.0, 20.0)
        self.assertEqual(d.params[0], 1)

    def test_unconstrained_round_trip(self):
        for fam, params in EXAMPLES.items():
            d = Distribution(fam, params)
            back = Distribution.from_unconstrained(fam, d.to_unconstrained())
            np.testing.assert_allclose(back.params, d.params, rtol=1e-12)

    def test_lognormal_meanlog_is_not_logged(self):
        d = Distribution("lognormal", (-0.5, 0.3))
        np.testing.assert_allclose(d.to_unconstrained(), [-0.5, np.log(0.3)])

    def test_integrated_cdf_matches_quadrature(self):
        for fam, params in EXAMPLES.items():
            d = Distribution(fam, params)
            for x in (0.7, 3.7, 12.0):
                expected, _ = integrate.quad(lambda u: float(d.cdf(u)), 0.0, x)
                self.assertAlmostEqual(float(d.integrated_cdf(np.array([x]))[0]), expected,
                                       places=6, msg=f"{fam.value} at {x}")

    def test_integrated_sf_matches_quadrature(self):
        for fam, params in EXAMPLES.items():
            d = Distribution(fam, params)
            for x in (0.7, 3.7, 12.0, 30.0):
                expected, _ = integrate.quad(lambda u: float(d.sf(u)), x, np.inf)
                self.assertAlmostEqual(float(d.integrated_sf(np.array([x]))[0]), expected,
                                       places=6, msg=f"{fam.value} at {x}")

    def test_integrated_sf_differs_from_integrated_cdf_by_linear_term(self):
        x = np.array([-2.0, 0.0, 0.5, 4.0, 9.0])
        for fam, params in EXAMPLES.items():
            d = Distribution(fam, params)
            np.testing.assert_allclose(d.integrated_sf(x), d.integrated_cdf(x) - x + d.mean(),
                                       atol=1e-10, err_msg=fam.value)

    def test_integrated_cdf_zero_for_nonpositive(self):
        d = Distribution("gamma", (2.0, 1.0))
        np.testing.assert_array_equal(d.integrated_cdf(np.array([-3.0, 0.0])), [0.0, 0.0])

    def test_sample_is_reproducible(self):
        d = Distribution("weibull", (2.0, 5.0))
        a = d.sample(50, np.random.default_rng(11))
        b = d.sample(50, np.random.default_rng(11))
        np.testing.assert_array_equal(a, b)
        self.assertTrue(np.all(a > 0))

    def test_repr(self):
        self.assertEqual(repr(Distribution("gamma", (2.0, 1.5))), "gamma(shape=2, scale=1.5)")


if __name__ == '__main__':
    unittest.main()
