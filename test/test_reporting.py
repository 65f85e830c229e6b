import unittest
import numpy as np
import pandas as pd

from incubation.bootstrap import BootstrapResult, ReplicateOutcome
from incubation.distributions import Distribution, Family
from incubation.estimation import PointFit, fit_mle
from incubation.mcmc import McmcChain
from incubation.reporting import (DEFAULT_QUANTILES, check_quantiles, quantile_label,
                                  report_bootstrap, report_chain, statistic_names,
                                  statistics_matrix)
from incubation.simulate import simulate_bounds


def _boot(dist, replicate_params, n_cases=30, ll=-50.0):
    outcomes = [ReplicateOutcome(i, tuple(p)) for i, p in enumerate(replicate_params)]
    return BootstrapResult(PointFit(dist, ll, n_cases), outcomes, seed=0)


class TestQuantileHelpers(unittest.TestCase):
    def test_labels(self):
        self.assertEqual(quantile_label(0.025), "p2.5")
        self.assertEqual(quantile_label(0.5), "p50")
        self.assertEqual(quantile_label(0.975), "p97.5")

    def test_statistic_names(self):
        self.assertEqual(statistic_names(Family.LOGNORMAL, (0.05, 0.5)),
                         ["meanlog", "sdlog", "mean", "p5", "p50"])

    def test_check_quantiles(self):
        self.assertEqual(check_quantiles([0.1, 0.9]), (0.1, 0.9))
        for bad in ([], [0.0, 0.5], [0.5, 1.0], [0.6, 0.4], [0.5, 0.5]):
            with self.assertRaises(ValueError):
                check_quantiles(bad)

    def test_matrix_matches_distribution(self):
        for fam, params in [(Family.GAMMA, (3.0, 2.0)), (Family.WEIBULL, (2.2, 6.0)),
                            (Family.ERLANG, (4, 1.5)), (Family.LOGNORMAL, (1.5, 0.4))]:
            d = Distribution(fam, params)
            row = statistics_matrix(fam, np.array([params]), DEFAULT_QUANTILES)[0]
            self.assertAlmostEqual(row[2], d.mean(), places=10)
            np.testing.assert_allclose(row[3:], d.ppf(np.array(DEFAULT_QUANTILES)), rtol=1e-9)


class TestReportBootstrap(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        bounds = simulate_bounds(Distribution("lognormal", (1.6, 0.6)), 200, 2.0, 1.0, seed=31)
        cls.fit_dist = fit_mle(bounds, "lognormal").distribution
        rng = np.random.default_rng(0)
        cls.reps = np.column_stack([1.6 + 0.05 * rng.normal(size=200),
                                    0.6 + 0.03 * rng.normal(size=200)])

    def test_median_is_exp_meanlog(self):
        res = report_bootstrap(_boot(self.fit_dist, self.reps))
        meanlog = res.params["meanlog"]
        self.assertEqual(res.estimate("p50").point, np.exp(meanlog))

    def test_quantile_points_monotone(self):
        for fam, params in [(Family.LOGNORMAL, self.fit_dist.params), (Family.GAMMA, (3.0, 2.0)),
                            (Family.WEIBULL, (2.0, 5.0)), (Family.ERLANG, (3, 2.0))]:
            res = report_bootstrap(_boot(Distribution(fam, params), [params] * 5))
            points = [res.estimate(quantile_label(q)).point for q in DEFAULT_QUANTILES]
            self.assertTrue(all(b >= a for a, b in zip(points, points[1:])), msg=fam.value)

    def test_intervals_are_percentiles(self):
        res = report_bootstrap(_boot(self.fit_dist, self.reps), ci_level=0.9)
        row = res.estimate("meanlog")
        lo, hi = np.quantile(self.reps[:, 0], [0.05, 0.95])
        self.assertAlmostEqual(row.ci_low, lo)
        self.assertAlmostEqual(row.ci_high, hi)
        for r in res.estimates:
            self.assertLessEqual(r.ci_low, r.ci_high)

    def test_counts_and_failures(self):
        boot = _boot(self.fit_dist, self.reps[:3])
        boot.outcomes.append(ReplicateOutcome(3, None, error="failed"))
        res = report_bootstrap(boot)
        self.assertEqual(res.n_replicates, 4)
        self.assertEqual(res.n_failed, 1)
        self.assertEqual(res.n_used, 3)
        self.assertEqual(res.method, "direct-optimization")

    def test_no_successful_replicates_gives_nan_intervals(self):
        boot = BootstrapResult(PointFit(self.fit_dist, -1.0, 5),
                               [ReplicateOutcome(0, None, error="x")], seed=0)
        res = report_bootstrap(boot)
        self.assertTrue(np.isnan(res.estimate("mean").ci_low))
        self.assertTrue(np.isfinite(res.estimate("mean").point))

    def test_output_forms(self):
        res = report_bootstrap(_boot(self.fit_dist, self.reps), quantiles=(0.5,))
        df = res.to_frame()
        self.assertIsInstance(df, pd.DataFrame)
        self.assertEqual(list(df.index), ["meanlog", "sdlog", "mean", "p50"])
        self.assertEqual(list(df.columns), ["point_estimate", "ci_low", "ci_high"])
        records = res.to_records()
        self.assertEqual(records[0]["parameter_or_quantile_name"], "meanlog")
        self.assertEqual(set(records[0]), {"parameter_or_quantile_name", "point_estimate", "ci_low", "ci_high"})
        with self.assertRaises(KeyError):
            res.estimate("p99")
        text = res.summary()
        self.assertIn("log-normal", text)
        self.assertIn("p50", text)
        self.assertAlmostEqual(res.aic, 4 + 100.0)
        self.assertEqual(res.distribution, self.fit_dist)


class TestReportChain(unittest.TestCase):
    def test_erlang_chain_summary(self):
        samples = np.column_stack([np.repeat([3.0, 4.0, 4.0, 5.0], 25), np.linspace(1.0, 2.0, 100)])
        chain = McmcChain(Family.ERLANG, samples, np.zeros(100), burn_in=20)
        res = report_chain(chain, log_likelihood=-12.0, n_cases=10)
        self.assertEqual(res.method, "mcmc")
        self.assertEqual(res.n_replicates, 80)
        self.assertEqual(res.params["shape"], 4.0)
        self.assertEqual(res.estimate("shape").point, 4.0)
        self.assertIs(res.chain, chain)
        lo = res.estimate("scale").ci_low
        self.assertAlmostEqual(lo, float(np.quantile(samples[20:, 1], 0.025)))


if __name__ == '__main__':
    unittest.main()
