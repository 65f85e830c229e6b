import os
import tempfile
import unittest
import warnings
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt

from incubation.bootstrap import bootstrap_fit
from incubation.distributions import Distribution
from incubation.mcmc import fit_mcmc
from incubation.reporting import report_bootstrap
from incubation.simulate import simulate_bounds
from incubation.utils.plotting import (estimates_table, plot_fitted_cdf, plot_replicate_statistic,
                                       plot_trace)


class TestPlotting(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.bounds = simulate_bounds(Distribution("gamma", (4.0, 1.2)), 50, 2.0, 1.0, seed=6)
        cls.boot = bootstrap_fit(cls.bounds, "gamma", n_boot=15, seed=4)
        cls.result = report_bootstrap(cls.boot)

    def tearDown(self):
        plt.close("all")

    def test_fitted_cdf_with_band(self):
        ax = plot_fitted_cdf(self.result, cases=self.bounds, draws=self.boot)
        labels = [t.get_text() for t in ax.get_legend().get_texts()]
        self.assertIn("95% interval", labels)
        self.assertIn("Midpoint ECDF", labels)

    def test_fitted_cdf_saves(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "cdf.png")
            plot_fitted_cdf(self.result, save_path=path)
            self.assertTrue(os.path.exists(path))

    def test_replicate_statistic(self):
        ax = plot_replicate_statistic(self.boot, "p50", quantiles=(0.5,))
        self.assertEqual(ax.get_xlabel(), "p50")
        with self.assertRaises(KeyError):
            plot_replicate_statistic(self.boot, "p99")

    def test_trace(self):
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            chain = fit_mcmc(self.bounds, "erlang", n_iter=100, seed=2)
        fig = plot_trace(chain)
        self.assertEqual(len(fig.axes), 3)

    def test_estimates_table(self):
        table = estimates_table([self.result])
        self.assertEqual(list(table.index[:2]), ["shape", "scale"])
        self.assertEqual(table.shape[1], 1)


if __name__ == '__main__':
    unittest.main()
