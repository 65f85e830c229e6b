import threading
import unittest
import warnings
import numpy as np

from incubation.bootstrap import BootstrapResult, bootstrap_fit, resample_indices
from incubation.distributions import Distribution
from incubation.errors import EstimationCancelled, InsufficientReplicates
from incubation.simulate import simulate_bounds


class _CancelAfter(threading.Event):
    """Event that sets itself once it has been polled `checks` times"""
    def __init__(self, checks):
        super().__init__()
        self.checks = checks

    def is_set(self):
        if self.checks <= 0:
            self.set()
        self.checks -= 1
        return super().is_set()


class TestResampling(unittest.TestCase):
    def test_index_matrix(self):
        idx, seeds = resample_indices(25, 10, seed=3)
        self.assertEqual(idx.shape, (10, 25))
        self.assertEqual(seeds.shape, (10,))
        self.assertTrue(np.all((idx >= 0) & (idx < 25)))

    def test_same_seed_same_draws(self):
        a, sa = resample_indices(25, 10, seed=3)
        b, sb = resample_indices(25, 10, seed=3)
        np.testing.assert_array_equal(a, b)
        np.testing.assert_array_equal(sa, sb)
        c, _ = resample_indices(25, 10, seed=4)
        self.assertFalse(np.array_equal(a, c))


class TestBootstrapFit(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.bounds = simulate_bounds(Distribution("lognormal", (1.6, 0.6)), 40, 2.0, 1.0, seed=17)

    def test_repeated_runs_identical(self):
        a = bootstrap_fit(self.bounds, "lognormal", n_boot=15, seed=123)
        b = bootstrap_fit(self.bounds, "lognormal", n_boot=15, seed=123)
        np.testing.assert_array_equal(a.replicate_params(), b.replicate_params())
        self.assertEqual(a.fit.distribution, b.fit.distribution)

    def test_serial_and_parallel_identical(self):
        serial = bootstrap_fit(self.bounds, "gamma", n_boot=12, seed=9, n_jobs=1)
        parallel = bootstrap_fit(self.bounds, "gamma", n_boot=12, seed=9, n_jobs=2)
        np.testing.assert_array_equal(serial.replicate_params(), parallel.replicate_params())
        self.assertEqual([o.index for o in parallel.outcomes], list(range(12)))

    def test_result_accounting(self):
        boot = bootstrap_fit(self.bounds, "weibull", n_boot=10, seed=1)
        self.assertIsInstance(boot, BootstrapResult)
        self.assertEqual(boot.n_requested, 10)
        self.assertEqual(boot.n_failed + boot.n_used, 10)
        self.assertEqual(boot.replicate_params().shape, (boot.n_used, 2))
        self.assertEqual(boot.seed, 1)
        df = boot.to_frame()
        self.assertEqual(list(df.columns[:3]), ["replicate", "shape", "scale"])
        self.assertEqual(len(df), 10)

    def test_seed_recorded_when_not_given(self):
        boot = bootstrap_fit(self.bounds, "lognormal", n_boot=3)
        self.assertIsInstance(boot.seed, int)
        self.assertGreaterEqual(boot.seed, 0)

    def test_failures_counted_and_threshold_enforced(self):
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            with self.assertRaises(InsufficientReplicates) as ctx:
                bootstrap_fit(self.bounds, "gamma", n_boot=5, seed=2, time_budget=1e-12)
        self.assertEqual(ctx.exception.requested, 5)
        self.assertEqual(ctx.exception.failed, 5)

    def test_failures_tolerated_under_threshold(self):
        with self.assertWarns(UserWarning):
            boot = bootstrap_fit(self.bounds, "gamma", n_boot=4, seed=2,
                                 time_budget=1e-12, max_failure_rate=1.0)
        self.assertEqual(boot.n_failed, 4)
        self.assertEqual(boot.n_used, 0)
        self.assertEqual(set(boot.failures), {0, 1, 2, 3})

    def test_retry_policy_counts_attempts(self):
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            boot = bootstrap_fit(self.bounds, "gamma", n_boot=3, seed=2, time_budget=1e-12,
                                 on_failure="retry", max_retries=2, max_failure_rate=1.0)
        self.assertEqual([o.attempts for o in boot.outcomes], [3, 3, 3])
        self.assertEqual(boot.n_retried, 3)

    def test_cancellation(self):
        event = threading.Event()
        event.set()
        with self.assertRaises(EstimationCancelled):
            bootstrap_fit(self.bounds, "lognormal", n_boot=5, seed=1, cancel_event=event)

    def test_cancellation_midway_serial(self):
        event = _CancelAfter(3)
        with self.assertRaises(EstimationCancelled) as ctx:
            bootstrap_fit(self.bounds, "lognormal", n_boot=10, seed=1, cancel_event=event)
        self.assertIn("after 3 of 10", str(ctx.exception))
        self.assertTrue(event.is_set())

    def test_cancellation_midway_parallel(self):
        event = _CancelAfter(2)
        with self.assertRaises(EstimationCancelled) as ctx:
            bootstrap_fit(self.bounds, "gamma", n_boot=12, seed=9, n_jobs=2, cancel_event=event)
        self.assertIn("after 2 of 12", str(ctx.exception))

    def test_invalid_arguments(self):
        with self.assertRaises(ValueError):
            bootstrap_fit(self.bounds, "lognormal", n_boot=0)
        with self.assertRaises(ValueError):
            bootstrap_fit(self.bounds, "lognormal", n_boot=2, seed=-1)
        with self.assertRaises(ValueError):
            bootstrap_fit(self.bounds, "lognormal", n_boot=2, on_failure="ignore")
        with self.assertRaises(ValueError):
            bootstrap_fit(self.bounds, "lognormal", n_boot=2, n_jobs=0)


if __name__ == '__main__':
    unittest.main()
