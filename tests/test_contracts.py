import unittest

from pydantic import ValidationError

from contracts.backend import (
    BackendOverrides,
    BackendSpec,
    BackendState,
    HealthcheckRequest,
    RegistrationRequest,
)
from contracts.pool_options import PoolOptions, status_is_200
from contracts.probe_result import ProbeResult


class TestHealthcheckRequestContract(unittest.TestCase):
    def test_method_defaults_to_get(self):
        h = HealthcheckRequest(url="/health")
        self.assertEqual(h.method, "GET")
        self.assertEqual(h.headers, {})
        self.assertIsNone(h.data)

    def test_method_defaults_to_post_with_body(self):
        h = HealthcheckRequest(url="/health", data='{"ping": 1}')
        self.assertEqual(h.method, "POST")

    def test_explicit_method_is_upper_cased(self):
        h = HealthcheckRequest(url="/health", method="head")
        self.assertEqual(h.method, "HEAD")


class TestBackendSpecContract(unittest.TestCase):
    def test_string_healthcheck_is_coerced(self):
        spec = BackendSpec(address="10.0.0.1:8080", healthcheck="/ping")
        self.assertIsInstance(spec.healthcheck, HealthcheckRequest)
        self.assertEqual(spec.healthcheck.url, "/ping")

    def test_overrides_default_to_none(self):
        spec = BackendSpec(address="a")
        self.assertIsNone(spec.healthy_after)
        self.assertIsNone(spec.remove_after)
        self.assertIsNone(spec.is_healthy)

    def test_rejects_non_positive_thresholds(self):
        with self.assertRaises(ValidationError):
            BackendSpec(address="a", healthy_after=0)
        with self.assertRaises(ValidationError):
            BackendSpec(address="a", check_interval=-1)

    def test_rejects_unknown_fields(self):
        with self.assertRaises(ValidationError):
            BackendSpec(address="a", bogus=True)

    def test_address_required(self):
        with self.assertRaises(ValidationError):
            BackendSpec()


class TestRegistrationRequestContract(unittest.TestCase):
    def test_predicate_not_accepted_over_the_wire(self):
        with self.assertRaises(ValidationError):
            RegistrationRequest(address="a", is_healthy=lambda r: True)

    def test_shares_validation_with_spec(self):
        self.assertTrue(issubclass(RegistrationRequest, BackendOverrides))
        self.assertTrue(issubclass(BackendSpec, BackendOverrides))
        with self.assertRaises(ValidationError):
            RegistrationRequest(address="a", unhealthy_after=0)

    def test_to_spec_drops_unset_fields(self):
        req = RegistrationRequest(address="a", healthcheck="/h", remove_after=4)
        spec = req.to_spec()
        self.assertEqual(spec.address, "a")
        self.assertEqual(spec.healthcheck.url, "/h")
        self.assertEqual(spec.remove_after, 4)
        self.assertIsNone(spec.healthy_after)


class TestPoolOptionsContract(unittest.TestCase):
    def test_defaults(self):
        opts = PoolOptions()
        self.assertIsNone(opts.healthcheck)
        self.assertEqual(opts.healthy_after, 3)
        self.assertEqual(opts.unhealthy_after, 1)
        self.assertIsNone(opts.remove_after)
        self.assertEqual(opts.check_interval, 10.0)
        self.assertEqual(opts.check_timeout, 1.0)
        self.assertIs(opts.is_healthy, status_is_200)

    def test_from_config_overrides(self):
        opts = PoolOptions.from_config(healthcheck="/status", remove_after=5)
        self.assertEqual(opts.healthcheck.url, "/status")
        self.assertEqual(opts.remove_after, 5)

    def test_status_is_200(self):
        class Resp:
            def __init__(self, status_code):
                self.status_code = status_code

        self.assertTrue(status_is_200(Resp(200)))
        self.assertFalse(status_is_200(Resp(204)))
        self.assertFalse(status_is_200(Resp(503)))


class TestProbeResultContract(unittest.TestCase):
    def test_probe_result_fields(self):
        r = ProbeResult(healthy=False, elapsed=0.5, error="timeout")
        self.assertFalse(r.healthy)
        self.assertIsNone(r.status_code)
        self.assertEqual(r.error, "timeout")

    def test_backend_state_values(self):
        self.assertEqual([s.value for s in BackendState], ["NEW", "HEALTHY", "UNHEALTHY"])


if __name__ == "__main__":
    unittest.main()
