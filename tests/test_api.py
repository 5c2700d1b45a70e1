import unittest

import httpx
from fastapi.testclient import TestClient

from api import create_app
from core.backend_pool import BackendPool


def make_pool(**options):
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
    return BackendPool(check_interval=60, client=client, **options)


class TestAdminApi(unittest.TestCase):
    def setUp(self):
        self.pool = make_pool(healthcheck="/health")
        self.app = create_app(self.pool, seed=["seed:8080"])

    def test_seeded_backends_listed(self):
        with TestClient(self.app) as client:
            resp = client.get("/backends")
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(len(body), 1)
        self.assertEqual(body[0]["address"], "seed:8080")
        self.assertEqual(body[0]["state"], "NEW")
        self.assertEqual(body[0]["healthcheck_url"], "http://seed:8080/health")

    def test_register_and_unregister(self):
        with TestClient(self.app) as client:
            resp = client.post("/backends", json={"address": "10.0.0.2:81", "healthy_after": 1})
            self.assertEqual(resp.status_code, 201)
            self.assertEqual(resp.json()["status"], "registered")
            self.assertIsNotNone(self.pool.get("10.0.0.2:81"))

            resp = client.post("/backends", json={"address": "10.0.0.2:81"})
            self.assertEqual(resp.status_code, 409)

            resp = client.delete("/backends/10.0.0.2:81")
            self.assertEqual(resp.status_code, 200)
            self.assertEqual(resp.json()["status"], "unregistered")
            self.assertIsNone(self.pool.get("10.0.0.2:81"))

            resp = client.delete("/backends/10.0.0.2:81")
            self.assertEqual(resp.status_code, 404)

    def test_register_without_healthcheck(self):
        app = create_app(make_pool(), seed=[])
        with TestClient(app) as client:
            resp = client.post("/backends", json={"address": "svc"})
            self.assertEqual(resp.status_code, 400)
            resp = client.post("/backends", json={"address": "svc", "healthcheck": "/ok"})
            self.assertEqual(resp.status_code, 201)

    def test_register_validation_error(self):
        with TestClient(self.app) as client:
            resp = client.post("/backends", json={"address": "svc", "healthy_after": 0})
        self.assertEqual(resp.status_code, 422)

    def test_state_filter_and_healthy(self):
        with TestClient(self.app) as client:
            resp = client.get("/backends", params={"state": "HEALTHY"})
            self.assertEqual(resp.json(), [])
            resp = client.get("/backends/healthy")
            self.assertEqual(resp.json(), {"addresses": []})

    def test_metrics_endpoint(self):
        with TestClient(self.app) as client:
            resp = client.get("/metrics")
        self.assertEqual(resp.status_code, 200)
        self.assertIn("backend_pool_backends", resp.text)


if __name__ == "__main__":
    unittest.main()

    def test_registration_log_hides_credentials(self):
        with TestClient(self.app) as client:
            with self.assertLogs("api", level="INFO") as logs:
                resp = client.post("/backends", json={"address": "user:secret@svc:81"})
        self.assertEqual(resp.status_code, 201)
        self.assertIn("***@svc:81", logs.output[0])
        self.assertNotIn("secret", "\n".join(logs.output))
