import unittest
from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

from blockboard.config import get_settings
from blockboard.github import UpstreamError, UpstreamResponse
from blockboard.tests.fakes import ALICE, BOB, ApiHarness, bearer


class DashboardApiTests(unittest.TestCase):
    def setUp(self):
        self.harness = ApiHarness()
        self.client = self.harness.client
        self.db = self.harness.db

    def create_dashboard(self, token="alice-token", **payload):
        response = self.client.post("/dashboards", json=payload, headers=bearer(token))
        self.assertEqual(response.status_code, 200)
        return response.json()

    def test_create_defaults_name_to_untitled(self):
        dashboard = self.create_dashboard()
        self.assertEqual(dashboard["name"], "(Untitled)")
        self.assertEqual(dashboard["owner_id"], ALICE)

    def test_create_without_body_defaults_name(self):
        response = self.client.post("/dashboards", headers=bearer("alice-token"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["name"], "(Untitled)")

    def test_requests_without_valid_token_are_rejected(self):
        response = self.client.get("/dashboards")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.text, "Unauthorized")

        response = self.client.get("/dashboards", headers=bearer("forged"))
        self.assertEqual(response.status_code, 401)

    def test_list_returns_only_own_dashboards_newest_first(self):
        first = self.create_dashboard(name="One")
        second = self.create_dashboard(name="Two")
        self.create_dashboard(token="bob-token", name="Bob's")

        response = self.client.get("/dashboards", headers=bearer("alice-token"))
        self.assertEqual(response.status_code, 200)
        ids = [d["id"] for d in response.json()]
        self.assertEqual(ids, [second["id"], first["id"]])

    def test_owner_can_rename(self):
        dashboard = self.create_dashboard(name="Old")
        response = self.client.put(
            f"/dashboards/{dashboard['id']}",
            json={"name": "New"},
            headers=bearer("alice-token"),
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["name"], "New")

    def test_rename_with_empty_name_falls_back_to_untitled(self):
        dashboard = self.create_dashboard(name="Old")
        response = self.client.put(
            f"/dashboards/{dashboard['id']}",
            json={"name": ""},
            headers=bearer("alice-token"),
        )
        self.assertEqual(response.json()["name"], "(Untitled)")

    def test_non_owner_cannot_rename(self):
        dashboard = self.create_dashboard(name="Mine")
        response = self.client.put(
            f"/dashboards/{dashboard['id']}",
            json={"name": "Hijacked"},
            headers=bearer("bob-token"),
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.text, "Unauthorized")
        self.assertEqual(self.db.get_dashboard(dashboard["id"]).name, "Mine")

    def test_rename_missing_dashboard_is_not_found(self):
        response = self.client.put(
            "/dashboards/404", json={"name": "x"}, headers=bearer("alice-token")
        )
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.text, "Not Found")

    def test_end_to_end_dashboard_with_block(self):
        dashboard = self.create_dashboard(name="Perf")
        self.assertEqual(dashboard["id"], 1)
        self.assertEqual(dashboard["name"], "Perf")

        response = self.client.post(
            "/dashboards/1/blocks",
            json={
                "type": "github-star",
                "settings": {
                    "repository": {
                        "full_name": "solidjs/solid",
                        "id": 231300353,
                        "stargazers_count": 20000,
                    },
                    "color": "red",
                },
            },
            headers=bearer("alice-token"),
        )
        self.assertEqual(response.status_code, 200)
        block = response.json()
        self.assertEqual(
            block["settings"], {"repository": {"full_name": "solidjs/solid"}}
        )
        self.assertEqual(block["dashboard_id"], 1)

        public = self.client.get("/dashboards/1")
        self.assertEqual(public.status_code, 200)
        body = public.json()
        self.assertEqual(body["id"], 1)
        self.assertEqual(body["name"], "Perf")
        self.assertEqual(body["owner_id"], ALICE)
        self.assertEqual(
            [{"type": b["type"], "settings": b["settings"]} for b in body["blocks"]],
            [
                {
                    "type": "github-star",
                    "settings": {"repository": {"full_name": "solidjs/solid"}},
                }
            ],
        )

    def test_add_block_requires_repository(self):
        dashboard = self.create_dashboard()
        response = self.client.post(
            f"/dashboards/{dashboard['id']}/blocks",
            json={"type": "github-star", "settings": {}},
            headers=bearer("alice-token"),
        )
        self.assertEqual(response.status_code, 422)

    def test_non_owner_cannot_add_block(self):
        dashboard = self.create_dashboard()
        response = self.client.post(
            f"/dashboards/{dashboard['id']}/blocks",
            json={
                "type": "github-star",
                "settings": {"repository": {"full_name": "a/b"}},
            },
            headers=bearer("bob-token"),
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(self.db.list_blocks(dashboard["id"]), [])

    def test_public_read_of_missing_dashboard_is_not_found(self):
        response = self.client.get("/dashboards/999")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.text, "Not Found")
        self.assertNotIn("blocks", response.text)

    def test_public_read_maps_query_failures_to_not_found(self):
        dashboard = self.create_dashboard()
        with patch.object(
            self.db, "list_blocks", side_effect=RuntimeError("connection reset")
        ):
            response = self.client.get(f"/dashboards/{dashboard['id']}")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.text, "Not Found")

    def test_public_read_with_malformed_id_is_not_found(self):
        response = self.client.get("/dashboards/abc")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.text, "Not Found")

    def test_any_user_can_delete_any_block(self):
        # Known gap: block deletion does not check dashboard ownership.
        dashboard = self.create_dashboard()
        block = self.db.create_block(
            dashboard["id"], "github-star", {"repository": {"full_name": "a/b"}}
        )
        response = self.client.delete(
            f"/blocks/{block.id}", headers=bearer("bob-token")
        )
        self.assertEqual(response.status_code, 204)
        self.assertIsNone(self.db.get_block(block.id))

    def test_delete_missing_block_is_not_found(self):
        response = self.client.delete("/blocks/12", headers=bearer("alice-token"))
        self.assertEqual(response.status_code, 404)

    def test_delete_dashboard_checks_owner_and_drops_blocks(self):
        dashboard = self.create_dashboard()
        self.db.create_block(
            dashboard["id"], "github-pr", {"repository": {"full_name": "a/b"}}
        )

        response = self.client.delete(
            f"/dashboards/{dashboard['id']}", headers=bearer("bob-token")
        )
        self.assertEqual(response.status_code, 401)
        self.assertIsNotNone(self.db.get_dashboard(dashboard["id"]))

        response = self.client.delete(
            f"/dashboards/{dashboard['id']}", headers=bearer("alice-token")
        )
        self.assertEqual(response.status_code, 204)
        self.assertIsNone(self.db.get_dashboard(dashboard["id"]))
        self.assertEqual(self.db.list_blocks(dashboard["id"]), [])

    def test_health(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok"})


class OAuthApiTests(unittest.TestCase):
    def setUp(self):
        self.harness = ApiHarness()
        self.client = self.harness.client
        self.github = self.harness.github
        self.db = self.harness.db

    def test_login_redirects_to_github_with_state(self):
        response = self.client.get(
            "/auth/github", params={"state": "alice-token"}, follow_redirects=False
        )
        self.assertEqual(response.status_code, 302)
        location = urlparse(response.headers["location"])
        self.assertEqual(location.netloc, "github.com")
        self.assertEqual(location.path, "/login/oauth/authorize")
        query = parse_qs(location.query)
        self.assertEqual(query["client_id"], ["client-123"])
        self.assertEqual(query["state"], ["alice-token"])

    def test_login_requires_token_in_state(self):
        response = self.client.get("/auth/github", follow_redirects=False)
        self.assertEqual(response.status_code, 401)

    def test_callback_keeps_first_token(self):
        self.github.codes = {"code-1": "gho_first", "code-2": "gho_second"}

        for code in ("code-1", "code-2"):
            response = self.client.get(
                "/auth/github/callback",
                params={"code": code, "state": "alice-token"},
                follow_redirects=False,
            )
            self.assertEqual(response.status_code, 302)
            self.assertEqual(response.headers["location"], get_settings().web_url)

        self.assertEqual(self.github.exchanged, ["code-1", "code-2"])
        accesses = self.db.list_accesses(ALICE)
        self.assertEqual(len(accesses), 1)
        self.assertEqual(accesses[0].type, "github")
        self.assertEqual(accesses[0].token, "gho_first")

    def test_callback_with_refused_code(self):
        response = self.client.get(
            "/auth/github/callback",
            params={"code": "expired", "state": "alice-token"},
            follow_redirects=False,
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.db.list_accesses(ALICE), [])

    def test_list_accesses_is_scoped_to_caller(self):
        self.db.create_access(ALICE, "github", "gho_alice")
        self.db.create_access(BOB, "github", "gho_bob")

        response = self.client.get("/accesses", headers=bearer("alice-token"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            [(a["user_id"], a["token"]) for a in response.json()],
            [(ALICE, "gho_alice")],
        )


class GitHubProxyTests(unittest.TestCase):
    def setUp(self):
        self.harness = ApiHarness()
        self.client = self.harness.client
        self.github = self.harness.github
        self.harness.db.create_access(ALICE, "github", "gho_alice")

    def test_proxy_requires_stored_access(self):
        response = self.client.get("/github/user", headers=bearer("bob-token"))
        self.assertEqual(response.status_code, 401)
        self.assertEqual(self.github.proxied, [])

    def test_proxy_forwards_with_stored_token(self):
        response = self.client.get(
            "/github/repos/solidjs/solid", headers=bearer("alice-token")
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            self.github.proxied, [("GET", "repos/solidjs/solid", "gho_alice", None)]
        )
        self.assertEqual(response.json()["path"], "repos/solidjs/solid")

    def test_proxy_forwards_query_string(self):
        self.client.get(
            "/github/search/repositories",
            params={"q": "solid"},
            headers=bearer("alice-token"),
        )
        self.assertEqual(self.github.proxied[0][1], "search/repositories?q=solid")

    def test_get_requests_share_one_cache_entry(self):
        # Documented collision: the key ignores method and path.
        first = self.client.get("/github/repos/a/one", headers=bearer("alice-token"))
        second = self.client.get("/github/repos/b/two", headers=bearer("alice-token"))

        self.assertEqual(len(self.github.proxied), 1)
        self.assertEqual(second.json(), first.json())
        self.assertEqual(second.json()["path"], "repos/a/one")

    def test_identical_bodies_collide_until_expiry(self):
        body = {"query": "{ viewer { login } }"}
        first = self.client.post(
            "/github/graphql", json=body, headers=bearer("alice-token")
        )
        second = self.client.patch(
            "/github/repos/a/b", json=body, headers=bearer("alice-token")
        )
        self.assertEqual(second.json(), first.json())
        self.assertEqual(len(self.github.proxied), 1)

        self.harness.clock.advance(3601)
        third = self.client.patch(
            "/github/repos/a/b", json=body, headers=bearer("alice-token")
        )
        self.assertEqual(len(self.github.proxied), 2)
        self.assertEqual(third.json()["method"], "PATCH")
        self.assertEqual(third.json()["path"], "repos/a/b")

    def test_different_bodies_do_not_collide(self):
        self.client.post(
            "/github/graphql", json={"query": "a"}, headers=bearer("alice-token")
        )
        self.client.post(
            "/github/graphql", json={"query": "b"}, headers=bearer("alice-token")
        )
        self.assertEqual(len(self.github.proxied), 2)

    def test_network_failure_answers_bad_gateway(self):
        self.github.failure = UpstreamError("unreachable")
        response = self.client.get("/github/user", headers=bearer("alice-token"))
        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.text, "unreachable")
        self.assertEqual(self.harness.cache.entries, {})

    def test_error_status_passes_through_and_is_cached(self):
        self.github.answer = UpstreamResponse(401, {"message": "Bad credentials"})
        first = self.client.get("/github/user", headers=bearer("alice-token"))
        self.assertEqual(first.status_code, 401)
        self.assertEqual(first.json(), {"message": "Bad credentials"})

        second = self.client.get("/github/user", headers=bearer("alice-token"))
        self.assertEqual(second.status_code, 200)
        self.assertEqual(second.json(), {"message": "Bad credentials"})
        self.assertEqual(len(self.github.proxied), 1)

    def test_no_content_answer_has_empty_body_and_is_not_cached(self):
        self.github.answer = UpstreamResponse(204, None)
        for method in ("PUT", "DELETE"):
            response = self.client.request(
                method, "/github/user/starred/a/b", headers=bearer("alice-token")
            )
            self.assertEqual(response.status_code, 204)
            self.assertEqual(response.content, b"")

        self.assertEqual(
            [call[0] for call in self.github.proxied], ["PUT", "DELETE"]
        )
        self.assertEqual(self.harness.cache.entries, {})

    def test_head_is_forwarded(self):
        self.github.answer = UpstreamResponse(200, None)
        response = self.client.head(
            "/github/repos/solidjs/solid", headers=bearer("alice-token")
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            self.github.proxied, [("HEAD", "repos/solidjs/solid", "gho_alice", None)]
        )


if __name__ == "__main__":
    unittest.main()
