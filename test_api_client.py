import unittest
import asyncio
import json

import httpx

from zero_crm.config import Config
from zero_crm.tools.api_client import ZeroAPIClient
from zero_crm.tools.error_handler import ErrorHandler
from zero_crm.tools.exceptions import WorkspaceNotFoundError, ZeroAPIError
from zero_crm.tools.filters import ListQuery


class TestZeroAPIClient(unittest.TestCase):

    def setUp(self):
        self.requests = []
        self.responses = {}
        self.config = Config(api_key="test-key", api_url="https://api.test", workspace_name=None)
        self.client = ZeroAPIClient(self.config, transport=httpx.MockTransport(self._handler))

    def _handler(self, request):
        self.requests.append(request)
        status, body = self.responses.get((request.method, request.url.path), (404, {"error": "Not found"}))
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    def run_async(self, coro):
        async def run():
            try:
                return await coro
            finally:
                await self.client.close()
        return asyncio.run(run())

    def test_list_records_sends_encoded_query(self):
        self.responses[("GET", "/api/deals")] = (200, {
            "data": [{"id": "d1", "name": "Deal", "companyId": "c1"}],
            "total": 1, "limit": 20, "offset": 0,
        })

        page = self.run_async(self.client.list_records("deals", ListQuery(
            workspace_id="ws-1",
            where={"value": {"$gte": 10, "$lte": 20}},
            limit=20,
            offset=0,
        )))

        self.assertEqual(page.total, 1)
        self.assertEqual(page.data[0].get("companyId"), "c1")
        request = self.requests[0]
        self.assertEqual(request.headers["Authorization"], "Bearer test-key")
        self.assertEqual(request.url.params["workspaceId"], "ws-1")
        self.assertEqual(json.loads(request.url.params["where"]), {"value": {"$between": [10, 20]}})
        self.assertEqual(request.url.params["limit"], "20")

    def test_get_record_accepts_wrapped_and_bare(self):
        self.responses[("GET", "/api/contacts/p1")] = (200, {"data": {"id": "p1", "email": "a@b.co"}})
        self.responses[("GET", "/api/contacts/p2")] = (200, {"id": "p2", "email": "c@d.co"})

        wrapped = self.run_async(self.client.get_record("contacts", "p1"))
        bare = self.run_async(self.client.get_record("contacts", "p2", fields="id,email", workspace_id="ws-1"))

        self.assertEqual(wrapped.get("email"), "a@b.co")
        self.assertEqual(bare.id, "p2")
        self.assertEqual(self.requests[1].url.params["fields"], "id,email")

    def test_list_workspaces(self):
        self.responses[("GET", "/api/workspaces")] = (200, {"data": [{"id": "ws-1", "name": "Sales"}]})

        workspaces = self.run_async(self.client.list_workspaces())

        self.assertEqual([w.name for w in workspaces], ["Sales"])

    def test_create_and_update_include_workspace(self):
        self.responses[("POST", "/api/tasks")] = (201, {"data": {"id": "t1", "name": "Follow up"}})
        self.responses[("PATCH", "/api/tasks/t1")] = (200, {"id": "t1", "name": "Follow up", "done": True})

        created = self.run_async(self.client.create_record("tasks", "ws-1", {"name": "Follow up"}))
        updated = self.run_async(self.client.update_record("tasks", "t1", "ws-1", {"done": True}))

        self.assertEqual(created.id, "t1")
        self.assertTrue(updated.get("done"))
        self.assertEqual(json.loads(self.requests[0].content), {"name": "Follow up", "workspaceId": "ws-1"})
        self.assertEqual(json.loads(self.requests[1].content), {"done": True, "workspaceId": "ws-1"})

    def test_delete_archive_flag(self):
        self.responses[("DELETE", "/api/notes/n1")] = (204, None)

        self.run_async(self.client.delete_record("notes", "n1"))
        self.run_async(self.client.delete_record("notes", "n1", archive=False))

        self.assertEqual(self.requests[0].url.params.get("archive"), "true")
        self.assertNotIn("archive", self.requests[1].url.params)

    def test_http_error_raises_classified_error(self):
        with self.assertRaises(ZeroAPIError) as ctx:
            self.run_async(self.client.get_record("deals", "missing"))

        self.assertEqual(ctx.exception.status_code, 404)
        self.assertEqual(ctx.exception.error_type, "NotFound")
        self.assertNotIn("test-key", str(ctx.exception))

    def test_validation_detail_kept(self):
        self.responses[("POST", "/api/deals")] = (422, {"message": "value must be a number"})

        with self.assertRaises(ZeroAPIError) as ctx:
            self.run_async(self.client.create_record("deals", "ws-1", {"value": "lots"}))

        self.assertEqual(ctx.exception.error_type, "ValidationError")
        self.assertEqual(ctx.exception.detail, "value must be a number")

    def test_transport_failure(self):
        def broken(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = ZeroAPIClient(self.config, transport=httpx.MockTransport(broken))
        with self.assertRaises(ZeroAPIError) as ctx:
            asyncio.run(client.list_records("deals"))
        self.assertIsNone(ctx.exception.status_code)
        self.assertEqual(ctx.exception.error_type, "RequestFailed")

    def test_unknown_entity(self):
        with self.assertRaises(ValueError):
            self.run_async(self.client.list_records("widgets"))

    def test_missing_api_key(self):
        client = ZeroAPIClient(Config(api_key=None))
        with self.assertRaises(ValueError):
            asyncio.run(client.list_workspaces())


class TestErrorHandler(unittest.TestCase):

    def test_status_taxonomy(self):
        cases = {
            401: "AuthenticationError",
            403: "AccessDenied",
            404: "NotFound",
            422: "ValidationError",
            429: "RateLimited",
            503: "ServerError",
            400: "RequestFailed",
        }
        for status, expected in cases.items():
            error_type, _, _ = ErrorHandler.handle_api_error(ZeroAPIError("x", status_code=status))
            self.assertEqual(error_type, expected, status)

    def test_validation_detail_truncated(self):
        error = ZeroAPIError("x", status_code=422, error_type="ValidationError", detail="y" * 500)
        _, message, _ = ErrorHandler.handle_api_error(error)
        self.assertIn("y" * 200, message)
        self.assertNotIn("y" * 201, message)

    def test_unexpected_error_hides_details(self):
        error = RuntimeError("secret internal state")
        error_type, message, suggestions = ErrorHandler.handle_api_error(error)
        response = ErrorHandler.format_error_response(error, error_type, message, suggestions, operation="listing records")
        self.assertIn("UnexpectedError", response)
        self.assertIn("Error listing records:", response)
        self.assertNotIn("secret", response)

    def test_workspace_not_found(self):
        error_type, message, _ = ErrorHandler.handle_api_error(WorkspaceNotFoundError("Ops", ["Sales"]))
        self.assertEqual(error_type, "WorkspaceNotFound")
        self.assertIn("Sales", message)


if __name__ == '__main__':
    unittest.main()
