import unittest
import asyncio
from unittest.mock import MagicMock, AsyncMock

from zero_crm.tools.correlation import SourceResult, find_active_deals, summarize
from zero_crm.tools.exceptions import ZeroAPIError
from zero_crm.tools.models import ListPage, Record
from zero_crm.tools.session import WorkspaceSession


def signal(record_id, company_ids, **timestamps):
    return Record.model_validate({"id": record_id, "companyIds": company_ids, **timestamps})


class TestCorrelation(unittest.TestCase):

    def setUp(self):
        self.responses = {
            "activities": ListPage(data=[
                signal("a1", ["c1"], time="2026-02-04T09:00:00Z"),
                signal("a2", ["c2"], time="2026-02-06T10:00:00Z"),
                signal("a3", [], time="2026-02-06T11:00:00Z"),
            ], total=3),
            "emailThreads": ListPage(data=[
                signal("t1", ["c1", "c2"], lastEmailTime="2026-02-05T12:00:00Z"),
                signal("t2", ["c1"]),
            ], total=40),
            "calendarEvents": ZeroAPIError("down", status_code=500, error_type="ServerError"),
            "issues": ZeroAPIError("missing", status_code=404, error_type="NotFound"),
            "deals": ListPage(data=[
                Record.model_validate({"id": "d1", "name": "Acme renewal", "companyId": "c1", "stage": "s1"}),
                Record.model_validate({"id": "d2", "name": "Globex pilot", "companyId": "c2", "stage": "s2"}),
                Record.model_validate({"id": "d3", "name": "Acme upsell", "companyId": "c1", "stage": "s9"}),
            ]),
            "companies": ListPage(data=[
                Record.model_validate({"id": "c1", "name": "Acme", "city": "Berlin", "country": "Germany"}),
                Record.model_validate({"id": "c2", "name": "Globex"}),
            ]),
        }
        self.client = MagicMock()
        self.client.list_records = AsyncMock(side_effect=self._list_records)
        self.session = WorkspaceSession(self.client)
        self.session.set_workspace("ws-1")
        self.session.remember_stage_names([Record(id="s1", name="Proposal"), Record(id="s2", name="Pilot")])

    async def _list_records(self, entity, query=None):
        value = self.responses[entity]
        if isinstance(value, Exception):
            raise value
        return value

    def run_async(self, coro):
        return asyncio.run(coro)

    def test_failed_sources_do_not_fail_the_operation(self):
        result = self.run_async(find_active_deals(self.client, self.session, since="2026-02-01"))

        failed = {source.source for source in result.sources if source.failed}
        self.assertEqual(failed, {"calendarEvents", "issues"})
        self.assertEqual(result.summaries["c1"].counts["activities"], 1)
        self.assertEqual(result.summaries["c1"].counts["emailThreads"], 2)
        self.assertEqual(result.summaries["c1"].counts["calendarEvents"], 0)
        self.assertEqual(result.summaries["c2"].counts["activities"], 1)
        self.assertEqual(result.summaries["c2"].counts["emailThreads"], 1)

    def test_last_activity_is_max_timestamp(self):
        result = self.run_async(find_active_deals(self.client, self.session, since="2026-02-01"))

        self.assertEqual(result.summaries["c1"].last_activity, "2026-02-05T12:00:00Z")
        self.assertEqual(result.summaries["c2"].last_activity, "2026-02-06T10:00:00Z")

    def test_deals_sorted_by_last_activity_stable(self):
        result = self.run_async(find_active_deals(self.client, self.session, since="2026-02-01"))

        self.assertEqual([item.deal.id for item in result.deals], ["d2", "d1", "d3"])
        self.assertEqual([item.stage_name for item in result.deals], ["Pilot", "Proposal", "s9"])
        self.assertEqual(result.deals[1].company.location, "Berlin, Germany")
        self.assertEqual(
            result.deals[1].deal.get("activitySummary"),
            {"activities": 1, "emailThreads": 2, "calendarEvents": 0, "issues": 0,
             "lastActivity": "2026-02-05T12:00:00Z"},
        )

    def test_source_queries_use_time_window(self):
        self.run_async(
            find_active_deals(self.client, self.session, since="2026-02-01", until="2026-02-08", per_source_limit=50)
        )

        queries = {call.args[0]: call.args[1] for call in self.client.list_records.await_args_list}
        activities = queries["activities"]
        self.assertEqual(activities.where, {"time": {"$gte": "2026-02-01", "$lt": "2026-02-08"}})
        self.assertEqual(activities.to_params()["where"], '{"time":{"$between":["2026-02-01","2026-02-08"]}}')
        self.assertEqual(activities.fields, "id,companyIds,time")
        self.assertEqual(activities.limit, 50)
        self.assertEqual(queries["emailThreads"].fields, "id,companyIds,lastEmailTime")

    def test_deal_query_merges_caller_filter(self):
        self.run_async(
            find_active_deals(self.client, self.session, since="2026-02-01", deal_where={"stage": "s1"})
        )

        queries = {call.args[0]: call.args[1] for call in self.client.list_records.await_args_list}
        deals = queries["deals"]
        self.assertEqual(deals.where["stage"], "s1")
        self.assertEqual(sorted(deals.where["companyId"]["$in"]), ["c1", "c2"])
        self.assertEqual(deals.limit, 10)

    def test_selected_sources_only(self):
        result = self.run_async(
            find_active_deals(self.client, self.session, since="2026-02-01", sources=["emailThreads"])
        )

        self.assertEqual([source.source for source in result.sources], ["emailThreads"])
        queried = {call.args[0] for call in self.client.list_records.await_args_list}
        self.assertNotIn("activities", queried)

    def test_empty_key_set_reports_source_counts(self):
        self.responses["activities"] = ListPage(data=[signal("a1", [])], total=1)
        self.responses["emailThreads"] = ListPage(data=[], total=0)

        result = self.run_async(find_active_deals(self.client, self.session, since="2026-02-01"))

        self.assertEqual(result.summaries, {})
        self.assertEqual(result.deals, [])
        self.assertEqual(
            [(source.source, len(source.records)) for source in result.sources],
            [("activities", 1), ("emailThreads", 0), ("calendarEvents", 0), ("issues", 0)],
        )
        queried = {call.args[0] for call in self.client.list_records.await_args_list}
        self.assertNotIn("deals", queried)

    def test_deal_fetch_failure_propagates(self):
        self.responses["deals"] = ZeroAPIError("forbidden", status_code=403, error_type="AccessDenied")

        with self.assertRaises(ZeroAPIError):
            self.run_async(find_active_deals(self.client, self.session, since="2026-02-01"))

    def test_truncated_source(self):
        result = self.run_async(find_active_deals(self.client, self.session, since="2026-02-01"))

        stats = {source.source: source for source in result.sources}
        self.assertTrue(stats["emailThreads"].truncated)
        self.assertFalse(stats["activities"].truncated)

    def test_summarize_counts_missing_timestamp(self):
        summaries = summarize([SourceResult(source="issues", records=[signal("i1", ["c1"])])])

        self.assertEqual(summaries["c1"].counts["issues"], 1)
        self.assertIsNone(summaries["c1"].last_activity)


if __name__ == '__main__':
    unittest.main()
