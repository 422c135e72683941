"""
Unit tests for the survey analysis chat service.
"""

import json
import re
import unittest

import httpx

from app.exceptions.survey_exceptions import (
    CompletionServiceError,
    ConfigurationError,
    EmptyInputError,
    StoreQueryError,
)
from app.services.survey_chat_service import (
    ChatServiceConfig,
    SurveyChatService,
    breakdown,
    build_cited_records,
    build_evidence_sample,
    build_outbound_messages,
    build_system_prompt,
    citation_id,
)
from tests.fakes import FakeResponseStore, submission_row

SSE_BODY = (
    b'data: {"choices":[{"delta":{"content":"Hello"}}]}\n\n'
    b'data: {"choices":[{"delta":{"content":" [R-001]"}}]}\n\n'
    b"data: [DONE]\n\n"
)


def _conversation(length):
    return [
        {"role": "user" if i % 2 == 0 else "assistant", "content": f"message {i}"}
        for i in range(length)
    ]


class RecordingUpstream:
    """httpx.MockTransport handler capturing outbound completion requests"""

    def __init__(self, status_code=200, body=SSE_BODY):
        self.status_code = status_code
        self.body = body
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        return httpx.Response(
            self.status_code,
            content=self.body,
            headers={"Content-Type": "text/event-stream"},
        )

    @property
    def payload(self):
        return json.loads(self.requests[-1].content)


class TestPromptConstruction(unittest.TestCase):
    """Test cases for citation labels and prompt building."""

    def setUp(self):
        self.rows = [submission_row(f"s{i}", minutes_ago=i) for i in range(200)]

    def test_citation_format(self):
        self.assertEqual(citation_id(1), "R-001")
        self.assertEqual(citation_id(42), "R-042")
        self.assertEqual(citation_id(200), "R-200")

    def test_citations_follow_retrieval_order(self):
        records = build_cited_records(self.rows[:3])
        self.assertEqual([r.citation_id for r in records], ["R-001", "R-002", "R-003"])
        self.assertEqual([r.response_id for r in records], ["s0", "s1", "s2"])

    def test_citations_are_stable_across_runs(self):
        first = [(r.citation_id, r.response_id) for r in build_cited_records(self.rows)]
        second = [(r.citation_id, r.response_id) for r in build_cited_records(self.rows)]
        self.assertEqual(first, second)

    def test_missing_demographics_become_unknown(self):
        records = build_cited_records([submission_row("s1", continent=None, division="", role=None)])
        self.assertEqual((records[0].continent, records[0].division, records[0].role),
                         ("Unknown", "Unknown", "Unknown"))

    def test_breakdown_covers_full_result_set(self):
        rows = [submission_row(f"a{i}", continent="Asia") for i in range(60)]
        rows += [submission_row(f"e{i}", continent="Europe") for i in range(40)]
        records = build_cited_records(rows)

        self.assertEqual(breakdown(records, "continent"), {"Asia": 60, "Europe": 40})
        prompt = build_system_prompt(records)
        self.assertIn("- Total Responses: 100", prompt)
        self.assertIn("- Continents: Asia (60), Europe (40)", prompt)
        self.assertIn("- Divisions: Operations (100)", prompt)

    def test_sample_is_bounded(self):
        """At most 50 records and 300 payload characters each reach the prompt."""
        long_payload = {"comments": "x" * 1000}
        rows = [submission_row(f"s{i}", responses=long_payload) for i in range(200)]
        records = build_cited_records(rows)

        sample = build_evidence_sample(records, sample_size=50, payload_chars=300)
        self.assertEqual(len(sample), 50)
        for line in sample:
            payload = line.split("]: ", 1)[1]
            self.assertLessEqual(len(payload.rstrip(".")), 300)

        prompt = build_system_prompt(records)
        cited = re.findall(r"^\[(R-\d{3})\]", prompt, flags=re.MULTILINE)
        self.assertEqual(len(cited), 50)
        self.assertEqual(cited[0], "R-001")
        self.assertEqual(cited[-1], "R-050")

    def test_short_payload_is_not_truncated(self):
        records = build_cited_records([submission_row("s1", responses={"q": 1})])
        sample = build_evidence_sample(records)
        self.assertEqual(sample[0], '[R-001] [Europe, Operations, Engineer]: {"q":1}')

    def test_prompt_states_citation_rules(self):
        prompt = build_system_prompt(build_cited_records(self.rows[:1]))
        self.assertIn("ONLY on this data", prompt)
        self.assertIn("format: [R-001]", prompt)
        self.assertIn("statistics, percentages", prompt)
        self.assertIn("not in the data, say so clearly", prompt)

    def test_outbound_keeps_last_ten_messages(self):
        conversation = _conversation(15)
        outbound = build_outbound_messages("system prompt", conversation, history_messages=10)

        self.assertEqual(len(outbound), 11)
        self.assertEqual(outbound[0], {"role": "system", "content": "system prompt"})
        self.assertEqual(outbound[1]["content"], "message 5")
        self.assertEqual(outbound[-1]["content"], "message 14")


class TestSurveyChatService(unittest.IsolatedAsyncioTestCase):
    """Test cases for the analyze flow against fake store and upstream."""

    def _service(self, store, upstream, api_key="sk-test"):
        config = ChatServiceConfig(api_key=api_key, base_url="https://llm.test/v1")
        client = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
        self.addAsyncCleanup(client.aclose)
        return SurveyChatService(config, store, http_client=client)

    async def _drain(self, stream):
        chunks = []
        async for chunk in stream:
            chunks.append(chunk)
        await stream.aclose()
        return b"".join(chunks)

    async def test_streams_upstream_body_unchanged(self):
        store = FakeResponseStore(submissions=[submission_row("s1")])
        upstream = RecordingUpstream()
        service = self._service(store, upstream)

        stream = await service.analyze([{"role": "user", "content": "How satisfied are people?"}])

        self.assertEqual(await self._drain(stream), SSE_BODY)

    async def test_outbound_request_shape(self):
        store = FakeResponseStore(submissions=[submission_row("s1")])
        upstream = RecordingUpstream()
        service = self._service(store, upstream)

        stream = await service.analyze(_conversation(15))
        await stream.aclose()

        request = upstream.requests[0]
        self.assertEqual(str(request.url), "https://llm.test/v1/chat/completions")
        self.assertEqual(request.headers["Authorization"], "Bearer sk-test")
        payload = upstream.payload
        self.assertEqual(payload["model"], "gpt-4o")
        self.assertTrue(payload["stream"])
        self.assertEqual(payload["temperature"], 0.7)
        self.assertEqual(payload["max_tokens"], 2000)
        self.assertEqual(len(payload["messages"]), 11)
        self.assertEqual(payload["messages"][0]["role"], "system")
        self.assertEqual(payload["messages"][-1]["content"], "message 14")

    async def test_filters_are_passed_to_store(self):
        store = FakeResponseStore(submissions=[
            submission_row("s1", continent="Asia"),
            submission_row("s2", continent="Europe"),
        ])
        upstream = RecordingUpstream()
        service = self._service(store, upstream)

        stream = await service.analyze(_conversation(1), {"continent": "Asia"})
        await stream.aclose()

        self.assertEqual(store.last_filters,
                         {"continent": "Asia", "division": None, "role": None, "limit": 200})
        self.assertIn("- Total Responses: 1", upstream.payload["messages"][0]["content"])

    async def test_no_matching_responses(self):
        """Zero matches is an error and the completion service is never called."""
        store = FakeResponseStore(submissions=[submission_row("s1", continent="Europe")])
        upstream = RecordingUpstream()
        service = self._service(store, upstream)

        with self.assertRaises(EmptyInputError) as ctx:
            await service.analyze(_conversation(1), {"continent": "Antarctica"})

        self.assertEqual(str(ctx.exception), "No survey responses found with the applied filters")
        self.assertEqual(upstream.requests, [])

    async def test_empty_conversation_fails_before_store(self):
        store = FakeResponseStore(submissions=[submission_row("s1")])
        service = self._service(store, RecordingUpstream())

        with self.assertRaises(EmptyInputError):
            await service.analyze([])
        self.assertEqual(store.calls, [])

    async def test_missing_api_key_fails_before_store(self):
        store = FakeResponseStore(submissions=[submission_row("s1")])
        upstream = RecordingUpstream()
        service = self._service(store, upstream, api_key=None)

        with self.assertRaises(ConfigurationError) as ctx:
            await service.analyze(_conversation(1))

        self.assertEqual(str(ctx.exception), "OpenAI API key not configured")
        self.assertEqual(store.calls, [])
        self.assertEqual(upstream.requests, [])

    async def test_store_failure_propagates(self):
        store = FakeResponseStore(fail_on="survey_data")
        service = self._service(store, RecordingUpstream())

        with self.assertRaises(StoreQueryError) as ctx:
            await service.analyze(_conversation(1))
        self.assertEqual(str(ctx.exception), "Failed to fetch survey data")

    async def test_upstream_error_embeds_status(self):
        store = FakeResponseStore(submissions=[submission_row("s1")])
        upstream = RecordingUpstream(status_code=429, body=b'{"error": {"message": "rate limited"}}')
        service = self._service(store, upstream)

        with self.assertRaises(CompletionServiceError) as ctx:
            await service.analyze(_conversation(1))

        self.assertEqual(ctx.exception.status_code, 429)
        self.assertIn("429", str(ctx.exception))
        self.assertIn("rate limited", ctx.exception.details["body"])

    async def test_upstream_connection_failure(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        store = FakeResponseStore(submissions=[submission_row("s1")])
        service = self._service(store, refuse)

        with self.assertRaises(CompletionServiceError):
            await service.analyze(_conversation(1))


if __name__ == '__main__':
    unittest.main()
