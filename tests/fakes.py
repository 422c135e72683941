"""
In-memory stand-ins for the response store.
"""

from datetime import datetime, timedelta

from app.exceptions.survey_exceptions import StoreQueryError

BASE_TIME = datetime(2025, 3, 1, 12, 0, 0)


def metadata_row(response_id, minutes_ago=0, **overrides):
    row = {
        "id": response_id,
        "session_id": f"session-{response_id}",
        "continent": "Europe",
        "division": "Operations",
        "role": "Engineer",
        "submitted_at": BASE_TIME - timedelta(minutes=minutes_ago),
        "completion_time_seconds": 420,
        "is_draft": False,
        "configuration_id": "config-1",
        "follow_up_responses": None,
    }
    row.update(overrides)
    return row


def answer_row(response_id, key, question_type, answer_value, minutes_ago=0, **overrides):
    row = {
        "response_id": response_id,
        "question_id": f"uuid-{key}",
        "configuration_id": "config-1",
        "answer_value": answer_value,
        "created_at": BASE_TIME - timedelta(minutes=minutes_ago),
        "config_question_id": key,
        "config_question_type": question_type,
        "question_key": key,
        "section": "Engagement & Job Satisfaction",
    }
    row.update(overrides)
    return row


def submission_row(response_id, minutes_ago=0, responses=None, **overrides):
    row = {
        "id": response_id,
        "responses_jsonb": responses if responses is not None else {"job_satisfaction": 4},
        "continent": "Europe",
        "division": "Operations",
        "role": "Engineer",
        "created_at": BASE_TIME - timedelta(minutes=minutes_ago),
        "submitted_at": BASE_TIME - timedelta(minutes=minutes_ago),
    }
    row.update(overrides)
    return row


class FakeResponseStore:
    """Serves canned rows and records every call"""

    def __init__(self, answers=None, metadata=None, submissions=None, legacy=None, fail_on=None):
        self.answers = answers or []
        self.metadata = metadata or []
        self.submissions = submissions or []
        self.legacy = legacy or []
        self.fail_on = fail_on
        self.calls = []

    def _maybe_fail(self, name):
        self.calls.append(name)
        if self.fail_on == name:
            raise StoreQueryError(f"Failed to fetch {name.replace('_', ' ')}", query_name=name)

    async def list_question_answers(self, configuration_id=None):
        self._maybe_fail("question_answers")
        return [row for row in self.answers
                if configuration_id is None or row.get("configuration_id") == configuration_id]

    async def list_submission_metadata(self, configuration_id=None):
        self._maybe_fail("submission_metadata")
        return [row for row in self.metadata
                if configuration_id is None or row.get("configuration_id") == configuration_id]

    async def list_filtered_submissions(self, continent=None, division=None, role=None, limit=200):
        self._maybe_fail("survey_data")
        self.last_filters = {"continent": continent, "division": division, "role": role, "limit": limit}
        rows = [
            row for row in self.submissions
            if (not continent or row.get("continent") == continent)
            and (not division or row.get("division") == division)
            and (not role or row.get("role") == role)
        ]
        return rows[:limit]

    async def list_legacy_responses(self, configuration_id=None):
        self._maybe_fail("legacy_responses")
        return list(self.legacy)
