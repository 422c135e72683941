"""
Mapping between question ids and the fixed columns of employee_survey_responses
"""

from typing import Any, Dict

QUESTION_ID_TO_LEGACY_COLUMN: Dict[str, str] = {
    # Engagement & Job Satisfaction
    "job-satisfaction": "job_satisfaction",
    "company-satisfaction": "recommend_company",
    "future-view": "strategic_confidence",

    # Leadership & Communication
    "expectations": "leadership_openness",
    "performance-awareness": "performance_awareness",
    "relaying-information": "communication_clarity",
    "management-feedback": "manager_alignment",

    # Training & Development
    "training": "training_satisfaction",
    "opportunities": "advancement_opportunities",

    # Teamwork & Culture
    "cooperation": "cross_functional_collaboration",
    "morale": "team_morale",
    "pride": "pride_in_work",

    # Safety & Work Environment
    "safety-focus": "workplace_safety",
    "safety-reporting": "safety_reporting_comfort",

    # Scheduling & Workload
    "workload": "workload_manageability",
    "work-life-balance": "work_life_balance",

    # Tools, Equipment & Processes
    "tools": "tools_equipment_quality",
    "processes": "manual_processes_focus",
    "company-value": "company_value_alignment",
    "change": "comfortable_suggesting_improvements",

    # Multi-select
    "communication-preferences": "communication_preferences",
    "information-preferences": "information_preferences",
    "motivation-factors": "motivation_factors",
}

LEGACY_COLUMN_TO_QUESTION_ID: Dict[str, str] = {
    column: question_id for question_id, column in QUESTION_ID_TO_LEGACY_COLUMN.items()
}

MULTISELECT_COLUMNS = frozenset({
    "communication_preferences",
    "information_preferences",
    "motivation_factors",
})


def legacy_column_for(question_id: str) -> str:
    return QUESTION_ID_TO_LEGACY_COLUMN.get(question_id, question_id)


def question_id_for_column(column: str) -> str:
    return LEGACY_COLUMN_TO_QUESTION_ID.get(column, column)


def is_multiselect_column(column: str) -> bool:
    return column in MULTISELECT_COLUMNS


def legacy_answers(row: Dict[str, Any]) -> Dict[str, Any]:
    """Project the answer columns of a legacy row onto question ids"""
    answers = {}
    for column, question_id in LEGACY_COLUMN_TO_QUESTION_ID.items():
        value = row.get(column)
        if value is None:
            continue
        if is_multiselect_column(column):
            value = list(value) if isinstance(value, (list, tuple)) else [value]
        answers[question_id] = value
    return answers
