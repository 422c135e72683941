"""
Survey Report Service
=====================
One-shot analysis reports over survey submissions supplied by the caller.

Two reports are produced with the same completion service the chat uses:

- filtered analysis: per-question rating statistics and sample comments for
  a region/division slice, answered by the model as a JSON document
- leadership report: question averages, feedback grouped by rating and
  continent/division breakdowns for the whole data set, answered as Markdown

Each submission row carries `responses_jsonb` as a list of answer items
`{question_id, question_type, answer_value, question_labels}`.
"""

import json
import re
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import httpx
import numpy as np

from app.core.config import settings
from app.exceptions.survey_exceptions import (
    CompletionServiceError,
    ConfigurationError,
    EmptyInputError,
)
from app.models.records import QuestionStats, ReportComment
from app.models.schemas import AnalysisReport
from app.services.survey_chat_service import ChatServiceConfig
from app.utils.logging import get_logger

logger = get_logger(__name__)

ALL = "All"
UNKNOWN = "Unknown"
ADDITIONAL_COMMENTS = "additional_comments"

QUESTION_LABELS = {
    "role_satisfaction": "Role Satisfaction",
    "recommend_company": "Would Recommend Company",
    "strategic_confidence": "Strategic Confidence",
    "manager_alignment": "Manager Alignment",
    "performance_awareness": "Performance Awareness",
    "leadership_openness": "Leadership Openness",
    "information_relay": "Information Relay",
    "training_satisfaction": "Training Satisfaction",
    "advancement_opportunities": "Advancement Opportunities",
    "workplace_safety": "Workplace Safety",
    "team_support": "Team Support",
    "team_morale": "Team Morale",
    "pride_in_work": "Pride in Work",
    "company_pride": "Company Pride",
    "workload_manageability": "Workload Manageability",
    "work_life_balance": "Work-Life Balance",
    "tools_equipment_quality": "Tools & Equipment Quality",
    "manual_processes_focus": "Manual Processes Focus",
    "communication_clarity": "Communication Clarity",
    "company_value_alignment": "Company Value Alignment",
}

JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)

LEADERSHIP_SYSTEM_PROMPT = (
    "You are an advanced analytics engine and strategic business consultant specializing in "
    "organizational health diagnostics. You deliver executive-grade insights that are candid, "
    "data-driven and actionable, recognize patterns across demographics, and give prioritized "
    "recommendations in direct, professional language suitable for senior leadership."
)


# Answer items

def answer_items(row: Mapping[str, Any]) -> List[Dict[str, Any]]:
    items = row.get("responses_jsonb") or []
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict) and item.get("question_id")]


def rating_value(answer_value: Any) -> Optional[int]:
    """Whole-number rating on the 1-5 scale, or None"""
    raw = answer_value.get("rating") if isinstance(answer_value, dict) else answer_value
    if raw is None or isinstance(raw, bool):
        return None
    try:
        number = float(raw)
    except (TypeError, ValueError):
        return None
    if not number.is_integer() or not 1 <= number <= 5:
        return None
    return int(number)


def _answer_text(answer_value: Any, key: str) -> str:
    if isinstance(answer_value, dict):
        value = answer_value.get(key)
    else:
        value = answer_value if key == "text" else None
    return value.strip() if isinstance(value, str) else ""


def _selected(answer_value: Any) -> List[str]:
    value = answer_value.get("selected") if isinstance(answer_value, dict) else answer_value
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if item is not None]
    return []


def question_label(question_id: str, item: Mapping[str, Any] = None) -> str:
    labels = (item or {}).get("question_labels")
    if isinstance(labels, dict) and labels.get("en"):
        return labels["en"]
    return QUESTION_LABELS.get(question_id, question_id)


# Filtering

def filter_submissions(
    rows: Iterable[Mapping[str, Any]],
    region: str = None,
    division: str = None,
) -> List[Mapping[str, Any]]:
    """
    Region matches anywhere in the continent name, division must match
    exactly; both ignore case. Missing or "All" means no filter.
    """
    filtered = list(rows)
    if region and region != ALL:
        needle = region.lower()
        filtered = [row for row in filtered if needle in (row.get("continent") or "").lower()]
    if division and division != ALL:
        wanted = division.lower()
        filtered = [row for row in filtered if (row.get("division") or "").lower() == wanted]
    return filtered


def filter_context(region: str = None, division: str = None) -> str:
    parts = []
    if region and region != ALL:
        parts.append(region)
    if division and division != ALL:
        parts.append(f"{division} Division")
    return " - ".join(parts) or "All Regions & Divisions"


# Statistics

def summarize_ratings(ratings: Sequence[int]) -> QuestionStats:
    values = np.asarray(ratings, dtype=int)
    counts = np.bincount(values, minlength=6)
    return QuestionStats(
        n=int(values.size),
        mean=round(float(values.mean()), 2),
        median=float(np.median(values)),
        distribution={score: int(counts[score]) for score in range(1, 6)},
    )


def collect_ratings(rows: Iterable[Mapping[str, Any]]) -> Dict[str, List[int]]:
    """question id -> valid ratings, in order of first appearance"""
    ratings: Dict[str, List[int]] = {}
    for row in rows:
        for item in answer_items(row):
            if item.get("question_type") != "rating":
                continue
            rating = rating_value(item.get("answer_value"))
            if rating is not None:
                ratings.setdefault(item["question_id"], []).append(rating)
    return ratings


def compute_question_stats(rows: Iterable[Mapping[str, Any]]) -> Dict[str, QuestionStats]:
    return {question_id: summarize_ratings(values) for question_id, values in collect_ratings(rows).items()}


def collect_comments(rows: Iterable[Mapping[str, Any]]) -> Dict[str, List[ReportComment]]:
    """Rating feedback and free-text answers per question, plus additional comments"""
    comments: Dict[str, List[ReportComment]] = {question_id: [] for question_id in QUESTION_LABELS}
    comments[ADDITIONAL_COMMENTS] = []

    for row in rows:
        for item in answer_items(row):
            question_id = item["question_id"]
            answer = item.get("answer_value")
            if item.get("question_type") == "rating":
                rating = rating_value(answer)
                feedback = _answer_text(answer, "feedback")
                if rating is not None and feedback:
                    comments.setdefault(question_id, []).append(ReportComment(feedback, rating))
            elif item.get("question_type") == "text":
                text = _answer_text(answer, "text")
                if text:
                    comments.setdefault(question_id, []).append(ReportComment(text))

        extra = row.get(ADDITIONAL_COMMENTS)
        if isinstance(extra, str) and extra.strip():
            comments[ADDITIONAL_COMMENTS].append(ReportComment(extra.strip()))

    return comments


def format_stats_summary(stats: Mapping[str, QuestionStats]) -> str:
    ranked = sorted(stats.items(), key=lambda entry: entry[1].mean, reverse=True)
    return "\n".join(
        f"{question_label(question_id)}: {summary.mean:.2f} (n={summary.n})"
        for question_id, summary in ranked
        if summary.n
    )


def format_top_comments(
    comments: Mapping[str, List[ReportComment]],
    max_questions: int = 8,
    per_question: int = 3,
) -> str:
    blocks = []
    for question_id, entries in comments.items():
        if not entries:
            continue
        if len(blocks) == max_questions:
            break
        sample = " | ".join(
            f"[{comment.rating}/5] {comment.text}" if comment.rating else comment.text
            for comment in entries[:per_question]
        )
        blocks.append(f"{question_label(question_id)}: {sample}")
    return "\n\n".join(blocks)


def build_filtered_analysis_prompt(context: str, total: int, stats_summary: str, top_comments: str) -> str:
    return f"""You are a senior organizational development consultant analyzing employee survey data for {context}.

SURVEY STATISTICS ({total} responses):
{stats_summary}

SAMPLE EMPLOYEE COMMENTS:
{top_comments}

Provide a strategic analysis in JSON format with these exact keys:
{{
  "executive_summary": "2-3 paragraph executive overview of the survey findings. Be specific about scores and patterns. Maintain a positive, forward-looking tone while addressing areas for improvement.",
  "key_strengths": ["strength 1 with specific score references", "strength 2", "strength 3"],
  "areas_for_improvement": ["area 1 with specific recommendations", "area 2", "area 3"],
  "recommendations": ["actionable recommendation 1", "recommendation 2", "recommendation 3", "recommendation 4"],
  "detailed_analysis": "3-4 paragraphs providing deeper context on patterns, workforce dynamics, and strategic implications. Reference specific scores and comments where relevant."
}}

Focus on actionable, practical insights. Be direct and strategic. Reference specific scores where relevant. Maintain a constructive, forward-looking tone that emphasizes opportunities for growth."""


def parse_analysis_report(text: str) -> AnalysisReport:
    """Pull the first-to-last brace span out of the model's answer"""
    match = JSON_OBJECT.search(text or "")
    if not match:
        raise CompletionServiceError("Could not parse AI response as JSON")
    try:
        return AnalysisReport.model_validate(json.loads(match.group(0)))
    except ValueError as e:
        raise CompletionServiceError(
            "Could not parse AI response as JSON",
            details={"error": str(e)}
        ) from e


# Leadership report

def question_summaries(rows: Sequence[Mapping[str, Any]], feedback_per_rating: int = 5) -> List[Dict[str, Any]]:
    """Per rating question: label, statistics and feedback grouped by rating"""
    labels: Dict[str, str] = {}
    feedback: Dict[str, Dict[int, List[str]]] = defaultdict(lambda: defaultdict(list))
    for row in rows:
        for item in answer_items(row):
            if item.get("question_type") != "rating":
                continue
            question_id = item["question_id"]
            labels.setdefault(question_id, question_label(question_id, item))
            rating = rating_value(item.get("answer_value"))
            text = _answer_text(item.get("answer_value"), "feedback")
            if rating is not None and text:
                feedback[question_id][rating].append(text)

    summaries = []
    for question_id, values in collect_ratings(rows).items():
        summaries.append({
            "question_id": question_id,
            "label": labels.get(question_id, question_id),
            "stats": summarize_ratings(values),
            "feedback_by_rating": {
                rating: texts[:feedback_per_rating]
                for rating, texts in sorted(feedback[question_id].items(), reverse=True)
            },
        })
    return summaries


def demographic_breakdown(
    rows: Sequence[Mapping[str, Any]],
    attribute: str,
    question_count: int,
    top_issues: int = 3,
) -> List[Dict[str, Any]]:
    """
    Average rating per continent or division, the approximate number of
    respondents per question, and the lowest-scoring questions of the group.
    """
    groups: Dict[str, Dict[str, List[int]]] = {}
    for row in rows:
        group = groups.setdefault(row.get(attribute) or UNKNOWN, {})
        for item in answer_items(row):
            if item.get("question_type") != "rating":
                continue
            rating = rating_value(item.get("answer_value"))
            if rating is not None:
                group.setdefault(question_label(item["question_id"], item), []).append(rating)

    breakdown = []
    for name, by_question in groups.items():
        all_ratings = [rating for ratings in by_question.values() for rating in ratings]
        if not all_ratings:
            continue
        issues = sorted(
            ({"question": question, "average": float(np.mean(ratings))} for question, ratings in by_question.items()),
            key=lambda issue: issue["average"],
        )
        breakdown.append({
            attribute: name,
            "average": float(np.mean(all_ratings)),
            "response_count": int(len(all_ratings) / question_count + 0.5) if question_count else 0,
            "top_issues": issues[:top_issues],
        })
    return breakdown


def open_ended_answers(rows: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    answers = []
    for row in rows:
        for item in answer_items(row):
            if item.get("question_type") == "text":
                text = _answer_text(item.get("answer_value"), "text")
                if text:
                    answers.append({
                        "question": question_label(item["question_id"], item),
                        "text": text,
                        "continent": row.get("continent") or UNKNOWN,
                        "division": row.get("division") or UNKNOWN,
                    })
    return answers


def multiselect_answers(rows: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    answers = []
    for row in rows:
        for item in answer_items(row):
            if item.get("question_type") == "multiselect":
                selected = _selected(item.get("answer_value"))
                if selected:
                    answers.append({
                        "question": question_label(item["question_id"], item),
                        "selected": selected,
                        "continent": row.get("continent") or UNKNOWN,
                        "division": row.get("division") or UNKNOWN,
                    })
    return answers


def _format_question_summary(summary: Mapping[str, Any]) -> str:
    stats: QuestionStats = summary["stats"]
    lines = [f"### {summary['label']}", f"- **Average Score: {stats.mean:.2f}/5.0** ({stats.n} responses)", "- **Distribution:**"]
    for score in range(5, 0, -1):
        count = stats.distribution.get(score, 0)
        lines.append(f"  * {score} Stars: {count} ({count / stats.n * 100:.0f}%)")
    if summary["feedback_by_rating"]:
        lines.append("**Employee Comments by Rating:**")
        for rating, texts in summary["feedback_by_rating"].items():
            lines.append(f"  Rating {rating}/5:")
            lines.extend(f'    - "{text}"' for text in texts)
    return "\n".join(lines)


def _format_breakdown(groups: Sequence[Mapping[str, Any]], attribute: str) -> str:
    blocks = []
    for group in groups:
        lines = [
            f"**{group[attribute]}** ({group['response_count']} avg responses/question)",
            f"- Overall Average: {group['average']:.2f}/5.0",
            "- Top 3 Concerns:",
        ]
        lines.extend(
            f"  {i}. {issue['question']}: {issue['average']:.2f}/5.0"
            for i, issue in enumerate(group["top_issues"], start=1)
        )
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)




def build_leadership_report_prompt(
    total: int,
    valid: int,
    summaries: Sequence[Mapping[str, Any]],
    by_continent: Sequence[Mapping[str, Any]],
    by_division: Sequence[Mapping[str, Any]],
    open_ended: Sequence[Mapping[str, Any]],
    selections: Sequence[Mapping[str, Any]],
) -> str:
    rate = valid / total * 100 if total else 0.0
    questions = "\n\n".join(_format_question_summary(summary) for summary in summaries)
    if open_ended:
        texts = "\n---\n".join(
            f"**Question: {answer['question']}**\n"
            f"Division: {answer['division']} | Continent: {answer['continent']}\n"
            f"Response: \"{answer['text']}\""
            for answer in open_ended
        )
    else:
        texts = "No open-ended responses provided."
    choices = ""
    if selections:
        choices = "\n## Multiple Choice Responses\n\n" + "\n".join(
            f"**{answer['question']}** ({answer['division']}, {answer['continent']}): {', '.join(answer['selected'])}"
            for answer in selections
        )

    return f"""Generate an executive-grade organizational health analysis from the employee survey data below.

# SURVEY DATA

**Response Statistics:**
- Total Responses: {total}
- Valid Responses: {valid}
- Response Rate: {rate:.1f}%

## Rating Questions (1-5 scale, where 1=Strongly Disagree, 5=Strongly Agree)

{questions}

## Demographic Analysis

### By Continent:
{_format_breakdown(by_continent, "continent")}

### By Division:
{_format_breakdown(by_division, "division")}

## Open-Ended Responses

{texts}
{choices}

---

# REPORT

Compute eNPS from the recommend_company rating, category averages, recurring sentiment themes and the ranked top strengths and weaknesses. Then write a Comprehensive Leadership Report as clean Markdown with exactly these headings:

# Employee Experience Report
## Executive Summary
## Key Sentiment Themes
## eNPS Analysis
## Quantitative Findings
## SWOT Analysis
## Recommendations for Leadership
## Continental Summary
## Divisional Summary

Continental and divisional summaries cover overall sentiment, key strengths, key weaknesses and notable operational or communication patterns, without cross-splitting groups in a way that could isolate respondents.

Be direct, candid and risk-aware but diplomatically phrased for executives. Cite actual scores, percentages and employee comments, and give prioritized, actionable recommendations. Do not output code or describe parsing steps."""


class SurveyReportService:
    """
    Builds the analysis reports and requests them from the completion
    service in a single non-streaming call.
    """

    def __init__(self, config: ChatServiceConfig, http_client: httpx.AsyncClient = None):
        self.config = config
        self.http_client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(
                connect=5.0,
                read=120.0,      # Whole report arrives in one response
                write=10.0,
                pool=20.0
            ),
            limits=httpx.Limits(
                max_keepalive_connections=5,
                max_connections=10,
                keepalive_expiry=30.0
            ),
            follow_redirects=True
        )

    async def close(self):
        await self.http_client.aclose()

    def _require_api_key(self):
        if not self.config.api_key:
            raise ConfigurationError("OpenAI API key not configured", setting="OPENAI_API_KEY")

    async def complete(self, messages: List[Dict[str, str]], max_tokens: int) -> str:
        """Single chat completion, returns the assistant message text"""
        payload = {
            "model": self.config.model,
            "messages": messages,
            "temperature": self.config.temperature,
            "max_tokens": max_tokens,
        }
        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }

        try:
            response = await self.http_client.post(self.config.completions_url, headers=headers, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Completion service request failed: {str(e)}")
            raise CompletionServiceError(f"OpenAI API request failed: {str(e)}") from e

        if response.is_error:
            logger.error(f"OpenAI API error: {response.status_code} {response.text}")
            raise CompletionServiceError(
                f"OpenAI API error: {response.status_code}",
                status_code=response.status_code,
                details={"body": response.text}
            )

        try:
            return response.json()["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise CompletionServiceError("Unexpected response from completion service") from e

    async def generate_filtered_analysis(
        self,
        survey_data: Sequence[Mapping[str, Any]],
        region: str = None,
        division: str = None,
    ) -> Dict[str, Any]:
        """Structured analysis of one region/division slice"""
        self._require_api_key()
        if not survey_data:
            raise EmptyInputError("No survey data provided")

        logger.info(f"Processing {len(survey_data)} responses for region: {region or ALL}, division: {division or ALL}")

        filtered = filter_submissions(survey_data, region, division)
        if not filtered:
            raise EmptyInputError(
                "No responses match the selected filters",
                details={"region": region, "division": division}
            )

        stats = compute_question_stats(filtered)
        comments = collect_comments(filtered)
        prompt = build_filtered_analysis_prompt(
            filter_context(region, division),
            len(filtered),
            format_stats_summary(stats),
            format_top_comments(
                comments,
                self.config.report_comment_questions,
                self.config.report_comments_per_question,
            ),
        )

        text = await self.complete([{"role": "user", "content": prompt}], self.config.report_max_tokens)
        analysis = parse_analysis_report(text)
        logger.info(f"Filtered analysis generated from {len(filtered)} responses")

        return {
            "analysis": analysis.model_dump(),
            "metadata": {
                "totalResponses": len(filtered),
                "region": region or ALL,
                "division": division or ALL,
                "generatedAt": datetime.now(timezone.utc).isoformat(),
                "model": self.config.model,
                "questionStats": {question_id: summary.to_dict() for question_id, summary in stats.items()},
            },
        }

    async def generate_leadership_report(self, survey_data: Sequence[Mapping[str, Any]]) -> Dict[str, Any]:
        """Markdown leadership report over every submission with answers"""
        self._require_api_key()
        if not survey_data:
            raise EmptyInputError("No survey data provided")

        valid = [row for row in survey_data if answer_items(row)]
        summaries = question_summaries(valid)
        by_continent = demographic_breakdown(valid, "continent", len(summaries))
        by_division = demographic_breakdown(valid, "division", len(summaries))

        prompt = build_leadership_report_prompt(
            len(survey_data),
            len(valid),
            summaries,
            by_continent,
            by_division,
            open_ended_answers(valid),
            multiselect_answers(valid),
        )
        logger.info(f"Requesting leadership report for {len(valid)}/{len(survey_data)} responses")

        analysis = await self.complete(
            [
                {"role": "system", "content": LEADERSHIP_SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            self.config.leadership_report_max_tokens,
        )

        return {
            "analysis": analysis,
            "metadata": {
                "totalResponses": len(survey_data),
                "validResponses": len(valid),
                "generatedAt": datetime.now(timezone.utc).isoformat(),
                "model": self.config.model,
                "questionAverages": [
                    {
                        "question_id": summary["question_id"],
                        "label": summary["label"],
                        **summary["stats"].to_dict(),
                    }
                    for summary in summaries
                ],
                "demographics": {"byContinent": by_continent, "byDivision": by_division},
            },
        }


# Global instance
survey_report_service = SurveyReportService(ChatServiceConfig.from_settings(settings))


async def get_survey_report_service() -> SurveyReportService:
    """Dependency injection for FastAPI"""
    return survey_report_service
