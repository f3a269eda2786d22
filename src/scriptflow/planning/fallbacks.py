"""Deterministic output used when the text-generation tool fails.

Both fallbacks depend only on the goal text, so the same request always
degrades the same way.
"""

import re
from typing import Optional

from scriptflow.catalog.catalog import NodeCatalog
from scriptflow.core.graph_model import Edge, GraphNode, NodeGraph
from scriptflow.planning.models import Question

STOP_WORDS = {
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
    "me", "my", "i", "it", "into", "from", "every", "when", "please",
}  # fmt: skip

FALLBACK_TRIGGER_TYPE = "trigger.time.cron"
FALLBACK_ACTION_TYPE = "action.http.request"
FALLBACK_URL = "https://api.example.com/data"

# (pattern over the lowercased goal, question); order is the order asked
_KEYWORD_QUESTIONS: list[tuple[str, Question]] = [
    (
        r"\b(?:sheets?|spreadsheets?)\b",
        Question(
            id="sheet_url",
            text="Which Google Sheet should be used? Paste its URL or id.",
            kind="missingParam",
        ),
    ),
    (
        r"\b(?:e?mails?|gmail|inbox|messages?)\b",
        Question(
            id="email_criteria",
            text="Which emails should be included (sender, label, subject, or unread only)?",
            kind="disambiguation",
        ),
    ),
    (
        r"\b(?:calendars?|meetings?|events?)\b",
        Question(
            id="calendar_id",
            text="Which calendar should be used? Leave blank for your primary calendar.",
            kind="missingParam",
        ),
    ),
    (
        r"\b(?:drive|folders?|files?|documents?)\b",
        Question(id="folder_id", text="Which Drive folder should be used? Paste its URL or id.", kind="missingParam"),
    ),
    (
        r"\b(?:schedules?|daily|weekly|hourly|monthly|every|morning|evening|times?|digest)\b",
        Question(
            id="frequency",
            text="How often should this run?",
            kind="disambiguation",
            choices=["Every 15 minutes", "Every hour", "Daily", "Weekly"],
        ),
    ),
    (
        r"\b(?:webhooks?|form submissions?|incoming requests?)\b",
        Question(
            id="webhook_source",
            text="Which service will send requests to the webhook, and what data does it include?",
            kind="disambiguation",
        ),
    ),
    (
        r"\b(?:slack|airtable|notion|api|apis|http)\b",
        Question(
            id="api_credentials",
            text="Which account or API key should be used for the external service?",
            kind="permission",
        ),
    ),
    (
        r"\b(?:send|notify|alert|forward)\b",
        Question(id="recipient", text="Who should receive the result?", kind="missingParam"),
    ),
    (
        r"\b(?:all|each|bulk)\b",
        Question(
            id="volume",
            text="Roughly how many items should each run handle at most?",
            kind="volume",
            choices=["10", "50", "100", "500"],
        ),
    ),
]

DEFAULT_QUESTION = Question(
    id="automation_details",
    text="What should happen, and when should it run? Mention the apps and data involved.",
    kind="missingParam",
)


def keyword_questions(goal: str, max_questions: int = 7) -> list[Question]:
    """Build clarifying questions from keywords in the goal.

    Args:
        goal: The user's request
        max_questions: Upper bound on the number of questions

    Returns:
        Between 1 and ``max_questions`` questions
    """
    text = (goal or "").lower()
    questions = [question for pattern, question in _KEYWORD_QUESTIONS if re.search(pattern, text)]
    if not questions:
        questions = [DEFAULT_QUESTION]
    return [q.model_copy() for q in questions[: max(1, max_questions)]]


def generate_workflow_name(user_input: str, max_length: int = 40) -> str:
    """Generate a kebab-case name from the first few significant words."""
    if not user_input:
        return "workflow"
    words = re.findall(r"[a-z0-9]+", user_input.lower()[:max_length])
    significant = [w for w in words if w not in STOP_WORDS][:4]
    return "-".join(significant) if significant else "workflow"


def fallback_graph(goal: str, catalog: Optional[NodeCatalog] = None) -> NodeGraph:
    """Minimal valid graph: a 15-minute schedule that calls an HTTP endpoint.

    Args:
        goal: The user's request, used for the id, name and description
        catalog: When given, scopes and secrets are derived from it

    Returns:
        A graph that validates against the built-in catalog
    """
    summary = " ".join((goal or "").split())
    graph = NodeGraph(
        id=f"fallback-{generate_workflow_name(summary)}",
        name=f"Automation: {summary[:50]}" if summary else "Automation",
        version=1,
        nodes=[
            GraphNode(
                id="trigger_1",
                type=FALLBACK_TRIGGER_TYPE,
                label="Every 15 minutes",
                params={"frequency": "every_minutes", "everyMinutes": 15},
            ),
            GraphNode(
                id="action_1",
                type=FALLBACK_ACTION_TYPE,
                label="Fetch data",
                params={"method": "GET", "url": FALLBACK_URL},
                note="Placeholder step: replace the URL with the service this automation should call.",
            ),
        ],
        edges=[Edge(from_node="trigger_1", to_node="action_1")],
        metadata={"description": summary, "fallback": True},
    )
    if catalog is not None:
        graph = graph.with_derived(catalog)
    return graph
