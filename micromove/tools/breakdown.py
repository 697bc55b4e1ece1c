"""
Breakdown: turn one task description into an ordered list of micro-steps.

The handler always answers a well-formed request with usable steps. Upstream
problems degrade to the keyword fallback and are logged, never raised.
"""
import json
import re
from typing import Any, List, Optional

from micromove.config import MAX_STEPS, MIN_TASK_LENGTH, get_default_api_key, get_model
from micromove.errors import ValidationError
from micromove.infrastructure.llm import ChatCompletionClient, get_chat_client
from micromove.infrastructure.logging import get_logger
from micromove.models.message import ChatMessage
from micromove.models.schemas import BreakdownResponse
from micromove.tools.fallback import generate_fallback_steps

logger = get_logger(__name__)

PLACEHOLDER_TASK = "your task"
MAX_LINE_LENGTH = 200
MIN_RECOVERED_LINES = 3
MIN_STEPS = 2

BREAKDOWN_SYSTEM_PROMPT = """You are a productivity coach that helps people overcome procrastination by breaking down overwhelming tasks into tiny, manageable steps.

Rules:
- Break the task into 5-7 micro-steps
- Each step should take about 5 minutes or less
- Steps should be VERY specific and actionable
- Start with the easiest possible action to build momentum
- Use encouraging, simple language
- Focus on "just getting started" for the first step
- Make step 1 almost embarrassingly easy

Respond with ONLY a JSON array of strings, each being one step. No explanation, no markdown, just the JSON array.

Example response format:
["Step 1 text", "Step 2 text", "Step 3 text"]"""

_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")
_ORDINAL = re.compile(r"^\d+[.)]\s*")
_BULLET = re.compile(r"^[-*•]\s*")
_QUOTES = re.compile(r"^[\"']|[\"']$")

def validate_task(body: Any) -> str:
    """Returns the trimmed task or raises ValidationError."""
    task = body.get("task") if isinstance(body, dict) else None
    if not task or not isinstance(task, str):
        raise ValidationError("Task is required")
    clean_task = task.strip()
    if len(clean_task) < MIN_TASK_LENGTH:
        raise ValidationError("Task is too short")
    return clean_task

def _optional_str(body: Any, key: str) -> Optional[str]:
    value = body.get(key) if isinstance(body, dict) else None
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None

def steps_from_lines(content: str) -> List[str]:
    """Recovers steps from free text: one per line, markers and quotes stripped."""
    steps = []
    for line in content.split("\n"):
        line = line.strip()
        if not line:
            continue
        line = _ORDINAL.sub("", line)
        line = _BULLET.sub("", line)
        line = _QUOTES.sub("", line).strip()
        if 0 < len(line) < MAX_LINE_LENGTH:
            steps.append(line)
    return steps[:MAX_STEPS]

def parse_steps(content: str, task: str) -> List[str]:
    """
    Extracts a step list from the model's reply.

    Tries the bracketed JSON array first, then falls back to line splitting.
    Anything too thin to act on is replaced with the keyword fallback.
    """
    try:
        match = _JSON_ARRAY.search(content)
        if not match:
            raise ValueError("No JSON array found")
        parsed = json.loads(match.group(0))
        if not isinstance(parsed, list):
            raise ValueError("JSON value is not an array")
        steps = [s.strip() for s in parsed if isinstance(s, str) and s.strip()]
    except ValueError:
        steps = steps_from_lines(content)
        if len(steps) < MIN_RECOVERED_LINES:
            steps = generate_fallback_steps(task)

    if len(steps) < MIN_STEPS:
        return generate_fallback_steps(task)
    return steps[:MAX_STEPS]

def build_breakdown_messages(task: str) -> List[ChatMessage]:
    return [
        ChatMessage.system(BREAKDOWN_SYSTEM_PROMPT),
        ChatMessage(f'Break down this task into micro-steps: "{task}"'),
    ]

async def handle_breakdown(
    body: Any,
    client: Optional[ChatCompletionClient] = None,
) -> BreakdownResponse:
    """
    Handles one breakdown request.

    Args:
        body: The decoded JSON request body ({"task": ..., optional "apiKey"/"model"}).
        client: Chat-completion client; the shared one when omitted.

    Raises:
        ValidationError: the task is missing, not a string, or too short.
    """
    task = validate_task(body)
    api_key = _optional_str(body, "apiKey") or get_default_api_key()
    model = get_model("breakdown", _optional_str(body, "model"))

    if not api_key:
        return BreakdownResponse(steps=generate_fallback_steps(task))

    try:
        client = client or get_chat_client()
        content = await client.complete(
            build_breakdown_messages(task),
            api_key=api_key,
            model=model,
            temperature=0.7,
            max_tokens=500,
        )
        steps = parse_steps(content, task)
    except Exception as e:
        logger.warning("Breakdown fell back to keyword steps", exc_info=True, extra={"props": {
            "event": "breakdown_fallback",
            "task": task[:80],
            "model": model,
            "cause": f"{type(e).__name__}: {e}",
        }})
        steps = generate_fallback_steps(task)

    return BreakdownResponse(steps=steps[:MAX_STEPS])

def breakdown_placeholder() -> BreakdownResponse:
    """Answer for a request whose body could not be read at all."""
    return BreakdownResponse(steps=generate_fallback_steps(PLACEHOLDER_TASK))
