"""
Reframe: shrink a step the user is stuck on into something easier.
"""
from typing import Any, List, Optional

from micromove.config import get_default_api_key, get_model
from micromove.errors import ValidationError
from micromove.infrastructure.llm import ChatCompletionClient, get_chat_client
from micromove.infrastructure.logging import get_logger
from micromove.models.message import ChatMessage
from micromove.models.schemas import ReframeResponse
from micromove.tools.fallback import generate_fallback_reframe

logger = get_logger(__name__)

PLACEHOLDER_REFRAME = "Just spend 2 minutes looking at what you have. No action required."
MIN_REFRAME_LENGTH = 5

REFRAME_SYSTEM_PROMPT = """You help people who are stuck on a task by making it even smaller and more approachable.

When someone says they're stuck, give them an EVEN TINIER version of the step - something so small it feels almost silly not to do it.

Rules:
- Make it take 2 minutes or less
- Be very specific
- Lower the bar significantly
- Add encouragement
- Keep it to one sentence

Respond with ONLY the new step as plain text. No quotes, no explanation."""

def validate_step(body: Any) -> str:
    step = body.get("originalStep") if isinstance(body, dict) else None
    if not step or not isinstance(step, str):
        raise ValidationError("Step is required")
    return step

def _optional_str(body: Any, key: str) -> Optional[str]:
    value = body.get(key)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None

def build_reframe_messages(step: str, task: Optional[str]) -> List[ChatMessage]:
    return [
        ChatMessage.system(REFRAME_SYSTEM_PROMPT),
        ChatMessage(
            f'I\'m stuck on this step: "{step}"\n'
            f'Original task was: "{task or "unknown"}"\n\n'
            "Give me a smaller version I can actually do right now."
        ),
    ]

async def handle_reframe(
    body: Any,
    client: Optional[ChatCompletionClient] = None,
) -> ReframeResponse:
    """
    Handles one reframe request.

    The request's apiKey and model win over the server defaults. Any upstream
    problem, or a reply too short to act on, yields the keyword reframe.

    Raises:
        ValidationError: originalStep is missing or not a string.
    """
    original_step = validate_step(body)
    task = _optional_str(body, "task")
    api_key = _optional_str(body, "apiKey") or get_default_api_key()
    model = get_model("reframe", _optional_str(body, "model"))

    if not api_key:
        return ReframeResponse(new_step=generate_fallback_reframe(original_step))

    try:
        client = client or get_chat_client()
        content = await client.complete(
            build_reframe_messages(original_step, task),
            api_key=api_key,
            model=model,
            temperature=0.7,
            max_tokens=100,
        )
    except Exception as e:
        logger.warning("Reframe fell back to keyword reframe", exc_info=True, extra={"props": {
            "event": "reframe_fallback",
            "step": original_step[:80],
            "model": model,
            "cause": f"{type(e).__name__}: {e}",
        }})
        return ReframeResponse(new_step=generate_fallback_reframe(original_step))

    new_step = content.strip()
    if len(new_step) < MIN_REFRAME_LENGTH:
        logger.info("Reframe reply too short, using keyword reframe", extra={"props": {
            "event": "reframe_fallback",
            "cause": "short_reply",
        }})
        return ReframeResponse(new_step=generate_fallback_reframe(original_step))

    return ReframeResponse(new_step=new_step)

def reframe_placeholder() -> ReframeResponse:
    """Answer for a request whose body could not be read at all."""
    return ReframeResponse(new_step=PLACEHOLDER_REFRAME)
