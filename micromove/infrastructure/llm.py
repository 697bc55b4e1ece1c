from typing import Any, Dict, List, Optional

import litellm

from micromove.config import API_BASE
from micromove.errors import UpstreamFailure
from micromove.infrastructure.logging import get_logger
from micromove.models.message import ChatMessage

logger = get_logger(__name__)

def _as_dict(response: Any) -> Dict[str, Any]:
    if isinstance(response, dict):
        return response
    if hasattr(response, "model_dump"):
        return response.model_dump()
    return dict(response)

class ChatCompletionClient:
    """
    Thin boundary around an OpenAI-compatible chat-completion API.
    Every failure mode surfaces as UpstreamFailure; callers decide how to degrade.
    """
    def __init__(self, api_base: Optional[str] = API_BASE):
        self.api_base = api_base

    async def complete(
        self,
        messages: List[ChatMessage],
        api_key: str,
        model: str,
        temperature: float = 0.7,
        max_tokens: int = 500,
    ) -> str:
        """Sends one request and returns the first choice's message content ("" if absent)."""
        kwargs = {}
        if self.api_base:
            kwargs["api_base"] = self.api_base

        try:
            response = await litellm.acompletion(
                model=model,
                messages=[m.to_dict() for m in messages],
                api_key=api_key,
                temperature=temperature,
                max_tokens=max_tokens,
                **kwargs,
            )
        except Exception as e:
            raise UpstreamFailure(f"Chat completion request failed: {e}") from e

        data = _as_dict(response)

        error = data.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise UpstreamFailure(f"Chat completion API error: {message}")

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise UpstreamFailure(f"Malformed chat completion response: {e!r}") from e

        logger.info("Chat completion succeeded", extra={"props": {
            "event": "chat_completion",
            "model": model,
        }})
        return content or ""

_CHAT_CLIENT: Optional[ChatCompletionClient] = None

def get_chat_client() -> ChatCompletionClient:
    global _CHAT_CLIENT
    if _CHAT_CLIENT is None:
        _CHAT_CLIENT = ChatCompletionClient()
    return _CHAT_CLIENT
