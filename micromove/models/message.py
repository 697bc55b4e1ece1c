from typing import Dict

class ChatMessage:
    """
    One message of a chat-completion conversation.
    Serializes to the OpenAI-compatible {"role", "content"} shape.
    """
    def __init__(self, content: str, role: str = "user"):
        self.content = content
        self.role = role

    @classmethod
    def system(cls, content: str) -> "ChatMessage":
        return cls(content=content, role="system")

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}
