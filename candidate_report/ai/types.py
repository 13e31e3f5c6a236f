from dataclasses import dataclass
from typing import Literal, Protocol, Sequence


Role = Literal["system", "user", "assistant"]


@dataclass(frozen=True)
class ChatMessage:
    role: Role
    content: str


@dataclass(frozen=True)
class Completion:
    text: str
    model: str
    request_id: str | None = None


class AIClient(Protocol):
    async def complete(self, messages: Sequence[ChatMessage]) -> Completion: ...
