from __future__ import annotations

from dataclasses import dataclass

from clip_gpt.prompts import SYSTEM_PROMPT
from clip_gpt.session import Message, Session


@dataclass(frozen=True)
class ChatRequest:
    model: str
    messages: tuple[Message, ...]
    temperature: float | str

    def to_payload(self) -> dict:
        return {
            "model": self.model,
            "messages": [m.to_dict() for m in self.messages],
            "temperature": self.temperature,
        }


def parse_temperature(raw: str) -> float | str:
    """Convert the configured temperature string into a number.

    Values are not clamped; text that is not a number is passed through as-is and
    left for the provider to reject.
    """
    try:
        return float(raw)
    except (TypeError, ValueError):
        return raw


def build_chat_request(
    session: Session,
    text: str,
    *,
    model: str,
    temperature: str,
    now: float | None = None,
) -> ChatRequest:
    # The new user turn is committed before the snapshot so the request carries it.
    session.append(Message.user(text), now=now)
    return ChatRequest(
        model=model,
        messages=session.snapshot(),
        temperature=parse_temperature(temperature),
    )


def build_one_time_request(prompt: str, text: str, *, model: str, temperature: str) -> ChatRequest:
    return ChatRequest(
        model=model,
        messages=(
            Message.system(SYSTEM_PROMPT),
            Message.user(f"{prompt} {text}"),
        ),
        temperature=parse_temperature(temperature),
    )
