from clip_gpt.session.models import INACTIVITY_THRESHOLD_SECONDS, Message
from clip_gpt.session.session import Session
from clip_gpt.session.store import SessionStore

__all__ = [
    "INACTIVITY_THRESHOLD_SECONDS",
    "Message",
    "Session",
    "SessionStore",
]
