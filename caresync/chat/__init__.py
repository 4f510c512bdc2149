"""
Chat: canned keyword replies and the generative-text assistant.
"""
from .responder import generate_static_reply, WELCOME_MESSAGE, FALLBACK_REPLY
from .assistant import ChatAssistant

__all__ = [
    "generate_static_reply",
    "WELCOME_MESSAGE",
    "FALLBACK_REPLY",
    "ChatAssistant",
]
