"""
Database models - import all models here so relationship strings resolve.
"""
from dealerchat.models.lead import Lead
from dealerchat.models.conversation import Conversation
from dealerchat.models.chat_message import ChatMessage

__all__ = [
    "Lead",
    "Conversation",
    "ChatMessage",
]
