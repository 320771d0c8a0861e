"""
Mailbox adapters for the collaboration bus.
"""

from beadrelay.infrastructure.mailbox.agent_mail import (
    AgentMailbox,
    MailboxSettings,
    McpHttpClient,
)
from beadrelay.infrastructure.mailbox.memory import InMemoryMailbox, SentMessage

__all__ = [
    "AgentMailbox",
    "InMemoryMailbox",
    "MailboxSettings",
    "McpHttpClient",
    "SentMessage",
]
