from __future__ import annotations

from intervox.agents.conversation import ConversationManager
from intervox.agents.coordinator import InvestigationCoordinator

_conversations: ConversationManager | None = None
_coordinator: InvestigationCoordinator | None = None


def get_conversations() -> ConversationManager:
    """Process-wide conversation manager shared by the coordinator and chat routes."""
    global _conversations
    if _conversations is None:
        _conversations = ConversationManager()
    return _conversations


def get_coordinator() -> InvestigationCoordinator:
    global _coordinator
    if _coordinator is None:
        _coordinator = InvestigationCoordinator(conversations=get_conversations())
    return _coordinator


async def shutdown() -> None:
    if _coordinator is not None:
        await _coordinator.shutdown()
