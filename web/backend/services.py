"""Business logic services for the web backend"""
import os
import re
import logging
from collections import OrderedDict
from typing import Dict, Any, Optional

from fastapi import UploadFile

from analysis.session_bridge import MemorySessionStore, SessionBridge
from orchestrator.controller import ConversationLoop
from orchestrator.policies import PolicyManager
from orchestrator.remote import ServiceProxy
from .models import ConversationView

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 50 * 1024 * 1024
MAX_CONVERSATIONS = 1000


class ConversationService:
    """In-process registry of conversations keyed by id.

    Holds at most ``max_conversations``; the least recently used one is
    dropped when a new conversation would exceed the cap.
    """

    def __init__(self, proxy: ServiceProxy, policy: PolicyManager, max_conversations: int = MAX_CONVERSATIONS):
        self.proxy = proxy
        self.policy = policy
        self.max_conversations = max(1, max_conversations)
        self.conversations: "OrderedDict[str, ConversationLoop]" = OrderedDict()

    def create(self, session: Optional[Dict[str, Any]] = None) -> ConversationLoop:
        loop = ConversationLoop(proxy=self.proxy, policy=self.policy)
        if session:
            snapshot = loop.restore(SessionBridge(MemorySessionStore(session)))
            logger.info(f"Conversation {loop.id} restored from {snapshot.source} snapshot")
        while len(self.conversations) >= self.max_conversations:
            evicted, _ = self.conversations.popitem(last=False)
            logger.info(f"Conversation {evicted} evicted; registry is at its cap of {self.max_conversations}")
        self.conversations[loop.id] = loop
        logger.info(f"Conversation created: {loop.id}")
        return loop

    def get(self, conversation_id: str) -> Optional[ConversationLoop]:
        loop = self.conversations.get(conversation_id)
        if loop is not None:
            self.conversations.move_to_end(conversation_id)
        return loop

    def view(self, loop: ConversationLoop) -> ConversationView:
        return ConversationView(
            conversation_id=loop.id,
            state=loop.state.value,
            messages=loop.messages,
            pending_goal=loop.pending_goal_text,
            goal=loop.goal.model_dump() if loop.goal else None,
            result=loop.result.to_wire() if loop.result else None,
        )

    def sanitize_filename(self, filename: Optional[str]) -> str:
        """Sanitize uploaded filename"""
        filename = os.path.basename(filename or "dataset.csv")
        filename = re.sub(r'[^\w\-_\.]', '_', filename)
        if len(filename) > 100:
            name, ext = os.path.splitext(filename)
            filename = name[:90] + ext
        return filename

    async def read_upload(self, file: UploadFile) -> bytes:
        content = await file.read()
        if len(content) > MAX_UPLOAD_BYTES:
            raise ValueError("File size should be less than 50MB")
        return content
