# synax/history.py

import logging
from collections import deque
from typing import List

logger = logging.getLogger(__name__)

MAX_HISTORY_ENTRIES = 20


class ConversationHistory:
    """Bounded log of conversation lines, oldest entries evicted first.

    `append` and `clear` are the only mutators. Entries are plain
    "SPEAKER: text" lines as they are fed into the composed prompt.
    """

    def __init__(self, max_entries: int = MAX_HISTORY_ENTRIES):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._entries = deque(maxlen=max_entries)

    def append(self, entry: str):
        self._entries.append(entry)
        logger.debug(f"History entry added ({len(self._entries)}/{self.max_entries}).")

    def add_exchange(self, user_text: str, assistant_text: str):
        """Records one completed user/assistant turn."""
        self.append(f"USER: {user_text}")
        self.append(f"ASSISTANT: {assistant_text}")

    def clear(self):
        self._entries.clear()
        logger.info("Conversation history cleared.")

    def entries(self) -> List[str]:
        return list(self._entries)

    def format(self) -> str:
        return "\n".join(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)
