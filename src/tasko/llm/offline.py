# src/tasko/llm/offline.py

from __future__ import annotations

import json
import re
from collections.abc import Iterable

from ..assistant.commands import keyword_command
from ..core.ports import ChatMessage

# The interpreter embeds the command as a JSON string on its own line.
_COMMAND_LINE = re.compile(r'^User command: (".*")$', re.MULTILINE)


class OfflineLLMClient:
    """
    Offline deterministic LLM client used when no external API is configured.

    Answers command prompts with the keyword heuristic, serialized as the same
    JSON object a real model is asked to produce.
    """

    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]:
        user_text = ""
        for m in reversed(messages):
            if m["role"] == "user":
                user_text = m["content"]
                break

        m = _COMMAND_LINE.search(user_text)
        command = json.loads(m.group(1)) if m else user_text

        yield json.dumps(keyword_command(command).to_dict(), ensure_ascii=False)
