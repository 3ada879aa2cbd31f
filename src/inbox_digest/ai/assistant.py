from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import List, Optional

from openai import OpenAI

from inbox_digest.config.settings import Settings
from inbox_digest.errors import ConfigError
from inbox_digest.models import JobHandle, RunStatus

logger = logging.getLogger(__name__)


class GenerationTransport(ABC):
    """One conversation per batch: create it, post the prompt, run it, read the reply."""

    @abstractmethod
    def create_conversation(self) -> str:
        ...

    @abstractmethod
    def post_message(self, conversation_id: str, text: str) -> None:
        ...

    @abstractmethod
    def start_run(self, conversation_id: str) -> JobHandle:
        ...

    @abstractmethod
    def get_run_status(self, job: JobHandle) -> RunStatus:
        ...

    @abstractmethod
    def list_replies(self, conversation_id: str) -> List[str]:
        """Assistant text replies, newest first."""
        ...


class OpenAIAssistant(GenerationTransport):
    def __init__(self, client: OpenAI, assistant_id: str):
        if not assistant_id:
            raise ConfigError("OpenAI Assistant ID is required")
        self._client = client
        self._assistant_id = assistant_id

    @classmethod
    def from_settings(cls, settings: Settings) -> "OpenAIAssistant":
        if not settings.openai_api_key:
            raise ConfigError("OpenAI API key is required")
        if not settings.openai_assistant_id:
            raise ConfigError("OpenAI Assistant ID is required")
        return cls(OpenAI(api_key=settings.openai_api_key), settings.openai_assistant_id)

    def create_conversation(self) -> str:
        thread = self._client.beta.threads.create()
        return thread.id

    def post_message(self, conversation_id: str, text: str) -> None:
        self._client.beta.threads.messages.create(
            conversation_id,
            role="user",
            content=text,
        )

    def start_run(self, conversation_id: str) -> JobHandle:
        run = self._client.beta.threads.runs.create(
            thread_id=conversation_id,
            assistant_id=self._assistant_id,
        )
        return JobHandle(conversation_id=conversation_id, run_id=run.id)

    def get_run_status(self, job: JobHandle) -> RunStatus:
        run = self._client.beta.threads.runs.retrieve(job.run_id, thread_id=job.conversation_id)
        last_error = getattr(run, "last_error", None)
        error: Optional[str] = getattr(last_error, "message", None) if last_error else None
        return RunStatus(status=str(run.status), error=error)

    def list_replies(self, conversation_id: str) -> List[str]:
        # The API lists newest first by default.
        page = self._client.beta.threads.messages.list(conversation_id)
        replies: List[str] = []
        for message in page.data:
            if message.role != "assistant" or not message.content:
                continue
            block = message.content[0]
            if block.type == "text":
                replies.append(block.text.value)
        return replies
