from __future__ import annotations
import logging
import os
from dataclasses import dataclass
from typing import List, Optional, Sequence

import requests

from .models import ChatMessage, Task
from .repository import Repository

logger = logging.getLogger(__name__)

API_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
DEFAULT_MODEL = "gemini-2.0-flash"
HISTORY_LIMIT = 10
REQUEST_TIMEOUT = 30

ERROR_REPLY = "Sorry, I encountered an error. Could you try asking again?"


@dataclass(frozen=True)
class AssistantReply:
    response: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.response)


def build_prompt(message: str, history: Sequence[ChatMessage]) -> str:
    """Render the last HISTORY_LIMIT messages as a plain User/AI transcript."""
    context = ""
    recent = list(history)[-HISTORY_LIMIT:]
    if recent:
        lines = []
        for m in recent:
            speaker = "User" if m.role == "user" else "AI"
            lines.append(f"{speaker}: {m.content}")
        context = "\n\n".join(lines) + "\n\n"
    return context + f"User: {message}\nAI:"


class ReflectionAssistant:
    """Stateless request/response client for the language-model API.

    `send` never raises; every failure comes back as an `error` reply.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        session: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT,
    ):
        self.api_key = api_key if api_key is not None else os.environ.get("GEMINI_API_KEY", "")
        self.model = model
        self.session = session or requests.Session()
        self.timeout = timeout

    def send(self, message: str, history: Sequence[ChatMessage] = ()) -> AssistantReply:
        if not message or not message.strip():
            return AssistantReply(error="Message is required")
        if not self.api_key:
            return AssistantReply(error="Gemini API key is not configured")

        payload = {"contents": [{"parts": [{"text": build_prompt(message, history)}]}]}
        try:
            resp = self.session.post(
                API_URL.format(model=self.model),
                params={"key": self.api_key},
                json=payload,
                timeout=self.timeout,
            )
            resp.raise_for_status()
            text = _extract_text(resp.json())
        except (requests.RequestException, ValueError) as e:
            logger.warning("Assistant request failed: %s", e)
            return AssistantReply(
                error="Failed to get response from AI. Please check your API key and try again."
            )
        if not text:
            return AssistantReply(error="Empty response from AI")
        return AssistantReply(response=text)


def _extract_text(body) -> str:
    try:
        parts = body["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError):
        raise ValueError("unexpected response shape")
    return "".join(p.get("text", "") for p in parts if isinstance(p, dict)).strip()


# ---------- conversation ----------

def completion_fallback(task: Task) -> str:
    actual = task.pomodoros
    estimate = task.estimated_pomos
    if estimate is None:
        return f'Great job completing "{task.name}"! How do you think the session went?'
    if actual <= estimate:
        return (
            f'Excellent work! You completed "{task.name}" in {actual} pomodoros, '
            f"{estimate - actual} less than your estimate. What do you think helped you stay focused?"
        )
    return (
        f'You completed "{task.name}" in {actual} pomodoros, which is {actual - estimate} '
        "more than your estimate. That's okay! What do you think made it take longer than expected?"
    )


def general_fallback(current: Optional[Task]) -> str:
    if current is not None:
        return f'Hi! I see you\'re working on "{current.name}". How can I help you with your productivity today?'
    return "Hi! How can I help you with your productivity today?"


def completion_prompt(task: Task) -> str:
    estimate = "no estimate" if task.estimated_pomos is None else f"an estimate of {task.estimated_pomos} pomodoros"
    return (
        "You are a productivity coach helping someone reflect on their Pomodoro session. "
        f'They completed a task called "{task.name}" with {estimate}; it took {task.pomodoros} pomodoros. '
        "Give a brief, encouraging analysis and ask one question about how it went. Keep it to 3-4 sentences."
    )


def general_prompt(current: Optional[Task]) -> str:
    info = f' They are currently working on a task called "{current.name}".' if current else ""
    return (
        f"You are a productivity coach. Someone came to you for help or just to talk.{info} "
        "Be warm and supportive, ask how you can help. Keep it brief and conversational."
    )


@dataclass(frozen=True)
class PendingRequest:
    message: str
    history: List[ChatMessage]
    fallback: str


class ReflectionChat:
    """Persisted chat transcript on top of a ReflectionAssistant.

    Each exchange is split in two so the network call can run elsewhere:
    `start_*` records what is being asked and returns a PendingRequest,
    `finish` stores the assistant's reply (or the canned fallback).
    `run` does both in one go.
    """

    def __init__(self, repo: Repository, assistant: ReflectionAssistant):
        self.repo = repo
        self.assistant = assistant
        self.messages: List[ChatMessage] = repo.get_chat_messages()

    def start_completed(self, task: Task) -> PendingRequest:
        self.clear()
        return PendingRequest(completion_prompt(task), [], completion_fallback(task))

    def start_general(self, current: Optional[Task]) -> PendingRequest:
        self.clear()
        return PendingRequest(general_prompt(current), [], general_fallback(current))

    def start_ask(self, text: str) -> Optional[PendingRequest]:
        if not text.strip():
            return None
        history = list(self.messages)
        self._append(ChatMessage(role="user", content=text))
        return PendingRequest(text, history, ERROR_REPLY)

    def finish(self, pending: PendingRequest, reply: AssistantReply) -> ChatMessage:
        if reply.ok:
            content = reply.response
        else:
            logger.info("Using fallback reply: %s", reply.error)
            content = pending.fallback
        return self._append(ChatMessage(role="assistant", content=content))

    def run(self, pending: PendingRequest) -> ChatMessage:
        return self.finish(pending, self.assistant.send(pending.message, pending.history))

    def clear(self) -> None:
        self.messages = []
        self.repo.clear_chat_messages()

    def _append(self, msg: ChatMessage) -> ChatMessage:
        self.messages.append(msg)
        self.repo.save_chat_messages(self.messages)
        return msg
