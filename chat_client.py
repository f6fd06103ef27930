"""Chat proxy client — study-coach conversations and image questions via Gemini.

The client flattens a role/content transcript behind a fixed preamble,
sends it through the resilience layer and returns plain text. Every
failure surfaces as ServiceError with a readable reason; an empty reply
becomes FALLBACK_REPLY.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from ai_resilience import CircuitOpenError, TransientLLMError, resilient_call

logger = logging.getLogger(__name__)

PROVIDER = "gemini"
DEFAULT_MODEL = "gemini-1.5-flash"
DEFAULT_HISTORY_LIMIT = 20

CHAT_PREAMBLE = (
    "You are a friendly study coach for school students. Be concise and helpful. "
    "Explain step by step. Have clear formatting."
)
IMAGE_PREAMBLE = "You are a helpful study coach. Explain clearly and step by step."

FALLBACK_REPLY = "Sorry, I couldn't come up with an answer. Could you rephrase the question?"

_ROLES = ("user", "assistant")


class ServiceError(Exception):
    """The text-completion service could not produce a reply."""

    def __init__(self, reason: str, status: int = 502) -> None:
        super().__init__(reason)
        self.reason = reason
        self.status = status

    def display(self) -> str:
        """Message suitable for showing in the chat window."""
        return f"Sorry, I had trouble answering that. ({self.reason})"


def _gemini_factory(api_key: str, model: str):
    import google.generativeai as genai

    genai.configure(api_key=api_key)
    return genai.GenerativeModel(model)


def _reply_text(response: Any) -> str:
    """Text of a generate_content response, "" when it carries none."""
    try:
        text = response.text
    except (AttributeError, ValueError):
        # Blocked or empty candidates raise ValueError on .text
        return ""
    return text if isinstance(text, str) else ""


def normalize_transcript(messages: Any) -> list[dict[str, str]]:
    """Validate a role/content transcript, raising ServiceError(400) if malformed."""
    if not isinstance(messages, list) or not messages:
        raise ServiceError("Body must include { messages: Array }", status=400)
    turns = []
    for m in messages:
        if not isinstance(m, dict) or m.get("role") not in _ROLES:
            raise ServiceError("Each message needs a role of 'user' or 'assistant'", status=400)
        content = m.get("content")
        turns.append({"role": m["role"], "content": "" if content is None else str(content)})
    return turns


class ChatProxyClient:
    """Sends transcripts and images to Gemini and returns reply text."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        model_factory: Callable[[str, str], Any] | None = None,
    ) -> None:
        self.api_key = api_key or ""
        self.model_name = model or DEFAULT_MODEL
        self.history_limit = max(1, int(history_limit))
        self._model_factory = model_factory or _gemini_factory
        self._model = None

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _get_model(self):
        if not self.api_key:
            raise ServiceError("GEMINI_API_KEY is not configured", status=503)
        if self._model is None:
            try:
                self._model = self._model_factory(self.api_key, self.model_name)
            except ImportError as e:
                raise ServiceError(f"Gemini SDK is not installed: {e}", status=503) from e
        return self._model

    def _generate(self, contents: list[Any]) -> str:
        model = self._get_model()
        try:
            response = resilient_call(PROVIDER, lambda: model.generate_content(contents))
        except CircuitOpenError as e:
            raise ServiceError("The study coach is temporarily unavailable", status=503) from e
        except TransientLLMError as e:
            logger.error("Gemini call failed after retries: %s", e)
            raise ServiceError(str(e) or "Service error") from e
        except Exception as e:
            logger.exception("Gemini call failed")
            raise ServiceError(str(e) or "Service error") from e
        text = _reply_text(response)
        if not text.strip():
            logger.info("Empty reply from %s, using fallback", self.model_name)
            return FALLBACK_REPLY
        return text

    def send_text(self, transcript: Any) -> str:
        """Reply to the most recent turns of a role/content transcript."""
        turns = normalize_transcript(transcript)[-self.history_limit:]
        chat_text = "\n".join(f"{t['role']}: {t['content']}" for t in turns)
        return self._generate([CHAT_PREAMBLE, "\n\n", chat_text])

    def send_image(self, image_bytes: bytes, mime_type: str, prompt: str) -> str:
        """Answer *prompt* about one image."""
        if not image_bytes:
            raise ServiceError("image file is required", status=400)
        prompt = (prompt or "").strip()
        if not prompt:
            raise ServiceError("prompt is required", status=400)
        return self._generate([
            IMAGE_PREAMBLE,
            prompt,
            {"mime_type": mime_type or "image/png", "data": image_bytes},
        ])
