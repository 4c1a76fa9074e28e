from openai import OpenAI
from openai import APIConnectionError, APITimeoutError, RateLimitError
from studentcare.config import settings
from typing import Any, Dict, List, Optional, Union
import json
import logging
import re
import time

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?", re.IGNORECASE)


class LLMError(Exception):
    """Base error for the generative model gateway"""


class LLMNotConfiguredError(LLMError):
    """Raised when no API key is available"""


class LLMResponseError(LLMError):
    """Raised when the model reply cannot be used (empty or not JSON)"""


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences (```json ... ```) the model tends to wrap JSON in"""
    return _FENCE_RE.sub("", text or "").strip()


class OpenAIService:
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        vision_model: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.api_key = settings.OPENAI_API_KEY if api_key is None else api_key
        self.model = model or settings.OPENAI_MODEL
        self.vision_model = vision_model or settings.OPENAI_VISION_MODEL
        self.timeout = timeout or settings.OPENAI_TIMEOUT
        self._client: Optional[OpenAI] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @property
    def client(self) -> OpenAI:
        # Created lazily so the app boots (and falls back) without a key
        if not self.is_configured:
            raise LLMNotConfiguredError("OPENAI_API_KEY is not configured")
        if self._client is None:
            self._client = OpenAI(
                api_key=self.api_key,
                timeout=self.timeout,
                max_retries=0  # Retries handled in chat_completion
            )
        return self._client

    def chat_completion(
        self,
        messages: List[Dict[str, Any]],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        max_retries: int = 3
    ):
        """Generate chat completion with retry logic"""
        client = self.client
        kwargs: Dict[str, Any] = {
            "model": model or self.model,
            "messages": messages,
            "temperature": temperature,
        }
        if max_tokens:
            kwargs["max_tokens"] = max_tokens

        for attempt in range(max_retries):
            try:
                return client.chat.completions.create(**kwargs)
            except (APIConnectionError, APITimeoutError):
                if attempt < max_retries - 1:
                    wait_time = (2 ** attempt) * 2  # Exponential backoff: 2s, 4s, 8s
                    logger.warning(f"OpenAI connection error (attempt {attempt + 1}/{max_retries}). Retrying in {wait_time}s...")
                    time.sleep(wait_time)
                else:
                    logger.error(f"OpenAI connection failed after {max_retries} attempts")
                    raise
            except RateLimitError:
                if attempt < max_retries - 1:
                    wait_time = 60  # Wait 60 seconds for rate limit
                    logger.warning(f"OpenAI rate limit (attempt {attempt + 1}/{max_retries}). Waiting {wait_time}s...")
                    time.sleep(wait_time)
                else:
                    logger.error(f"OpenAI rate limit exceeded after {max_retries} attempts")
                    raise

    def complete_text(
        self,
        prompt: Union[str, List[Dict[str, Any]]],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None
    ) -> str:
        """Send a prompt (or a prepared message list) and return the reply text"""
        if isinstance(prompt, str):
            messages = [{"role": "user", "content": prompt}]
        else:
            messages = prompt

        response = self.chat_completion(
            messages,
            model=model,
            temperature=temperature,
            max_tokens=max_tokens
        )
        content = response.choices[0].message.content
        if not content:
            raise LLMResponseError("Model returned an empty response")
        return content.strip()

    def complete_json(
        self,
        prompt: Union[str, List[Dict[str, Any]]],
        model: Optional[str] = None,
        temperature: float = 0.3,
        max_tokens: Optional[int] = None
    ) -> Any:
        """Like complete_text, but strip markdown fencing and parse the reply as JSON"""
        text = strip_code_fences(self.complete_text(prompt, model=model, temperature=temperature, max_tokens=max_tokens))
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise LLMResponseError(f"Model returned malformed JSON: {e}") from e
