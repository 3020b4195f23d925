from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod

from openai import AzureOpenAI, OpenAI
from tenacity import Retrying, stop_after_attempt, stop_after_delay, wait_exponential

from lexium import config

logger = logging.getLogger(__name__)


class LLMCircuitOpenError(RuntimeError):
    pass


class LLMUnavailableError(RuntimeError):
    """Raised when no text-generation provider is configured."""


class LLMClient(ABC):
    @abstractmethod
    def generate_text(self, system_prompt: str, user_prompt: str, timeout: int = 30) -> str:
        raise NotImplementedError


class _BaseOpenAIAdapter(LLMClient):
    """Shared chat call, retries and circuit breaker. Subclasses only build `self.client`."""

    client: OpenAI | AzureOpenAI

    def __init__(self, model: str, failure_threshold: int = 5, cooldown_seconds: int = 60, max_attempts: int = 3) -> None:
        self.model = model
        self.failure_threshold = failure_threshold
        self.cooldown_seconds = cooldown_seconds
        self.max_attempts = max_attempts
        self.wait = wait_exponential(multiplier=1, min=1, max=8)
        self._failure_count = 0
        self._open_until_epoch = 0.0

    def _check_circuit(self) -> None:
        now = time.time()
        if now < self._open_until_epoch:
            raise LLMCircuitOpenError("LLM circuit breaker is open. Try again later.")

    def _mark_success(self) -> None:
        self._failure_count = 0
        self._open_until_epoch = 0.0

    def _mark_failure(self) -> None:
        self._failure_count += 1
        if self._failure_count >= self.failure_threshold:
            self._open_until_epoch = time.time() + self.cooldown_seconds
            logger.warning("LLM circuit opened for %ss after %s failures.", self.cooldown_seconds, self._failure_count)

    def _chat_completion(self, system_prompt: str, user_prompt: str, timeout: int) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            temperature=0.2,
            response_format={"type": "json_object"},
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            timeout=timeout,
        )
        content = response.choices[0].message.content
        if not content:
            raise RuntimeError("LLM returned empty content.")
        return content

    def generate_text(self, system_prompt: str, user_prompt: str, timeout: int = 30) -> str:
        """Call the model with retries; all attempts together stay within `timeout` seconds."""
        self._check_circuit()
        started = time.monotonic()
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts) | stop_after_delay(timeout),
            wait=self.wait,
            reraise=True,
        )
        try:
            for attempt in retrying:
                with attempt:
                    remaining = max(1, int(timeout - (time.monotonic() - started)))
                    content = self._chat_completion(system_prompt, user_prompt, remaining)
        except Exception:
            self._mark_failure()
            raise
        self._mark_success()
        return content


class AzureOpenAIClient(_BaseOpenAIAdapter):
    def __init__(self, endpoint: str, api_key: str, deployment: str) -> None:
        super().__init__(model=deployment)
        self.client = AzureOpenAI(api_key=api_key, azure_endpoint=endpoint, api_version="2024-02-15-preview")


class OpenAIClient(_BaseOpenAIAdapter):
    def __init__(self, api_key: str, model: str) -> None:
        super().__init__(model=model)
        self.client = OpenAI(api_key=api_key)


def create_llm_client_from_env() -> LLMClient:
    provider = config.AI_PROVIDER
    azure_ready = bool(config.AZURE_OPENAI_ENDPOINT and config.AZURE_OPENAI_API_KEY and config.AZURE_OPENAI_DEPLOYMENT)

    def _azure() -> LLMClient:
        return AzureOpenAIClient(
            endpoint=config.AZURE_OPENAI_ENDPOINT,
            api_key=config.AZURE_OPENAI_API_KEY,
            deployment=config.AZURE_OPENAI_DEPLOYMENT,
        )

    def _openai() -> LLMClient:
        return OpenAIClient(api_key=config.OPENAI_API_KEY, model=config.OPENAI_MODEL)

    if provider == "azure":
        if azure_ready:
            return _azure()
        if config.OPENAI_API_KEY:
            return _openai()
        raise LLMUnavailableError("Azure configuration missing and OpenAI fallback is not configured.")

    if provider == "openai":
        if config.OPENAI_API_KEY:
            return _openai()
        if azure_ready:
            return _azure()
        raise LLMUnavailableError("OpenAI configuration missing and Azure fallback is not configured.")

    raise LLMUnavailableError("Unsupported AI_PROVIDER. Use 'azure' or 'openai'.")
