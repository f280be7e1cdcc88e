"""Provider abstractions for the narrative text backend."""

from __future__ import annotations

import http.client
import json
import logging
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Protocol

logger = logging.getLogger(__name__)

DEFAULT_OPTIONS: Dict[str, Any] = {
    "temperature": 0.3,
    "top_p": 0.9,
    "num_predict": 250,
    "num_ctx": 2048,
    "repeat_penalty": 1.1,
}


class GeneratorUnavailable(RuntimeError):
    """Raised when the text backend cannot produce a usable reply."""


@dataclass
class PromptContext:
    """Metadata about the prompt being generated."""

    role: str
    task_id: str | None = None


@dataclass
class Availability:
    available: bool
    models: List[str] = field(default_factory=list)
    error: str | None = None


class LLMProvider(Protocol):
    """Interface for language model providers."""

    name: str

    def generate(self, prompt: str, context: PromptContext) -> str:  # pragma: no cover - interface
        """Return a response for the given prompt."""

    def check_availability(self) -> Availability:  # pragma: no cover - interface
        """Probe the backend without generating anything useful."""


class StaticResponseProvider:
    """Provider that replays a finite list of responses (useful for tests)."""

    name = "static"

    def __init__(self, responses: Iterable[str]):
        self._responses = iter(responses)
        self.prompts: List[str] = []

    def generate(self, prompt: str, context: PromptContext) -> str:
        self.prompts.append(prompt)
        try:
            return next(self._responses)
        except StopIteration as exc:
            raise GeneratorUnavailable("StaticResponseProvider exhausted") from exc

    def check_availability(self) -> Availability:
        return Availability(available=True, models=[self.name])


class OfflineProvider:
    """Provider for deployments without a text backend; every call falls back."""

    name = "offline"

    def generate(self, prompt: str, context: PromptContext) -> str:
        raise GeneratorUnavailable("No narrative backend configured")

    def check_availability(self) -> Availability:
        return Availability(available=False, error="No narrative backend configured")


class OllamaProvider:
    """Calls a locally hosted Ollama model via its HTTP API."""

    def __init__(
        self,
        model: str = "llama3.2",
        *,
        host: str = "http://localhost:11434",
        options: Dict[str, Any] | None = None,
        timeout: float = 90.0,
        probe_timeout: float = 5.0,
    ) -> None:
        self.model = model
        self.host = host.rstrip("/")
        self.options = dict(DEFAULT_OPTIONS)
        self.options.update(options or {})
        self.timeout = timeout
        self.probe_timeout = probe_timeout

    @property
    def name(self) -> str:
        return f"ollama:{self.model}"

    def generate(self, prompt: str, context: PromptContext) -> str:
        payload: Dict[str, Any] = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": self.options,
        }
        logger.debug("Generating for %s (%d prompt chars)", context.role, len(prompt))
        data = self._request("/api/generate", payload, timeout=self.timeout)
        if "error" in data:
            raise GeneratorUnavailable(f"OllamaProvider error: {data['error']}")
        result = data.get("response")
        if not isinstance(result, str):
            raise GeneratorUnavailable(f"OllamaProvider returned unexpected payload: {data}")
        return result.strip()

    def list_models(self) -> List[str]:
        data = self._request("/api/tags", None, timeout=self.probe_timeout)
        return [str(item.get("name")) for item in data.get("models") or [] if isinstance(item, dict)]

    def check_availability(self) -> Availability:
        try:
            models = self.list_models()
        except GeneratorUnavailable as exc:
            return Availability(available=False, error=str(exc))
        return Availability(available=True, models=models)

    def _request(self, path: str, payload: Dict[str, Any] | None, *, timeout: float) -> Dict[str, Any]:
        if payload is None:
            request = urllib.request.Request(url=f"{self.host}{path}", method="GET")
        else:
            request = urllib.request.Request(
                url=f"{self.host}{path}",
                data=json.dumps(payload).encode("utf-8"),
                headers={"Content-Type": "application/json"},
                method="POST",
            )
        try:
            with urllib.request.urlopen(request, timeout=timeout) as response:
                raw = response.read()
        except (urllib.error.URLError, http.client.HTTPException, OSError) as exc:
            raise GeneratorUnavailable(f"OllamaProvider failed to reach {self.host}: {exc}") from exc
        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise GeneratorUnavailable(f"OllamaProvider returned malformed JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise GeneratorUnavailable(f"OllamaProvider returned unexpected payload: {data!r}")
        return data
