"""Configuration helpers for the taskpilot service."""

from __future__ import annotations

import importlib
import os
import pathlib
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, MutableMapping, Optional

import yaml

DEFAULT_DATA_PATH = pathlib.Path(__file__).parent / "data" / "company_data.json"
DEFAULT_PROVIDER = "taskpilot.llm.provider:OllamaProvider"


class ConfigError(RuntimeError):
    """The YAML file or one of its sections cannot be used."""


@dataclass
class GeneratorSpec:
    """Narrative generator backend configuration."""

    provider: str = DEFAULT_PROVIDER
    params: Dict[str, Any] = field(default_factory=dict)
    context_budget: int = 2000

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "GeneratorSpec":
        if not data:
            return cls()
        budget = int(data.get("context_budget", 2000))
        if budget <= 0:
            raise ConfigError("generator.context_budget must be positive")
        return cls(
            provider=str(data.get("provider", DEFAULT_PROVIDER)),
            params=dict(data.get("params", {})),
            context_budget=budget,
        )


@dataclass
class ProgressSpec:
    """Timing of the per-agent progress simulation."""

    step_delay: float = 0.5

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "ProgressSpec":
        if not data:
            return cls()
        delay = float(data.get("step_delay", 0.5))
        if delay < 0:
            raise ConfigError("progress.step_delay cannot be negative")
        return cls(step_delay=delay)


@dataclass
class StorageSpec:
    """Conversation store settings. Without a db_url chats stay in memory."""

    db_url: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "StorageSpec":
        if not data:
            return cls()
        return cls(db_url=data.get("db_url") or None)


@dataclass
class ServerSpec:
    host: str = "127.0.0.1"
    port: int = 5001

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "ServerSpec":
        if not data:
            return cls()
        return cls(host=str(data.get("host", "127.0.0.1")), port=int(data.get("port", 5001)))


@dataclass
class AuthSpec:
    """Maps SHA-256 token hashes to user ids."""

    tokens: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "AuthSpec":
        if not data:
            return cls()
        tokens = data.get("tokens") or {}
        if not isinstance(tokens, Mapping):
            raise ConfigError("auth.tokens must map token hashes to user ids")
        return cls(tokens={str(key): str(value) for key, value in tokens.items()})


@dataclass
class DocumentsSpec:
    """Knowledge base chunking and ranking parameters."""

    chunk_size: int = 500
    overlap: int = 50
    top_k: int = 5

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "DocumentsSpec":
        if not data:
            return cls()
        spec = cls(
            chunk_size=int(data.get("chunk_size", 500)),
            overlap=int(data.get("overlap", 50)),
            top_k=int(data.get("top_k", 5)),
        )
        if spec.overlap >= spec.chunk_size:
            raise ConfigError("documents.overlap must be smaller than documents.chunk_size")
        return spec


@dataclass
class AppConfig:
    """Top-level service settings, one attribute per YAML section."""

    name: str = "taskpilot"
    data_path: pathlib.Path = DEFAULT_DATA_PATH
    log_level: str = "INFO"
    generator: GeneratorSpec = field(default_factory=GeneratorSpec)
    progress: ProgressSpec = field(default_factory=ProgressSpec)
    storage: StorageSpec = field(default_factory=StorageSpec)
    server: ServerSpec = field(default_factory=ServerSpec)
    auth: AuthSpec = field(default_factory=AuthSpec)
    documents: DocumentsSpec = field(default_factory=DocumentsSpec)
    file_path: Optional[pathlib.Path] = None

    @classmethod
    def from_file(cls, path: str | pathlib.Path) -> "AppConfig":
        p = pathlib.Path(path)
        try:
            text = p.read_text()
        except OSError as exc:
            raise ConfigError(f"Cannot read config file {p}: {exc}") from exc
        return cls.from_yaml(text, p)

    @classmethod
    def from_yaml(cls, content: str, path: Optional[pathlib.Path] = None) -> "AppConfig":
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {path or 'config'}: {exc}") from exc
        if not isinstance(data, MutableMapping):
            raise ConfigError("Top level of a taskpilot config must be a YAML mapping")
        try:
            return cls.from_mapping(data, path)
        except (AttributeError, TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid value in {path or 'config'}: {exc}") from exc

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], path: Optional[pathlib.Path] = None) -> "AppConfig":
        data_path = data.get("data_path")
        if data_path:
            resolved = pathlib.Path(data_path)
            # relative data paths are anchored at the config file
            if not resolved.is_absolute() and path is not None:
                resolved = path.parent / resolved
        else:
            resolved = DEFAULT_DATA_PATH
        return cls(
            name=data.get("name", path.stem if path else "taskpilot"),
            data_path=resolved,
            log_level=str(data.get("log_level", "INFO")).upper(),
            generator=GeneratorSpec.from_mapping(data.get("generator")),
            progress=ProgressSpec.from_mapping(data.get("progress")),
            storage=StorageSpec.from_mapping(data.get("storage")),
            server=ServerSpec.from_mapping(data.get("server")),
            auth=AuthSpec.from_mapping(data.get("auth")),
            documents=DocumentsSpec.from_mapping(data.get("documents")),
            file_path=path,
        )

    def with_env(self, environ: Mapping[str, str] | None = None) -> "AppConfig":
        """Apply OLLAMA_URL, OLLAMA_MODEL, TASKPILOT_DB_URL and TASKPILOT_LOG_LEVEL."""

        env = os.environ if environ is None else environ
        # Ollama settings only apply to the Ollama provider
        if self.generator.provider == DEFAULT_PROVIDER:
            if env.get("OLLAMA_URL"):
                self.generator.params["host"] = env["OLLAMA_URL"]
            if env.get("OLLAMA_MODEL"):
                self.generator.params["model"] = env["OLLAMA_MODEL"]
        if env.get("TASKPILOT_DB_URL", "").strip():
            self.storage.db_url = env["TASKPILOT_DB_URL"].strip()
        if env.get("TASKPILOT_LOG_LEVEL"):
            self.log_level = env["TASKPILOT_LOG_LEVEL"].upper()
        return self


def import_string(path: str) -> Any:
    """Resolve a "package.module:Name" reference to the named object."""

    if ":" not in path:
        raise ConfigError(f"Expected 'module:Name', got '{path}'")
    module_path, attr = path.split(":", 1)
    try:
        module = importlib.import_module(module_path)
    except ImportError as exc:
        raise ConfigError(f"Module '{module_path}' could not be imported") from exc
    try:
        return getattr(module, attr)
    except AttributeError as exc:
        raise ConfigError(f"'{attr}' not found in '{module_path}'") from exc


def instantiate_from_path(path: str, *args: Any, **kwargs: Any) -> Any:
    """Build a provider (or any class) from its "module:Name" reference."""

    cls = import_string(path)
    return cls(*args, **kwargs)
