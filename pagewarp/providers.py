"""Translation capability adapters."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Mapping, Optional

from .errors import (
    TranslationProviderConfigurationError,
    TranslationServiceFailure,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


class Translator(ABC):
    """Abstract adapter for the external translation capability."""

    @abstractmethod
    async def translate_batch(
        self,
        id_to_text: Mapping[str, str],
        source_locale: Optional[str],
        target_locale: str,
        on_progress: ProgressCallback,
    ) -> Dict[str, str]:
        """Translate the mapping and return translated text keyed by the same ids.

        ``on_progress`` may be called any number of times with a batch-local
        percentage between 0 and 100.
        """


class EchoTranslator(Translator):
    """A translator that returns the original text (useful for testing)."""

    async def translate_batch(
        self,
        id_to_text: Mapping[str, str],
        source_locale: Optional[str],
        target_locale: str,
        on_progress: ProgressCallback,
    ) -> Dict[str, str]:
        on_progress(0)
        result = dict(id_to_text)
        on_progress(100)
        return result


class OpenAITranslator(Translator):
    """Translator that uses OpenAI chat models through the async client."""

    DEFAULT_MODEL = "gpt-4o-mini"

    SYSTEM_PROMPT = (
        "You are a professional translator for web pages. Return only JSON. "
        "Translate every value of the provided object into the requested language. "
        "Each value is one visible text fragment of the page; fragments may be short "
        "labels, menu entries or partial sentences. Preserve numbers, placeholders, "
        "and punctuation. Respond strictly with an object shaped as "
        '{"translations": {"<id>": "<translated text>"}} using exactly the given ids. '
        "Do not add commentary. Do not wrap the JSON in markdown code fences."
    )

    def __init__(
        self,
        *,
        provider_kind: str = "openai",
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        azure_endpoint: Optional[str] = None,
        azure_api_version: Optional[str] = None,
        azure_deployment: Optional[str] = None,
        debug: bool = False,
        client: Any = None,
    ) -> None:
        self.debug = debug
        self.provider_kind = provider_kind
        if client is not None:
            self._client = client
            self._model = model or azure_deployment or self.DEFAULT_MODEL
        elif provider_kind == "azure_openai":
            self._client = self._build_azure_client(
                api_key, azure_endpoint, azure_api_version
            )
            self._model = model or azure_deployment or self.DEFAULT_MODEL
        else:
            self._client = self._build_openai_client(api_key)
            self._model = model or self.DEFAULT_MODEL

    @staticmethod
    def _build_openai_client(api_key: Optional[str]) -> Any:
        if not api_key:
            raise TranslationProviderConfigurationError(
                "OpenAI configuration missing. Set OPENAI_API_KEY or choose a "
                "different provider."
            )
        from openai import AsyncOpenAI

        return AsyncOpenAI(api_key=api_key)

    @staticmethod
    def _build_azure_client(
        api_key: Optional[str],
        endpoint: Optional[str],
        api_version: Optional[str],
    ) -> Any:
        missing = [
            name
            for name, value in {
                "AZURE_OPENAI_API_KEY": api_key,
                "AZURE_OPENAI_ENDPOINT": endpoint,
                "AZURE_OPENAI_API_VERSION": api_version,
            }.items()
            if not value
        ]
        if missing:
            raise TranslationProviderConfigurationError(
                "Azure OpenAI configuration incomplete. Please set: "
                + ", ".join(missing)
                + "."
            )
        from openai import AsyncAzureOpenAI

        return AsyncAzureOpenAI(
            api_key=api_key,
            api_version=api_version,
            azure_endpoint=endpoint,
        )

    async def translate_batch(
        self,
        id_to_text: Mapping[str, str],
        source_locale: Optional[str],
        target_locale: str,
        on_progress: ProgressCallback,
    ) -> Dict[str, str]:
        if not id_to_text:
            return {}

        on_progress(0)
        user_payload = {
            "target_language": target_locale,
            "source_language": source_locale,
            "segments": dict(id_to_text),
        }
        self._log_debug("provider.request.payload", user_payload)

        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                temperature=0,
                messages=[
                    {"role": "system", "content": self.SYSTEM_PROMPT},
                    {
                        "role": "user",
                        "content": json.dumps(user_payload, ensure_ascii=False),
                    },
                ],
            )
        except Exception as exc:
            raise TranslationServiceFailure(
                f"Translation service temporarily unavailable: {exc}"
            ) from exc

        content = self._message_content(response)
        self._log_debug("provider.response.content", content)
        mapping = self._parse_translations(content)
        on_progress(100)
        return mapping

    def _log_debug(self, label: str, payload: Any) -> None:
        """Emit structured debug information when enabled."""

        if not self.debug:
            return
        if isinstance(payload, (dict, list)):
            message = json.dumps(payload, ensure_ascii=False, indent=2)
        else:
            message = str(payload)
        logger.debug("[provider-debug] %s:\n%s", label, message)

    @staticmethod
    def _message_content(response: Any) -> str:
        for choice in getattr(response, "choices", None) or []:
            message = getattr(choice, "message", None)
            content = getattr(message, "content", None)
            if content:
                return str(content)
        raise TranslationServiceFailure(
            "Translation provider response empty or unrecognised."
        )

    @staticmethod
    def _strip_code_fence(text: str) -> str:
        """Remove leading/trailing markdown code fences if present."""

        stripped = text.strip()
        if not stripped.startswith("```"):
            return stripped
        first_newline = stripped.find("\n")
        if first_newline == -1:
            return stripped
        body = stripped[first_newline + 1 :]
        closing_index = body.rfind("```")
        if closing_index != -1:
            body = body[:closing_index]
        return body.strip()

    def _parse_translations(self, content: str) -> Dict[str, str]:
        try:
            payload = json.loads(self._strip_code_fence(content))
        except json.JSONDecodeError as exc:
            raise TranslationServiceFailure(
                f"Translation provider returned invalid JSON: {exc}"
            ) from exc

        if isinstance(payload, dict) and isinstance(payload.get("translations"), dict):
            payload = payload["translations"]
        if not isinstance(payload, dict):
            raise TranslationServiceFailure(
                "Translation provider response malformed: could not find translations."
            )

        mapping: Dict[str, str] = {}
        for unit_id, translated in payload.items():
            if not isinstance(translated, str):
                raise TranslationServiceFailure(
                    "Translation provider response malformed: non-text translation "
                    f"for '{unit_id}'."
                )
            mapping[str(unit_id)] = translated
        return mapping


def build_translator(
    name: Optional[str],
    *,
    settings: Any = None,
    model: Optional[str] = None,
    debug: bool = False,
) -> Translator:
    """Factory to create translators by name; ``settings`` supplies credentials."""

    normalized = (name or getattr(settings, "LLM_PROVIDER", None) or "openai")
    normalized = normalized.strip().lower().replace("-", "_")
    if normalized in {"echo", "noop", "mock"}:
        return EchoTranslator()
    if normalized in {"openai", "gpt", "default", "azure_openai"}:
        if settings is None:
            raise TranslationProviderConfigurationError(
                "OpenAI translators need configuration settings."
            )
        if normalized != "azure_openai" and settings.LLM_PROVIDER == "azure_openai":
            normalized = "azure_openai"
        if normalized == "azure_openai":
            return OpenAITranslator(
                provider_kind="azure_openai",
                api_key=settings.AZURE_OPENAI_API_KEY,
                model=model,
                azure_endpoint=settings.AZURE_OPENAI_ENDPOINT,
                azure_api_version=settings.AZURE_OPENAI_API_VERSION,
                azure_deployment=settings.AZURE_OPENAI_DEPLOYMENT_NAME,
                debug=debug,
            )
        return OpenAITranslator(
            api_key=settings.OPENAI_API_KEY,
            model=model or settings.OPENAI_MODEL,
            debug=debug,
        )
    raise TranslationProviderConfigurationError(
        f"Unknown translation provider '{name}'."
    )
