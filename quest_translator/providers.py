"""Translation back-ends: Google, DeepL, ChatGPT and Claude REST wrappers.

Every adapter takes an ordered {key: text} batch and returns the same keys
translated.  Concurrency, rate limiting and retries live in the engine; the
adapters only describe their limits through ``ProviderConfig`` and raise
``ThrottledError`` when the service asks us to slow down.
"""

import dataclasses
import json
import logging
import re
from dataclasses import dataclass
from typing import Optional

import requests

log = logging.getLogger(__name__)


LANGUAGE_NAMES = {
    "en": "English", "ja": "Japanese", "zh": "Chinese (Simplified)",
    "zh-tw": "Chinese (Traditional)", "ko": "Korean", "de": "German",
    "fr": "French", "es": "Spanish", "pt": "Portuguese", "ru": "Russian",
    "it": "Italian", "pl": "Polish",
}


class ProviderError(ConnectionError):
    """A translation request failed and should not be retried."""


class ThrottledError(ProviderError):
    """The provider rejected the request for rate reasons (HTTP 429)."""

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class ProviderResponseError(ProviderError):
    """The provider answered, but not with the batch we asked for."""


@dataclass(frozen=True)
class ProviderConfig:
    """Per-provider limits consumed by the batch engine."""
    name: str
    batch_size: int
    max_concurrency: int = 1
    max_cost_per_minute: Optional[int] = None   # None = no sliding-window cap
    max_attempts: int = 3
    retry_base_wait: float = 5.0                # seconds, multiplied by attempt


@dataclass
class BatchTranslation:
    texts: dict
    cost: Optional[int] = None   # actual usage when the provider reports it


class ProviderAdapter:
    """Base class: HTTP plumbing and the batch contract."""

    display_name = "Provider"
    default_config = ProviderConfig(name="base", batch_size=20)
    throttle_status = frozenset({429})

    def __init__(self, api_key: str, source_lang: str = "en", target_lang: str = "ja",
                 config: Optional[ProviderConfig] = None,
                 session: Optional[requests.Session] = None, timeout: int = 120):
        if not api_key or not api_key.strip():
            raise ValueError(f"{self.display_name}: API key is not set")
        self.api_key = api_key.strip()
        self.source_lang = source_lang
        self.target_lang = target_lang
        self.config = config or self.default_config
        self.session = session or requests.Session()
        self.timeout = timeout

    def translate_batch(self, batch: dict) -> BatchTranslation:
        raise NotImplementedError

    def estimate_cost(self, batch: dict) -> int:
        """Rough cost in the unit the provider's cap is measured in."""
        return sum(len(v) for v in batch.values())

    def _post(self, url: str, **kwargs) -> dict:
        """POST and decode JSON, mapping failures onto ProviderError types."""
        try:
            r = self.session.post(url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise ProviderError(f"{self.display_name} request failed: {e}") from e

        if r.status_code in self.throttle_status:
            retry_after = None
            header = r.headers.get("retry-after")
            if header:
                try:
                    retry_after = float(header)
                except ValueError:
                    pass  # HTTP-date form; fall back to our own backoff
            raise ThrottledError(
                f"{self.display_name} throttled (HTTP {r.status_code})", retry_after)
        if r.status_code != 200:
            raise ProviderError(
                f"{self.display_name} API Error: {r.status_code} - {r.text[:500]}")
        try:
            return r.json()
        except ValueError as e:
            raise ProviderResponseError(f"{self.display_name} returned invalid JSON") from e

    def _check_keys(self, batch: dict, result: dict) -> dict:
        """Enforce the contract: exactly the input keys, in input order."""
        missing = [k for k in batch if k not in result]
        extra = [k for k in result if k not in batch]
        if missing or extra:
            raise ProviderResponseError(
                f"{self.display_name} returned mismatched keys "
                f"(missing {missing[:5]}, unexpected {extra[:5]})")
        return {k: result[k] for k in batch}

    def _zip_values(self, batch: dict, values: list) -> dict:
        if len(values) != len(batch):
            raise ProviderResponseError(
                f"{self.display_name} returned {len(values)} translations for {len(batch)} texts")
        return dict(zip(batch.keys(), values))


class GoogleTranslateAdapter(ProviderAdapter):
    """Google Cloud Translation v2 (basic)."""

    display_name = "Google Translation API"
    default_config = ProviderConfig(name="google", batch_size=128, max_concurrency=1)
    URL = "https://translation.googleapis.com/language/translate/v2"

    def translate_batch(self, batch: dict) -> BatchTranslation:
        data = self._post(
            self.URL,
            params={"key": self.api_key},
            json={
                "q": list(batch.values()),
                "source": self.source_lang,
                "target": self.target_lang,
                "format": "text",
            },
        )
        try:
            values = [t["translatedText"] for t in data["data"]["translations"]]
        except (KeyError, TypeError) as e:
            raise ProviderResponseError(f"Unexpected Google response: {str(data)[:200]}") from e
        return BatchTranslation(self._zip_values(batch, values))


class DeepLAdapter(ProviderAdapter):
    """DeepL REST API; ``:fx`` keys go to the free endpoint."""

    display_name = "DeepL API"
    default_config = ProviderConfig(name="deepl", batch_size=50, max_concurrency=1)

    @property
    def url(self) -> str:
        host = "api-free.deepl.com" if self.api_key.endswith(":fx") else "api.deepl.com"
        return f"https://{host}/v2/translate"

    def translate_batch(self, batch: dict) -> BatchTranslation:
        data = self._post(
            self.url,
            headers={"Authorization": f"DeepL-Auth-Key {self.api_key}"},
            data={
                "text": list(batch.values()),
                "source_lang": self.source_lang.upper(),
                "target_lang": self.target_lang.upper(),
                "show_billed_characters": "1",
            },
        )
        try:
            translations = data["translations"]
            values = [t["text"] for t in translations]
        except (KeyError, TypeError) as e:
            raise ProviderResponseError(f"Unexpected DeepL response: {str(data)[:200]}") from e
        billed = [t.get("billed_characters") for t in translations]
        cost = sum(billed) if billed and all(isinstance(b, int) for b in billed) else None
        return BatchTranslation(self._zip_values(batch, values), cost)


_FENCE_RE = re.compile(r'```(?:json)?\s*')
_JSON_OBJECT_RE = re.compile(r'\{.*\}', re.DOTALL)


def parse_json_object(raw: str) -> dict:
    """Pull a JSON object out of an LLM reply (bare, fenced, or embedded)."""
    if not isinstance(raw, str):
        raise ProviderResponseError(f"LLM response has no text content: {raw!r}")
    candidates = [raw, _FENCE_RE.sub("", raw).strip()]
    m = _JSON_OBJECT_RE.search(raw)
    if m:
        candidates.append(m.group(0))
    for candidate in candidates:
        try:
            result = json.loads(candidate)
        except (json.JSONDecodeError, TypeError):
            continue
        if isinstance(result, dict):
            return result
    raise ProviderResponseError(f"Could not parse JSON from LLM response: {raw[:200]}")


class LLMAdapter(ProviderAdapter):
    """Shared prompt/response handling for chat-model providers.

    Cost is measured in tokens; the estimate assumes ~3 characters per token
    and an answer about as long as the request.
    """

    model = ""

    def system_prompt(self) -> str:
        src = LANGUAGE_NAMES.get(self.source_lang, self.source_lang)
        tgt = LANGUAGE_NAMES.get(self.target_lang, self.target_lang)
        return (
            f"You translate Minecraft quest text from {src} to {tgt}.\n"
            "You receive a JSON object. Translate every value and keep every key unchanged.\n"
            "Keep line breaks (\\n) exactly where they are; each line is a separate line in game.\n"
            "Keep formatting codes such as &a, §l, {@pagebreak} and {placeholders} as-is.\n"
            "Respond with ONLY the JSON object, no explanations."
        )

    def payload(self, batch: dict) -> str:
        return json.dumps(batch, ensure_ascii=False, indent=2)

    def estimate_cost(self, batch: dict) -> int:
        chars = len(self.payload(batch)) + len(self.system_prompt())
        return chars // 3 + len(self.payload(batch)) // 3

    def _result(self, batch: dict, raw: str, cost: Optional[int]) -> BatchTranslation:
        parsed = parse_json_object(raw)
        result = {k: v if isinstance(v, str) else str(v) for k, v in parsed.items()}
        return BatchTranslation(self._check_keys(batch, result), cost)


class OpenAIAdapter(LLMAdapter):
    """OpenAI chat completions (ChatGPT)."""

    display_name = "ChatGPT API"
    default_config = ProviderConfig(
        name="chatgpt", batch_size=20, max_concurrency=5,
        max_cost_per_minute=200_000, max_attempts=5, retry_base_wait=5.0)
    URL = "https://api.openai.com/v1/chat/completions"
    model = "gpt-4o-mini"

    def translate_batch(self, batch: dict) -> BatchTranslation:
        data = self._post(
            self.URL,
            headers={"Authorization": f"Bearer {self.api_key}"},
            json={
                "model": self.model,
                "temperature": 0.3,
                "response_format": {"type": "json_object"},
                "messages": [
                    {"role": "system", "content": self.system_prompt()},
                    {"role": "user", "content": self.payload(batch)},
                ],
            },
        )
        try:
            raw = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderResponseError(f"Unexpected ChatGPT response: {str(data)[:200]}") from e
        if not isinstance(raw, str):
            # content is null on refusals
            raise ProviderResponseError(f"ChatGPT returned no content: {str(data)[:200]}")
        usage = data.get("usage") or {}
        return self._result(batch, raw, usage.get("total_tokens"))


class ClaudeAdapter(LLMAdapter):
    """Anthropic messages API.  529 (overloaded) is treated like 429."""

    display_name = "Claude API"
    default_config = ProviderConfig(
        name="claude", batch_size=20, max_concurrency=3,
        max_cost_per_minute=30_000, max_attempts=5, retry_base_wait=10.0)
    throttle_status = frozenset({429, 529})
    URL = "https://api.anthropic.com/v1/messages"
    API_VERSION = "2023-06-01"
    model = "claude-sonnet-4-20250514"

    def translate_batch(self, batch: dict) -> BatchTranslation:
        data = self._post(
            self.URL,
            headers={
                "x-api-key": self.api_key,
                "anthropic-version": self.API_VERSION,
            },
            json={
                "model": self.model,
                "max_tokens": 4096,
                "system": self.system_prompt(),
                "messages": [{"role": "user", "content": self.payload(batch)}],
            },
        )
        try:
            raw = "".join(b.get("text", "") for b in data["content"] if b.get("type") == "text")
        except (KeyError, TypeError, AttributeError) as e:
            raise ProviderResponseError(f"Unexpected Claude response: {str(data)[:200]}") from e
        usage = data.get("usage") or {}
        cost = None
        if "input_tokens" in usage or "output_tokens" in usage:
            cost = usage.get("input_tokens", 0) + usage.get("output_tokens", 0)
        return self._result(batch, raw, cost)


PROVIDERS = {
    "google": GoogleTranslateAdapter,
    "deepl": DeepLAdapter,
    "chatgpt": OpenAIAdapter,
    "claude": ClaudeAdapter,
}


def create_provider(name: str, api_key: str, source_lang: str = "en",
                    target_lang: str = "ja", session=None, **overrides) -> ProviderAdapter:
    """Build an adapter by registry name; *overrides* replace config fields."""
    try:
        cls = PROVIDERS[name.lower()]
    except KeyError:
        raise ValueError(f"Unknown provider '{name}'. Choose from: {', '.join(PROVIDERS)}") from None
    config = dataclasses.replace(cls.default_config, **overrides)
    log.debug("Provider %s: %s", name, config)
    return cls(api_key, source_lang=source_lang, target_lang=target_lang,
               config=config, session=session)
