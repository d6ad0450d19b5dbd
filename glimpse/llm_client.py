from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from glimpse.errors import (
    GENERATION_ERROR_PLACEHOLDER,
    FallbackAlsoFailed,
    ProviderCallFailed,
    UnparsableResponse,
    UnsupportedProvider,
)
from glimpse.llm_parsing import extract_code
from glimpse.llm_prompts import FRAMEWORKS, build_prompt, normalize_framework

log = logging.getLogger(__name__)

GROK = "grok"
OPENAI = "openai"
GEMINI = "gemini"
PROVIDERS = (GROK, OPENAI, GEMINI)

# Groq serves an OpenAI-compatible chat completions API
GROQ_ENDPOINT = "https://api.groq.com/openai/v1/chat/completions"
GROQ_MODEL = os.getenv("GROQ_MODEL", "mixtral-8x7b-32768").strip()

OPENAI_ENDPOINT = "https://api.openai.com/v1/chat/completions"
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o").strip()

GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-1.5-pro").strip()
GEMINI_FALLBACK_MODEL = os.getenv("GEMINI_FALLBACK_MODEL", "gemini-pro").strip()
GEMINI_ENDPOINT_TEMPLATE = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

try:
    LLM_TIMEOUT_SECS = int(os.getenv("LLM_TIMEOUT_SECS", "60"))
except Exception:
    LLM_TIMEOUT_SECS = 60
try:
    GEMINI_MAX_TOKENS = int(os.getenv("GEMINI_MAX_TOKENS", "8192"))
except Exception:
    GEMINI_MAX_TOKENS = 8192

GEMINI_UNEXPECTED_FORMAT = "Error: Unexpected response format from Gemini"


@dataclass
class GeneratedArtifact:
    raw_response_text: str
    extracted_code: str
    framework: str
    provider: str


def gemini_endpoint(model: str) -> str:
    return GEMINI_ENDPOINT_TEMPLATE.format(model=model)


def status() -> Dict[str, Any]:
    return {
        "providers": list(PROVIDERS),
        "frameworks": list(FRAMEWORKS),
        "models": {
            GROK: GROQ_MODEL,
            OPENAI: OPENAI_MODEL,
            GEMINI: GEMINI_MODEL,
        },
        "fallback": {GEMINI: GEMINI_FALLBACK_MODEL},
    }


def _post_json(
    provider: str,
    url: str,
    body: Dict[str, Any],
    headers: Optional[Dict[str, str]] = None,
    params: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """POST `body` and return the decoded JSON reply or raise ProviderCallFailed."""
    try:
        resp = requests.post(url, headers=headers, params=params, json=body, timeout=LLM_TIMEOUT_SECS)
    except Exception as e:
        log.warning("%s request error: %r", provider, e)
        raise ProviderCallFailed(provider, f"{provider} request failed: {e}") from e

    if resp.status_code != 200:
        try:
            msg = resp.text[:400]
        except Exception:
            msg = str(resp.status_code)
        log.warning("%s HTTP %s: %s", provider, resp.status_code, msg)
        raise ProviderCallFailed(provider, f"{provider} HTTP {resp.status_code}: {msg}")

    try:
        data = resp.json()
    except Exception as e:
        log.warning("%s: non-JSON HTTP body", provider)
        raise ProviderCallFailed(provider, f"{provider} returned a non-JSON body") from e
    if not isinstance(data, dict):
        raise ProviderCallFailed(provider, f"{provider} returned an unexpected body")
    return data


def _chat_completion_text(data: Dict[str, Any]) -> Optional[str]:
    try:
        text = data.get("choices", [{}])[0].get("message", {}).get("content")
    except Exception:
        return None
    return text if isinstance(text, str) else None


def _call_chat_completions(provider: str, endpoint: str, model: str, prompt: str, api_key: str) -> str:
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }
    body = {
        "model": model,
        "messages": [{"role": "user", "content": prompt}],
    }
    data = _post_json(provider, endpoint, body, headers=headers)
    return _chat_completion_text(data) or GENERATION_ERROR_PLACEHOLDER


def _call_grok(prompt: str, api_key: str) -> str:
    log.info("Calling %s API model=%s", GROK, GROQ_MODEL)
    return _call_chat_completions(GROK, GROQ_ENDPOINT, GROQ_MODEL, prompt, api_key)


def _call_openai(prompt: str, api_key: str) -> str:
    log.info("Calling %s API model=%s", OPENAI, OPENAI_MODEL)
    return _call_chat_completions(OPENAI, OPENAI_ENDPOINT, OPENAI_MODEL, prompt, api_key)


def _extract_gemini_text(payload: Dict[str, Any]) -> Optional[str]:
    candidates = payload.get("candidates") or []
    if not isinstance(candidates, list):
        return None
    for cand in candidates:
        if not isinstance(cand, dict):
            continue
        content = cand.get("content")
        if not isinstance(content, dict):
            continue
        parts = content.get("parts")
        if not isinstance(parts, list):
            continue
        for part in parts:
            txt = part.get("text") if isinstance(part, dict) else None
            if isinstance(txt, str) and txt.strip():
                return txt
    return None


def _call_gemini(prompt: str, api_key: str) -> str:
    log.info("Calling %s API model=%s", GEMINI, GEMINI_MODEL)
    body = {
        "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        "generationConfig": {
            "temperature": 0.7,
            "topK": 40,
            "topP": 0.95,
            "maxOutputTokens": GEMINI_MAX_TOKENS,
        },
    }
    data = _post_json(GEMINI, gemini_endpoint(GEMINI_MODEL), body, params={"key": api_key})
    text = _extract_gemini_text(data)
    if text is None:
        # Unusable body counts as a failed call so the fallback model gets its turn
        log.warning("Unexpected Gemini response structure: %s", str(data)[:400])
        raise ProviderCallFailed(GEMINI, GEMINI_UNEXPECTED_FORMAT)
    return text


def _call_gemini_fallback(prompt: str, api_key: str) -> str:
    """Single retry on the alternate Gemini model, plain request without generation config."""
    log.info("Attempting fallback model %s for %s", GEMINI_FALLBACK_MODEL, GEMINI)
    body = {"contents": [{"parts": [{"text": prompt}]}]}
    data = _post_json(GEMINI, gemini_endpoint(GEMINI_FALLBACK_MODEL), body, params={"key": api_key})
    return _extract_gemini_text(data) or GENERATION_ERROR_PLACEHOLDER


def _call_provider(provider: str, prompt: str, api_key: str) -> str:
    if provider == GROK:
        return _call_grok(prompt, api_key)
    if provider == OPENAI:
        return _call_openai(prompt, api_key)
    if provider == GEMINI:
        return _call_gemini(prompt, api_key)
    raise UnsupportedProvider(provider)


def generate_artifact(prompt: str, framework: str, provider: str, api_key: str) -> GeneratedArtifact:
    """Ask `provider` for `framework` code and return both the raw answer and the extracted code.

    Only Gemini has an alternate model; its failure is retried once there.
    Every other provider fault propagates as ProviderCallFailed.
    """
    log.info(
        "generate_code called prompt=%r framework=%s provider=%s api_key=[hidden]",
        (prompt or "")[:120],
        framework,
        provider,
    )
    fw = normalize_framework(framework)
    if provider not in PROVIDERS:
        raise UnsupportedProvider(provider)
    full_prompt = build_prompt(prompt, fw)

    try:
        raw = _call_provider(provider, full_prompt, api_key)
    except ProviderCallFailed as exc:
        log.error("Error calling %s API: %s", provider, exc)
        if provider != GEMINI:
            raise
        try:
            raw = _call_gemini_fallback(full_prompt, api_key)
        except ProviderCallFailed as fallback_exc:
            log.error("Fallback model also failed: %s", fallback_exc)
            raise FallbackAlsoFailed(provider, f"{exc} (Fallback also failed)") from fallback_exc
        log.info("Fallback model succeeded")

    log.debug("Raw response from %s: %s", provider, raw[:400])
    try:
        code = extract_code(raw, fw)
    except UnparsableResponse as exc:
        log.warning("Could not parse code from %s response", provider)
        code = exc.placeholder
    return GeneratedArtifact(raw_response_text=raw, extracted_code=code, framework=fw, provider=provider)


def generate_code(prompt: str, framework: str, provider: str, api_key: str) -> str:
    return generate_artifact(prompt, framework, provider, api_key).extracted_code
