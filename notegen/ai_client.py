"""Chat-completion client for lesson generation.

DeepSeek (OpenAI-compatible HTTP API) is the default provider; Anthropic is
available through the SDK. Both go through the shared transient-error retry.
"""

import logging
import os

import anthropic
import requests

from notegen.api_utils import call_with_retry, messages_create_with_retry

logger = logging.getLogger(__name__)

DEEPSEEK_API_URL = "https://api.deepseek.com/chat/completions"
DEEPSEEK_MODEL = "deepseek-chat"
ANTHROPIC_MODEL = "claude-sonnet-4-5-20250929"
DEFAULT_PROVIDER = "deepseek"
TEMPERATURE = 0.7

BASE_MAX_TOKENS = 4000
TOKENS_PER_LESSON = 2500
MAX_TOKENS_CAP = 8192
BASE_TIMEOUT = 120
TIMEOUT_PER_LESSON = 30

DEFAULT_SYSTEM_MESSAGE = (
    "You are an expert educational content creator specializing in creating comprehensive, "
    "professional lesson plans for Ghanaian teachers following the National Pre-tertiary Curriculum."
)


class AIServiceError(Exception):
    """Raised when the AI provider cannot produce a completion."""
    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


def max_tokens_for(num_lessons: int = 1) -> int:
    """Completion budget: ~2500 tokens per lesson on top of the base, capped."""
    if num_lessons and num_lessons > 1:
        return min(BASE_MAX_TOKENS + num_lessons * TOKENS_PER_LESSON, MAX_TOKENS_CAP)
    return BASE_MAX_TOKENS


def timeout_for(num_lessons: int = 1) -> int:
    if num_lessons and num_lessons > 1:
        return max(BASE_TIMEOUT, num_lessons * TIMEOUT_PER_LESSON)
    return BASE_TIMEOUT


def _provider(provider: str = None) -> str:
    return (provider or os.environ.get("AI_PROVIDER") or DEFAULT_PROVIDER).strip().lower()


def _post_deepseek(url, headers, payload, timeout):
    response = requests.post(url, headers=headers, json=payload, timeout=timeout)
    if not response.ok:
        try:
            detail = (response.json().get("error") or {}).get("message") or response.reason
        except ValueError:
            detail = response.reason
        logger.error("DeepSeek API error: %s %s", response.status_code, detail)
        raise AIServiceError(f"API Error: {response.status_code} {detail}", status_code=response.status_code)
    return response


def _call_deepseek(prompt: str, system_message: str, num_lessons: int) -> str:
    api_key = os.environ.get("DEEPSEEK_API_KEY", "")
    if not api_key:
        raise AIServiceError(
            "DeepSeek API key is not configured. Please add DEEPSEEK_API_KEY to your .env file."
        )
    url = os.environ.get("DEEPSEEK_API_URL") or DEEPSEEK_API_URL
    max_tokens = max_tokens_for(num_lessons)
    timeout = timeout_for(num_lessons)
    payload = {
        "model": os.environ.get("DEEPSEEK_MODEL") or DEEPSEEK_MODEL,
        "messages": [
            {"role": "system", "content": system_message},
            {"role": "user", "content": prompt},
        ],
        "temperature": TEMPERATURE,
        "max_tokens": max_tokens,
    }
    headers = {
        "Content-Type": "application/json",
        "Authorization": f"Bearer {api_key}",
    }
    logger.info("Requesting %d max_tokens for %d lesson(s)", max_tokens, num_lessons or 1)

    try:
        response = call_with_retry(_post_deepseek, url, headers, payload, timeout, label="DeepSeek API")
    except requests.Timeout as e:
        raise AIServiceError(
            f"Request timed out after {timeout // 60} minutes. The AI is taking too long to respond."
        ) from e
    except requests.RequestException as e:
        logger.error("DeepSeek request failed: %s", e)
        raise AIServiceError("Network error. Please check your internet connection.") from e

    try:
        data = response.json()
        content = data["choices"][0]["message"]["content"]
    except (ValueError, KeyError, IndexError, TypeError) as e:
        raise AIServiceError("Invalid response from DeepSeek API") from e
    if not content:
        raise AIServiceError("Invalid response from DeepSeek API")
    return content


def _call_anthropic(prompt: str, system_message: str, num_lessons: int) -> str:
    api_key = os.environ.get("ANTHROPIC_API_KEY", "")
    if not api_key:
        raise AIServiceError(
            "Anthropic API key is not configured. Please add ANTHROPIC_API_KEY to your .env file."
        )
    client = anthropic.Anthropic(api_key=api_key, timeout=timeout_for(num_lessons))
    try:
        message = messages_create_with_retry(
            client,
            model=os.environ.get("ANTHROPIC_MODEL") or ANTHROPIC_MODEL,
            max_tokens=max_tokens_for(num_lessons),
            temperature=TEMPERATURE,
            system=system_message,
            messages=[{"role": "user", "content": prompt}],
        )
    except anthropic.APIStatusError as e:
        raise AIServiceError(f"API Error: {e.status_code} {e.message}", status_code=e.status_code) from e
    except anthropic.APITimeoutError as e:
        raise AIServiceError("Request timed out. The AI is taking too long to respond.") from e
    except anthropic.APIConnectionError as e:
        raise AIServiceError("Network error. Please check your internet connection.") from e
    if not message.content:
        raise AIServiceError("Invalid response from Anthropic API")
    return message.content[0].text


def call_ai(prompt: str, system_message: str = None, num_lessons: int = 1, provider: str = None) -> str:
    """Send one prompt to the configured provider and return the completion text."""
    name = _provider(provider)
    system_message = system_message or DEFAULT_SYSTEM_MESSAGE
    logger.debug("AI call: provider=%s prompt=%d chars", name, len(prompt))
    if name == "deepseek":
        content = _call_deepseek(prompt, system_message, num_lessons)
    elif name == "anthropic":
        content = _call_anthropic(prompt, system_message, num_lessons)
    else:
        raise AIServiceError(f"Unknown AI provider: {name}")
    logger.info("AI response received: %d chars", len(content))
    return content
