# Anthropic Messages API: PR review analysis

import json
from typing import Dict, Tuple
from urllib import error, request

from .settings import AISettings

API_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
REQUEST_TIMEOUT = 120

REVIEW_SYSTEM_PROMPT = """You are an expert software engineer conducting a thorough code review.
Focus on:
1. Security vulnerabilities
2. Performance issues
3. Code quality and best practices
4. Testing recommendations
5. Architectural concerns

Provide specific, actionable feedback with severity ratings (Critical/High/Medium/Low).
Format your response with clear sections and bullet points."""


def _post_json(url: str, payload: Dict, api_key: str, timeout: int = REQUEST_TIMEOUT) -> Dict:
    data = json.dumps(payload).encode("utf-8")
    req = request.Request(
        url,
        data=data,
        headers={
            "Content-Type": "application/json",
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }
    )
    with request.urlopen(req, timeout=timeout) as resp:
        return json.loads(resp.read().decode("utf-8"))


def _http_error_message(exc: error.HTTPError) -> str:
    try:
        body = json.loads(exc.read().decode("utf-8"))
        message = body.get("error", {}).get("message")
    except (ValueError, AttributeError, OSError):
        message = None
    return f"HTTP {exc.code}: {message}" if message else f"HTTP {exc.code}"


class UnavailableReviewer:
    """No API key configured."""

    available = False

    def analyze(self, prompt: str) -> Tuple[bool, str, str]:
        return False, "", "ANTHROPIC_API_KEY not configured"


class AnthropicReviewer:
    available = True

    def __init__(self, settings: AISettings, url: str = API_URL):
        self.settings = settings
        self.url = url

    def build_payload(self, prompt: str) -> Dict:
        return {
            "model": self.settings.model,
            "max_tokens": self.settings.max_tokens,
            "system": REVIEW_SYSTEM_PROMPT,
            "messages": [{"role": "user", "content": prompt}],
        }

    def analyze(self, prompt: str) -> Tuple[bool, str, str]:
        """Returns ``(ok, text, error)``; never raises for API or network trouble."""
        try:
            data = _post_json(self.url, self.build_payload(prompt), self.settings.api_key or "")
        except error.HTTPError as e:
            return False, "", f"AI analysis failed: {_http_error_message(e)}"
        except (error.URLError, OSError, ValueError) as e:
            return False, "", f"AI analysis failed: {e}"

        try:
            text = "".join(
                block.get("text", "")
                for block in data["content"]
                if block.get("type", "text") == "text"
            )
        except (KeyError, TypeError, AttributeError):
            return False, "", f"AI response could not be parsed: {str(data)[:200]}"
        if not text.strip():
            return False, "", "AI response was empty"
        return True, text, ""


def select_reviewer(settings: AISettings):
    if settings.configured:
        return AnthropicReviewer(settings)
    return UnavailableReviewer()
