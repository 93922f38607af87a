# depaudit_cli/api/openai_api.py

import logging
from typing import Any, Dict, Optional

from .helpers.api_base import APIBase, DEFAULT_TIMEOUT
from ..exceptions import ConfigurationError

logger = logging.getLogger("depaudit-cli")

OPENAI_API_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-3.5-turbo"
MAX_TOKENS = 150
TEMPERATURE = 0.5

SYSTEM_PROMPT = (
    "You are a security assistant. Explain the following vulnerability concisely for a developer, "
    "focusing on the impact and how it might be exploited. Provide a brief suggestion for mitigation if possible."
)


class OpenAIAPI(APIBase):
    """Minimal client for the OpenAI chat completions endpoint."""

    def __init__(self, api_key: str, model: str = DEFAULT_MODEL, timeout: int = DEFAULT_TIMEOUT,
                 api_url: str = OPENAI_API_URL):
        if not api_key:
            raise ConfigurationError("OpenAI API key is not configured. Set --openai-api-key or OPENAI_API_KEY.")
        super().__init__(api_url, timeout=timeout, headers={"Authorization": f"Bearer {api_key}"})
        self.model = model or DEFAULT_MODEL

    def create_chat_completion(self, prompt: str, system_prompt: str = SYSTEM_PROMPT) -> Dict[str, Any]:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": MAX_TOKENS,
            "temperature": TEMPERATURE,
        }
        return self._send_request("POST", "chat/completions", payload=payload)

    def explain(self, prompt: str) -> Optional[str]:
        """
        Returns the first completion's text, or None if the response has no
        choices[0].message.content.
        """
        body = self.create_chat_completion(prompt)
        try:
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            logger.warning(f"OpenAI API response did not contain expected content: {str(body)[:200]}")
            return None
        if not isinstance(content, str) or not content.strip():
            return None
        return content.strip()
