import logging

import requests

from nexushr.core.config import AISettings
from nexushr.core.exceptions import AIError

logger = logging.getLogger(__name__)

OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"


def call_openrouter(settings: AISettings, messages: list, temperature: float = 0.0) -> str:
    """
    Call OpenRouter API with the specified messages.

    Args:
        settings: AI section of the configuration (key, model, timeout)
        messages: List of message dictionaries with 'role' and 'content'
        temperature: Temperature for the model

    Returns:
        str: The AI response content

    Raises:
        AIError: If the key is missing, the kill switch is on or the call fails.
    """
    if settings.kill_switch:
        raise AIError("AI services are switched off")
    if not settings.openrouter_api_key:
        raise AIError("OPENROUTER_API_KEY is not configured")

    headers = {
        "Authorization": f"Bearer {settings.openrouter_api_key}",
        "Content-Type": "application/json",
    }

    payload = {
        "model": settings.model_name,
        "messages": messages,
        "temperature": temperature,
    }

    try:
        response = requests.post(OPENROUTER_URL, json=payload, headers=headers, timeout=settings.timeout_seconds)
        response.raise_for_status()
        return response.json()["choices"][0]["message"]["content"]
    except requests.exceptions.RequestException as e:
        raise AIError(f"OpenRouter call failed: {e}")
    except (KeyError, IndexError, ValueError) as e:
        raise AIError(f"Unexpected OpenRouter response: {e}")
