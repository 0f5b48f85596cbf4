"""
Chatbot Client - Mistral Chat Completions
=========================================
Forwards a single user question to the completion API and returns the
provider's JSON response untouched.
"""
import logging
import requests

logger = logging.getLogger(__name__)


class ChatbotError(Exception):
    """Completion request failed. `detail` holds the upstream body or message."""

    def __init__(self, detail):
        super().__init__(str(detail))
        self.detail = detail


class MistralChatClient:
    """
    Thin client for https://api.mistral.ai/v1/chat/completions.

    Args:
        api_key: Bearer key for the API.
        api_url: Completions endpoint.
        model: Model name (default: 'mistral-tiny').
        timeout: Request timeout in seconds.
        session: Optional requests.Session (shared connection pool, or a stub in tests).
    """

    def __init__(self, api_key, api_url, model='mistral-tiny', timeout=30, session=None):
        self.api_key = api_key
        self.api_url = api_url
        self.model = model
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config):
        return cls(
            api_key=config.MISTRAL_API_KEY,
            api_url=config.MISTRAL_API_URL,
            model=config.MISTRAL_MODEL,
            timeout=config.MISTRAL_TIMEOUT,
        )

    def ask(self, question):
        """Send one user message. Returns the decoded JSON response."""
        if not self.api_key:
            raise ChatbotError("MISTRAL_API_KEY non configurée")

        payload = {
            'model': self.model,
            'messages': [{'role': 'user', 'content': question}]
        }
        headers = {
            'Authorization': f"Bearer {self.api_key}",
            'Content-Type': 'application/json'
        }

        try:
            response = self.session.post(self.api_url, json=payload, headers=headers, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.HTTPError as e:
            detail = _response_detail(e.response) or str(e)
            logger.error("Completion API returned an error: %s", detail)
            raise ChatbotError(detail) from e
        except (requests.RequestException, ValueError) as e:
            logger.error("Completion API call failed: %s", e)
            raise ChatbotError(str(e)) from e


def _response_detail(response):
    if response is None:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text or None
