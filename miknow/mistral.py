"""HTTP client for the Mistral chat completion API."""

import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel

from .config import (
    DEFAULT_SYSTEM_PROMPT,
    MISTRAL_CHAT_URL,
    MISTRAL_MODELS_URL,
    REQUEST_TIMEOUT,
)
from .errors import ERRORS_BY_KIND, CompletionError
from .settings import Credentials

logger = logging.getLogger(__name__)

MISSING_KEY_MESSAGE = "API key not found. Please set your Mistral API key in the settings."
INVALID_KEY_MESSAGE = "Invalid API key. Please check your Mistral API key in the settings."
GENERIC_FAILURE_MESSAGE = "Failed to get response from Mistral AI"


class AIResponse(BaseModel):
    """Outcome of one completion request: content on success, error otherwise."""
    content: str = ""
    error: Optional[str] = None
    error_kind: Optional[str] = None
    status_code: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> str:
        """Return the content, or raise the CompletionError matching error_kind."""
        if self.error is None:
            return self.content
        error_cls = ERRORS_BY_KIND.get(self.error_kind or "", CompletionError)
        raise error_cls(self.error, status_code=self.status_code)


def _auth_headers(api_key: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {api_key}"}


async def validate_api_key(
    api_key: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> bool:
    """
    Check that the provider accepts an API key.

    Issues a read-only GET to the model listing endpoint. Any non-2xx status
    or transport failure counts as invalid. No retries.
    """
    if not api_key:
        return False

    try:
        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT, transport=transport) as client:
            response = await client.get(MISTRAL_MODELS_URL, headers=_auth_headers(api_key))
            return response.is_success
    except Exception as e:
        logger.debug(f"API key validation failed: {e}")
        return False


def _provider_error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return GENERIC_FAILURE_MESSAGE

    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return GENERIC_FAILURE_MESSAGE


def _first_choice_content(data: Any) -> Optional[str]:
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return None
    return content if isinstance(content, str) else None


class MistralClient:
    """
    Single-shot chat completion client.

    Reads the key and model from the credential record on every call, and
    writes the validity flag back as a side effect of each response.
    """

    def __init__(
        self,
        credentials: Credentials,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.credentials = credentials
        self.transport = transport

    async def complete(
        self,
        prompt: str,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
    ) -> AIResponse:
        """
        Send one system + user conversation and normalize the outcome.

        Args:
            prompt: The user message
            system_prompt: The system message

        Returns:
            AIResponse with content on success, or error and error_kind set
            ('missing_key', 'auth', 'provider', 'network', 'malformed').
        """
        api_key = self.credentials.api_key
        if not api_key:
            return AIResponse(error=MISSING_KEY_MESSAGE, error_kind="missing_key")

        payload = {
            "model": self.credentials.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
        }

        try:
            async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT, transport=self.transport) as client:
                response = await client.post(
                    MISTRAL_CHAT_URL,
                    headers=_auth_headers(api_key),
                    json=payload,
                )
        except httpx.HTTPError as e:
            logger.error(f"Mistral request failed: {e}")
            return AIResponse(error=str(e) or "Unknown error occurred", error_kind="network")

        if response.status_code == 401:
            self.credentials.mark_valid(False)
            return AIResponse(error=INVALID_KEY_MESSAGE, error_kind="auth", status_code=401)

        if not response.is_success:
            message = _provider_error_message(response)
            logger.error(f"Mistral API error {response.status_code}: {message}")
            return AIResponse(
                error=message,
                error_kind="provider",
                status_code=response.status_code,
            )

        self.credentials.mark_valid(True)

        try:
            data = response.json()
        except ValueError:
            data = None

        content = _first_choice_content(data)
        if content is None:
            return AIResponse(
                error="Mistral AI returned a response without completion content",
                error_kind="malformed",
                status_code=response.status_code,
            )

        return AIResponse(content=content)

    async def complete_or_raise(
        self,
        prompt: str,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
    ) -> str:
        """Like complete(), but raise the matching CompletionError on failure."""
        response = await self.complete(prompt, system_prompt)
        return response.raise_for_error()
