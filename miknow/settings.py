"""
Credential management: API key, selected model and cached key validity.

Values live in the injected storage so a key saved from one surface is seen
by every other one. Priority for the key: stored value > environment variable.
"""
import logging
from typing import List, Dict, Optional

import httpx

from . import storage as keys
from .config import DEFAULT_MODEL, MISTRAL_API_KEY
from .errors import AuthenticationError
from .storage import Storage

logger = logging.getLogger(__name__)

# Models offered in the settings form
MISTRAL_MODELS: List[Dict[str, str]] = [
    {"id": "mistral-small-latest", "name": "Mistral Small (Latest)"},
    {"id": "pixtral-12b-2409", "name": "Pixtral 12B"},
    {"id": "open-codestral-mamba", "name": "Open Codestral Mamba"},
    {"id": "open-mistral-nemo", "name": "Open Mistral Nemo"},
]


class Credentials:
    """The stored API key, selected model and cached validity flag."""

    def __init__(self, store: Storage):
        self.store = store

    @property
    def api_key(self) -> Optional[str]:
        return self.store.get(keys.API_KEY) or MISTRAL_API_KEY or None

    @property
    def model(self) -> str:
        return self.store.get(keys.MODEL_KEY) or DEFAULT_MODEL

    @property
    def is_valid(self) -> Optional[bool]:
        """Cached validity: True/False, or None if never checked."""
        flag = self.store.get(keys.API_KEY_VALID)
        if flag is None:
            return None
        return flag == "true"

    def mark_valid(self, valid: bool) -> None:
        self.store.set(keys.API_KEY_VALID, "true" if valid else "false")

    def get_key_source(self) -> str:
        """Return where the API key is coming from."""
        if self.store.get(keys.API_KEY):
            return "settings"
        if MISTRAL_API_KEY:
            return "environment"
        return "none"

    async def revalidate(self, transport: Optional[httpx.AsyncBaseTransport] = None) -> bool:
        """Validate the current key against the provider and cache the result."""
        from .mistral import validate_api_key

        api_key = self.api_key
        if not api_key:
            self.mark_valid(False)
            return False

        valid = await validate_api_key(api_key, transport=transport)
        self.mark_valid(valid)
        return valid

    async def check(self, transport: Optional[httpx.AsyncBaseTransport] = None) -> bool:
        """
        Report whether the key is usable, validating only when needed.

        A cached "true" is trusted. A cached "false" is re-checked in case the
        subscription was fixed or the provider is back online. No cached flag
        triggers a first validation.
        """
        if not self.api_key:
            return False

        cached = self.is_valid
        if cached is True:
            return True
        return await self.revalidate(transport=transport)

    async def save(
        self,
        api_key: str,
        model: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Persist key and model, refusing keys the provider rejects.

        Raises:
            AuthenticationError: If a non-empty key fails validation. Nothing is saved.
        """
        from .mistral import validate_api_key

        api_key = (api_key or "").strip()
        valid = bool(api_key) and await validate_api_key(api_key, transport=transport)
        if api_key and not valid:
            self.mark_valid(False)
            raise AuthenticationError(
                "The API key you provided is not valid. Please check and try again.",
                status_code=401,
            )

        # Key first: subscribers drop the cached flag when the key changes
        self.store.set(keys.API_KEY, api_key)
        self.store.set(keys.MODEL_KEY, model or self.model)
        self.mark_valid(valid)
        logger.info(f"Saved credential settings (model={self.model})")

    def clear(self) -> None:
        """Remove the stored key (the environment variable still applies)."""
        self.store.remove(keys.API_KEY)
        self.store.remove(keys.API_KEY_VALID)

    def status(self) -> Dict[str, object]:
        """Settings summary without the key value itself."""
        return {
            "api_key_configured": self.api_key is not None,
            "api_key_source": self.get_key_source(),
            "api_key_valid": self.is_valid,
            "model": self.model,
        }
