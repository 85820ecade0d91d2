from typing import Optional

import httpx

from frontend.config import get_settings


class ModelServiceError(RuntimeError):
    """The classification service could not produce a prediction."""


class ModelClient:
    """Forwards SMS text to the classification service's /predict route."""

    def __init__(self, base_url: str, timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def predict(self, text: str) -> str:
        url = f"{self.base_url}/predict"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.post(url, json={"sms": text})
                resp.raise_for_status()
        except httpx.HTTPError as e:
            raise ModelServiceError(f"prediction request to {url} failed: {e}") from e

        try:
            result = resp.json()["result"]
        except (ValueError, KeyError, TypeError) as e:
            raise ModelServiceError(f"unexpected prediction payload from {url}") from e
        if not isinstance(result, str):
            raise ModelServiceError(f"prediction result from {url} is not a string")
        return result.strip()


def get_model_client() -> ModelClient:
    settings = get_settings()
    return ModelClient(settings.MODEL_HOST or "", settings.MODEL_TIMEOUT)
