# kg_docgraph/llm/client.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from kg_docgraph.config.settings import Settings, settings
from kg_docgraph.errors import LLMError


@dataclass
class LLMClientConfig:
    """
    Endpoints and credentials for the hosted LLM / extraction integrations.
    """

    invoke_url: str
    extraction_url: str
    api_key: Optional[str] = None
    timeout: int = 120

    @classmethod
    def from_settings(cls, cfg: Optional[Settings] = None) -> "LLMClientConfig":
        cfg = cfg or settings
        api_key = (
            cfg.ENTITY_STORE_API_KEY.get_secret_value()
            if cfg.ENTITY_STORE_API_KEY
            else None
        )
        return cls(
            invoke_url=cfg.LLM_URL,
            extraction_url=cfg.FILE_EXTRACTION_URL,
            api_key=api_key,
            timeout=cfg.REQUEST_TIMEOUT,
        )


class LLMClient:
    """
    Prompt -> structured JSON over HTTP.

    Methods:
        - invoke(prompt, response_json_schema) -> dict
        - extract_data_from_file(file_url, json_schema) -> {"status", "output"}

    Any non-success response raises LLMError; callers treat it as a
    failure of the single document / message being processed.
    """

    def __init__(
        self,
        config: Optional[LLMClientConfig] = None,
        *,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.config = config or LLMClientConfig.from_settings()
        self.session = session or requests.Session()

    def _post(self, url: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["api_key"] = self.config.api_key

        try:
            resp = self.session.post(
                url,
                json=payload,
                headers=headers,
                timeout=self.config.timeout,
            )
        except requests.exceptions.RequestException as exc:
            raise LLMError(f"Error contacting LLM service at {url}: {exc}", url=url) from exc

        if not resp.ok:
            raise LLMError(
                f"LLM service returned HTTP {resp.status_code} for {url}: "
                f"{(resp.text or '')[:200]}",
                status_code=resp.status_code,
                url=url,
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise LLMError(f"LLM service returned invalid JSON from {url}", url=url) from exc

        if not isinstance(data, dict):
            raise LLMError(f"Expected a JSON object from {url}, got {type(data).__name__}", url=url)
        return data

    def invoke(self, prompt: str, response_json_schema: Dict[str, Any]) -> Dict[str, Any]:
        return self._post(
            self.config.invoke_url,
            {"prompt": prompt, "response_json_schema": response_json_schema},
        )

    def extract_data_from_file(self, file_url: str, json_schema: Dict[str, Any]) -> Dict[str, Any]:
        return self._post(
            self.config.extraction_url,
            {"file_url": file_url, "json_schema": json_schema},
        )
