# kg_docgraph/store/http.py

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import requests

from kg_docgraph.config.settings import Settings, settings
from kg_docgraph.errors import EntityStoreError


@dataclass
class EntityStoreConfig:
    """
    Configuration for talking to the hosted entity store.
    """

    base_url: str
    app_id: str
    api_key: Optional[str] = None
    timeout: int = 120

    @classmethod
    def from_settings(cls, cfg: Optional[Settings] = None) -> "EntityStoreConfig":
        cfg = cfg or settings
        api_key = (
            cfg.ENTITY_STORE_API_KEY.get_secret_value()
            if cfg.ENTITY_STORE_API_KEY
            else None
        )
        return cls(
            base_url=cfg.ENTITY_STORE_URL.rstrip("/"),
            app_id=cfg.APP_ID,
            api_key=api_key,
            timeout=cfg.REQUEST_TIMEOUT,
        )


class EntityStoreClient:
    """
    Minimal HTTP client for the hosted entity store.

    Entities live under {base_url}/apps/{app_id}/entities/{entity_type};
    files are uploaded to {base_url}/apps/{app_id}/integrations/Core/UploadFile.
    Every transport or HTTP failure is raised as EntityStoreError.
    """

    def __init__(
        self,
        config: Optional[EntityStoreConfig] = None,
        *,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.config = config or EntityStoreConfig.from_settings()
        self.session = session or requests.Session()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @property
    def app_url(self) -> str:
        return f"{self.config.base_url}/apps/{self.config.app_id}"

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["api_key"] = self.config.api_key
        return headers

    def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            resp = self.session.request(
                method,
                url,
                timeout=self.config.timeout,
                **kwargs,
            )
        except requests.exceptions.RequestException as exc:
            raise EntityStoreError(
                f"Error contacting entity store at {url}: {exc}",
                url=url,
            ) from exc

        if not resp.ok:
            raise EntityStoreError(
                f"Entity store returned HTTP {resp.status_code} for {method} {url}: "
                f"{(resp.text or '')[:200]}",
                status_code=resp.status_code,
                url=url,
            )

        try:
            return resp.json()
        except ValueError as exc:
            raise EntityStoreError(
                f"Entity store returned invalid JSON for {method} {url}",
                status_code=resp.status_code,
                url=url,
            ) from exc

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------
    def create(self, entity_type: str, data: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.app_url}/entities/{entity_type}"
        return self._request("POST", url, json=data, headers=self._headers())

    def list(
        self,
        entity_type: str,
        sort: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        url = f"{self.app_url}/entities/{entity_type}"
        params: Dict[str, Any] = {}
        if sort:
            params["sort"] = sort
        if limit is not None:
            params["limit"] = limit
        data = self._request("GET", url, params=params, headers=self._headers())
        if not isinstance(data, list):
            raise EntityStoreError(
                f"Expected a list of {entity_type} entities from {url}",
                url=url,
            )
        return data

    def get(self, entity_type: str, entity_id: str) -> Dict[str, Any]:
        url = f"{self.app_url}/entities/{entity_type}/{entity_id}"
        return self._request("GET", url, headers=self._headers())

    def update(
        self,
        entity_type: str,
        entity_id: str,
        data: Dict[str, Any],
    ) -> Dict[str, Any]:
        # The hosted store merges the given fields into the entity.
        url = f"{self.app_url}/entities/{entity_type}/{entity_id}"
        return self._request("PUT", url, json=data, headers=self._headers())

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------
    def upload_file(self, path: Union[str, Path]) -> str:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")

        url = f"{self.app_url}/integrations/Core/UploadFile"
        headers = {"api_key": self.config.api_key} if self.config.api_key else {}
        with path.open("rb") as fh:
            data = self._request(
                "POST",
                url,
                files={"file": (path.name, fh)},
                headers=headers,
            )

        file_url = data.get("file_url") if isinstance(data, dict) else None
        if not file_url:
            raise EntityStoreError(f"Upload response from {url} has no file_url", url=url)
        return file_url
