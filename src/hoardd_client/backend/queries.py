from __future__ import annotations

import json
from typing import Any, Dict

from hoardd_client.config import QueryConfig


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _query_string(query: str, **extra: Any) -> Dict[str, Any]:
    clause: Dict[str, Any] = {"query": query}
    clause.update(extra)
    return {"bool": {"must": [{"query_string": clause}]}}


def build_query(query_cfg: QueryConfig) -> Dict[str, Any]:
    """
    Build the search query for whichever lookup mode is set.

    The shapes match what Kibana generates for the same searches, so results
    line up with what an analyst sees in the UI.
    """
    email = (query_cfg.email or "").strip()
    domain = (query_cfg.domain or "").strip()
    password = query_cfg.password or ""
    raw = (query_cfg.raw or "").strip()

    if email:
        return _query_string(f'email:"{_escape(email)}"')
    if domain:
        return _query_string(f'email:"*@{_escape(domain)}"', analyze_wildcard=True)
    if password:
        return _query_string(f'password:"{_escape(password)}"')
    if raw:
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ValueError(f"raw query is not valid JSON: {exc}") from exc
        if not isinstance(parsed, dict):
            raise ValueError("raw query must be a JSON object")
        return parsed
    raise ValueError("email, domain, password, or raw parameter must be supplied")
