"""Opt-in debug tracing of requests and stream frames."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_SENSITIVE_HEADERS = frozenset({"authorization", "x-api-key", "x-goog-api-key", "api-key"})


@dataclass(frozen=True, slots=True)
class TraceConfig:
    """Tracing switches, passed explicitly to providers and pipelines.

    Output goes to the ``omnillm`` loggers at DEBUG level; configure a handler
    to see it.
    """

    enabled: bool = False
    pretty_json: bool = False
    mask_sensitive: bool = True


NO_TRACE = TraceConfig()


def mask_value(value: str) -> str:
    if len(value) <= 8:
        return "***"
    return f"{value[:4]}...{value[-4:]}"


def mask_headers(headers: Mapping[str, str], config: TraceConfig = NO_TRACE) -> dict[str, str]:
    """Copy of ``headers`` with credentials masked (unless masking is disabled)."""
    if not config.mask_sensitive:
        return dict(headers)
    return {
        name: mask_value(value) if name.lower() in _SENSITIVE_HEADERS else value
        for name, value in headers.items()
    }


def format_payload(data: str, config: TraceConfig) -> str:
    if not config.pretty_json:
        return data
    try:
        return json.dumps(json.loads(data), indent=2, ensure_ascii=False)
    except json.JSONDecodeError:
        return data


def trace_request(url: str, headers: Mapping[str, str], config: TraceConfig) -> None:
    if config.enabled:
        logger.debug("POST %s headers=%s", url, mask_headers(headers, config))
