"""JSON log output with per-request context for the matchmaker service."""

from __future__ import annotations

import json
import logging
import random
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from matchmaker.settings import settings

_CONTEXT_FIELDS = ("request_id", "route", "user_id")

_LOG_CONTEXT: ContextVar[Mapping[str, str]] = ContextVar("matchmaker_log_context", default={})

_LOGGER_NAME = "matchmaker"

_REDACT_MARKERS = ("token", "secret", "authorization", "password", "cookie", "email", "avatar_url")

_MAX_TEXT = 256
_MAX_ITEMS = 10

# attributes every LogRecord carries; anything else came in through ``extra=``
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


def bind_context(**fields: Optional[str]) -> Token:
	"""Merge request fields into the log context; pass the token to :func:`reset_context`."""
	merged = dict(_LOG_CONTEXT.get())
	for key, value in fields.items():
		if key in _CONTEXT_FIELDS and value:
			merged[key] = value
	return _LOG_CONTEXT.set(merged)


def reset_context(token: Token) -> None:
	_LOG_CONTEXT.reset(token)


def current_request_id() -> Optional[str]:
	return _LOG_CONTEXT.get().get("request_id")


def _scrub(key: str, value: Any) -> Any:
	if any(marker in key.lower() for marker in _REDACT_MARKERS):
		return "[redacted]"
	if isinstance(value, str) and len(value) > _MAX_TEXT:
		return value[:_MAX_TEXT] + "…"
	if isinstance(value, Mapping):
		items = list(value.items())
		scrubbed = {str(k): _scrub(str(k), v) for k, v in items[:_MAX_ITEMS]}
		if len(items) > _MAX_ITEMS:
			scrubbed["…"] = f"+{len(items) - _MAX_ITEMS} keys"
		return scrubbed
	if isinstance(value, (list, tuple, set, frozenset)):
		values = list(value)
		head = [_scrub(key, item) for item in values[:_MAX_ITEMS]]
		return head + ["…"] if len(values) > _MAX_ITEMS else head
	return value


class JSONLogFormatter(logging.Formatter):
	"""One JSON object per record: base fields, request context, then ``extra`` fields."""

	def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (match logging api)
		payload: Dict[str, Any] = {
			"ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
			"level": record.levelname.lower(),
			"logger": record.name,
			"msg": record.getMessage(),
			"service": settings.service_name,
			"env": settings.environment,
			"commit": settings.git_commit,
		}
		payload.update(_LOG_CONTEXT.get())
		if record.exc_info:
			payload["exc_info"] = self.formatException(record.exc_info)
		for key, value in vars(record).items():
			if key not in _RECORD_ATTRS:
				payload[key] = _scrub(key, value)
		return json.dumps(payload, separators=(",", ":"), default=str)


class InfoSamplingFilter(logging.Filter):
	"""Drop a share of INFO records; other levels always pass."""

	def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
		if record.levelno != logging.INFO:
			return True
		rate = settings.obs_log_sampling_rate_info
		return rate >= 1.0 or random.random() < max(0.0, rate)


def configure_logging() -> logging.Logger:
	root = logging.getLogger()
	root.handlers.clear()
	handler = logging.StreamHandler()
	handler.setFormatter(JSONLogFormatter())
	handler.addFilter(InfoSamplingFilter())
	root.addHandler(handler)
	root.setLevel(settings.obs_log_level)
	return logging.getLogger(_LOGGER_NAME)


def get_logger(name: Optional[str] = None) -> logging.Logger:
	return logging.getLogger(name or _LOGGER_NAME)
