import json
import logging

from matchmaker.obs.logging import JSONLogFormatter, bind_context, current_request_id, reset_context


def _record(**extra):
	record = logging.LogRecord("matchmaker.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
	for key, value in extra.items():
		setattr(record, key, value)
	return record


def test_formatter_includes_bound_context_and_extras():
	token = bind_context(request_id="req-1", route="/match/results", user_id=None)
	try:
		assert current_request_id() == "req-1"
		payload = json.loads(JSONLogFormatter().format(_record(viewer="u1", candidates=list(range(20)))))
	finally:
		reset_context(token)

	assert payload["msg"] == "hello world"
	assert payload["request_id"] == "req-1"
	assert payload["route"] == "/match/results"
	assert "user_id" not in payload
	assert payload["viewer"] == "u1"
	assert payload["candidates"][-1] == "…"
	assert len(payload["candidates"]) == 11
	assert current_request_id() is None


def test_formatter_redacts_sensitive_fields():
	payload = json.loads(JSONLogFormatter().format(_record(auth_token="abc", profile={"email": "x@y.z", "nickname": "n"})))

	assert payload["auth_token"] == "[redacted]"
	assert payload["profile"] == {"email": "[redacted]", "nickname": "n"}
