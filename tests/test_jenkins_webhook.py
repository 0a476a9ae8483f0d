import io
import json
from wsgiref.util import setup_testing_defaults

import pytest

from cicdrunner.platform.jenkins_webhook import (
    MAX_BODY_BYTES,
    JenkinsWebhook,
    jenkins_webhook_app,
)

PAYLOAD = {
    "name": "test-job",
    "url": "job/test-job/42/",
    "number": 42,
    "phase": "COMPLETED",
    "status": "SUCCESS",
    "buildUrl": "http://localhost/job/test-job/42/",
}


def _call(app, body, headers=None, query=""):
    data = body if isinstance(body, bytes) else json.dumps(body).encode()
    environ = {}
    setup_testing_defaults(environ)
    environ["REQUEST_METHOD"] = "POST"
    environ["wsgi.input"] = io.BytesIO(data)
    environ["CONTENT_LENGTH"] = str(len(data))
    environ["QUERY_STRING"] = query
    environ.update(headers or {})
    captured = {}

    def start_response(status, response_headers):
        captured["status"] = status
        captured["headers"] = dict(response_headers)

    chunks = app(environ, start_response)
    return captured["status"], b"".join(chunks)


class _Recorder:
    def __init__(self, error=None):
        self.received = []
        self.error = error

    def __call__(self, webhook):
        self.received.append(webhook)
        if self.error is not None:
            raise self.error


def test_from_dict_maps_fields():
    webhook = JenkinsWebhook.from_dict(PAYLOAD)
    assert webhook.build_name == "test-job"
    assert webhook.build_url == PAYLOAD["url"]
    assert webhook.build_number == 42
    assert webhook.url == PAYLOAD["buildUrl"]
    assert webhook.status == "SUCCESS"


def test_from_dict_none_gives_defaults():
    assert JenkinsWebhook.from_dict(None) == JenkinsWebhook()


@pytest.mark.parametrize("data", [[1, 2], {"number": "42"}, {"name": 5}])
def test_from_dict_rejects_bad_types(data):
    with pytest.raises(ValueError):
        JenkinsWebhook.from_dict(data)


def test_no_token_accepts_and_dispatches():
    recorder = _Recorder()
    status, body = _call(jenkins_webhook_app("", recorder), PAYLOAD)
    assert status.startswith("200")
    assert body == b""
    assert recorder.received == [JenkinsWebhook.from_dict(PAYLOAD)]


def test_missing_token_is_unauthorized():
    recorder = _Recorder()
    status, body = _call(jenkins_webhook_app("token", recorder), PAYLOAD)
    assert status.startswith("401")
    assert body.startswith(b"Unauthorized")
    assert recorder.received == []


def test_bearer_token_accepted():
    recorder = _Recorder()
    status, _ = _call(
        jenkins_webhook_app("token", recorder),
        PAYLOAD,
        headers={"HTTP_AUTHORIZATION": "Bearer token"},
    )
    assert status.startswith("200")
    assert len(recorder.received) == 1


def test_query_token_accepted():
    recorder = _Recorder()
    status, _ = _call(jenkins_webhook_app("token", recorder), PAYLOAD, query="token=token")
    assert status.startswith("200")
    assert len(recorder.received) == 1


def test_wrong_token_rejected():
    recorder = _Recorder()
    status, _ = _call(
        jenkins_webhook_app("token", recorder),
        PAYLOAD,
        headers={"HTTP_AUTHORIZATION": "Bearer secret"},
    )
    assert status.startswith("401")
    assert recorder.received == []


def test_invalid_json_is_bad_request():
    recorder = _Recorder()
    status, body = _call(jenkins_webhook_app("", recorder), b"{not json")
    assert status.startswith("400")
    assert body.startswith(b"Bad request")
    assert recorder.received == []


def test_empty_body_is_bad_request():
    status, _ = _call(jenkins_webhook_app("", _Recorder()), b"")
    assert status.startswith("400")


def test_oversized_body_is_bad_request():
    data = json.dumps({"name": "a" * MAX_BODY_BYTES}).encode()
    recorder = _Recorder()
    status, _ = _call(jenkins_webhook_app("", recorder), data)
    assert status.startswith("400")
    assert recorder.received == []


def test_handler_error_is_server_error():
    recorder = _Recorder(error=RuntimeError("boom"))
    status, body = _call(jenkins_webhook_app("", recorder), PAYLOAD)
    assert status.startswith("500")
    assert body.startswith(b"Internal server error")
    assert len(recorder.received) == 1