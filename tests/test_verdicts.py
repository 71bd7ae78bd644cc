import asyncio

import pytest
from docker.errors import DockerException
from requests.exceptions import ConnectionError as RequestsConnectionError, ReadTimeout

from app.services.verdicts import (
    DockerVerdictSource,
    StubVerdictSource,
    Verdict,
    build_verdict_source,
    normalize_output,
    resolve_runtime,
)


def _judge(source, code, *, expected="42", language="python"):
    return asyncio.run(
        source.judge(
            source_code=code,
            language=language,
            stdin="",
            expected_output=expected,
            time_limit_seconds=1.0,
            memory_limit_bytes=64 * 1024 * 1024,
        )
    )


def test_normalize_output_ignores_trailing_whitespace():
    assert normalize_output("1 2 \r\n3\n\n") == "1 2\n3"
    assert normalize_output(None) == ""


@pytest.mark.parametrize(
    "code, expected",
    [
        ("while True:\n    pass", Verdict.TIME_LIMIT_EXCEEDED),
        ("raise ValueError()", Verdict.RUNTIME_ERROR),
        ("print(42)", Verdict.PASSED),
        ("print(41)", Verdict.WRONG_ANSWER),
    ],
)
def test_stub_source_matches_on_code_text(code, expected):
    assert _judge(StubVerdictSource(), code) == expected


def test_language_aliases_resolve():
    assert resolve_runtime("Python3").filename == "main.py"
    assert resolve_runtime("c++").filename == "main.cpp"
    assert resolve_runtime("brainfuck") is None


def test_build_verdict_source_from_name():
    assert isinstance(build_verdict_source("stub"), StubVerdictSource)
    assert isinstance(build_verdict_source("docker"), DockerVerdictSource)
    with pytest.raises(ValueError):
        build_verdict_source("quantum")


class _FakeContainer:
    def __init__(self, *, status=0, output=b"42\n", wait_error=None):
        self.id = "c0ffee"
        self._status = status
        self._output = output
        self._wait_error = wait_error
        self.removed = False

    def wait(self, timeout=None):
        if self._wait_error:
            raise self._wait_error
        return {"StatusCode": self._status}

    def logs(self, stdout=True, stderr=False):
        return self._output

    def remove(self, force=False):
        self.removed = True


class _FakeContainers:
    def __init__(self, container=None, run_error=None):
        self.container = container
        self.run_error = run_error
        self.run_calls = []

    def run(self, image, **options):
        self.run_calls.append((image, options))
        if self.run_error:
            raise self.run_error
        return self.container


class _FakeClient:
    def __init__(self, containers):
        self.containers = containers
        self.closed = False

    def close(self):
        self.closed = True


def _docker_source(**container_kwargs):
    run_error = container_kwargs.pop("run_error", None)
    container = _FakeContainer(**container_kwargs)
    client = _FakeClient(_FakeContainers(container, run_error=run_error))
    return DockerVerdictSource(client_factory=lambda: client), client, container


def test_docker_source_passes_matching_output():
    source, client, container = _docker_source()

    assert _judge(source, "print(42)") == Verdict.PASSED

    image, options = client.containers.run_calls[0]
    assert image.startswith("python:")
    assert options["network_disabled"] is True
    assert options["mem_limit"] == 64 * 1024 * 1024
    assert container.removed is True
    assert client.closed is True


def test_docker_source_wrong_output():
    source, _, _ = _docker_source(output=b"41\n")
    assert _judge(source, "print(41)") == Verdict.WRONG_ANSWER


def test_docker_source_nonzero_exit_is_runtime_error():
    source, _, container = _docker_source(status=1, output=b"")
    assert _judge(source, "import sys; sys.exit(3)") == Verdict.RUNTIME_ERROR
    assert container.removed is True


def test_docker_source_wait_timeout_is_time_limit():
    source, _, container = _docker_source(wait_error=ReadTimeout("too slow"))
    assert _judge(source, "while 1: pass") == Verdict.TIME_LIMIT_EXCEEDED
    assert container.removed is True


def test_docker_source_daemon_failure_is_internal_error():
    source, client, _ = _docker_source(run_error=DockerException("daemon unreachable"))
    assert _judge(source, "print(42)") == Verdict.INTERNAL_ERROR
    assert client.closed is True


def test_docker_source_rejects_unknown_language_without_running():
    source, client, _ = _docker_source()
    assert _judge(source, "+++", language="brainfuck") == Verdict.RUNTIME_ERROR
    assert client.containers.run_calls == []


def test_stub_never_passes_an_empty_expected_output():
    assert _judge(StubVerdictSource(), "print()", expected="") == Verdict.WRONG_ANSWER
    assert _judge(StubVerdictSource(), "print()", expected="\n  \n") == Verdict.WRONG_ANSWER


def test_docker_source_unreachable_daemon_is_internal_error():
    source, client, _ = _docker_source(run_error=RequestsConnectionError("daemon unreachable"))
    assert _judge(source, "print(42)") == Verdict.INTERNAL_ERROR
    assert client.closed is True


def test_docker_source_connection_drop_while_waiting_is_time_limit():
    source, _, container = _docker_source(wait_error=RequestsConnectionError("read timed out"))
    assert _judge(source, "while 1: pass") == Verdict.TIME_LIMIT_EXCEEDED
    assert container.removed is True
