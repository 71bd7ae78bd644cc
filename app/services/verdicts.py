"""Per-test-case verdict sources.

The scoring evaluator only needs ``judge()``; which executor answers it is a
deployment decision made through ``VERDICT_SOURCE``:

* ``stub``   - deterministic text matching, no code is executed
* ``docker`` - one throw-away container per test case
"""

from __future__ import annotations

import asyncio
import base64
import enum
import logging
import os
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

import docker
from docker.errors import DockerException
from requests.exceptions import ConnectionError as RequestsConnectionError, ReadTimeout

_LOGGER = logging.getLogger(__name__)


class Verdict(str, enum.Enum):
    PASSED = "passed"
    WRONG_ANSWER = "wrong_answer"
    TIME_LIMIT_EXCEEDED = "time_limit_exceeded"
    RUNTIME_ERROR = "runtime_error"
    INTERNAL_ERROR = "internal_error"


class VerdictSource(Protocol):
    async def judge(
        self,
        *,
        source_code: str,
        language: str,
        stdin: str,
        expected_output: str,
        time_limit_seconds: float,
        memory_limit_bytes: int,
    ) -> Verdict:
        ...


def normalize_output(text: Optional[str]) -> str:
    """Ignore CRLF, trailing spaces on each line and trailing blank lines."""
    lines = (text or "").replace("\r\n", "\n").split("\n")
    return "\n".join(line.rstrip() for line in lines).rstrip("\n")


class StubVerdictSource:
    """Pattern-matching stand-in for a sandbox.

    Obvious infinite loops time out, explicit raises/throws are runtime
    errors, and code that contains a non-empty expected output verbatim
    passes.
    """

    LOOP_MARKERS = ("while true", "while(true)", "while (true)", "for(;;)", "for (;;)")
    ERROR_MARKERS = ("raise ", "throw ", "sys.exit(1)", "process.exit(1)")

    async def judge(
        self,
        *,
        source_code: str,
        language: str,
        stdin: str,
        expected_output: str,
        time_limit_seconds: float,
        memory_limit_bytes: int,
    ) -> Verdict:
        lowered = (source_code or "").lower()
        if any(marker in lowered for marker in self.LOOP_MARKERS):
            return Verdict.TIME_LIMIT_EXCEEDED
        if any(marker in lowered for marker in self.ERROR_MARKERS):
            return Verdict.RUNTIME_ERROR
        expected = normalize_output(expected_output)
        if expected and expected in (source_code or ""):
            return Verdict.PASSED
        return Verdict.WRONG_ANSWER


@dataclass(frozen=True)
class LanguageRuntime:
    image: str
    filename: str
    run: str


LANGUAGE_RUNTIMES: dict[str, LanguageRuntime] = {
    "python": LanguageRuntime("python:3.12-slim", "main.py", "python3 main.py"),
    "javascript": LanguageRuntime("node:20-slim", "main.js", "node main.js"),
    "cpp": LanguageRuntime("gcc:13", "main.cpp", "g++ -O2 -o main main.cpp && ./main"),
    "c": LanguageRuntime("gcc:13", "main.c", "gcc -O2 -o main main.c && ./main"),
    "java": LanguageRuntime("eclipse-temurin:21-jdk", "Main.java", "javac Main.java && java Main"),
}

LANGUAGE_ALIASES = {
    "py": "python",
    "python3": "python",
    "js": "javascript",
    "node": "javascript",
    "c++": "cpp",
}


def resolve_runtime(language: str) -> Optional[LanguageRuntime]:
    key = (language or "").strip().lower()
    return LANGUAGE_RUNTIMES.get(LANGUAGE_ALIASES.get(key, key))


class _WaitTimedOut(Exception):
    """The container outlived its time limit."""


class DockerVerdictSource:
    """Run each test case in a fresh, network-less container."""

    def __init__(
        self,
        *,
        docker_host: Optional[str] = None,
        client_factory: Optional[Callable[[], "docker.DockerClient"]] = None,
    ) -> None:
        self.docker_host = docker_host or os.getenv("JUDGE_DOCKER_HOST") or None
        self._client_factory = client_factory or self._create_docker_client

    async def judge(
        self,
        *,
        source_code: str,
        language: str,
        stdin: str,
        expected_output: str,
        time_limit_seconds: float,
        memory_limit_bytes: int,
    ) -> Verdict:
        runtime = resolve_runtime(language)
        if runtime is None:
            _LOGGER.info("Unsupported language %r", language)
            return Verdict.RUNTIME_ERROR

        try:
            exit_code, stdout = await asyncio.to_thread(
                self._run_case,
                runtime,
                source_code,
                stdin,
                time_limit_seconds,
                memory_limit_bytes,
            )
        except _WaitTimedOut:
            return Verdict.TIME_LIMIT_EXCEEDED
        except (DockerException, RequestsConnectionError, ReadTimeout) as exc:
            _LOGGER.warning("Docker verdict source failed: %s", exc)
            return Verdict.INTERNAL_ERROR

        if exit_code != 0:
            return Verdict.RUNTIME_ERROR
        if normalize_output(stdout) == normalize_output(expected_output):
            return Verdict.PASSED
        return Verdict.WRONG_ANSWER

    def _create_docker_client(self) -> "docker.DockerClient":
        if self.docker_host:
            return docker.DockerClient(base_url=self.docker_host)
        return docker.from_env()

    @staticmethod
    def _encode(text: str) -> str:
        return base64.b64encode((text or "").encode("utf-8")).decode("ascii")

    def _run_case(
        self,
        runtime: LanguageRuntime,
        source_code: str,
        stdin: str,
        time_limit_seconds: float,
        memory_limit_bytes: int,
    ) -> tuple[int, str]:
        script = (
            f'printf %s "$SOURCE_B64" | base64 -d > {runtime.filename}'
            ' && printf %s "$STDIN_B64" | base64 -d > input.txt'
            f" && ( {runtime.run} ) < input.txt"
        )
        options = {
            "command": ["sh", "-c", script],
            "environment": {
                "SOURCE_B64": self._encode(source_code),
                "STDIN_B64": self._encode(stdin),
            },
            "working_dir": "/tmp",
            "detach": True,
            "network_disabled": True,
            "labels": {"contest.judge": "1"},
        }
        if memory_limit_bytes > 0:
            options["mem_limit"] = memory_limit_bytes

        client = self._client_factory()
        container = None
        try:
            container = client.containers.run(runtime.image, **options)
            try:
                result = container.wait(timeout=max(time_limit_seconds, 0.1))
            except (ReadTimeout, RequestsConnectionError) as exc:
                # the docker transport reports an elapsed wait timeout this way
                raise _WaitTimedOut() from exc
            exit_code = int(result.get("StatusCode", 1))
            stdout = container.logs(stdout=True, stderr=False).decode("utf-8", errors="replace")
            return exit_code, stdout
        finally:
            if container is not None:
                try:
                    container.remove(force=True)
                except DockerException as exc:
                    _LOGGER.warning("Failed removing judge container %s: %s", getattr(container, "id", "?"), exc)
            client.close()


_verdict_source: Optional[VerdictSource] = None


def build_verdict_source(kind: Optional[str] = None) -> VerdictSource:
    kind = (kind or os.getenv("VERDICT_SOURCE", "stub")).strip().lower()
    if kind == "docker":
        return DockerVerdictSource()
    if kind != "stub":
        raise ValueError(f"Unsupported VERDICT_SOURCE '{kind}'")
    return StubVerdictSource()


def get_verdict_source() -> VerdictSource:
    """FastAPI dependency returning the process-wide verdict source."""

    global _verdict_source
    if _verdict_source is None:
        _verdict_source = build_verdict_source()
        _LOGGER.info("Using %s", type(_verdict_source).__name__)
    return _verdict_source


__all__ = [
    "DockerVerdictSource",
    "LANGUAGE_RUNTIMES",
    "StubVerdictSource",
    "Verdict",
    "VerdictSource",
    "build_verdict_source",
    "get_verdict_source",
    "normalize_output",
    "resolve_runtime",
]
