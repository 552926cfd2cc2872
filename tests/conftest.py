"""
Pytest configuration and shared fixtures for the speedprobe test suite.

This module provides common fixtures, a scripted stand-in for the iperf
runner and observer recorders shared by the test modules.
"""

import re
import shutil
import sys
import tempfile
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pytest

# Add src to Python path for testing
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from speedprobe.models import ProbeConfig, RunningStats  # noqa: E402
from speedprobe.parser import SpeedParser  # noqa: E402
from speedprobe.validation import SpeedParseError  # noqa: E402


# ============================================================================
# Test Configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


# ============================================================================
# Core Fixtures
# ============================================================================


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def probe_config(temp_dir):
    """Probe configuration pointing at a temporary working directory."""
    return ProbeConfig(
        writable_dir=temp_dir,
        iperf_executable="iperf3",
        user_args="-t 5",
        idle_timeout_millis=2000,
        max_start_attempts=3,
        termination_timeout=1.0,
        parser="text",
    )


@pytest.fixture
def sample_config_data():
    """Sample configuration document for testing."""
    return {
        "probe": {
            "writable_dir": ".",
            "iperf_executable": "iperf3",
            "user_args": "-t 10 -i 1",
            "idle_timeout_millis": 5000,
            "max_start_attempts": 5,
            "termination_timeout": 2.0,
            "parser": "text",
        },
        "logging": {"level": "INFO"},
    }


# ============================================================================
# Parser and Observer Fixtures
# ============================================================================


class RateParser(SpeedParser):
    """Parses lines of the form ``rate=<n>bps``."""

    RATE_RE = re.compile(r"^rate=(\d+)bps$")

    def parse_speed(self, line: str) -> int:
        match = self.RATE_RE.match(line)
        if not match:
            raise SpeedParseError(f"Not a rate line: {line!r}", line=line)
        return int(match.group(1))


@pytest.fixture
def rate_parser():
    return RateParser()


class ObserverRecorder:
    """Records every observer callback of a measurement task."""

    def __init__(self):
        self.lock = threading.Lock()
        self.starts = 0
        self.updates: List[Tuple[RunningStats, int]] = []
        self.finishes: List[RunningStats] = []
        self.logs: List[Tuple[str, str, Optional[BaseException]]] = []
        self.finished = threading.Event()
        self.events: List[str] = []

    def on_start(self) -> None:
        with self.lock:
            self.starts += 1
            self.events.append("start")

    def on_speed_update(self, stats: RunningStats, speed: int) -> None:
        with self.lock:
            self.updates.append((stats, speed))
            self.events.append(f"update:{speed}")

    def on_finish(self, stats: RunningStats) -> None:
        with self.lock:
            self.finishes.append(stats)
            self.events.append("finish")
        self.finished.set()

    def on_log(self, tag: str, message: str, error: Optional[BaseException] = None) -> None:
        with self.lock:
            self.logs.append((tag, message, error))

    def logs_with_tag(self, tag: str) -> List[Tuple[str, str, Optional[BaseException]]]:
        with self.lock:
            return [entry for entry in self.logs if entry[0] == tag]

    def wait_for_updates(self, count: int, timeout: float = 5.0) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            with self.lock:
                if len(self.updates) >= count:
                    return True
            time.sleep(0.01)
        return False


@pytest.fixture
def recorder():
    return ObserverRecorder()


# ============================================================================
# Scripted Runner
# ============================================================================


@dataclass
class RunnerScript:
    """
    Behaviour of a FakeIperfRunner.

    ``events`` are ``(stream, line)`` pairs replayed after start. With
    ``hang`` the fake process keeps running after its output until
    termination is requested.
    """

    events: List[Tuple[str, str]] = field(default_factory=list)
    hang: bool = False
    line_delay: float = 0.0
    start_errors: List[BaseException] = field(default_factory=list)
    termination_error: Optional[BaseException] = None
    build_error: Optional[BaseException] = None


class FakeIperfRunner:
    """In-process stand-in for IperfRunner driven by a RunnerScript."""

    def __init__(self, script: RunnerScript, settings: Dict[str, Any]):
        self.script = script
        self.settings = settings
        self.start_calls: List[str] = []
        self.termination_requests = 0
        self.finished = threading.Event()
        self._terminated = threading.Event()

    def start(self, args: str) -> None:
        self.start_calls.append(args)
        if self.script.start_errors:
            raise self.script.start_errors.pop(0)
        threading.Thread(target=self._replay, daemon=True).start()

    def request_termination(self) -> None:
        self.termination_requests += 1
        self._terminated.set()
        if self.script.termination_error is not None:
            raise self.script.termination_error

    def _replay(self) -> None:
        for stream, line in self.script.events:
            if self._terminated.is_set():
                break
            if self.script.line_delay:
                time.sleep(self.script.line_delay)
            handler = self.settings["stdout"] if stream == "stdout" else self.settings["stderr"]
            handler(line)
        if self.script.hang:
            self._terminated.wait(timeout=10.0)
        self.settings["finish"]()
        self.finished.set()


class FakeRunnerBuilder:
    """Mirrors IperfRunner.Builder and records the runners it builds."""

    def __init__(self, script: RunnerScript, created: List[FakeIperfRunner], writable_dir: str):
        self._script = script
        self._created = created
        self._settings: Dict[str, Any] = {"writable_dir": writable_dir}

    def stdout_lines_handler(self, handler):
        self._settings["stdout"] = handler
        return self

    def stderr_lines_handler(self, handler):
        self._settings["stderr"] = handler
        return self

    def on_finish_callback(self, handler):
        self._settings["finish"] = handler
        return self

    def executable(self, executable):
        self._settings["executable"] = executable
        return self

    def termination_timeout(self, seconds):
        self._settings["termination_timeout"] = seconds
        return self

    def build(self) -> FakeIperfRunner:
        if self._script.build_error is not None:
            raise self._script.build_error
        runner = FakeIperfRunner(self._script, self._settings)
        self._created.append(runner)
        return runner


class FakeRunnerFactory:
    """Callable passed as ``runner_builder`` to StartIperfTask."""

    def __init__(self, script: RunnerScript):
        self.script = script
        self.runners: List[FakeIperfRunner] = []

    def __call__(self, writable_dir: str) -> FakeRunnerBuilder:
        return FakeRunnerBuilder(self.script, self.runners, writable_dir)

    @property
    def runner(self) -> FakeIperfRunner:
        return self.runners[-1]


@pytest.fixture
def fake_runner_factory():
    """Build a FakeRunnerFactory from keyword arguments of RunnerScript."""

    def _make(**script_kwargs) -> FakeRunnerFactory:
        return FakeRunnerFactory(RunnerScript(**script_kwargs))

    return _make


# ============================================================================
# Cleanup
# ============================================================================


@pytest.fixture(autouse=True)
def clear_config_after_test():
    """Automatically clear configuration cache after each test."""
    original_config_path = Path(__file__).parent.parent / "conf" / "config.toml"

    yield

    from speedprobe.config import clear_config_cache, set_config_path

    clear_config_cache()
    set_config_path(original_config_path)
