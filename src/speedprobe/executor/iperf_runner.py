"""
iperf subprocess runner.

This module launches the iperf client in a writable working directory,
streams its stdout and stderr line by line to registered handlers from
dedicated reader threads, and reports process exit once all output has been
delivered. Termination uses psutil to signal the whole process tree.
"""

import logging
import shlex
import subprocess
import threading
from pathlib import Path
from typing import Callable, IO, List, Optional, Union

import psutil

from ..models.endpoint import ServerAddr
from ..validation import IperfError, IperfTerminationError, handle_subprocess_error, ErrorSeverity

logger = logging.getLogger(__name__)

LineHandler = Callable[[str], None]
FinishHandler = Callable[[], None]

READER_JOIN_TIMEOUT = 5.0


def compose_iperf_args(endpoint: ServerAddr, user_args: str) -> str:
    """Build the flat iperf argument string for a server endpoint."""
    return f"-c {endpoint.ip} -p {endpoint.port_iperf} {user_args}".strip()


class _OutputGate:
    """
    Per-run switch for line delivery.

    Closed right before the finish callback, so a reader that outlived
    READER_JOIN_TIMEOUT cannot deliver lines after it.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._open = True

    def deliver(self, handler: LineHandler, line: str) -> bool:
        """Returns False if the line was dropped."""
        with self._lock:
            if not self._open:
                return False
            handler(line)
            return True

    def close(self) -> None:
        with self._lock:
            self._open = False


def _ignore_line(line: str) -> None:
    pass


def _ignore_finish() -> None:
    pass


class IperfRunner:
    """
    Runs one iperf client process at a time and streams its output.

    Stdout and stderr lines are delivered in arrival order per stream, from
    two reader threads. The finish callback runs once per started process,
    after the process has exited and both streams are drained.
    """

    class Builder:
        """Fluent builder wiring the output and completion handlers."""

        def __init__(self, writable_dir: Union[str, Path]):
            self._writable_dir = Path(writable_dir)
            self._stdout_handler: LineHandler = _ignore_line
            self._stderr_handler: LineHandler = _ignore_line
            self._finish_handler: FinishHandler = _ignore_finish
            self._executable = "iperf3"
            self._termination_timeout = 2.0

        def stdout_lines_handler(self, handler: LineHandler) -> "IperfRunner.Builder":
            self._stdout_handler = handler
            return self

        def stderr_lines_handler(self, handler: LineHandler) -> "IperfRunner.Builder":
            self._stderr_handler = handler
            return self

        def on_finish_callback(self, handler: FinishHandler) -> "IperfRunner.Builder":
            self._finish_handler = handler
            return self

        def executable(self, executable: str) -> "IperfRunner.Builder":
            self._executable = executable
            return self

        def termination_timeout(self, seconds: float) -> "IperfRunner.Builder":
            self._termination_timeout = seconds
            return self

        def build(self) -> "IperfRunner":
            """
            Raises:
                IperfError: If the working directory does not exist
            """
            if not self._writable_dir.is_dir():
                raise IperfError(f"Writable directory does not exist: {self._writable_dir}")
            return IperfRunner(
                writable_dir=self._writable_dir,
                executable=self._executable,
                stdout_handler=self._stdout_handler,
                stderr_handler=self._stderr_handler,
                finish_handler=self._finish_handler,
                termination_timeout=self._termination_timeout,
            )

    def __init__(
        self,
        writable_dir: Path,
        executable: str,
        stdout_handler: LineHandler,
        stderr_handler: LineHandler,
        finish_handler: FinishHandler,
        termination_timeout: float = 2.0,
    ):
        self.writable_dir = writable_dir
        self.executable = executable
        self.termination_timeout = termination_timeout
        self._stdout_handler = stdout_handler
        self._stderr_handler = stderr_handler
        self._finish_handler = finish_handler

        self._lock = threading.Lock()
        self._process: Optional[subprocess.Popen] = None
        self._termination_requested = False
        self._finished = threading.Event()
        self._finished.set()

    @property
    def pid(self) -> Optional[int]:
        process = self._process
        return process.pid if process else None

    @property
    def return_code(self) -> Optional[int]:
        process = self._process
        return process.returncode if process else None

    @property
    def is_running(self) -> bool:
        """True from a successful start until the finish callback has run."""
        return not self._finished.is_set()

    def start(self, args: str) -> None:
        """
        Spawn iperf with the given flat argument string.

        Returns once the process has been spawned; output is streamed from
        background threads.

        Raises:
            IperfError: If a run is in progress or the process cannot be spawned
            InterruptedError: If the spawn was interrupted and may be retried
        """
        with self._lock:
            if not self._finished.is_set():
                raise IperfError("iPerf is already running")

            try:
                tokens = shlex.split(args)
            except ValueError as e:
                raise IperfError(f"Invalid iPerf arguments '{args}': {e}") from e
            command = [self.executable] + tokens

            try:
                process = subprocess.Popen(
                    command,
                    cwd=self.writable_dir,
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    text=True,
                    encoding="utf-8",
                    errors="replace",
                    bufsize=1,  # Line buffered
                    start_new_session=True,
                )
            except InterruptedError:
                raise
            except (OSError, ValueError, subprocess.SubprocessError) as e:
                handle_subprocess_error(
                    error=e,
                    command=" ".join(command),
                    severity=ErrorSeverity.ERROR,
                    reraise=False,
                    logger=logger,
                )
                raise IperfError(f"Could not spawn {self.executable}: {e}") from e

            self._process = process
            self._termination_requested = False
            self._finished.clear()

        logger.info(f"iPerf started with PID {process.pid}: {' '.join(command)}")

        gate = _OutputGate()
        readers = [
            self._start_reader(process.stdout, self._stdout_handler, "stdout", gate),
            self._start_reader(process.stderr, self._stderr_handler, "stderr", gate),
        ]
        threading.Thread(
            target=self._wait_and_finish,
            args=(process, readers, gate),
            name=f"iperf-{process.pid}-waiter",
            daemon=True,
        ).start()

    def request_termination(self) -> None:
        """
        Kill the running iperf process and its children.

        Idempotent per run and a no-op when nothing is running. Waits at most
        ``termination_timeout`` seconds for the process to exit.

        Raises:
            IperfTerminationError: If the process could not be signalled
        """
        with self._lock:
            process = self._process
            if process is None or self._termination_requested:
                return
            self._termination_requested = True

        if process.poll() is not None:
            logger.debug(f"iPerf PID {process.pid} already exited, nothing to terminate")
            return

        try:
            parent = psutil.Process(process.pid)
            children = parent.children(recursive=True)
        except psutil.NoSuchProcess:
            return
        except psutil.AccessDenied as e:
            raise IperfTerminationError(f"Access denied to iPerf PID {process.pid}") from e
        except psutil.Error as e:
            raise IperfTerminationError(f"Could not inspect iPerf PID {process.pid}: {e}") from e

        logger.info(f"Killing iPerf PID {process.pid} and {len(children)} children")
        for child in children:
            self._kill(child)
        self._kill(parent)

        if children:
            _, alive = psutil.wait_procs(children, timeout=self.termination_timeout)
            if alive:
                logger.warning(f"{len(alive)} iPerf child processes still alive after SIGKILL")

        try:
            process.wait(timeout=self.termination_timeout)
        except subprocess.TimeoutExpired:
            logger.warning(
                f"iPerf PID {process.pid} did not exit within {self.termination_timeout}s of SIGKILL"
            )

    def wait(self, timeout: Optional[float] = None) -> Optional[int]:
        """
        Wait until the current run has finished and its callback has run.

        Returns:
            The process return code, or None on timeout or if never started
        """
        if not self._finished.wait(timeout):
            return None
        return self.return_code

    @staticmethod
    def _kill(proc: psutil.Process) -> None:
        try:
            proc.kill()
        except psutil.NoSuchProcess:
            pass
        except psutil.AccessDenied as e:
            raise IperfTerminationError(f"Access denied sending SIGKILL to PID {proc.pid}") from e
        except psutil.Error as e:
            raise IperfTerminationError(f"Could not send SIGKILL to PID {proc.pid}: {e}") from e

    def _start_reader(
        self, stream: IO[str], handler: LineHandler, name: str, gate: _OutputGate
    ) -> threading.Thread:
        thread = threading.Thread(
            target=self._read_lines,
            args=(stream, handler, name, gate),
            name=f"iperf-{name}-reader",
            daemon=True,
        )
        thread.start()
        return thread

    @staticmethod
    def _read_lines(stream: IO[str], handler: LineHandler, name: str, gate: _OutputGate) -> None:
        try:
            for line in stream:
                try:
                    if not gate.deliver(handler, line.rstrip("\r\n")):
                        logger.warning(f"Dropped iPerf {name} line received after run finished")
                except Exception as e:
                    logger.error(f"iPerf {name} handler failed: {e}", exc_info=True)
        except (OSError, ValueError) as e:
            # Pipe closed underneath us during termination
            logger.debug(f"Stopped reading iPerf {name}: {e}")
        finally:
            stream.close()

    def _wait_and_finish(
        self, process: subprocess.Popen, readers: List[threading.Thread], gate: _OutputGate
    ) -> None:
        return_code = process.wait()
        for reader in readers:
            reader.join(timeout=READER_JOIN_TIMEOUT)
            if reader.is_alive():
                logger.warning(f"{reader.name} did not drain within {READER_JOIN_TIMEOUT}s")
        gate.close()
        logger.info(f"iPerf PID {process.pid} exited with code {return_code}")
        try:
            self._finish_handler()
        finally:
            self._finished.set()
