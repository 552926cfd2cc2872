"""
Supervised iperf measurement task.

StartIperfTask launches the iperf client against a discovered server,
feeds its output through an IperfOutputProcessor and keeps the run under an
idle watchdog and the pipeline's TaskKiller. The returned RunHandle
resolves with the server endpoint once the first throughput sample has been
parsed, which is the signal for the next pipeline stage to proceed.
"""

import logging
from typing import Callable, Optional

from ..executor import IperfRunner, compose_iperf_args
from ..models.config import ProbeConfig
from ..models.endpoint import ServerAddr
from ..models.stats import RunningStats
from ..parser import SpeedParser
from ..validation import (
    ConfigError,
    FatalStartupError,
    IperfError,
    validate_iperf_user_args,
)
from ..watchdog import IdleWatchdog
from .cancellation import TaskKiller, TerminationAction
from .handle import RunHandle
from .observers import default_log_sink, noop_finish, noop_speed_update, noop_start
from .output_processor import IperfOutputProcessor, LogSink

logger = logging.getLogger(__name__)

LOG_TAG = "StartIperfTask"

NO_DATA_MESSAGE = "iPerf finished without producing measurements"


class StartIperfTask:
    """
    Pipeline task that runs one iperf measurement against a server.

    The observers are invoked from iperf reader threads, except on_start,
    which runs on the thread calling prepare().
    """

    def __init__(
        self,
        config: ProbeConfig,
        speed_parser: SpeedParser,
        on_start: Callable[[], None] = noop_start,
        on_speed_update: Callable[[RunningStats, int], None] = noop_speed_update,
        on_finish: Callable[[RunningStats], None] = noop_finish,
        on_log: LogSink = default_log_sink,
        runner_builder: Callable[[str], IperfRunner.Builder] = IperfRunner.Builder,
    ):
        self.config = config
        self.speed_parser = speed_parser
        self.on_start = on_start
        self.on_speed_update = on_speed_update
        self.on_finish = on_finish
        self.on_log = on_log
        self._runner_builder = runner_builder

    def prepare(
        self,
        argument: ServerAddr,
        killer: TaskKiller,
        handle: Optional[RunHandle] = None,
    ) -> RunHandle:
        """
        Run the measurement on the calling thread.

        Blocks until the run ends (iperf exits, the idle watchdog fires or
        the killer is triggered). Pass a ``handle`` to observe the started
        edge from another thread while this call is still blocking.

        Args:
            argument: Server to measure against
            killer: Cancellation registry of the surrounding pipeline
            handle: Handle to settle; a new one is created if omitted

        Returns:
            The settled or settling RunHandle

        Raises:
            ConfigError: If user args contain -c or -p; raised before spawning
            FatalStartupError: If iperf cannot be spawned
        """
        handle = handle if handle is not None else RunHandle()

        try:
            user_args = validate_iperf_user_args(self.config.user_args, field_name="probe.user_args")
        except ConfigError as e:
            logger.error(f"Refusing to start iPerf: {e}")
            handle.reject(str(e), e)
            raise

        idle_watchdog = IdleWatchdog(on_log=self.on_log)

        def on_run_finished() -> None:
            idle_watchdog.disarm()
            handle.reject(NO_DATA_MESSAGE)

        processor = IperfOutputProcessor(
            idle_watchdog=idle_watchdog,
            speed_parser=self.speed_parser,
            on_speed_update=self.on_speed_update,
            on_finish=self.on_finish,
            on_log=self.on_log,
            on_started=lambda: handle.resolve(argument),
            on_run_finished=on_run_finished,
        )

        try:
            iperf_runner = (
                self._runner_builder(str(self.config.writable_dir))
                .executable(self.config.iperf_executable)
                .termination_timeout(self.config.termination_timeout)
                .stdout_lines_handler(processor.on_iperf_stdout_line)
                .stderr_lines_handler(processor.on_iperf_stderr_line)
                .on_finish_callback(processor.on_iperf_finish)
                .build()
            )
        except IperfError as e:
            self._fail_startup(handle, "Could not prepare iPerf runner", e)

        iperf_args = compose_iperf_args(argument, user_args)
        self.on_start()

        attempt = 0
        while True:
            attempt += 1
            try:
                iperf_runner.start(iperf_args)
            except InterruptedError as e:
                self.on_log(LOG_TAG, "Interrupted iPerf start. Ignoring...", e)
                if attempt >= self.config.max_start_attempts:
                    self._fail_startup(
                        handle,
                        f"Could not start iPerf after {attempt} interrupted attempts",
                        e,
                    )
                continue
            except IperfError as e:
                self._fail_startup(handle, "Could not start iPerf", e)

            terminate = TerminationAction(iperf_runner, self.on_log)
            killer.register(terminate)
            fired = idle_watchdog.register_blocking(self.config.idle_timeout_millis, terminate)
            if fired:
                logger.warning(
                    f"iPerf against {argument} produced no output for "
                    f"{self.config.idle_timeout_millis}ms and was terminated"
                )
            break

        return handle

    def _fail_startup(self, handle: RunHandle, message: str, cause: BaseException) -> None:
        error = FatalStartupError(message, cause)
        handle.reject(message, cause)
        logger.error(f"{message}: {cause}")
        raise error from cause
