"""
Log-stream lifecycle for a test environment: start it, and at teardown scan
node logs, then flush.
"""

from typing import Any, Optional

from chainbox.commands.errors import ConcerningLogError
from chainbox.commands.utils import ConsoleLogger, get_absolute_folder_path
from chainbox.testenv.config import LOG_TARGET_FILE, GlobalTestConfig
from chainbox.testenv.log_scanner import LogLevel, scan_log_line
from chainbox.testenv.logstream import LogProcessor, LogStream
from chainbox.testenv.scan_policy import LogScanPolicy


def start_log_stream(
    env,
    test_config: GlobalTestConfig,
    policy: Optional[LogScanPolicy],
    test_handle: Any,
    logger: ConsoleLogger,
) -> LogStream:
    """Create the environment's log stream.

    Scanning reads the captured files, so an enabled policy adds the file
    target to the test config's log targets when it is missing.
    """
    targets = test_config.logging.log_stream.log_targets
    if policy is not None and policy.is_enabled():
        if LOG_TARGET_FILE not in [str(target).lower() for target in targets]:
            logger.debug("Enabling logging to file in order to support node log scanning")
            targets.append(LOG_TARGET_FILE)

    env.log_stream = LogStream(test_handle, test_config.logging, logger=logger)
    return env.log_stream


class LogStreamTeardown:
    """Cleanup callback that shuts the log stream down.

    Registered before any other environment cleanup so that it runs last and
    captures the output of every other shutdown.
    """

    def __init__(
        self,
        env,
        test_config: GlobalTestConfig,
        policy: Optional[LogScanPolicy],
        node_count: int,
        test_handle: Any,
        logger: ConsoleLogger,
    ):
        self.env = env
        self.test_config = test_config
        self.policy = policy
        self.node_count = node_count
        self.test_handle = test_handle
        self.logger = logger

    def __call__(self) -> None:
        self.logger.info("Shutting down LogStream")
        try:
            log_path = get_absolute_folder_path(self.test_config.logging.log_dir)
            self.logger.info("LogStream logs folder location", absolute_path=log_path)
        except OSError:
            pass

        # flush when the test failed or when explicitly told to collect logs
        should_flush = (
            self.test_handle.failed() or self.test_config.logging.test_log_collect
        )

        log_stream = self.env.log_stream
        try:
            # scan even if the test already failed, it may reveal more problems
            if self.policy is not None and self.policy.is_enabled():
                if self.scan_node_logs():
                    should_flush = True

            if should_flush:
                self._flush(log_stream)
        finally:
            if not should_flush and log_stream is not None:
                self._close_quietly(log_stream)
        self.logger.info("Finished shutting down LogStream")

    def _flush(self, log_stream) -> None:
        self.logger.info("Flushing LogStream logs")
        try:
            log_stream.flush_and_shutdown()
        except Exception as e:
            self.logger.error("Error flushing and shutting down LogStream", error=e)
        log_stream.print_log_targets_locations()
        try:
            log_stream.save_log_location_in_test_summary()
        except OSError as e:
            self.logger.error("Error saving log location in test summary", error=e)

    def _close_quietly(self, log_stream) -> None:
        # nothing is reported for a passing test; files and readers still go
        for problem in log_stream.shutdown():
            self.logger.debug("LogStream did not close cleanly", problem=problem)

    def _node_at(self, index: int):
        cluster = self.env.cl_cluster
        if cluster is None or cluster.nodes is None:
            return None
        # cluster may be partially constructed if an earlier step failed
        if index >= len(cluster.nodes):
            return None
        return cluster.nodes[index]

    def scan_node_logs(self) -> bool:
        """Scan each node's logs in order; stop at the first concerning node.

        Nodes are processed one at a time: the processor holds the log
        stream's intake lock while it reads.

        Returns:
            True if concerning logs were found.
        """
        policy = self.policy
        failing_level = policy.failing_level
        if failing_level is None:
            failing_level = LogLevel.DPANIC
        processor = LogProcessor(self.env.log_stream, initial=0)

        def process(line: str, count: int) -> int:
            return scan_log_line(
                self.logger,
                line,
                failing_level,
                count,
                policy.threshold,
                policy.allowed_messages,
            )

        found = False
        for index in range(self.node_count):
            node = self._node_at(index)
            if node is None:
                continue
            try:
                processor.process_container_logs(node.container_name, process)
            except ConcerningLogError as e:
                found = True
                self.test_handle.error(f"Found a concerning log in node logs: {e}")
                break
            except Exception as e:
                self.logger.error(
                    "Error processing node logs", error=e, node=node.container_name
                )
                continue
        self.logger.info("Finished scanning node logs for concerning errors")
        return found
