"""Runs command lines through bash and captures both output streams."""

import subprocess
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import IO, Optional, Sequence

from .errors import ErrorKind, RotatorError
from .log_sink import LogSink

DEFAULT_SHELL = ("/usr/bin/env", "bash")

# Stop on the first failing step and on unset variables.
SAFETY_PREAMBLE = "set -eu\n"
EXIT_LINE = "exit $?;\n"
ENCODING = "utf-8"


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one command invocation."""

    exit_code: Optional[int]
    succeeded: bool
    stdout_text: str
    stderr_text: str
    source_command: str

    def as_result(self) -> "CommandResult":
        """Return this result if the command succeeded, raise otherwise.

        Raises:
            RotatorError: when the command exited non-zero or was killed
        """
        if not self.succeeded:
            raise RotatorError.from_message(
                f"A command exited with a non 0 exit code or with a signal. '{self.source_command}'"
            )
        return self


class ProcessRunner:
    """Feeds a command line to a fresh shell and drains its output concurrently."""

    def __init__(self, log_sink: Optional[LogSink] = None, shell: Sequence[str] = DEFAULT_SHELL):
        """Initialize process runner.

        Args:
            log_sink: Destination for captured output lines
            shell: Argument vector that starts the shell
        """
        self.log_sink = log_sink
        self.shell = list(shell)

    def run(self, command_line: str, capture_to_log: bool = True) -> CommandResult:
        """Run a command line and wait for it to finish.

        A non-zero exit code does not raise; use CommandResult.as_result()
        to demand success.

        Args:
            command_line: Shell command line to execute
            capture_to_log: Forward each output line to the log sink

        Returns:
            Exit status and full text of stdout and stderr
        """
        try:
            process = subprocess.Popen(
                self.shell,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            raise RotatorError(ErrorKind.IO, f"Cannot spawn shell {' '.join(self.shell)}: {e}", cause=e) from e

        if process.stdin is None:
            raise RotatorError.from_message("stdin was not redirected.")
        if process.stdout is None:
            raise RotatorError.from_message("stdout was not redirected.")
        if process.stderr is None:
            raise RotatorError.from_message("stderr was not redirected.")

        log = capture_to_log and self.log_sink is not None
        write_error = None

        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="snaprotator-drain") as pool:
            stdout_future = pool.submit(self._drain, process.stdout, "OUT", log)
            stderr_future = pool.submit(self._drain, process.stderr, "ERR", log)

            try:
                script = f"{SAFETY_PREAMBLE}{command_line}\n{EXIT_LINE}"
                process.stdin.write(script.encode(ENCODING))
                process.stdin.flush()
            except OSError as e:
                write_error = e
            finally:
                try:
                    process.stdin.close()
                except OSError as e:
                    write_error = write_error or e

        exit_status = process.wait()

        if write_error is not None:
            raise RotatorError(
                ErrorKind.IO, f"Cannot write to the shell's stdin: {write_error}", cause=write_error
            ) from write_error

        stdout_text = self._join_reader(stdout_future, "stdout")
        stderr_text = self._join_reader(stderr_future, "stderr")

        # Popen reports death by signal as a negative return code
        exit_code = exit_status if exit_status >= 0 else None

        return CommandResult(
            exit_code=exit_code,
            succeeded=exit_code == 0,
            stdout_text=stdout_text,
            stderr_text=stderr_text,
            source_command=command_line,
        )

    def run_without_log(self, command_line: str) -> CommandResult:
        """Run a command line without forwarding its output to the log."""
        return self.run(command_line, capture_to_log=False)

    def _drain(self, stream: IO[bytes], prefix: str, log: bool) -> str:
        # Lines end at \n or \r\n, a lone \r stays part of the line.
        chunks = []
        log_error = None

        with stream:
            for raw in stream:
                line = raw.decode(ENCODING, errors="replace")
                if line.endswith("\n"):
                    line = line[:-1]
                    if line.endswith("\r"):
                        line = line[:-1]
                chunks.append(f"{line}\n")

                if log and log_error is None:
                    try:
                        self.log_sink.log(f"{prefix} | {line}")
                    except Exception as e:
                        # Keep draining so the child never blocks on a full pipe.
                        log_error = e

        if log_error is not None:
            raise log_error

        return "".join(chunks)

    @staticmethod
    def _join_reader(future, stream_name: str) -> str:
        try:
            return future.result()
        except Exception as e:
            raise RotatorError(
                ErrorKind.MESSAGE, f"The {stream_name} reader failed: {e}", cause=e
            ) from e
