"""
Execution of JXA programs against Apple Mail.

A program is wrapped in a harness, written to a temporary file and run with
``osascript -l JavaScript``. The harness always prints a JSON payload: either
the program's return value or an error sentinel ``{error, message, stack}``.
"""

import asyncio
import json
import logging
import os
import tempfile
import textwrap
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from mcp_apple_mail.config import DEFAULT_JXA_TIMEOUT, DEFAULT_MAX_OUTPUT_BYTES, Settings
from mcp_apple_mail.errors import BridgeTimeoutError, HostExecutionError, OutputLimitError, ProtocolError
from mcp_apple_mail.jxa import Command, render

logger = logging.getLogger(__name__)

OSASCRIPT_COMMAND = ('osascript', '-l', 'JavaScript')
READ_CHUNK_SIZE = 64 * 1024

HARNESS = """\
ObjC.import('stdlib');
ObjC.import('Foundation');

function run() {
  try {
    const result = (function() {
%s
    })();

    return JSON.stringify(result === undefined ? null : result);
  } catch (error) {
    return JSON.stringify({
      error: true,
      message: error.toString(),
      stack: error.stack || ''
    });
  }
}
"""


def wrap_program(program: str) -> str:
    """Embed a program body in the harness that serializes its result or error."""
    return HARNESS % textwrap.indent(program.strip('\n'), ' ' * 6)


def is_error_payload(payload: Any) -> bool:
    return isinstance(payload, dict) and payload.get('error') is True


async def _read_capped(stream: asyncio.StreamReader, limit: int) -> bytes:
    chunks = []
    size = 0
    while True:
        chunk = await stream.read(READ_CHUNK_SIZE)
        if not chunk:
            return b''.join(chunks)
        size += len(chunk)
        if size > limit:
            raise OutputLimitError(limit)
        chunks.append(chunk)


async def _terminate(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
        await process.wait()


async def execute(
    program: str,
    timeout: float = DEFAULT_JXA_TIMEOUT,
    command: Sequence[str] = OSASCRIPT_COMMAND,
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
    script_dir: str | None = None,
) -> Any:
    """
    Run a JXA program body and return its decoded result.

    Args:
        program: Program body; its ``return`` value becomes the result
        timeout: Deadline in seconds for the whole child process
        command: Host command line; the script path is appended to it
        max_output_bytes: Cap on stdout and stderr, each
        script_dir: Directory for the temporary script (system default if None)

    Returns:
        The JSON-decoded return value of the program

    Raises:
        BridgeTimeoutError: The deadline passed; the process was killed
        OutputLimitError: The host wrote more than max_output_bytes
        ProtocolError: Stdout was not a JSON document
        HostExecutionError: The program reported an error or the host exited non-zero
    """
    script_path = None
    try:
        try:
            with tempfile.NamedTemporaryFile(
                'w', prefix='mail-jxa-', suffix='.js', dir=script_dir, encoding='utf-8', delete=False
            ) as script:
                script_path = Path(script.name)
                script.write(wrap_program(program))
        except OSError as e:
            raise HostExecutionError(f'Could not write JXA script: {e}') from e

        return await _run_script(script_path, timeout, command, max_output_bytes)
    finally:
        if script_path is not None:
            script_path.unlink(missing_ok=True)


async def _run_script(
    script_path: Path, timeout: float, command: Sequence[str], max_output_bytes: int
) -> Any:
    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            os.fspath(script_path),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise HostExecutionError(f'Could not start {command[0]}: {e}') from e

    async def communicate() -> tuple[bytes, bytes]:
        readers = [
            asyncio.ensure_future(_read_capped(process.stdout, max_output_bytes)),
            asyncio.ensure_future(_read_capped(process.stderr, max_output_bytes)),
        ]
        try:
            stdout, stderr = await asyncio.gather(*readers)
        finally:
            for reader in readers:
                reader.cancel()
        await process.wait()
        return stdout, stderr

    try:
        stdout, stderr = await asyncio.wait_for(communicate(), timeout)
    except asyncio.TimeoutError:
        logger.warning('JXA script %s timed out after %ss', script_path.name, timeout)
        raise BridgeTimeoutError(timeout) from None
    finally:
        # Covers timeout, output overflow and task cancellation
        await _terminate(process)

    err_text = stderr.decode('utf-8', errors='replace').strip()
    if process.returncode != 0:
        raise HostExecutionError(
            err_text or f'osascript exited with status {process.returncode}',
            returncode=process.returncode,
        )
    if err_text:
        logger.debug('JXA stderr: %s', err_text)

    out_text = stdout.decode('utf-8', errors='replace').strip()
    try:
        payload = json.loads(out_text)
    except json.JSONDecodeError as e:
        raise ProtocolError(f'Could not decode Mail automation output: {e}', output=out_text[:500]) from e

    if is_error_payload(payload):
        raise HostExecutionError(
            str(payload.get('message') or 'JXA execution failed'),
            stack=str(payload.get('stack') or ''),
        )

    return payload


class JXABridge:
    """Renders commands and runs them with the limits from the settings."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.command = (settings.osascript_path, *OSASCRIPT_COMMAND[1:])

    async def run(self, command: Command, timeout: float | None = None) -> Any:
        """
        Execute a command against Mail.

        Args:
            command: The command to render and run
            timeout: Deadline in seconds (defaults to settings.jxa_timeout)

        Returns:
            The decoded result of the command
        """
        timeout = timeout if timeout is not None else self.settings.jxa_timeout
        logger.debug('Running JXA command %s (timeout %ss)', command.op.value, timeout)
        return await execute(
            render(command),
            timeout=timeout,
            command=self.command,
            max_output_bytes=self.settings.max_output_bytes,
            script_dir=self.settings.script_dir,
        )
