"""
Substreams Price Feed

Streaming source. Runs the substreams CLI as a long-lived subprocess and
parses the oracle price updates it prints as JSON lines.

The process is consumed through stream(), an async generator bound to the
process lifetime. A relaunch builds a fresh generator.
"""

import asyncio
import json
import logging
import os
from typing import AsyncIterator, List, Optional

from sei_prices.exceptions import PriceParseError, SourceUnavailableError
from sei_prices.price_feeds.base import PriceObservation, PriceSource, from_epoch_seconds, to_int

logger = logging.getLogger(__name__)

OUTPUT_MODULE = "store_set_oracle_prices"
STREAM_LINE_LIMIT = 1024 * 1024  # Bytes per JSON line
TERMINATE_GRACE_SECONDS = 5.0


def parse_line(line: str) -> Optional[PriceObservation]:
    """
    Parse one jsonl record from substreams.

    Returns None for blank lines and records that are not price updates.
    Raises PriceParseError for invalid JSON or a malformed price update.
    """
    line = line.strip()
    if not line:
        return None

    try:
        record = json.loads(line)
    except json.JSONDecodeError as e:
        raise PriceParseError(f"Invalid JSON: {e}", raw=line[:200])

    if not isinstance(record, dict):
        return None

    # Store deltas nest the update under "value"; accept bare updates too
    payload = record.get("value") if isinstance(record.get("value"), dict) else record
    price_id = payload.get("price_id")
    if not price_id:
        return None
    if not isinstance(price_id, str):
        raise PriceParseError(f"Invalid price_id: {price_id!r}", raw=line[:200])

    return PriceObservation(
        price_id=price_id,
        price=to_int(payload.get("price"), "price"),
        conf=to_int(payload.get("conf", 0), "conf"),
        expo=to_int(payload.get("expo"), "expo"),
        publish_time=from_epoch_seconds(payload.get("publish_time")),
        source="substreams",
    )


class SubstreamsPriceFeed(PriceSource):
    """
    Price source backed by the substreams CLI.

    Usage:
        feed = SubstreamsPriceFeed(endpoint, manifest_path, api_token)
        process = await feed.launch()
        exit_code = await feed.consume(process, store)
    """

    def __init__(
        self,
        endpoint: str,
        manifest_path: str,
        api_token: str = "",
        start_block: int = 0,
        binary: str = "substreams",
        idle_timeout: Optional[float] = 120.0,
        probe_timeout: float = 10.0,
        health=None,
    ):
        super().__init__(name="substreams", health=health)
        self.endpoint = endpoint
        self.manifest_path = manifest_path
        self.api_token = api_token
        self.start_block = start_block
        self.binary = binary
        self.idle_timeout = idle_timeout
        self.probe_timeout = probe_timeout

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_token)

    def build_command(self) -> List[str]:
        command = [
            self.binary,
            "run",
            f"--endpoint={self.endpoint}",
            f"--manifest={self.manifest_path}",
        ]
        if self.start_block:
            command.append(f"--start-block={self.start_block}")
        command.extend(["--output=jsonl", OUTPUT_MODULE])
        return command

    async def is_installed(self) -> bool:
        """Probe `substreams --version`"""
        try:
            process = await asyncio.create_subprocess_exec(
                self.binary, "--version",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError:
            logger.warning("Substreams CLI not found. Will use Pyth REST API as fallback.")
            return False

        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=self.probe_timeout)
        except asyncio.TimeoutError:
            logger.warning("Substreams CLI did not answer --version in time")
            await self.terminate(process)
            return False

        if process.returncode != 0:
            logger.warning(f"Substreams CLI exited with code {process.returncode} on --version")
            return False

        logger.info(f"Substreams CLI found: {stdout.decode(errors='replace').strip()}")
        return True

    async def launch(self) -> asyncio.subprocess.Process:
        """
        Start the long-lived substreams process.

        Raises:
            SourceUnavailableError: the binary is missing or cannot be executed
        """
        command = self.build_command()
        logger.info(f"Running command: {' '.join(command)}")

        env = dict(os.environ)
        if self.api_token:
            env["SUBSTREAMS_API_TOKEN"] = self.api_token

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
                limit=STREAM_LINE_LIMIT,
            )
        except OSError as e:
            raise SourceUnavailableError(f"Failed to start Substreams process: {e}", source=self.name)

        logger.info(f"Pyth Substreams data ingestion started (pid {process.pid})")
        return process

    async def _log_stderr(self, process: asyncio.subprocess.Process):
        while True:
            try:
                line = await process.stderr.readline()
            except ValueError:
                logger.warning("Skipping oversized Substreams stderr line")
                continue
            if not line:
                return
            logger.warning(f"Substreams stderr: {line.decode(errors='replace').rstrip()}")

    async def stream(self, process: asyncio.subprocess.Process) -> AsyncIterator[PriceObservation]:
        """
        Yield observations from the process stdout until it closes.

        Malformed lines are logged and skipped. If no line arrives within
        idle_timeout the process is terminated and the stream ends.
        """
        stderr_task = asyncio.create_task(self._log_stderr(process)) if process.stderr else None

        try:
            while True:
                try:
                    raw = await asyncio.wait_for(process.stdout.readline(), timeout=self.idle_timeout)
                except asyncio.TimeoutError:
                    logger.warning(f"Substreams produced no output for {self.idle_timeout}s, terminating")
                    await self.terminate(process)
                    return
                except ValueError as e:
                    # Line longer than STREAM_LINE_LIMIT; the reader already dropped it
                    logger.warning(f"Skipping oversized Substreams line: {e}")
                    continue

                if not raw:
                    return

                try:
                    observation = parse_line(raw.decode(errors="replace"))
                except PriceParseError as e:
                    logger.warning(f"Failed to parse JSON: {e.message}")
                    continue

                if observation is not None:
                    logger.debug(f"Received price update for {observation.price_id}")
                    yield observation
        finally:
            if stderr_task:
                stderr_task.cancel()
                try:
                    await stderr_task
                except asyncio.CancelledError:
                    pass

    async def consume(self, process: asyncio.subprocess.Process, store) -> int:
        """Persist everything the process emits; returns its exit code"""
        async for observation in self.stream(process):
            await self.persist(store, observation)
        return await process.wait()

    async def iter_observations(self) -> AsyncIterator[PriceObservation]:
        process = await self.launch()
        try:
            async for observation in self.stream(process):
                yield observation
        finally:
            await self.terminate(process)

    async def terminate(self, process: asyncio.subprocess.Process):
        """Terminate the process, killing it if it ignores SIGTERM"""
        if process.returncode is not None:
            return
        try:
            process.terminate()
            await asyncio.wait_for(process.wait(), timeout=TERMINATE_GRACE_SECONDS)
        except ProcessLookupError:
            return
        except asyncio.TimeoutError:
            logger.warning("Substreams process ignored SIGTERM, killing")
            try:
                process.kill()
            except ProcessLookupError:
                return
            await process.wait()
