"""Live audio recording module."""

import asyncio
import logging
import shlex
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional

from .config import CaptureConfig
from .errors import AcquisitionFailure
from .payload import AudioPayload

logger = logging.getLogger(__name__)

# Define a buffer size for reading from stdout
BUFFER_SIZE = 4096

PayloadCallback = Callable[[AudioPayload], Awaitable[Any]]
TickCallback = Callable[[int], Any]


class CaptureStateEnum(str, Enum):
    """Possible states of the recorder."""

    IDLE = "Idle"
    RECORDING = "Recording"


class RecordingCapture:
    """Records encoded audio from a recorder subprocess."""

    def __init__(self, config: CaptureConfig, on_payload: Optional[PayloadCallback] = None):
        """Initialize audio capture.

        Args:
            config: The capture configuration.
            on_payload: Coroutine function receiving the payload assembled on stop.
        """
        self.config = config
        self.on_payload = on_payload

        # Internal state
        self._process: Optional[asyncio.subprocess.Process] = None
        self._reader_task: Optional[asyncio.Task] = None
        self._timer_task: Optional[asyncio.Task] = None
        self._audio_buffer: List[bytes] = []
        self._state = CaptureStateEnum.IDLE
        self._elapsed_seconds = 0
        self._tick_observers: List[TickCallback] = []

    def add_tick_observer(self, observer: TickCallback) -> None:
        """Register a callback receiving the elapsed seconds on every tick."""
        self._tick_observers.append(observer)

    @property
    def state(self) -> CaptureStateEnum:
        return self._state

    @property
    def is_recording(self) -> bool:
        return self._state == CaptureStateEnum.RECORDING

    @property
    def elapsed_seconds(self) -> int:
        """Seconds recorded so far, for display only."""
        return self._elapsed_seconds

    async def _read_audio_stream(self) -> None:
        """Reads encoded audio data from the subprocess stdout."""
        if not self._process or not self._process.stdout:
            logger.error("Recorder process or stdout not available for reading.")
            return

        logger.info("Audio reader task started.")
        try:
            while True:
                data = await self._process.stdout.read(BUFFER_SIZE)
                if not data:
                    logger.info("Recorder stdout stream ended.")
                    break
                self._audio_buffer.append(data)
        except asyncio.CancelledError:
            logger.info("Audio reader task cancelled.")
        except Exception as e:
            logger.exception(f"Error in audio reader task: {e}")
        finally:
            logger.info("Audio reader task finished.")

    async def _count_seconds(self) -> None:
        """Increments the elapsed counter once per second."""
        try:
            while True:
                await asyncio.sleep(1.0)
                self._elapsed_seconds += 1
                for observer in self._tick_observers:
                    try:
                        observer(self._elapsed_seconds)
                    except Exception:
                        logger.exception("Recording tick observer failed")
        except asyncio.CancelledError:
            pass

    async def _acquire(self) -> asyncio.subprocess.Process:
        """Spawn the recorder and make sure it stays alive."""
        command = shlex.split(self.config.record_command)

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except (FileNotFoundError, PermissionError) as e:
            raise AcquisitionFailure(f"Recorder command unavailable: {command[0]} ({e})") from e
        except OSError as e:
            raise AcquisitionFailure(f"Failed to start recorder: {e}") from e

        if self.config.acquire_grace_s > 0:
            try:
                returncode = await asyncio.wait_for(
                    process.wait(), timeout=self.config.acquire_grace_s
                )
            except asyncio.TimeoutError:
                # Still running after the grace period, the device is ours
                return process
            raise AcquisitionFailure(
                f"Recorder exited immediately with code {returncode}"
            )

        return process

    async def start(self) -> None:
        """Start recording.

        Raises:
            AcquisitionFailure: If the recording device can't be acquired.
        """
        if self.is_recording:
            logger.warning("Audio capture is already running.")
            return

        logger.info(f"Starting audio capture: {self.config.record_command}")
        self._audio_buffer.clear()
        self._elapsed_seconds = 0

        try:
            self._process = await self._acquire()
        except AcquisitionFailure as e:
            logger.error(f"Could not acquire recording device: {e}")
            self._process = None
            raise

        logger.info(f"Started recorder process with PID: {self._process.pid}")
        self._state = CaptureStateEnum.RECORDING
        self._reader_task = asyncio.create_task(self._read_audio_stream())
        self._timer_task = asyncio.create_task(self._count_seconds())

    async def _release(self) -> None:
        """Terminate the recorder and wait for its helper tasks."""
        if self._timer_task and not self._timer_task.done():
            self._timer_task.cancel()
            try:
                await self._timer_task
            except asyncio.CancelledError:
                pass
        self._timer_task = None

        if self._process and self._process.returncode is None:
            try:
                self._process.terminate()
                await asyncio.wait_for(
                    self._process.wait(), timeout=self.config.stop_timeout_s
                )
                logger.info("Recorder process terminated.")
            except asyncio.TimeoutError:
                logger.warning("Timeout waiting for recorder to terminate, killing.")
                self._process.kill()
            except ProcessLookupError:
                pass  # Process already finished
            except Exception as e:
                logger.exception(f"Error stopping recorder process: {e}")

        # Let the reader pick up what the recorder flushed on exit
        if self._reader_task and not self._reader_task.done():
            try:
                await asyncio.wait_for(
                    self._reader_task, timeout=self.config.stop_timeout_s
                )
            except asyncio.TimeoutError:
                logger.warning("Timeout draining recorder output.")
                self._reader_task.cancel()

        self._process = None
        self._reader_task = None
        self._state = CaptureStateEnum.IDLE

    async def stop(self) -> Optional[AudioPayload]:
        """Stop recording and hand the assembled payload on.

        Returns:
            The assembled payload, or None if capture was not running.

        Raises:
            AcquisitionFailure: If no audio was captured.
        """
        if not self.is_recording:
            logger.warning("Audio capture is not running.")
            return None

        logger.info("Stopping audio capture.")
        try:
            await self._release()
        finally:
            chunks = list(self._audio_buffer)
            self._audio_buffer.clear()

        if not chunks:
            raise AcquisitionFailure("No audio was recorded")

        payload = AudioPayload(
            data=b"".join(chunks),
            media_type=self.config.media_type,
            name=self.config.file_name,
        )
        logger.info(
            f"Assembled {len(chunks)} chunks into {payload.size} byte payload "
            f"({payload.media_type}, {self._elapsed_seconds}s)."
        )

        if self.on_payload:
            await self.on_payload(payload)

        return payload

    async def close(self) -> None:
        """Release the recording device without emitting a payload."""
        if not self.is_recording and not self._process:
            return

        logger.info("Closing audio capture.")
        await self._release()
        self._audio_buffer.clear()
