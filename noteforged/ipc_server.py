"""IPC server implementation using Unix domain sockets."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional, Set

from pydantic import ValidationError

from .audio_capture import RecordingCapture
from .display import PanelView, format_elapsed
from .errors import AcquisitionFailure, ExportUnavailable
from .ipc_models import (
    AckResponse,
    CommandWrapper,
    CopyCommand,
    ErrorResponse,
    ExportCommand,
    ExportResponse,
    PanelName,
    PipelineStatusModel,
    RecordStartCommand,
    RecordStopCommand,
    ResponseWrapper,
    ShutdownCommand,
    StateNotification,
    StatusCommand,
    StatusResponse,
    SubscribeCommand,
    ToastNotification,
    UploadCommand,
)
from .notifications import Notification, NotificationCenter
from .output_handler import OutputHandler
from .payload import AudioPayload
from .pipeline_manager import PipelineManager
from .state import PipelineSnapshot, PipelineStateManager

logger = logging.getLogger(__name__)

# Size limit for incoming messages (64KB should be plenty for commands)
MAX_MESSAGE_SIZE = 64 * 1024
MESSAGE_TERMINATOR = b"\n"


class IPCServer:
    """Handles IPC communication over Unix domain socket."""

    def __init__(
        self,
        socket_path: Path,
        state_manager: PipelineStateManager,
        shutdown_event: asyncio.Event,
        pipeline_manager: PipelineManager,
        audio_capture: RecordingCapture,
        output_handler: OutputHandler,
        notifications: NotificationCenter,
    ):
        """Initialize the IPC server.

        Args:
            socket_path: Path to the Unix domain socket
            state_manager: Pipeline state container
            shutdown_event: Event to signal daemon shutdown
            pipeline_manager: The pipeline orchestrator
            audio_capture: The live recorder
            output_handler: Clipboard/print output handler
            notifications: Source of transient notifications
        """
        self.socket_path = socket_path
        self.state_manager = state_manager
        self.shutdown_event = shutdown_event
        self.pipeline_manager = pipeline_manager
        self.audio_capture = audio_capture
        self.output_handler = output_handler
        self.notifications = notifications

        self._server: Optional[asyncio.Server] = None
        self._client_tasks: Set[asyncio.Task] = set()
        self._broadcast_tasks: Set[asyncio.Task] = set()
        self._subscribers: Set[asyncio.StreamWriter] = set()

        # Register for state updates and notifications
        self.state_manager.add_observer(self._on_state_change)
        self.notifications.add_observer(self._on_notification)
        self.audio_capture.add_tick_observer(self._on_recording_tick)

    def build_status(self) -> PipelineStatusModel:
        """Assemble the status shown to clients."""
        snapshot = self.state_manager.snapshot()
        transcription, summary = self.pipeline_manager.current_panels()
        elapsed = self.audio_capture.elapsed_seconds
        return PipelineStatusModel(
            state=snapshot.state.value,
            capture_state=self.audio_capture.state.value,
            recording_seconds=elapsed,
            recording_time=format_elapsed(elapsed),
            transcription=transcription,
            summary=summary,
            export_enabled=snapshot.export_enabled,
            is_processing=snapshot.is_processing,
            last_error=snapshot.last_error,
        )

    def _schedule_broadcast(self, notification: ResponseWrapper) -> None:
        task = asyncio.create_task(self._broadcast_notification(notification))
        self._broadcast_tasks.add(task)
        task.add_done_callback(self._broadcast_tasks.discard)

    def _on_state_change(self, snapshot: PipelineSnapshot) -> None:
        """Handle state change notifications."""
        if not self._subscribers:
            return

        try:
            self._schedule_broadcast(
                ResponseWrapper(root=StateNotification(status=self.build_status()))
            )
        except Exception as e:
            logger.error(f"Error preparing state notification: {e}")

    def _on_recording_tick(self, elapsed_seconds: int) -> None:
        """Push the running recording timer to subscribers."""
        self._on_state_change(self.state_manager.snapshot())

    def _on_notification(self, notification: Notification) -> None:
        """Forward transient notifications to subscribers."""
        if not self._subscribers:
            return

        try:
            self._schedule_broadcast(
                ResponseWrapper(root=ToastNotification(notification=notification))
            )
        except Exception as e:
            logger.error(f"Error preparing toast notification: {e}")

    async def _broadcast_notification(self, notification: ResponseWrapper) -> None:
        """Broadcast a notification to all subscribers."""
        if not self._subscribers:
            return

        data = notification.model_dump_json().encode("utf-8") + MESSAGE_TERMINATOR

        # Copy set to avoid modification during iteration
        subscribers = list(self._subscribers)

        for writer in subscribers:
            if writer.is_closing():
                self._subscribers.discard(writer)
                continue

            try:
                writer.write(data)
                await writer.drain()
            except Exception as e:
                logger.warning(f"Error broadcasting to subscriber: {e}")
                self._subscribers.discard(writer)

    async def _send_response(
        self, writer: asyncio.StreamWriter, response: ResponseWrapper
    ) -> None:
        """Send a response to a client.

        Args:
            writer: StreamWriter to send through
            response: Response to send
        """
        try:
            response_json = response.model_dump_json()
            writer.write(response_json.encode("utf-8") + MESSAGE_TERMINATOR)
            await writer.drain()
            logger.debug(f"Sent response: {response_json[:200]}")
        except Exception as e:
            logger.error(f"Error sending response: {e}")

    async def _send_error(self, writer: asyncio.StreamWriter, message: str) -> None:
        await self._send_response(
            writer, ResponseWrapper(root=ErrorResponse(message=message))
        )

    async def _send_ack(self, writer: asyncio.StreamWriter) -> None:
        await self._send_response(writer, ResponseWrapper(root=AckResponse()))

    async def _handle_upload_command(
        self, writer: asyncio.StreamWriter, command: UploadCommand
    ) -> None:
        """Handle Upload command.

        Args:
            writer: StreamWriter to send response through
            command: Upload command with the file path
        """
        logger.info(f"Handling Upload command ({command.path})")

        if self.audio_capture.is_recording:
            await self._send_error(writer, "Cannot upload while recording")
            return

        try:
            payload = await asyncio.to_thread(AudioPayload.from_file, command.path)
        except (OSError, ValueError) as e:
            logger.error(f"Could not read {command.path}: {e}")
            self.notifications.publish(
                "File Read Error",
                "Could not read the selected file.",
                variant="destructive",
            )
            await self._send_error(writer, f"Could not read file: {e}")
            return

        await self.pipeline_manager.submit(payload)
        await self._send_ack(writer)

    async def _handle_record_start_command(self, writer: asyncio.StreamWriter) -> None:
        """Handle RecordStart command.

        Args:
            writer: StreamWriter to send response through
        """
        logger.info("Handling RecordStart command")

        if self.audio_capture.is_recording:
            await self._send_error(writer, "Already recording")
            return

        try:
            await self.audio_capture.start()
        except AcquisitionFailure as e:
            self.notifications.publish(
                "Recording Error",
                "Could not access microphone. Please check permissions.",
                variant="destructive",
            )
            await self._send_error(writer, f"Failed to start recording: {e}")
            return

        self._on_state_change(self.state_manager.snapshot())
        await self._send_ack(writer)

    async def _handle_record_stop_command(self, writer: asyncio.StreamWriter) -> None:
        """Handle RecordStop command.

        Args:
            writer: StreamWriter to send response through
        """
        logger.info("Handling RecordStop command")

        if not self.audio_capture.is_recording:
            await self._send_error(writer, "Not recording")
            return

        try:
            # The capture hands its payload to the pipeline on stop
            await self.audio_capture.stop()
        except AcquisitionFailure as e:
            self.notifications.publish(
                "Recording Error", "No audio was captured.", variant="destructive"
            )
            self._on_state_change(self.state_manager.snapshot())
            await self._send_error(writer, f"Recording failed: {e}")
            return

        await self._send_ack(writer)

    async def _handle_status_command(self, writer: asyncio.StreamWriter) -> None:
        """Handle Status command.

        Args:
            writer: StreamWriter to send response through
        """
        logger.debug("Handling Status command")
        response = ResponseWrapper(root=StatusResponse(status=self.build_status()))
        await self._send_response(writer, response)

    def _panel(self, name: PanelName) -> PanelView:
        transcription, summary = self.pipeline_manager.current_panels()
        return transcription if name == PanelName.TRANSCRIPTION else summary

    async def _handle_copy_command(
        self, writer: asyncio.StreamWriter, command: CopyCommand
    ) -> None:
        """Handle Copy command.

        Args:
            writer: StreamWriter to send response through
            command: Copy command naming the panel
        """
        logger.info(f"Handling Copy command ({command.panel.value})")

        view = self._panel(command.panel)
        success, error = await self.output_handler.copy_panel(view)
        if not success:
            await self._send_error(writer, f"Copy failed: {error}")
            return

        self.notifications.publish(
            "Copied to clipboard!", f"{view.title} has been copied."
        )
        await self._send_ack(writer)

    async def _handle_export_command(self, writer: asyncio.StreamWriter) -> None:
        """Handle Export command.

        Args:
            writer: StreamWriter to send response through
        """
        logger.info("Handling Export command")

        try:
            path = await self.pipeline_manager.export_notes()
        except ExportUnavailable as e:
            await self._send_error(writer, str(e))
            return
        except OSError as e:
            logger.error(f"Export failed: {e}")
            await self._send_error(writer, f"Export failed: {e}")
            return

        self.notifications.publish("Notes Exported", f"Saved to {path}")
        await self._send_response(writer, ResponseWrapper(root=ExportResponse(path=path)))

    async def _handle_shutdown_command(self, writer: asyncio.StreamWriter) -> None:
        """Handle Shutdown command.

        Args:
            writer: StreamWriter to send response through
        """
        logger.info("Handling Shutdown command")

        # Release the recording device first
        await self.audio_capture.close()

        await self._send_ack(writer)
        await writer.drain()  # Ensure it's sent

        # Signal shutdown
        self.shutdown_event.set()

    async def _handle_subscribe_command(self, writer: asyncio.StreamWriter) -> bool:
        """Handle Subscribe command.

        Args:
            writer: StreamWriter to subscribe

        Returns:
            True indicating the client is now subscribed
        """
        logger.info("Handling Subscribe command")
        self._subscribers.add(writer)

        # Send initial status immediately
        notification = ResponseWrapper(root=StateNotification(status=self.build_status()))
        await self._send_response(writer, notification)

        return True

    async def _handle_command(self, writer: asyncio.StreamWriter, message: str) -> bool:
        """Parse and handle a command message.

        Args:
            writer: StreamWriter to send responses through
            message: Command message to parse and handle

        Returns:
            True if connection should be kept alive, False to close it
        """
        try:
            command = CommandWrapper.model_validate_json(message)
            logger.debug(f"Parsed command: {command.model_dump_json()}")

            if isinstance(command.root, UploadCommand):
                await self._handle_upload_command(writer, command.root)
                return True
            elif isinstance(command.root, RecordStartCommand):
                await self._handle_record_start_command(writer)
                return True
            elif isinstance(command.root, RecordStopCommand):
                await self._handle_record_stop_command(writer)
                return True
            elif isinstance(command.root, StatusCommand):
                await self._handle_status_command(writer)
                return True
            elif isinstance(command.root, CopyCommand):
                await self._handle_copy_command(writer, command.root)
                return True
            elif isinstance(command.root, ExportCommand):
                await self._handle_export_command(writer)
                return True
            elif isinstance(command.root, ShutdownCommand):
                await self._handle_shutdown_command(writer)
                return False
            elif isinstance(command.root, SubscribeCommand):
                await self._handle_subscribe_command(writer)
                return True
            else:
                logger.error(f"Unhandled command type: {type(command.root)}")
                await self._send_error(writer, "Internal server error")
                return True

        except ValidationError as e:
            logger.error(f"Invalid command format: {e}")
            await self._send_error(writer, f"Invalid command format: {e}")
            return True

        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON: {e}")
            await self._send_error(writer, f"Invalid JSON format: {e}")
            return True

        except Exception as e:
            logger.exception("Error handling command")
            await self._send_error(writer, f"Internal error: {e}")
            return True

    async def _handle_client(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        """Handle a client connection.

        Args:
            reader: StreamReader for the client
            writer: StreamWriter for the client
        """
        peer = writer.get_extra_info("peername") or "Unknown"
        logger.info(f"Client connected: {peer}")

        task = asyncio.current_task()
        assert task is not None  # for type checking
        self._client_tasks.add(task)

        try:
            while True:
                try:
                    # Subscribers stay connected indefinitely
                    timeout = None if writer in self._subscribers else 5.0

                    data = await asyncio.wait_for(
                        reader.readuntil(MESSAGE_TERMINATOR), timeout=timeout
                    )

                    if not data:  # EOF
                        logger.info(f"Client disconnected (EOF): {peer}")
                        break

                    message = data.rstrip(MESSAGE_TERMINATOR).decode("utf-8")
                    logger.debug(f"Received from {peer}: {message}")

                    keep_alive = await self._handle_command(writer, message)
                    if not keep_alive:
                        break

                except asyncio.TimeoutError:
                    if writer not in self._subscribers:
                        logger.warning(f"Timeout reading from client {peer}")
                        break
                except asyncio.IncompleteReadError:
                    logger.info(f"Client disconnected (incomplete read): {peer}")
                    break
                except asyncio.LimitOverrunError:
                    logger.warning(f"Message from {peer} exceeds {MAX_MESSAGE_SIZE} bytes")
                    await self._send_error(writer, "Message too large")
                    break
                except ConnectionError as e:
                    logger.warning(f"Connection error with {peer}: {e}")
                    break
                except asyncio.CancelledError:
                    logger.info(f"Client connection cancelled: {peer}")
                    break
                except Exception as e:
                    logger.exception(f"Error handling client {peer}: {e}")
                    break

        finally:
            logger.info(f"Closing connection with {peer}")
            self._subscribers.discard(writer)
            if not writer.is_closing():
                writer.close()
                try:
                    await asyncio.wait_for(writer.wait_closed(), timeout=1.0)
                except (asyncio.TimeoutError, Exception) as e:
                    logger.warning(f"Error during connection cleanup: {e}")

            self._client_tasks.discard(task)
            logger.debug(f"Connection closed: {peer}")

    async def start(self) -> None:
        """Start the IPC server."""
        if self._server:
            logger.warning("Server already started")
            return

        # Clean up existing socket if needed
        if self.socket_path.exists():
            if self.socket_path.is_socket():
                logger.info(f"Removing existing socket file: {self.socket_path}")
                try:
                    self.socket_path.unlink()
                except OSError as e:
                    logger.error(f"Failed to remove existing socket: {e}")
                    raise
            else:
                logger.error(f"Path exists but is not a socket: {self.socket_path}")
                raise OSError(f"Path exists but is not a socket: {self.socket_path}")

        try:
            self.socket_path.parent.mkdir(parents=True, exist_ok=True)

            self._server = await asyncio.start_unix_server(
                self._handle_client,
                path=str(self.socket_path),
                limit=MAX_MESSAGE_SIZE,
            )

            logger.info(f"IPC server listening on {self.socket_path}")

        except Exception as e:
            logger.error(f"Failed to start IPC server: {e}")
            if self.socket_path.exists():
                self.socket_path.unlink(missing_ok=True)
            raise

    async def stop(self) -> None:
        """Stop the IPC server."""
        if not self._server:
            logger.warning("Server not running")
            return

        logger.info("Stopping IPC server...")

        # Explicitly close subscriber connections first to unblock their read loops
        if self._subscribers:
            logger.info(f"Closing {len(self._subscribers)} subscriber connections...")
            for writer in list(self._subscribers):
                if not writer.is_closing():
                    writer.close()
            self._subscribers.clear()

        # Release the recording device if a recording is still running
        await self.audio_capture.close()

        self._server.close()

        # Cancel active client connections, wait_closed() waits for them
        if self._client_tasks:
            logger.info(f"Cancelling {len(self._client_tasks)} client tasks...")
            for task in list(self._client_tasks):
                if not task.done():
                    task.cancel()
            await asyncio.gather(*list(self._client_tasks), return_exceptions=True)
            self._client_tasks.clear()

        await self._server.wait_closed()
        self._server = None

        logger.debug(f"Removing socket file: {self.socket_path}")
        try:
            self.socket_path.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Error removing socket file: {e}")

        logger.info("IPC server stopped")
