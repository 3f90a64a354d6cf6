"""Main entry point for noteforged daemon."""

import asyncio
import logging
import signal
import sys
from typing import NoReturn

from .audio_capture import RecordingCapture
from .config import load_config
from .exporter import NoteExporter
from .ipc_server import IPCServer
from .logging_setup import setup_logging
from .notifications import NotificationCenter
from .output_handler import OutputHandler
from .pipeline_manager import PipelineManager
from .state import PipelineStateManager


logger = logging.getLogger(__name__)

__all__ = ["run"]  # Export the run function


async def main() -> int:
    """Main daemon function.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    # Load configuration first
    try:
        config = load_config()
    except Exception as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        return 1

    setup_logging(config.daemon.log_level, config.daemon.computed_log_file)
    logger.info("Starting noteforged daemon...")

    state_manager = PipelineStateManager()
    notifications = NotificationCenter()
    shutdown_event = asyncio.Event()

    # Create component instances
    output_handler = OutputHandler(config.output)
    exporter = NoteExporter(config.export, output_handler)
    pipeline_manager = PipelineManager(
        config, state_manager, notifications, exporter=exporter
    )
    audio_capture = RecordingCapture(config.capture, on_payload=pipeline_manager.submit)

    ipc_server = IPCServer(
        config.daemon.computed_socket_path,
        state_manager,
        shutdown_event,
        pipeline_manager,
        audio_capture,
        output_handler,
        notifications,
    )

    try:
        def handle_signal(sig: int) -> None:
            sig_name = signal.Signals(sig).name
            logger.info(f"Received signal {sig_name}, initiating shutdown...")
            shutdown_event.set()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, lambda s=sig: handle_signal(s))

        # Start IPC server to handle user commands
        await ipc_server.start()

        logger.info("Daemon started successfully")

        await shutdown_event.wait()

        logger.info("Starting graceful shutdown...")

    except Exception:
        logger.exception("Fatal error in daemon startup:")
        return 1

    finally:
        # Stop in reverse order
        await ipc_server.stop()
        await audio_capture.close()
        await pipeline_manager.stop()

        logger.info("Daemon shutdown complete")

    return 0


def run() -> NoReturn:
    """Entry point for the daemon."""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(0)
    except Exception as e:
        # Fallback logger in case of early failure
        logging.basicConfig()
        logger.exception(f"Daemon failed with unhandled exception: {e}")
        sys.exit(1)
