"""Clipboard and print output for rendered notes."""

import asyncio
import logging
import os
from typing import Literal, Optional, Tuple

from .config import OutputConfig
from .display import PanelView

logger = logging.getLogger(__name__)

# Default clipboard commands by session type
DEFAULT_CLIPBOARD_WAYLAND = "wl-copy"
DEFAULT_CLIPBOARD_X11 = "xclip -selection clipboard"


def get_session_type() -> Literal["wayland", "x11", "unknown"]:
    """Detect the current session type (Wayland/X11/unknown).

    Returns:
        Session type as string: "wayland", "x11", or "unknown"
    """
    session_type = os.environ.get("XDG_SESSION_TYPE", "").lower()

    if session_type == "wayland":
        return "wayland"
    elif session_type == "x11":
        return "x11"
    else:
        return "unknown"


def resolve_clipboard_command(config: OutputConfig) -> Optional[str]:
    """Pick the configured clipboard command or the session default."""
    if config.clipboard_command:
        return config.clipboard_command

    session = get_session_type()
    if session == "wayland":
        default_cmd = DEFAULT_CLIPBOARD_WAYLAND
    elif session == "x11":
        default_cmd = DEFAULT_CLIPBOARD_X11
    else:
        return None

    logger.debug(f"Using default clipboard command for {session}: {default_cmd}")
    return default_cmd


async def run_text_command(
    command: str, text: str, timeout: float = 5.0
) -> Tuple[bool, Optional[str]]:
    """Run a shell command with text on its stdin.

    Args:
        command: The shell command to run
        text: Text written to the command's stdin
        timeout: Maximum time to wait for command execution

    Returns:
        Tuple of (success, error_message)
        - success: True if command executed successfully
        - error_message: Error details if command failed, None otherwise
    """
    logger.debug(f"Executing command: {command}")
    logger.debug(f"Text length: {len(text)} chars")

    try:
        process = await asyncio.create_subprocess_shell(
            command,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(text.encode("utf-8")), timeout=timeout
            )

            if process.returncode != 0:
                error_msg = (
                    f"Command failed with code {process.returncode}:\n"
                    f"Command: {command}\n"
                    f"Stderr: {stderr.decode('utf-8', errors='replace')}"
                )
                if stdout:
                    error_msg += f"\nStdout: {stdout.decode('utf-8', errors='replace')}"
                logger.error(error_msg)
                return False, error_msg

            if stdout:
                logger.debug(
                    f"Command stdout: {stdout.decode('utf-8', errors='replace')}"
                )

            return True, None

        except asyncio.TimeoutError:
            logger.error(f"Command timed out after {timeout}s: {command}")
            try:
                process.kill()
                await process.wait()
            except ProcessLookupError:
                pass  # Process already finished
            return False, f"Command timed out after {timeout}s"

    except FileNotFoundError:
        msg = f"Command not found: {command}"
        logger.error(msg)
        return False, msg

    except PermissionError:
        msg = f"Permission denied executing: {command}"
        logger.error(msg)
        return False, msg

    except Exception as e:
        msg = f"Error executing command: {e}"
        logger.exception(msg)
        return False, msg


class OutputHandler:
    """Copies panels to the clipboard and sends documents to the printer."""

    def __init__(self, config: OutputConfig):
        """Initialize output handler.

        Args:
            config: Output configuration containing commands
        """
        self.config = config

    async def copy_panel(self, view: PanelView) -> Tuple[bool, Optional[str]]:
        """Copy the content of a panel to the clipboard.

        Only panels showing finished content can be copied.
        """
        if not view.can_copy or not view.content:
            return False, f"{view.title} has no content to copy"

        command = resolve_clipboard_command(self.config)
        if not command:
            msg = (
                "No clipboard command configured and couldn't determine default "
                f"for session type: {get_session_type()}"
            )
            logger.error(msg)
            return False, msg

        return await run_text_command(
            command, view.content, timeout=self.config.command_timeout_s
        )

    async def print_document(self, text: str) -> Tuple[bool, Optional[str]]:
        """Send a document to the configured print command."""
        if not self.config.print_command:
            return False, "No print command configured"

        return await run_text_command(
            self.config.print_command, text, timeout=self.config.command_timeout_s
        )
