"""Export of the displayed notes for printing or saving."""

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence

from .config import ExportConfig
from .display import PanelView, format_panel
from .output_handler import OutputHandler

logger = logging.getLogger(__name__)


class NoteExporter:
    """Writes the current panels to a printable document."""

    def __init__(self, config: ExportConfig, output_handler: Optional[OutputHandler] = None):
        """Initialize the exporter.

        Args:
            config: Export configuration.
            output_handler: Handler used to print the document, if any.
        """
        self.config = config
        self.output_handler = output_handler

    def render(self, panels: Sequence[PanelView], now: Optional[datetime] = None) -> str:
        """Render panels into one Markdown document."""
        now = now or datetime.now()
        sections = [
            f"# {self.config.title}\n",
            f"_Exported {now.strftime('%Y-%m-%d %H:%M')}_\n",
        ]
        sections.extend(format_panel(view) for view in panels)
        return "\n".join(sections)

    def _write(self, text: str, now: datetime) -> Path:
        export_dir = self.config.computed_export_dir
        export_dir.mkdir(parents=True, exist_ok=True)
        path = export_dir / f"lecture-notes-{now.strftime('%Y%m%d-%H%M%S')}.md"
        path.write_text(text, encoding="utf-8")
        return path

    async def export(self, panels: Sequence[PanelView]) -> Path:
        """Write the document and hand it to the printer when configured.

        Returns:
            Path of the written document.

        Raises:
            OSError: If the document can't be written.
        """
        now = datetime.now()
        text = self.render(panels, now)
        path = await asyncio.to_thread(self._write, text, now)
        logger.info(f"Exported notes to {path}")

        if self.output_handler and self.output_handler.config.print_command:
            success, error = await self.output_handler.print_document(text)
            if not success:
                logger.error(f"Printing exported notes failed: {error}")

        return path
