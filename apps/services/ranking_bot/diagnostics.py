"""
Diagnostic sink injected into every core component.

The core reports domain events (verification failures, classifications,
visits) and asks for page snapshots on failure through this interface; what
happens to them is up to the caller. The default implementation writes to
stdlib logging and stores full-page screenshots on disk.
"""

import logging
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from playwright.async_api import Page

logger = logging.getLogger(__name__)

_LABEL_RE = re.compile(r"[^0-9A-Za-z_-]+")


@dataclass
class DiagnosticEvent:
    level: int
    component: str
    message: str
    context: Dict[str, Any] = field(default_factory=dict)


class DiagnosticSink(ABC):
    """Capability interface: record an event, capture a page snapshot."""

    @abstractmethod
    def record_event(self, level: int, component: str, message: str, **context: Any) -> None:
        ...

    @abstractmethod
    async def capture_snapshot(self, page: Page, label: str) -> Optional[str]:
        """Capture the page for later inspection. Must never raise."""
        ...

    # Convenience wrappers

    def debug(self, component: str, message: str, **context: Any) -> None:
        self.record_event(logging.DEBUG, component, message, **context)

    def info(self, component: str, message: str, **context: Any) -> None:
        self.record_event(logging.INFO, component, message, **context)

    def warning(self, component: str, message: str, **context: Any) -> None:
        self.record_event(logging.WARNING, component, message, **context)

    def error(self, component: str, message: str, **context: Any) -> None:
        self.record_event(logging.ERROR, component, message, **context)


class LoggingDiagnosticSink(DiagnosticSink):
    """Forwards events to per-component loggers and screenshots to disk."""

    def __init__(
        self,
        snapshot_dir: Path = Path("logs/rankbot/snapshots"),
        capture_snapshots: bool = True,
        run_id: Optional[str] = None,
    ):
        self.snapshot_dir = Path(snapshot_dir)
        self.capture_snapshots = capture_snapshots
        self.run_id = run_id

    def record_event(self, level: int, component: str, message: str, **context: Any) -> None:
        prefix = f"[{self.run_id}] " if self.run_id else ""
        suffix = ""
        if context:
            suffix = " | " + " ".join(f"{k}={v}" for k, v in context.items())
        logging.getLogger(f"rankbot.{component}").log(level, f"{prefix}[{component}] {message}{suffix}")

    async def capture_snapshot(self, page: Page, label: str) -> Optional[str]:
        if not self.capture_snapshots or page is None:
            return None
        safe_label = _LABEL_RE.sub("_", label)[:80]
        stamp = time.strftime("%Y%m%d_%H%M%S")
        name = f"{self.run_id}_{stamp}_{safe_label}.png" if self.run_id else f"{stamp}_{safe_label}.png"
        path = self.snapshot_dir / name
        try:
            self.snapshot_dir.mkdir(parents=True, exist_ok=True)
            await page.screenshot(path=str(path), full_page=True)
            logger.info(f"[Diagnostics] Snapshot saved: {path}")
            return str(path)
        except Exception as e:
            logger.warning(f"[Diagnostics] Snapshot '{label}' failed: {e}")
            return None


class RecordingDiagnosticSink(DiagnosticSink):
    """Keeps every event in memory; snapshots are recorded by label only."""

    def __init__(self):
        self.events: List[DiagnosticEvent] = []
        self.snapshots: List[str] = []

    def record_event(self, level: int, component: str, message: str, **context: Any) -> None:
        self.events.append(DiagnosticEvent(level, component, message, dict(context)))

    async def capture_snapshot(self, page: Page, label: str) -> Optional[str]:
        self.snapshots.append(label)
        return label

    def messages(self, min_level: int = logging.DEBUG, component: Optional[str] = None) -> List[str]:
        return [
            e.message for e in self.events
            if e.level >= min_level and (component is None or e.component == component)
        ]
