"""
ModBoard - Logger Module
========================

Tree-style logging with a fixed timezone and daily log folders.

DESIGN:
    Every record is printed to the console and appended to a dated log file.
    Structured context is passed as (key, value) pairs and rendered as a
    tree beneath the title, so one event stays one visual block.

    Key features:
    - Tree-style formatting for structured data
    - Timestamps in the configured log timezone
    - Daily log folders with retention cleanup
    - Run ID per process for correlating restarts
    - Optional Discord webhook for errors with details
"""

import asyncio
import os
import uuid
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple

import aiohttp
from zoneinfo import ZoneInfo


# =============================================================================
# Constants
# =============================================================================

LOGS_DIR = Path(os.getenv("MODBOARD_LOGS_DIR", "logs"))
"""Directory for all log files, organized by date."""

LOG_RETENTION_DAYS = 7
"""Number of days to retain log directories before cleanup."""

LOG_TZ = ZoneInfo(os.getenv("MODBOARD_LOG_TZ", "Asia/Jerusalem"))
"""Timezone used for log timestamps."""

Details = Optional[List[Tuple[str, str]]]


# =============================================================================
# Tree Logger Class
# =============================================================================

class TreeLogger:
    """
    Logger with tree-style formatting.

    Attributes:
        run_id: Unique identifier for this process.
        log_file: Path to the main log file.
        error_file: Path to the error-only log file.
    """

    def __init__(self) -> None:
        self.run_id: str = str(uuid.uuid4())[:8]
        self._webhook_url: Optional[str] = None

        today = datetime.now(LOG_TZ).strftime("%Y-%m-%d")
        self.log_dir = LOGS_DIR / today
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self.log_file = self.log_dir / f"ModBoard-{today}.log"
        self.error_file = self.log_dir / f"ModBoard-Errors-{today}.log"

        self._cleanup_old_logs()
        self._write_session_header()

    def set_webhook(self, url: Optional[str]) -> None:
        """Set the Discord webhook URL used for error alerts."""
        self._webhook_url = url

    # =========================================================================
    # Log Cleanup
    # =========================================================================

    def _cleanup_old_logs(self) -> None:
        """
        Remove dated log directories older than the retention period.

        Only directories named YYYY-MM-DD are considered.
        """
        if not LOGS_DIR.exists():
            return

        now = datetime.now()
        deleted = 0

        for item in LOGS_DIR.iterdir():
            if not item.is_dir():
                continue
            try:
                dir_date = datetime.strptime(item.name, "%Y-%m-%d")
            except ValueError:
                continue
            if (now - dir_date).days > LOG_RETENTION_DAYS:
                for f in item.iterdir():
                    f.unlink()
                item.rmdir()
                deleted += 1

        if deleted > 0:
            print(f"[LOG CLEANUP] Removed {deleted} old log directories")

    def _write_session_header(self) -> None:
        header = f"""
============================================================
NEW SESSION - RUN ID: {self.run_id}
[{datetime.now(LOG_TZ).strftime("%d/%m/%Y %H:%M:%S %Z")}]
============================================================
"""
        with open(self.log_file, "a", encoding="utf-8") as f:
            f.write(header)

    # =========================================================================
    # Core Logging
    # =========================================================================

    def _get_timestamp(self) -> str:
        """Return a timestamp like "[14:30:45 IDT]"."""
        return datetime.now(LOG_TZ).strftime("[%H:%M:%S %Z]")

    def _write(
        self,
        message: str,
        emoji: str = "",
        include_timestamp: bool = True,
        is_error: bool = False,
    ) -> None:
        """
        Write one line to the console and the log file.

        Args:
            message: Log message content.
            emoji: Optional emoji prefix.
            include_timestamp: Whether to prepend the timestamp.
            is_error: Whether to also write to the error log.
        """
        if include_timestamp:
            timestamp = self._get_timestamp()
            full_message = f"{timestamp} {emoji} {message}" if emoji else f"{timestamp} {message}"
        else:
            full_message = f"{emoji} {message}" if emoji else message

        print(full_message)

        with open(self.log_file, "a", encoding="utf-8") as f:
            f.write(f"{full_message}\n")

        if is_error:
            with open(self.error_file, "a", encoding="utf-8") as f:
                f.write(f"{full_message}\n")

    def _write_entry(
        self,
        msg: str,
        emoji: str,
        details: Details = None,
        is_error: bool = False,
    ) -> None:
        """Write a title line followed by its detail tree, if any."""
        self._write(msg, emoji, is_error=is_error)
        if not details:
            return
        for i, (key, value) in enumerate(details):
            prefix = "└─" if i == len(details) - 1 else "├─"
            self._write(
                f"  {prefix} {key}: {value}",
                include_timestamp=False,
                is_error=is_error,
            )

    # =========================================================================
    # Tree Formatting
    # =========================================================================

    def tree(
        self,
        title: str,
        items: List[Tuple[str, str]],
        emoji: str = "📦",
    ) -> None:
        """
        Log structured data in tree format.

        Example output:
            [14:30:45 IDT] 🌐 API Service Started
              ├─ Host: 0.0.0.0
              └─ Port: 8082
        """
        with open(self.log_file, "a", encoding="utf-8") as f:
            f.write("\n")

        self._write_entry(title, emoji, items)

        with open(self.log_file, "a", encoding="utf-8") as f:
            f.write("\n")

    # =========================================================================
    # Log Levels
    # =========================================================================

    def debug(self, msg: str, details: Details = None) -> None:
        """Log a debug message (only when the DEBUG env var is set)."""
        if os.getenv("DEBUG"):
            self._write_entry(msg, "🔍", details)

    def info(self, msg: str, details: Details = None) -> None:
        self._write_entry(msg, "ℹ️", details)

    def success(self, msg: str, details: Details = None) -> None:
        self._write_entry(msg, "✅", details)

    def warning(self, msg: str, details: Details = None) -> None:
        self._write_entry(msg, "⚠️", details)

    def error(self, msg: str, details: Details = None) -> None:
        """
        Log an error with optional structured details.

        Errors are written to both log files. When details are present and a
        webhook is configured, the error is also posted to Discord.
        """
        self._write_entry(msg, "❌", details, is_error=True)

        if details and self._webhook_url:
            try:
                asyncio.get_running_loop().create_task(
                    self._send_webhook_error(msg, details)
                )
            except RuntimeError:
                pass  # No running loop, file log is enough

    def critical(self, msg: str, details: Details = None) -> None:
        self._write_entry(msg, "🚨", details, is_error=True)

    # =========================================================================
    # Webhook Integration
    # =========================================================================

    async def _send_webhook_error(
        self,
        title: str,
        details: List[Tuple[str, str]],
    ) -> None:
        """Post an error embed to the configured Discord webhook."""
        if not self._webhook_url:
            return

        try:
            description = "\n".join(f"**{k}:** {v}" for k, v in details)
            payload = {
                "embeds": [{
                    "title": f"❌ {title}",
                    "description": description,
                    "color": 0xFF0000,
                    "timestamp": datetime.now(LOG_TZ).isoformat(),
                    "footer": {"text": f"Run ID: {self.run_id}"},
                }]
            }

            async with aiohttp.ClientSession() as session:
                async with session.post(
                    self._webhook_url,
                    json=payload,
                    timeout=aiohttp.ClientTimeout(total=10),
                ) as resp:
                    if resp.status != 204:
                        print(f"Webhook error: {resp.status}")

        except Exception as e:
            print(f"Failed to send webhook: {e}")


# =============================================================================
# Global Instance
# =============================================================================

logger = TreeLogger()


__all__ = [
    "logger",
    "TreeLogger",
    "LOG_TZ",
]
