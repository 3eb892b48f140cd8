"""
Ticket External Integrations
============================

- YAML SLA config with a watchdog file watcher
- APScheduler job for the SLA breach sweep
- Local disk storage for attachments
"""

import asyncio
import os
import threading
from pathlib import Path
from typing import Awaitable, Callable, Optional
from uuid import uuid4

import yaml
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from pydantic import ValidationError
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from helpdesk.core import ConfigurationException
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.tickets.application.services import IAttachmentStorage, ISLAConfigProvider
from helpdesk.tickets.domain import SLAConfig

logger = get_logger(__name__)


class ConfigFileHandler(FileSystemEventHandler):
    """Watchdog event handler for SLA config file changes."""

    def __init__(self, config_manager: "SLAConfigManager", config_path: Path):
        self.config_manager = config_manager
        self.config_path = config_path
        super().__init__()

    def _is_config_file(self, path: str) -> bool:
        return Path(path).resolve() == self.config_path.resolve()

    def on_modified(self, event):
        if event.is_directory or not self._is_config_file(event.src_path):
            return
        logger.info("SLA config file changed", extra={"path": event.src_path})
        self.config_manager.reload()

    def on_created(self, event):
        self.on_modified(event)


class SLAConfigManager(ISLAConfigProvider):
    """
    Thread-safe SLA configuration manager with hot-reload support.

    A missing file means the default SLA hours. A file that fails to
    parse at startup is a configuration error; on reload the previous
    configuration stays in effect.
    """

    def __init__(self):
        self._config: Optional[SLAConfig] = None
        self._lock = threading.Lock()
        self._path: Optional[Path] = None
        self._observer = None

    def load(self, path: Path) -> SLAConfig:
        """Initial configuration load."""
        self._path = Path(path)
        try:
            config = self._load_from_file(self._path)
        except (yaml.YAMLError, ValidationError, TypeError) as e:
            raise ConfigurationException(f"Invalid SLA config {self._path}: {e}")
        with self._lock:
            self._config = config
        logger.info("SLA configuration loaded", extra={"sla_hours": config.sla_hours})
        return config

    def _load_from_file(self, path: Path) -> SLAConfig:
        if not path.exists():
            logger.warning("SLA config file not found, using defaults", extra={"path": str(path)})
            return SLAConfig()

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        return SLAConfig(**data)

    def reload(self) -> bool:
        """Reload configuration from file."""
        if self._path is None:
            return False

        try:
            new_config = self._load_from_file(self._path)
        except (OSError, yaml.YAMLError, ValidationError, TypeError) as e:
            logger.error("Failed to reload SLA config", extra={"path": str(self._path), "error": str(e)})
            return False

        with self._lock:
            self._config = new_config
        logger.info("SLA configuration reloaded", extra={"sla_hours": new_config.sla_hours})
        return True

    def start_watching(self) -> None:
        """
        Start watching the configuration file's directory.

        Skipped when the directory does not exist or the platform has no
        usable file watcher.
        """
        if self._path is None:
            raise RuntimeError("Config not loaded. Call load() first.")

        directory = self._path.resolve().parent
        if not directory.is_dir():
            logger.info("SLA config directory missing, not watching", extra={"path": str(directory)})
            return

        try:
            self._observer = Observer()
            self._observer.schedule(ConfigFileHandler(self, self._path), str(directory), recursive=False)
            self._observer.start()
            logger.info("Watching SLA config file", extra={"path": str(self._path)})
        except OSError as e:
            logger.warning("File watching not available, using static config", extra={"error": str(e)})
            self._observer = None

    def stop_watching(self) -> None:
        """Stop watching configuration file (safe to call even if not watching)."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    @property
    def config(self) -> SLAConfig:
        """Get current configuration."""
        with self._lock:
            if self._config is None:
                raise RuntimeError("SLA configuration not loaded")
            return self._config


class SLAScheduler:
    """
    Wrapper for APScheduler running the SLA breach sweep.

    Manages the lifecycle of the scheduler and its single job.
    """

    def __init__(self, interval_seconds: int = 60):
        self.interval_seconds = interval_seconds
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    async def start(self, job_func: Callable[[], Awaitable]) -> None:
        """Start the scheduler with the given job function."""
        if self._running:
            logger.warning("SLA scheduler already running")
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            job_func,
            "interval",
            seconds=self.interval_seconds,
            id="sla_breach_sweep",
            name="SLA Breach Sweep",
            misfire_grace_time=60,
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )
        self._scheduler.start()
        self._running = True

        logger.info("SLA scheduler started", extra={"interval_seconds": self.interval_seconds})

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)

        self._running = False
        logger.info("SLA scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running


class LocalAttachmentStorage(IAttachmentStorage):
    """
    Attachments on local disk as ``<uuid4 hex><ext>``.

    Blocking file I/O runs in a worker thread.
    """

    def __init__(self, upload_dir: Path):
        self.upload_dir = Path(upload_dir)

    def ensure_directory(self) -> None:
        self.upload_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, filename: str) -> Path:
        # Stored names are generated here; never resolve a caller-supplied path
        return self.upload_dir / os.path.basename(filename)

    async def save(self, content: bytes, original_name: str) -> str:
        extension = os.path.splitext(original_name)[1].lower()
        filename = f"{uuid4().hex}{extension}"
        await asyncio.to_thread(self._write, self.path_for(filename), content)
        logger.debug("Attachment stored", extra={"filename": filename, "size": len(content)})
        return filename

    def _write(self, path: Path, content: bytes) -> None:
        self.ensure_directory()
        path.write_bytes(content)

    async def remove(self, filename: str) -> None:
        path = self.path_for(filename)
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError:
            return
        except OSError as e:
            logger.warning("Failed to remove attachment file", extra={"filename": filename, "error": str(e)})
