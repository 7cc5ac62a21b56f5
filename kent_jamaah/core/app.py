from typing import Dict, Any, Optional
import logging
import sys
from pathlib import Path
from .task_manager import TaskManager
from .config import Config


class JamaahApp:
    def __init__(self, config_path: Optional[str] = None, watch: Optional[bool] = None):
        self.logger = logging.getLogger(self.__class__.__name__)

        self.config = Config(config_path=config_path, watch=watch)
        self.config.register_change_callback(self.handle_config_change)

        self._setup_logging()

        # Initialize database (before cache and tasks so tables exist)
        from .db import init_db
        init_db(self.config.data)

        from kent_jamaah.mosques.cache import DailyResultCache, create_store
        from kent_jamaah.mosques.orchestrator import ScrapeOrchestrator
        from kent_jamaah.mosques.registry import load_registry
        from kent_jamaah.mosques.task import DailyRefreshTask

        self.registry = load_registry(self.config.data)
        self.logger.info(f"Loaded {len(self.registry)} mosque(s)")

        self.orchestrator = ScrapeOrchestrator(self.registry, self._scraper_settings())
        cache_config = self.config.get("cache") or {}
        self.cache = DailyResultCache(create_store(cache_config.get("backend")), self.orchestrator.run)

        self.task_manager = TaskManager()
        self.refresh_task = DailyRefreshTask(self.cache, self.config.get("schedule"))
        self.task_manager.register_task(self.refresh_task)

    def _scraper_settings(self) -> Dict[str, Any]:
        """Settings handed to the browser session and every extractor."""
        settings = dict(self.config.get("scraper") or {})
        cache_dir = (self.config.get("cache") or {}).get("directory")
        if cache_dir:
            settings["cache_dir"] = cache_dir
        return settings

    def _setup_logging(self):
        """Configure logging to write to both file and stdout"""
        root_logger = logging.getLogger()
        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)
        root_logger.setLevel(self._log_level(self.config.data))

        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'
        )

        log_file = (self.config.get("logging") or {}).get("file")
        if log_file:
            log_path = Path(log_file).expanduser()
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_path)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

        logging.info("Kent jamaah service starting...")

    @staticmethod
    def _log_level(config_data: Dict[str, Any]) -> int:
        level = str((config_data.get("logging") or {}).get("level", "INFO")).upper()
        return getattr(logging, level, logging.INFO)

    def handle_config_change(self, new_config: Dict[str, Any]) -> None:
        """Apply config changes that are safe at runtime; the rest needs a restart."""
        logging.getLogger().setLevel(self._log_level(new_config))
        self.logger.info("Logging level updated; mosque registry and schedule apply on restart")

    def run(self):
        """Start the daily refresh timer and serve the API until interrupted."""
        from kent_jamaah.api import run_api_server

        self.task_manager.schedule_registered_task(self.refresh_task.task_name)
        try:
            run_api_server(self)
        except KeyboardInterrupt:
            self.logger.info("Interrupted")
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        self.logger.info("Shutting down")
        self.task_manager.stop()
        self.config.cleanup()
        from .db import close_db
        close_db()
