import os
import logging
from datetime import datetime


class Config:
    """Configuration class for the application."""

    def __init__(self):
        self.log_dir = os.getenv("LOG_DIR", "logs")
        self._setup_logging()

        self.port = int(os.getenv("PORT", "3000"))
        self.upload_dir = os.getenv("UPLOAD_DIR", "uploads")
        self.max_file_size_mb = int(os.getenv("MAX_FILE_SIZE_MB", "10"))
        self.workflows_file = os.getenv("WORKFLOWS_FILE", "comfyui_workflows.json")

        # Applies to /api/process-image only
        self.rate_limit_window_seconds = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "120"))
        self.rate_limit_max_requests = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "10"))

        self.runninghub_base_url = os.getenv("RUNNINGHUB_BASE_URL", "https://www.runninghub.cn")
        self.runninghub_api_key = os.getenv("RUNNINGHUB_API_KEY", "")
        self.runninghub_node_id = os.getenv("RUNNINGHUB_NODE_ID", "")
        self.provider_timeout_seconds = float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "30"))
        self.result_poll_attempts = int(os.getenv("RESULT_POLL_ATTEMPTS", "1"))
        self.result_poll_interval_seconds = float(os.getenv("RESULT_POLL_INTERVAL_SECONDS", "2"))
        self.request_timeout_seconds = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "120"))

        # Validate configuration
        if self.result_poll_attempts < 1:
            self.result_poll_attempts = 1
        if self.rate_limit_max_requests < 1:
            self.rate_limit_max_requests = 1

        if not self.runninghub_api_key:
            logging.warning("RUNNINGHUB_API_KEY is not set - provider calls will be rejected")

        logging.info(
            f"Config initialized: upload_dir={self.upload_dir}, max_file_size={self.max_file_size_mb}MB, "
            f"rate_limit={self.rate_limit_max_requests}/{self.rate_limit_window_seconds}s, "
            f"provider={self.runninghub_base_url}, timeout={self.provider_timeout_seconds}s, "
            f"poll_attempts={self.result_poll_attempts}"
        )

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024

    def _get_log_file_path(self) -> str:
        """Get the path for the log file."""
        os.makedirs(self.log_dir, exist_ok=True)
        return os.path.join(self.log_dir, f"app_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log")

    def _setup_logging(self):
        """Set up logging configuration."""
        log_file = self._get_log_file_path()
        logging.basicConfig(
            level=logging.INFO,
            format='%(asctime)s - %(levelname)s - %(message)s',
            handlers=[
                logging.FileHandler(log_file),
                logging.StreamHandler()
            ]
        )
