"""Shared defaults for opsflow."""

DEFAULT_BASE_URL = "http://localhost:5000/api"
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY_MS = 1000
DEFAULT_RETRY_DELAY_MULTIPLIER = 2.0
DEFAULT_MAX_RETRY_DELAY_MS = 30000
DEFAULT_TIMEOUT_MS = 30000

DEFAULT_DEPLOY_DOMAIN = "grudge.site"
DEFAULT_STEP_LATENCY = (0.5, 1.5)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
