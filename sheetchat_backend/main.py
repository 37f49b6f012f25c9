from __future__ import annotations

import os

import uvicorn

from .config import load_config
from .logging_config import get_logger

logger = get_logger(__name__)


def log_startup_summary() -> None:
  config = load_config()

  logger.info("=" * 60)
  logger.info("Starting Sheet Chat API")
  logger.info("=" * 60)
  logger.info(f"Environment: {os.getenv('ENVIRONMENT', 'production')}")
  logger.info(f"Log Level: {os.getenv('LOG_LEVEL', 'INFO')}")
  logger.info(f"Gemini model: {config.gemini_model}")

  logger.info("Feature availability:")
  logger.info(f"  - Sheet loading: {'✓' if config.sheets_enabled else '✗'} (GOOGLE_SHEETS_API_KEY)")
  logger.info(f"  - AI analysis: {'✓' if config.analyzer_enabled else '✗'} (GEMINI_API_KEY)")

  for banner in config.banners():
    logger.warning(f"⚠️  {banner}")

  logger.info("=" * 60)


if __name__ == "__main__":
  port = int(os.getenv("PORT", "8000"))
  log_startup_summary()
  logger.info(f"Port: {port}")
  uvicorn.run("sheetchat_backend.api:app", host="0.0.0.0", port=port)
