from __future__ import annotations

import os

import uvicorn

from sheetchat_backend.api import app
from sheetchat_backend.main import log_startup_summary


if __name__ == "__main__":
  port = int(os.getenv("PORT", "8000"))
  log_startup_summary()
  uvicorn.run(app, host="0.0.0.0", port=port)
