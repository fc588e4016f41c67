from __future__ import annotations

import uvicorn

from .app import APP
from .config import COMFY_RELAY_PORT
from .logging_setup import configure_logging


if __name__ == "__main__":
    configure_logging()
    uvicorn.run(APP, host="0.0.0.0", port=COMFY_RELAY_PORT, log_level="info")
