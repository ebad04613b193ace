"""Direct Flask server runner using environment variables."""

from __future__ import annotations

import logging
from pathlib import Path

from config import load_config
from core import setup_logger
from web import create_app

if __name__ == "__main__":
    # Load configuration
    config = load_config()

    # Root logger so every module logger inherits console and file handlers
    setup_logger(
        level=logging.DEBUG if config.debug else logging.INFO,
        log_file=str(Path(config.log_folder) / "api.log"),
    )

    # Create Flask application
    app = create_app(config)

    # Run Flask server; the reloader would start a second loop and pool
    app.run(host=config.web_host, port=config.web_port, debug=config.debug, use_reloader=False)
