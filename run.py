#!/usr/bin/env python3
"""
Loan Tracker Entry Point

Starts the FastAPI server with settings from LOAN_TRACKER_* environment variables.
"""

import sys

import uvicorn

from loan_tracker.config import get_config
from loan_tracker.logging_config import setup_logging


if __name__ == "__main__":
    settings = get_config()
    logger = setup_logging(settings.log_level, log_format=settings.log_format, log_file=settings.log_file)

    print("Starting Loan Tracker...")
    print(f"API available at: http://localhost:{settings.api_port}")
    print(f"Documentation at: http://localhost:{settings.api_port}/docs")
    print()

    try:
        uvicorn.run(
            "loan_tracker.api:create_app",
            factory=True,
            host=settings.api_host,
            port=settings.api_port,
            log_level=settings.log_level.lower()
        )
    except KeyboardInterrupt:
        print("\nShutting down Loan Tracker...")
    except Exception as e:
        logger.error(f"Error starting server: {e}", exc_info=True)
        sys.exit(1)
