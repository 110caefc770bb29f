#!/usr/bin/env python3
"""
Fixed-Deposit Settlement Core Entry Point

Starts the FastAPI server with the settlement core.
"""

import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from deposit_core.api import run_server
from deposit_core.config import get_config
from deposit_core.logging_config import setup_logging


if __name__ == "__main__":
    config = get_config()
    setup_logging(config.log_level, config.log_format)

    print("Starting Fixed-Deposit Settlement Core...")
    print(f"API available at: http://localhost:{config.api_port}")
    print(f"Documentation at: http://localhost:{config.api_port}/docs")
    print()

    try:
        run_server(
            host=config.api_host,
            port=config.api_port,
            debug=False
        )
    except KeyboardInterrupt:
        print("\nShutting down Fixed-Deposit Settlement Core...")
    except Exception as e:
        print(f"Error starting server: {e}")
        sys.exit(1)
