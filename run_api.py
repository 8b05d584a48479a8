#!/usr/bin/env python
"""
Run the Badminton Analyzer API server.

Usage:
    python run_api.py [--port PORT] [--engine simulated|mock|remote] [--reload]

Or using uvicorn directly:
    uvicorn badminton_api.main:create_app --factory --reload --host 0.0.0.0

The server will be available at:
    - API Root: http://localhost:3000
    - Swagger UI: http://localhost:3000/docs
"""

import argparse
import sys
from pathlib import Path

# Add src to path
src_path = Path(__file__).parent / "src"
sys.path.insert(0, str(src_path))


def main():
    parser = argparse.ArgumentParser(
        description="Run the Badminton Analyzer API server"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML settings file (default: $ANALYZER_CONFIG)"
    )
    parser.add_argument(
        "--host",
        default=None,
        help="Host to bind to (default: 0.0.0.0 for external access)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to listen on (default: 3000)"
    )
    parser.add_argument(
        "--engine",
        choices=["simulated", "mock", "remote"],
        default=None,
        help="Analysis engine to use (default: simulated)"
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development"
    )

    args = parser.parse_args()

    from badminton_api.config import load_settings
    from badminton_api.main import run_server

    overrides = {
        key: value for key, value in (
            ("host", args.host), ("port", args.port), ("analysis_engine", args.engine)
        ) if value is not None
    }
    settings = load_settings(config_path=args.config, **overrides)
    run_server(settings=settings, reload=args.reload)


if __name__ == "__main__":
    main()
