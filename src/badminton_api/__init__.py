"""
FastAPI backend for badminton video analysis.

This package provides REST API endpoints for:
- Video upload
- Analysis status polling and results retrieval
"""

from .main import create_app, run_server

__all__ = ["create_app", "run_server"]
