"""
API package for the ocean platform FastAPI backend.

This package provides:
- Application settings (app_config.py)
- Service wiring shared by routes and the WebSocket endpoint (services.py)
- Model record storage (store.py)
- Simulated training jobs (jobs/)
- REST routes for training, models, notifications and system health
"""
