"""
Run the YieldHunter API with uvicorn

    python run_api.py
    API_HOST=0.0.0.0 API_PORT=8080 python run_api.py
"""

import os

import uvicorn

from main import create_app

app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        app,
        host=os.getenv("API_HOST", "127.0.0.1"),
        port=int(os.getenv("API_PORT", "8000")),
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )
