"""
FastAPI Production Application

Main entry point for the Shop Analytics API.
"""

from shop_analytics.config import get_settings
from shop_analytics.serving.api import create_api_app

settings = get_settings()
app = create_api_app(settings)


def run() -> None:
    """Console entry point; serves the app with uvicorn"""
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    run()
