"""ASGI entrypoint: ``uvicorn hotelbook.api.app:app``."""

from hotelbook.api.factory import create_app

app = create_app()
