import logging

import uvicorn

from .app import create_app
from .config import get_settings

settings = get_settings()
app = create_app(settings)


def run() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logging.getLogger("tastetracker.http").info("Taste Tracker app listening on port %s", settings.port)
    uvicorn.run(app, host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
