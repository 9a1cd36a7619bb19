"""Run the relay with uvicorn: ``python -m chatrelay``."""

import uvicorn

from chatrelay.config.settings import settings


def main() -> None:
    uvicorn.run("chatrelay.core.gateway:app", host=settings.host, port=settings.port, log_level=settings.log_level)


if __name__ == "__main__":
    main()
