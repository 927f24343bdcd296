"""Run the service with uvicorn: ``python -m shortlink``."""

import uvicorn

from shortlink.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run("shortlink.main:app", host="0.0.0.0", port=settings.PORT)


if __name__ == "__main__":
    main()
