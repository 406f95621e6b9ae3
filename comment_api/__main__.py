"""Run the API server: ``python -m comment_api``."""

import uvicorn

from comment_api.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "comment_api.main:app",
        host=settings.host,
        port=settings.port,
        log_config=None,
        proxy_headers=True,
    )


if __name__ == "__main__":
    main()
