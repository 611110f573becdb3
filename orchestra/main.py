from __future__ import annotations

import uvicorn

from orchestra.config import Settings


def run() -> None:
    settings = Settings.from_env()
    uvicorn.run(
        "orchestra.api:app",
        host=settings.host,
        port=settings.port,
        reload=False,
    )


if __name__ == "__main__":
    run()
