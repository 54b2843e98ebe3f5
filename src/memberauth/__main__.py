"""memberauth entrypoint.

Run with:
  python -m memberauth
"""

import logging
import os

import uvicorn


def main() -> None:
    host = os.getenv("MEMBERAUTH_HOST", "0.0.0.0")
    port = int(os.getenv("MEMBERAUTH_PORT", "3000"))
    reload = os.getenv("MEMBERAUTH_RELOAD", "false").lower() in {"1", "true", "yes", "y"}
    log_level = os.getenv("MEMBERAUTH_LOG_LEVEL", "info").lower()
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "memberauth.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


if __name__ == "__main__":
    main()
