"""Service entry point: ``x402-facilitator`` or ``python -m x402_facilitator.http.server``."""

from __future__ import annotations

import uvicorn

from ..config import configure_logging, load_config
from ..facilitator import create_facilitator
from .app import create_app


def main() -> None:
    config = load_config()
    configure_logging(config.log_level)

    app = create_app(create_facilitator(config), config)
    uvicorn.run(app, host=config.host, port=config.port)


if __name__ == "__main__":
    main()
