"""CLI entry-point for the workflow gateway."""

from __future__ import annotations

import uvicorn

from agent_workflows.config import settings


def main() -> None:
    uvicorn.run(
        "agent_workflows.server:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
        reload=False,
    )


if __name__ == "__main__":
    main()
