import argparse

import uvicorn

from jiralert.config import get_settings


def main() -> None:
    settings = get_settings()

    parser = argparse.ArgumentParser(
        prog="jiralert",
        description="Alertmanager webhook receiver that manages Jira issues",
    )
    parser.add_argument("--host", default=settings.host, help="address to listen on")
    parser.add_argument("--port", type=int, default=settings.port, help="port to listen on")
    args = parser.parse_args()

    uvicorn.run(
        "jiralert.main:app",
        host=args.host,
        port=args.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
