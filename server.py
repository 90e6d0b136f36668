import uvicorn

from linkportal.config import get_settings
from linkportal.observability import setup_logging


def run_uvicorn():
    """
    Run the FastAPI app via uvicorn in this process.
    Host, port and log level come from the environment (see linkportal.config).
    """
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_json)
    config = uvicorn.Config(
        "linkportal.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=False,
    )
    server = uvicorn.Server(config)
    server.run()


def main():
    try:
        run_uvicorn()
    except KeyboardInterrupt:
        print("\n[server] Shutting down.")


if __name__ == "__main__":
    main()
