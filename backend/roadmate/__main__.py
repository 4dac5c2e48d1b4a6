import logging
import os


def _resolve_host() -> str:
    return os.getenv("HOST", "0.0.0.0")


def _resolve_port() -> int:
    value = os.getenv("PORT") or "8000"
    try:
        return int(value)
    except ValueError:
        return 8000


def main() -> None:
    import uvicorn

    host = _resolve_host()
    port = _resolve_port()
    logging.getLogger(__name__).info("Starting Roadmate backend on %s:%s", host, port)
    uvicorn.run("roadmate.main:app", host=host, port=port, log_level="info")


if __name__ == "__main__":
    main()
