"""HTTP API for Flip Flow."""


def main() -> None:
    """Run the API server (``flipflow-api`` console script)."""
    import uvicorn

    from flipflow.config import API_HOST, API_PORT, LOG_LEVEL

    uvicorn.run("flipflow.api.app:app", host=API_HOST, port=API_PORT, log_level=LOG_LEVEL.lower())
