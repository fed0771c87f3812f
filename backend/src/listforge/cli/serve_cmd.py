"""Run the API server."""

import os

import click


@click.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=None, type=int, help="Defaults to LISTFORGE_PORT or 8000.")
@click.option("--reload", is_flag=True, default=False, help="Reload on code changes.")
def serve(host: str, port: int | None, reload: bool):
    """Serve the lists API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "listforge.api:app",
        host=host,
        port=port or int(os.environ.get("LISTFORGE_PORT", "8000")),
        reload=reload,
        log_level=os.environ.get("LISTFORGE_LOG_LEVEL", "info"),
    )
