"""
FastAPI server for Blockflow
"""
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..core.config import Config
from ..core.execution.nodes import create_default_registry
from ..core.execution.registry import BlockRegistry
from ..utils.logger import get_logger
from .routes import router

logger = get_logger(__name__)


def create_app(registry: Optional[BlockRegistry] = None) -> FastAPI:
    """
    Build the API application

    Args:
        registry: Block registry served and used for runs (defaults to the
            built-in blocks)

    Returns:
        FastAPI app with the registry on app.state
    """
    app = FastAPI(title="Blockflow API", version=__version__)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # In production, restrict this
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.registry = registry if registry is not None else create_default_registry()
    logger.info(f"API serving {len(app.state.registry)} block types")

    # Include routes
    app.include_router(router, prefix="/api/v1")

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "service": "Blockflow",
            "version": __version__,
            "status": "running",
        }

    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_app(), host=Config.API_HOST, port=Config.API_PORT)
