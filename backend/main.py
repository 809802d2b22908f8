"""
Main FastAPI application entry point for the FlowGraph MCP server.
"""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from loguru import logger

from flowgraph.core.config import settings
from flowgraph.core.middleware import LoggingMiddleware
from flowgraph.mcp.server import mcp_router
from flowgraph.services.workflow_store import close_workflow_store


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info(f"Starting {settings.APP_NAME} against {settings.N8N_BASE_URL}")
    yield
    logger.info("Shutting down application")
    await close_workflow_store()


app = FastAPI(
    title=settings.APP_NAME,
    description="MCP tools for discovering, editing, validating and executing n8n workflows",
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(LoggingMiddleware)

app.include_router(mcp_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": settings.APP_VERSION}


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": settings.APP_NAME,
        "docs": "/docs",
        "mcp": "/mcp/tools",
        "health": "/health",
    }


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
