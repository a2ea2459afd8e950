"""
FastAPI application entry point for the PDF render service.
"""
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from backend.lib.logging_setup import setup_logging

# Ensure logging configuration is consistent when the app is imported directly
setup_logging(enable_console=True)

logger.info("Initializing PDF render service...")

try:
    from core.config import Config
    from backend.app.routes import pdf
    logger.info("✓ All modules imported successfully")
except Exception as e:
    logger.error(f"✗ Failed to import modules: {e}")
    raise

app = FastAPI(
    title="PDF Generator API",
    description="Renders exported report pages to PDF with a headless browser",
    version="0.1.0",
)

# Initialize configuration with error handling
try:
    config = Config()
    render_config = config.get_render_config()
    logger.info("✓ Config loaded successfully")
except Exception as e:
    logger.error(f"✗ Failed to load config: {e}")
    raise

# CORS middleware - read from config
try:
    cors_config = config.get_cors_config()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_config['allowed_origins'],
        allow_credentials=cors_config['allow_credentials'],
        allow_methods=cors_config['allow_methods'],
        allow_headers=cors_config['allow_headers'],
    )
    logger.info("✓ CORS middleware configured")
except Exception as e:
    logger.error(f"✗ Failed to configure CORS: {e}")
    raise


@app.middleware("http")
async def limit_body_size(request: Request, call_next):
    """Reject request bodies above the configured limit (50 MB by default)."""
    max_body_bytes = render_config['max_body_bytes']
    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit() and int(content_length) > max_body_bytes:
        logger.warning(f"Rejected {content_length}-byte body on {request.url.path}")
        return JSONResponse(
            status_code=413,
            content={"error": "Contenido demasiado grande", "limit": max_body_bytes},
        )
    return await call_next(request)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info(f"Invalid request body on {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=400, content={"error": "HTML es requerido"})


try:
    app.include_router(pdf.router, prefix="/api", tags=["pdf"])
    logger.info("✓ All routers included successfully")
except Exception as e:
    logger.error(f"✗ Failed to include routers: {e}")
    raise


@app.get("/")
async def root():
    return {"message": "PDF Generator API", "version": "0.1.0"}


@app.get("/health")
async def health():
    """Health check endpoint - should respond quickly without any dependencies."""
    return {"status": "OK", "service": "PDF Generator API"}


logger.info("✓ FastAPI application initialized successfully")


@app.on_event("startup")
async def startup_event():
    """Called when the application starts."""
    logger.info("=" * 60)
    logger.info("PDF render service startup complete")
    logger.info("Endpoint available at POST /api/generate-pdf")
    logger.info("=" * 60)


@app.on_event("shutdown")
async def shutdown_event():
    """Called when the application shuts down."""
    logger.info("PDF render service shutting down...")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=3001)
