from fastapi import FastAPI, Request
from starlette.exceptions import HTTPException
from fastapi.responses import JSONResponse
import logging
import traceback

logger = logging.getLogger(__name__)

def add_error_handling_middleware(app: FastAPI):
    """Add error handling middleware to FastAPI app"""
    
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Handle HTTP exceptions; detail is a list of {msg} entries like validation errors"""
        logger.error(f"HTTP error {exc.status_code}: {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "code": exc.status_code,
                "detail": [{"msg": str(exc.detail), "type": "http_error"}],
                "retryable": exc.status_code >= 500
            },
            headers=getattr(exc, "headers", None),
        )
    
    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle general exceptions"""
        logger.error(f"Unhandled exception: {str(exc)}")
        logger.error(f"Traceback: {traceback.format_exc()}")
        return JSONResponse(
            status_code=500,
            content={
                "code": 500,
                "detail": [{"msg": "Internal server error", "type": "server_error"}],
                "retryable": True
            }
        )
