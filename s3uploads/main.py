from typing import Optional

from fastapi import FastAPI
from s3uploads.config import UploadConfig, settings
from s3uploads.logging_config import configure_logging
from s3uploads.middleware.s3_upload import S3UploadMiddleware
from s3uploads.routers import upload
from s3uploads.services.interceptor import FormInterceptor
import structlog

logger = structlog.get_logger()


def create_app(config: Optional[UploadConfig] = None) -> FastAPI:
    """
    Build the API with multipart uploads streamed to S3.

    The interceptor is built here, before any request is served, so a
    missing bucket name or a failing bucket creation stops startup.
    """
    configure_logging(settings.log_level, settings.log_json)

    if config is None:
        config = UploadConfig.from_settings(settings)
    interceptor = FormInterceptor(config)

    app = FastAPI(
        title="S3 Uploads API",
        description="Streams multipart file uploads to S3 and hands plain form values to the routes",
        version="1.0.0"
    )
    app.add_middleware(S3UploadMiddleware, interceptor=interceptor)
    app.include_router(upload.router)

    @app.get("/")
    async def root():
        """Health check endpoint."""
        return {"message": "S3 Uploads API is running"}

    @app.get("/health")
    async def health_check():
        """Detailed health check endpoint."""
        return {
            "status": "healthy",
            "service": "s3-uploads-api",
            "bucket": config.bucket,
            "version": "1.0.0"
        }

    logger.info("Application created", bucket=config.bucket, part_size=config.part_size)

    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("s3uploads.main:create_app", factory=True, host="0.0.0.0", port=8000)
