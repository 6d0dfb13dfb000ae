#!/usr/bin/env python3
"""
Start the demo app with auto reload and console logs.
"""

import os
import sys

import uvicorn

from s3uploads.config import Settings


def main():
    os.environ.setdefault("LOG_JSON", "false")

    if not Settings().s3_bucket_name.strip():
        sys.exit("S3_BUCKET_NAME is not set (see env.example)")

    uvicorn.run(
        "s3uploads.main:create_app",
        factory=True,
        host=os.environ.get("HOST", "127.0.0.1"),
        port=int(os.environ.get("PORT", "8000")),
        reload=True,
    )


if __name__ == "__main__":
    main()
