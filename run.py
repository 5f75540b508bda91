#!/usr/bin/env python3
"""
FastAPI server startup script.
"""

import sys

import uvicorn

from contentforge.config import get_settings


def main():
    """Start the FastAPI server."""
    settings = get_settings()

    print("🚀 Starting ContentForge API...")
    print("📍 Server will be available at: http://localhost:8000")
    if settings.debug:
        print("📚 API docs will be at: http://localhost:8000/docs")
    print("🛑 Press Ctrl+C to stop the server")
    print("-" * 50)

    try:
        uvicorn.run(
            "contentforge.main:app",
            host="0.0.0.0",
            port=8000,
            reload=settings.debug,
            log_level="info" if settings.debug else "warning",
        )
    except KeyboardInterrupt:
        print("\n👋 Server stopped by user")
    except Exception as e:
        print(f"❌ Server error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
