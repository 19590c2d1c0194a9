#!/usr/bin/env python3
"""
Backend startup wrapper.

Usage: quickai-server [--host HOST] [--port PORT] [--reload]
"""
import argparse
import os
import sys


def main() -> int:
    parser = argparse.ArgumentParser(description="Run the QuickAI backend.")
    parser.add_argument("--host", default=os.getenv("HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=int(os.getenv("PORT", "3000")))
    parser.add_argument("--reload", action="store_true", help="Reload on code changes (development only).")
    args = parser.parse_args()

    print(f"[Backend] Starting QuickAI backend on http://{args.host}:{args.port}")
    print("[Backend] Press CTRL+C to stop")

    import uvicorn

    try:
        uvicorn.run(
            "quickai.main:app",
            host=args.host,
            port=args.port,
            reload=args.reload,
            log_level="info",
            access_log=False,
        )
    except KeyboardInterrupt:
        print("\n[Backend] Shutting down...")
    return 0


if __name__ == "__main__":
    sys.exit(main())
