"""
USSD Menu Session Engine — Uvicorn Launcher
Run this file to start the development server.

Usage:
    python run.py
    python run.py --port 8000
    python run.py --reload
"""
import argparse
import uvicorn


def main():
    parser = argparse.ArgumentParser(description="USSD Menu Session Engine Server")
    parser.add_argument("--host", default="0.0.0.0", help="Bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    parser.add_argument("--reload", action="store_true", help="Enable hot reload for development")
    parser.add_argument("--workers", type=int, default=1, help="Number of workers (default: 1)")

    args = parser.parse_args()
    if args.workers > 1:
        # Session locks are per process; concurrent turns of one session must hit the same worker.
        print("  [!] More than one worker: route each sessionId to a single worker.")

    print(f"""
    ========================================================
      USSD Menu Session Engine
      Callback: http://{args.host}:{args.port}/api/ussd
      Stats:    http://localhost:{args.port}/api/ussd/stats
      Docs:     http://localhost:{args.port}/docs
    ========================================================
    """)

    uvicorn.run(
        "ussd_engine.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        workers=args.workers,
        log_level="info",
    )


if __name__ == "__main__":
    main()
