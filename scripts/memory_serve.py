"""
CLI for launching the thread memory API server.

Usage:
    python scripts/memory_serve.py
    python scripts/memory_serve.py --port 8080 --host 127.0.0.1 --db data/memory/dev.db
"""

import argparse
import os
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import uvicorn


def main():
    parser = argparse.ArgumentParser(
        description="Launch the thread memory FastAPI server"
    )

    parser.add_argument(
        "--host",
        type=str,
        default="0.0.0.0",
        help="Host to bind to",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind to",
    )
    parser.add_argument(
        "--db",
        type=str,
        default=None,
        help="SQLite database path (overrides THREAD_MEMORY_DB_PATH)",
    )
    parser.add_argument(
        "--provider",
        choices=["openai", "ollama"],
        default=None,
        help="Extraction backend (overrides THREAD_MEMORY_PROVIDER)",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development",
    )

    args = parser.parse_args()

    # Settings are read from the environment at app startup
    if args.db:
        os.environ["THREAD_MEMORY_DB_PATH"] = args.db
    if args.provider:
        os.environ["THREAD_MEMORY_PROVIDER"] = args.provider

    print(f"Starting thread memory API server on {args.host}:{args.port}")
    print(f"API documentation available at: http://localhost:{args.port}/docs")

    uvicorn.run(
        "thread_memory.api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
    )

    return 0


if __name__ == "__main__":
    sys.exit(main())
