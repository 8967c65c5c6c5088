"""
Run the NexusMart API under uvicorn.

Usage:
    python scripts/start_api.py [--reload]

PORT and HOST come from the environment (defaults 8000 / 0.0.0.0).
"""
import argparse
import os
import sys
from pathlib import Path

# Ensure the project root is importable when executing as a script.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import uvicorn


def _read_port() -> int:
    """Fetch and validate the PORT environment variable."""
    value = os.environ.get("PORT", "8000")
    try:
        return int(value)
    except ValueError as exc:
        raise SystemExit(f"Invalid PORT '{value}': {exc}") from exc


def main() -> None:
    parser = argparse.ArgumentParser(description="Start the NexusMart API")
    parser.add_argument("--reload", action="store_true", help="Reload on code changes (development only)")
    args = parser.parse_args()

    uvicorn.run(
        "app.main:app",
        host=os.environ.get("HOST", "0.0.0.0"),
        port=_read_port(),
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
