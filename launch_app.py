from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import uvicorn


PROJECT_ROOT = Path(__file__).resolve().parent
APP_DIR = PROJECT_ROOT / "app"
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))


def launch_app(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Run the labor tool API.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--seed", action="store_true", help="Load the default roster and planning data first.")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    if args.seed:
        from scripts.seed_staffing import seed_all

        print("[launcher] Seeding default data...")
        seed_all()

    print(f"[launcher] Serving API on http://{args.host}:{args.port}")
    uvicorn.run("api:app", host=args.host, port=args.port, app_dir=str(APP_DIR))
    return 0


if __name__ == "__main__":
    sys.exit(launch_app())
