"""iHUNT VTT dev launcher. Starts the API server in watch mode."""

import argparse
import asyncio
import os
import shutil
import subprocess
import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
BACKEND_PORT = os.getenv("BACKEND_PORT", "13013")


def main():
    parser = argparse.ArgumentParser(description="iHUNT VTT dev launcher")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="Data storage directory (default: ./data)")
    parser.add_argument("--demo", action="store_true",
                        help="Clean and create the demo table")
    args = parser.parse_args()

    data_dir = (args.data_dir or Path(os.getenv("DATA_DIR", ROOT / "data"))).resolve()

    # Handle --demo: wipe the store and populate, then continue to dev server
    if args.demo:
        from backend.demo import create_demo_data
        from ihunt_vtt.store import JsonFileStore

        store_dir = data_dir / "store"
        if store_dir.exists():
            shutil.rmtree(store_dir)
        asyncio.run(create_demo_data(JsonFileStore(store_dir)))

    # Build env for the server so it picks up the same data dir
    env = os.environ.copy()
    env["DATA_DIR"] = str(data_dir)

    print(f"Starting backend on http://localhost:{BACKEND_PORT} ...")
    proc = subprocess.Popen(
        [sys.executable, "-m", "uvicorn", "backend.app:app", "--reload", "--host", HOST, "--port", BACKEND_PORT],
        cwd=ROOT, env=env,
    )
    try:
        proc.wait()
    except KeyboardInterrupt:
        print("\nShutting down...")
        proc.terminate()
        proc.wait()


if __name__ == "__main__":
    main()
