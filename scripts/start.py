#!/usr/bin/env python3
"""
Production startup: run the release phase (backend only), then exec gunicorn.

SERVICE selects what this container serves:
  panel    the REST backend (app.wsgi:app), migrations + seed first
  gateway  the admin-panel gateway (app.gateway.wsgi:app)

Usage:
    SERVICE=panel python scripts/start.py
"""
from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

TARGETS = {
    "panel": "app.wsgi:app",
    "gateway": "app.gateway.wsgi:app",
}


def _port() -> str:
    port = os.environ.get("PORT", "").strip()
    if not port:
        print("WARNING: PORT not set, using default 8080", flush=True)
        return "8080"
    try:
        if not 1 <= int(port) <= 65535:
            raise ValueError("Port out of range")
    except ValueError:
        print(f"ERROR: Invalid PORT value '{port}'. Must be integer 1-65535.", flush=True)
        sys.exit(1)
    return port


def main() -> None:
    service = (os.environ.get("SERVICE") or "panel").strip().lower()
    if service not in TARGETS:
        print(f"ERROR: Unknown SERVICE '{service}'. Expected one of: {', '.join(TARGETS)}", flush=True)
        sys.exit(1)
    port = _port()

    if service == "panel":
        print("=== Running release phase ===", flush=True)
        from scripts.release import run_release

        try:
            run_release()
        except Exception as e:
            print(f"Release failed: {e}", flush=True)
            sys.exit(1)

    print(f"=== Starting gunicorn ({service}) on 0.0.0.0:{port} ===", flush=True)
    # exec so gunicorn becomes PID 1 and receives signals directly
    os.execvp(
        "gunicorn",
        [
            "gunicorn",
            TARGETS[service],
            "--bind", f"0.0.0.0:{port}",
            "--workers", "2",
            "--timeout", "60",
            "--preload",
            "--access-logfile", "-",
            "--error-logfile", "-",
        ],
    )


if __name__ == "__main__":
    main()
