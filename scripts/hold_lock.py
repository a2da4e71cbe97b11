"""CLI entrypoint to take a named lock, hold it for a while, and give it back."""

from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path

from dynolock.core.errors import LockAcquireTimeoutError
from dynolock.core.locks import LockManager
from dynolock.core.settings import LockSettings
from dynolock.utils.logging import get_logger


logger = get_logger("LockCLI")


def _load_settings(path: Path | None) -> LockSettings:
    if path is None:
        return LockSettings.from_env()
    return LockSettings.from_file(path)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Acquire a distributed lock, hold it, then release it.")
    parser.add_argument("--config", type=Path, default=None, help="Path to lock settings YAML (default: environment)")
    parser.add_argument("--name", required=True, help="Lock name")
    parser.add_argument("--lease", type=float, default=30.0, help="Lease in seconds")
    parser.add_argument("--wait", type=float, default=0.0, help="Seconds to wait for the lock (0 waits forever)")
    parser.add_argument("--hold", type=float, default=5.0, help="Seconds to hold the lock before releasing")
    args = parser.parse_args(argv)

    settings = _load_settings(args.config)
    manager = LockManager.from_settings(settings)
    lock = manager.lock(args.name)

    try:
        lock.acquire_with_timeout(args.lease, args.wait)
    except LockAcquireTimeoutError as exc:
        logger.error("%s", exc)
        return 1

    try:
        logger.info("Holding %s for %.1fs", args.name, args.hold)
        time.sleep(args.hold)
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        lock.release()
    return 0


if __name__ == "__main__":
    sys.exit(main())
