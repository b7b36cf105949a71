"""Overlay host process: polls the coordinator and drives overlay controllers."""

import argparse
import logging
import sys
import time

from tabsnap import setup_logging

from .client import TabSnapClient
from .controller import OverlayHost
from .keyboard_bridge import KeyboardBridge

logger = logging.getLogger("TabSnap.Overlay")

POLL_INTERVAL_S = 0.1


def wait_for_coordinator(client: TabSnapClient, max_retries: int = 10) -> bool:
    """Wait for the coordinator with exponential backoff."""
    retry_delay = 0.5  # Start with 0.5 seconds
    for attempt in range(max_retries):
        logger.info(f"Connecting to coordinator (attempt {attempt + 1}/{max_retries})...")
        if client.health():
            logger.info("Coordinator reachable")
            return True
        if attempt < max_retries - 1:
            logger.warning(f"Coordinator not reachable. Retrying in {retry_delay}s...")
            time.sleep(retry_delay)
            retry_delay = min(retry_delay * 1.5, 5)  # Exponential backoff, max 5 seconds
    return False


def run(host: OverlayHost, bridge: KeyboardBridge, poll_interval: float = POLL_INTERVAL_S) -> None:
    """Main loop: deliver coordinator messages and log what would be rendered."""
    last_render = None
    while True:
        with bridge.lock:
            host.poll_once()
            render = host.controller.get_render_data() if host.controller else None

        if render != last_render:
            if render is None:
                logger.info("Overlay closed")
            else:
                labels = [item["label"] for item in render["items"]]
                logger.info(
                    f"Overlay: selected={render['selected']} query={render['query']!r} items={labels}"
                )
            last_render = render

        time.sleep(poll_interval)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="TabSnap overlay host")
    parser.add_argument("--api-url", default=None, help="Coordinator base URL")
    parser.add_argument("--timeout", type=float, default=1.0)
    parser.add_argument(
        "--drop-final-key",
        choices=("auto", "yes", "no"),
        default="auto",
        help="Leave the shortcut's last key out of the release-to-commit set",
    )
    parser.add_argument("--log-file", default=None)
    args = parser.parse_args(argv)

    setup_logging(args.log_file, component="overlay")
    logger.info("=== Starting TabSnap overlay host ===")

    client = TabSnapClient(args.api_url, timeout=args.timeout)
    if not wait_for_coordinator(client):
        logger.error(f"FATAL: Could not reach the coordinator at {client.api_url}")
        return 1

    drop_final_key = {"auto": None, "yes": True, "no": False}[args.drop_final_key]
    host = OverlayHost(client, drop_final_key=drop_final_key)
    bridge = KeyboardBridge(host)
    if not bridge.start():
        logger.warning("Keyboard listener unavailable; hold-to-switch is disabled")

    try:
        run(host, bridge)
    except KeyboardInterrupt:
        logger.info("Shutting down overlay host")
    finally:
        bridge.stop()
        host.close_overlay()
    return 0


if __name__ == "__main__":
    sys.exit(main())
