"""
Auto-restart wrapper for running a TabSnap process during development.

Runs ``python -m <module>`` and restarts it whenever a .py file under the
watched packages is created, modified or moved.

Usage:
    tabsnap-dev                                  # coordinator (tabsnap.api)
    tabsnap-dev tabsnap_overlay.switcher --timeout 2
"""

import os
import subprocess
import sys
import time

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

DEFAULT_MODULE = "tabsnap.api"
WATCHED_PACKAGES = ("tabsnap", "tabsnap_overlay")
RELOAD_EVENTS = ("created", "modified", "moved")


class ProcessReloader(FileSystemEventHandler):
    """Keeps one child process running and restarts it on source changes."""

    def __init__(self, module, extra_args=None, restart_delay=1.0, start=True):
        """
        Args:
            module: Module run with ``python -m``
            extra_args: Arguments passed through to the module
            restart_delay: Minimum seconds between two restarts
            start: Launch the child immediately
        """
        self.module = module
        self.extra_args = list(extra_args or [])
        self.restart_delay = restart_delay
        self.process = None
        self.last_restart = 0.0
        self.restarts = 0
        if start:
            self.start_process()

    def command(self):
        return [sys.executable, "-m", self.module] + self.extra_args

    def start_process(self):
        self.stop_process()
        print(f"[DEV] Starting {' '.join(self.command()[1:])}")
        # Child inherits stdout/stderr so its log lines appear unchanged
        self.process = subprocess.Popen(self.command())

    def stop_process(self):
        if self.process is None:
            return
        if self.process.poll() is None:
            print(f"[DEV] Stopping {self.module} (pid {self.process.pid})")
            self.process.terminate()
            try:
                self.process.wait(timeout=3)
            except subprocess.TimeoutExpired:
                print(f"[DEV] {self.module} did not exit, killing it")
                self.process.kill()
                self.process.wait()
        self.process = None

    def should_reload(self, path):
        if not path.endswith(".py"):
            return False
        # Editors often write a file several times per save
        return time.time() - self.last_restart >= self.restart_delay

    def on_any_event(self, event):
        if event.is_directory or event.event_type not in RELOAD_EVENTS:
            return
        path = getattr(event, "dest_path", "") or event.src_path
        if not self.should_reload(path):
            return

        self.last_restart = time.time()
        self.restarts += 1
        print(f"[DEV] {os.path.basename(path)} changed, restart #{self.restarts}")
        self.start_process()


def watch_dirs(root_dir):
    """Package directories under root_dir that exist and should be watched."""
    dirs = [os.path.join(root_dir, package) for package in WATCHED_PACKAGES]
    return [path for path in dirs if os.path.isdir(path)]


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    module = argv[0] if argv else DEFAULT_MODULE
    root_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

    reloader = ProcessReloader(module, extra_args=argv[1:])
    observer = Observer()
    for path in watch_dirs(root_dir):
        observer.schedule(reloader, path=path, recursive=True)
        print(f"[DEV] Watching {path}")
    observer.start()

    try:
        while True:
            time.sleep(1)
            if reloader.process is not None and reloader.process.poll() is not None:
                # Crashed child: wait for the next edit instead of spinning
                print(f"[DEV] {module} exited with {reloader.process.returncode}")
                reloader.process = None
    except KeyboardInterrupt:
        print("[DEV] Shutting down")
    finally:
        reloader.stop_process()
        observer.stop()
        observer.join()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
