"""
Logging setup shared by the CLI, server and TUI
"""

import logging
import os

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEBUG_DIR = "debug"


def _ensure_debug_dir(path: str = DEBUG_DIR) -> str:
    os.makedirs(path, exist_ok=True)
    return path


def configure_logging(debug: bool = False, console: bool = True, debug_dir: str = DEBUG_DIR):
    """
    Configure the root logger once per process.

    With debug enabled everything down to block level traffic is logged and
    also written to debug/nfc_tag.log. Without a console or debug file a
    NullHandler keeps records from falling through to stderr.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if debug else logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT)

    for handler in list(root.handlers):
        if getattr(handler, "_nfc_tag", False):
            root.removeHandler(handler)
            handler.close()

    handlers = []
    if console:
        handlers.append(logging.StreamHandler())
    if debug:
        log_path = os.path.join(_ensure_debug_dir(debug_dir), "nfc_tag.log")
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))
    if not handlers:
        handlers.append(logging.NullHandler())

    for handler in handlers:
        handler.setFormatter(formatter)
        handler._nfc_tag = True
        root.addHandler(handler)
    return root
