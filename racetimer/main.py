"""
main.py

Entry point: loads settings, builds transport/client/controller, opens the
race timer window and starts polling.
"""
import argparse
import logging
import os
import sys
from collections import deque

from PyQt5 import QtWidgets

from racetimer.controller.race_controller import RaceController
from racetimer.core.config_backend import ConfigBackend
from racetimer.core.config_store import ConfigStore, set_config_store
from racetimer.net.authority_client import AuthorityClient
from racetimer.net.transport import QtTransport
from racetimer.ui.main_window import RaceTimerWindow

log = logging.getLogger(__name__)

APP_TITLE = "Race Timer"
LOG_FILENAME = "racetimer_log.txt"


class CappedFileHandler(logging.FileHandler):
    """A FileHandler that keeps only the last N lines of logs."""
    def __init__(self, filename, max_lines=200, mode="a", encoding="utf-8"):
        super().__init__(filename, mode=mode, encoding=encoding)
        self.max_lines = max_lines
        self._buffer = deque(maxlen=max_lines)

    def emit(self, record):
        msg = self.format(record)
        self._buffer.append(msg + "\n")
        # Flush buffer to file every 10 lines or on error
        if len(self._buffer) % 10 == 0 or record.levelno >= logging.ERROR:
            with open(self.baseFilename, "w", encoding=self.encoding) as f:
                f.writelines(self._buffer)


def configure_logging(log_path: str, level: int = logging.INFO) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[CappedFileHandler(log_path, max_lines=200), logging.StreamHandler(sys.stdout)],
    )


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Live race timer client")
    parser.add_argument("--settings", help="Path to settings.ini (default: next to the executable)")
    parser.add_argument("--authority", help="Override the timing authority base URL for this run")
    parser.add_argument("--debug", action="store_true", help="Log at DEBUG level")
    return parser


def main(argv=None):
    args = build_arg_parser().parse_args(argv)

    base_dir = os.path.dirname(sys.argv[0])
    configure_logging(os.path.join(base_dir, LOG_FILENAME), logging.DEBUG if args.debug else logging.INFO)
    log.info("Starting %s", APP_TITLE)

    app = QtWidgets.QApplication(sys.argv[:1])
    app.setQuitOnLastWindowClosed(True)

    try:
        store = ConfigStore(ConfigBackend(args.settings))
        if args.authority:
            store.override_base_url(args.authority)
    except ValueError as e:
        log.error("Invalid configuration: %s", e)
        QtWidgets.QMessageBox.critical(None, APP_TITLE, f"Invalid configuration:\n{e}")
        return 1
    set_config_store(store)
    cfg = store.config
    log.info("Timing authority: %s (poll %d ms)", cfg.base_url, cfg.poll_ms)

    transport = QtTransport(cfg.base_url, timeout_ms=cfg.timeout_ms)
    controller = RaceController(AuthorityClient(transport), cfg)

    def on_config_changed(new_cfg):
        transport.set_base_url(new_cfg.base_url)
        transport.set_timeout(new_cfg.timeout_ms)
        controller.update_config(new_cfg)

    store.config_changed.connect(on_config_changed)

    window = RaceTimerWindow(controller, cfg=cfg)
    window.show()
    controller.start()

    app.aboutToQuit.connect(controller.shutdown)
    return app.exec_()


if __name__ == "__main__":
    sys.exit(main())
