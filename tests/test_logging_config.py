from __future__ import annotations

import logging

from later_ladder.core.logging import HANDLER_NAME, configure_logging


def test_configure_logging_installs_one_named_handler() -> None:
    root = logging.getLogger()
    before_level = root.level
    before = list(root.handlers)
    try:
        configure_logging("debug")
        configure_logging("warning")

        ours = [h for h in root.handlers if h.get_name() == HANDLER_NAME]
        assert len(ours) == 1
        assert root.level == logging.WARNING
    finally:
        for h in root.handlers[:]:
            if h not in before:
                root.removeHandler(h)
        root.setLevel(before_level)
