# SPDX-License-Identifier: LGPL-3.0-or-later
class FakeLogger:
    """Records (level, formatted message) pairs."""

    def __init__(self):
        self.records = []

    def _log(self, level, msg, args):
        try:
            text = str(msg) % args if args else str(msg)
        except (TypeError, ValueError):
            text = str(msg)
        self.records.append((level, text))

    def trace(self, msg, *a, **k): self._log("trace", msg, a)
    def debug(self, msg, *a, **k): self._log("debug", msg, a)
    def info(self, msg, *a, **k): self._log("info", msg, a)
    def warning(self, msg, *a, **k): self._log("warning", msg, a)
    def error(self, msg, *a, **k): self._log("error", msg, a)

    def isEnabledFor(self, _lvl):
        return True

    def messages(self, level):
        return [m for lvl, m in self.records if lvl == level]
