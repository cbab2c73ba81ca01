"""Development launcher for the form preview."""

from __future__ import annotations

import logging
import sys

from PySide6.QtWidgets import QApplication, QMainWindow, QScrollArea

from . import settings
from .services import FormRepository, FormService
from .ui import FormPreview


def main(argv: list[str] | None = None) -> int:
    argv = list(sys.argv if argv is None else argv)
    logging.basicConfig(level=logging.DEBUG if settings.DEV_MODE else logging.INFO)
    template_id = argv[1] if len(argv) > 1 else "feedback"

    app = QApplication(argv)
    service = FormService(FormRepository(settings.default_store()))
    fields = service.load_template_fields(template_id)

    preview = FormPreview(service)
    preview.set_form(service.template_title(fields), fields)

    window = QMainWindow()
    window.setWindowTitle("Form Builder Preview")
    scroll = QScrollArea(window)
    scroll.setWidgetResizable(True)
    scroll.setWidget(preview)
    window.setCentralWidget(scroll)
    window.resize(720, 820)
    window.show()
    return app.exec()


if __name__ == "__main__":  # pragma: no cover - manual launch helper
    raise SystemExit(main())
