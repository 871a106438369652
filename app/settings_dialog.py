"""Settings dialog.

Two tabs:
 - Editor: default zoom, annotation colours, default font size, high-DPI
 - Export & Debug: export service URL and timeout, debug mode checkbox
"""
from dataclasses import replace

from PySide6.QtGui import QColor
from PySide6.QtWidgets import (
    QCheckBox,
    QColorDialog,
    QDialog,
    QDialogButtonBox,
    QDoubleSpinBox,
    QFormLayout,
    QLabel,
    QLineEdit,
    QPushButton,
    QTabWidget,
    QVBoxLayout,
    QWidget,
)

import viewport
from models import EditorSettings


class _ColorButton(QPushButton):
    """Push button showing a colour swatch; click to pick another colour."""

    def __init__(self, color: str, parent=None):
        super().__init__(parent)
        self._color = color
        self.setFixedWidth(80)
        self.clicked.connect(self._pick)
        self._refresh()

    def color(self) -> str:
        return self._color

    def _refresh(self):
        self.setText(self._color)
        self.setStyleSheet(f"QPushButton {{ background-color: {self._color}; "
                           f"color: {'#fff' if QColor(self._color).lightness() < 128 else '#000'}; }}")

    def _pick(self):
        c = QColorDialog.getColor(QColor(self._color), self, "Choose colour")
        if c.isValid():
            self._color = c.name()
            self._refresh()


class SettingsDialog(QDialog):
    """Settings dialog with tabs for the editor and for export/debug."""

    def __init__(self, settings: EditorSettings, parent=None):
        super().__init__(parent)
        self.setWindowTitle("Settings")
        self.setMinimumWidth(460)
        self._settings = settings

        layout = QVBoxLayout(self)

        tabs = QTabWidget()
        layout.addWidget(tabs)

        tabs.addTab(self._build_editor_tab(settings), "Editor")
        tabs.addTab(self._build_export_tab(settings), "Export && Debug")

        buttons = QDialogButtonBox(
            QDialogButtonBox.StandardButton.Ok | QDialogButtonBox.StandardButton.Cancel
        )
        buttons.accepted.connect(self.accept)
        buttons.rejected.connect(self.reject)
        layout.addWidget(buttons)

    # ── Tab builders ──────────────────────────────────────────────────────────

    def _build_editor_tab(self, settings: EditorSettings) -> QWidget:
        w = QWidget()
        layout = QVBoxLayout(w)
        layout.setContentsMargins(12, 12, 12, 12)

        form = QFormLayout()
        form.setFieldGrowthPolicy(QFormLayout.FieldGrowthPolicy.FieldsStayAtSizeHint)
        layout.addLayout(form)

        self._scale_spin = QDoubleSpinBox()
        self._scale_spin.setRange(viewport.MIN_SCALE, viewport.MAX_SCALE)
        self._scale_spin.setSingleStep(viewport.ZOOM_STEP)
        self._scale_spin.setDecimals(2)
        self._scale_spin.setValue(settings.default_scale)
        self._scale_spin.setToolTip("Zoom used when a document is opened (1.0 = 100%)")
        form.addRow("Default zoom:", self._scale_spin)

        self._font_spin = QDoubleSpinBox()
        self._font_spin.setRange(4.0, 144.0)
        self._font_spin.setDecimals(1)
        self._font_spin.setValue(settings.default_font_size)
        self._font_spin.setSuffix(" pt")
        form.addRow("Text size:", self._font_spin)

        self._text_color_btn = _ColorButton(settings.text_color)
        form.addRow("Text colour:", self._text_color_btn)

        self._draw_color_btn = _ColorButton(settings.draw_color)
        self._draw_color_btn.setToolTip("Used for strokes, shapes and highlights")
        form.addRow("Drawing colour:", self._draw_color_btn)

        layout.addSpacing(8)
        self._hi_dpr_cb = QCheckBox("High-DPI rendering")
        self._hi_dpr_cb.setChecked(settings.hi_dpr)
        self._hi_dpr_cb.setToolTip(
            "Render pages at the screen's device pixel ratio (sharper on Retina\n"
            "displays). Disable for faster rendering."
        )
        layout.addWidget(self._hi_dpr_cb)

        layout.addStretch()
        return w

    def _build_export_tab(self, settings: EditorSettings) -> QWidget:
        w = QWidget()
        layout = QVBoxLayout(w)
        layout.setContentsMargins(12, 12, 12, 12)

        form = QFormLayout()
        layout.addLayout(form)

        self._url_edit = QLineEdit(settings.export_url)
        self._url_edit.setToolTip(
            "Endpoint that receives the original PDF plus the annotations\n"
            "and answers with the edited PDF."
        )
        form.addRow("Export service URL:", self._url_edit)

        self._timeout_spin = QDoubleSpinBox()
        self._timeout_spin.setRange(1.0, 3600.0)
        self._timeout_spin.setDecimals(0)
        self._timeout_spin.setSuffix(" s")
        self._timeout_spin.setValue(settings.export_timeout)
        form.addRow("Request timeout:", self._timeout_spin)

        layout.addSpacing(8)
        hint = QLabel(
            "The form fields sent are <tt>file</tt>, <tt>annotations</tt> (JSON) "
            "and <tt>pages</tt>."
        )
        hint.setWordWrap(True)
        hint.setStyleSheet("color: #555;")
        layout.addWidget(hint)

        layout.addSpacing(16)

        self._debug_cb = QCheckBox("Enable debug mode")
        self._debug_cb.setChecked(settings.debug_mode)
        self._debug_cb.setToolTip(
            "When enabled, print detailed debug messages to the terminal\n"
            "(rendering, tool changes, history commits, export requests)."
        )
        layout.addWidget(self._debug_cb)

        layout.addStretch()
        return w

    # ── Public API ────────────────────────────────────────────────────────────

    def get_settings(self) -> EditorSettings:
        return replace(
            self._settings,
            export_url=self._url_edit.text().strip() or EditorSettings().export_url,
            export_timeout=self._timeout_spin.value(),
            default_scale=self._scale_spin.value(),
            text_color=self._text_color_btn.color(),
            draw_color=self._draw_color_btn.color(),
            default_font_size=self._font_spin.value(),
            hi_dpr=self._hi_dpr_cb.isChecked(),
            debug_mode=self._debug_cb.isChecked(),
        )
