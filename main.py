# NOTE: For displaying the decoded image in a GUI,
#       please download PyQt5.
#
# Installation (in terminal):
#   pip install PyQt5
import sys
from PyQt5.QtWidgets import (
    QApplication, QWidget, QVBoxLayout, QPushButton, QLabel,
    QFileDialog, QTextEdit, QSlider, QHBoxLayout, QCheckBox
)
from PyQt5.QtGui import QPixmap, QImage, qRgba
from PyQt5.QtCore import Qt
from loguru import logger

from bmp_parser import load_bmp
from errors import BmpError
from settings import LOG_FORMAT, LOG_LEVEL, VIEWER_HEIGHT, VIEWER_WIDTH


def format_metadata(metadata):
    # One "key: value" line per header field
    return "".join(f"{k}: {v}\n" for k, v in metadata.items())


class BMPViewer(QWidget):
    def __init__(self):
        super().__init__()
        self.setWindowTitle("BMP Viewer")
        self.resize(VIEWER_WIDTH, VIEWER_HEIGHT + 100)

        # Decoded image, rows top to bottom
        self.image = None
        self.original_pixels = None
        self.width = 0
        self.height = 0

        # RGB channels toggle and display settings
        self.r_enabled = True
        self.g_enabled = True
        self.b_enabled = True
        self.brightness = 1.0
        self.scale = 1.0

        layout = QVBoxLayout()

        top_layout = QHBoxLayout()

        # Button to open BMP file
        self.open_button = QPushButton("Open BMP File")
        self.open_button.setFixedSize(150, 50)
        self.open_button.clicked.connect(self.open_file)
        top_layout.addWidget(self.open_button)

        top_layout.addStretch()

        # Checkboxes to enable/disable R, G, B channels
        self.r_button = QCheckBox("R")
        self.g_button = QCheckBox("G")
        self.b_button = QCheckBox("B")

        self.r_button.clicked.connect(self.toggle_r)
        self.g_button.clicked.connect(self.toggle_g)
        self.b_button.clicked.connect(self.toggle_b)

        for btn in (self.r_button, self.g_button, self.b_button):
            btn.setChecked(True)
            btn.setFixedSize(30, 30)
            top_layout.addWidget(btn)

        layout.addLayout(top_layout)

        # Label to display the image
        self.image_label = QLabel("No Image Loaded")
        self.image_label.setStyleSheet("border: 1px solid black; background: white;")
        self.image_label.setAlignment(Qt.AlignCenter)
        self.image_label.setFixedSize(VIEWER_WIDTH, VIEWER_HEIGHT)
        layout.addWidget(self.image_label)

        # Text box to display BMP metadata
        self.metadata_box = QTextEdit("No Metadata Loaded")
        self.metadata_box.setMinimumHeight(150)
        self.metadata_box.setReadOnly(True)
        layout.addWidget(self.metadata_box)

        # Slider for brightness adjustment
        self.brightness_slider = QSlider(Qt.Horizontal)
        self.brightness_slider.setRange(0, 100)
        self.brightness_slider.setValue(100)
        self.brightness_slider.valueChanged.connect(self.update_image)
        layout.addWidget(QLabel("Brightness"))
        layout.addWidget(self.brightness_slider)

        # Slider for scaling the image
        self.scale_slider = QSlider(Qt.Horizontal)
        self.scale_slider.setRange(1, 100)
        self.scale_slider.setValue(100)
        self.scale_slider.valueChanged.connect(self.update_image)
        layout.addWidget(QLabel("Scale"))
        layout.addWidget(self.scale_slider)

        self.setLayout(layout)

    # Open BMP file and decode it
    def open_file(self):
        filepath, _ = QFileDialog.getOpenFileName(self, "Open BMP File", "", "BMP Files (*.bmp)")
        if not filepath:
            return

        try:
            image = load_bmp(filepath)
        except BmpError as e:
            logger.error(f"Could not open {filepath}: {e}")
            self.metadata_box.setText(f"Could not open {filepath}:\n{e}")
            return

        # Display metadata
        self.metadata_box.setText(format_metadata(image.metadata))

        # Store pixel rows and image size
        self.image = image
        self.original_pixels = list(image.rows())
        self.width = image.width()
        self.height = image.height()

        self.update_image()

    # Update image display based on settings
    def update_image(self):
        if self.original_pixels is None:
            return

        self.brightness = self.brightness_slider.value() / 100.0
        self.scale = self.scale_slider.value() / 100.0

        new_w = max(1, int(self.width * self.scale))
        new_h = max(1, int(self.height * self.scale))

        image = QImage(new_w, new_h, QImage.Format_ARGB32)

        # Loop through each pixel and apply brightness and RGB toggle
        for y in range(new_h):
            for x in range(new_w):
                src_x = min(int(x / self.scale), self.width - 1)
                src_y = min(int(y / self.scale), self.height - 1)

                R, G, B, A = self.original_pixels[src_y][src_x]

                if not self.r_enabled:
                    R = 0
                if not self.g_enabled:
                    G = 0
                if not self.b_enabled:
                    B = 0

                R = int(R * self.brightness)
                G = int(G * self.brightness)
                B = int(B * self.brightness)

                image.setPixel(x, y, qRgba(R, G, B, A))

        # Show updated image
        pixmap = QPixmap.fromImage(image)
        self.image_label.setPixmap(pixmap)

    # Toggle R channel
    def toggle_r(self):
        self.r_enabled = self.r_button.isChecked()
        self.update_image()

    # Toggle G channel
    def toggle_g(self):
        self.g_enabled = self.g_button.isChecked()
        self.update_image()

    # Toggle B channel
    def toggle_b(self):
        self.b_enabled = self.b_button.isChecked()
        self.update_image()


if __name__ == "__main__":
    logger.remove()
    logger.add(sys.stderr, format=LOG_FORMAT, level=LOG_LEVEL)

    app = QApplication(sys.argv)
    viewer = BMPViewer()
    viewer.show()
    sys.exit(app.exec_())
