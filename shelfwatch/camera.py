"""USB camera capture and barcode decoding using OpenCV."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path


@dataclass
class CameraCapture:
    camera_index: int
    image_path: str
    captured_at: str  # ISO8601


def _import_cv2():
    try:
        import cv2
    except ImportError:
        raise ImportError(
            "opencv-python is required: pip install opencv-python"
        ) from None
    return cv2


class BarcodeCamera:
    """Capture product photos and read barcodes from them."""

    def __init__(self, camera_index: int = 0, save_dir: str = "/tmp/shelfwatch") -> None:
        self._camera_index = camera_index
        self._save_dir = Path(save_dir)
        self._save_dir.mkdir(parents=True, exist_ok=True)

    def capture(self, prefix: str = "scan") -> CameraCapture:
        """Capture a single frame from the configured camera."""
        cv2 = _import_cv2()

        cap = cv2.VideoCapture(self._camera_index)
        if not cap.isOpened():
            raise RuntimeError(
                f"カメラ {self._camera_index} を開けませんでした。"
                f"接続を確認してください。"
            )

        try:
            ret, frame = cap.read()
            if not ret or frame is None:
                raise RuntimeError(
                    f"カメラ {self._camera_index} からフレームを取得できませんでした。"
                )

            now = datetime.now(timezone.utc)
            timestamp = now.strftime("%Y%m%d_%H%M%S")
            filepath = self._save_dir / f"{prefix}_{timestamp}.jpg"

            cv2.imwrite(str(filepath), frame)

            return CameraCapture(
                camera_index=self._camera_index,
                image_path=str(filepath),
                captured_at=now.isoformat(),
            )
        finally:
            cap.release()

    @staticmethod
    def read_barcode(image_path: str | Path) -> str | None:
        """Decode the first barcode found in an image file.

        Returns:
            The decoded payload, or None if no barcode could be read.

        Raises:
            FileNotFoundError: If the image cannot be loaded.
        """
        cv2 = _import_cv2()

        image = cv2.imread(str(image_path))
        if image is None:
            raise FileNotFoundError(f"画像を読み込めません: {image_path}")

        detector = cv2.barcode.BarcodeDetector()
        ok, decoded_info, _types, _points = detector.detectAndDecodeWithType(image)
        if not ok:
            return None
        for payload in decoded_info:
            if payload:
                return payload
        return None

    def scan_barcode(self) -> tuple[CameraCapture, str | None]:
        """Capture a frame and try to decode a barcode from it."""
        capture = self.capture(prefix="barcode")
        return capture, self.read_barcode(capture.image_path)

    @staticmethod
    def list_cameras(max_check: int = 10) -> list[int]:
        """List available USB camera indices by probing."""
        cv2 = _import_cv2()

        available: list[int] = []
        for i in range(max_check):
            cap = cv2.VideoCapture(i)
            if cap.isOpened():
                available.append(i)
                cap.release()
        return available
