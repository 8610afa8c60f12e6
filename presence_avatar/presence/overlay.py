"""
Detection overlay for the kiosk preview window.
"""

import cv2
import numpy as np

from ..core.models import Detection

BOX_COLOR = (94, 197, 34)  # BGR green


def draw_detections(
    frame: np.ndarray,
    detections: list[Detection],
    color: tuple[int, int, int] = BOX_COLOR,
    thickness: int = 3,
) -> np.ndarray:
    """
    Draw detection boxes with a confidence percentage.

    Args:
        frame: BGR image
        detections: Detections to draw
        color: Box color (BGR)
        thickness: Line thickness

    Returns:
        Annotated frame (modifies in place)
    """
    for detection in detections:
        box = detection.bbox
        x1, y1 = int(box.x), int(box.y)
        x2, y2 = int(box.x + box.width), int(box.y + box.height)

        cv2.rectangle(frame, (x1, y1), (x2, y2), color, thickness)
        cv2.putText(
            frame,
            f"{round(detection.confidence * 100)}%",
            (x1 + 4, y1 + 20),
            cv2.FONT_HERSHEY_SIMPLEX,
            0.6,
            color,
            2,
        )

    return frame
