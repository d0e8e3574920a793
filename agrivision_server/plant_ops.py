import base64
import binascii

import cv2
import numpy as np

from agrivision_server.schemas import CropInfo, Diagnosis, HealthStatus, Issue

MIN_VEGETATION_RATIO = 0.05

KNOWN_CROPS = {
    "maize": "Zea mays",
    "tomato": "Solanum lycopersicum",
    "cassava": "Manihot esculenta",
    "beans": "Phaseolus vulgaris",
    "potato": "Solanum tuberosum",
    "coffee": "Coffea arabica",
}

# OpenCV hue runs 0-180.
_GREEN = (np.array([35, 40, 40]), np.array([85, 255, 255]))
_YELLOW = (np.array([20, 60, 80]), np.array([35, 255, 255]))
_BROWN = (np.array([5, 50, 20]), np.array([20, 255, 200]))


class NotAPlantError(ValueError):
    pass


def decode_image(image: str) -> np.ndarray:
    data = image.split(",", 1)[1] if image.startswith("data:") else image
    try:
        raw = base64.b64decode(data, validate=False)
    except (binascii.Error, ValueError) as exc:
        raise NotAPlantError("image is not valid base64") from exc
    arr = np.frombuffer(raw, dtype=np.uint8)
    if arr.size == 0:
        raise NotAPlantError("image is empty")
    decoded = cv2.imdecode(arr, cv2.IMREAD_COLOR)
    if decoded is None:
        raise NotAPlantError("image could not be decoded")
    return decoded


def diagnose_plant_image(image: str, crop: str | None = None) -> Diagnosis:
    bgr = decode_image(image)
    hsv = cv2.cvtColor(bgr, cv2.COLOR_BGR2HSV)
    total = float(hsv.shape[0] * hsv.shape[1])

    green = float(np.count_nonzero(cv2.inRange(hsv, *_GREEN))) / total
    yellow = float(np.count_nonzero(cv2.inRange(hsv, *_YELLOW))) / total
    brown = float(np.count_nonzero(cv2.inRange(hsv, *_BROWN))) / total
    vegetation = green + yellow + brown
    if vegetation < MIN_VEGETATION_RATIO:
        raise NotAPlantError(f"vegetation coverage is only {vegetation:.2%}")

    chlorosis = yellow / vegetation
    necrosis = brown / vegetation
    issues: list[Issue] = []
    treatments: list[str] = []

    if chlorosis >= 0.1:
        issues.append(
            Issue(
                name="Leaf chlorosis",
                category="nutrient_deficiency",
                severity=_severity(chlorosis),
                symptoms=["yellowing leaves", f"{chlorosis:.0%} of leaf area affected"],
            )
        )
        treatments.append("Apply a balanced nitrogen fertilizer and check soil pH.")
    if necrosis >= 0.1:
        issues.append(
            Issue(
                name="Leaf necrosis",
                category="disease",
                severity=_severity(necrosis),
                symptoms=["brown dead tissue", f"{necrosis:.0%} of leaf area affected"],
            )
        )
        treatments.append("Remove affected leaves and consider a copper-based fungicide.")

    affected = chlorosis + necrosis
    overall = "Healthy" if not issues else ("Severely stressed" if affected >= 0.5 else "Stressed")
    crop_name = (crop or "unknown").strip().lower() or "unknown"

    return Diagnosis(
        crop=CropInfo(name=crop_name, scientific_name=KNOWN_CROPS.get(crop_name)),
        health_status=HealthStatus(overall=overall, confidence=round(min(vegetation * 2, 1.0), 3)),
        issues=issues,
        treatment_recommendations=treatments,
        diagnostic_notes=f"Vegetation covers {vegetation:.2%} of the image.",
        requires_lab_test=necrosis >= 0.3,
        stats={
            "vegetation_ratio": round(vegetation, 6),
            "chlorosis_ratio": round(chlorosis, 6),
            "necrosis_ratio": round(necrosis, 6),
        },
    )


def _severity(ratio: float) -> str:
    if ratio >= 0.5:
        return "high"
    if ratio >= 0.25:
        return "medium"
    return "low"
