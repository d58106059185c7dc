# src/app/constants.py
"""
Fixed limits and tuning values for the import pipeline.
These are intentionally not read from the environment.
"""
from __future__ import annotations

# Rate limiting (per identity, process-local)
RATE_LIMIT_WINDOW_SECONDS = 60
RATE_LIMIT_MAX_REQUESTS = 10
RATE_LIMIT_SWEEP_INTERVAL_SECONDS = 300

# Free tier limits per feature
FREE_LIMITS = {
    "manual": 100,
    "link-import": 100,
    "photo-scan": 100,
}

# Stored recipe images
IMAGE_MAX_DIMENSION = 1200
IMAGE_JPEG_QUALITY = 80
IMAGE_DOWNLOAD_TIMEOUT_SECONDS = 10.0
IMAGE_MAX_DOWNLOAD_BYTES = 15 * 1024 * 1024
PLACEHOLDER_THUMBNAIL_SIZE = 32
PLACEHOLDER_COMPONENTS = (4, 3)
GENERATED_IMAGE_SIZE = 1080

# Photos handed to the vision model (keeps text readable for OCR)
SCAN_MAX_DIMENSION = 2048
SCAN_JPEG_QUALITY = 90

# Bulk photo scans
BULK_SCAN_CONCURRENCY = 3

# Social post scraping job
APIFY_POLL_ATTEMPTS = 30
APIFY_POLL_INTERVAL_SECONDS = 2.0
APIFY_REQUEST_TIMEOUT_SECONDS = 15.0

# Website reader
READER_TIMEOUT_SECONDS = 15.0
READER_SERVER_TIMEOUT_SECONDS = 10
MARKDOWN_MAX_CHARS = 50_000

# Marks a recipe created from a photo scan without a stored source photo
PHOTO_SCAN_MARKER = "__AI_SCAN__"

RECIPE_CATEGORIES = (
    "Pasta",
    "Salat",
    "Suppe",
    "Fleisch",
    "Fisch",
    "Vegetarisch",
    "Vegan",
    "Backen",
    "Dessert",
    "Frühstück",
    "Snack",
    "Beilage",
    "Getränke",
    "Sonstiges",
)

DEFAULT_CATEGORY_ICON = "restaurant"
DEFAULT_CATEGORY_COLOR = "#6366f1"
