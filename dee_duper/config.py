"""
Configuration constants for dee-duper.
"""
from datetime import datetime

VERSION = "0.1.0"

# --- Hashing ---
# The quick digest covers only the head of a file; anything past this offset is never read.
QUICK_HASH_BYTES = 64 * 1024  # 64 KB
HASH_CHUNK_SIZE = 64 * 1024  # 64 KB chunks for streaming full digests

# --- Scanning ---
DEFAULT_WORKERS = 1
# Commit index writes in batches; a killed scan keeps everything up to the last batch.
COMMIT_INTERVAL = 500

# --- Scan Index ---
INDEX_FILE_PREFIX = ".dee-duper."
SQLITE_SIDE_SUFFIXES = ("-wal", "-shm", "-journal")

# --- Management Console ---
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080
# MIME prefixes the browser may render in place; everything else is downloaded.
INLINE_MIME_PREFIXES = ("text/", "image/", "video/", "audio/", "application/pdf")

# --- Test File Generator ---
GENERATOR_SUBDIRS = ("documents", "photos", "downloads")
GENERATOR_FILE_TYPES = [
    (".txt", "document_"),
    (".pdf", "report__"),
    (".jpg", "IMG__"),
    (".png", "DSC__"),
    (".doc", "backup_"),
    (".pdf", "meeting_notes_"),
    (".pdf", "screenshot_"),
    (".txt", "vacation_photo_"),
]
IMAGE_EXTS = {".jpg", ".png"}
GENERATOR_MIN_BYTES = 1024  # 1 KB
GENERATOR_MAX_BYTES = 1024 * 1024  # 1 MB
GENERATOR_DATE_RANGE = (datetime(2023, 1, 1), datetime(2024, 12, 31))
