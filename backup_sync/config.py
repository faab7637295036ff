"""
Configuration constants for backup sync.
"""
from pathlib import Path

# --- File Type Definitions ---
PHOTO_EXTS = {
    '.jpg', '.jpeg', '.png', '.heic', '.heif', '.gif', '.webp', '.tif', '.tiff',
    '.dng', '.raw', '.arw', '.cr2', '.cr3', '.nef', '.orf', '.rw2',
}
VIDEO_EXTS = {
    '.mp4', '.mov', '.avi', '.m4v', '.3gp', '.mkv', '.webm', '.flv', '.wmv',
    '.mts', '.m2ts', '.mpg', '.mpeg',
}

# Extension to Kind Mapping (anything missing is 'other')
EXT_TO_KIND = {}
for ext in PHOTO_EXTS: EXT_TO_KIND[ext] = 'photo'
for ext in VIDEO_EXTS: EXT_TO_KIND[ext] = 'video'

# --- Metadata Parsing ---
DATE_TAGS = [
    'EXIF DateTimeOriginal',
    'EXIF DateTimeDigitized',
    'Image DateTime',
]

# --- Hashing ---
HASH_CHUNK_SIZE = 1024 * 1024  # 1 MB chunks for reading

# --- Remote Inventory ---
# Immich keeps uploaded originals under <library>/upload
LIBRARY_UPLOAD_SUBDIR = "upload"
DEFAULT_REMOTE_TIMEOUT = 300.0  # seconds

# --- Trash ---
DEFAULT_TRASH_DIR = Path.home() / ".Trash"
TRASH_TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"

# --- Environment ---
ENV_BACKUP_DIR = "RAW_PHOTOS_BACKUP_DIR"
ENV_IMMICH_LIB = "IMMICH_LIB"
ENV_TRASH_DIR = "BACKUP_SYNC_TRASH_DIR"

# --- Reporting ---
# How many missing files 'compare' lists before summarizing the rest
PREVIEW_LIMIT = 10
