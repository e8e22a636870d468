"""
Configuration file for the Clip Combiner backend.
Contains all global constants. Every value can be overridden through an
environment variable of the same name.
"""

import os

# --- Constants ---
POOL_TYPES = ("hook", "story", "cta")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite://")
PROJECT_ROOT = os.getenv("PROJECT_ROOT", os.getcwd())
UPLOAD_DIR = os.getenv("UPLOAD_DIR", os.path.join(PROJECT_ROOT, "uploads"))
PUBLIC_DIR = os.getenv("PUBLIC_DIR", os.path.join(PROJECT_ROOT, "public"))
THUMBNAILS_DIR = os.getenv("THUMBNAILS_DIR", os.path.join(PUBLIC_DIR, "thumbnails"))
COMBINATIONS_DIR = os.getenv("COMBINATIONS_DIR", os.path.join(PUBLIC_DIR, "combinations"))

# --- FFmpeg Section ---
FFMPEG_BINARY = os.getenv("FFMPEG_BINARY", "ffmpeg")
COMPOSITOR_TIMEOUT_SECONDS = float(os.getenv("COMPOSITOR_TIMEOUT_SECONDS", "300"))

# Always re-encode so clips recorded with different codecs still concatenate.
VIDEO_CODEC = os.getenv("VIDEO_CODEC", "libx264")
VIDEO_PRESET = os.getenv("VIDEO_PRESET", "ultrafast")
VIDEO_CRF = int(os.getenv("VIDEO_CRF", "23"))
AUDIO_CODEC = os.getenv("AUDIO_CODEC", "aac")
AUDIO_BITRATE = os.getenv("AUDIO_BITRATE", "128k")

THUMBNAIL_WIDTH = int(os.getenv("THUMBNAIL_WIDTH", "320"))
THUMBNAIL_OFFSET = os.getenv("THUMBNAIL_OFFSET", "00:00:01")

# --- Server Section ---
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "5000"))
