"""Shared config for the web app."""
import os
from pathlib import Path

# Project root (the directory holding main.py)
PROJECT_ROOT = Path(__file__).resolve().parents[1]
OUTPUT_DIR = Path(os.environ.get("NOTEGEN_OUTPUT_DIR") or PROJECT_ROOT / "output")
