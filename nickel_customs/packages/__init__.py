"""Package discovery for changed repository paths."""

from __future__ import annotations

from .discovery import PackageDiscovery, normalise_path, sorted_packages
from .models import Package

__all__ = ["Package", "PackageDiscovery", "normalise_path", "sorted_packages"]
