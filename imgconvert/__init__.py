"""
Image conversion API.

Converts images referenced by record ids (RAW, HEIC/HEIF and common raster
formats) with ImageMagick, storing results next to the sources in S3.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
