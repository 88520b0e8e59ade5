"""Create HiPS surveys from full-sky images: HEALPix helpers, images, tiles and a command."""

__version__ = "0.1.0"
__all__ = ["healpix", "image", "survey", "cli"]