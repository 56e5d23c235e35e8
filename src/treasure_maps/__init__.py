"""Pre-rendered treasure maps pointing at structures in a voxel world."""

__version__ = "0.1.0"
