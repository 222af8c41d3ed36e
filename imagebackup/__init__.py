"""Raw disk and image cloning for backups.

Three modes are supported: disk to disk, disk to folder (image capture)
and image to disk (restore). See ``imagebackup.main`` for the command line.
"""

from .__version__ import __version__

__all__ = ["__version__"]
