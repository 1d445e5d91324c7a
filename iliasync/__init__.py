"""
ILIAS synchronizer

Mirrors courses, folders, files, forums and Opencast videos of an ILIAS
installation into a local directory tree.
"""

__version__ = "1.0.0"
__description__ = "Download the content of ILIAS courses for offline use"
