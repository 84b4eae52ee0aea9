"""
OPG Annotator - A desktop annotation editor for dental panoramic radiographs.

Built with PyQt6. Classifier-detected regions are fetched from a remote
service and shown alongside hand-drawn rectangles, lines, points and
smooth polygons across up to six independent layers.
"""

__version__ = "1.0.0"
__author__ = "OPG Annotator Team"
