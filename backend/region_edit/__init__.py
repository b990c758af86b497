"""
Region edit module.

This module provides the pieces needed to capture a rectangular region of a
rendered scene, send it with an instruction to a remote image-edit service and
place the returned image back into the scene as a tile.
"""
