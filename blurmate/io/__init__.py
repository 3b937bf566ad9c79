"""
Image file input and output.
"""

from .images import load_image, save_image

__all__ = ['load_image', 'save_image']
