"""
SoundCheck - crowd rating for short audio clips
"""

__version__ = "0.1.0"
