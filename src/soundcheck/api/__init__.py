"""
SoundCheck HTTP API
"""
