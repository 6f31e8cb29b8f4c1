"""
SoundCheck core: configuration, logging, errors and static catalogs
"""
