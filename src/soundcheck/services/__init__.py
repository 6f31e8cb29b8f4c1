"""
SoundCheck services: ledger, uploads, track lifecycle, ratings and scoring
"""
