"""
Conversion feature.

Decides whether an upload can be shown/signed as-is and turns office formats
into PDF through a bounded pool of external LibreOffice engines.
"""
