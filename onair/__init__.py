"""
OnAir - orquestração de slots de broadcast e sessões live de DJs.
"""
__version__ = "1.0.0"
