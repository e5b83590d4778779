"""
compressor

Image and PDF compression engine (Pillow / PyMuPDF), no HTTP here.
"""
