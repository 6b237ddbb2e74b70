"""Fuel receipt extraction.

Rectifies a photographed receipt, enhances it for Tesseract OCR, and
extracts date, litres, total price and unit price with cross-field
consistency checks.
"""
