"""
ERP Pricing Package

Pricing and quotation-acceptance backend for a trading company ERP.
Prices items (cost-plus, margin, competitive, volume, dynamic, contract),
tracks which quotation lines a customer accepted, and reconciles customer
purchase orders against that accepted subset.
"""

__version__ = "1.0.0"
