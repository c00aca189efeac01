"""
Backend Scripts Module

Available scripts:
    - seed_data.py: Creates the sale and payment flow templates and sample profiles

Usage:
    python -m scripts.seed_data
"""
