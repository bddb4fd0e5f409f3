"""
Token lifecycle application modules.
"""
