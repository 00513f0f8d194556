"""
stackboot - idempotent container bootstrap for a Symfony + Vue stack.
"""
__version__ = "0.1.0"
