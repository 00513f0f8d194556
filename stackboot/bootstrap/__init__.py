"""
Container bootstrap sequence.

Brings an empty project directory up to a provisioned application tree
once, then yields to the long-running service process.
"""
