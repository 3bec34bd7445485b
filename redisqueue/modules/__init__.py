"""
redisqueue Modules - Black Box Architecture

Each module is a self-contained black box with:
- Clear interface (public API)
- Hidden implementation details

Modules communicate only through well-defined interfaces.
"""
