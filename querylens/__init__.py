"""QueryLens package initialization.

Exports for testing and module access.
"""

# Make lib and models accessible
from querylens import lib, models

__all__ = ['lib', 'models']
