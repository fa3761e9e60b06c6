"""
Allow running the package as a module: python -m fallout
"""

from .cli import main

if __name__ == "__main__":
    main()
