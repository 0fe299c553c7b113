"""
Entry point for ``python -m movebind``.
"""

from .cli import main

if __name__ == '__main__':
    main()
