"""
Entry point for ``python -m lesswatch``.
"""

from .cli import main

if __name__ == '__main__':
    main()
