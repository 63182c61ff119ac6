"""
Coachwatch CLI Entry Point

Allows running the package as a module: python -m coachwatch
"""

from coachwatch.cli import main

if __name__ == "__main__":
    main()
