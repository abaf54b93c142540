"""Package entry point for ``python -m ur_playground``.

WHY: Users run the playground as ``python -m ur_playground convert ...``.
Python's ``-m`` flag looks for ``__main__.py`` inside the package.

HOW: Delegates to the CLI's main() function.
"""

from ur_playground.cli import main

if __name__ == "__main__":
    main()
