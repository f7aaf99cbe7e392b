"""Package entry point for ``python -m caption_burner``.

Delegates to the CLI's main() function.
"""

from caption_burner.cli import main

if __name__ == "__main__":
    main()
