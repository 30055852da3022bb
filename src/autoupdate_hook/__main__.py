"""Entry point for ``python -m autoupdate_hook``."""

from autoupdate_hook.cli import main

if __name__ == "__main__":
    main()
