# pyright: standard

"""nc-backup: nc_backup/__main__.py.

Back up a Nextcloud instance consistently: the database dump, the
config.php copy and the data directory snapshot are all taken inside one
maintenance-mode window, and every run leaves a manifest for the
archival step.
"""

import sys

from .cli.dispatcher import main as cli_main


def main() -> None:
    """Main function."""
    sys.exit(cli_main())


if __name__ == "__main__":
    main()
