#!/usr/bin/python
import sys

from jtoolchain import cli
from jtoolchain import error
from jtoolchain import log


def _post_mortem():
    if cli.debug_enabled:
        import pdb
        extype, value, tb = sys.exc_info()
        pdb.post_mortem(tb)


def main():
    try:
        cli.cli(obj=dict())
    except KeyboardInterrupt:
        log.warning("Interrupted by user")
        _post_mortem()
        sys.exit(1)
    except error.ToolchainError as e:
        log.error(log.format_exception_msg(e))
        log.exception(e, error=False)
        _post_mortem()
        sys.exit(1)
    except Exception as e:
        log.exception(e, error=True)
        _post_mortem()
        sys.exit(1)


if __name__ == "__main__":
    main()
