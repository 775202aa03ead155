import logging
import subprocess

from .. import exceptions

logger = logging.getLogger(__name__)


def run_shell_command(command: str) -> str:
    """Run ``command`` through the shell and return its standard output
    without trailing line terminators. The output is not cached.

    :raises exceptions.CredentialCommandFailed: if the command can't be run or
        exits with a non-zero status.
    """
    logger.debug("Running password command.")
    try:
        stdout = subprocess.check_output(command, text=True, shell=True)
    except (OSError, subprocess.CalledProcessError) as e:
        raise exceptions.CredentialCommandFailed(
            f"Failed to execute command: {command}\n{str(e)}"
        ) from e
    # Only line terminators are trimmed, passwords may end with spaces.
    return stdout.rstrip("\r\n")
