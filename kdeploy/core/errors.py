"""Process exit codes.

Each fatal failure of a deploy phase maps to one of these codes so scripts
wrapping the tool can tell a broken manifest from a network outage.
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands.

    Values are part of the CLI contract and must stay stable:
    - 0: Success
    - 1: User error (bad arguments, bad version string)
    - 2: Config error (missing or invalid kdeploy.toml, missing credentials)
    - 3: Build error (a toolchain step failed)
    - 4: Network error (download or upload failed)
    - 5: I/O error (cannot delete or write release files)
    - 6: Manifest error (RELEASES file is malformed)
    """

    OK = 0
    USER_ERROR = 1
    CONFIG_ERROR = 2
    BUILD_ERROR = 3
    NETWORK_ERROR = 4
    IO_ERROR = 5
    MANIFEST_ERROR = 6

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK
