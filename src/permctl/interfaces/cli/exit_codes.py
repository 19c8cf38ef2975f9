"""Process exit codes of the permctl CLI."""

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_VALIDATION = 2
EXIT_NOT_ENFORCED = 3
EXIT_REVOCATION_NOT_ENFORCED = 4
EXIT_CONFIG = 5
