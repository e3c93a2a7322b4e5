class PgPerfError(Exception):
    """Fatal condition that aborts the whole run."""


class ConnectivityError(PgPerfError):
    pass


class LaunchError(PgPerfError):
    pass


class InitializationError(PgPerfError):
    pass


class ResultsDirectoryError(PgPerfError):
    pass
