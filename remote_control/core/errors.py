from __future__ import annotations


class RemoteControlError(Exception):
    """Base class for remote control failures surfaced to the host."""


class ServerAlreadyRunningError(RemoteControlError):
    def __init__(self, message: str = "Server is already running") -> None:
        super().__init__(message)


class WorkerLaunchError(RemoteControlError):
    pass


class WorkerStartError(RemoteControlError):
    pass


class WorkerStartTimeoutError(WorkerStartError):
    pass
