"""
Core session engine.

`AuthOrchestrator` owns the login state machine, `SyncLoop` keeps the task
snapshot fresh in the background, and `CommandRunner` executes user actions
behind the shared `ForegroundGate`. `DownloadStationSession` wires them
together for one host.
"""
