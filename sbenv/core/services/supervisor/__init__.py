"""
Daemon supervisor — package re-exports.

    pidfile.py      PID file read/write/stale cleanup
    config_swap.py  scoped takeover of the global config slot
    daemon.py       start / stop / restart / status / logs
"""

from sbenv.core.services.supervisor.config_swap import (  # noqa: F401
    GlobalConfigSwap,
    recover_interrupted_swap,
)
from sbenv.core.services.supervisor.daemon import (  # noqa: F401
    DaemonError,
    DaemonStartError,
    DaemonStatus,
    EnvironmentContext,
    StartResult,
    StopResult,
    Supervisor,
    SupervisorTimings,
)
from sbenv.core.services.supervisor.pidfile import (  # noqa: F401
    PidState,
    check_pid,
    read_pid,
    remove_pid,
    write_pid,
)
