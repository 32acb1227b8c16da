"""Process resource snapshots attached to collection runs"""

import psutil

from ..models import ResourceSnapshot


def resource_snapshot() -> ResourceSnapshot:
    """Current memory and CPU usage of this process"""
    process = psutil.Process()
    memory = process.memory_info()
    cpu = process.cpu_times()
    return ResourceSnapshot(
        rss_bytes=memory.rss,
        vms_bytes=memory.vms,
        cpu_user_seconds=cpu.user,
        cpu_system_seconds=cpu.system,
    )
