"""Build and runtime information reported by ``/api/version``."""

import hashlib
import platform
import sys
import time
from datetime import datetime, timezone
from importlib import metadata

DIST_NAME = 'rzzrzz-poker'


class VersionInfo:
    def __init__(self, environment='development', dist_name=DIST_NAME):
        self.name = dist_name
        try:
            self.version = metadata.version(dist_name)
        except metadata.PackageNotFoundError:
            self.version = '0.0.0'
        self.environment = environment
        self.started_at = time.monotonic()
        now = datetime.now(timezone.utc)
        self.build_date = now.isoformat()
        self.build_timestamp = int(now.timestamp() * 1000)
        self.build_date_formatted = now.strftime('%b %d, %Y, %H:%M')

    def uptime_seconds(self):
        return int(time.monotonic() - self.started_at)

    def build_hash(self):
        raw = f"{self.version}-{self.build_timestamp}".encode()
        return hashlib.sha1(raw).hexdigest()[:7]

    def full(self):
        seconds = self.uptime_seconds()
        return {
            'version': self.version,
            'name': self.name,
            'buildDate': self.build_date,
            'buildTimestamp': self.build_timestamp,
            'buildDateFormatted': self.build_date_formatted,
            'buildHash': self.build_hash(),
            'environment': self.environment,
            'pythonVersion': platform.python_version(),
            'platform': sys.platform,
            'arch': platform.machine(),
            'uptime': f"{seconds // 3600}h {(seconds % 3600) // 60}m",
            'uptimeSeconds': seconds,
        }

    def short(self):
        return {
            'version': self.version,
            'environment': self.environment,
            'buildDate': self.build_date_formatted,
        }
