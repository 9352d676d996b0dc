"""
Platform detection

Maps the host operating system, CPU architecture and (on Linux) distro and
OpenSSL line to the platform names used by Prisma engine downloads.

License: Mozilla Public License 2.0
"""

import logging
import platform as _platform
import re
import ssl
import subprocess
import sys
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)

OS_RELEASE = Path("/etc/os-release")

DEFAULT_DISTRO = "debian"
DEFAULT_OPENSSL = "1.1.x"

_ARCH_ALIASES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "x64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv8l": "arm64",
    "i386": "386",
    "i686": "386",
    "x86": "386",
}


@dataclass(frozen=True)
class PlatformInfo:
    """Host platform as seen by the engine downloads"""
    os: str
    arch: str
    distro: Optional[str] = None
    openssl: Optional[str] = None
    extension: str = ""

    @property
    def binary_name(self) -> str:
        """Platform name used in engine URLs and cache paths"""
        if self.os != "linux":
            if self.arch == "arm64":
                return f"{self.os}-arm64"
            return self.os

        ssl_line = self.openssl or DEFAULT_OPENSSL
        if self.distro == "musl":
            if self.arch == "arm64":
                return f"linux-musl-arm64-openssl-{ssl_line}"
            return "linux-musl"

        if self.arch == "arm64":
            return f"linux-arm64-openssl-{ssl_line}"

        return f"{self.distro or DEFAULT_DISTRO}-openssl-{ssl_line}"


def name() -> str:
    """Operating system family: darwin, windows, linux or the lowercased system name."""
    if sys.platform.startswith("linux"):
        return "linux"
    if sys.platform == "darwin":
        return "darwin"
    if sys.platform in ("win32", "cygwin"):
        return "windows"
    return (_platform.system() or sys.platform).lower()


def arch() -> str:
    """CPU architecture using Go-style names (amd64, arm64, 386)."""
    machine = _platform.machine().lower()
    return _ARCH_ALIASES.get(machine, machine or "amd64")


def parse_os_release(text: str) -> Dict[str, str]:
    """Parse KEY=value lines of an os-release file."""
    values = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        values[key.strip()] = value.strip().strip('"').strip("'")
    return values


def distro_from_os_release(values: Dict[str, str]) -> str:
    """Reduce os-release values to the distro families engines are built for."""
    ids = " ".join([values.get("ID", ""), values.get("ID_LIKE", "")]).lower().split()

    if "alpine" in ids:
        return "musl"
    if any(i in ids for i in ("rhel", "centos", "fedora", "amzn")):
        return "rhel"
    return DEFAULT_DISTRO


def _linux_distro() -> str:
    try:
        values = parse_os_release(OS_RELEASE.read_text())
    except OSError as e:
        logger.debug(f"could not read {OS_RELEASE}: {e}; assuming {DEFAULT_DISTRO}")
        return DEFAULT_DISTRO
    return distro_from_os_release(values)


def parse_openssl_version(text: str) -> Optional[str]:
    """
    Extract the OpenSSL line from version output.

    "OpenSSL 1.1.1f  31 Mar 2020" -> "1.1.x", "OpenSSL 3.0.2 ..." -> "3.0.x"
    """
    match = re.search(r"(?:OpenSSL|LibreSSL)\s+(\d+)\.(\d+)", text or "")
    if not match:
        return None

    major, minor = int(match.group(1)), int(match.group(2))
    if major >= 3:
        return "3.0.x"
    if major == 1 and minor == 0:
        return "1.0.x"
    return "1.1.x"


def _openssl_line() -> str:
    try:
        result = subprocess.run(
            ["openssl", "version", "-v"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        version = parse_openssl_version(result.stdout)
        if version:
            return version
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug(f"openssl version check failed: {e}")

    version = parse_openssl_version(ssl.OPENSSL_VERSION)
    if version:
        return version

    logger.debug(f"could not detect openssl version, assuming {DEFAULT_OPENSSL}")
    return DEFAULT_OPENSSL


@lru_cache(maxsize=None)
def detect_platform() -> PlatformInfo:
    """Inspect the host once; the result is fixed for the process lifetime."""
    os_name = name()
    cpu = arch()

    if os_name != "linux":
        info = PlatformInfo(os=os_name, arch=cpu, extension=binary_extension(os_name))
    else:
        distro = _linux_distro()
        info = PlatformInfo(os=os_name, arch=cpu, distro=distro, openssl=_openssl_line())

    logger.debug(f"detected platform {info.binary_name} ({info})")
    return info


def binary_platform_name() -> str:
    """Platform identifier for the running host, e.g. debian-openssl-3.0.x or darwin-arm64."""
    return detect_platform().binary_name


def binary_extension(platform_name: str) -> str:
    """Executable file extension for a platform name."""
    return ".exe" if platform_name.startswith("windows") else ""


def check_for_extension(platform_name: str, path: str) -> str:
    """
    Add the executable extension to a path or download URL.

    On Windows "x.gz" becomes "x.exe.gz" and "x" becomes "x.exe";
    other platforms are returned unchanged.
    """
    ext = binary_extension(platform_name)
    if not ext:
        return path
    if path.endswith(".gz"):
        return path[:-len(".gz")] + ext + ".gz"
    return path + ext
