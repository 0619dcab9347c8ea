"""
WiFi radio control.

``WifiRadio`` is what the connectivity manager drives. ``NmcliRadio``
implements it on top of NetworkManager; every call it makes is bounded
by a subprocess timeout so the control loop can never hang on it.
"""
import logging
import subprocess
from abc import ABC, abstractmethod
from collections.abc import Sequence

logger = logging.getLogger(__name__)


class RadioError(RuntimeError):
    """The radio could not carry out a command."""


class WifiRadio(ABC):
    """Minimal station-mode WiFi interface."""

    @abstractmethod
    def connect(self, ssid: str, password: str, timeout: float) -> bool:
        """
        Join a network, waiting at most ``timeout`` seconds.

        Returns:
            True if associated with an IP link when the call returns

        Raises:
            RadioError: If the radio itself failed
        """

    @abstractmethod
    def is_connected(self) -> bool:
        """Whether a WiFi link is currently up."""


class NmcliRadio(WifiRadio):
    """Drive the WiFi interface through ``nmcli``."""

    # Extra time on top of nmcli's own --wait before the subprocess is killed
    _GRACE_SECONDS = 5.0

    def __init__(self, interface: str | None = None, *, status_timeout: float = 5.0) -> None:
        self.interface = interface
        self._status_timeout = status_timeout

    def _run(self, args: Sequence[str], timeout: float) -> str:
        try:
            completed = subprocess.run(
                list(args),
                check=True,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except FileNotFoundError as exc:
            raise RadioError("nmcli command unavailable") from exc
        except subprocess.TimeoutExpired as exc:
            raise RadioError(f"nmcli timed out after {timeout:.0f}s") from exc
        except subprocess.CalledProcessError as exc:
            error_output = (exc.stderr or '').strip() or (exc.stdout or '').strip() or str(exc)
            raise RadioError(error_output) from exc
        return completed.stdout

    def connect(self, ssid: str, password: str, timeout: float) -> bool:
        args = ['nmcli', '--wait', str(int(timeout)), 'device', 'wifi', 'connect', ssid]
        if password:
            args.extend(['password', password])
        if self.interface:
            args.extend(['ifname', self.interface])
        try:
            self._run(args, timeout + self._GRACE_SECONDS)
        except RadioError as e:
            # nmcli exits non-zero for wrong passwords and absent networks alike
            logger.info("nmcli could not join '%s': %s", ssid, e)
            return False
        return self.is_connected()

    def is_connected(self) -> bool:
        output = self._run(['nmcli', '-t', '-f', 'DEVICE,TYPE,STATE', 'device'], self._status_timeout)
        for line in output.splitlines():
            parts = line.split(':')
            if len(parts) < 3:
                continue
            device, dev_type, state = parts[0], parts[1], parts[2]
            if dev_type != 'wifi':
                continue
            if self.interface and device != self.interface:
                continue
            if state == 'connected':
                return True
        return False
