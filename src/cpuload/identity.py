"""Processor identification: vendor, name, family, model and stepping."""

import platform
import re
from pathlib import Path

from loguru import logger

from cpuload.procfs import parse_key_value_lines, read_lines

PROC_CPUINFO = Path("/proc/cpuinfo")

_VENDOR_FREQ = re.compile(r"@ (.*)$")
_HERTZ = re.compile(r"(\d+(?:\.\d+)?)\s*([kKMGT]?)Hz")
_MULTIPLIERS = {
    "": 1,
    "k": 1_000,
    "K": 1_000,
    "M": 1_000_000,
    "G": 1_000_000_000,
    "T": 1_000_000_000_000,
}


def parse_hertz(text: str) -> int:
    """
    Parse a frequency such as "2.60GHz" into Hz.

    Returns:
        The frequency in Hz, or -1 if the text is not a frequency.
    """
    match = _HERTZ.search(text.strip())
    if match is None:
        return -1
    value, unit = match.groups()
    return int(round(float(value) * _MULTIPLIERS[unit]))


class ProcessorIdentity:
    """
    Identification strings of a central processor.

    Unset fields fall back lazily: vendor and name to "", the identifier is
    built from vendor/family/model/stepping, and family, model and stepping
    are read back out of an explicitly set identifier ("?" without one).
    """

    def __init__(self) -> None:
        self._vendor: str | None = None
        self._name: str | None = None
        self._identifier: str | None = None
        self._family: str | None = None
        self._model: str | None = None
        self._stepping: str | None = None
        self._vendor_freq: int | None = None
        self._cpu64: bool | None = None

    @property
    def vendor(self) -> str:
        if self._vendor is None:
            self._vendor = ""
        return self._vendor

    @vendor.setter
    def vendor(self, value: str) -> None:
        self._vendor = value

    @property
    def name(self) -> str:
        if self._name is None:
            self._name = ""
        return self._name

    @name.setter
    def name(self, value: str) -> None:
        self._name = value

    @property
    def cpu64bit(self) -> bool:
        if self._cpu64 is None:
            self._cpu64 = False
        return self._cpu64

    @cpu64bit.setter
    def cpu64bit(self, value: bool) -> None:
        self._cpu64 = value

    @property
    def vendor_freq(self) -> int:
        """Vendor frequency in Hz taken from the `@ x.xxGHz` name suffix, or -1."""
        if self._vendor_freq is None:
            match = _VENDOR_FREQ.search(self.name)
            self._vendor_freq = parse_hertz(match.group(1)) if match else -1
        return self._vendor_freq

    @vendor_freq.setter
    def vendor_freq(self, value: int) -> None:
        self._vendor_freq = value

    @property
    def identifier(self) -> str:
        if self._identifier is None:
            if self.vendor == "GenuineIntel":
                prefix = "Intel64" if self.cpu64bit else "x86"
            else:
                prefix = self.vendor
            self._identifier = (
                f"{prefix} Family {self.family} Model {self.model} Stepping {self.stepping}"
            )
        return self._identifier

    @identifier.setter
    def identifier(self, value: str) -> None:
        self._identifier = value

    @property
    def family(self) -> str:
        if self._family is None:
            if self._identifier is None:
                return "?"
            self._family = self._parse_identifier("Family")
        return self._family

    @family.setter
    def family(self, value: str) -> None:
        self._family = value

    @property
    def model(self) -> str:
        if self._model is None:
            if self._identifier is None:
                return "?"
            self._model = self._parse_identifier("Model")
        return self._model

    @model.setter
    def model(self, value: str) -> None:
        self._model = value

    @property
    def stepping(self) -> str:
        if self._stepping is None:
            if self._identifier is None:
                return "?"
            self._stepping = self._parse_identifier("Stepping")
        return self._stepping

    @stepping.setter
    def stepping(self, value: str) -> None:
        self._stepping = value

    def _parse_identifier(self, key: str) -> str:
        """Return the token following key in the identifier, or ""."""
        tokens = self.identifier.split()
        for token, following in zip(tokens, tokens[1:]):
            if token == key:
                return following
        return ""

    def __str__(self) -> str:
        return self.name


def parse_cpuinfo(lines: list[str]) -> ProcessorIdentity:
    """Fill a ProcessorIdentity from the first processor block of /proc/cpuinfo."""
    identity = ProcessorIdentity()
    block: list[str] = []
    for line in lines:
        if not line.strip():
            # Blank line ends the first processor block
            if block:
                break
            continue
        block.append(line)
    fields = parse_key_value_lines(block)

    if "vendor_id" in fields:
        identity.vendor = fields["vendor_id"]
    if "model name" in fields:
        identity.name = fields["model name"]
    if "cpu family" in fields:
        identity.family = fields["cpu family"]
    if "model" in fields:
        identity.model = fields["model"]
    if "stepping" in fields:
        identity.stepping = fields["stepping"]
    flags = fields.get("flags", "").split()
    identity.cpu64bit = "lm" in flags
    return identity


def read_processor_identity() -> ProcessorIdentity:
    """Read processor identity from /proc/cpuinfo, or from platform elsewhere."""
    lines = read_lines(PROC_CPUINFO, report_error=False)
    if lines:
        return parse_cpuinfo(lines)

    logger.debug("{} not available, using platform module", PROC_CPUINFO)
    identity = ProcessorIdentity()
    identity.name = platform.processor()
    identity.cpu64bit = platform.machine().lower() in ("x86_64", "amd64", "arm64", "aarch64")
    return identity
