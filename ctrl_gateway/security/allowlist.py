# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
IPv4 allowlist rules.

An allow rule is either an exact address or a CIDR block. Addresses are
handled as 32-bit integers and only ever come from literal dotted-quad
text: no hostname is resolved while checking a caller.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, Optional, Tuple, Union

logger = logging.getLogger(__name__)

IPV4_LITERAL = re.compile(r"^([0-9]{1,3})(\.([0-9]{1,3})){3}$")
IPV4_MAPPED_PREFIX = "::ffff:"
LOOPBACK_IPV4 = 0x7F000001


# =============================================================================
# ADDRESS PARSING
# =============================================================================

def parse_ipv4(raw: str) -> int:
    """
    Parse a dotted-quad literal into a 32-bit integer.

    Raises:
        ValueError: if the text is not a valid IPv4 literal
    """
    s = raw.strip()
    if not IPV4_LITERAL.match(s):
        raise ValueError(f"Invalid IPv4 address: {raw!r}")

    value = 0
    for octet in s.split("."):
        b = int(octet)
        if b > 255:
            raise ValueError(f"Invalid IPv4 address: {raw!r}")
        value = (value << 8) | b
    return value


def ipv4_to_string(ipv4: int) -> str:
    return ".".join(str((ipv4 >> shift) & 0xFF) for shift in (24, 16, 8, 0))


def parse_remote_ipv4(remote_host: Optional[str]) -> Optional[int]:
    """
    Derive the caller IPv4 from a socket peer address.

    Accepts a dotted quad or an IPv4-mapped IPv6 literal. Anything else
    (hostnames, native IPv6) yields None.
    """
    if not remote_host:
        return None
    s = remote_host.strip()
    if s.lower().startswith(IPV4_MAPPED_PREFIX):
        s = s[len(IPV4_MAPPED_PREFIX):]
    if not IPV4_LITERAL.match(s):
        return None
    try:
        return parse_ipv4(s)
    except ValueError:
        return None


# =============================================================================
# RULES
# =============================================================================

@dataclass(frozen=True)
class ExactAddress:
    """Matches a single address"""
    address: int

    def matches(self, ipv4: int) -> bool:
        return self.address == ipv4

    def __str__(self) -> str:
        return ipv4_to_string(self.address)


@dataclass(frozen=True)
class CidrBlock:
    """Matches every address sharing the network's first prefix_length bits"""
    network: int
    prefix_length: int
    mask: int = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if not 0 <= self.prefix_length <= 32:
            raise ValueError(f"CIDR prefix out of range: {self.prefix_length}")
        mask = 0 if self.prefix_length == 0 else (0xFFFFFFFF << (32 - self.prefix_length)) & 0xFFFFFFFF
        object.__setattr__(self, "mask", mask)

    def matches(self, ipv4: int) -> bool:
        return (ipv4 & self.mask) == (self.network & self.mask)

    def __str__(self) -> str:
        return f"{ipv4_to_string(self.network)}/{self.prefix_length}"


AllowRule = Union[ExactAddress, CidrBlock]


def parse_entry(raw: str) -> AllowRule:
    """
    Parse one textual allowlist entry ("10.0.0.5" or "192.168.1.0/24").

    Raises:
        ValueError: on an empty entry, bad address or bad prefix
    """
    s = raw.strip()
    if not s:
        raise ValueError("Empty entry")

    address, sep, prefix = s.partition("/")
    ip = parse_ipv4(address)
    if not sep:
        return ExactAddress(ip)

    prefix = prefix.strip()
    if not prefix.isdigit():
        raise ValueError(f"Invalid CIDR prefix: {prefix!r}")
    return CidrBlock(ip, int(prefix))


def normalize_entry(raw: str) -> str:
    """Canonicalize an entry to dotted-quad form ("010.0.0.1/08" -> "10.0.0.1/8")"""
    return str(parse_entry(raw))


def compile_rules(entries: Iterable[str]) -> Tuple[AllowRule, ...]:
    """Compile raw entries, skipping the ones that do not parse"""
    rules = []
    for raw in entries:
        try:
            rules.append(parse_entry(raw))
        except ValueError as e:
            logger.warning(f"Ignoring invalid allowlist entry {raw!r}: {e}")
    return tuple(rules)


# =============================================================================
# CONFIG AND LIVE SNAPSHOT
# =============================================================================

@dataclass(frozen=True)
class AllowlistConfig:
    """Persisted allowlist settings as published by the configuration store"""
    enabled: bool = True
    entries: Tuple[str, ...] = ()
    last_blocked_ip: Optional[str] = None

    def compiled_rules(self) -> Tuple[AllowRule, ...]:
        return compile_rules(self.entries)


@dataclass(frozen=True)
class AllowlistSnapshot:
    """
    The enabled flag and compiled rules, published together.

    The gateway swaps the whole object on each configuration update, so a
    request never sees a partially updated rule set.
    """
    enabled: bool = True
    rules: Tuple[AllowRule, ...] = ()

    @classmethod
    def from_config(cls, config: AllowlistConfig) -> "AllowlistSnapshot":
        return cls(enabled=config.enabled, rules=config.compiled_rules())

    def admits(self, ipv4: Optional[int]) -> bool:
        """
        Decide admission for a caller.

        Disabled lists admit everyone, loopback is always admitted, and an
        address that could not be derived is never admitted.
        """
        if not self.enabled:
            return True
        if ipv4 == LOOPBACK_IPV4:
            return True
        if ipv4 is None:
            return False
        return any(rule.matches(ipv4) for rule in self.rules)
