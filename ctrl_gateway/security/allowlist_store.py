# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Observable allowlist configuration store.

Holds the current AllowlistConfig, notifies subscribers on every change
in the order the changes were made and, when given a path, persists the
settings to a small YAML file from a background writer thread:

    enabled: true
    entries:
      - 192.168.1.0/24
    last_blocked_ip: 10.0.0.7
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

import yaml

from ctrl_gateway.core.logging import log_event
from ctrl_gateway.security.allowlist import AllowlistConfig, normalize_entry

logger = logging.getLogger(__name__)

Subscriber = Callable[[AllowlistConfig], None]


class AllowlistStore:
    """
    Source of truth for allowlist settings.

    Args:
        path: Optional YAML file to load from and write back to
        enabled: Initial enabled flag when no file exists
        entries: Initial raw entries when no file exists
    """

    def __init__(
        self,
        path: Optional[Union[str, Path]] = None,
        enabled: bool = True,
        entries: Sequence[str] = ()
    ):
        self.path = Path(path) if path else None
        self._lock = threading.Lock()
        # Held across mutate-and-notify so deliveries match mutation order;
        # reentrant so a subscriber may itself update the store
        self._notify_lock = threading.RLock()
        self._subscribers: List[Subscriber] = []
        self._pending: Optional[AllowlistConfig] = None
        self._writer: Optional[ThreadPoolExecutor] = None
        if self.path is not None:
            self._writer = ThreadPoolExecutor(max_workers=1, thread_name_prefix="allowlist-writer")

        if self.path is not None and self.path.exists():
            self._config = self._load(self.path)
            logger.info(f"Loaded allowlist from {self.path} ({len(self._config.entries)} entries)")
        else:
            self._config = AllowlistConfig(enabled=enabled, entries=tuple(self._dedupe(entries)))

    # -- Persistence --

    @staticmethod
    def _dedupe(entries: Sequence[str]) -> List[str]:
        result = []
        for raw in entries:
            s = str(raw).strip()
            if s and s not in result:
                result.append(s)
        return result

    def _load(self, path: Path) -> AllowlistConfig:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        enabled = data.get("enabled")
        return AllowlistConfig(
            enabled=True if enabled is None else bool(enabled),
            entries=tuple(self._dedupe(data.get("entries") or [])),
            last_blocked_ip=data.get("last_blocked_ip")
        )

    def _save(self, config: AllowlistConfig) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "enabled": config.enabled,
            "entries": list(config.entries),
            "last_blocked_ip": config.last_blocked_ip,
        }
        with open(self.path, "w") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)

    def _persist(self, config: AllowlistConfig) -> None:
        """Queue a write of the latest config. Caller holds self._lock."""
        if self.path is None:
            return
        if self._writer is None:
            self._save(config)
            return
        # A write already queued picks up the newest config when it runs
        queued = self._pending is not None
        self._pending = config
        if not queued:
            self._writer.submit(self._flush_pending)

    def _flush_pending(self) -> None:
        with self._lock:
            config, self._pending = self._pending, None
        if config is None:
            return
        try:
            self._save(config)
        except OSError as e:
            log_event(logger, "allowlist_save_failed", "ERROR", path=str(self.path), error=str(e))

    def flush(self) -> None:
        """Block until every queued write has reached the file"""
        if self._writer is not None:
            self._writer.submit(lambda: None).result()

    def close(self) -> None:
        """Finish queued writes; later updates are written synchronously"""
        with self._lock:
            writer, self._writer = self._writer, None
        if writer is not None:
            writer.shutdown(wait=True)

    # -- Observation --

    @property
    def config(self) -> AllowlistConfig:
        return self._config

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register a change callback. It is invoked once immediately with the
        current config, then after every update.

        Returns:
            A function that removes the subscription
        """
        with self._notify_lock:
            with self._lock:
                self._subscribers.append(callback)
                current = self._config
            callback(current)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _update(self, mutate: Callable[[AllowlistConfig], AllowlistConfig]) -> AllowlistConfig:
        with self._notify_lock:
            with self._lock:
                updated = mutate(self._config)
                if updated == self._config:
                    return updated
                self._config = updated
                self._persist(updated)
                subscribers = list(self._subscribers)

            for callback in subscribers:
                callback(updated)
        return updated

    # -- Mutations --

    def set_enabled(self, enabled: bool) -> AllowlistConfig:
        return self._update(lambda c: replace(c, enabled=bool(enabled)))

    def add_entry(self, raw: str) -> AllowlistConfig:
        """
        Normalize and append an entry; duplicates are ignored.

        Raises:
            ValueError: if the entry does not parse
        """
        normalized = normalize_entry(raw)

        def mutate(c: AllowlistConfig) -> AllowlistConfig:
            if normalized in c.entries:
                return c
            return replace(c, entries=c.entries + (normalized,))

        return self._update(mutate)

    def remove_entry(self, raw: str) -> AllowlistConfig:
        normalized = normalize_entry(raw)
        return self._update(
            lambda c: replace(c, entries=tuple(e for e in c.entries if e != normalized))
        )

    def clear_entries(self) -> AllowlistConfig:
        return self._update(lambda c: replace(c, entries=()))

    def set_last_blocked_ip(self, ip: Optional[str]) -> AllowlistConfig:
        return self._update(lambda c: replace(c, last_blocked_ip=ip))
