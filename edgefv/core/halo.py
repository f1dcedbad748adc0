"""Halo exchange between partitions over a message-passing communicator."""

from __future__ import annotations

import queue
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

import numpy as np

from .partition import Partition


class Communicator(ABC):
    """Blocking point-to-point exchange keyed by source, destination and tag."""

    def __init__(self, rank: int, size: int) -> None:
        self.rank = rank
        self.size = size

    @abstractmethod
    def send(self, dest: int, tag: str, payload: np.ndarray) -> None:
        """Post ``payload`` for ``dest``."""

    @abstractmethod
    def receive(self, source: int, tag: str) -> np.ndarray:
        """Block until the matching message from ``source`` arrives."""


class LocalCommunicator(Communicator):
    """In-process communicator for partitions driven by threads."""

    def __init__(
        self,
        rank: int,
        size: int,
        mailboxes: Dict[Tuple[int, int, str], "queue.Queue[np.ndarray]"],
        lock: threading.Lock,
        timeout: Optional[float] = None,
    ) -> None:
        super().__init__(rank, size)
        self._mailboxes = mailboxes
        self._lock = lock
        self.timeout = timeout

    @classmethod
    def group(cls, size: int, timeout: Optional[float] = None) -> List["LocalCommunicator"]:
        mailboxes: Dict[Tuple[int, int, str], queue.Queue] = {}
        lock = threading.Lock()
        return [cls(rank, size, mailboxes, lock, timeout) for rank in range(size)]

    def _box(self, source: int, dest: int, tag: str) -> "queue.Queue[np.ndarray]":
        key = (source, dest, tag)
        with self._lock:
            box = self._mailboxes.get(key)
            if box is None:
                box = queue.Queue()
                self._mailboxes[key] = box
            return box

    def send(self, dest: int, tag: str, payload: np.ndarray) -> None:
        self._box(self.rank, dest, tag).put(np.array(payload, copy=True))

    def receive(self, source: int, tag: str) -> np.ndarray:
        try:
            return self._box(source, self.rank, tag).get(timeout=self.timeout)
        except queue.Empty as exc:
            raise TimeoutError(
                f"Rank {self.rank} timed out waiting for '{tag}' from rank {source}"
            ) from exc


class HaloExchange:
    """Refresh ghost values of per-point arrays from their owners."""

    def __init__(self, partition: Partition, communicator: Communicator) -> None:
        if partition.rank != communicator.rank:
            raise ValueError("Partition and communicator ranks differ")
        self.partition = partition
        self.comm = communicator

    def exchange(self, values: np.ndarray, tag: str) -> np.ndarray:
        for schedule in self.partition.schedules:
            if schedule.send.size:
                self.comm.send(schedule.neighbor, tag, values[schedule.send])
        for schedule in self.partition.schedules:
            if schedule.receive.size:
                values[schedule.receive] = self.comm.receive(schedule.neighbor, tag)
        return values
