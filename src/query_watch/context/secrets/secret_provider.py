from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Optional


class SecretProvider(ABC):
    """
    Abstract interface for a read-only secret store.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[bytearray]:
        """
        Return the raw secret for `key` in a fresh mutable buffer owned by the
        caller, or None when the store has no usable entry. Must not raise.
        """
        raise NotImplementedError

    def exists(self, key: str) -> bool:
        """
        Check if a secret exists in the store.
        """
        value = self.get(key)
        if value is None:
            return False
        for i in range(len(value)):
            value[i] = 0
        return True
