"""Surface registry for compatibility tracking.

The registry is the accumulated, versioned record of every protocol
signature ever emitted for each operation. It is the compatibility contract
the evolution planner must never violate: histories are append-only, a
signature is appended exactly once when a release introduces it, and
generation numbers form a strict, gap-free sequence per operation.

The release process owns the registry; planners only read it, and release
commits append to it under a per-operation single-writer lock. Planning
passes for different operations never contend.
"""

import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Any, Tuple, Protocol, runtime_checkable
import yaml
from pydantic import BaseModel as PydanticBaseModel, PrivateAttr

from .errors import ContractViolationError
from .signature import Signature


@runtime_checkable
class RegistryReader(Protocol):
    """Protocol for reading surface history.

    This is the minimal interface the planner and emitters need.
    """

    def operations(self) -> List[str]:
        """Get all operation names with recorded history."""
        ...

    def history(self, operation: str) -> Tuple[Signature, ...]:
        """Get the ordered history of one operation."""
        ...


class SurfaceRegistry(PydanticBaseModel):
    """Append-only registry of protocol signatures, per operation."""
    version: str = "1.0"
    service: Optional[str] = None

    _histories: Dict[str, List[Signature]] = PrivateAttr(default_factory=dict)
    _locks: Dict[str, Any] = PrivateAttr(default_factory=dict)
    _guard: Any = PrivateAttr(default_factory=threading.Lock)

    def _lock_for(self, operation: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(operation)
            if lock is None:
                lock = self._locks[operation] = threading.Lock()
            return lock

    def operations(self) -> List[str]:
        """Get all operation names, in order of first registration."""
        return list(self._histories)

    def history(self, operation: str) -> Tuple[Signature, ...]:
        """Get the immutable history of an operation (empty if unknown)."""
        return tuple(self._histories.get(operation, ()))

    def latest(self, operation: str) -> Optional[Signature]:
        """Get the most recent generation of an operation."""
        history = self._histories.get(operation)
        return history[-1] if history else None

    def contains(self, signature: Signature) -> bool:
        """Check whether a signature is recorded verbatim."""
        history = self._histories.get(signature.operation_name, ())
        return (
            signature.generation < len(history)
            and history[signature.generation] == signature
        )

    def snapshot(self) -> Dict[str, Tuple[Signature, ...]]:
        """Frozen copy of every history, for before/after comparisons."""
        return {name: tuple(sigs) for name, sigs in self._histories.items()}

    def _check_next(self, history: List[Signature], signature: Signature, operation: str) -> None:
        if signature.operation_name != operation:
            raise ContractViolationError(
                f"Signature for {signature.operation_name} cannot be appended to {operation}"
            )
        if not signature.is_protocol:
            raise ContractViolationError(
                f"Only protocol signatures are recorded, got {signature.origin.value} "
                f"for {operation}"
            )
        if signature.generation != len(history):
            raise ContractViolationError(
                f"{operation}: expected generation {len(history)}, "
                f"got {signature.generation}"
            )

    def append(self, signature: Signature) -> Signature:
        """Append one signature as the next generation of its operation.

        Raises:
            ContractViolationError: If the signature is not a protocol signature
                or its generation does not directly follow the history
        """
        operation = signature.operation_name
        with self._lock_for(operation):
            history = self._histories.setdefault(operation, [])
            self._check_next(history, signature, operation)
            history.append(signature)
        return signature

    def extend(
        self,
        operation: str,
        signatures: Iterable[Signature],
        expected_length: Optional[int] = None,
    ) -> Tuple[Signature, ...]:
        """Atomically append one planning result.

        Args:
            operation: Operation whose history is extended
            signatures: New signatures, consecutive generations
            expected_length: History length the plan was computed against;
                the append fails if another writer moved it

        Returns:
            The appended signatures
        """
        signatures = tuple(signatures)
        with self._lock_for(operation):
            history = self._histories.get(operation, [])
            if expected_length is not None and len(history) != expected_length:
                raise ContractViolationError(
                    f"{operation}: history changed since planning "
                    f"(expected {expected_length} generations, found {len(history)})"
                )
            staged = list(history)
            for signature in signatures:
                self._check_next(staged, signature, operation)
                staged.append(signature)
            if signatures:
                self._histories[operation] = staged
        return signatures

    def save(self, path: Path) -> None:
        """Save registry to YAML file.

        Args:
            path: Path to YAML file to write
        """
        with open(path, 'w') as f:
            yaml.safe_dump(self.to_dict(), f, sort_keys=False)

    @classmethod
    def load(cls, path: Path) -> "SurfaceRegistry":
        """Load registry from YAML file.

        Args:
            path: Path to YAML file to read

        Returns:
            Loaded SurfaceRegistry instance
        """
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for YAML serialization."""
        data: Dict[str, Any] = {"version": self.version}
        if self.service is not None:
            data["service"] = self.service
        data["operations"] = {
            name: [s.to_dict() for s in sigs] for name, sigs in self._histories.items()
        }
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SurfaceRegistry":
        """Create from dictionary (YAML deserialization).

        Every entry goes through append, so a file with gaps or overlay
        entries is rejected rather than silently loaded.
        """
        registry = cls(version=data.get("version", "1.0"), service=data.get("service"))

        for name, entries in (data.get("operations") or {}).items():
            for entry in entries:
                registry.append(Signature.from_dict(name, entry))

        return registry


__all__ = [
    "SurfaceRegistry",
    "RegistryReader",
]
