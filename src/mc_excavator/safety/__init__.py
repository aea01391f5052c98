"""Obstruction detection and recovery."""

from .recovery import MAX_RECOVERY_LEVEL, ObstructionRecovery, RecoveryStats

__all__ = ["MAX_RECOVERY_LEVEL", "ObstructionRecovery", "RecoveryStats"]
