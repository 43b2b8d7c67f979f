"""Twilio answering-machine-detection result, decoded once at the webhook boundary."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class AnswerKind(str, Enum):
    HUMAN = "human"
    MACHINE_BEEP = "machine_end_beep"
    MACHINE_SILENCE = "machine_end_silence"
    MACHINE_OTHER = "machine_end_other"
    UNKNOWN = "unknown"
    FAX = "fax"
    UNRECOGNIZED = "unrecognized"


MACHINE_KINDS = frozenset({AnswerKind.MACHINE_BEEP, AnswerKind.MACHINE_SILENCE, AnswerKind.MACHINE_OTHER})


@dataclass(frozen=True)
class AnsweredBy:
    """Tagged `AnsweredBy` value. `raw` keeps the original string for unrecognized values."""

    kind: AnswerKind
    raw: str = ""

    @classmethod
    def decode(cls, value: str | None) -> "AnsweredBy":
        raw = (value or "").strip()
        try:
            kind = AnswerKind(raw)
        except ValueError:
            kind = AnswerKind.UNRECOGNIZED
        return cls(kind=kind, raw=raw)

    @property
    def is_human(self) -> bool:
        return self.kind is AnswerKind.HUMAN

    @property
    def is_machine(self) -> bool:
        return self.kind in MACHINE_KINDS

    @property
    def is_unknown(self) -> bool:
        return self.kind is AnswerKind.UNKNOWN

    def __str__(self) -> str:
        return self.raw or self.kind.value
