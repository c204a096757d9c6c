"""Payload size measurement and limit checks.

Sizes are UTF-8 encoded byte lengths.  The envelope is measured as the
raw text the user submitted; ``meta`` is measured as compact JSON.

Limits:
    ===========  ===========  ==========================================
    Field        Default      Rule
    ===========  ===========  ==========================================
    envelope     10 MiB       error above, warning above 80 %
    meta         64 KiB       error above
    queue        255 B        error above
    type         255 B        error above
    ===========  ===========  ==========================================
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Literal

MAX_NAME_BYTES = 255
ENVELOPE_WARNING_RATIO = 0.8


def utf8_byte_length(text: str) -> int:
    """Encoded size; a lone surrogate counts as the 3 bytes of U+FFFD."""
    return len(text.encode("utf-8", errors="surrogatepass"))


def format_bytes(size: int) -> str:
    """``512`` -> ``"512 B"``, ``2048`` -> ``"2.0 KB"``, ``3 MiB`` -> ``"3.0 MB"``."""
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


@dataclass(frozen=True)
class PayloadLimits:
    max_envelope_bytes: int = 10 * 1024 * 1024
    max_meta_bytes: int = 64 * 1024
    max_queue_name_bytes: int = MAX_NAME_BYTES
    max_job_type_bytes: int = MAX_NAME_BYTES


DEFAULT_PAYLOAD_LIMITS = PayloadLimits()


@dataclass(frozen=True)
class PayloadViolation:
    field: str
    current_bytes: int
    limit_bytes: int
    severity: Literal["error", "warning"]

    def to_dict(self) -> dict[str, Any]:
        return {
            "field": self.field,
            "currentBytes": self.current_bytes,
            "limitBytes": self.limit_bytes,
            "severity": self.severity,
        }


@dataclass(frozen=True)
class PayloadSizeResult:
    total_bytes: int
    meta_bytes: int = 0
    queue_name_bytes: int = 0
    job_type_bytes: int = 0
    violations: tuple[PayloadViolation, ...] = field(default=())

    @property
    def ok(self) -> bool:
        return not any(v.severity == "error" for v in self.violations)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalBytes": self.total_bytes,
            "metaBytes": self.meta_bytes,
            "queueNameBytes": self.queue_name_bytes,
            "jobTypeBytes": self.job_type_bytes,
            "violations": [v.to_dict() for v in self.violations],
        }


def check_payload_size(content: str, limits: PayloadLimits = DEFAULT_PAYLOAD_LIMITS) -> PayloadSizeResult:
    """Measure an envelope and report limit violations.

    Content that is not a JSON object is still measured as a whole; the
    per-field sizes are then reported as zero.
    """
    total_bytes = utf8_byte_length(content)
    meta_bytes = queue_name_bytes = job_type_bytes = 0

    try:
        parsed = json.loads(content)
    except ValueError:
        parsed = None

    if isinstance(parsed, dict):
        if parsed.get("meta"):
            meta_bytes = utf8_byte_length(json.dumps(parsed["meta"], separators=(",", ":"), ensure_ascii=False))
        if parsed.get("queue"):
            queue_name_bytes = utf8_byte_length(str(parsed["queue"]))
        if parsed.get("type"):
            job_type_bytes = utf8_byte_length(str(parsed["type"]))

    violations: list[PayloadViolation] = []
    if total_bytes > limits.max_envelope_bytes:
        violations.append(PayloadViolation("envelope", total_bytes, limits.max_envelope_bytes, "error"))
    elif total_bytes > limits.max_envelope_bytes * ENVELOPE_WARNING_RATIO:
        violations.append(PayloadViolation("envelope", total_bytes, limits.max_envelope_bytes, "warning"))

    checks = (
        ("meta", meta_bytes, limits.max_meta_bytes),
        ("queue", queue_name_bytes, limits.max_queue_name_bytes),
        ("type", job_type_bytes, limits.max_job_type_bytes),
    )
    for name, current, limit in checks:
        if current > limit:
            violations.append(PayloadViolation(name, current, limit, "error"))

    return PayloadSizeResult(
        total_bytes=total_bytes,
        meta_bytes=meta_bytes,
        queue_name_bytes=queue_name_bytes,
        job_type_bytes=job_type_bytes,
        violations=tuple(violations),
    )


__all__ = [
    "MAX_NAME_BYTES",
    "PayloadLimits",
    "DEFAULT_PAYLOAD_LIMITS",
    "PayloadViolation",
    "PayloadSizeResult",
    "check_payload_size",
    "format_bytes",
    "utf8_byte_length",
]
