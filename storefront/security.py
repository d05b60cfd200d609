"""Upload intake checks: file validation, file name sanitizing and the security event log."""

from __future__ import annotations

import re
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional

from .logs import log_event

ALLOWED_IMAGE_TYPES = (
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/svg+xml",
    "application/pdf",
    "application/postscript",
    "application/illustrator",
    "image/vnd.adobe.photoshop",
)

# What the direct upload endpoint takes; quote attachments also accept print formats.
UPLOAD_IMAGE_TYPES = (
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/svg+xml",
)

MAX_FILE_SIZE = 50 * 1024 * 1024
MIN_FILE_SIZE = 100
MAX_FILE_NAME_BYTES = 255

VALID_EXTENSIONS = {
    "image/jpeg": ("jpg", "jpeg"),
    "image/jpg": ("jpg", "jpeg"),
    "image/png": ("png",),
    "image/gif": ("gif",),
    "image/webp": ("webp",),
    "image/svg+xml": ("svg",),
    "application/pdf": ("pdf",),
    "application/postscript": ("eps", "ai"),
    "application/illustrator": ("ai",),
    "image/vnd.adobe.photoshop": ("psd",),
}

SUSPICIOUS_PATTERNS = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\.(exe|bat|cmd|scr|pif|com|msi)$",
        r"\.(js|vbs|jar|php|asp|jsp|py|rb|pl)$",
        r"\.(sh|ps1|psm1|bash|zsh)$",
        r"\.(sql|db|sqlite|mdb)$",
        r"script",
        r"virus",
        r"malware",
        r"trojan",
        r"backdoor",
        r"exploit",
        r"payload",
        r"shellcode",
        r"injection",
    )
)

EXECUTABLE_SIGNATURES = (
    (b"\x4d\x5a", "PE executable"),
    (b"\x7f\x45\x4c\x46", "ELF executable"),
    (b"\xca\xfe\xba\xbe", "Java class file"),
    (b"\xfe\xed\xfa\xce", "Mach-O binary"),
    (b"\xfe\xed\xfa\xcf", "Mach-O binary (64-bit)"),
)

VALIDATION_FAILED = "validation_failed"
SUSPICIOUS_FILE = "suspicious_file"
FILE_UPLOAD_BLOCKED = "file_upload_blocked"
SECURITY_EVENTS = (FILE_UPLOAD_BLOCKED, SUSPICIOUS_FILE, VALIDATION_FAILED)

_PATH_SEPARATORS = re.compile(r"[/\\]")
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_RESERVED_CHARS = re.compile(r'[<>:"|?*]')


@dataclass
class UploadCandidate:
    """An upload attempt. Never persisted, only logged on rejection."""

    file_name: str
    size: int
    content_type: str
    content: bytes = b""


@dataclass
class ValidationResult:
    is_valid: bool
    error: Optional[str] = None
    sanitized_file_name: Optional[str] = None
    category: Optional[str] = None


def _truncate_utf8(value: str, max_bytes: int) -> str:
    return value.encode("utf-8")[:max(max_bytes, 0)].decode("utf-8", "ignore")


def sanitize_file_name(file_name: str) -> str:
    sanitized = _PATH_SEPARATORS.sub("_", file_name or "")
    sanitized = _CONTROL_CHARS.sub("", sanitized)
    sanitized = _RESERVED_CHARS.sub("_", sanitized)

    if len(sanitized.encode("utf-8")) <= MAX_FILE_NAME_BYTES:
        return sanitized

    base, dot, ext = sanitized.rpartition(".")
    budget = MAX_FILE_NAME_BYTES - len(ext.encode("utf-8")) - 1
    if not dot or budget <= 0:
        return _truncate_utf8(sanitized, MAX_FILE_NAME_BYTES)
    return f"{_truncate_utf8(base, budget)}.{ext}"


def file_extension(file_name: str) -> str:
    # Like "a.b".split(".").pop(): a name without a dot is its own extension.
    return (file_name or "").rsplit(".", 1)[-1].lower()


def detect_executable(content: bytes) -> Optional[str]:
    """Name of the executable format the leading bytes belong to, if any."""
    header = bytes(content[:10])
    for signature, kind in EXECUTABLE_SIGNATURES:
        if header.startswith(signature):
            return kind
    return None


def validate_file(
    candidate: UploadCandidate,
    max_size: int = MAX_FILE_SIZE,
    allowed_types: Iterable[str] = ALLOWED_IMAGE_TYPES,
    strict_validation: bool = False,
) -> ValidationResult:
    """Run the ordered upload checks, stopping at the first failure.

    With ``strict_validation`` the leading bytes of ``candidate.content`` are
    also checked against known executable signatures.
    """
    if candidate.size > max_size:
        return ValidationResult(
            False,
            f"File size exceeds maximum allowed size of {round(max_size / (1024 * 1024))}MB",
            category=VALIDATION_FAILED,
        )

    if candidate.size < MIN_FILE_SIZE:
        return ValidationResult(False, "File appears to be corrupted or invalid", category=VALIDATION_FAILED)

    if candidate.content_type not in tuple(allowed_types):
        return ValidationResult(
            False,
            f"File type {candidate.content_type} is not allowed. Only image files are permitted.",
            category=VALIDATION_FAILED,
        )

    ext = file_extension(candidate.file_name)
    if ext and candidate.content_type in VALID_EXTENSIONS:
        if ext not in VALID_EXTENSIONS[candidate.content_type]:
            return ValidationResult(False, "File extension does not match the file type", category=VALIDATION_FAILED)

    if any(p.search(candidate.file_name) for p in SUSPICIOUS_PATTERNS):
        return ValidationResult(
            False,
            "File name contains suspicious patterns and cannot be uploaded",
            category=VALIDATION_FAILED,
        )

    if strict_validation and detect_executable(candidate.content):
        return ValidationResult(
            False,
            "File appears to be an executable and cannot be uploaded",
            category=SUSPICIOUS_FILE,
        )

    return ValidationResult(True, sanitized_file_name=sanitize_file_name(candidate.file_name))


class SecurityEventLog:
    """Append-only record of blocked uploads, also written to the event stream."""

    def __init__(self, capacity: int = 500) -> None:
        self._entries: deque = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def record(
        self,
        event: str,
        *,
        file_name: str,
        file_size: int,
        file_type: str,
        reason: str,
        ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> dict:
        if event not in SECURITY_EVENTS:
            raise ValueError(f"unknown security event: {event}")
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event": event,
            "details": {
                # raw names never reach the log
                "file_name": sanitize_file_name(file_name),
                "file_size": file_size,
                "file_type": file_type,
                "ip": ip,
                "user_agent": user_agent,
                "reason": reason,
            },
        }
        with self._lock:
            self._entries.append(entry)
        log_event("warning", f"security.{event}", **entry["details"])
        return entry

    def entries(self) -> list:
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
