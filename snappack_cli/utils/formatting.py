"""
Helper functions for formatting data into human-readable strings.
"""

from snappack_cli.models.media import FailedEntry, FailureReason, PendingEntry

FAILURE_LABELS = {
    FailureReason.UNSCHEDULABLE: "No download link",
    FailureReason.TRANSPORT: "Expired or unreachable link",
    FailureReason.INTEGRITY: "Corrupt media",
    FailureReason.PERSISTENCE: "Could not save",
    FailureReason.UNEXPECTED: "Unexpected error",
}


def format_size(bytes_size: float) -> str:
    """Formats bytes into a human-readable size string (e.g., '145.3 MB')."""
    if bytes_size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    i = 0
    while bytes_size >= 1024 and i < len(units) - 1:
        bytes_size /= 1024
        i += 1
    return f"{bytes_size:.1f} {units[i]}"


def format_duration(seconds: float) -> str:
    """
    Formats a duration in seconds into a human-readable string (e.g., '2h 34m 12s').
    """
    hours, remainder = divmod(int(seconds), 3600)
    minutes, secs = divmod(remainder, 60)
    parts = [f"{hours}h"] if hours else []
    if minutes:
        parts.append(f"{minutes}m")
    if secs or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)


def describe_entry(entry: PendingEntry) -> str:
    """Short one-line label for an entry, e.g. 'Video 2023-05-01 12:00:00 UTC'."""
    label = f"{entry.media_kind.value} {entry.captured_at or 'undated'}"
    if entry.location_label:
        label += f" ({entry.location_label})"
    return label


def describe_failure(failed: FailedEntry) -> str:
    """The user-facing label for a failed entry."""
    label = FAILURE_LABELS.get(failed.reason, failed.reason.value)
    return f"{label}: {failed.detail}" if failed.detail else label


def shorten_url(url: str, max_length: int = 48) -> str:
    if len(url) <= max_length:
        return url
    keep = (max_length - 1) // 2
    return f"{url[:keep]}…{url[-keep:]}"
