"""In-process metrics collector with Prometheus text exposition."""

from __future__ import annotations

from collections import defaultdict
from threading import Lock
import time
from typing import Dict, Tuple


_lock = Lock()
_started_at = time.time()

_http_requests_total: Dict[Tuple[str, str, str], int] = defaultdict(int)
_http_request_duration_sum: Dict[Tuple[str, str], float] = defaultdict(float)
_http_request_duration_count: Dict[Tuple[str, str], int] = defaultdict(int)
_rate_limit_block_total: Dict[str, int] = defaultdict(int)
_uploads_total: Dict[Tuple[str, str], int] = defaultdict(int)
_upload_token_rejections_total: Dict[str, int] = defaultdict(int)
_external_sync_failures_total: Dict[str, int] = defaultdict(int)


def _escape_label(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _normalize_label(value: str, *, fallback: str = "unknown") -> str:
    normalized = (value or "").strip()
    return normalized or fallback


def record_http_request(*, method: str, path: str, status_code: int, duration_seconds: float) -> None:
    status = str(status_code)
    method_label = method.upper()
    path_label = path or "unknown"
    duration = max(duration_seconds, 0.0)

    with _lock:
        _http_requests_total[(method_label, path_label, status)] += 1
        _http_request_duration_sum[(method_label, path_label)] += duration
        _http_request_duration_count[(method_label, path_label)] += 1


def record_rate_limit_block(*, kind: str) -> None:
    with _lock:
        _rate_limit_block_total[_normalize_label(kind)] += 1


def record_upload(*, upload_kind: str, status: str, count: int = 1) -> None:
    if count <= 0:
        return
    with _lock:
        key = (_normalize_label(upload_kind), _normalize_label(status))
        _uploads_total[key] += int(count)


def record_upload_token_rejection(*, reason: str) -> None:
    with _lock:
        _upload_token_rejections_total[_normalize_label(reason)] += 1


def record_external_sync_failure(*, field_name: str) -> None:
    with _lock:
        _external_sync_failures_total[_normalize_label(field_name)] += 1


def render_prometheus_metrics(*, app_name: str, app_version: str, env: str) -> str:
    uptime = max(time.time() - _started_at, 0.0)

    with _lock:
        http_total = dict(_http_requests_total)
        duration_sum = dict(_http_request_duration_sum)
        duration_count = dict(_http_request_duration_count)
        rate_limit_total = dict(_rate_limit_block_total)
        uploads_total = dict(_uploads_total)
        token_rejections_total = dict(_upload_token_rejections_total)
        sync_failures_total = dict(_external_sync_failures_total)

    lines = [
        "# HELP contentops_build_info Build metadata.",
        "# TYPE contentops_build_info gauge",
        (
            f'contentops_build_info{{app_name="{_escape_label(app_name)}",'
            f'version="{_escape_label(app_version)}",env="{_escape_label(env)}"}} 1'
        ),
        "# HELP contentops_process_uptime_seconds Process uptime in seconds.",
        "# TYPE contentops_process_uptime_seconds gauge",
        f"contentops_process_uptime_seconds {uptime:.6f}",
        "# HELP contentops_http_requests_total Total HTTP requests.",
        "# TYPE contentops_http_requests_total counter",
    ]

    for (method, path, status), value in sorted(http_total.items()):
        lines.append(
            (
                f'contentops_http_requests_total{{method="{_escape_label(method)}",'
                f'path="{_escape_label(path)}",status="{_escape_label(status)}"}} {value}'
            )
        )

    lines.extend(
        [
            "# HELP contentops_http_request_duration_seconds Request duration summary.",
            "# TYPE contentops_http_request_duration_seconds summary",
        ]
    )
    for (method, path), value in sorted(duration_sum.items()):
        lines.append(
            (
                f'contentops_http_request_duration_seconds_sum{{method="{_escape_label(method)}",'
                f'path="{_escape_label(path)}"}} {value:.6f}'
            )
        )
    for (method, path), value in sorted(duration_count.items()):
        lines.append(
            (
                f'contentops_http_request_duration_seconds_count{{method="{_escape_label(method)}",'
                f'path="{_escape_label(path)}"}} {value}'
            )
        )

    lines.extend(
        [
            "# HELP contentops_rate_limit_block_total Requests blocked by rate limiting.",
            "# TYPE contentops_rate_limit_block_total counter",
        ]
    )
    for kind, value in sorted(rate_limit_total.items()):
        lines.append(f'contentops_rate_limit_block_total{{kind="{_escape_label(kind)}"}} {value}')

    lines.extend(
        [
            "# HELP contentops_uploads_total Public upload outcomes by kind.",
            "# TYPE contentops_uploads_total counter",
        ]
    )
    for (upload_kind, status), value in sorted(uploads_total.items()):
        lines.append(
            (
                f'contentops_uploads_total{{kind="{_escape_label(upload_kind)}",'
                f'status="{_escape_label(status)}"}} {value}'
            )
        )

    lines.extend(
        [
            "# HELP contentops_upload_token_rejections_total Upload token verification failures.",
            "# TYPE contentops_upload_token_rejections_total counter",
        ]
    )
    for reason, value in sorted(token_rejections_total.items()):
        lines.append(f'contentops_upload_token_rejections_total{{reason="{_escape_label(reason)}"}} {value}')

    lines.extend(
        [
            "# HELP contentops_external_sync_failures_total Failed best-effort Airtable pushes.",
            "# TYPE contentops_external_sync_failures_total counter",
        ]
    )
    for field_name, value in sorted(sync_failures_total.items()):
        lines.append(f'contentops_external_sync_failures_total{{field="{_escape_label(field_name)}"}} {value}')

    lines.append("")
    return "\n".join(lines)


def reset_metrics_for_tests() -> None:
    global _started_at
    with _lock:
        _http_requests_total.clear()
        _http_request_duration_sum.clear()
        _http_request_duration_count.clear()
        _rate_limit_block_total.clear()
        _uploads_total.clear()
        _upload_token_rejections_total.clear()
        _external_sync_failures_total.clear()
    _started_at = time.time()
