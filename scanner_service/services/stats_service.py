"""
Scan statistics for the admin dashboard: totals per result, per-scanner
breakdown and the most recent scans.
"""

from sqlalchemy import func

from scanner_service.extensions import db
from scanner_service.models.scan_log import ScanLog, SCAN_RESULTS
from scanner_service.models.scanner_user import ScannerUser, ROLE_SCANNER

RECENT_SCANS_LIMIT = 50


def _empty_counts():
    counts = {"total": 0}
    counts.update({result: 0 for result in SCAN_RESULTS})
    return counts


def get_scan_stats(recent_limit=RECENT_SCANS_LIMIT):
    rows = (
        db.session.query(ScanLog.scanner_user_id, ScanLog.scan_result, func.count(ScanLog.id))
        .group_by(ScanLog.scanner_user_id, ScanLog.scan_result)
        .all()
    )
    last_scans = dict(
        db.session.query(ScanLog.scanner_user_id, func.max(ScanLog.scanned_at))
        .group_by(ScanLog.scanner_user_id)
        .all()
    )

    total_stats = _empty_counts()
    per_scanner = {}
    for scanner_user_id, scan_result, count in rows:
        total_stats[scan_result] += count
        total_stats["total"] += count
        counts = per_scanner.setdefault(scanner_user_id, _empty_counts())
        counts[scan_result] += count
        counts["total"] += count

    scanners = ScannerUser.query.filter_by(role=ROLE_SCANNER).order_by(ScannerUser.created_at.desc()).all()
    scanner_stats = []
    for user in scanners:
        last_scan = last_scans.get(user.id)
        scanner_stats.append({
            "user": {
                "id": user.id,
                "username": user.username,
                "name": user.name,
                "is_active": user.is_active,
            },
            "stats": per_scanner.get(user.id, _empty_counts()),
            "lastScan": last_scan.isoformat() if last_scan else None,
        })

    recent = (
        ScanLog.query.order_by(ScanLog.scanned_at.desc())
        .limit(recent_limit)
        .all()
    )
    recent_scans = []
    for log in recent:
        entry = log.to_dict()
        entry["scanner"] = {
            "id": log.scanner.id,
            "username": log.scanner.username,
            "name": log.scanner.name,
        } if log.scanner else None
        recent_scans.append(entry)

    return {
        "totalStats": total_stats,
        "scannerStats": scanner_stats,
        "recentScans": recent_scans,
    }
