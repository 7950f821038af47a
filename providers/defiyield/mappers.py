"""
DefiYield Payload Mapping

`/audit/address` answers with one entry per requested address:

    [
        {
            "partnerAudits": [
                {
                    "name": "Uniswap V3 Core",
                    "date": "2021-03-22",
                    "tech_issues": 4,
                    "audit_link": "audits/uniswap-v3-core.pdf",
                    "partner": {"id": 7, "name": "Trail of Bits"}
                },
                ...
            ]
        }
    ]

Audits are grouped by partner into Auditor models, in order of each partner's
first appearance.
"""

import datetime
from typing import Any, Dict, List, Optional

from core.errors import MalformedResponseError
from core.parsing import require_list, require_mapping
from core.schemas import AuditReport, Auditor


REPORT_FILES_URL = "https://files.safe.defiyield.app"
AUDIT_DATE_FORMAT = "%Y-%m-%d"


def parse_audit_date(value: Any) -> Optional[datetime.date]:
    """
    Parse a "YYYY-MM-DD" audit date; None when it does not match.

    Example:
        >>> parse_audit_date("2021-03-22")
        datetime.date(2021, 3, 22)
    """
    if not isinstance(value, str):
        return None
    try:
        return datetime.datetime.strptime(value, AUDIT_DATE_FORMAT).date()
    except ValueError:
        return None


def _required(payload: Dict[str, Any], key: str, what: str) -> Any:
    value = payload.get(key)
    if value is None:
        raise MalformedResponseError(f"Missing '{key}' in {what}")
    return value


def map_audit_report(audit: Dict[str, Any]) -> AuditReport:
    issues = audit.get("tech_issues")
    return AuditReport(
        name=_required(audit, "name", "partner audit"),
        date=parse_audit_date(_required(audit, "date", "partner audit")),
        issues=issues if isinstance(issues, int) else 0,
        link=f"{REPORT_FILES_URL}/{_required(audit, 'audit_link', 'partner audit')}",
    )


def map_auditors(data: Any) -> List[Auditor]:
    """
    Group the partner audits of the first address entry by auditor.

    Raises:
        MalformedResponseError: Payload is not a list, or an audit lacks
                                name, date, audit_link or partner id/name
    """
    entries = require_list(data, "audit response")
    if not entries:
        return []

    info = require_mapping(entries[0], "audit info")
    partner_audits = require_list(_required(info, "partnerAudits", "audit info"), "partnerAudits")

    names: Dict[Any, str] = {}
    reports: Dict[Any, List[AuditReport]] = {}

    for raw_audit in partner_audits:
        audit = require_mapping(raw_audit, "partner audit")
        partner = require_mapping(_required(audit, "partner", "partner audit"), "partner")
        partner_id = _required(partner, "id", "partner")

        names.setdefault(partner_id, _required(partner, "name", "partner"))
        reports.setdefault(partner_id, []).append(map_audit_report(audit))

    return [Auditor(name=names[partner_id], reports=reports[partner_id]) for partner_id in names]
