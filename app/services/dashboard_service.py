from __future__ import annotations

from datetime import date
from typing import Any

from app.config import settings
from app.core.vehicles import upcoming_document_alerts
from app.metrics import timed_service
from app.schemas import EntityKind
from app.services.attention_service import list_attention
from app.services.fee_service import fee_summary, overdue_fees
from app.services.transport_repository import TransportRepository


LATEST_ATTENTION_LIMIT = 5


@timed_service('dashboard_summary')
def get_dashboard(repo: TransportRepository, today: date | None = None) -> dict[str, Any]:
    day = today or repo.today()
    students = repo.list(EntityKind.STUDENTS)
    vehicles = repo.list_raw(EntityKind.VEHICLES)
    fees = repo.list(EntityKind.FEES)
    attendance = [row for row in repo.list(EntityKind.ATTENDANCE) if row.date == day.isoformat()]
    summary = fee_summary(fees)
    overdue = overdue_fees(fees, day)
    names = {student.id: student.name for student in students}

    return {
        'date': day.isoformat(),
        'totals': {
            'students': len(students),
            'vehicles': len(vehicles),
            'fees_collected': summary['total_collected'],
            'fees_pending': summary['total_balance'],
            'present_today': sum(1 for row in attendance if row.status == 'Present'),
        },
        'overdue_fees': [
            {
                'id': fee.id,
                'student_id': fee.student_id,
                'student_name': names.get(fee.student_id, 'Unknown'),
                'total_amount': fee.total_amount,
                'due_date': fee.due_date,
            }
            for fee in overdue
        ],
        'document_alerts': upcoming_document_alerts(vehicles, day, settings.document_expiry_warning_days),
        'attention': [item.model_dump(by_alias=True) for item in list_attention(repo)[:LATEST_ATTENTION_LIMIT]],
    }
