# casetrack/services/audit_service.py

import boto3
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from casetrack.core.config import settings
from casetrack.core.logger import logger
from casetrack.db.models import AuditAction, AuditLog, AuditResourceType


def _dynamo_safe(value: Any) -> Any:
    """DynamoDB rejects floats and empty nested types; coerce the usual suspects."""
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {str(k): _dynamo_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_dynamo_safe(v) for v in value]
    if isinstance(value, datetime):
        return value.isoformat()
    if value is None or isinstance(value, (str, int, bool, Decimal)):
        return value
    return str(value)


class AuditService:
    """
    Compliance trail for case and proceeding mutations.

    Writes to the ``audit_logs`` table by default, or to a DynamoDB table
    when AUDIT_BACKEND=dynamodb. Recording is fire-and-log: a failure is
    logged and swallowed so the mutation that triggered it still succeeds.
    """

    def __init__(self, backend: Optional[str] = None, table=None):
        self.backend = backend or settings.AUDIT_BACKEND
        self._table = table

    @property
    def table(self):
        if self._table is None:
            dynamodb = boto3.resource(
                'dynamodb',
                region_name=settings.AWS_REGION,
                aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
                aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None
            )
            self._table = dynamodb.Table(settings.DYNAMODB_TABLE_NAME)
        return self._table

    def record(
        self,
        db: Session,
        action: AuditAction,
        actor_email: str,
        resource_type: AuditResourceType,
        details: Dict[str, Any],
        resource_id: Optional[str] = None,
        actor_id: Optional[str] = None,
        source_address: Optional[str] = None,
    ):
        """
        Record one audit entry. Returns the stored entry (AuditLog row or
        DynamoDB item), or None if recording failed.
        """
        try:
            if self.backend == "dynamodb":
                return self._put_dynamo(action, actor_email, resource_type, details,
                                        resource_id, actor_id, source_address)
            return self._insert_row(db, action, actor_email, resource_type, details,
                                    resource_id, actor_id, source_address)
        except Exception as e:
            logger.error(f"Failed to record audit {getattr(action, 'value', action)}: {str(e)}")
            if self.backend != "dynamodb":
                db.rollback()
            return None

    def _insert_row(self, db, action, actor_email, resource_type, details,
                    resource_id, actor_id, source_address) -> AuditLog:
        entry = AuditLog(
            action=action,
            user_email=actor_email,
            user_id=actor_id,
            resource_type=resource_type,
            resource_id=str(resource_id) if resource_id else None,
            details=details or {},
            ip_address=source_address,
            timestamp=datetime.utcnow(),
        )
        db.add(entry)
        db.commit()
        return entry

    def _put_dynamo(self, action, actor_email, resource_type, details,
                    resource_id, actor_id, source_address) -> Dict[str, Any]:
        now = datetime.utcnow()
        item = {
            'user_email': actor_email,
            'timestamp': int(now.timestamp() * 1000),
            'action_type': AuditAction(action).value,
            'resource_type': AuditResourceType(resource_type).value,
            'metadata': _dynamo_safe({
                **(details or {}),
                'timestamp_iso': now.isoformat(),
            }),
            'ttl': int(now.timestamp()) + (settings.AUDIT_TTL_DAYS * 24 * 3600),
        }
        if resource_id:
            item['resource_id'] = str(resource_id)
        if actor_id:
            item['user_id'] = str(actor_id)
        if source_address:
            item['ip_address'] = source_address

        self.table.put_item(Item=item)
        return item


# Singleton instance
audit_service = AuditService()
