"""
Константы Seiso AWS Sync.

Типы событий AWS, имена тегов, коды HTTP и справочники Seiso.
"""

from typing import Optional

# ==================== AWS СОБЫТИЯ ====================

# detail-type событий регистрации в ELB (CloudTrail через EventBridge)
LB_REGISTRATION_DETAIL_TYPE = "AWS API Call via CloudTrail"
EC2_INSTANCE_STATE_CHANGE_DETAIL_TYPE = "EC2 Instance State-change Notification"
EC2_INSTANCE_HEALTH_FAIL_DETAIL_TYPE = "EC2 Instance Health Failure Notification"

EVENT_REGISTER_INSTANCES = "RegisterInstancesWithLoadBalancer"
EVENT_DEREGISTER_INSTANCES = "DeregisterInstancesFromLoadBalancer"

# Коды ошибок AWS, после которых продолжать опрос бессмысленно
AWS_AUTH_ERROR_CODES = frozenset({
    "AccessDenied",
    "AccessDeniedException",
    "AuthFailure",
    "ExpiredToken",
    "ExpiredTokenException",
    "InvalidAccessKeyId",
    "InvalidClientTokenId",
    "MissingAuthenticationToken",
    "SignatureDoesNotMatch",
    "UnauthorizedOperation",
    "UnrecognizedClientException",
})

# Максимальное время long-poll SQS (ограничение AWS)
MAX_POLL_TIMEOUT = 20

# ==================== SEISO ====================

# Тег-natural key для node
AWS_INSTANCE_ID_TAG = "AWS Instance ID"

DEFAULT_PAGE_SIZE = 500
DEFAULT_NODE_VERSION = "1.0.0"
DEFAULT_IP_ADDRESS_ROLE = "default"

ROTATION_STATUS_ENABLED = "enabled"
ROTATION_STATUS_DISABLED = "disabled"

HTTP_NOT_FOUND = 404
HTTP_CONFLICT = 409


def get_protocol_from_port(port: int) -> Optional[str]:
    """
    Определяет протокол ServiceInstancePort по номеру порта.

    Правила исторические (443/8443 → https, 80/8080 → http и т.д.),
    порядок проверки важен.

    Args:
        port: Номер порта

    Returns:
        str или None если протокол не определён
    """
    if port % 10 == 3:
        return "https"
    if port % 100 == 80:
        return "http"
    if port == 22:
        return "ssh"
    if port in (24, 25):
        return "ftp"
    if port == 21:
        return "smtp"
    return None
