# ======================================================
# core/constants.py
# Centralized constants for the approval workflow back office
# ======================================================
class Settings:
    # ---- request types ----
    REQUEST_TYPE_VOID_BILL = "void_bill"
    REQUEST_TYPE_CONTRACT = "contract"
    REQUEST_TYPE_USER_CREATE = "user_create"
    REQUEST_TYPE_ROLE_CHANGE = "role_change"
    REQUEST_TYPE_PERMISSION_GRANT = "permission_grant"
    REQUEST_TYPE_USER_DELETE = "user_delete"

    REQUEST_TYPE_LABELS = {
        REQUEST_TYPE_VOID_BILL: "Void bill of lading",
        REQUEST_TYPE_CONTRACT: "Customs contract",
        REQUEST_TYPE_USER_CREATE: "Create user",
        REQUEST_TYPE_ROLE_CHANGE: "Change user role",
        REQUEST_TYPE_PERMISSION_GRANT: "Grant permissions",
        REQUEST_TYPE_USER_DELETE: "Deactivate user",
    }

    # ---- subject kinds (what the request points at) ----
    SUBJECT_BILL = "bill"
    SUBJECT_CONTRACT = "contract"
    SUBJECT_USER = "user"
    SUBJECT_ROLE = "role"

    SUBJECT_CHOICES = [
        (SUBJECT_BILL, "Bill of lading"),
        (SUBJECT_CONTRACT, "Contract"),
        (SUBJECT_USER, "User"),
        (SUBJECT_ROLE, "Role"),
    ]

    # the subject kind each built-in request type works on
    REQUEST_TYPE_SUBJECTS = {
        REQUEST_TYPE_VOID_BILL: SUBJECT_BILL,
        REQUEST_TYPE_CONTRACT: SUBJECT_CONTRACT,
        REQUEST_TYPE_USER_CREATE: SUBJECT_USER,
        REQUEST_TYPE_ROLE_CHANGE: SUBJECT_USER,
        REQUEST_TYPE_PERMISSION_GRANT: SUBJECT_ROLE,
        REQUEST_TYPE_USER_DELETE: SUBJECT_USER,
    }
    # subject kinds with side effects, reserved for one request type
    EXCLUSIVE_SUBJECTS = {
        SUBJECT_BILL: REQUEST_TYPE_VOID_BILL,
    }

    # ---- system config keys ----
    CONFIG_VOID_SUPERVISOR = "void_supervisor_id"
    CONFIG_VOID_FINANCE = "void_finance_id"
    CONFIG_ADMIN_GROUP = "approval_admin_group"
    CONFIG_CHAIN_PREFIX = "approval_chain:"
    CONFIG_APPROVAL_ENABLED = "approval_enabled"
    CONFIG_REQUIRED_PREFIX = "approval_required:"
    CONFIG_THRESHOLD_PREFIX = "approval_threshold:"

    # ---- roles (django auth groups) ----
    ROLE_ADMIN = "admin"
    ROLE_CONTRACT_APPROVER = "contract_approver"

    # ---- built-in stage chains ----
    # Overridden per request type by the system config key "approval_chain:<type>".
    # A stage picks its approver by approver_id, approver_key (config key holding
    # a user id) or role (group name).
    DEFAULT_APPROVAL_CHAINS = {
        REQUEST_TYPE_VOID_BILL: {
            "expires_in_hours": None,
            "stages": [
                {"name": "supervisor", "approver_key": CONFIG_VOID_SUPERVISOR},
                {"name": "finance", "approver_key": CONFIG_VOID_FINANCE},
            ],
        },
        REQUEST_TYPE_CONTRACT: {
            "start_in_draft": True,
            "stages": [
                {"name": "review", "status": "pending", "role": ROLE_CONTRACT_APPROVER},
            ],
        },
        REQUEST_TYPE_USER_CREATE: {
            "stages": [{"name": "admin", "status": "pending", "role": ROLE_ADMIN}],
        },
        REQUEST_TYPE_ROLE_CHANGE: {
            "stages": [{"name": "admin", "status": "pending", "role": ROLE_ADMIN}],
        },
        REQUEST_TYPE_PERMISSION_GRANT: {
            "stages": [{"name": "admin", "status": "pending", "role": ROLE_ADMIN}],
        },
        REQUEST_TYPE_USER_DELETE: {
            "stages": [{"name": "admin", "status": "pending", "role": ROLE_ADMIN}],
        },
    }

    # ---- bill of lading statuses touched by void applications ----
    BILL_STATUS_ARRIVED = "arrived"
    BILL_STATUS_PENDING_VOID = "pending_void"
    BILL_STATUS_VOID = "void"

    # ---- cache keys ----
    CACHE_SYSTEM_CONFIGS = "system_configs:all"
    CACHE_PENDING_COUNT = "notifications:pending_count:{user_id}"
    PENDING_COUNT_TIMEOUT = 60

    # ---- pagination ----
    DEFAULT_PAGE_SIZE = 20
    MAX_PAGE_SIZE = 100

    DATE_FORMAT = "%Y-%m-%d"
