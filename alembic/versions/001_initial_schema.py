"""001 – Initial schema: employees, sessions, attendance, leave, salary, notifications.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 10:00:00.000000+05:30
"""

from alembic import op

# Revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

# SQLAlchemy stores enum member names; every member name equals its value.
ENUM_TYPES: list[tuple[str, list[str]]] = [
    ("employment_status", ["active", "inactive", "on_leave", "terminated"]),
    ("employment_type", ["full_time", "part_time", "contract", "intern"]),
    ("gender_type", ["male", "female", "other", "undisclosed"]),
    ("user_role", ["employee", "hr", "admin"]),
    (
        "current_attendance_status",
        ["present", "absent", "leave", "not_checked_in", "half_day", "late"],
    ),
    (
        "attendance_status",
        ["present", "absent", "half_day", "leave", "holiday", "weekend", "late"],
    ),
    ("check_method", ["manual", "biometric", "web"]),
    ("regularization_status", ["pending", "approved", "rejected"]),
    (
        "leave_type",
        [
            "paid",
            "vacation",
            "annual",
            "sick",
            "personal",
            "casual",
            "unpaid",
            "maternity",
            "paternity",
            "bereavement",
            "other",
        ],
    ),
    ("leave_category", ["vacation", "sick", "personal", "unpaid"]),
    ("leave_status", ["pending", "approved", "rejected", "cancelled"]),
    ("half_day_type", ["first_half", "second_half"]),
    ("payment_status", ["pending", "paid"]),
    (
        "notification_type",
        ["info", "action_required", "approval", "reminder", "alert", "celebration"],
    ),
]


def _create_enum(name: str, values: list[str]) -> None:
    vals = ", ".join(f"'{v}'" for v in values)
    op.execute(f"CREATE TYPE {name} AS ENUM ({vals})")


def _drop_enum(name: str) -> None:
    op.execute(f"DROP TYPE IF EXISTS {name}")


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    for name, values in ENUM_TYPES:
        _create_enum(name, values)

    # ── 1. employees ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE employees (
            id                        UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            employee_code             VARCHAR(20)  NOT NULL UNIQUE,
            first_name                VARCHAR(100) NOT NULL,
            last_name                 VARCHAR(100) NOT NULL,
            email                     VARCHAR(255) NOT NULL UNIQUE,
            phone                     VARCHAR(20),
            address                   TEXT,
            gender                    gender_type,
            date_of_birth             DATE,
            department                VARCHAR(100) NOT NULL DEFAULT 'General',
            designation               VARCHAR(150),
            role                      user_role NOT NULL DEFAULT 'employee',
            reporting_manager_id      UUID REFERENCES employees(id),
            employment_type           employment_type NOT NULL DEFAULT 'full_time',
            status                    employment_status NOT NULL DEFAULT 'active',
            join_date                 DATE NOT NULL,
            current_attendance_status current_attendance_status NOT NULL
                                      DEFAULT 'not_checked_in',
            google_id                 VARCHAR(255) UNIQUE,
            is_active                 BOOLEAN DEFAULT TRUE,
            created_at                TIMESTAMPTZ DEFAULT NOW(),
            updated_at                TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX idx_employees_department ON employees(department)")
    op.execute("CREATE INDEX idx_employees_manager    ON employees(reporting_manager_id)")

    # ── 2. user_sessions ──────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE user_sessions (
            id           UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            employee_id  UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            token_hash   VARCHAR(128) NOT NULL UNIQUE,
            ip_address   VARCHAR(64),
            user_agent   TEXT,
            expires_at   TIMESTAMPTZ NOT NULL,
            is_revoked   BOOLEAN NOT NULL DEFAULT FALSE,
            created_at   TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX idx_user_sessions_employee ON user_sessions(employee_id)")
    op.execute("CREATE INDEX idx_user_sessions_expires  ON user_sessions(expires_at)")

    # ── 3. attendance_records ─────────────────────────────────────────────
    op.execute("""
        CREATE TABLE attendance_records (
            id                          UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            employee_id                 UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            date                        DATE NOT NULL,
            check_in_at                 TIMESTAMPTZ,
            check_in_location           VARCHAR(100),
            check_in_method             check_method,
            check_out_at                TIMESTAMPTZ,
            check_out_location          VARCHAR(100),
            check_out_method            check_method,
            status                      attendance_status NOT NULL DEFAULT 'absent',
            total_hours                 NUMERIC(10, 6),
            overtime_hours              NUMERIC(10, 6) NOT NULL DEFAULT 0,
            break_minutes               INTEGER NOT NULL DEFAULT 0,
            note                        TEXT,
            marked_by                   UUID REFERENCES employees(id),
            is_regularized              BOOLEAN NOT NULL DEFAULT FALSE,
            regularization_status       regularization_status,
            regularization_reason       TEXT,
            requested_check_in          TIMESTAMPTZ,
            requested_check_out         TIMESTAMPTZ,
            regularization_requested_at TIMESTAMPTZ,
            regularization_reviewed_by  UUID REFERENCES employees(id),
            regularization_reviewed_at  TIMESTAMPTZ,
            regularization_comments     TEXT,
            created_at                  TIMESTAMPTZ DEFAULT NOW(),
            updated_at                  TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_attendance_employee_date UNIQUE (employee_id, date)
        )
    """)
    op.execute("CREATE INDEX ix_attendance_records_date   ON attendance_records(date)")
    op.execute("CREATE INDEX ix_attendance_records_status ON attendance_records(status)")

    # ── 4. leave_balances ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_balances (
            id          UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            employee_id UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            category    leave_category NOT NULL,
            year        INTEGER NOT NULL,
            allocated   NUMERIC(5, 1) NOT NULL DEFAULT 0,
            used        NUMERIC(5, 1) NOT NULL DEFAULT 0,
            updated_at  TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_leave_balance UNIQUE (employee_id, category, year),
            CONSTRAINT ck_leave_balance_used CHECK (used >= 0),
            CONSTRAINT ck_leave_balance_remaining CHECK (used <= allocated)
        )
    """)

    # ── 5. leave_requests ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_requests (
            id                  UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            employee_id         UUID NOT NULL REFERENCES employees(id),
            leave_type          leave_type NOT NULL,
            category            leave_category NOT NULL,
            title               VARCHAR(200),
            reason              TEXT NOT NULL,
            start_date          DATE NOT NULL,
            end_date            DATE NOT NULL,
            total_days          NUMERIC(5, 1) NOT NULL,
            is_half_day         BOOLEAN NOT NULL DEFAULT FALSE,
            half_day_type       half_day_type,
            status              leave_status NOT NULL DEFAULT 'pending',
            approved_by         UUID REFERENCES employees(id),
            approved_at         TIMESTAMPTZ,
            rejected_by         UUID REFERENCES employees(id),
            rejected_at         TIMESTAMPTZ,
            admin_comments      TEXT,
            cancelled_at        TIMESTAMPTZ,
            cancellation_reason TEXT,
            created_at          TIMESTAMPTZ DEFAULT NOW(),
            updated_at          TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_leave_request_dates CHECK (start_date <= end_date)
        )
    """)
    op.execute("""
        CREATE INDEX ix_leave_requests_employee_status
            ON leave_requests(employee_id, status)
    """)

    # ── 6. salary_configurations ──────────────────────────────────────────
    op.execute("""
        CREATE TABLE salary_configurations (
            id                     UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            employee_id            UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            version                INTEGER NOT NULL DEFAULT 1,
            monthly_wage           NUMERIC(14, 2) NOT NULL DEFAULT 0,
            basic_pct              NUMERIC(5, 2) NOT NULL,
            hra_pct                NUMERIC(5, 2) NOT NULL,
            standard_allowance_pct NUMERIC(5, 2) NOT NULL,
            performance_bonus_pct  NUMERIC(5, 2) NOT NULL,
            lta_pct                NUMERIC(5, 2) NOT NULL,
            pf_employee_pct        NUMERIC(5, 2) NOT NULL,
            pf_employer_pct        NUMERIC(5, 2) NOT NULL,
            professional_tax       NUMERIC(10, 2) NOT NULL,
            currency               VARCHAR(3) NOT NULL DEFAULT 'INR',
            effective_from         DATE NOT NULL,
            is_current             BOOLEAN NOT NULL DEFAULT TRUE,
            superseded_at          TIMESTAMPTZ,
            updated_by             UUID REFERENCES employees(id),
            created_at             TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_salary_config_employee_version UNIQUE (employee_id, version)
        )
    """)
    op.execute("""
        CREATE INDEX ix_salary_config_employee_current
            ON salary_configurations(employee_id, is_current)
    """)
    # At most one current configuration per employee
    op.execute("""
        CREATE UNIQUE INDEX uq_salary_config_current
            ON salary_configurations(employee_id)
            WHERE is_current = TRUE
    """)

    # ── 7. payslips ───────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE payslips (
            id                      UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            employee_id             UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            salary_configuration_id UUID NOT NULL REFERENCES salary_configurations(id),
            year                    INTEGER NOT NULL,
            month                   INTEGER NOT NULL,
            breakdown               JSONB NOT NULL,
            gross_salary            NUMERIC(14, 2) NOT NULL,
            total_deductions        NUMERIC(14, 2) NOT NULL,
            net_salary              NUMERIC(14, 2) NOT NULL,
            working_days            INTEGER NOT NULL DEFAULT 0,
            present_days            NUMERIC(5, 1) NOT NULL DEFAULT 0,
            unpaid_leave_days       NUMERIC(5, 1) NOT NULL DEFAULT 0,
            payment_status          payment_status NOT NULL DEFAULT 'pending',
            payment_date            DATE,
            payment_method          VARCHAR(50),
            transaction_id          VARCHAR(100),
            remarks                 TEXT,
            generated_by            UUID REFERENCES employees(id),
            created_at              TIMESTAMPTZ DEFAULT NOW(),
            updated_at              TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_payslip_employee_period UNIQUE (employee_id, year, month),
            CONSTRAINT ck_payslip_month CHECK (month BETWEEN 1 AND 12)
        )
    """)

    # ── 8. notifications ──────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE notifications (
            id           UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            recipient_id UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            event        VARCHAR(50) NOT NULL,
            type         notification_type NOT NULL DEFAULT 'info',
            title        VARCHAR(200) NOT NULL,
            message      TEXT NOT NULL,
            action_url   VARCHAR(500),
            entity_type  VARCHAR(50),
            entity_id    UUID,
            is_read      BOOLEAN NOT NULL DEFAULT FALSE,
            read_at      TIMESTAMPTZ,
            created_at   TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX ix_notifications_recipient_read
            ON notifications(recipient_id, is_read)
    """)

    # ── 9. audit_trail ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE audit_trail (
            id          UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            actor_id    UUID REFERENCES employees(id),
            action      VARCHAR(50) NOT NULL,
            entity_type VARCHAR(50) NOT NULL,
            entity_id   UUID,
            old_values  JSONB,
            new_values  JSONB,
            created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_audit_trail_entity   ON audit_trail(entity_type, entity_id)")
    op.execute("CREATE INDEX ix_audit_trail_actor_id ON audit_trail(actor_id)")


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    # Drop tables in reverse dependency order
    tables = [
        "audit_trail",
        "notifications",
        "payslips",
        "salary_configurations",
        "leave_requests",
        "leave_balances",
        "attendance_records",
        "user_sessions",
        "employees",
    ]
    for t in tables:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")

    for name, _ in reversed(ENUM_TYPES):
        _drop_enum(name)

    op.execute('DROP EXTENSION IF EXISTS "pgcrypto"')
