# Overview: Role names issued by the identity service and the role groups used by routes.


class Role:
    ADMIN = "ADMIN"
    OPERATIONS_MANAGER = "OPERATIONS_MANAGER"
    WAREHOUSE_MANAGER = "WAREHOUSE_MANAGER"
    PROCUREMENT = "PROCUREMENT"
    SUPERVISOR = "SUPERVISOR"


ROLES = (
    Role.ADMIN,
    Role.OPERATIONS_MANAGER,
    Role.WAREHOUSE_MANAGER,
    Role.PROCUREMENT,
    Role.SUPERVISOR,
)

# Role assumed when the identity service knows nothing better
DEFAULT_ROLE = Role.SUPERVISOR

WAREHOUSE_MANAGERS = frozenset({Role.ADMIN, Role.OPERATIONS_MANAGER, Role.WAREHOUSE_MANAGER})
PROCUREMENT_MANAGERS = frozenset({Role.ADMIN, Role.OPERATIONS_MANAGER, Role.PROCUREMENT})
ADMIN_OR_OM = frozenset({Role.ADMIN, Role.OPERATIONS_MANAGER})

# Everyone except site supervisors (supplier list, warehouse-wide reports)
STAFF = frozenset(ROLES) - {Role.SUPERVISOR}
